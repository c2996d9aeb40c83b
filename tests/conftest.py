"""Shared fixtures: a temporary workspace and a scripted model backend."""
import json

import pytest

from dinoe.agent import Agent
from dinoe.memory import MarkdownMemory
from dinoe.providers import ProviderAdapter, ProviderResponse
from dinoe.providers.parsing import parse_tool_call
from dinoe.providers.types import StreamDone, TextDelta, ToolCallDelta
from dinoe.tools import ToolRegistry, register_builtin_tools
from dinoe.utils.config import AgentConfig, ProviderKind


def text(content: str) -> ProviderResponse:
    return ProviderResponse.text(content)


def call(call_id: str, name: str, arguments: dict | str, content: str = "") -> ProviderResponse:
    """A tool-call response with a single call."""
    return calls((call_id, name, arguments), content=content)


def calls(*specs, content: str = "") -> ProviderResponse:
    """A tool-call response from (id, name, arguments) triples."""
    parsed = []
    for call_id, name, arguments in specs:
        raw = arguments if isinstance(arguments, str) else json.dumps(arguments)
        parsed.append(parse_tool_call(call_id, name, raw))
    return ProviderResponse.tool_calls(parsed, content=content)


class ScriptedBackend:
    """
    Backend that replays canned responses in order.

    Once the script runs out the last response is repeated. An Exception
    in the script is raised instead of returned.
    """

    def __init__(self, responses):
        self.responses = list(responses)
        self.requests = []
        self.closed = False

    def _next(self, request):
        self.requests.append(request)
        item = self.responses.pop(0) if len(self.responses) > 1 else self.responses[0]
        if isinstance(item, Exception):
            raise item
        return item

    async def complete(self, request):
        return self._next(request)

    async def stream(self, request):
        response = self._next(request)
        # Split text and arguments so the merger has real work to do
        midpoint = len(response.content) // 2
        if response.content:
            yield TextDelta(response.content[:midpoint])
            yield TextDelta(response.content[midpoint:])
        for c in response.calls:
            half = len(c.raw_arguments) // 2
            yield ToolCallDelta(call_id=c.id, name=c.name, arguments=c.raw_arguments[:half])
            yield ToolCallDelta(call_id=c.id, arguments=c.raw_arguments[half:])
        yield StreamDone("stop" if response.is_terminal else "tool_calls")

    async def aclose(self):
        self.closed = True


@pytest.fixture
def workspace(tmp_path):
    path = tmp_path / "workspace"
    path.mkdir()
    return path


@pytest.fixture
def memory(workspace):
    return MarkdownMemory(workspace)


@pytest.fixture
def registry(workspace, memory):
    return register_builtin_tools(ToolRegistry(), workspace, memory=memory, shell_timeout=5.0)


@pytest.fixture
def make_agent(workspace, registry, memory):
    """Factory: make_agent(responses, stream=False, **agent_config)."""

    def _make(responses, stream=False, registry_override=None, **config):
        backend = ScriptedBackend(responses)
        adapter = ProviderAdapter(
            kind=ProviderKind.OPENAI,
            backend=backend,
            model="test-model",
            temperature=0.0,
            stream_enabled=stream,
        )
        agent = Agent(
            provider=adapter,
            registry=registry_override or registry,
            workspace_dir=workspace,
            config=AgentConfig(**config),
            memory=memory,
        )
        return agent, backend

    return _make
