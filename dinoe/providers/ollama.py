"""
Ollama Backend
==============

Talks to a local Ollama server through its native `/api/chat` endpoint.

Wire differences from the OpenAI format:
- tool call arguments are JSON objects, not strings
- tool calls carry no id, so ids are synthesized (`ollama_<uuid>`)
- there is no `tool` role for results; consecutive results are folded into
  one user message of `<tool_result id="...">` blocks
- streaming is newline-delimited JSON; the object with `"done": true` is
  the terminal marker
"""

import json
import uuid
from typing import Any, AsyncIterator

import httpx

from dinoe.errors import ProviderError, ProviderErrorKind
from dinoe.providers.parsing import parse_tool_call
from dinoe.providers.streaming import finalize_response
from dinoe.providers.types import (
    ChatRequest,
    Fragment,
    ProviderResponse,
    ReasoningDelta,
    StreamDone,
    TextDelta,
    ToolCallDelta,
)
from dinoe.utils.logger import Logger

logger = Logger("Ollama")

DEFAULT_BASE_URL = "http://localhost:11434"


def _new_call_id() -> str:
    return f"ollama_{uuid.uuid4()}"


def _status_error(status_code: int, body: str) -> ProviderError:
    if status_code in (401, 403):
        kind = ProviderErrorKind.AUTH
    elif status_code == 429:
        kind = ProviderErrorKind.RATE_LIMIT
    else:
        kind = ProviderErrorKind.NETWORK
    return ProviderError(kind, f"Ollama API error ({status_code}): {body}")


def to_ollama_messages(messages: list[dict]) -> list[dict]:
    """Convert normalized messages, folding tool results into user turns."""
    result = []
    pending_results: list[str] = []

    def flush_results():
        if pending_results:
            result.append({
                "role": "user",
                "content": "[Tool results]\n" + "\n".join(pending_results),
            })
            pending_results.clear()

    for m in messages:
        if m["role"] == "tool":
            pending_results.append(
                f'<tool_result id="{m.get("tool_call_id", "unknown")}">\n{m["content"]}\n</tool_result>'
            )
            continue

        flush_results()
        message: dict[str, Any] = {"role": m["role"], "content": m["content"]}
        if m.get("tool_calls"):
            message["tool_calls"] = []
            for tc in m["tool_calls"]:
                try:
                    arguments = json.loads(tc["arguments"])
                except json.JSONDecodeError:
                    arguments = {}
                message["tool_calls"].append(
                    {"function": {"name": tc["name"], "arguments": arguments}}
                )
        result.append(message)

    flush_results()
    return result


def to_ollama_tools(tools: list[dict]) -> list[dict]:
    return [
        {
            "type": "function",
            "function": {
                "name": t["name"],
                "description": t["description"],
                "parameters": t["parameters"],
            },
        }
        for t in tools
    ]


def _arguments_to_raw(arguments: Any) -> str:
    if isinstance(arguments, str):
        return arguments
    return json.dumps(arguments if arguments is not None else {})


def _call_parts(tc: Any) -> tuple[str, str]:
    """Name and raw arguments of one Ollama tool call."""
    try:
        function = tc["function"]
        return function["name"], _arguments_to_raw(function.get("arguments"))
    except (KeyError, TypeError, AttributeError) as e:
        raise ProviderError(
            ProviderErrorKind.MALFORMED_RESPONSE,
            f"Malformed Ollama tool call: {str(tc)[:200]}",
        ) from e


class OllamaBackend:
    """
    Native Ollama chat over httpx.

    Example:
        backend = OllamaBackend(base_url="http://localhost:11434")
        async for fragment in backend.stream(request):
            ...
    """

    def __init__(
        self,
        base_url: str | None = None,
        timeout: float = 300.0,
        client: httpx.AsyncClient | None = None,
    ):
        self.base_url = (base_url or DEFAULT_BASE_URL).rstrip("/")
        self.client = client or httpx.AsyncClient(timeout=httpx.Timeout(timeout, connect=30.0))

    def _payload(self, request: ChatRequest, stream: bool) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "model": request.model,
            "messages": to_ollama_messages(request.messages),
            "options": {"temperature": request.temperature},
            "stream": stream,
        }
        if request.tools:
            payload["tools"] = to_ollama_tools(request.tools)
        return payload

    @property
    def chat_url(self) -> str:
        return f"{self.base_url}/api/chat"

    async def complete(self, request: ChatRequest) -> ProviderResponse:
        try:
            response = await self.client.post(self.chat_url, json=self._payload(request, stream=False))
        except httpx.HTTPError as e:
            raise ProviderError(ProviderErrorKind.NETWORK, f"Ollama request failed: {e}") from e

        if response.status_code >= 400:
            raise _status_error(response.status_code, response.text)

        try:
            message = response.json()["message"]
        except (json.JSONDecodeError, KeyError, TypeError) as e:
            raise ProviderError(
                ProviderErrorKind.MALFORMED_RESPONSE,
                f"Unexpected Ollama response: {e}",
            ) from e

        calls = [
            parse_tool_call(_new_call_id(), *_call_parts(tc))
            for tc in (message.get("tool_calls") or [])
        ]

        return finalize_response(
            message.get("content") or "",
            message.get("thinking") or "",
            calls,
        )

    async def stream(self, request: ChatRequest) -> AsyncIterator[Fragment]:
        try:
            async with self.client.stream(
                "POST", self.chat_url, json=self._payload(request, stream=True)
            ) as response:
                if response.status_code >= 400:
                    body = (await response.aread()).decode("utf-8", errors="replace")
                    raise _status_error(response.status_code, body)

                async for line in response.aiter_lines():
                    if not line.strip():
                        continue

                    try:
                        chunk = json.loads(line)
                    except json.JSONDecodeError as e:
                        raise ProviderError(
                            ProviderErrorKind.MALFORMED_RESPONSE,
                            f"Invalid stream line from Ollama: {line[:200]}",
                        ) from e

                    message = chunk.get("message") or {}
                    if message.get("thinking"):
                        yield ReasoningDelta(message["thinking"])
                    if message.get("content"):
                        yield TextDelta(message["content"])
                    for tc in message.get("tool_calls") or []:
                        # Ollama sends each call whole, never split
                        name, arguments = _call_parts(tc)
                        yield ToolCallDelta(call_id=_new_call_id(), name=name, arguments=arguments)

                    if chunk.get("done"):
                        yield StreamDone(chunk.get("done_reason"))
                        return
        except httpx.HTTPError as e:
            raise ProviderError(ProviderErrorKind.NETWORK, f"Ollama stream failed: {e}") from e

        logger.warning("Ollama stream closed before done marker")

    async def aclose(self) -> None:
        await self.client.aclose()
