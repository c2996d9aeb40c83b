"""Tests for the native Ollama backend against a mocked HTTP transport."""
import json

import httpx
import pytest

from dinoe.errors import ProviderError, ProviderErrorKind
from dinoe.providers import ChatRequest, ResponseKind
from dinoe.providers.ollama import OllamaBackend, to_ollama_messages
from dinoe.providers.streaming import merge_stream

REQUEST = ChatRequest(
    messages=[{"role": "system", "content": "sys"}, {"role": "user", "content": "hi"}],
    tools=[{"name": "shell", "description": "Run", "parameters": {"type": "object"}}],
    model="llama3",
    temperature=0.2,
)


def _ndjson(*objects) -> bytes:
    return "".join(json.dumps(o) + "\n" for o in objects).encode()


@pytest.fixture
def captured():
    return []


@pytest.fixture
def make_backend(captured):
    """Factory: make_backend(status, body) -> backend."""

    def _make(status=200, body=b"{}"):
        def handler(request: httpx.Request) -> httpx.Response:
            captured.append((request.url.path, json.loads(request.content)))
            return httpx.Response(status, content=body)

        client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        return OllamaBackend(base_url="http://ollama.test/", client=client)

    return _make


class TestComplete:

    @pytest.mark.asyncio
    async def test_text_answer(self, make_backend, captured):
        backend = make_backend(body=json.dumps({"message": {"role": "assistant", "content": "Hi"}, "done": True}).encode())

        response = await backend.complete(REQUEST)

        assert response.content == "Hi"
        path, payload = captured[0]
        assert path == "/api/chat"
        assert payload["stream"] is False
        assert payload["options"] == {"temperature": 0.2}
        assert payload["tools"][0]["function"]["name"] == "shell"

    @pytest.mark.asyncio
    async def test_tool_calls_get_synthesized_ids(self, make_backend):
        message = {
            "role": "assistant",
            "content": "",
            "tool_calls": [
                {"function": {"name": "shell", "arguments": {"command": "ls"}}},
                {"function": {"name": "shell", "arguments": {"command": "pwd"}}},
            ],
        }
        backend = make_backend(body=json.dumps({"message": message, "done": True}).encode())

        response = await backend.complete(REQUEST)

        assert response.kind is ResponseKind.TOOL_CALLS
        ids = [c.id for c in response.calls]
        assert all(i.startswith("ollama_") for i in ids)
        assert len(set(ids)) == 2
        assert response.calls[1].arguments == {"command": "pwd"}

    @pytest.mark.asyncio
    async def test_thinking_only(self, make_backend):
        message = {"role": "assistant", "content": "", "thinking": "considering options"}
        backend = make_backend(body=json.dumps({"message": message, "done": True}).encode())

        response = await backend.complete(REQUEST)

        assert response.is_terminal
        assert "considering options" in response.content

    @pytest.mark.asyncio
    async def test_missing_message_is_malformed(self, make_backend):
        backend = make_backend(body=b'{"done": true}')

        with pytest.raises(ProviderError) as exc_info:
            await backend.complete(REQUEST)

        assert exc_info.value.kind is ProviderErrorKind.MALFORMED_RESPONSE

    @pytest.mark.asyncio
    async def test_tool_call_without_name_is_malformed(self, make_backend):
        body = json.dumps({"message": {"tool_calls": [{"function": {}}]}, "done": True}).encode()
        backend = make_backend(body=body)

        with pytest.raises(ProviderError) as exc_info:
            await backend.complete(REQUEST)

        assert exc_info.value.kind is ProviderErrorKind.MALFORMED_RESPONSE

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status,kind", [
        (401, ProviderErrorKind.AUTH),
        (429, ProviderErrorKind.RATE_LIMIT),
        (404, ProviderErrorKind.NETWORK),
    ])
    async def test_status_errors(self, make_backend, status, kind):
        backend = make_backend(status=status, body=b'{"error": "nope"}')

        with pytest.raises(ProviderError) as exc_info:
            await backend.complete(REQUEST)

        assert exc_info.value.kind is kind

    @pytest.mark.asyncio
    async def test_connection_failure_is_network(self):
        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        backend = OllamaBackend(client=httpx.AsyncClient(transport=httpx.MockTransport(handler)))

        with pytest.raises(ProviderError) as exc_info:
            await backend.complete(REQUEST)

        assert exc_info.value.kind is ProviderErrorKind.NETWORK


class TestStream:

    @pytest.mark.asyncio
    async def test_text_stream(self, make_backend, captured):
        body = _ndjson(
            {"message": {"role": "assistant", "content": "Hel"}, "done": False},
            {"message": {"role": "assistant", "content": "lo"}, "done": False},
            {"message": {"role": "assistant", "content": ""}, "done": True, "done_reason": "stop"},
        )
        backend = make_backend(body=body)
        tokens = []

        response = await merge_stream(backend.stream(REQUEST), tokens.append)

        assert response.content == "Hello"
        assert tokens == ["Hel", "lo"]
        assert captured[0][1]["stream"] is True

    @pytest.mark.asyncio
    async def test_streamed_tool_call(self, make_backend):
        body = _ndjson(
            {"message": {"role": "assistant", "content": "", "tool_calls": [
                {"function": {"name": "file_read", "arguments": {"path": "a.txt"}}},
            ]}, "done": False},
            {"message": {"role": "assistant", "content": ""}, "done": True},
        )
        backend = make_backend(body=body)

        response = await merge_stream(backend.stream(REQUEST))

        assert response.calls[0].name == "file_read"
        assert response.calls[0].arguments == {"path": "a.txt"}

    @pytest.mark.asyncio
    async def test_streamed_tool_call_without_function_is_malformed(self, make_backend):
        backend = make_backend(body=_ndjson(
            {"message": {"tool_calls": [{"id": "x"}]}, "done": False},
            {"message": {"content": ""}, "done": True},
        ))

        with pytest.raises(ProviderError) as exc_info:
            await merge_stream(backend.stream(REQUEST))

        assert exc_info.value.kind is ProviderErrorKind.MALFORMED_RESPONSE

    @pytest.mark.asyncio
    async def test_stream_without_done_is_incomplete(self, make_backend):
        backend = make_backend(body=_ndjson({"message": {"content": "cut"}, "done": False}))

        with pytest.raises(ProviderError) as exc_info:
            await merge_stream(backend.stream(REQUEST))

        assert exc_info.value.kind is ProviderErrorKind.INCOMPLETE_STREAM

    @pytest.mark.asyncio
    async def test_invalid_line_is_malformed(self, make_backend):
        backend = make_backend(body=b"not json\n")

        with pytest.raises(ProviderError) as exc_info:
            await merge_stream(backend.stream(REQUEST))

        assert exc_info.value.kind is ProviderErrorKind.MALFORMED_RESPONSE

    @pytest.mark.asyncio
    async def test_stream_status_error(self, make_backend):
        backend = make_backend(status=401, body=b"unauthorized")

        with pytest.raises(ProviderError) as exc_info:
            await merge_stream(backend.stream(REQUEST))

        assert exc_info.value.kind is ProviderErrorKind.AUTH


def test_tool_results_are_folded_into_one_user_message():
    messages = [
        {"role": "user", "content": "check"},
        {
            "role": "assistant",
            "content": "",
            "tool_calls": [
                {"id": "c1", "name": "shell", "arguments": '{"command": "ls"}'},
                {"id": "c2", "name": "shell", "arguments": "{broken"},
            ],
        },
        {"role": "tool", "tool_call_id": "c1", "content": "a.txt"},
        {"role": "tool", "tool_call_id": "c2", "content": "Error: bad"},
        {"role": "assistant", "content": "done"},
    ]

    converted = to_ollama_messages(messages)

    assert [m["role"] for m in converted] == ["user", "assistant", "user", "assistant"]
    assert converted[1]["tool_calls"][0]["function"]["arguments"] == {"command": "ls"}
    assert converted[1]["tool_calls"][1]["function"]["arguments"] == {}
    folded = converted[2]["content"]
    assert folded.startswith("[Tool results]")
    assert folded.index('<tool_result id="c1">') < folded.index('<tool_result id="c2">')
