"""
OpenAI-Compatible Backend
=========================

Talks to any endpoint that implements the OpenAI chat completions API.
OpenAI itself, OpenRouter and Z.AI (GLM) differ only in base URL and
credential, so one backend serves all three.

Streaming Notes:
    Tool-call deltas from this API identify a call by `index`; only the
    first delta for an index carries the call `id` and function name.
    The backend remembers index -> id so every ToolCallDelta it yields is
    keyed by call id. A chunk with a non-null `finish_reason` is the
    terminal marker.

    Some models (GLM, DeepSeek via OpenRouter) send `reasoning_content`
    alongside or instead of `content`; it is surfaced as ReasoningDelta.
"""

from typing import Any, AsyncIterator

import openai
from openai import AsyncOpenAI

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

logger = Logger("OpenAICompat")


def map_openai_error(error: Exception) -> ProviderError:
    """Translate an openai SDK exception into the provider error taxonomy."""
    if isinstance(error, (openai.AuthenticationError, openai.PermissionDeniedError)):
        kind = ProviderErrorKind.AUTH
    elif isinstance(error, openai.RateLimitError):
        kind = ProviderErrorKind.RATE_LIMIT
    elif isinstance(error, openai.APIResponseValidationError):
        kind = ProviderErrorKind.MALFORMED_RESPONSE
    else:
        # Connection failures, timeouts and remaining HTTP status errors
        kind = ProviderErrorKind.NETWORK

    status = getattr(error, "status_code", None)
    detail = f"API error {status}: {error}" if status else f"API error: {error}"
    return ProviderError(kind, detail)


def to_openai_messages(messages: list[dict]) -> list[dict]:
    """Convert normalized messages to the chat completions wire format."""
    converted = []
    for m in messages:
        if m["role"] == "tool":
            converted.append({
                "role": "tool",
                "tool_call_id": m["tool_call_id"],
                "content": m["content"],
            })
        elif m.get("tool_calls"):
            converted.append({
                "role": "assistant",
                "content": m["content"] or None,
                "tool_calls": [
                    {
                        "id": tc["id"],
                        "type": "function",
                        "function": {"name": tc["name"], "arguments": tc["arguments"]},
                    }
                    for tc in m["tool_calls"]
                ],
            })
        else:
            converted.append({"role": m["role"], "content": m["content"]})
    return converted


def to_openai_tools(tools: list[dict]) -> list[dict]:
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


class OpenAICompatibleBackend:
    """
    Chat completions over the official openai SDK.

    Example:
        backend = OpenAICompatibleBackend(api_key="sk-...", base_url=None)
        response = await backend.complete(request)
    """

    def __init__(
        self,
        api_key: str | None,
        base_url: str | None = None,
        timeout: float = 120.0,
        client: AsyncOpenAI | None = None,
    ):
        self.client = client or AsyncOpenAI(
            api_key=api_key,
            base_url=base_url,
            timeout=timeout,
        )

    def _request_kwargs(self, request: ChatRequest) -> dict[str, Any]:
        kwargs: dict[str, Any] = {
            "model": request.model,
            "messages": to_openai_messages(request.messages),
            "temperature": request.temperature,
        }
        if request.tools:
            kwargs["tools"] = to_openai_tools(request.tools)
            kwargs["tool_choice"] = "auto"
        return kwargs

    async def complete(self, request: ChatRequest) -> ProviderResponse:
        try:
            response = await self.client.chat.completions.create(**self._request_kwargs(request))
        except openai.APIError as e:
            raise map_openai_error(e) from e

        if not response.choices:
            raise ProviderError(ProviderErrorKind.MALFORMED_RESPONSE, "No choices in response")

        message = response.choices[0].message
        calls = [
            parse_tool_call(tc.id, tc.function.name, tc.function.arguments)
            for tc in (message.tool_calls or [])
        ]
        reasoning = getattr(message, "reasoning_content", None) or ""

        return finalize_response(message.content or "", reasoning, calls)

    async def stream(self, request: ChatRequest) -> AsyncIterator[Fragment]:
        try:
            chunks = await self.client.chat.completions.create(
                **self._request_kwargs(request),
                stream=True,
            )
        except openai.APIError as e:
            raise map_openai_error(e) from e

        ids_by_index: dict[int, str] = {}

        try:
            async for chunk in chunks:
                if not chunk.choices:
                    continue

                choice = chunk.choices[0]
                delta = choice.delta

                if delta is not None:
                    reasoning = getattr(delta, "reasoning_content", None)
                    if reasoning:
                        yield ReasoningDelta(reasoning)

                    if delta.content:
                        yield TextDelta(delta.content)

                    for tc in delta.tool_calls or []:
                        index = tc.index if tc.index is not None else 0
                        call_id = ids_by_index.get(index)
                        if call_id is None:
                            call_id = tc.id or f"call_{index}"
                            ids_by_index[index] = call_id

                        function = tc.function
                        yield ToolCallDelta(
                            call_id=call_id,
                            name=(function.name or "") if function else "",
                            arguments=(function.arguments or "") if function else "",
                        )

                if choice.finish_reason is not None:
                    yield StreamDone(choice.finish_reason)
                    return
        except openai.APIError as e:
            raise map_openai_error(e) from e

        logger.warning("Stream closed before finish_reason")

    async def aclose(self) -> None:
        await self.client.close()
