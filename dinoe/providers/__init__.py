"""
Provider Adapter
================

One interface over every model backend.

    adapter = create_provider(config.provider)
    response = await adapter.send(messages, tool_schema, stream=True)

    if response.is_terminal:
        print(response.content)
    else:
        for call in response.calls:
            ...

Variants are chosen by ProviderKind through BACKEND_FACTORIES, a plain
dispatch table. Adding a provider means adding a factory, nothing else.
"""

from typing import Callable

from dinoe.errors import ProviderError, ProviderErrorKind
from dinoe.providers.ollama import OllamaBackend
from dinoe.providers.openai_compat import OpenAICompatibleBackend
from dinoe.providers.streaming import StreamMerger, merge_stream
from dinoe.providers.types import (
    Backend,
    ChatRequest,
    Fragment,
    ProviderResponse,
    ReasoningDelta,
    ResponseKind,
    StreamDone,
    TextDelta,
    ToolCall,
    ToolCallDelta,
)
from dinoe.utils.config import ProviderConfig, ProviderKind
from dinoe.utils.logger import Logger

logger = Logger("Provider")

DEFAULT_BASE_URLS: dict[ProviderKind, str] = {
    ProviderKind.OPENAI: "https://api.openai.com/v1",
    ProviderKind.OPENROUTER: "https://openrouter.ai/api/v1",
    ProviderKind.GLM: "https://api.z.ai/api/paas/v4",
    ProviderKind.OLLAMA: "http://localhost:11434",
}


def _openai_compatible(config: ProviderConfig) -> Backend:
    return OpenAICompatibleBackend(
        api_key=config.api_key,
        base_url=config.base_url or DEFAULT_BASE_URLS[config.kind],
        timeout=config.timeout_seconds,
    )


def _ollama(config: ProviderConfig) -> Backend:
    return OllamaBackend(
        base_url=config.base_url or DEFAULT_BASE_URLS[ProviderKind.OLLAMA],
        timeout=config.timeout_seconds,
    )


BACKEND_FACTORIES: dict[ProviderKind, Callable[[ProviderConfig], Backend]] = {
    ProviderKind.OPENAI: _openai_compatible,
    ProviderKind.OPENROUTER: _openai_compatible,
    ProviderKind.GLM: _openai_compatible,
    ProviderKind.OLLAMA: _ollama,
}


class ProviderAdapter:
    """
    Sends a conversation to a backend and returns one complete response.

    Streaming and non-streaming produce the same ProviderResponse for the
    same model output; streaming additionally feeds text deltas to
    `on_token` as they arrive.
    """

    def __init__(
        self,
        kind: ProviderKind,
        backend: Backend,
        model: str,
        temperature: float = 1.0,
        stream_enabled: bool = True,
    ):
        self.kind = kind
        self.backend = backend
        self.model = model
        self.temperature = temperature
        self.stream_enabled = stream_enabled

    async def send(
        self,
        messages: list[dict],
        tool_schema: list[dict],
        stream: bool | None = None,
        on_token: Callable[[str], None] | None = None,
    ) -> ProviderResponse:
        """
        Send one request.

        Args:
            messages: Normalized messages, system prompt first
            tool_schema: Normalized tool definitions
            stream: Override the configured streaming preference
            on_token: Display hook for streamed text

        Returns:
            ProviderResponse with text or ordered tool calls

        Raises:
            ProviderError: On any unrecoverable provider failure
        """
        use_stream = self.stream_enabled if stream is None else stream
        request = ChatRequest(
            messages=messages,
            tools=tool_schema,
            model=self.model,
            temperature=self.temperature,
        )

        logger.debug("Sending request", {
            "provider": self.kind.value,
            "model": self.model,
            "messages": len(messages),
            "tools": len(tool_schema),
            "stream": use_stream,
        })

        if use_stream:
            response = await merge_stream(self.backend.stream(request), on_token)
        else:
            response = await self.backend.complete(request)

        logger.debug("Received response", {
            "kind": response.kind.value,
            "calls": [c.name for c in response.calls],
        })
        return response

    async def aclose(self) -> None:
        await self.backend.aclose()


def create_provider(config: ProviderConfig) -> ProviderAdapter:
    """Build the adapter for the configured provider kind."""
    factory = BACKEND_FACTORIES.get(config.kind)
    if factory is None:
        raise ValueError(f"No backend registered for provider {config.kind.value}")

    logger.info(f"Using provider {config.kind.value} with model {config.model}")
    return ProviderAdapter(
        kind=config.kind,
        backend=factory(config),
        model=config.model,
        temperature=config.temperature,
        stream_enabled=config.stream_enabled,
    )


__all__ = [
    "BACKEND_FACTORIES",
    "DEFAULT_BASE_URLS",
    "Backend",
    "ChatRequest",
    "Fragment",
    "OllamaBackend",
    "OpenAICompatibleBackend",
    "ProviderAdapter",
    "ProviderError",
    "ProviderErrorKind",
    "ProviderResponse",
    "ReasoningDelta",
    "ResponseKind",
    "StreamDone",
    "StreamMerger",
    "TextDelta",
    "ToolCall",
    "ToolCallDelta",
    "create_provider",
    "merge_stream",
]
