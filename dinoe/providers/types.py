"""
Provider Types
==============

The normalized request/response shapes every backend speaks.

Request:
    ChatRequest(messages, tools, model, temperature)

    messages are plain dicts:
        {"role": "system" | "user" | "assistant" | "tool",
         "content": str,
         "tool_calls": [{"id", "name", "arguments"}],   # assistant only
         "tool_call_id": str}                           # tool only

    tools are plain dicts:
        {"name": str, "description": str, "parameters": <JSON Schema>}

Response:
    ProviderResponse.text(...)        terminal, the final answer
    ProviderResponse.tool_calls(...)  non-terminal, run these and come back

Streaming:
    A backend's stream() yields TextDelta / ReasoningDelta / ToolCallDelta
    fragments and ends with exactly one StreamDone. StreamMerger turns the
    sequence into a ProviderResponse.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, AsyncIterator, Protocol

from dinoe.errors import ProtocolError


@dataclass(frozen=True)
class ToolCall:
    """
    One tool invocation requested by the model.

    Attributes:
        id: Opaque call id assigned by the provider, echoed with the result
        name: Tool name
        arguments: Parsed argument mapping (empty when parsing failed)
        raw_arguments: Arguments exactly as the model sent them
        error: Set when raw_arguments were not a JSON object
    """
    id: str
    name: str
    arguments: dict[str, Any] = field(default_factory=dict)
    raw_arguments: str = "{}"
    error: ProtocolError | None = None

    def to_wire(self) -> dict:
        return {"id": self.id, "name": self.name, "arguments": self.raw_arguments}


class ResponseKind(str, Enum):
    TEXT = "text"
    TOOL_CALLS = "tool_calls"


@dataclass(frozen=True)
class ProviderResponse:
    """
    A complete model reply.

    `content` may accompany tool calls (some models narrate before calling
    a tool); it is kept on the assistant message but does not end the turn.
    """
    kind: ResponseKind
    content: str = ""
    calls: tuple[ToolCall, ...] = ()

    @classmethod
    def text(cls, content: str) -> "ProviderResponse":
        return cls(kind=ResponseKind.TEXT, content=content)

    @classmethod
    def tool_calls(cls, calls: list[ToolCall], content: str = "") -> "ProviderResponse":
        return cls(kind=ResponseKind.TOOL_CALLS, content=content, calls=tuple(calls))

    @property
    def is_terminal(self) -> bool:
        return self.kind is ResponseKind.TEXT


@dataclass(frozen=True)
class ChatRequest:
    messages: list[dict]
    tools: list[dict]
    model: str
    temperature: float


# ==============================================================================
# Stream fragments
# ==============================================================================

@dataclass(frozen=True)
class TextDelta:
    text: str


@dataclass(frozen=True)
class ReasoningDelta:
    """Model "thinking" text; only used when no answer text arrives."""
    text: str


@dataclass(frozen=True)
class ToolCallDelta:
    """
    A piece of a tool call. The first delta for a call id usually carries
    the name; later ones carry argument fragments to append.
    """
    call_id: str
    name: str = ""
    arguments: str = ""


@dataclass(frozen=True)
class StreamDone:
    """Terminal marker. Nothing after it is read."""
    finish_reason: str | None = None


Fragment = TextDelta | ReasoningDelta | ToolCallDelta | StreamDone


class Backend(Protocol):
    """What a provider variant must offer the adapter."""

    async def complete(self, request: ChatRequest) -> ProviderResponse: ...

    def stream(self, request: ChatRequest) -> AsyncIterator[Fragment]: ...

    async def aclose(self) -> None: ...
