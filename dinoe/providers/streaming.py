"""
Stream Merging
==============

Folds a stream of fragments into one ProviderResponse.

Rules:
- text deltas are concatenated in arrival order
- tool-call argument deltas are concatenated per call id in arrival order
- calls keep the order in which their ids first appeared
- arguments are parsed only after the terminal marker, never per fragment
- a stream that ends without StreamDone is an IncompleteStream error

The merged result of a streamed reply is the same ProviderResponse the
non-streamed path would have produced for the same content.
"""

from dataclasses import dataclass, field
from typing import AsyncIterator, Callable

from dinoe.errors import ProviderError, ProviderErrorKind
from dinoe.providers.parsing import parse_tagged_tool_calls, parse_tool_call
from dinoe.providers.types import (
    Fragment,
    ProviderResponse,
    ReasoningDelta,
    StreamDone,
    TextDelta,
    ToolCallDelta,
)
from dinoe.utils.logger import Logger

logger = Logger("StreamMerger")

THINKING_PREVIEW_CHARS = 200


@dataclass
class _PendingCall:
    call_id: str
    name: str = ""
    arguments: list[str] = field(default_factory=list)


def finalize_response(text: str, reasoning: str, calls) -> ProviderResponse:
    """
    Pick the response kind for a complete reply.

    Shared by the streaming and non-streaming paths so both classify the
    same content the same way.

    Raises:
        ProviderError: MALFORMED_RESPONSE when there is nothing at all
    """
    calls = list(calls)
    if calls:
        return ProviderResponse.tool_calls(calls, content=text)

    if text.strip():
        prose, tagged = parse_tagged_tool_calls(text)
        if tagged:
            return ProviderResponse.tool_calls(tagged, content=prose)
        return ProviderResponse.text(text)

    if reasoning.strip():
        preview = reasoning.strip()[:THINKING_PREVIEW_CHARS]
        logger.warning("Model produced reasoning but no answer text")
        return ProviderResponse.text(
            f"I was thinking: {preview}... but didn't complete my response. Please try again."
        )

    raise ProviderError(
        ProviderErrorKind.MALFORMED_RESPONSE,
        "Empty response from model: no content or tool calls",
    )


class StreamMerger:
    """
    Accumulates fragments for one streamed reply.

    Example:
        merger = StreamMerger()
        merger.feed(TextDelta("Hel"))
        merger.feed(TextDelta("lo"))
        merger.feed(StreamDone("stop"))
        merger.result()   # ProviderResponse.text("Hello")
    """

    def __init__(self):
        self._text: list[str] = []
        self._reasoning: list[str] = []
        self._calls: dict[str, _PendingCall] = {}
        self.done = False
        self.finish_reason: str | None = None

    def feed(self, fragment: Fragment) -> None:
        if self.done:
            raise ProviderError(
                ProviderErrorKind.MALFORMED_RESPONSE,
                "Fragment received after the terminal marker",
            )

        if isinstance(fragment, TextDelta):
            self._text.append(fragment.text)
        elif isinstance(fragment, ReasoningDelta):
            self._reasoning.append(fragment.text)
        elif isinstance(fragment, ToolCallDelta):
            pending = self._calls.get(fragment.call_id)
            if pending is None:
                pending = self._calls[fragment.call_id] = _PendingCall(fragment.call_id)
            if fragment.name:
                pending.name = fragment.name
            if fragment.arguments:
                pending.arguments.append(fragment.arguments)
        elif isinstance(fragment, StreamDone):
            self.done = True
            self.finish_reason = fragment.finish_reason
        else:
            raise ProviderError(
                ProviderErrorKind.MALFORMED_RESPONSE,
                f"Unknown stream fragment: {type(fragment).__name__}",
            )

    @property
    def text(self) -> str:
        return "".join(self._text)

    def result(self) -> ProviderResponse:
        """
        Build the merged response.

        Raises:
            ProviderError: INCOMPLETE_STREAM if StreamDone was never fed
        """
        if not self.done:
            raise ProviderError(
                ProviderErrorKind.INCOMPLETE_STREAM,
                "Stream ended without a terminal marker",
            )

        calls = []
        for pending in self._calls.values():
            if not pending.name:
                raise ProviderError(
                    ProviderErrorKind.MALFORMED_RESPONSE,
                    f"Streamed tool call {pending.call_id} never received a name",
                )
            calls.append(parse_tool_call(pending.call_id, pending.name, "".join(pending.arguments)))

        return finalize_response(self.text, "".join(self._reasoning), calls)


async def merge_stream(
    fragments: AsyncIterator[Fragment],
    on_token: Callable[[str], None] | None = None,
) -> ProviderResponse:
    """
    Consume a fragment stream up to its terminal marker and merge it.

    Args:
        fragments: The backend's fragment iterator
        on_token: Display hook called with each text delta as it arrives

    Raises:
        ProviderError: INCOMPLETE_STREAM if the iterator ends early
    """
    merger = StreamMerger()
    try:
        async for fragment in fragments:
            merger.feed(fragment)
            if isinstance(fragment, TextDelta) and on_token is not None:
                on_token(fragment.text)
            if merger.done:
                break
    finally:
        aclose = getattr(fragments, "aclose", None)
        if aclose is not None:
            await aclose()
    return merger.result()
