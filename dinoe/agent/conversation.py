"""
Conversation State
==================

The message history of one agent session.

Messages are only ever appended. The one exception is compaction: when the
history grows past `max_history` entries, the oldest entries are removed and
their text is folded into a running summary.

Compaction works on blocks, never on single messages:

    [user]                                  one block
    [assistant: text]                       one block
    [assistant: calls c1, c2] [tool c1] [tool c2]   one block

A tool call and its result are therefore always kept or dropped together.
Whole earlier turns are dropped first; if the current turn alone is still
too long, its oldest blocks go next. The current user message and the most
recent block are never dropped.
"""

from dataclasses import dataclass, field
from datetime import datetime

from dinoe.providers.types import ToolCall
from dinoe.utils.logger import Logger

logger = Logger("Conversation")

SUMMARY_MAX_CHARS = 2000
SUMMARY_PREFIX = "[Conversation summary]"
_TRANSCRIPT_SNIPPET_CHARS = 300


@dataclass
class Message:
    """
    A single message in the conversation.

    Attributes:
        role: "user", "assistant" or "tool"
        content: The message text (may be empty for assistant tool calls)
        tool_calls: Calls requested by the assistant
        tool_call_id: The call a tool message answers
        name: Tool name, for tool messages
        timestamp: When the message was added
    """
    role: str
    content: str = ""
    tool_calls: tuple[ToolCall, ...] = ()
    tool_call_id: str | None = None
    name: str | None = None
    timestamp: datetime = field(default_factory=datetime.now)

    def to_wire(self) -> dict:
        """Normalized message dict for the provider adapter."""
        message: dict = {"role": self.role, "content": self.content}
        if self.tool_calls:
            message["tool_calls"] = [call.to_wire() for call in self.tool_calls]
        if self.tool_call_id is not None:
            message["tool_call_id"] = self.tool_call_id
        return message

    def to_transcript_line(self) -> str:
        if self.role == "tool":
            return f"tool result ({self.name or self.tool_call_id}): {_clip(self.content)}"
        if self.tool_calls:
            calls = ", ".join(f"{c.name}({_clip(c.raw_arguments, 120)})" for c in self.tool_calls)
            prefix = f"assistant: {_clip(self.content)} " if self.content else "assistant "
            return f"{prefix}called {calls}"
        return f"{self.role}: {_clip(self.content)}"


def _clip(text: str, limit: int = _TRANSCRIPT_SNIPPET_CHARS) -> str:
    text = " ".join(text.split())
    return text if len(text) <= limit else text[:limit] + "..."


def transcript(messages: list[Message]) -> str:
    return "\n".join(m.to_transcript_line() for m in messages)


def merge_summary(previous: str | None, addition: str, limit: int = SUMMARY_MAX_CHARS) -> str:
    """Append to the running summary, keeping its most recent `limit` chars."""
    combined = f"{previous}\n{addition}" if previous else addition
    if len(combined) <= limit:
        return combined
    return "..." + combined[-(limit - 3):]


class ConversationState:
    """
    Ordered message history plus an optional summary of dropped entries.

    Example:
        conversation = ConversationState()
        conversation.append_user("Read README.md")
        conversation.append_assistant("", [call])
        conversation.append_tool_result(call.id, "file_read", "X")

        dropped = conversation.compact(max_history=50)
    """

    def __init__(self):
        self._messages: list[Message] = []
        self.summary: str | None = None

    @property
    def messages(self) -> list[Message]:
        return list(self._messages)

    def __len__(self) -> int:
        return len(self._messages)

    # ==========================================================================
    # Appending
    # ==========================================================================

    def append_user(self, content: str) -> Message:
        return self._append(Message(role="user", content=content))

    def append_assistant(self, content: str, tool_calls: list[ToolCall] | tuple[ToolCall, ...] = ()) -> Message:
        return self._append(Message(role="assistant", content=content, tool_calls=tuple(tool_calls)))

    def append_tool_result(self, tool_call_id: str, name: str, payload: str) -> Message:
        return self._append(Message(role="tool", content=payload, tool_call_id=tool_call_id, name=name))

    def _append(self, message: Message) -> Message:
        self._messages.append(message)
        return message

    def to_wire(self) -> list[dict]:
        return [m.to_wire() for m in self._messages]

    def clear(self) -> None:
        self._messages.clear()
        self.summary = None

    # ==========================================================================
    # Compaction
    # ==========================================================================

    def blocks(self) -> list[list[Message]]:
        """Split the history into blocks that must be kept or dropped whole."""
        blocks: list[list[Message]] = []
        open_calls: set[str] = set()

        for message in self._messages:
            if message.role == "tool" and blocks and message.tool_call_id in open_calls:
                blocks[-1].append(message)
                open_calls.discard(message.tool_call_id)
                continue
            if message.role == "tool" and blocks:
                # Result without a pending call: keep it with whatever precedes it
                blocks[-1].append(message)
                continue

            blocks.append([message])
            open_calls = {call.id for call in message.tool_calls}

        return blocks

    def compact(self, max_history: int) -> list[Message]:
        """
        Drop the oldest blocks until at most `max_history` messages remain.

        The dropped messages are folded into `summary` as a truncated
        transcript and returned so the caller may summarize them further.

        Returns:
            The dropped messages, oldest first (empty if nothing was dropped)
        """
        if len(self._messages) <= max_history:
            return []

        blocks = self.blocks()
        turn_starts = [i for i, block in enumerate(blocks) if block[0].role == "user"]
        current_user = turn_starts[-1] if turn_starts else 0

        total = len(self._messages)
        drop: set[int] = set()

        # Whole earlier turns, oldest first
        boundaries = [0] + [s for s in turn_starts if s > 0]
        for start, end in zip(boundaries, boundaries[1:]):
            if total <= max_history or start >= current_user:
                break
            for i in range(start, end):
                drop.add(i)
                total -= len(blocks[i])

        # Then the current turn, keeping its user message and latest block
        for i in range(current_user + 1, len(blocks) - 1):
            if total <= max_history:
                break
            drop.add(i)
            total -= len(blocks[i])

        if not drop:
            return []

        dropped = [m for i, block in enumerate(blocks) if i in drop for m in block]
        self._messages = [m for i, block in enumerate(blocks) if i not in drop for m in block]
        self.summary = merge_summary(self.summary, transcript(dropped))

        logger.info(
            f"Compacted history: dropped {len(dropped)} messages, {len(self._messages)} remain"
        )
        return dropped

    def summary_message(self) -> dict | None:
        if not self.summary:
            return None
        return {"role": "assistant", "content": f"{SUMMARY_PREFIX}\n{self.summary}"}
