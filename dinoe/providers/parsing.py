"""
Tool call parsing shared by every backend.

Two jobs:
1. Turn a (id, name, raw argument string) triple into a ToolCall, recording
   a ProtocolError instead of raising when the arguments are not a JSON
   object. One bad call must not take its siblings down with it.
2. Recover tool calls that models without native tool calling write into
   their text, e.g.

       Let me check.
       <tool_call>
       {"name": "shell", "arguments": {"command": "date"}}
       </tool_call>
"""

import hashlib
import json
from typing import Any

from dinoe.errors import ProtocolError, ProtocolErrorKind
from dinoe.providers.types import ToolCall
from dinoe.utils.logger import Logger

logger = Logger("ToolCallParser")

# Open tag -> close tag. The open tags are prefixes because models write
# both "<tool_call>" and "<function=name>".
TAG_PAIRS: tuple[tuple[str, str], ...] = (
    ("<function=", "</function>"),
    ("<tool_call", "</tool_call"),
    ("<invoke", "</invoke>"),
)

_decoder = json.JSONDecoder()


def parse_tool_call(call_id: str, name: str, raw_arguments: str | None) -> ToolCall:
    """
    Build a ToolCall from raw provider output.

    An empty argument string means "no arguments". Anything else must
    decode to a JSON object.
    """
    raw = raw_arguments if raw_arguments is not None else ""
    if not raw.strip():
        return ToolCall(id=call_id, name=name, arguments={}, raw_arguments="{}")

    try:
        arguments = json.loads(raw)
    except json.JSONDecodeError as e:
        logger.warning(f"Malformed arguments for tool call {name} ({call_id}): {e}")
        return ToolCall(
            id=call_id,
            name=name,
            raw_arguments=raw,
            error=ProtocolError(
                ProtocolErrorKind.MALFORMED_TOOL_ARGUMENTS,
                f"Failed to parse arguments for {name}: {e}",
            ),
        )

    if not isinstance(arguments, dict):
        return ToolCall(
            id=call_id,
            name=name,
            raw_arguments=raw,
            error=ProtocolError(
                ProtocolErrorKind.MALFORMED_TOOL_ARGUMENTS,
                f"Arguments for {name} must be a JSON object, got {type(arguments).__name__}",
            ),
        )

    return ToolCall(id=call_id, name=name, arguments=arguments, raw_arguments=raw)


def extract_json_objects(text: str) -> list[Any]:
    """Return every top-level JSON object embedded in text, in order."""
    values = []
    pos = text.find("{")
    while pos != -1:
        try:
            value, end = _decoder.raw_decode(text, pos)
        except json.JSONDecodeError:
            pos = text.find("{", pos + 1)
            continue
        values.append(value)
        pos = text.find("{", end)
    return values


def _find_first_tag(text: str) -> tuple[int, str, str] | None:
    found = [
        (text.find(open_tag), open_tag, close_tag)
        for open_tag, close_tag in TAG_PAIRS
        if open_tag in text
    ]
    return min(found) if found else None


def _call_from_value(value: Any, index: int) -> ToolCall | None:
    if not isinstance(value, dict):
        return None
    name = value.get("name")
    if not isinstance(name, str) or "arguments" not in value:
        return None

    raw = json.dumps(value["arguments"], separators=(",", ":"))
    digest = hashlib.md5(raw.encode("utf-8")).hexdigest()[:16]
    return parse_tool_call(f"call_{index}_{digest}", name, raw)


def parse_tagged_tool_calls(text: str) -> tuple[str, list[ToolCall]]:
    """
    Split text into prose and tagged tool calls.

    Returns:
        (remaining text, calls). Unterminated tags are left in the text.
    """
    text_parts = []
    calls: list[ToolCall] = []
    remaining = text

    while (tag := _find_first_tag(remaining)) is not None:
        start, open_tag, close_tag = tag

        before = remaining[:start].strip()
        if before:
            text_parts.append(before)

        after_open = remaining[start + len(open_tag):]
        close_idx = after_open.find(close_tag)
        if close_idx == -1:
            remaining = remaining[start:]
            break

        for value in extract_json_objects(after_open[:close_idx]):
            call = _call_from_value(value, len(calls))
            if call is not None:
                calls.append(call)

        remaining = after_open[close_idx + len(close_tag):]
        # "</tool_call" has no ">" so the close is matched by prefix too
        if remaining.startswith(">"):
            remaining = remaining[1:]

    if remaining.strip():
        text_parts.append(remaining.strip())

    if calls:
        logger.debug(f"Recovered {len(calls)} tagged tool call(s) from text")

    return "\n".join(text_parts), calls
