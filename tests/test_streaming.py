"""Tests for stream merging and response classification."""
import pytest

from dinoe.errors import ProviderError, ProviderErrorKind
from dinoe.providers import ProviderResponse, ResponseKind
from dinoe.providers.parsing import parse_tool_call
from dinoe.providers.streaming import StreamMerger, finalize_response, merge_stream
from dinoe.providers.types import ReasoningDelta, StreamDone, TextDelta, ToolCallDelta


async def _iterate(fragments):
    for fragment in fragments:
        yield fragment


class TestStreamMerger:

    def test_text_deltas_concatenate(self):
        merger = StreamMerger()
        for fragment in (TextDelta("Hel"), TextDelta("lo"), StreamDone("stop")):
            merger.feed(fragment)

        assert merger.result() == ProviderResponse.text("Hello")

    def test_streamed_equals_non_streamed(self):
        raw = '{"path": "README.md"}'
        merger = StreamMerger()
        for fragment in (
            ToolCallDelta("call_1", name="file_read"),
            ToolCallDelta("call_1", arguments=raw[:7]),
            ToolCallDelta("call_1", arguments=raw[7:]),
            StreamDone("tool_calls"),
        ):
            merger.feed(fragment)

        expected = ProviderResponse.tool_calls([parse_tool_call("call_1", "file_read", raw)])
        assert merger.result() == expected

    def test_interleaved_calls_keep_first_appearance_order(self):
        merger = StreamMerger()
        for fragment in (
            ToolCallDelta("b", name="shell", arguments='{"comm'),
            ToolCallDelta("a", name="file_read", arguments='{"path":'),
            ToolCallDelta("b", arguments='and": "ls"}'),
            ToolCallDelta("a", arguments=' "x"}'),
            StreamDone(),
        ):
            merger.feed(fragment)

        result = merger.result()
        assert result.kind is ResponseKind.TOOL_CALLS
        assert [c.id for c in result.calls] == ["b", "a"]
        assert result.calls[0].arguments == {"command": "ls"}
        assert result.calls[1].arguments == {"path": "x"}

    def test_missing_terminal_marker_is_incomplete(self):
        merger = StreamMerger()
        merger.feed(TextDelta("partial"))

        with pytest.raises(ProviderError) as exc_info:
            merger.result()

        assert exc_info.value.kind is ProviderErrorKind.INCOMPLETE_STREAM

    def test_fragment_after_done_is_rejected(self):
        merger = StreamMerger()
        merger.feed(StreamDone())

        with pytest.raises(ProviderError) as exc_info:
            merger.feed(TextDelta("late"))

        assert exc_info.value.kind is ProviderErrorKind.MALFORMED_RESPONSE

    def test_call_without_name_is_malformed(self):
        merger = StreamMerger()
        merger.feed(ToolCallDelta("x", arguments="{}"))
        merger.feed(StreamDone())

        with pytest.raises(ProviderError) as exc_info:
            merger.result()

        assert exc_info.value.kind is ProviderErrorKind.MALFORMED_RESPONSE

    def test_bad_arguments_only_affect_their_call(self):
        merger = StreamMerger()
        merger.feed(ToolCallDelta("good", name="shell", arguments='{"command": "ls"}'))
        merger.feed(ToolCallDelta("bad", name="shell", arguments='{"command": '))
        merger.feed(StreamDone())

        good, bad = merger.result().calls
        assert good.error is None
        assert bad.error is not None
        assert bad.raw_arguments == '{"command": '


class TestMergeStream:

    @pytest.mark.asyncio
    async def test_tokens_are_forwarded(self):
        tokens = []
        result = await merge_stream(
            _iterate([TextDelta("Hel"), ReasoningDelta("hmm"), TextDelta("lo"), StreamDone()]),
            on_token=tokens.append,
        )

        assert result.content == "Hello"
        assert tokens == ["Hel", "lo"]

    @pytest.mark.asyncio
    async def test_stops_reading_at_terminal_marker(self):
        result = await merge_stream(_iterate([TextDelta("done"), StreamDone(), TextDelta("ignored")]))

        assert result.content == "done"

    @pytest.mark.asyncio
    async def test_iterator_ending_early_is_incomplete(self):
        with pytest.raises(ProviderError) as exc_info:
            await merge_stream(_iterate([TextDelta("cut off")]))

        assert exc_info.value.kind is ProviderErrorKind.INCOMPLETE_STREAM


class TestFinalizeResponse:

    def test_reasoning_only_becomes_text(self):
        result = finalize_response("", "Let me think about the answer", [])

        assert result.is_terminal
        assert result.content.startswith("I was thinking: Let me think about the answer")

    def test_empty_response_is_malformed(self):
        with pytest.raises(ProviderError) as exc_info:
            finalize_response("  ", "", [])

        assert exc_info.value.kind is ProviderErrorKind.MALFORMED_RESPONSE

    def test_tagged_calls_in_text_become_tool_calls(self):
        text = 'Checking.\n<tool_call>\n{"name": "shell", "arguments": {"command": "date"}}\n</tool_call>'

        result = finalize_response(text, "", [])

        assert result.kind is ResponseKind.TOOL_CALLS
        assert result.content == "Checking."
        assert result.calls[0].name == "shell"
        assert result.calls[0].arguments == {"command": "date"}
