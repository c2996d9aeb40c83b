"""Tests for tool-call argument parsing and tagged tool-call recovery."""
from dinoe.errors import ProtocolErrorKind
from dinoe.providers.parsing import extract_json_objects, parse_tagged_tool_calls, parse_tool_call


class TestParseToolCall:

    def test_valid_object(self):
        call = parse_tool_call("c1", "file_read", '{"path": "a.txt"}')

        assert call.arguments == {"path": "a.txt"}
        assert call.error is None

    def test_empty_arguments_mean_no_arguments(self):
        call = parse_tool_call("c1", "noop", "")

        assert call.arguments == {}
        assert call.raw_arguments == "{}"
        assert call.error is None

    def test_invalid_json_records_protocol_error(self):
        call = parse_tool_call("c1", "file_read", '{"path": ')

        assert call.arguments == {}
        assert call.error.kind is ProtocolErrorKind.MALFORMED_TOOL_ARGUMENTS

    def test_non_object_json_is_rejected(self):
        call = parse_tool_call("c1", "file_read", '["a.txt"]')

        assert call.error is not None
        assert "JSON object" in call.error.message


class TestTaggedToolCalls:

    def test_no_tags_leaves_text_alone(self):
        assert parse_tagged_tool_calls("Just an answer.") == ("Just an answer.", [])

    def test_multiple_calls_and_prose(self):
        text = (
            "First this.\n"
            '<tool_call>{"name": "shell", "arguments": {"command": "ls"}}</tool_call>\n'
            "Then that.\n"
            '<tool_call>{"name": "file_read", "arguments": {"path": "a"}}</tool_call>'
        )

        prose, calls = parse_tagged_tool_calls(text)

        assert prose == "First this.\nThen that."
        assert [c.name for c in calls] == ["shell", "file_read"]
        assert calls[0].id.startswith("call_0_")
        assert calls[1].id.startswith("call_1_")

    def test_invoke_and_function_tags(self):
        _, invoke_calls = parse_tagged_tool_calls(
            '<invoke>{"name": "shell", "arguments": {"command": "pwd"}}</invoke>'
        )
        _, function_calls = parse_tagged_tool_calls(
            '<function=shell>{"name": "shell", "arguments": {"command": "pwd"}}</function>'
        )

        assert invoke_calls[0].arguments == {"command": "pwd"}
        assert function_calls[0].arguments == {"command": "pwd"}

    def test_unterminated_tag_stays_in_text(self):
        text = 'Thinking <tool_call>{"name": "shell"'

        prose, calls = parse_tagged_tool_calls(text)

        assert calls == []
        assert "<tool_call>" in prose

    def test_ids_are_stable(self):
        text = '<tool_call>{"name": "shell", "arguments": {"command": "ls"}}</tool_call>'

        assert parse_tagged_tool_calls(text)[1][0].id == parse_tagged_tool_calls(text)[1][0].id


def test_extract_json_objects_skips_garbage():
    assert extract_json_objects('x {"a": 1} y {bad} {"b": {"c": 2}}') == [{"a": 1}, {"b": {"c": 2}}]
