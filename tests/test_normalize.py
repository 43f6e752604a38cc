"""Tests for command/output normalization."""

import pytest

from shell_brain.normalize import (
    COMPLEX_PLACEHOLDER,
    EMPTY_COMMAND,
    MAX_COMMAND_LENGTH,
    MAX_OUTPUT_LENGTH,
    CapturedOutput,
    Empty,
    PlainText,
    ToolInvocation,
    TypedAction,
    Unknown,
    classify,
    normalize_command,
    normalize_output,
)


class TestClassify:
    def test_string_is_plain_text(self):
        assert classify("ls -la") == PlainText("ls -la")

    def test_none_and_empty_values_are_empty(self):
        assert isinstance(classify(None), Empty)
        assert isinstance(classify(""), Empty)
        assert isinstance(classify({}), Empty)
        assert isinstance(classify([]), Empty)

    def test_mode_is_tool_invocation(self):
        assert classify({"mode": "edit"}) == ToolInvocation(mode="edit", files=[])

    def test_file_list_takes_priority_over_stdout(self):
        shape = classify({"filenames": ["a.py"], "stdout": "x"})
        assert isinstance(shape, ToolInvocation)

    def test_stdout_is_captured_output(self):
        assert classify({"stdout": "ok", "stderr": ""}) == CapturedOutput(stdout="ok", stderr="")

    def test_type_tag(self):
        assert classify({"type": "tool_use"}) == TypedAction(type="tool_use", text="")

    def test_other_objects_are_unknown(self):
        assert isinstance(classify({"foo": 1}), Unknown)
        assert isinstance(classify([1, 2]), Unknown)


class TestNormalizeCommand:
    def test_plain_string_passes_through(self):
        assert normalize_command("git status") == "git status"

    def test_long_string_is_truncated(self):
        assert len(normalize_command("x" * 1000)) == MAX_COMMAND_LENGTH

    def test_tool_mode(self):
        assert normalize_command({"mode": "plan"}) == "Tool: plan"

    def test_file_list_shows_first_three(self):
        result = normalize_command({"mode": "edit", "files": ["a", "b", "c", "d"]})
        assert result == "File list (4 files): a, b, c..."

    def test_short_file_list_has_no_ellipsis(self):
        assert normalize_command({"files": ["a", "b"]}) == "File list (2 files): a, b"

    def test_stdout_with_stderr_marker(self):
        result = normalize_command({"stdout": "built", "stderr": "warn: x"})
        assert result == "built\n[STDERR]: warn: x"

    def test_stderr_only(self):
        assert normalize_command({"stdout": "", "stderr": "boom"}) == "[STDERR]: boom"

    def test_type_tag(self):
        assert normalize_command({"type": "tool_use", "id": "t1"}) == "Action: tool_use"

    def test_unknown_object_falls_back_to_json(self):
        assert normalize_command({"foo": "bar"}) == '{"foo":"bar"}'

    def test_unknown_fallback_is_bounded(self):
        result = normalize_command({"blob": "y" * 5000})
        assert len(result) == MAX_COMMAND_LENGTH

    def test_empty_gets_placeholder(self):
        assert normalize_command(None) == EMPTY_COMMAND
        assert normalize_command("") == EMPTY_COMMAND

    def test_unserializable_object_gets_placeholder(self):
        circular = {}
        circular["self"] = circular
        assert normalize_command(circular) == COMPLEX_PLACEHOLDER

    def test_numbers_are_stringified(self):
        assert normalize_command(42) == "42"


class TestNormalizeOutput:
    def test_empty_output_stays_empty(self):
        assert normalize_output(None) == ""
        assert normalize_output("") == ""

    def test_long_output_is_truncated(self):
        assert len(normalize_output("z" * 2000)) == MAX_OUTPUT_LENGTH

    def test_text_block(self):
        assert normalize_output({"type": "text", "text": "hello"}) == "hello"

    def test_captured_output_is_bounded_after_extraction(self):
        result = normalize_output({"stdout": "a" * 400, "stderr": "b" * 400})
        assert len(result) == MAX_OUTPUT_LENGTH
        assert result.startswith("a" * 400 + "\n[STDERR]: ")


@pytest.mark.parametrize("value", [
    None,
    "",
    "plain",
    0,
    3.5,
    True,
    [],
    [None, {"a": object()}],
    {},
    {"mode": None, "files": None},
    {"files": [{"path": "/x"}, None, 3]},
    {"stdout": None, "stderr": None},
    {"stdout": 123, "stderr": ["x"]},
    {"type": {"nested": True}},
    {"weird": object()},
    object(),
])
def test_normalizer_is_total_and_bounded(value):
    command = normalize_command(value)
    output = normalize_output(value)
    assert isinstance(command, str) and 0 < len(command) <= MAX_COMMAND_LENGTH
    assert isinstance(output, str) and len(output) <= MAX_OUTPUT_LENGTH
