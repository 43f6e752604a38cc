"""Normalize heterogeneous command/output values into bounded display text.

Transcripts mix plain shell strings with tool-call telemetry. Every raw value
is first classified into one of a closed set of shapes, then rendered:

- PlainText: a string (other scalars are stringified).
- ToolInvocation: an object with a ``mode`` and/or a file list.
- CapturedOutput: an object with ``stdout`` / ``stderr``.
- TypedAction: an object with a ``type`` tag (``{"type": "text"}`` blocks
  carry their text).
- Unknown: anything else; rendered as compact JSON.
- Empty: None, "" or an empty container.

Rendering never raises and the result is always cut to the field's bound.
"""

import json
import logging
from dataclasses import dataclass, field
from typing import Any, Union

logger = logging.getLogger(__name__)

MAX_COMMAND_LENGTH = 300
MAX_OUTPUT_LENGTH = 500

EMPTY_COMMAND = "Empty command"
COMPLEX_PLACEHOLDER = "Complex command object"

FILE_LIST_KEYS = ("files", "filenames", "filePaths")
FILE_PREVIEW_COUNT = 3


@dataclass
class PlainText:
    text: str


@dataclass
class ToolInvocation:
    mode: str = ""
    files: list = field(default_factory=list)


@dataclass
class CapturedOutput:
    stdout: str = ""
    stderr: str = ""


@dataclass
class TypedAction:
    type: str
    text: str = ""


@dataclass
class Unknown:
    value: Any


@dataclass
class Empty:
    pass


Shape = Union[PlainText, ToolInvocation, CapturedOutput, TypedAction, Unknown, Empty]


def classify(value: Any) -> Shape:
    """Classify a raw transcript value into a shape variant."""
    if value is None:
        return Empty()

    if isinstance(value, str):
        return PlainText(value) if value else Empty()

    if isinstance(value, (bool, int, float)):
        return PlainText(str(value))

    if isinstance(value, dict):
        if not value:
            return Empty()

        files = _file_list(value)
        mode = value.get("mode")
        if mode or files:
            return ToolInvocation(mode=_as_text(mode), files=files)

        if "stdout" in value or "stderr" in value:
            return CapturedOutput(
                stdout=_as_text(value.get("stdout")),
                stderr=_as_text(value.get("stderr")),
            )

        if value.get("type"):
            return TypedAction(type=_as_text(value["type"]), text=_as_text(value.get("text")))

    if isinstance(value, (list, tuple)) and not value:
        return Empty()

    return Unknown(value)


def render(shape: Shape, empty: str = "") -> str:
    """Render a shape as text. ``empty`` is returned for the Empty shape."""
    if isinstance(shape, Empty):
        return empty

    if isinstance(shape, PlainText):
        return shape.text

    if isinstance(shape, ToolInvocation):
        if shape.files:
            names = ", ".join(_as_text(f) for f in shape.files[:FILE_PREVIEW_COUNT])
            more = "..." if len(shape.files) > FILE_PREVIEW_COUNT else ""
            return f"File list ({len(shape.files)} files): {names}{more}"
        return f"Tool: {shape.mode}"

    if isinstance(shape, CapturedOutput):
        if shape.stderr:
            if shape.stdout:
                return f"{shape.stdout}\n[STDERR]: {shape.stderr}"
            return f"[STDERR]: {shape.stderr}"
        return shape.stdout

    if isinstance(shape, TypedAction):
        if shape.type == "text" and shape.text:
            return shape.text
        return f"Action: {shape.type}"

    # Unknown
    try:
        return json.dumps(shape.value, default=str, ensure_ascii=False, separators=(",", ":"))
    except (TypeError, ValueError, RecursionError) as e:
        logger.debug("Unrepresentable value %r: %s", type(shape.value), e)
        return COMPLEX_PLACEHOLDER


def normalize_command(value: Any, max_length: int = MAX_COMMAND_LENGTH) -> str:
    """Return bounded command text; never empty, never raises."""
    text = _safe_render(value, EMPTY_COMMAND)
    return text[:max_length] or EMPTY_COMMAND


def normalize_output(value: Any, max_length: int = MAX_OUTPUT_LENGTH) -> str:
    """Return bounded output text; may be empty, never raises."""
    return _safe_render(value, "")[:max_length]


def _safe_render(value: Any, empty: str) -> str:
    try:
        return render(classify(value), empty=empty)
    except Exception as e:  # unexpected __str__/__eq__ failures in exotic values
        logger.debug("Falling back to placeholder for %r: %s", type(value), e)
        return COMPLEX_PLACEHOLDER


def _file_list(value: dict) -> list:
    for key in FILE_LIST_KEYS:
        files = value.get(key)
        if isinstance(files, list) and files:
            return files
    return []


def _as_text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, str):
        return value
    if isinstance(value, dict):
        # {"name": ...} / {"path": ...} entries in file lists
        for key in ("path", "name", "file"):
            if isinstance(value.get(key), str):
                return value[key]
    return str(value)
