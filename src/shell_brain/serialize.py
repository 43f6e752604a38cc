"""Make free text safe to store and to embed in SQL literals."""

import math
import re
from typing import Any, Optional

CONTROL_CHARS = re.compile(r"[\x00-\x1f\x7f-\x9f]")


def clean_text(value: Optional[str], max_length: Optional[int] = None) -> Optional[str]:
    """Replace control characters with spaces and cut to ``max_length``.

    None stays None so nullable columns keep their NULLs.
    """
    if value is None:
        return None
    text = CONTROL_CHARS.sub(" ", str(value))
    if max_length is not None:
        text = text[:max_length]
    return text


def quote_literal(value: Any, max_length: Optional[int] = None, escape_backslashes: bool = False) -> str:
    """Render a value as an SQL literal.

    None becomes NULL, numbers are emitted bare and everything else is
    cleaned and single-quoted with embedded quotes doubled. SQLite treats
    backslashes literally; pass ``escape_backslashes=True`` only for
    dialects that use them as escapes.
    """
    if value is None:
        return "NULL"
    if isinstance(value, bool):
        return "1" if value else "0"
    if isinstance(value, int):
        return str(value)
    if isinstance(value, float):
        return repr(value) if math.isfinite(value) else "NULL"

    text = clean_text(value, max_length)
    if escape_backslashes:
        text = text.replace("\\", "\\\\")
    return "'" + text.replace("'", "''") + "'"
