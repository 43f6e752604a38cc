"""Timestamp parsing and human-friendly display helpers.

Display only: nothing here changes what is stored.
"""

import os
from datetime import datetime, timezone
from typing import Optional


def parse_iso(value: Optional[str]) -> Optional[datetime]:
    """Parse an ISO 8601 datetime string."""
    if not value:
        return None
    try:
        if value.endswith("Z"):
            value = value[:-1] + "+00:00"
        return datetime.fromisoformat(value)
    except (ValueError, TypeError, AttributeError):
        return None


def format_relative_time(value: Optional[str], now: Optional[datetime] = None) -> str:
    """Format a stored timestamp relative to ``now``.

    Within a day: "Today HH:MM"; one day: "Yesterday"; under a week:
    "N days ago"; otherwise (or in the future) the calendar date.
    """
    ts = parse_iso(value)
    if ts is None:
        return "unknown"

    # Compare in local time; naive values are taken as local.
    if ts.tzinfo is not None:
        ts = ts.astimezone()
        now = now.astimezone() if now is not None else datetime.now(timezone.utc).astimezone()
    elif now is None:
        now = datetime.now()
    elif now.tzinfo is not None:
        now = now.replace(tzinfo=None)

    delta = now - ts
    if delta.total_seconds() < 0:
        return ts.strftime("%Y-%m-%d")

    days = delta.days
    if days == 0:
        return f"Today {ts:%H:%M}"
    if days == 1:
        return "Yesterday"
    if days < 7:
        return f"{days} days ago"
    return ts.strftime("%Y-%m-%d")


def format_duration_ms(ms: Optional[int]) -> str:
    if ms is None:
        return "-"
    seconds = ms // 1000
    if seconds < 60:
        return f"{seconds}s"
    minutes, seconds = divmod(seconds, 60)
    if minutes < 60:
        return f"{minutes}m {seconds}s"
    hours, minutes = divmod(minutes, 60)
    return f"{hours}h {minutes}m"


def shorten_home(path: Optional[str]) -> str:
    """Replace the home directory prefix with ``~``."""
    if not path:
        return "~/"
    home = os.path.expanduser("~")
    if home and path.startswith(home):
        return "~" + path[len(home):]
    return path
