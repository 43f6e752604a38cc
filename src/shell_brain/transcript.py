"""Discovery and parsing of per-session command transcripts.

Layout on disk::

    <projects_dir>/
        <project-name>/
            shell/
                <session-id>-commands.json

Each transcript is a JSON object::

    {
      "sessionId": "...", "startTime": "...", "endTime": "...",
      "commandCount": 3,
      "commands": [
        {"sequenceNumber": 0, "timestamp": "...", "command": "git status",
         "output": "...", "exitCode": 0, "duration": 12,
         "workingDirectory": "/home/me/proj"},
        ...
      ]
    }

``command`` and ``output`` may also be structured tool-call objects; see
:mod:`shell_brain.normalize`.
"""

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from .errors import TranscriptError

logger = logging.getLogger(__name__)

SHELL_DIRNAME = "shell"
TRANSCRIPT_SUFFIX = "-commands.json"


@dataclass
class Transcript:
    """A parsed transcript file, commands still in their raw form."""

    path: Path
    project_name: str
    session_id: str
    start_time: Optional[str] = None
    end_time: Optional[str] = None
    claimed_count: Optional[int] = None
    commands: list = field(default_factory=list)
    environment: dict = field(default_factory=dict)


def discover_projects(projects_dir: Path) -> list[str]:
    """Return project names (sub-directory names), sorted."""
    if not projects_dir.is_dir():
        logger.warning("Projects directory not found: %s", projects_dir)
        return []

    return sorted(d.name for d in projects_dir.iterdir() if d.is_dir())


def list_transcripts(projects_dir: Path, project_name: str) -> list[Path]:
    """Return a project's transcript files in lexicographic order."""
    shell_dir = projects_dir / project_name / SHELL_DIRNAME
    if not shell_dir.is_dir():
        logger.info("No shell directory for project %s", project_name)
        return []

    return sorted(
        (p for p in shell_dir.iterdir() if p.is_file() and p.name.endswith(TRANSCRIPT_SUFFIX)),
        key=lambda p: p.name,
    )


def session_id_from_filename(path: Path) -> str:
    name = path.name
    if name.endswith(TRANSCRIPT_SUFFIX):
        return name[: -len(TRANSCRIPT_SUFFIX)]
    return path.stem


def read_transcript(path: Path, project_name: str) -> Transcript:
    """Parse one transcript file.

    Raises TranscriptError when the file is unreadable, is not valid JSON,
    or its root is not an object. A missing or non-list ``commands`` field
    is treated as an empty session.
    """
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, UnicodeDecodeError) as e:
        raise TranscriptError(path, f"unreadable: {e}") from e
    except json.JSONDecodeError as e:
        raise TranscriptError(path, f"invalid JSON: {e}") from e

    if not isinstance(data, dict):
        raise TranscriptError(path, f"expected an object, got {type(data).__name__}")

    session_id = data.get("sessionId")
    if isinstance(session_id, (int, float)) and not isinstance(session_id, bool):
        session_id = str(session_id)
    if not isinstance(session_id, str) or not session_id.strip():
        session_id = session_id_from_filename(path)

    commands = data.get("commands")
    if not isinstance(commands, list):
        if commands is not None:
            logger.warning("Ignoring non-list commands field in %s", path)
        commands = []

    claimed = data.get("commandCount")
    if isinstance(claimed, bool) or not isinstance(claimed, int):
        claimed = None

    environment = data.get("environment")
    if not isinstance(environment, dict):
        environment = {}

    return Transcript(
        path=path,
        project_name=project_name,
        session_id=session_id,
        start_time=_optional_str(data.get("startTime")),
        end_time=_optional_str(data.get("endTime")),
        claimed_count=claimed,
        commands=commands,
        environment=environment,
    )


def count_source_commands(projects_dir: Path, project_name: str) -> int:
    """Count command entries across a project's parseable transcripts."""
    total = 0
    for path in list_transcripts(projects_dir, project_name):
        try:
            total += len(read_transcript(path, project_name).commands)
        except TranscriptError as e:
            logger.debug("Skipping %s while counting: %s", path, e.reason)
    return total


def _optional_str(value) -> Optional[str]:
    if value is None or value == "":
        return None
    return str(value)
