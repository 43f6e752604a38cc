"""Shared test fixtures for shell-brain."""

import json
from pathlib import Path

import pytest

from shell_brain.config import BrainConfig
from shell_brain.core import Command, Session
from shell_brain.store import BrainStore


def _write_transcript(projects_dir: Path, project: str, session_id: str, commands: list, **fields) -> Path:
    """Write ``<projects_dir>/<project>/shell/<session_id>-commands.json``."""
    shell_dir = projects_dir / project / "shell"
    shell_dir.mkdir(parents=True, exist_ok=True)
    data = {
        "sessionId": session_id,
        "startTime": "2025-01-20T10:00:00Z",
        "endTime": "2025-01-20T10:30:00Z",
        "commandCount": len(commands),
        "commands": commands,
    }
    data.update(fields)
    path = shell_dir / f"{session_id}-commands.json"
    path.write_text(json.dumps(data), encoding="utf-8")
    return path


def _make_commands(count: int, prefix: str = "echo", day: int = 20) -> list[dict]:
    return [
        {
            "sequenceNumber": i,
            "timestamp": f"2025-01-{day:02d}T10:{i:02d}:00Z",
            "command": f"{prefix} {i}",
            "output": f"{i}\n",
            "exitCode": 0,
            "duration": 5,
            "workingDirectory": "/home/tester/dev",
        }
        for i in range(count)
    ]


@pytest.fixture
def write_transcript():
    """Return a helper that writes one transcript file under a projects tree."""
    return _write_transcript


@pytest.fixture
def make_commands():
    """Return a helper that builds a list of simple command records."""
    return _make_commands


@pytest.fixture
def projects_dir(tmp_path):
    """A projects tree with two projects and mixed command shapes.

    webapp/session-001: git status, npm test, a tool invocation (3)
    webapp/session-002: git commit, a captured stdout/stderr command (2)
    api-server/session-101: node server.js, cd src, ls (3)
    """
    projects = tmp_path / "projects"

    _write_transcript(projects, "webapp", "session-001", [
        {
            "sequenceNumber": 0,
            "timestamp": "2025-01-20T10:00:00Z",
            "command": "git status",
            "output": "On branch main\nnothing to commit",
            "exitCode": 0,
            "workingDirectory": "/home/tester/dev/webapp",
        },
        {
            "sequenceNumber": 1,
            "timestamp": "2025-01-20T10:05:00Z",
            "command": "npm test",
            "output": {"stdout": "4 passing", "stderr": "1 warning"},
            "exitCode": 1,
            "duration": 2300,
        },
        {
            "sequenceNumber": 2,
            "timestamp": "2025-01-20T10:06:00Z",
            "command": {"mode": "edit", "files": ["src/a.ts", "src/b.ts", "src/c.ts", "src/d.ts"]},
            "output": "",
        },
    ])
    _write_transcript(projects, "webapp", "session-002", [
        {
            "sequenceNumber": 0,
            "timestamp": "2025-01-21T09:00:00Z",
            "command": "git commit -m 'fix login'",
            "output": "[main abc123] fix login",
            "exitCode": 0,
        },
        {
            "sequenceNumber": 1,
            "timestamp": "2025-01-21T09:01:00Z",
            "command": {"stdout": "Build finished"},
            "output": {"type": "text", "text": "done"},
            "exitCode": None,
        },
    ], startTime="2025-01-21T09:00:00Z", endTime="2025-01-21T09:15:00Z")
    _write_transcript(projects, "api-server", "session-101", [
        {"sequenceNumber": 0, "timestamp": "2025-01-22T08:00:00Z", "command": "node server.js", "exitCode": 0},
        {"sequenceNumber": 1, "timestamp": "2025-01-22T08:01:00Z", "command": "cd src", "exitCode": 0},
        {"sequenceNumber": 2, "timestamp": "2025-01-22T08:02:00Z", "command": "ls -la", "exitCode": 0},
    ], startTime="2025-01-22T08:00:00Z", endTime="2025-01-22T08:10:00Z")

    return projects


@pytest.fixture
def config(tmp_path, projects_dir):
    return BrainConfig(
        projects_dir=projects_dir,
        db_path=tmp_path / "database" / "brain.db",
        user_name="tester",
    )


@pytest.fixture
def store(config):
    store = BrainStore.open(config.db_path)
    yield store
    store.close()


@pytest.fixture
def seeded_store(config):
    """A store with three commands across two projects, newest last."""
    store = BrainStore.open(config.db_path)
    rows = [
        ("webapp", "s1", "2025-01-10T10:00:00Z", "git status"),
        ("webapp", "s1", "2025-01-11T10:00:00Z", "git commit -m x"),
        ("api-server", "s2", "2025-01-12T10:00:00Z", "npm test"),
    ]
    with store.transaction():
        store.upsert_session(Session(id="s1", project_name="webapp", command_count=2))
        store.upsert_session(Session(id="s2", project_name="api-server", command_count=1))
        for seq, (project, session_id, ts, text) in enumerate(rows):
            store.insert_command(Command(
                project_name=project,
                session_id=session_id,
                sequence_number=seq,
                timestamp=ts,
                command=text,
                exit_code=0,
            ))
    yield store
    store.close()
