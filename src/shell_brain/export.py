"""Export a session and its commands to Markdown, JSON or SQL."""

import json

from .core import Command, Session
from .serialize import quote_literal
from .store import COMMAND_COLUMNS

SESSION_COLUMNS = (
    "id, project_name, start_time, end_time, duration, command_count, "
    "user_name, working_directory, environment, metadata, imported_at"
)


def session_to_markdown(session: Session, commands: list[Command]) -> str:
    """Export a session and its commands as Markdown."""
    lines = [f"# Session {session.id}", ""]

    lines.append(f"**Project:** {session.project_name}")
    if session.start_time:
        lines.append(f"**Started:** {session.start_time}")
    if session.end_time:
        lines.append(f"**Ended:** {session.end_time}")
    if session.working_directory:
        lines.append(f"**Directory:** {session.working_directory}")
    lines.append(f"**Commands:** {len(commands)} stored / {session.command_count} recorded")
    lines.extend(["", "---", ""])

    for cmd in commands:
        ts = f" ({cmd.timestamp})" if cmd.timestamp else ""
        status = "" if cmd.exit_code is None else f" exit {cmd.exit_code}"
        lines.append(f"## {cmd.sequence_number}{ts}{status}")
        lines.append("")
        lines.append("```sh")
        lines.append(cmd.command)
        lines.append("```")
        if cmd.output:
            lines.append("")
            lines.append("```")
            lines.append(cmd.output)
            lines.append("```")
        lines.append("")

    return "\n".join(lines)


def session_to_json(session: Session, commands: list[Command]) -> str:
    """Export a session and its commands as structured JSON."""
    data = {
        "session": {
            "id": session.id,
            "project_name": session.project_name,
            "start_time": session.start_time,
            "end_time": session.end_time,
            "duration": session.duration,
            "command_count": session.command_count,
            "user_name": session.user_name,
            "working_directory": session.working_directory,
            "environment": session.environment,
            "metadata": session.metadata,
        },
        "commands": [command_to_dict(c) for c in commands],
    }
    return json.dumps(data, indent=2, ensure_ascii=False)


def session_to_sql(session: Session, commands: list[Command]) -> str:
    """Export as INSERT statements that recreate the rows in another store."""
    session_values = ", ".join(quote_literal(v) for v in (
        session.id,
        session.project_name,
        session.start_time,
        session.end_time,
        session.duration,
        session.command_count,
        session.user_name,
        session.working_directory,
        json.dumps(session.environment),
        json.dumps(session.metadata),
        session.imported_at,
    ))
    lines = [
        "BEGIN;",
        f"INSERT OR REPLACE INTO sessions ({SESSION_COLUMNS}) VALUES ({session_values});",
    ]
    for cmd in commands:
        values = ", ".join(quote_literal(v) for v in (
            cmd.project_name,
            cmd.session_id,
            cmd.sequence_number,
            cmd.timestamp,
            cmd.command,
            cmd.output,
            cmd.exit_code,
            cmd.duration,
            cmd.working_directory,
            json.dumps(cmd.environment_vars),
        ))
        lines.append(f"INSERT INTO commands ({COMMAND_COLUMNS}) VALUES ({values});")
    lines.append("COMMIT;")
    return "\n".join(lines) + "\n"


def command_to_dict(cmd: Command) -> dict:
    return {
        "id": cmd.id,
        "project_name": cmd.project_name,
        "session_id": cmd.session_id,
        "sequence_number": cmd.sequence_number,
        "timestamp": cmd.timestamp,
        "command": cmd.command,
        "output": cmd.output,
        "exit_code": cmd.exit_code,
        "duration": cmd.duration,
        "working_directory": cmd.working_directory,
        "environment_vars": cmd.environment_vars,
    }
