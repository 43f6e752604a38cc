"""SQLite store holding the ``sessions`` and ``commands`` tables.

Only the ingestor writes; everything else opens the database read-only.
All statements use bound parameters. Sessions are replaced on re-import
(``INSERT OR REPLACE`` keyed by id); commands are only ever inserted.
"""

import json
import logging
import sqlite3
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterator, Optional

from .core import Command, GlobalStats, ProjectStats, Session, SessionMismatch
from .errors import StoreUnavailableError

logger = logging.getLogger(__name__)

SCHEMA = """
CREATE TABLE IF NOT EXISTS sessions (
    id TEXT PRIMARY KEY,
    project_name TEXT NOT NULL,
    start_time TEXT,
    end_time TEXT,
    duration INTEGER,
    command_count INTEGER NOT NULL DEFAULT 0,
    user_name TEXT,
    working_directory TEXT,
    environment TEXT NOT NULL DEFAULT '{}',
    metadata TEXT NOT NULL DEFAULT '{}',
    imported_at TEXT
);

CREATE TABLE IF NOT EXISTS commands (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    project_name TEXT NOT NULL,
    session_id TEXT NOT NULL REFERENCES sessions(id),
    sequence_number INTEGER NOT NULL,
    timestamp TEXT,
    command TEXT NOT NULL,
    output TEXT NOT NULL DEFAULT '',
    exit_code INTEGER,
    duration REAL,
    working_directory TEXT,
    environment_vars TEXT NOT NULL DEFAULT '{}'
);

CREATE INDEX IF NOT EXISTS idx_commands_project ON commands(project_name);
CREATE INDEX IF NOT EXISTS idx_commands_session ON commands(session_id, sequence_number);
CREATE INDEX IF NOT EXISTS idx_commands_timestamp ON commands(timestamp);
CREATE INDEX IF NOT EXISTS idx_sessions_project ON sessions(project_name);
"""

REQUIRED_TABLES = ("commands", "sessions")

COMMAND_COLUMNS = (
    "project_name, session_id, sequence_number, timestamp, command, output, "
    "exit_code, duration, working_directory, environment_vars"
)

# Newest first; equal timestamps keep insertion order.
RECENCY_ORDER = "ORDER BY timestamp DESC, id ASC"


class BrainStore:
    """A connection to the shell-brain database."""

    def __init__(self, conn: sqlite3.Connection, path: Path, readonly: bool):
        self._conn = conn
        self.path = path
        self.readonly = readonly

    @classmethod
    def open(cls, path: Path, readonly: bool = False) -> "BrainStore":
        """Open (and for writers, create) the database at ``path``.

        Raises StoreUnavailableError if the file is missing (readers),
        cannot be created, is not a SQLite database, or lacks the schema.
        """
        path = Path(path)
        try:
            if readonly:
                if not path.is_file():
                    raise StoreUnavailableError(f"Database not found: {path}")
                conn = sqlite3.connect(f"{path.resolve().as_uri()}?mode=ro", uri=True)
            else:
                path.parent.mkdir(parents=True, exist_ok=True)
                conn = sqlite3.connect(str(path), timeout=30.0, isolation_level=None)
        except (sqlite3.Error, OSError) as e:
            raise StoreUnavailableError(f"Cannot open database {path}: {e}") from e

        conn.row_factory = sqlite3.Row
        store = cls(conn, path, readonly)
        try:
            if not readonly:
                conn.executescript(SCHEMA)
            missing = [t for t in REQUIRED_TABLES if t not in store.table_names()]
        except sqlite3.Error as e:
            conn.close()
            raise StoreUnavailableError(f"Database {path} is unusable: {e}") from e

        if missing:
            conn.close()
            raise StoreUnavailableError(f"Database {path} is missing tables: {', '.join(missing)}")

        logger.debug("Opened %s (readonly=%s)", path, readonly)
        return store

    def close(self) -> None:
        self._conn.close()

    def __enter__(self) -> "BrainStore":
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    @contextmanager
    def transaction(self) -> Iterator["BrainStore"]:
        """Run the enclosed writes atomically; any exception rolls back."""
        self._conn.execute("BEGIN IMMEDIATE")
        try:
            yield self
        except BaseException:
            self._conn.execute("ROLLBACK")
            raise
        else:
            self._conn.execute("COMMIT")

    # ── Writes ───────────────────────────────────────────────────────

    def upsert_session(self, session: Session) -> None:
        imported_at = session.imported_at or datetime.now(timezone.utc).isoformat()
        self._conn.execute(
            """
            INSERT OR REPLACE INTO sessions (
                id, project_name, start_time, end_time, duration, command_count,
                user_name, working_directory, environment, metadata, imported_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
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
                imported_at,
            ),
        )

    def insert_command(self, command: Command, skip_existing: bool = False) -> Optional[int]:
        """Insert a command row and return its id.

        With ``skip_existing`` nothing is written when a row with the same
        (project_name, session_id, sequence_number) exists; None is returned.
        """
        values = (
            command.project_name,
            command.session_id,
            command.sequence_number,
            command.timestamp,
            command.command,
            command.output,
            command.exit_code,
            command.duration,
            command.working_directory,
            json.dumps(command.environment_vars),
        )
        if not skip_existing:
            cur = self._conn.execute(
                f"INSERT INTO commands ({COMMAND_COLUMNS}) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
                values,
            )
            return cur.lastrowid

        cur = self._conn.execute(
            f"""
            INSERT INTO commands ({COMMAND_COLUMNS})
            SELECT ?, ?, ?, ?, ?, ?, ?, ?, ?, ?
            WHERE NOT EXISTS (
                SELECT 1 FROM commands
                WHERE project_name = ? AND session_id = ? AND sequence_number = ?
            )
            """,
            values + (command.project_name, command.session_id, command.sequence_number),
        )
        return cur.lastrowid if cur.rowcount else None

    # ── Reads ────────────────────────────────────────────────────────

    def table_names(self) -> list[str]:
        rows = self._conn.execute(
            "SELECT name FROM sqlite_master WHERE type = 'table' ORDER BY name"
        ).fetchall()
        return [r["name"] for r in rows]

    def command_count(self, project: Optional[str] = None) -> int:
        if project is None:
            row = self._conn.execute("SELECT COUNT(*) FROM commands").fetchone()
        else:
            row = self._conn.execute(
                "SELECT COUNT(*) FROM commands WHERE project_name = ?", (project,)
            ).fetchone()
        return row[0]

    def session_count(self, project: Optional[str] = None) -> int:
        if project is None:
            row = self._conn.execute("SELECT COUNT(*) FROM sessions").fetchone()
        else:
            row = self._conn.execute(
                "SELECT COUNT(*) FROM sessions WHERE project_name = ?", (project,)
            ).fetchone()
        return row[0]

    def search_commands(self, query: str, limit: int = 50, project: Optional[str] = None) -> list[Command]:
        """Case-sensitive substring match on the command text."""
        sql = "SELECT * FROM commands WHERE instr(command, ?) > 0"
        params: list = [query]
        if project is not None:
            sql += " AND project_name = ?"
            params.append(project)
        sql += f" {RECENCY_ORDER} LIMIT ?"
        params.append(max(int(limit), 0))
        return [_row_to_command(r) for r in self._conn.execute(sql, params)]

    def recent_commands(self, limit: int = 20, project: Optional[str] = None) -> list[Command]:
        sql = "SELECT * FROM commands"
        params: list = []
        if project is not None:
            sql += " WHERE project_name = ?"
            params.append(project)
        sql += f" {RECENCY_ORDER} LIMIT ?"
        params.append(max(int(limit), 0))
        return [_row_to_command(r) for r in self._conn.execute(sql, params)]

    def session_commands(self, session_id: str) -> list[Command]:
        rows = self._conn.execute(
            "SELECT * FROM commands WHERE session_id = ? ORDER BY sequence_number, id",
            (session_id,),
        )
        return [_row_to_command(r) for r in rows]

    def get_session(self, session_id: str) -> Optional[Session]:
        row = self._conn.execute("SELECT * FROM sessions WHERE id = ?", (session_id,)).fetchone()
        return _row_to_session(row) if row else None

    def list_sessions(self, project: Optional[str] = None) -> list[Session]:
        sql = "SELECT * FROM sessions"
        params: list = []
        if project is not None:
            sql += " WHERE project_name = ?"
            params.append(project)
        sql += " ORDER BY start_time DESC, id"
        return [_row_to_session(r) for r in self._conn.execute(sql, params)]

    def project_stats(self) -> list[ProjectStats]:
        """Per-project totals, largest projects first."""
        stats: dict[str, ProjectStats] = {}
        rows = self._conn.execute(
            """
            SELECT project_name,
                   COUNT(*) AS command_count,
                   MIN(timestamp) AS first_command,
                   MAX(timestamp) AS last_command
            FROM commands
            GROUP BY project_name
            """
        )
        for r in rows:
            stats[r["project_name"]] = ProjectStats(
                project_name=r["project_name"],
                command_count=r["command_count"],
                session_count=0,
                first_command=r["first_command"],
                last_command=r["last_command"],
            )

        rows = self._conn.execute(
            "SELECT project_name, COUNT(*) AS session_count FROM sessions GROUP BY project_name"
        )
        for r in rows:
            entry = stats.setdefault(
                r["project_name"],
                ProjectStats(project_name=r["project_name"], command_count=0, session_count=0),
            )
            entry.session_count = r["session_count"]

        return sorted(stats.values(), key=lambda s: (-s.command_count, s.project_name))

    def global_stats(self) -> GlobalStats:
        row = self._conn.execute(
            "SELECT COUNT(*) AS n, MIN(timestamp) AS first, MAX(timestamp) AS last FROM commands"
        ).fetchone()
        projects = self._conn.execute(
            """
            SELECT COUNT(*) FROM (
                SELECT project_name FROM commands
                UNION
                SELECT project_name FROM sessions
            )
            """
        ).fetchone()[0]
        return GlobalStats(
            project_count=projects,
            session_count=self.session_count(),
            command_count=row["n"],
            first_command=row["first"],
            last_command=row["last"],
        )

    def stored_counts_by_project(self) -> dict[str, int]:
        rows = self._conn.execute(
            "SELECT project_name, COUNT(*) AS n FROM commands GROUP BY project_name"
        )
        return {r["project_name"]: r["n"] for r in rows}

    def session_count_mismatches(self, project: Optional[str] = None) -> list[SessionMismatch]:
        """Sessions whose claimed command_count differs from their stored rows."""
        sql = """
            SELECT s.id, s.project_name, s.command_count AS claimed, COUNT(c.id) AS stored
            FROM sessions s
            LEFT JOIN commands c ON c.session_id = s.id AND c.project_name = s.project_name
        """
        params: list = []
        if project is not None:
            sql += " WHERE s.project_name = ?"
            params.append(project)
        sql += " GROUP BY s.id HAVING claimed != stored ORDER BY s.project_name, s.id"
        return [
            SessionMismatch(
                session_id=r["id"],
                project_name=r["project_name"],
                claimed=r["claimed"],
                stored=r["stored"],
            )
            for r in self._conn.execute(sql, params)
        ]


def _row_to_command(row: sqlite3.Row) -> Command:
    return Command(
        id=row["id"],
        project_name=row["project_name"],
        session_id=row["session_id"],
        sequence_number=row["sequence_number"],
        timestamp=row["timestamp"],
        command=row["command"],
        output=row["output"],
        exit_code=row["exit_code"],
        duration=row["duration"],
        working_directory=row["working_directory"],
        environment_vars=_load_json(row["environment_vars"]),
    )


def _row_to_session(row: sqlite3.Row) -> Session:
    return Session(
        id=row["id"],
        project_name=row["project_name"],
        start_time=row["start_time"],
        end_time=row["end_time"],
        duration=row["duration"],
        command_count=row["command_count"],
        user_name=row["user_name"],
        working_directory=row["working_directory"],
        environment=_load_json(row["environment"]),
        metadata=_load_json(row["metadata"]),
        imported_at=row["imported_at"],
    )


def _load_json(value: Optional[str]) -> dict:
    if not value:
        return {}
    try:
        data = json.loads(value)
    except json.JSONDecodeError:
        logger.debug("Unparseable JSON column value: %.80s", value)
        return {}
    return data if isinstance(data, dict) else {}
