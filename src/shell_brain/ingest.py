"""Import transcripts from every project into the store.

Each transcript file is written inside its own transaction: the session
upsert plus all of its command inserts either commit together or not at
all. Inside that transaction a single bad command is logged and skipped
without affecting its siblings. A file that cannot be parsed is skipped
without touching the store.
"""

import logging
import sqlite3
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Optional

from .config import BrainConfig
from .core import Command, FileImportResult, ImportSummary, ProjectImportResult, Session
from .errors import MalformedCommandError, TranscriptError
from .formatting import parse_iso
from .normalize import MAX_COMMAND_LENGTH, MAX_OUTPUT_LENGTH, normalize_command, normalize_output
from .serialize import clean_text
from .store import BrainStore
from .transcript import Transcript, discover_projects, list_transcripts, read_transcript

logger = logging.getLogger(__name__)

MAX_PATH_LENGTH = 1000

# SQLite INTEGER is a signed 64-bit value.
SQLITE_INT_MIN = -(2**63)
SQLITE_INT_MAX = 2**63 - 1


class Ingestor:
    """Runs the import over the configured projects directory."""

    def __init__(self, config: BrainConfig, store: Optional[BrainStore] = None):
        self.config = config
        self._store = store

    def import_all(self, workers: int = 1, cancel_event: Optional[threading.Event] = None) -> ImportSummary:
        """Import every discovered project.

        With ``workers > 1`` projects are imported on a thread pool, each
        worker with its own connection. ``cancel_event`` is checked between
        files; the file in progress always finishes or rolls back first.

        Raises StoreUnavailableError if the database cannot be opened.
        """
        started = time.perf_counter()
        summary = ImportSummary()

        # Open (and create) the store up front so an unusable database
        # fails the run once instead of once per project.
        with self._store_session() as store:
            projects = discover_projects(self.config.projects_dir)
            if not projects:
                logger.warning("No projects found under %s", self.config.projects_dir)
            elif workers <= 1:
                for name in projects:
                    if _cancelled(cancel_event):
                        break
                    summary.projects.append(self._import_project(store, name, cancel_event))

        if projects and workers > 1:
            with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="brain-import") as pool:
                futures = [
                    pool.submit(self._import_project_own_connection, name, cancel_event)
                    for name in projects
                ]
                summary.projects = [f.result() for f in futures]

        summary.cancelled = _cancelled(cancel_event)
        summary.elapsed = time.perf_counter() - started
        logger.info(
            "Imported %d sessions, %d commands from %d projects in %.1fs",
            summary.sessions_imported,
            summary.commands_imported,
            len(summary.projects),
            summary.elapsed,
        )
        return summary

    def import_project(self, project_name: str) -> ProjectImportResult:
        with self._store_session() as store:
            return self._import_project(store, project_name)

    def import_file(self, project_name: str, path: Path) -> FileImportResult:
        with self._store_session() as store:
            return self._import_file(store, project_name, Path(path))

    # ── Private helpers ──────────────────────────────────────────────

    @contextmanager
    def _store_session(self) -> Iterator[BrainStore]:
        if self._store is not None:
            yield self._store
            return
        store = BrainStore.open(self.config.db_path)
        try:
            yield store
        finally:
            store.close()

    def _import_project_own_connection(
        self, project_name: str, cancel_event: Optional[threading.Event]
    ) -> ProjectImportResult:
        with BrainStore.open(self.config.db_path) as store:
            return self._import_project(store, project_name, cancel_event)

    def _import_project(
        self,
        store: BrainStore,
        project_name: str,
        cancel_event: Optional[threading.Event] = None,
    ) -> ProjectImportResult:
        started = time.perf_counter()
        result = ProjectImportResult(project_name=project_name)

        files = list_transcripts(self.config.projects_dir, project_name)
        logger.info("Project %s: %d transcript files", project_name, len(files))

        for path in files:
            if _cancelled(cancel_event):
                logger.info("Import cancelled before %s", path.name)
                break
            result.files.append(self._import_file(store, project_name, path))

        result.elapsed = time.perf_counter() - started
        logger.info(
            "Project %s: %d sessions, %d commands (%d skipped, %d failed files)",
            project_name,
            result.sessions_imported,
            result.commands_imported,
            result.commands_skipped,
            result.files_failed,
        )
        return result

    def _import_file(self, store: BrainStore, project_name: str, path: Path) -> FileImportResult:
        result = FileImportResult(path=path)

        try:
            transcript = read_transcript(path, project_name)
        except TranscriptError as e:
            logger.warning("Skipping %s: %s", path.name, e.reason)
            result.failed = True
            result.error = e.reason
            return result

        result.session_id = transcript.session_id
        result.commands_discovered = len(transcript.commands)
        session = build_session(transcript, self.config.user_name)

        imported = skipped = duplicates = 0
        try:
            with store.transaction():
                store.upsert_session(session)
                for index, raw in enumerate(transcript.commands):
                    try:
                        command = build_command(raw, index, session)
                        row_id = store.insert_command(command, skip_existing=self.config.dedupe_commands)
                    except (MalformedCommandError, sqlite3.IntegrityError, OverflowError) as e:
                        logger.warning("Skipping command %d in %s: %s", index, path.name, e)
                        skipped += 1
                        continue
                    if row_id is None:
                        duplicates += 1
                    else:
                        imported += 1
        except (sqlite3.Error, OverflowError) as e:
            logger.error("Rolled back %s: %s", path.name, e)
            result.failed = True
            result.error = str(e)
            return result

        result.commands_imported = imported
        result.commands_skipped = skipped
        result.duplicates_skipped = duplicates
        logger.debug("%s: %d commands imported", path.name, imported)
        return result


def build_session(transcript: Transcript, user_name: str) -> Session:
    """Derive the session row from a parsed transcript."""
    project = transcript.project_name
    first = transcript.commands[0] if transcript.commands else None
    working_directory = None
    if isinstance(first, dict) and isinstance(first.get("workingDirectory"), str):
        working_directory = first["workingDirectory"]

    claimed = transcript.claimed_count
    return Session(
        id=clean_text(transcript.session_id),
        project_name=clean_text(project),
        start_time=clean_text(transcript.start_time),
        end_time=clean_text(transcript.end_time),
        duration=_duration_ms(transcript.start_time, transcript.end_time),
        command_count=claimed if _fits_integer(claimed) else len(transcript.commands),
        user_name=clean_text(user_name),
        working_directory=clean_text(working_directory or f"~/projects/{project}", MAX_PATH_LENGTH),
        environment=_clean_mapping(transcript.environment),
        metadata={"sourceFile": clean_text(transcript.path.name), "project": clean_text(project)},
    )


def build_command(raw, index: int, session: Session) -> Command:
    """Turn one raw command record into a row.

    Raises MalformedCommandError if the record is not an object, its
    exit code is not an integer, or an integer field does not fit in a
    SQLite INTEGER.
    """
    if not isinstance(raw, dict):
        raise MalformedCommandError(f"expected an object, got {type(raw).__name__}")

    sequence = raw.get("sequenceNumber")
    if isinstance(sequence, bool) or not isinstance(sequence, int):
        sequence = index
    elif not _fits_integer(sequence):
        raise MalformedCommandError(f"sequence number {sequence} is out of range")

    working_directory = raw.get("workingDirectory")
    if not isinstance(working_directory, str) or not working_directory:
        working_directory = session.working_directory

    environment_vars = raw.get("environmentVars")
    if not isinstance(environment_vars, dict):
        environment_vars = {}

    timestamp = raw.get("timestamp")
    return Command(
        project_name=session.project_name,
        session_id=session.id,
        sequence_number=sequence,
        timestamp=clean_text(str(timestamp)) if timestamp not in (None, "") else None,
        command=clean_text(normalize_command(raw.get("command")), MAX_COMMAND_LENGTH),
        output=clean_text(normalize_output(raw.get("output")), MAX_OUTPUT_LENGTH),
        exit_code=_exit_code(raw.get("exitCode")),
        duration=_number(raw.get("duration")),
        working_directory=clean_text(working_directory, MAX_PATH_LENGTH),
        environment_vars=_clean_mapping(environment_vars),
    )


def _exit_code(value) -> Optional[int]:
    code = _parse_exit_code(value)
    if code is not None and not _fits_integer(code):
        raise MalformedCommandError(f"exit code {value!r} is out of range")
    return code


def _parse_exit_code(value) -> Optional[int]:
    if value is None:
        return None
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if isinstance(value, str):
        try:
            return int(value.strip())
        except ValueError:
            pass
    raise MalformedCommandError(f"exit code {value!r} is not an integer")


def _number(value) -> Optional[float]:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    if isinstance(value, int) and not _fits_integer(value):
        return float(value)
    return value


def _fits_integer(value) -> bool:
    return value is not None and SQLITE_INT_MIN <= value <= SQLITE_INT_MAX


def _clean_mapping(values: dict) -> dict:
    """Clean string keys and values of an environment map."""
    return {
        clean_text(str(k)): clean_text(v) if isinstance(v, str) else v
        for k, v in values.items()
    }


def _duration_ms(start: Optional[str], end: Optional[str]) -> Optional[int]:
    start_dt, end_dt = parse_iso(start), parse_iso(end)
    if start_dt is None or end_dt is None:
        return None
    try:
        return int((end_dt - start_dt).total_seconds() * 1000)
    except TypeError:
        # naive vs. aware timestamps
        return None


def _cancelled(cancel_event: Optional[threading.Event]) -> bool:
    return cancel_event is not None and cancel_event.is_set()
