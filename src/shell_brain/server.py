"""Read-only FastAPI server over the shell-brain database."""

import logging
from contextlib import contextmanager
from typing import Iterator

from fastapi import FastAPI, HTTPException, Query
from fastapi.responses import Response

from . import __version__
from .config import BrainConfig
from .core import Session
from .coverage import CoverageVerifier
from .errors import StoreUnavailableError
from .export import command_to_dict, session_to_json, session_to_markdown, session_to_sql
from .search import DEFAULT_RECENT_LIMIT, DEFAULT_SEARCH_LIMIT, SearchEngine

logger = logging.getLogger(__name__)

app = FastAPI(title="shell-brain", version=__version__)

# Config cache (populated by create_app or on first request)
_config: BrainConfig | None = None


def create_app(config: BrainConfig) -> FastAPI:
    """Bind the app to an explicit configuration."""
    global _config
    _config = config
    return app


def _get_config() -> BrainConfig:
    global _config
    if _config is None:
        _config = BrainConfig.from_env()
        logger.info("Serving database %s", _config.db_path)
    return _config


@contextmanager
def _engine() -> Iterator[SearchEngine]:
    """Open a read-only engine for the duration of one request."""
    engine = SearchEngine(_get_config())
    try:
        engine.store
    except StoreUnavailableError as e:
        logger.error("Database unavailable: %s", e)
        raise HTTPException(status_code=503, detail="Database unavailable")
    try:
        yield engine
    finally:
        engine.close()


def _session_to_dict(session: Session) -> dict:
    return {
        "id": session.id,
        "project_name": session.project_name,
        "start_time": session.start_time,
        "end_time": session.end_time,
        "duration": session.duration,
        "command_count": session.command_count,
        "user_name": session.user_name,
        "working_directory": session.working_directory,
        "metadata": session.metadata,
    }


# ── Routes ───────────────────────────────────────────────────────


@app.get("/api/health")
async def health():
    with _engine() as engine:
        totals = engine.global_stats()
    return {"status": "ok", "commands": totals.command_count, "sessions": totals.session_count}


@app.get("/api/stats")
async def get_stats():
    """Global totals and time range."""
    with _engine() as engine:
        totals = engine.global_stats()
    return {
        "project_count": totals.project_count,
        "session_count": totals.session_count,
        "command_count": totals.command_count,
        "first_command": totals.first_command,
        "last_command": totals.last_command,
    }


@app.get("/api/projects")
async def get_projects():
    """Per-project command and session counts."""
    with _engine() as engine:
        stats = engine.project_stats()
    return [
        {
            "project_name": s.project_name,
            "command_count": s.command_count,
            "session_count": s.session_count,
            "first_command": s.first_command,
            "last_command": s.last_command,
        }
        for s in stats
    ]


@app.get("/api/search")
async def search(
    q: str = Query(..., min_length=1, description="Substring to find in commands"),
    project: str | None = Query(None, description="Restrict to one project"),
    limit: int = Query(DEFAULT_SEARCH_LIMIT, ge=1, le=1000),
):
    with _engine() as engine:
        results = engine.search(q, limit=limit, project=project)
    return {"query": q, "total": len(results), "commands": [command_to_dict(c) for c in results]}


@app.get("/api/recent")
async def recent(
    project: str | None = Query(None),
    limit: int = Query(DEFAULT_RECENT_LIMIT, ge=1, le=1000),
):
    with _engine() as engine:
        results = engine.recent(limit, project=project)
    return {"total": len(results), "commands": [command_to_dict(c) for c in results]}


@app.get("/api/sessions")
async def get_sessions(project: str | None = Query(None, description="Filter by project")):
    with _engine() as engine:
        sessions = engine.list_sessions(project=project)
    return {"total": len(sessions), "sessions": [_session_to_dict(s) for s in sessions]}


@app.get("/api/sessions/{session_id:path}/commands")
async def get_session_commands(session_id: str):
    with _engine() as engine:
        if engine.get_session(session_id) is None:
            raise HTTPException(status_code=404, detail="Session not found")
        commands = engine.session_commands(session_id)
    return {"session_id": session_id, "commands": [command_to_dict(c) for c in commands]}


@app.get("/api/sessions/{session_id:path}/export")
async def export_session(
    session_id: str,
    format: str = Query("md", description="Export format: md, json or sql"),
):
    """Export a session as Markdown, JSON or SQL."""
    with _engine() as engine:
        session = engine.get_session(session_id)
        if session is None:
            raise HTTPException(status_code=404, detail="Session not found")
        commands = engine.session_commands(session_id)

    safe_name = "".join(c if c.isalnum() or c in "-_" else "" for c in session.id)[:50] or "session"

    if format == "json":
        content, media_type, ext = session_to_json(session, commands), "application/json", "json"
    elif format == "sql":
        content, media_type, ext = session_to_sql(session, commands), "application/sql", "sql"
    else:
        content, media_type, ext = session_to_markdown(session, commands), "text/markdown", "md"

    return Response(
        content=content,
        media_type=media_type,
        headers={"Content-Disposition": f'attachment; filename="{safe_name}.{ext}"'},
    )


@app.get("/api/sessions/{session_id:path}")
async def get_session(session_id: str):
    with _engine() as engine:
        session = engine.get_session(session_id)
    if session is None:
        raise HTTPException(status_code=404, detail="Session not found")
    return _session_to_dict(session)


@app.get("/api/coverage")
async def get_coverage(threshold: float | None = Query(None, ge=0, le=100)):
    try:
        report = CoverageVerifier(_get_config()).verify(threshold=threshold)
    except StoreUnavailableError as e:
        logger.error("Database unavailable: %s", e)
        raise HTTPException(status_code=503, detail="Database unavailable")

    return {
        "threshold": report.threshold,
        "coverage": report.coverage,
        "source_commands": report.source_commands,
        "stored_commands": report.stored_commands,
        "projects": [
            {
                "project_name": p.project_name,
                "source_commands": p.source_commands,
                "stored_commands": p.stored_commands,
                "coverage": p.coverage,
                "below_threshold": p.below_threshold,
            }
            for p in report.projects
        ],
        "mismatches": [
            {"session_id": m.session_id, "project_name": m.project_name, "claimed": m.claimed, "stored": m.stored}
            for m in report.mismatches
        ],
    }
