"""CLI entry point for shell-brain."""

import logging
from pathlib import Path

import click
import uvicorn

from .config import BrainConfig
from .core import Command
from .coverage import CoverageVerifier
from .errors import StoreUnavailableError
from .export import session_to_json, session_to_markdown, session_to_sql
from .formatting import format_relative_time, shorten_home
from .ingest import Ingestor
from .qa import run_checks
from .search import DEFAULT_RECENT_LIMIT, DEFAULT_SEARCH_LIMIT, SearchEngine
from .server import create_app

DISPLAY_COMMAND_WIDTH = 120
RULE = "─" * 60

STATUS_STYLES = {
    "pass": ("PASS", "green"),
    "warn": ("WARN", "yellow"),
    "fail": ("FAIL", "red"),
}


@click.group()
@click.option("--db", "db_path", type=click.Path(path_type=Path), help="Database file (default: $SHELL_BRAIN_DB).")
@click.option("--projects", "projects_dir", type=click.Path(path_type=Path), help="Projects directory.")
@click.option("-v", "--verbose", is_flag=True, help="Log progress and skipped records.")
@click.pass_context
def main(ctx, db_path, projects_dir, verbose):
    """Search shell commands recorded across all your projects."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )
    ctx.obj = BrainConfig.from_env(db_path=db_path, projects_dir=projects_dir)


@main.command("import")
@click.option("--workers", default=1, show_default=True, help="Projects imported in parallel.")
@click.option("--dedupe", is_flag=True, help="Skip commands already stored for the same session position.")
@click.pass_obj
def import_(config: BrainConfig, workers: int, dedupe: bool):
    """Import every project's transcripts into the database."""
    if dedupe:
        config.dedupe_commands = True

    click.echo(f"Projects directory: {config.projects_dir}")
    click.echo(f"Database: {config.db_path}")

    try:
        summary = Ingestor(config).import_all(workers=workers)
    except StoreUnavailableError as e:
        _store_unavailable(e)

    for project in summary.projects:
        click.echo(f"\n{click.style(project.project_name, bold=True)}")
        for f in project.files:
            if f.failed:
                click.echo(f"  {f.path.name}: " + click.style(f"failed ({f.error})", fg="red"))
            else:
                extra = f", {f.commands_skipped} skipped" if f.commands_skipped else ""
                if f.duplicates_skipped:
                    extra += f", {f.duplicates_skipped} duplicates"
                click.echo(f"  {f.path.name}: {f.commands_imported} commands{extra}")
        click.echo(f"  Totals: {project.sessions_imported} sessions, {project.commands_imported} commands")

    click.echo("\nImport summary:")
    click.echo(f"  Projects processed:  {len(summary.projects)}")
    click.echo(f"  Sessions imported:   {summary.sessions_imported}")
    click.echo(f"  Commands imported:   {summary.commands_imported} of {summary.commands_discovered} discovered")
    click.echo(f"  Commands skipped:    {summary.commands_skipped}")
    if config.dedupe_commands:
        click.echo(f"  Duplicates skipped:  {summary.duplicates_skipped}")
    click.echo(f"  Files failed:        {summary.files_failed}")
    click.echo(f"  Import time:         {summary.elapsed:.1f}s")


@main.command()
@click.argument("query", nargs=-1)
@click.option("--limit", default=DEFAULT_SEARCH_LIMIT, show_default=True)
@click.option("--project", default=None, help="Only search this project.")
@click.pass_obj
def search(config: BrainConfig, query, limit: int, project):
    """Search commands; without QUERY start an interactive prompt."""
    engine = _open_engine(config)
    try:
        if query:
            text = " ".join(query)
            _display_results(engine.search(text, limit=limit, project=project), text, show_project=project is None)
        else:
            _interactive(engine)
    finally:
        engine.close()


@main.command()
@click.argument("count", default=DEFAULT_RECENT_LIMIT, type=int)
@click.option("--project", default=None)
@click.pass_obj
def recent(config: BrainConfig, count: int, project):
    """Show the most recent commands."""
    engine = _open_engine(config)
    try:
        _display_results(engine.recent(count, project=project), "recent commands", show_project=project is None)
    finally:
        engine.close()


@main.command()
@click.pass_obj
def stats(config: BrainConfig):
    """Show global and per-project statistics."""
    engine = _open_engine(config)
    try:
        _display_stats(engine)
    finally:
        engine.close()


@main.command()
@click.option("--threshold", type=float, default=None, help="Warn below this percentage.")
@click.pass_obj
def coverage(config: BrainConfig, threshold):
    """Compare source transcripts with imported commands."""
    try:
        report = CoverageVerifier(config).verify(threshold=threshold)
    except StoreUnavailableError as e:
        _store_unavailable(e)

    for p in report.projects:
        pct = "n/a" if p.coverage is None else f"{p.coverage}%"
        line = f"  {p.project_name}: {pct} ({p.stored_commands}/{p.source_commands})"
        click.echo(click.style(line, fg="yellow") if p.below_threshold else line)

    total = "n/a" if report.coverage is None else f"{report.coverage}%"
    click.echo(f"\nGlobal coverage: {total} ({report.stored_commands}/{report.source_commands})")
    if report.warnings:
        names = ", ".join(p.project_name for p in report.warnings)
        click.secho(f"Below {report.threshold}%: {names}", fg="yellow")
    if report.mismatches:
        click.echo(f"Sessions with a different recorded count: {len(report.mismatches)}")
        for m in report.mismatches:
            click.echo(f"  {m.project_name}/{m.session_id}: recorded {m.claimed}, stored {m.stored}")


@main.command()
@click.pass_obj
def qa(config: BrainConfig):
    """Run health checks and print an aggregate score."""
    report = run_checks(config)
    for check in report.checks:
        label, color = STATUS_STYLES[check.status]
        click.echo(f"  {click.style(label, fg=color)}  {check.name}: {check.detail}")
    click.echo(f"\nScore: {report.score}%")


@main.command()
@click.argument("session_id")
@click.option("--format", "fmt", type=click.Choice(["md", "json", "sql"]), default="md", show_default=True)
@click.pass_obj
def export(config: BrainConfig, session_id: str, fmt: str):
    """Print one session in Markdown, JSON or SQL."""
    engine = _open_engine(config)
    try:
        session = engine.get_session(session_id)
        if session is None:
            raise click.ClickException(f"Session not found: {session_id}")
        commands = engine.session_commands(session_id)
    finally:
        engine.close()

    renderers = {"md": session_to_markdown, "json": session_to_json, "sql": session_to_sql}
    click.echo(renderers[fmt](session, commands))


@main.command()
@click.option("--port", default=8080, help="Port to serve on.")
@click.option("--host", default="127.0.0.1", help="Host to bind to.")
@click.pass_obj
def serve(config: BrainConfig, port: int, host: str):
    """Start the read-only JSON API."""
    click.echo(f"Starting shell-brain API on http://{host}:{port}")
    uvicorn.run(create_app(config), host=host, port=port)


# ── Display helpers ──────────────────────────────────────────────


def _open_engine(config: BrainConfig) -> SearchEngine:
    engine = SearchEngine(config)
    try:
        engine.store  # opens the database read-only
    except StoreUnavailableError as e:
        _store_unavailable(e)
    return engine


def _store_unavailable(error: StoreUnavailableError):
    click.secho(f"Database unavailable: {error}", fg="red", err=True)
    raise SystemExit(1)


def _exit_status(exit_code) -> str:
    if exit_code == 0:
        return click.style("✓", fg="green")
    if exit_code is None:
        return click.style("?", dim=True)
    return click.style(f"✗ ({exit_code})", fg="red")


def _display_results(results: list[Command], label: str, show_project: bool = True) -> None:
    if not results:
        click.secho(f'No results found for: "{label}"', fg="yellow")
        return

    click.secho(f'\nFound {len(results)} results for: "{label}"\n', fg="green")

    current_project = None
    for index, cmd in enumerate(results, 1):
        if show_project and cmd.project_name != current_project:
            current_project = cmd.project_name
            click.secho(RULE, fg="cyan")
            click.secho(f"PROJECT: {current_project}", fg="cyan")
            click.secho(RULE, fg="cyan")

        tag = click.style(f"[{cmd.project_name}] ", fg="magenta") if show_project else ""
        when = click.style(format_relative_time(cmd.timestamp), fg="cyan")
        where = click.style(shorten_home(cmd.working_directory), dim=True)
        click.echo(f"{click.style(f'[{index}]', bold=True)} {tag}{when} {where}")

        text = cmd.command
        if len(text) > DISPLAY_COMMAND_WIDTH:
            text = text[:DISPLAY_COMMAND_WIDTH] + "..."
        click.echo(f"    {click.style('$', bold=True)} {text}")
        click.echo(f"    {_exit_status(cmd.exit_code)}\n")


def _display_stats(engine: SearchEngine) -> None:
    totals = engine.global_stats()
    click.secho("Global statistics:", fg="cyan")
    click.echo(f"  Total commands: {totals.command_count}")
    click.echo(f"  Total projects: {totals.project_count}")
    click.echo(f"  Total sessions: {totals.session_count}")
    if totals.command_count:
        first = format_relative_time(totals.first_command)
        last = format_relative_time(totals.last_command)
        click.echo(f"  Date range: {first} to {last}")

    click.secho("\nProjects:", fg="cyan")
    for index, p in enumerate(engine.project_stats(), 1):
        click.echo(f"{index}. {click.style(p.project_name, bold=True)}")
        click.echo(f"   Commands: {p.command_count}, Sessions: {p.session_count}")
        if p.command_count:
            click.echo(
                f"   Active: {format_relative_time(p.first_command)} to {format_relative_time(p.last_command)}"
            )


INTERACTIVE_HELP = """
Available commands:
  recent [n]        - Show n most recent commands (default: 20)
  projects          - Show all projects with statistics
  project <name>    - Show recent commands from one project
  stats             - Show global statistics
  help              - Show this help
  exit              - Leave the prompt
  <query>           - Search for commands containing query
"""


def _interactive(engine: SearchEngine) -> None:
    click.secho("shell-brain search", bold=True)
    click.secho("Search across all projects and sessions. Type 'help' for commands.\n", dim=True)

    while True:
        try:
            line = click.prompt("global-search>", default="", show_default=False, prompt_suffix=" ")
        except click.Abort:
            click.echo()
            break

        line = line.strip()
        if not line:
            continue
        if line in ("exit", "quit"):
            click.echo("Goodbye!")
            break
        _interactive_command(engine, line)


def _interactive_command(engine: SearchEngine, line: str) -> None:
    if line == "help":
        click.echo(INTERACTIVE_HELP)
    elif line == "recent" or line.startswith("recent "):
        arg = line[len("recent"):].strip()
        limit = int(arg) if arg.isdigit() else DEFAULT_RECENT_LIMIT
        _display_results(engine.recent(limit), "recent commands")
    elif line in ("projects", "stats"):
        _display_stats(engine)
    elif line.startswith("project "):
        name = line[len("project "):].strip()
        _display_results(engine.recent(30, project=name), f"project: {name}", show_project=False)
    else:
        _display_results(engine.search(line), line)
