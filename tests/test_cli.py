"""Tests for the command line interface."""

import json
from unittest.mock import patch

import pytest
from click.testing import CliRunner

from shell_brain.cli import main


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture
def base_args(config):
    return ["--db", str(config.db_path), "--projects", str(config.projects_dir)]


@pytest.fixture
def imported(runner, base_args):
    result = runner.invoke(main, base_args + ["import"])
    assert result.exit_code == 0, result.output
    return base_args


class TestImport:
    def test_prints_summary(self, runner, base_args):
        result = runner.invoke(main, base_args + ["import"])
        assert result.exit_code == 0, result.output
        assert "Projects processed:  2" in result.output
        assert "Sessions imported:   3" in result.output
        assert "Commands imported:   8 of 8 discovered" in result.output
        assert "session-001-commands.json: 3 commands" in result.output

    def test_dedupe_reports_duplicates(self, runner, imported):
        result = runner.invoke(main, imported + ["import", "--dedupe"])
        assert result.exit_code == 0, result.output
        assert "Commands imported:   0 of 8 discovered" in result.output
        assert "Duplicates skipped:  8" in result.output

    def test_failed_file_is_reported(self, runner, base_args, config):
        (config.projects_dir / "webapp" / "shell" / "bad-commands.json").write_text("{", encoding="utf-8")
        result = runner.invoke(main, base_args + ["import"])
        assert result.exit_code == 0
        assert "bad-commands.json: failed" in result.output
        assert "Files failed:        1" in result.output

    def test_unusable_database_exits_nonzero(self, runner, config, tmp_path):
        bad = tmp_path / "bad.db"
        bad.write_bytes(b"garbage" * 1000)
        result = runner.invoke(main, ["--db", str(bad), "--projects", str(config.projects_dir), "import"])
        assert result.exit_code == 1


class TestSearch:
    def test_search_groups_by_project(self, runner, imported):
        result = runner.invoke(main, imported + ["search", "git"])
        assert result.exit_code == 0, result.output
        assert 'Found 2 results for: "git"' in result.output
        assert "PROJECT: webapp" in result.output
        assert result.output.index("git commit -m 'fix login'") < result.output.index("git status")

    def test_multi_word_query(self, runner, imported):
        result = runner.invoke(main, imported + ["search", "git", "commit"])
        assert 'Found 1 results for: "git commit"' in result.output

    def test_no_results(self, runner, imported):
        result = runner.invoke(main, imported + ["search", "xyz123"])
        assert result.exit_code == 0
        assert 'No results found for: "xyz123"' in result.output

    def test_missing_database(self, runner, base_args):
        result = runner.invoke(main, base_args + ["search", "git"])
        assert result.exit_code == 1
        assert "Database unavailable" in result.output

    def test_interactive_prompt(self, runner, imported):
        result = runner.invoke(main, imported + ["search"], input="help\nnode\nproject webapp\nexit\n")
        assert result.exit_code == 0, result.output
        assert "Available commands:" in result.output
        assert 'Found 1 results for: "node"' in result.output
        assert 'results for: "project: webapp"' in result.output
        assert "Goodbye!" in result.output

    def test_interactive_prompt_ends_on_eof(self, runner, imported):
        result = runner.invoke(main, imported + ["search"], input="recent 2\n")
        assert result.exit_code == 0, result.output
        assert 'Found 2 results for: "recent commands"' in result.output


class TestReports:
    def test_recent(self, runner, imported):
        result = runner.invoke(main, imported + ["recent", "1"])
        assert result.exit_code == 0
        assert "ls -la" in result.output
        assert "cd src" not in result.output

    def test_stats(self, runner, imported):
        result = runner.invoke(main, imported + ["stats"])
        assert result.exit_code == 0
        assert "Total commands: 8" in result.output
        assert "Total projects: 2" in result.output
        assert "1. webapp" in result.output
        assert "2. api-server" in result.output

    def test_coverage(self, runner, imported):
        result = runner.invoke(main, imported + ["coverage"])
        assert result.exit_code == 0
        assert "webapp: 100.0% (5/5)" in result.output
        assert "Global coverage: 100.0% (8/8)" in result.output

    def test_qa(self, runner, imported):
        result = runner.invoke(main, imported + ["qa"])
        assert result.exit_code == 0
        assert "Database health" in result.output
        assert "Score:" in result.output

    def test_qa_without_database(self, runner, base_args):
        result = runner.invoke(main, base_args + ["qa"])
        assert result.exit_code == 0
        assert "FAIL" in result.output
        assert "Score: 0%" in result.output


class TestExport:
    def test_json(self, runner, imported):
        result = runner.invoke(main, imported + ["export", "session-101", "--format", "json"])
        assert result.exit_code == 0, result.output
        data = json.loads(result.output)
        assert [c["command"] for c in data["commands"]] == ["node server.js", "cd src", "ls -la"]

    def test_markdown_is_default(self, runner, imported):
        result = runner.invoke(main, imported + ["export", "session-101"])
        assert result.output.startswith("# Session session-101")

    def test_unknown_session(self, runner, imported):
        result = runner.invoke(main, imported + ["export", "nope"])
        assert result.exit_code == 1
        assert "Session not found: nope" in result.output


def test_serve_runs_uvicorn(runner, base_args):
    with patch("shell_brain.cli.uvicorn.run") as run:
        result = runner.invoke(main, base_args + ["serve", "--port", "9000"])
    assert result.exit_code == 0
    assert run.call_args.kwargs == {"host": "127.0.0.1", "port": 9000}
