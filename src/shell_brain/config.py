"""Path resolution and runtime configuration for shell-brain."""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path

logger = logging.getLogger(__name__)

DEFAULT_COVERAGE_THRESHOLD = 90.0
DATABASE_FILENAME = "global-shell-brain.db"


def get_brain_home() -> Path:
    """Return the root directory holding projects and the database."""
    env = os.environ.get("SHELL_BRAIN_HOME")
    if env:
        return Path(env)

    return Path.home() / ".claude" / "second-brain"


def get_projects_path() -> Path:
    """Return the directory containing one sub-directory per project."""
    env = os.environ.get("SHELL_BRAIN_PROJECTS")
    if env:
        return Path(env)

    return get_brain_home() / "projects"


def get_database_path() -> Path:
    """Return the path to the SQLite database file."""
    env = os.environ.get("SHELL_BRAIN_DB")
    if env:
        return Path(env)

    return get_brain_home() / "database" / DATABASE_FILENAME


def get_coverage_threshold() -> float:
    """Return the coverage percentage below which a project is flagged."""
    env = os.environ.get("SHELL_BRAIN_COVERAGE_THRESHOLD")
    if env:
        try:
            return float(env)
        except ValueError:
            logger.warning("Ignoring invalid SHELL_BRAIN_COVERAGE_THRESHOLD=%r", env)

    return DEFAULT_COVERAGE_THRESHOLD


def get_user_name() -> str:
    return os.environ.get("USER") or os.environ.get("USERNAME") or "unknown"


@dataclass
class BrainConfig:
    """Settings shared by the ingestor, search engine and coverage verifier."""

    projects_dir: Path
    db_path: Path
    coverage_threshold: float = DEFAULT_COVERAGE_THRESHOLD
    dedupe_commands: bool = False  # skip commands already stored under the same natural key
    user_name: str = field(default_factory=get_user_name)

    @classmethod
    def from_env(cls, **overrides) -> "BrainConfig":
        """Build a config from environment variables, then apply overrides.

        Overrides whose value is None are ignored so CLI options can be
        passed straight through.
        """
        values = {
            "projects_dir": get_projects_path(),
            "db_path": get_database_path(),
            "coverage_threshold": get_coverage_threshold(),
        }
        for key, value in overrides.items():
            if value is not None:
                values[key] = value

        values["projects_dir"] = Path(values["projects_dir"])
        values["db_path"] = Path(values["db_path"])
        return cls(**values)
