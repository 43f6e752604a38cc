"""Core data models for shell-brain."""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional


@dataclass
class Session:
    """One recorded interactive session within a project."""

    id: str
    project_name: str
    start_time: Optional[str] = None
    end_time: Optional[str] = None
    duration: Optional[int] = None  # milliseconds
    command_count: int = 0  # as claimed by the transcript
    user_name: str = ""
    working_directory: str = ""
    environment: dict = field(default_factory=dict)
    metadata: dict = field(default_factory=dict)  # sourceFile, project
    imported_at: Optional[str] = None


@dataclass
class Command:
    """One executed shell action within a session."""

    project_name: str
    session_id: str
    sequence_number: int
    command: str
    output: str = ""
    timestamp: Optional[str] = None
    exit_code: Optional[int] = None
    duration: Optional[float] = None
    working_directory: str = ""
    environment_vars: dict = field(default_factory=dict)
    id: Optional[int] = None  # assigned by the store


@dataclass
class ProjectStats:
    project_name: str
    command_count: int
    session_count: int
    first_command: Optional[str] = None
    last_command: Optional[str] = None


@dataclass
class GlobalStats:
    project_count: int = 0
    session_count: int = 0
    command_count: int = 0
    first_command: Optional[str] = None
    last_command: Optional[str] = None


@dataclass
class FileImportResult:
    """Outcome of importing a single transcript file."""

    path: Path
    session_id: Optional[str] = None
    commands_discovered: int = 0
    commands_imported: int = 0
    commands_skipped: int = 0
    duplicates_skipped: int = 0
    failed: bool = False
    error: str = ""


@dataclass
class ProjectImportResult:
    """Outcome of importing every transcript of one project."""

    project_name: str
    files: list[FileImportResult] = field(default_factory=list)
    elapsed: float = 0.0

    @property
    def sessions_imported(self) -> int:
        return sum(1 for f in self.files if not f.failed)

    @property
    def commands_imported(self) -> int:
        return sum(f.commands_imported for f in self.files)

    @property
    def commands_discovered(self) -> int:
        return sum(f.commands_discovered for f in self.files)

    @property
    def commands_skipped(self) -> int:
        return sum(f.commands_skipped for f in self.files)

    @property
    def duplicates_skipped(self) -> int:
        return sum(f.duplicates_skipped for f in self.files)

    @property
    def files_failed(self) -> int:
        return sum(1 for f in self.files if f.failed)


@dataclass
class ImportSummary:
    """Run-level totals across all projects."""

    projects: list[ProjectImportResult] = field(default_factory=list)
    elapsed: float = 0.0
    cancelled: bool = False

    @property
    def sessions_imported(self) -> int:
        return sum(p.sessions_imported for p in self.projects)

    @property
    def commands_imported(self) -> int:
        return sum(p.commands_imported for p in self.projects)

    @property
    def commands_discovered(self) -> int:
        return sum(p.commands_discovered for p in self.projects)

    @property
    def commands_skipped(self) -> int:
        return sum(p.commands_skipped for p in self.projects)

    @property
    def duplicates_skipped(self) -> int:
        return sum(p.duplicates_skipped for p in self.projects)

    @property
    def files_failed(self) -> int:
        return sum(p.files_failed for p in self.projects)


@dataclass
class ProjectCoverage:
    project_name: str
    source_commands: int
    stored_commands: int
    coverage: Optional[float]  # None when the source has no commands
    below_threshold: bool = False


@dataclass
class SessionMismatch:
    """A session whose claimed command count differs from its stored rows."""

    session_id: str
    project_name: str
    claimed: int
    stored: int


@dataclass
class CoverageReport:
    projects: list[ProjectCoverage] = field(default_factory=list)
    threshold: float = 90.0
    source_commands: int = 0
    stored_commands: int = 0
    coverage: Optional[float] = None
    mismatches: list[SessionMismatch] = field(default_factory=list)

    @property
    def warnings(self) -> list[ProjectCoverage]:
        return [p for p in self.projects if p.below_threshold]


@dataclass
class CheckResult:
    name: str
    status: str  # "pass" | "warn" | "fail"
    detail: str = ""


@dataclass
class QAReport:
    checks: list[CheckResult] = field(default_factory=list)

    @property
    def score(self) -> int:
        if not self.checks:
            return 0
        passed = sum(1 for c in self.checks if c.status == "pass")
        return round(passed / len(self.checks) * 100)

    def by_status(self, status: str) -> list[CheckResult]:
        return [c for c in self.checks if c.status == status]
