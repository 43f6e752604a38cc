"""Reconcile transcript command counts with what the store holds."""

import logging
from typing import Optional

from .config import BrainConfig
from .core import CoverageReport, ProjectCoverage
from .store import BrainStore
from .transcript import count_source_commands, discover_projects

logger = logging.getLogger(__name__)


def coverage_percent(stored: int, source: int) -> Optional[float]:
    """``stored / source * 100`` to one decimal; None when source is 0."""
    if source <= 0:
        return None
    return round(stored / source * 100, 1)


class CoverageVerifier:
    """Compare source transcripts against imported rows, per project.

    Low coverage is reported, never raised: it does not block imports or
    searches.
    """

    def __init__(self, config: BrainConfig, store: Optional[BrainStore] = None):
        self.config = config
        self._store = store

    def verify(self, threshold: Optional[float] = None) -> CoverageReport:
        if threshold is None:
            threshold = self.config.coverage_threshold

        if self._store is not None:
            return self._verify(self._store, threshold)
        with BrainStore.open(self.config.db_path, readonly=True) as store:
            return self._verify(store, threshold)

    def source_counts(self) -> dict[str, int]:
        """Commands per project found by re-reading the transcripts."""
        projects_dir = self.config.projects_dir
        return {name: count_source_commands(projects_dir, name) for name in discover_projects(projects_dir)}

    def _verify(self, store: BrainStore, threshold: float) -> CoverageReport:
        source = self.source_counts()
        stored = store.stored_counts_by_project()

        report = CoverageReport(threshold=threshold)
        for name in sorted(set(source) | set(stored)):
            source_n = source.get(name, 0)
            stored_n = stored.get(name, 0)
            pct = coverage_percent(stored_n, source_n)
            below = pct is not None and pct < threshold
            if below:
                logger.warning("Project %s coverage %.1f%% is below %.1f%%", name, pct, threshold)
            report.projects.append(ProjectCoverage(
                project_name=name,
                source_commands=source_n,
                stored_commands=stored_n,
                coverage=pct,
                below_threshold=below,
            ))

        report.source_commands = sum(p.source_commands for p in report.projects)
        report.stored_commands = sum(p.stored_commands for p in report.projects)
        report.coverage = coverage_percent(report.stored_commands, report.source_commands)
        report.mismatches = store.session_count_mismatches()
        return report
