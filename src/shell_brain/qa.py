"""Health checks over the store and its sources, with an aggregate score."""

import logging
import time
from typing import Optional

from .config import BrainConfig
from .core import CheckResult, QAReport
from .coverage import CoverageVerifier
from .errors import StoreUnavailableError
from .store import BrainStore, REQUIRED_TABLES

logger = logging.getLogger(__name__)

PASS, WARN, FAIL = "pass", "warn", "fail"

SEARCH_PROBES = ("git", "npm", "node", "cd")
FAST_QUERY_MS = 100
ACCEPTABLE_QUERY_MS = 500


def run_checks(config: BrainConfig, store: Optional[BrainStore] = None) -> QAReport:
    """Run every check; a missing or corrupt database fails the first one."""
    report = QAReport()
    if store is None:
        try:
            store = BrainStore.open(config.db_path, readonly=True)
        except StoreUnavailableError as e:
            report.checks.append(CheckResult("Database health", FAIL, str(e)))
            return report
        try:
            _run_store_checks(report, config, store)
        finally:
            store.close()
    else:
        _run_store_checks(report, config, store)

    logger.info("QA score %d%% (%d checks)", report.score, len(report.checks))
    return report


def _run_store_checks(report: QAReport, config: BrainConfig, store: BrainStore) -> None:
    report.checks.append(check_database_health(store))
    report.checks.append(check_project_data(store))
    report.checks.append(check_search(store))
    report.checks.append(check_coverage(config, store))
    report.checks.append(check_query_timings(store))


def check_database_health(store: BrainStore) -> CheckResult:
    tables = store.table_names()
    missing = [t for t in REQUIRED_TABLES if t not in tables]
    if missing:
        return CheckResult("Database health", FAIL, f"missing tables: {', '.join(missing)}")
    size_mb = store.path.stat().st_size / 1024 / 1024
    return CheckResult("Database health", PASS, f"{len(tables)} tables, {size_mb:.2f} MB")


def check_project_data(store: BrainStore) -> CheckResult:
    stats = store.project_stats()
    commands = sum(s.command_count for s in stats)
    sessions = sum(s.session_count for s in stats)
    if not stats or commands == 0:
        return CheckResult("Project data", FAIL, "no commands imported")
    detail = f"{len(stats)} projects, {sessions} sessions, {commands} commands"
    if len(stats) < 2:
        return CheckResult("Project data", WARN, detail)
    return CheckResult("Project data", PASS, detail)


def check_search(store: BrainStore) -> CheckResult:
    hits = {}
    projects = set()
    for probe in SEARCH_PROBES:
        results = store.search_commands(probe, limit=1000)
        hits[probe] = len(results)
        projects.update(c.project_name for c in results)

    found = [p for p, n in hits.items() if n]
    detail = ", ".join(f"{p}={n}" for p, n in hits.items()) + f" across {len(projects)} projects"
    if len(found) == len(SEARCH_PROBES):
        return CheckResult("Cross-project search", PASS, detail)
    if found:
        return CheckResult("Cross-project search", WARN, detail)
    return CheckResult("Cross-project search", FAIL, detail)


def check_coverage(config: BrainConfig, store: BrainStore) -> CheckResult:
    report = CoverageVerifier(config, store=store).verify()
    if report.coverage is None:
        return CheckResult("Source coverage", WARN, "no source commands found")
    detail = f"{report.coverage}% ({report.stored_commands}/{report.source_commands})"
    if report.coverage < report.threshold:
        return CheckResult("Source coverage", WARN, f"{detail}, below {report.threshold}%")
    return CheckResult("Source coverage", PASS, detail)


def check_query_timings(store: BrainStore) -> CheckResult:
    probes = {
        "count": lambda: store.command_count(),
        "search": lambda: store.search_commands("test", limit=10),
        "recent": lambda: store.recent_commands(limit=20),
        "project stats": lambda: store.project_stats(),
    }
    timings = {}
    for name, probe in probes.items():
        started = time.perf_counter()
        probe()
        timings[name] = (time.perf_counter() - started) * 1000

    slowest = max(timings.values())
    detail = ", ".join(f"{name} {ms:.0f}ms" for name, ms in timings.items())
    if slowest < FAST_QUERY_MS:
        return CheckResult("Query performance", PASS, detail)
    if slowest < ACCEPTABLE_QUERY_MS:
        return CheckResult("Query performance", WARN, f"{detail} (acceptable)")
    return CheckResult("Query performance", WARN, f"{detail} (slow)")
