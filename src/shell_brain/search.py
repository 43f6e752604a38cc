"""Read-only search and aggregation over imported commands."""

import logging
from typing import Optional

from .config import BrainConfig
from .core import Command, GlobalStats, ProjectStats, Session
from .store import BrainStore

logger = logging.getLogger(__name__)

DEFAULT_SEARCH_LIMIT = 50
DEFAULT_RECENT_LIMIT = 20


class SearchEngine:
    """Query the store without modifying it.

    Results are ordered newest first by timestamp; commands with equal
    timestamps come back in insertion order.
    """

    def __init__(self, config: BrainConfig, store: Optional[BrainStore] = None):
        self.config = config
        self._store = store

    @property
    def store(self) -> BrainStore:
        """The underlying store, opened read-only on first use."""
        if self._store is None:
            self._store = BrainStore.open(self.config.db_path, readonly=True)
        return self._store

    def close(self) -> None:
        if self._store is not None:
            self._store.close()
            self._store = None

    def search(self, query: str, limit: int = DEFAULT_SEARCH_LIMIT, project: Optional[str] = None) -> list[Command]:
        """Commands whose text contains ``query`` (case-sensitive)."""
        results = self.store.search_commands(query, limit=limit, project=project)
        logger.debug("search %r project=%s -> %d results", query, project, len(results))
        return results

    def recent(self, limit: int = DEFAULT_RECENT_LIMIT, project: Optional[str] = None) -> list[Command]:
        return self.store.recent_commands(limit=limit, project=project)

    def project_stats(self) -> list[ProjectStats]:
        return self.store.project_stats()

    def global_stats(self) -> GlobalStats:
        return self.store.global_stats()

    def session_commands(self, session_id: str) -> list[Command]:
        return self.store.session_commands(session_id)

    def get_session(self, session_id: str) -> Optional[Session]:
        return self.store.get_session(session_id)

    def list_sessions(self, project: Optional[str] = None) -> list[Session]:
        return self.store.list_sessions(project=project)
