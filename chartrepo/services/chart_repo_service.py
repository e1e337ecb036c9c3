"""
Front-end operations over the configured chart repositories.

This service ties together:
- The repository configuration file (list/add/remove)
- Concurrent refresh of the cached indexes
- Keyword/regex search filtered by a version constraint
"""
from __future__ import annotations

import logging
from typing import List, Optional

from chartrepo.core.settings import Settings
from chartrepo.domain.constraints import ConstraintResolver, default_constraint
from chartrepo.domain.errors import ConfigNotFoundError
from chartrepo.domain.models import RepositoryEntry, ScoredResult, SyncReport
from chartrepo.domain.query import QueryEngine
from chartrepo.domain.search_index import SearchIndex
from chartrepo.services.fetcher import HttpIndexFetcher, IndexFetcher
from chartrepo.services.synchronizer import IndexSynchronizer
from chartrepo.storage.config_store import RepositoryConfigStore
from chartrepo.storage.index_cache import IndexCache

logger = logging.getLogger(__name__)


class ChartRepoService:
    def __init__(self, settings: Settings, fetcher: Optional[IndexFetcher] = None):
        self.settings = settings
        self.index_cache = IndexCache(settings.repository_cache)
        self.fetcher = fetcher or HttpIndexFetcher(self.index_cache, timeout=settings.fetch_timeout)
        self.query_engine = QueryEngine(max_score=settings.max_score)
        self.constraint_resolver = ConstraintResolver()

    def _store(self) -> RepositoryConfigStore:
        return RepositoryConfigStore(self.settings.repository_config, index_cache=self.index_cache)

    def _configured(self) -> List[RepositoryEntry]:
        try:
            return self._store().load()
        except ConfigNotFoundError:
            return []

    # ========================================================================
    # Repository management
    # ========================================================================

    def list_repositories(self) -> List[RepositoryEntry]:
        """All configured repositories; an absent config file means none."""
        return self._configured()

    def add_repository(self, entry: RepositoryEntry) -> RepositoryEntry:
        store = self._store()
        store.add(entry)
        store.save()
        logger.info(f"{entry.name!r} has been added to your repositories")
        return entry

    def remove_repositories(self, names: List[str]) -> List[str]:
        return self._store().remove(names)

    async def sync_repositories(self) -> List[SyncReport]:
        entries = self._configured()
        if not entries:
            logger.warning("no repositories found. You must add one before updating")
            return []
        synchronizer = IndexSynchronizer(self.fetcher, self.index_cache, is_current=self._is_current)
        return await synchronizer.sync_all(entries)

    def _is_current(self, entry: RepositoryEntry) -> bool:
        """Whether the entry is still configured under the same name and URL."""
        return any(e.name == entry.name and e.url == entry.url for e in self._configured())

    # ========================================================================
    # Search
    # ========================================================================

    def build_index(self) -> SearchIndex:
        return SearchIndex.build(self._configured(), self.index_cache.load)

    def search_packages(
        self,
        keyword: str = "",
        constraint: Optional[str] = None,
        include_prerelease: bool = False,
        keep_all_versions: bool = False,
        regex: bool = False,
    ) -> List[ScoredResult]:
        """
        Search every configured repository's cached index.

        Without an explicit constraint only stable releases are returned, or
        pre-releases too when include_prerelease is set. Unless
        keep_all_versions is set each chart appears once.
        """
        index = self.build_index()
        if len(index) == 0 and not index.load_results:
            logger.warning("no repositories configured")
            return []

        results = self.query_engine.search(index, keyword, use_regex=regex)
        return self.constraint_resolver.apply(
            results,
            default_constraint(constraint, include_prerelease),
            keep_all_versions,
        )
