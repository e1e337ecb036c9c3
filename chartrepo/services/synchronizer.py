"""
Concurrent refresh of every configured repository index.
"""
from __future__ import annotations

import asyncio
import logging
from typing import Callable, Iterable, List, Optional

from chartrepo.domain.models import RepositoryEntry, SyncReport
from chartrepo.services.fetcher import IndexFetcher
from chartrepo.storage.index_cache import IndexCache

logger = logging.getLogger(__name__)


class IndexSynchronizer:
    """
    Fetches all repository indexes at once and caches the ones that succeed.

    One failing repository never stops the others; there is no retry, a
    failed repository simply stays stale until the next sync.

    is_current, when given, tells whether an entry is still configured as it
    was when the sync started. An index fetched for an entry that has since
    been removed or replaced is never left in the cache.
    """

    def __init__(
        self,
        fetcher: IndexFetcher,
        index_cache: IndexCache,
        is_current: Optional[Callable[[RepositoryEntry], bool]] = None,
    ):
        self.fetcher = fetcher
        self.index_cache = index_cache
        self.is_current = is_current

    def _still_configured(self, entry: RepositoryEntry) -> bool:
        return self.is_current is None or self.is_current(entry)

    async def sync_all(self, entries: Iterable[RepositoryEntry]) -> List[SyncReport]:
        """
        Refresh every repository concurrently and wait for all of them.

        The report has one SyncReport per entry, in the order of entries.
        """
        entries = list(entries)
        logger.info("Hang tight while we grab the latest from your chart repositories...")

        reports = await asyncio.gather(*(self._sync_one(entry) for entry in entries))

        failed = sum(1 for r in reports if not r.ok)
        logger.info(f"Update Complete. {len(reports) - failed} succeeded, {failed} failed.")
        return list(reports)

    async def _sync_one(self, entry: RepositoryEntry) -> SyncReport:
        try:
            document = await self.fetcher.fetch(entry)
            if not self._still_configured(entry):
                return self._dropped(entry)
            await self.index_cache.write(entry.name, document)
            # a removal may have purged the cache while the write was in flight
            if not self._still_configured(entry):
                self.index_cache.purge(entry.name)
                return self._dropped(entry)
        except Exception as e:
            reason = str(e) or type(e).__name__
            logger.warning(
                f"...Unable to get an update from the {entry.name!r} chart repository ({entry.url}):\n\t{reason}"
            )
            return SyncReport.failure(entry.name, reason)

        logger.info(
            f"...Successfully got an update from the {entry.name!r} chart repository "
            f"(cached at {self.fetcher.cache_path(entry.name)})"
        )
        return SyncReport.success(entry.name)

    def _dropped(self, entry: RepositoryEntry) -> SyncReport:
        reason = "repository was removed during the update"
        logger.warning(f"...Discarding the update from the {entry.name!r} chart repository: {reason}")
        return SyncReport.failure(entry.name, reason)
