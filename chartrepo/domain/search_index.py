"""
In-memory aggregate of every configured repository's cached index.

The index is rebuilt from the cache for every search session and never
mutated afterwards, so queries can read it without locking.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Dict, Iterable, List, Union

from chartrepo.domain.models import IndexDocument, RepositoryEntry, SearchRow

logger = logging.getLogger(__name__)

CacheReader = Callable[[str], IndexDocument]


@dataclass(frozen=True)
class Ok:
    repository_name: str
    document: IndexDocument


@dataclass(frozen=True)
class Skipped:
    repository_name: str
    reason: str


LoadResult = Union[Ok, Skipped]


def load_repository(name: str, cache_reader: CacheReader) -> LoadResult:
    """Read one repository's cached index, turning any failure into a Skipped result."""
    try:
        return Ok(name, cache_reader(name))
    except Exception as e:
        return Skipped(name, str(e) or type(e).__name__)


class SearchIndex:
    def __init__(self, rows: Iterable[SearchRow] = (), load_results: Iterable[LoadResult] = ()):
        self._rows: List[SearchRow] = list(rows)
        self._by_name: Dict[str, List[SearchRow]] = {}
        for row in self._rows:
            self._by_name.setdefault(row.package_name, []).append(row)
        self.load_results: List[LoadResult] = list(load_results)

    @classmethod
    def build(cls, entries: Iterable[RepositoryEntry], cache_reader: CacheReader) -> "SearchIndex":
        """
        Merge the cached index of each configured repository.

        Repositories are visited in configuration order. One whose cache is
        missing or corrupt is logged and contributes no rows; the rest of the
        build carries on. Charts published by several repositories get one
        set of rows per repository.
        """
        rows: List[SearchRow] = []
        results: List[LoadResult] = []

        for entry in entries:
            result = load_repository(entry.name, cache_reader)
            results.append(result)

            if isinstance(result, Skipped):
                logger.warning(f"Repo {entry.name!r} is corrupt or missing. Try syncing repositories.")
                logger.warning(result.reason)
                continue

            for chart_name, versions in result.document.entries.items():
                for version_entry in versions:
                    rows.append(
                        SearchRow(
                            package_name=chart_name,
                            repository_name=entry.name,
                            version_entry=version_entry,
                        )
                    )

        logger.debug(f"Built search index with {len(rows)} rows from {len(results)} repositories")
        return cls(rows, results)

    def all_entries(self) -> List[SearchRow]:
        return list(self._rows)

    def rows_for(self, package_name: str) -> List[SearchRow]:
        return list(self._by_name.get(package_name, []))

    def package_names(self) -> List[str]:
        return list(self._by_name.keys())

    @property
    def skipped(self) -> List[Skipped]:
        return [r for r in self.load_results if isinstance(r, Skipped)]

    def __len__(self) -> int:
        return len(self._rows)

    def __iter__(self):
        return iter(self._rows)
