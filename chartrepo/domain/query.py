from __future__ import annotations

import logging
import re
from typing import List, Optional

from rapidfuzz.distance import Levenshtein

from chartrepo.domain.errors import PatternError
from chartrepo.domain.models import ScoredResult, SearchRow
from chartrepo.domain.search_index import SearchIndex
from chartrepo.domain.semver_utils import version_sort_key

logger = logging.getLogger(__name__)

# Any score higher than this is not considered a match.
SEARCH_MAX_SCORE = 25

BEST_SCORE = 0
SUBSTRING_BASE_SCORE = 1
SUBSTRING_MAX_PENALTY = 8
FUZZY_BASE_SCORE = 10
FUZZY_EDIT_WEIGHT = 5


def score_name(name: str, keyword: str) -> int:
    """
    Score how closely a chart name matches a literal keyword (case-insensitive).

    Exact match is 0. A substring match is 1 plus the number of extra
    characters in the name, capped so it always beats a fuzzy match. Anything
    else is scored on edit distance.
    """
    n = name.lower()
    k = keyword.lower()

    if n == k:
        return BEST_SCORE
    if k in n:
        return SUBSTRING_BASE_SCORE + min(len(n) - len(k), SUBSTRING_MAX_PENALTY)
    return FUZZY_BASE_SCORE + FUZZY_EDIT_WEIGHT * Levenshtein.distance(k, n)


def sort_results(results: List[ScoredResult]) -> List[ScoredResult]:
    """
    Order by score, then chart name, then repository, then newest version first.
    """
    return sorted(
        results,
        key=lambda r: (r.score, r.package_name, r.repository_name, version_sort_key(r.version)),
    )


def _scored(row: SearchRow, score: int) -> ScoredResult:
    return ScoredResult(
        package_name=row.package_name,
        repository_name=row.repository_name,
        version_entry=row.version_entry,
        score=score,
    )


class QueryEngine:
    """Runs keyword and regex searches over a SearchIndex."""

    def __init__(self, max_score: int = SEARCH_MAX_SCORE):
        self.max_score = max_score

    def search(
        self,
        index: SearchIndex,
        keyword: str,
        max_score: Optional[int] = None,
        use_regex: bool = False,
    ) -> List[ScoredResult]:
        """
        Score every row of the index against keyword and return the matches, best first.

        An empty keyword lists everything. With use_regex the keyword is a
        regular expression searched in the chart name and every match scores
        the same; an invalid expression raises PatternError.
        """
        threshold = self.max_score if max_score is None else max_score
        keyword = keyword or ""

        if not keyword:
            results = [_scored(row, BEST_SCORE) for row in index.all_entries()]
        elif use_regex:
            results = self._search_regex(index, keyword)
        else:
            results = self._search_literal(index, keyword, threshold)

        logger.debug(f"Search {keyword!r} (regex={use_regex}) matched {len(results)} rows")
        return sort_results(results)

    def _search_literal(self, index: SearchIndex, keyword: str, threshold: int) -> List[ScoredResult]:
        results: List[ScoredResult] = []
        # Rows of the same chart share a name, so score each name once.
        for name in index.package_names():
            score = score_name(name, keyword)
            if score > threshold:
                continue
            results.extend(_scored(row, score) for row in index.rows_for(name))
        return results

    def _search_regex(self, index: SearchIndex, pattern: str) -> List[ScoredResult]:
        try:
            matcher = re.compile(pattern)
        except re.error as e:
            raise PatternError(f"invalid search pattern {pattern!r}: {e}") from e

        results: List[ScoredResult] = []
        for name in index.package_names():
            if matcher.search(name) is None:
                continue
            results.extend(_scored(row, BEST_SCORE) for row in index.rows_for(name))
        return results
