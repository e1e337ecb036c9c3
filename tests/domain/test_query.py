"""Tests for keyword and regex scoring."""

import pytest

from chartrepo.domain.errors import PatternError
from chartrepo.domain.models import SearchRow, VersionEntry
from chartrepo.domain.query import BEST_SCORE, SEARCH_MAX_SCORE, QueryEngine, score_name
from chartrepo.domain.search_index import SearchIndex


def row(name: str, version: str, repo: str = "stable") -> SearchRow:
    return SearchRow(package_name=name, repository_name=repo, version_entry=VersionEntry(version=version))


@pytest.fixture
def index() -> SearchIndex:
    return SearchIndex(
        [
            row("nginx", "1.0.0"),
            row("nginx", "2.0.0"),
            row("nginx-ingress", "0.9.0"),
            row("redis", "5.0.0"),
            row("postgresql", "10.1.0"),
            row("nginx", "1.5.0-rc.1", repo="incubator"),
        ]
    )


class TestScoreName:
    def test_exact_match_is_best(self):
        assert score_name("nginx", "nginx") == BEST_SCORE

    def test_case_insensitive(self):
        assert score_name("NGINX", "nginx") == BEST_SCORE

    def test_substring_beats_fuzzy(self):
        substring = score_name("nginx-ingress", "ingress")
        fuzzy = score_name("nginx", "ngnix")
        assert 0 < substring < fuzzy

    def test_shorter_container_scores_better(self):
        assert score_name("nginx", "ngin") < score_name("nginx-ingress", "ngin")

    def test_unrelated_names_exceed_default_threshold(self):
        assert score_name("postgresql", "nginx") > SEARCH_MAX_SCORE

    def test_close_typo_stays_within_threshold(self):
        assert score_name("nginx", "ngnix") <= SEARCH_MAX_SCORE


class TestQueryEngine:
    def setup_method(self):
        self.engine = QueryEngine()

    def test_empty_keyword_lists_every_row_with_best_score(self, index):
        results = self.engine.search(index, "")
        assert len(results) == len(index)
        assert {r.score for r in results} == {BEST_SCORE}

    def test_empty_search_is_idempotent(self, index):
        first = self.engine.search(index, "", SEARCH_MAX_SCORE, False)
        second = self.engine.search(index, "", SEARCH_MAX_SCORE, False)
        assert first == second

    def test_literal_search_filters_by_threshold(self, index):
        names = {r.package_name for r in self.engine.search(index, "ngin")}
        assert names == {"nginx", "nginx-ingress"}

    def test_max_score_override(self, index):
        results = self.engine.search(index, "ngin", max_score=2)
        assert {r.package_name for r in results} == {"nginx"}

    def test_results_sorted_by_score_then_name_then_repo(self, index):
        results = self.engine.search(index, "nginx")
        keys = [(r.score, r.package_name, r.repository_name) for r in results]
        assert keys == sorted(keys)
        assert results[0].package_name == "nginx"
        assert results[-1].package_name == "nginx-ingress"

    def test_same_chart_and_repo_orders_newest_first(self, index):
        results = [r for r in self.engine.search(index, "nginx") if r.full_name == "stable/nginx"]
        assert [r.version for r in results] == ["2.0.0", "1.0.0"]

    def test_repository_attribution_preserved(self, index):
        results = self.engine.search(index, "nginx")
        assert ("incubator", "1.5.0-rc.1") in {(r.repository_name, r.version) for r in results}

    def test_regex_matches_name_with_best_score(self, index):
        results = self.engine.search(index, "^red", use_regex=True)
        assert [(r.package_name, r.score) for r in results] == [("redis", BEST_SCORE)]

    def test_regex_uses_search_semantics(self, index):
        results = self.engine.search(index, "ingress", use_regex=True)
        assert {r.package_name for r in results} == {"nginx-ingress"}

    def test_invalid_regex_raises_pattern_error(self, index):
        with pytest.raises(PatternError):
            self.engine.search(index, "(unclosed", use_regex=True)

    def test_no_match_returns_empty(self, index):
        assert self.engine.search(index, "zzzzzzzzzzzz") == []
