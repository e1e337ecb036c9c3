"""End-to-end tests of the front-end operations against a temp data dir."""

import asyncio

import pytest

from chartrepo.domain.errors import (
    ConstraintSyntaxError,
    DuplicateNameError,
    PatternError,
    RepositoryNotFoundError,
)
from chartrepo.domain.models import IndexDocument, RepositoryEntry, SyncOutcome
from chartrepo.services.chart_repo_service import ChartRepoService
from chartrepo.services.fetcher import IndexFetcher


class TestRepositoryOperations:
    def test_list_without_config_is_empty(self, settings):
        assert ChartRepoService(settings).list_repositories() == []

    def test_add_then_list(self, settings):
        service = ChartRepoService(settings)

        service.add_repository(RepositoryEntry(name="stable", url="https://charts.example.com/stable"))

        assert [e.name for e in service.list_repositories()] == ["stable"]
        assert settings.repository_config.exists()

    def test_add_duplicate_raises(self, settings, configure_repos):
        configure_repos("stable")

        with pytest.raises(DuplicateNameError):
            ChartRepoService(settings).add_repository(RepositoryEntry(name="stable", url="https://elsewhere"))

    def test_remove_unknown_raises(self, settings, configure_repos):
        configure_repos("stable")

        with pytest.raises(RepositoryNotFoundError):
            ChartRepoService(settings).remove_repositories(["nope"])

    def test_remove_drops_repository_from_search(self, settings, scenario_repos):
        service = ChartRepoService(settings)

        service.remove_repositories(["incubator"])

        results = service.search_packages("nginx", include_prerelease=True, keep_all_versions=True)
        assert {r.repository_name for r in results} == {"stable"}


class TestSyncRepositories:
    @pytest.mark.asyncio
    async def test_sync_without_repositories_returns_empty_report(self, settings, fake_fetcher):
        service = ChartRepoService(settings, fetcher=fake_fetcher({}))
        assert await service.sync_repositories() == []

    @pytest.mark.asyncio
    async def test_sync_then_search(self, settings, configure_repos, fake_fetcher, make_document):
        configure_repos("stable", "flaky")
        fetcher = fake_fetcher({"stable": make_document({"nginx": ["1.0.0"]})}, failures={"flaky": "503"})
        service = ChartRepoService(settings, fetcher=fetcher)

        reports = await service.sync_repositories()

        assert [r.outcome for r in reports] == [SyncOutcome.SUCCESS, SyncOutcome.FAILURE]
        assert [r.full_name for r in service.search_packages("nginx")] == ["stable/nginx"]

    @pytest.mark.asyncio
    async def test_remove_during_sync_leaves_no_cache(self, settings, configure_repos, index_cache, make_document):
        configure_repos("stable")
        fetching = asyncio.Event()
        release = asyncio.Event()

        class SlowFetcher(IndexFetcher):
            async def fetch(self, entry: RepositoryEntry) -> IndexDocument:
                fetching.set()
                await release.wait()
                return make_document({"nginx": ["1.0.0"]})

            def cache_path(self, name):
                return index_cache.index_path(name)

        service = ChartRepoService(settings, fetcher=SlowFetcher())
        task = asyncio.create_task(service.sync_repositories())
        await asyncio.wait_for(fetching.wait(), timeout=5)

        service.remove_repositories(["stable"])
        release.set()
        reports = await asyncio.wait_for(task, timeout=5)

        assert [r.outcome for r in reports] == [SyncOutcome.FAILURE]
        assert service.list_repositories() == []
        assert not index_cache.index_path("stable").exists()
        assert not index_cache.charts_path("stable").exists()

        service.add_repository(RepositoryEntry(name="stable", url="https://other.example.com"))
        assert service.search_packages("nginx") == []


class TestSearchPackages:
    def test_keyword_with_stable_default_excludes_rc(self, settings, scenario_repos):
        results = ChartRepoService(settings).search_packages("ngin")

        assert len(results) == 1
        assert results[0].repository_name == "stable"
        assert results[0].version in {"1.0.0", "2.0.0"}

    def test_keyword_keep_all_versions_preserves_attribution(self, settings, scenario_repos):
        results = ChartRepoService(settings).search_packages("ngin", keep_all_versions=True)

        assert {(r.repository_name, r.version) for r in results} == {("stable", "1.0.0"), ("stable", "2.0.0")}

    def test_empty_keyword_keep_all_versions(self, settings, scenario_repos):
        results = ChartRepoService(settings).search_packages("", keep_all_versions=True)

        assert sorted(r.version for r in results) == ["1.0.0", "2.0.0"]

    def test_devel_includes_release_candidate(self, settings, scenario_repos):
        results = ChartRepoService(settings).search_packages("", include_prerelease=True, keep_all_versions=True)

        assert len(results) == 3
        assert ("incubator", "1.5.0-rc.1") in {(r.repository_name, r.version) for r in results}

    def test_dedup_keeps_first_row_in_score_order(self, settings, scenario_repos):
        # Equal scores order "incubator" before "stable", so with pre-releases
        # included the rc from incubator is kept even though 2.0.0 is newer.
        results = ChartRepoService(settings).search_packages("nginx", include_prerelease=True)

        assert [(r.repository_name, r.version) for r in results] == [("incubator", "1.5.0-rc.1")]

    def test_explicit_constraint_overrides_default(self, settings, scenario_repos):
        results = ChartRepoService(settings).search_packages("nginx", constraint="^1.0.0", keep_all_versions=True)

        assert [r.version for r in results] == ["1.0.0"]

    def test_regex_search(self, settings, scenario_repos):
        results = ChartRepoService(settings).search_packages("^ng.*x$", regex=True)
        assert [r.package_name for r in results] == ["nginx"]

    def test_malformed_regex_raises(self, settings, scenario_repos):
        with pytest.raises(PatternError):
            ChartRepoService(settings).search_packages("(unclosed", regex=True)

    def test_malformed_constraint_raises(self, settings, scenario_repos):
        with pytest.raises(ConstraintSyntaxError):
            ChartRepoService(settings).search_packages("nginx", constraint="not a constraint")

    def test_corrupt_cache_degrades_gracefully(self, settings, scenario_repos, index_cache):
        index_cache.index_path("incubator").write_text("{{{", encoding="utf-8")

        results = ChartRepoService(settings).search_packages("", keep_all_versions=True)

        assert len(results) == 2

    def test_no_repositories_configured(self, settings):
        assert ChartRepoService(settings).search_packages("nginx") == []
