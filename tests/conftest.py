"""Shared fixtures: temp settings, fake fetchers and cache helpers."""

from typing import Dict, List, Optional

import pytest
import yaml

from chartrepo.core.settings import Settings
from chartrepo.domain.errors import FetchError
from chartrepo.domain.models import IndexDocument, RepositoryEntry
from chartrepo.services.fetcher import IndexFetcher
from chartrepo.storage.config_store import RepositoryConfigStore
from chartrepo.storage.index_cache import IndexCache


def build_document(charts: Dict[str, List[str]]) -> IndexDocument:
    return IndexDocument.from_raw(
        {
            "apiVersion": "v1",
            "entries": {
                name: [{"version": v, "description": f"{name} chart", "appVersion": v} for v in versions]
                for name, versions in charts.items()
            },
        }
    )


class FakeFetcher(IndexFetcher):
    """Serves canned documents; names listed in failures raise FetchError."""

    def __init__(self, index_cache: IndexCache, documents: Dict[str, IndexDocument], failures: Optional[Dict[str, str]] = None):
        self.index_cache = index_cache
        self.documents = documents
        self.failures = failures or {}
        self.calls: List[str] = []

    async def fetch(self, entry: RepositoryEntry) -> IndexDocument:
        self.calls.append(entry.name)
        if entry.name in self.failures:
            raise FetchError(self.failures[entry.name])
        return self.documents[entry.name]

    def cache_path(self, name: str):
        return self.index_cache.index_path(name)


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings.for_data_dir(tmp_path)


@pytest.fixture
def index_cache(settings) -> IndexCache:
    return IndexCache(settings.repository_cache)


@pytest.fixture
def make_document():
    return build_document


@pytest.fixture
def write_cache(index_cache):
    """Write an index straight into the cache directory, bypassing the synchronizer."""

    def _write(name: str, charts: Dict[str, List[str]]) -> IndexDocument:
        document = build_document(charts)
        index_cache.cache_dir.mkdir(parents=True, exist_ok=True)
        index_cache.index_path(name).write_text(yaml.safe_dump(document.to_raw()), encoding="utf-8")
        return document

    return _write


@pytest.fixture
def configure_repos(settings, index_cache):
    """Persist a repositories.yaml with the given names."""

    def _configure(*names: str) -> List[RepositoryEntry]:
        store = RepositoryConfigStore(settings.repository_config, index_cache=index_cache)
        entries = [RepositoryEntry(name=n, url=f"https://charts.example.com/{n}") for n in names]
        for entry in entries:
            store.add(entry)
        store.save()
        return entries

    return _configure


@pytest.fixture
def fake_fetcher(index_cache):
    def _make(documents: Dict[str, IndexDocument], failures: Optional[Dict[str, str]] = None) -> FakeFetcher:
        return FakeFetcher(index_cache, documents, failures)

    return _make


@pytest.fixture
def scenario_repos(configure_repos, write_cache):
    """stable: nginx 1.0.0 and 2.0.0; incubator: nginx 1.5.0-rc.1."""
    entries = configure_repos("stable", "incubator")
    write_cache("stable", {"nginx": ["1.0.0", "2.0.0"]})
    write_cache("incubator", {"nginx": ["1.5.0-rc.1"]})
    return entries
