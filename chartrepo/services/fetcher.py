"""
Retrieve chart repository indexes from their remote source.
"""
from __future__ import annotations

import logging
import ssl
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Dict, Optional

import httpx
import yaml

from chartrepo.domain.errors import FetchError
from chartrepo.domain.models import IndexDocument, RepositoryEntry
from chartrepo.storage.index_cache import IndexCache

logger = logging.getLogger(__name__)

INDEX_FILE_NAME = "index.yaml"
DEFAULT_TIMEOUT = 60.0


class IndexFetcher(ABC):
    """
    Abstract source of repository indexes.

    Transport, authentication and timeouts are the fetcher's concern.
    """

    @abstractmethod
    async def fetch(self, entry: RepositoryEntry) -> IndexDocument:
        """Download and parse the index of one repository. Raises FetchError."""
        pass

    @abstractmethod
    def cache_path(self, name: str) -> Path:
        """Where the cached index of the named repository lives."""
        pass


def index_url(base_url: str) -> str:
    return f"{base_url.rstrip('/')}/{INDEX_FILE_NAME}"


class HttpIndexFetcher(IndexFetcher):
    """Fetches <repository url>/index.yaml over HTTP(S)."""

    def __init__(
        self,
        index_cache: IndexCache,
        timeout: float = DEFAULT_TIMEOUT,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.index_cache = index_cache
        self.timeout = timeout
        self.transport = transport

    def cache_path(self, name: str) -> Path:
        return self.index_cache.index_path(name)

    def _client_options(self, entry: RepositoryEntry) -> Dict[str, Any]:
        options: Dict[str, Any] = {"follow_redirects": True, "timeout": self.timeout}
        if self.transport is not None:
            options["transport"] = self.transport
        auth = entry.auth
        if auth is None:
            return options

        if auth.username or auth.password:
            options["auth"] = httpx.BasicAuth(auth.username or "", auth.password or "")
        if auth.insecure_skip_tls_verify:
            options["verify"] = False
        elif auth.ca_file or auth.cert_file:
            context = ssl.create_default_context(cafile=auth.ca_file)
            if auth.cert_file:
                context.load_cert_chain(auth.cert_file, auth.key_file)
            options["verify"] = context
        return options

    async def fetch(self, entry: RepositoryEntry) -> IndexDocument:
        url = index_url(entry.url)
        logger.debug(f"Downloading {url} for repository {entry.name!r}")

        try:
            options = self._client_options(entry)
        except OSError as e:
            # ssl.SSLError is an OSError too
            raise FetchError(f"can't load TLS files for repository {entry.name!r}: {e}") from e

        try:
            async with httpx.AsyncClient(**options) as client:
                response = await client.get(url)
                response.raise_for_status()
        except httpx.HTTPError as e:
            raise FetchError(f"looks like {entry.url!r} is not a valid chart repository or cannot be reached: {e}") from e

        return parse_index(response.text, source=url)


def parse_index(text: str, source: Optional[str] = None) -> IndexDocument:
    """Parse index.yaml content, newest versions first. Raises FetchError."""
    try:
        raw = yaml.safe_load(text)
    except yaml.YAMLError as e:
        raise FetchError(f"invalid index {source or ''}: {e}") from e

    if not isinstance(raw, dict) or not raw.get("apiVersion"):
        raise FetchError(f"no API version specified in index {source or ''}".rstrip())

    try:
        return IndexDocument.from_raw(raw).sort_entries()
    except ValueError as e:
        raise FetchError(f"invalid index {source or ''}: {e}") from e
