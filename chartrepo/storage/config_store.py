from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional

import yaml
from pydantic import ValidationError

from chartrepo.domain.errors import (
    ConfigError,
    ConfigNotFoundError,
    DuplicateNameError,
    RepositoryNotFoundError,
    WriteFailureError,
)
from chartrepo.domain.models import RepositoryAuth, RepositoryEntry, RepositoryFile
from chartrepo.storage.index_cache import IndexCache

logger = logging.getLogger(__name__)

# repositories.yaml key -> RepositoryAuth field
_AUTH_KEYS = {
    "username": "username",
    "password": "password",
    "caFile": "ca_file",
    "certFile": "cert_file",
    "keyFile": "key_file",
    "insecure_skip_tls_verify": "insecure_skip_tls_verify",
}


def _entry_from_raw(raw: Dict[str, Any]) -> RepositoryEntry:
    auth_values = {field: raw[key] for key, field in _AUTH_KEYS.items() if raw.get(key) is not None}
    auth = RepositoryAuth(**auth_values) if auth_values else None
    return RepositoryEntry(name=raw.get("name") or "", url=raw.get("url") or "", auth=auth)


def _entry_to_raw(entry: RepositoryEntry) -> Dict[str, Any]:
    data: Dict[str, Any] = {"name": entry.name, "url": entry.url}
    if entry.auth is not None and not entry.auth.is_empty():
        for key, field in _AUTH_KEYS.items():
            value = getattr(entry.auth, field)
            if value:
                data[key] = value
    return data


class RepositoryConfigStore:
    """
    Reads and writes the list of configured chart repositories.

    The file keeps the repositories.yaml layout: apiVersion, generated and an
    ordered list of {name, url, credentials...} records.
    """

    def __init__(self, config_path: Path, index_cache: Optional[IndexCache] = None):
        self.config_path = Path(config_path)
        self.index_cache = index_cache
        self._file: Optional[RepositoryFile] = None

    def load(self) -> List[RepositoryEntry]:
        """
        Load the repository list from disk.

        Raises ConfigNotFoundError if the file does not exist and ConfigError if
        it cannot be parsed.
        """
        path = self.config_path
        try:
            raw = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
        except FileNotFoundError as e:
            raise ConfigNotFoundError(path) from e
        except (OSError, yaml.YAMLError) as e:
            raise ConfigError(f"failed loading file: {path}: {e}") from e

        if not isinstance(raw, dict):
            raise ConfigError(f"failed loading file: {path}: not a mapping")

        try:
            repositories = [_entry_from_raw(r) for r in raw.get("repositories") or []]
            generated = raw.get("generated")
            self._file = RepositoryFile(
                api_version=str(raw.get("apiVersion") or ""),
                repositories=repositories,
                **({"generated": generated} if generated else {}),
            )
        except (ValidationError, TypeError, AttributeError) as e:
            raise ConfigError(f"failed loading file: {path}: {e}") from e

        return list(self._file.repositories)

    def _current(self) -> RepositoryFile:
        if self._file is None:
            try:
                self.load()
            except ConfigNotFoundError:
                self._file = RepositoryFile()
        return self._file

    def list(self) -> List[RepositoryEntry]:
        return list(self._current().repositories)

    def get(self, name: str) -> Optional[RepositoryEntry]:
        for entry in self._current().repositories:
            if entry.name == name:
                return entry
        return None

    def has(self, name: str) -> bool:
        return self.get(name) is not None

    def add(self, entry: RepositoryEntry) -> None:
        """Add a repository in memory; call save() to persist it."""
        if not (entry.name or "").strip():
            raise ConfigError("repository name cannot be empty")
        if self.has(entry.name):
            raise DuplicateNameError(entry.name)
        self._current().repositories.append(entry)

    def remove(self, names: Iterable[str]) -> List[str]:
        """
        Remove repositories by name, persisting and purging their cache one at a time.

        Stops at the first unknown name with RepositoryNotFoundError; the names
        removed before it stay removed.
        """
        data = self._current()
        removed: List[str] = []
        for name in names:
            current = data.repositories
            remaining = [e for e in current if e.name != name]
            if len(remaining) == len(current):
                raise RepositoryNotFoundError(name)

            data.repositories = remaining
            self.save()
            if self.index_cache is not None:
                self.index_cache.purge(name)

            logger.info(f"{name!r} has been removed from your repositories")
            removed.append(name)
        return removed

    def save(self) -> None:
        """Persist the repository list, replacing the file atomically."""
        data = self._current()
        content = yaml.safe_dump(
            {
                "apiVersion": data.api_version,
                "generated": data.generated.isoformat(),
                "repositories": [_entry_to_raw(e) for e in data.repositories],
            },
            sort_keys=False,
        )

        path = self.config_path
        tmp_path = path.with_name(f"{path.name}.tmp")
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            tmp_path.write_text(content, encoding="utf-8")
            os.replace(tmp_path, path)
        except OSError as e:
            tmp_path.unlink(missing_ok=True)
            raise WriteFailureError(f"failed writing {path}: {e}") from e

        logger.debug(f"Saved {len(data.repositories)} repositories to {path}")