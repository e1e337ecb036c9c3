"""
On-disk cache of downloaded repository indexes.

Every repository owns two files named after it:
    <cache dir>/<name>-index.yaml   serialized IndexDocument
    <cache dir>/<name>-charts.txt   chart names, one per line
"""
from __future__ import annotations

import logging
from pathlib import Path
from typing import List

import aiofiles
import yaml

from chartrepo.domain.errors import CacheLoadError, ConfigError
from chartrepo.domain.models import IndexDocument

logger = logging.getLogger(__name__)


class IndexCache:
    def __init__(self, cache_dir: Path):
        self.cache_dir = Path(cache_dir)

    def index_path(self, name: str) -> Path:
        return self.cache_dir / f"{name}-index.yaml"

    def charts_path(self, name: str) -> Path:
        return self.cache_dir / f"{name}-charts.txt"

    def load(self, name: str) -> IndexDocument:
        """
        Read the cached index of a repository.

        Raises CacheLoadError if the file is missing, unreadable or not a valid index.
        """
        path = self.index_path(name)
        try:
            raw = yaml.safe_load(path.read_text(encoding="utf-8"))
        except FileNotFoundError as e:
            raise CacheLoadError(f"no cached index for {name!r} at {path}") from e
        except (OSError, UnicodeDecodeError, yaml.YAMLError) as e:
            raise CacheLoadError(f"failed to read cached index {path}: {e}") from e

        try:
            return IndexDocument.from_raw(raw)
        except ValueError as e:
            raise CacheLoadError(f"cached index {path} is corrupt: {e}") from e

    async def write(self, name: str, document: IndexDocument) -> Path:
        """
        Store a freshly fetched index, replacing any previous one.

        Content goes to a temp file first so readers never see a partial index.
        """
        self.cache_dir.mkdir(parents=True, exist_ok=True)
        index_path = self.index_path(name)

        await _write_replace(index_path, yaml.safe_dump(document.to_raw(), sort_keys=False))
        await _write_replace(self.charts_path(name), "".join(f"{c}\n" for c in document.chart_names()))

        logger.debug(f"Wrote cached index for {name!r} to {index_path}")
        return index_path

    def purge(self, name: str) -> List[Path]:
        """Delete the cache files of a repository and return the ones that existed."""
        removed: List[Path] = []

        charts = self.charts_path(name)
        if charts.exists():
            charts.unlink(missing_ok=True)
            removed.append(charts)

        index = self.index_path(name)
        try:
            index.unlink()
            removed.append(index)
        except FileNotFoundError:
            pass
        except OSError as e:
            raise ConfigError(f"can't remove index file {index}: {e}") from e

        return removed


async def _write_replace(path: Path, content: str) -> None:
    tmp_path = path.with_name(f"{path.name}.tmp")
    try:
        async with aiofiles.open(tmp_path, "w", encoding="utf-8") as f:
            await f.write(content)
        tmp_path.replace(path)
    except BaseException:
        tmp_path.unlink(missing_ok=True)
        raise
