from __future__ import annotations

import os
from pathlib import Path
from typing import Mapping, Optional

from pydantic import BaseModel, Field

DATA_ROOT_ENV_VAR = "CHARTREPO_DATA_DIR"
REPOSITORY_CONFIG_ENV_VAR = "CHARTREPO_REPOSITORY_CONFIG"
REPOSITORY_CACHE_ENV_VAR = "CHARTREPO_REPOSITORY_CACHE"
DEBUG_ENV_VAR = "CHARTREPO_DEBUG"
FETCH_TIMEOUT_ENV_VAR = "CHARTREPO_FETCH_TIMEOUT"
MAX_SCORE_ENV_VAR = "CHARTREPO_MAX_SCORE"

# Resolve repository root (project root, not the Python package root)
_REPO_ROOT = Path(__file__).resolve().parents[2]
_DEFAULT_DATA_DIR = _REPO_ROOT / "data"

_TRUTHY = {"1", "true", "yes", "on"}


class Settings(BaseModel):
    """
    Paths and flags shared by the components of one service instance.

    Built once and handed to each component explicitly.
    """

    repository_config: Path = Field(description="Path to the file containing repository names and URLs.")
    repository_cache: Path = Field(description="Directory holding cached repository indexes.")
    debug: bool = Field(default=False, description="Enable debug logging.")
    fetch_timeout: float = Field(default=60.0, gt=0, description="Timeout in seconds for one index download.")
    max_score: int = Field(default=25, ge=0, description="Any search score higher than this is not a match.")

    @classmethod
    def for_data_dir(cls, data_dir: Path, **overrides) -> "Settings":
        data_dir = Path(data_dir)
        return cls(
            repository_config=data_dir / "repository" / "repositories.yaml",
            repository_cache=data_dir / "repository" / "cache",
            **overrides,
        )

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "Settings":
        """
        Determine settings from the environment.

        Priority for every path:
        1. Its own environment variable
        2. '<data dir>/repository/...' where the data dir is CHARTREPO_DATA_DIR
           or '<workspace root>/data'
        """
        env = os.environ if environ is None else environ

        data_env = env.get(DATA_ROOT_ENV_VAR)
        data_dir = Path(data_env).expanduser() if data_env else _DEFAULT_DATA_DIR
        settings = cls.for_data_dir(data_dir)

        updates = {}
        if env.get(REPOSITORY_CONFIG_ENV_VAR):
            updates["repository_config"] = Path(env[REPOSITORY_CONFIG_ENV_VAR]).expanduser()
        if env.get(REPOSITORY_CACHE_ENV_VAR):
            updates["repository_cache"] = Path(env[REPOSITORY_CACHE_ENV_VAR]).expanduser()
        if env.get(DEBUG_ENV_VAR):
            updates["debug"] = env[DEBUG_ENV_VAR].strip().lower() in _TRUTHY
        if env.get(FETCH_TIMEOUT_ENV_VAR):
            updates["fetch_timeout"] = env[FETCH_TIMEOUT_ENV_VAR]
        if env.get(MAX_SCORE_ENV_VAR):
            updates["max_score"] = env[MAX_SCORE_ENV_VAR]

        if not updates:
            return settings
        return cls(**{**settings.model_dump(), **updates})
