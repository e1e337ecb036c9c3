from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from chartrepo.domain.semver_utils import version_sort_key


class RepositoryAuth(BaseModel):
    """
    Credentials and TLS options for a single chart repository.

    The core never looks inside this object; only the index fetcher does.
    """

    username: Optional[str] = None
    password: Optional[str] = None
    ca_file: Optional[str] = None
    cert_file: Optional[str] = None
    key_file: Optional[str] = None
    insecure_skip_tls_verify: bool = False

    def is_empty(self) -> bool:
        return not any(
            [
                self.username,
                self.password,
                self.ca_file,
                self.cert_file,
                self.key_file,
                self.insecure_skip_tls_verify,
            ]
        )


class RepositoryEntry(BaseModel):
    """
    A named remote chart repository.
    Persisted in: <repository config>/repositories.yaml
    """

    name: str
    url: str
    auth: Optional[RepositoryAuth] = None

    @field_validator("name")
    @classmethod
    def _name_not_blank(cls, value: str) -> str:
        value = (value or "").strip()
        if not value:
            raise ValueError("repository name must not be empty")
        if "/" in value or "\\" in value:
            raise ValueError(f"repository name ({value}) contains a path separator, please specify a different name")
        return value


class RepositoryFile(BaseModel):
    """
    Top-level document of the repository configuration file.
    """

    api_version: str = Field(default="", description="Format version of the file.")
    generated: datetime = Field(
        default_factory=datetime.utcnow,
        description="Timestamp when this file was first generated.",
    )
    repositories: List[RepositoryEntry] = Field(default_factory=list)


class VersionEntry(BaseModel):
    """One published version of a chart, plus whatever metadata the index carries."""

    model_config = ConfigDict(frozen=True)

    version: str
    metadata: Dict[str, Any] = Field(default_factory=dict)


def _parse_generated(value: Any) -> Optional[datetime]:
    """YAML loads well-formed timestamps as datetime; quoted ones arrive as ISO strings."""
    if isinstance(value, datetime):
        return value
    if isinstance(value, str):
        try:
            return datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            return None
    return None


class IndexDocument(BaseModel):
    """
    The parsed index of one repository: chart name -> ordered versions.

    Superseded wholesale on every successful sync of its repository.
    """

    model_config = ConfigDict(frozen=True)

    api_version: str = "v1"
    generated: Optional[datetime] = None
    entries: Dict[str, List[VersionEntry]] = Field(default_factory=dict)

    @classmethod
    def from_raw(cls, raw: Any) -> "IndexDocument":
        """
        Build a document from a decoded index.yaml mapping.

        Chart versions that are not mappings or lack a version are dropped.
        """
        if not isinstance(raw, dict):
            raise ValueError("index document must be a mapping")

        raw_entries = raw.get("entries") or {}
        if not isinstance(raw_entries, dict):
            raise ValueError("index 'entries' must be a mapping")

        entries: Dict[str, List[VersionEntry]] = {}
        for chart_name, raw_versions in raw_entries.items():
            versions: List[VersionEntry] = []
            for item in raw_versions or []:
                if not isinstance(item, dict) or item.get("version") is None:
                    continue
                metadata = {k: v for k, v in item.items() if k != "version"}
                versions.append(VersionEntry(version=str(item["version"]), metadata=metadata))
            entries[str(chart_name)] = versions

        generated = _parse_generated(raw.get("generated"))

        return cls(
            api_version=str(raw.get("apiVersion") or "v1"),
            generated=generated,
            entries=entries,
        )

    def to_raw(self) -> Dict[str, Any]:
        """Inverse of from_raw, in the index.yaml layout."""
        data: Dict[str, Any] = {
            "apiVersion": self.api_version,
            "entries": {
                name: [{"version": v.version, **v.metadata} for v in versions]
                for name, versions in self.entries.items()
            },
        }
        if self.generated is not None:
            data["generated"] = self.generated
        return data

    def sort_entries(self) -> "IndexDocument":
        """
        Return a copy whose versions are ordered newest first.

        Versions that are not valid semver keep their relative order at the end.
        """
        return self.model_copy(
            update={
                "entries": {
                    name: sorted(versions, key=lambda v: version_sort_key(v.version))
                    for name, versions in self.entries.items()
                }
            }
        )

    def chart_names(self) -> List[str]:
        return sorted(self.entries.keys())


class SearchRow(BaseModel):
    """One (chart, repository, version) triple contributed to the search index."""

    model_config = ConfigDict(frozen=True)

    package_name: str
    repository_name: str
    version_entry: VersionEntry

    @property
    def version(self) -> str:
        return self.version_entry.version

    @property
    def full_name(self) -> str:
        return f"{self.repository_name}/{self.package_name}"


class ScoredResult(SearchRow):
    """A search row with its match score. Lower is better."""

    score: int = 0


class SyncOutcome(str, Enum):
    SUCCESS = "success"
    FAILURE = "failure"


class SyncReport(BaseModel):
    """Result of refreshing one repository."""

    repository_name: str
    outcome: SyncOutcome
    reason: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.outcome == SyncOutcome.SUCCESS

    @classmethod
    def success(cls, repository_name: str) -> "SyncReport":
        return cls(repository_name=repository_name, outcome=SyncOutcome.SUCCESS)

    @classmethod
    def failure(cls, repository_name: str, reason: str) -> "SyncReport":
        return cls(repository_name=repository_name, outcome=SyncOutcome.FAILURE, reason=reason)
