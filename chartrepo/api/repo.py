from __future__ import annotations

import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel, Field

from chartrepo.core.dependencies import get_chart_repo_service
from chartrepo.domain.models import RepositoryEntry, ScoredResult, SyncReport
from chartrepo.services.chart_repo_service import ChartRepoService

logger = logging.getLogger(__name__)
router = APIRouter()


class ApiResult(BaseModel):
    """Outcome body shared by every mutating endpoint and by error responses."""

    result: bool = False
    message: str = ""
    error: str = ""


class RepositoryOut(BaseModel):
    name: str
    url: str
    username: Optional[str] = None


class SyncResult(ApiResult):
    reports: List[SyncReport] = Field(default_factory=list)


class ChartResult(BaseModel):
    name: str = Field(description="Chart name qualified by its repository, e.g. 'stable/nginx'.")
    chart: str
    repository: str
    version: str
    app_version: Optional[str] = None
    description: Optional[str] = None
    score: int

    @classmethod
    def from_scored(cls, r: ScoredResult) -> "ChartResult":
        meta = r.version_entry.metadata
        app_version = meta.get("appVersion")
        description = meta.get("description")
        return cls(
            name=r.full_name,
            chart=r.package_name,
            repository=r.repository_name,
            version=r.version,
            app_version=str(app_version) if app_version is not None else None,
            description=str(description) if description is not None else None,
            score=r.score,
        )


# ---------------------------------------------------------------------------
# Repositories
# ---------------------------------------------------------------------------

@router.get("/repo", response_model=List[RepositoryOut])
async def list_repositories(service: ChartRepoService = Depends(get_chart_repo_service)) -> List[RepositoryOut]:
    """
    List chart repositories.
    """
    return [
        RepositoryOut(name=e.name, url=e.url, username=e.auth.username if e.auth else None)
        for e in service.list_repositories()
    ]


@router.post("/repo", status_code=status.HTTP_201_CREATED, response_model=ApiResult)
async def add_repository(
    entry: RepositoryEntry,
    service: ChartRepoService = Depends(get_chart_repo_service),
) -> ApiResult:
    """
    Add a chart repository.
    """
    service.add_repository(entry)
    return ApiResult(result=True, message=f"{entry.name} has been added to your repositories")


@router.put("/repo", response_model=SyncResult)
async def sync_repositories(service: ChartRepoService = Depends(get_chart_repo_service)) -> SyncResult:
    """
    Update chart repositories.

    Individual repository failures are listed in the reports; the call itself
    still succeeds.
    """
    reports = await service.sync_repositories()
    return SyncResult(result=True, message="Update Complete. Happy Helming!", reports=reports)


@router.delete("/repo/{repo_name}", response_model=ApiResult)
async def remove_repository(
    repo_name: str,
    service: ChartRepoService = Depends(get_chart_repo_service),
) -> ApiResult:
    """
    Remove a chart repository and its cached index.
    """
    service.remove_repositories([repo_name])
    return ApiResult(result=True, message=f"{repo_name} has been removed from your repositories")


# ---------------------------------------------------------------------------
# Search
# ---------------------------------------------------------------------------

@router.get("/search/repo", response_model=List[ChartResult])
async def search_repositories(
    keyword: str = Query(default="", description="Keyword (or regular expression with regexp=true)."),
    version: Optional[str] = Query(default=None, description="Semantic version constraint, e.g. ^1.0.0."),
    devel: bool = Query(default=False, description="Include pre-release versions."),
    versions: bool = Query(default=False, description="Return every matching version, not just one per chart."),
    regexp: bool = Query(default=False, description="Treat keyword as a regular expression."),
    service: ChartRepoService = Depends(get_chart_repo_service),
) -> List[ChartResult]:
    """
    Search charts in the configured repositories.

    Uses the locally cached indexes, so run an update first to see the
    latest charts.
    """
    results = service.search_packages(
        keyword,
        constraint=version,
        include_prerelease=devel,
        keep_all_versions=versions,
        regex=regexp,
    )
    return [ChartResult.from_scored(r) for r in results]
