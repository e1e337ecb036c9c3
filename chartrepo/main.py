import logging
from typing import Optional

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from chartrepo.api.repo import ApiResult, router as repo_router
from chartrepo.core.settings import Settings
from chartrepo.domain.errors import (
    ChartRepoError,
    ConstraintSyntaxError,
    DuplicateNameError,
    NotFoundError,
    PatternError,
)
from chartrepo.services.chart_repo_service import ChartRepoService
from chartrepo.services.fetcher import IndexFetcher

logger = logging.getLogger(__name__)


def configure_logging(debug: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )


def _status_for(exc: ChartRepoError) -> int:
    if isinstance(exc, NotFoundError):
        return status.HTTP_404_NOT_FOUND
    if isinstance(exc, DuplicateNameError):
        return status.HTTP_409_CONFLICT
    if isinstance(exc, (PatternError, ConstraintSyntaxError)):
        return status.HTTP_400_BAD_REQUEST
    return status.HTTP_500_INTERNAL_SERVER_ERROR


def create_app(settings: Optional[Settings] = None, fetcher: Optional[IndexFetcher] = None) -> FastAPI:
    """
    Build the REST front end over one ChartRepoService.

    Settings default to the environment; tests pass their own settings and fetcher.
    """
    settings = settings or Settings.from_env()

    app = FastAPI(
        title="Chart Repository Search Service",
        version="0.1.0",
        description="Keeps a local cache of chart repository indexes and searches it.",
    )
    app.state.settings = settings
    app.state.chart_repo_service = ChartRepoService(settings, fetcher=fetcher)

    @app.exception_handler(ChartRepoError)
    async def chart_repo_error_handler(request: Request, exc: ChartRepoError) -> JSONResponse:
        logger.error(f"{request.method} {request.url.path} failed: {exc}")
        return JSONResponse(
            status_code=_status_for(exc),
            content=ApiResult(result=False, error=str(exc)).model_dump(),
        )

    @app.get("/health")
    async def health() -> dict:
        """
        Lightweight health check endpoint.
        """
        return {"status": "ok"}

    app.include_router(repo_router, prefix="/helm", tags=["repo"])
    return app


def main() -> None:
    """
    Start the Uvicorn server with settings taken from the environment.
    """
    import uvicorn

    settings = Settings.from_env()
    configure_logging(settings.debug)
    uvicorn.run(create_app(settings), host="0.0.0.0", port=8080)


if __name__ == "__main__":
    main()
