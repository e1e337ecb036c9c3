from fastapi import Request

from chartrepo.services.chart_repo_service import ChartRepoService


def get_chart_repo_service(request: Request) -> ChartRepoService:
    return request.app.state.chart_repo_service
