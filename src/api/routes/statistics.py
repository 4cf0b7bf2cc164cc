"""
Statistics API routes
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query

from api.dependencies import get_workspace
from models.statistics import CaseStatistics, ReportStatistics
from services import statistics_service
from services.workspace import Workspace
from utils.auth import AuthConfig, AuthContext

router = APIRouter()


@router.get("/cases", response_model=CaseStatistics)
async def get_case_statistics(
    from_date: Optional[str] = Query(None, alias="from", description="dd/mm/yyyy, defaults to today"),
    to_date: Optional[str] = Query(None, alias="to", description="dd/mm/yyyy, defaults to today"),
    workspace: Workspace = Depends(get_workspace),
    _: AuthContext = Depends(AuthConfig.get_auth_dependency())
):
    """New, processed and per-stage case counts for cases created in [from, to]"""
    return statistics_service.case_statistics(workspace.cases.list(), from_date, to_date)


@router.get("/reports", response_model=ReportStatistics)
async def get_report_statistics(
    from_date: Optional[str] = Query(None, alias="from"),
    to_date: Optional[str] = Query(None, alias="to"),
    workspace: Workspace = Depends(get_workspace),
    _: AuthContext = Depends(AuthConfig.get_auth_dependency())
):
    return statistics_service.report_statistics(workspace.reports.list(), from_date, to_date)
