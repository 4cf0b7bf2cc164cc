"""
Excel export API routes
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query
from fastapi.responses import Response

from api.dependencies import get_workspace
from models.enums import CaseStage, ReportStage
from models.case import CaseSearchQuery
from models.report import ReportSearchQuery
from services import export_service, statistics_service
from services.workspace import Workspace
from utils.auth import AuthConfig, AuthContext

router = APIRouter()


def _xlsx(content: bytes, filename: str) -> Response:
    return Response(
        content=content,
        media_type=export_service.XLSX_MEDIA_TYPE,
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.get("/cases")
async def export_cases(
    search: Optional[str] = Query(None),
    prosecutor: Optional[str] = Query(None),
    stage: Optional[CaseStage] = Query(None),
    expiring_soon: bool = Query(False),
    workspace: Workspace = Depends(get_workspace),
    _: AuthContext = Depends(AuthConfig.get_auth_dependency())
):
    """Export the (filtered) case list"""
    query = CaseSearchQuery(search=search, prosecutor=prosecutor, stage=stage, expiring_soon=expiring_soon)
    cases = workspace.cases.search_cases(query)
    rows = export_service.case_rows(cases, workspace.cases.shortest_detention)
    content = export_service.build_workbook(rows, export_service.CASE_COLUMNS)
    return _xlsx(content, export_service.export_filename("danh-sach-vu-an"))


@router.get("/reports")
async def export_reports(
    search: Optional[str] = Query(None),
    prosecutor: Optional[str] = Query(None),
    stage: Optional[ReportStage] = Query(None),
    expiring_soon: bool = Query(False),
    workspace: Workspace = Depends(get_workspace),
    _: AuthContext = Depends(AuthConfig.get_auth_dependency())
):
    query = ReportSearchQuery(search=search, prosecutor=prosecutor, stage=stage, expiring_soon=expiring_soon)
    rows = export_service.report_rows(workspace.reports.search_reports(query))
    content = export_service.build_workbook(rows, export_service.REPORT_COLUMNS)
    return _xlsx(content, export_service.export_filename("danh-sach-tin-bao"))


@router.get("/case-statistics")
async def export_case_statistics(
    from_date: Optional[str] = Query(None, alias="from"),
    to_date: Optional[str] = Query(None, alias="to"),
    workspace: Workspace = Depends(get_workspace),
    _: AuthContext = Depends(AuthConfig.get_auth_dependency())
):
    stats = statistics_service.case_statistics(workspace.cases.list(), from_date, to_date)
    content = export_service.build_workbook(
        export_service.case_statistics_rows(stats),
        export_service.CASE_STATISTICS_COLUMNS,
    )
    return _xlsx(content, export_service.export_filename("thong-ke-vu-an", stats.from_date, stats.to_date))


@router.get("/report-statistics")
async def export_report_statistics(
    from_date: Optional[str] = Query(None, alias="from"),
    to_date: Optional[str] = Query(None, alias="to"),
    workspace: Workspace = Depends(get_workspace),
    _: AuthContext = Depends(AuthConfig.get_auth_dependency())
):
    stats = statistics_service.report_statistics(workspace.reports.list(), from_date, to_date)
    content = export_service.build_workbook(
        export_service.report_statistics_rows(stats),
        export_service.REPORT_STATISTICS_COLUMNS,
    )
    return _xlsx(content, export_service.export_filename("thong-ke-tin-bao", stats.from_date, stats.to_date))
