"""
Incident report API routes
"""

import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, Query

from api.dependencies import get_workspace
from models.case import CaseCreateRequest
from models.enums import ReportStage
from models.report import Report, ReportCreateRequest, ReportSearchQuery, ReportStageRequest, ReportUpdateRequest
from services.workspace import Workspace
from utils.auth import AuthConfig, AuthContext

router = APIRouter()
logger = logging.getLogger(__name__)


@router.post("", response_model=Report, status_code=201)
async def create_report(
    request: ReportCreateRequest,
    workspace: Workspace = Depends(get_workspace),
    _: AuthContext = Depends(AuthConfig.get_auth_dependency())
):
    """Register a new pending report"""
    return workspace.reports.create_report(request)


@router.get("", response_model=List[Report])
async def list_reports(
    search: Optional[str] = Query(None),
    prosecutor: Optional[str] = Query(None),
    stage: Optional[ReportStage] = Query(None),
    expiring_soon: bool = Query(False),
    workspace: Workspace = Depends(get_workspace),
    _: AuthContext = Depends(AuthConfig.get_auth_dependency())
):
    query = ReportSearchQuery(search=search, prosecutor=prosecutor, stage=stage, expiring_soon=expiring_soon)
    return workspace.reports.search_reports(query)


@router.get("/expiring", response_model=List[Report])
async def list_expiring_reports(
    workspace: Workspace = Depends(get_workspace),
    _: AuthContext = Depends(AuthConfig.get_auth_dependency())
):
    return workspace.reports.get_expiring_soon_reports()


@router.get("/{report_id}", response_model=Report)
async def get_report(
    report_id: str,
    workspace: Workspace = Depends(get_workspace),
    _: AuthContext = Depends(AuthConfig.get_auth_dependency())
):
    return workspace.reports.get(report_id)


@router.put("/{report_id}", response_model=Report)
async def update_report(
    report_id: str,
    request: ReportUpdateRequest,
    workspace: Workspace = Depends(get_workspace),
    _: AuthContext = Depends(AuthConfig.get_auth_dependency())
):
    return workspace.reports.update_report(report_id, request)


@router.delete("/{report_id}")
async def delete_report(
    report_id: str,
    workspace: Workspace = Depends(get_workspace),
    _: AuthContext = Depends(AuthConfig.get_auth_dependency())
):
    workspace.reports.delete_report(report_id)
    return {"message": "Report deleted successfully", "id": report_id}


@router.get("/{report_id}/case-draft", response_model=CaseCreateRequest)
async def get_case_draft(
    report_id: str,
    workspace: Workspace = Depends(get_workspace),
    _: AuthContext = Depends(AuthConfig.get_auth_dependency())
):
    """Case form prefilled from the report; nothing is stored"""
    return workspace.case_draft(report_id)


@router.post("/{report_id}/stage")
async def transfer_report_stage(
    report_id: str,
    request: ReportStageRequest,
    workspace: Workspace = Depends(get_workspace),
    _: AuthContext = Depends(AuthConfig.get_auth_dependency())
):
    """
    Resolve a pending report. Prosecuting also creates the case; both are
    returned.
    """
    result = workspace.transfer_report(report_id, request.stage, request.decision_date)
    created = result["case"]
    return {
        "report": result["report"].to_record(),
        "case": created.to_record() if created else None,
    }
