"""
Case management API routes
"""

import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, Query

from api.dependencies import get_workspace
from models.case import (
    Case,
    CaseCreateRequest,
    CaseSearchQuery,
    CaseUpdateRequest,
    DefendantInput,
    ExtensionRequest,
    ImportantRequest,
    PreventiveMeasureRequest,
    QrScanRequest,
    StageTransferRequest,
)
from models.enums import CaseStage
from services import qr_service
from services.workspace import Workspace
from utils.auth import AuthConfig, AuthContext

router = APIRouter()
logger = logging.getLogger(__name__)


@router.post("", response_model=Case, status_code=201)
async def create_case(
    request: CaseCreateRequest,
    workspace: Workspace = Depends(get_workspace),
    _: AuthContext = Depends(AuthConfig.get_auth_dependency())
):
    """Create a new case in the investigation stage"""
    return workspace.cases.create_case(request)


@router.get("", response_model=List[Case])
async def list_cases(
    search: Optional[str] = Query(None, description="Substring match on name, charges and defendants"),
    prosecutor: Optional[str] = Query(None, description="Exact prosecutor name"),
    stage: Optional[CaseStage] = Query(None),
    expiring_soon: bool = Query(False),
    workspace: Workspace = Depends(get_workspace),
    _: AuthContext = Depends(AuthConfig.get_auth_dependency())
):
    """List cases in display order"""
    query = CaseSearchQuery(search=search, prosecutor=prosecutor, stage=stage, expiring_soon=expiring_soon)
    return workspace.cases.search_cases(query)


@router.get("/expiring", response_model=List[Case])
async def list_expiring_cases(
    workspace: Workspace = Depends(get_workspace),
    _: AuthContext = Depends(AuthConfig.get_auth_dependency())
):
    """Investigation-stage cases with an investigation or detention deadline expiring soon"""
    return workspace.cases.get_expiring_soon_cases()


@router.post("/scan", response_model=Case)
async def scan_case_label(
    request: QrScanRequest,
    workspace: Workspace = Depends(get_workspace),
    _: AuthContext = Depends(AuthConfig.get_auth_dependency())
):
    """Resolve scanned QR label text to its case"""
    return workspace.scan(request.qr_data)


@router.get("/{case_id}", response_model=Case)
async def get_case(
    case_id: str,
    workspace: Workspace = Depends(get_workspace),
    _: AuthContext = Depends(AuthConfig.get_auth_dependency())
):
    return workspace.cases.get_case(case_id)


@router.put("/{case_id}", response_model=Case)
async def update_case(
    case_id: str,
    request: CaseUpdateRequest,
    workspace: Workspace = Depends(get_workspace),
    _: AuthContext = Depends(AuthConfig.get_auth_dependency())
):
    """Update case fields from the edit form"""
    return workspace.cases.update_case(case_id, request)


@router.delete("/{case_id}")
async def delete_case(
    case_id: str,
    workspace: Workspace = Depends(get_workspace),
    _: AuthContext = Depends(AuthConfig.get_auth_dependency())
):
    workspace.cases.delete_case(case_id)
    return {"message": "Case deleted successfully", "id": case_id}


@router.post("/{case_id}/stage", response_model=Case)
async def transfer_case_stage(
    case_id: str,
    request: StageTransferRequest,
    workspace: Workspace = Depends(get_workspace),
    _: AuthContext = Depends(AuthConfig.get_auth_dependency())
):
    """Move a case to its next stage"""
    return workspace.cases.transfer_stage(
        case_id,
        request.stage,
        command_date=request.command_date,
        resolution_form=request.resolution_form,
    )


@router.post("/{case_id}/important", response_model=Case)
async def set_case_important(
    case_id: str,
    request: ImportantRequest,
    workspace: Workspace = Depends(get_workspace),
    _: AuthContext = Depends(AuthConfig.get_auth_dependency())
):
    return workspace.cases.toggle_important(case_id, request.is_important)


@router.post("/{case_id}/extensions", response_model=Case)
async def extend_case_deadline(
    case_id: str,
    request: ExtensionRequest,
    workspace: Workspace = Depends(get_workspace),
    _: AuthContext = Depends(AuthConfig.get_auth_dependency())
):
    """Extend the investigation deadline or a defendant's detention deadline"""
    return workspace.cases.extend_deadline(
        case_id,
        request.target,
        request.amount,
        unit=request.unit,
        defendant_id=request.defendant_id,
    )


@router.post("/{case_id}/defendants", response_model=Case, status_code=201)
async def add_defendant(
    case_id: str,
    request: DefendantInput,
    workspace: Workspace = Depends(get_workspace),
    _: AuthContext = Depends(AuthConfig.get_auth_dependency())
):
    return workspace.cases.add_defendant(case_id, request)


@router.delete("/{case_id}/defendants/{defendant_id}", response_model=Case)
async def remove_defendant(
    case_id: str,
    defendant_id: str,
    workspace: Workspace = Depends(get_workspace),
    _: AuthContext = Depends(AuthConfig.get_auth_dependency())
):
    return workspace.cases.remove_defendant(case_id, defendant_id)


@router.put("/{case_id}/defendants/{defendant_id}/preventive-measure", response_model=Case)
async def set_preventive_measure(
    case_id: str,
    defendant_id: str,
    request: PreventiveMeasureRequest,
    workspace: Workspace = Depends(get_workspace),
    _: AuthContext = Depends(AuthConfig.get_auth_dependency())
):
    """Change a defendant's custody status"""
    return workspace.cases.set_preventive_measure(
        case_id,
        defendant_id,
        request.preventive_measure,
        request.detention_deadline,
    )


@router.get("/{case_id}/qr")
async def get_case_qr(
    case_id: str,
    workspace: Workspace = Depends(get_workspace),
    _: AuthContext = Depends(AuthConfig.get_auth_dependency())
):
    """QR label payload and PNG (base64) for a case"""
    case = workspace.cases.get_case(case_id)
    qr_data = qr_service.encode_payload(case)
    return {
        "case_id": case.id,
        "qr_data": qr_data,
        "png_base64": qr_service.render_png_base64(qr_data),
    }
