"""
Prosecutor directory API routes
"""

from typing import List, Optional

from fastapi import APIRouter, Depends, Query

from api.dependencies import get_workspace
from models.prosecutor import Prosecutor, ProsecutorCreateRequest, ProsecutorUpdateRequest
from services.workspace import Workspace
from utils.auth import AuthConfig, AuthContext

router = APIRouter()


@router.get("", response_model=List[Prosecutor])
async def list_prosecutors(
    q: Optional[str] = Query(None, description="Match on name, title or department"),
    workspace: Workspace = Depends(get_workspace),
    _: AuthContext = Depends(AuthConfig.get_auth_dependency())
):
    return workspace.prosecutors.search(q)


@router.post("", response_model=Prosecutor, status_code=201)
async def create_prosecutor(
    request: ProsecutorCreateRequest,
    workspace: Workspace = Depends(get_workspace),
    _: AuthContext = Depends(AuthConfig.get_auth_dependency())
):
    return workspace.prosecutors.create_prosecutor(request)


@router.get("/{prosecutor_id}", response_model=Prosecutor)
async def get_prosecutor(
    prosecutor_id: str,
    workspace: Workspace = Depends(get_workspace),
    _: AuthContext = Depends(AuthConfig.get_auth_dependency())
):
    return workspace.prosecutors.get(prosecutor_id)


@router.put("/{prosecutor_id}", response_model=Prosecutor)
async def update_prosecutor(
    prosecutor_id: str,
    request: ProsecutorUpdateRequest,
    workspace: Workspace = Depends(get_workspace),
    _: AuthContext = Depends(AuthConfig.get_auth_dependency())
):
    """Update a prosecutor; a new name is shown on every linked case and report"""
    return workspace.update_prosecutor(prosecutor_id, request)


@router.delete("/{prosecutor_id}")
async def delete_prosecutor(
    prosecutor_id: str,
    workspace: Workspace = Depends(get_workspace),
    _: AuthContext = Depends(AuthConfig.get_auth_dependency())
):
    workspace.delete_prosecutor(prosecutor_id)
    return {"message": "Prosecutor deleted successfully", "id": prosecutor_id}
