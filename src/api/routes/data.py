"""
Local data file export/import API routes
"""

from typing import Any

from fastapi import APIRouter, Body, Depends

from api.dependencies import get_workspace
from services.workspace import Workspace
from utils.auth import AuthConfig, AuthContext

router = APIRouter()


@router.get("/export")
async def export_local_data(
    workspace: Workspace = Depends(get_workspace),
    _: AuthContext = Depends(AuthConfig.get_auth_dependency())
):
    """All local collections as one JSON document"""
    return workspace.export_local_data()


@router.post("/import")
async def import_local_data(
    document: Any = Body(...),
    workspace: Workspace = Depends(get_workspace),
    _: AuthContext = Depends(AuthConfig.get_auth_dependency())
):
    """Overwrite every local collection from an exported document"""
    counts = await workspace.import_local_data(document)
    return {"message": "Import completed", **counts}
