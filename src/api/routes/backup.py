"""
Cloud backup and restore API routes
"""

import logging

from fastapi import APIRouter, Depends

from api.dependencies import get_workspace
from services.workspace import Workspace
from utils.auth import AuthConfig, AuthContext

router = APIRouter()
logger = logging.getLogger(__name__)


@router.post("")
async def backup_to_cloud(
    workspace: Workspace = Depends(get_workspace),
    auth: AuthContext = Depends(AuthConfig.get_auth_dependency())
):
    """Upload all cases and reports, replacing the user's previous backup"""
    counts = await workspace.backup(auth.user_id, auth.access_token)
    return {"message": "Backup completed", "user_id": auth.user_id, **counts}


@router.post("/restore")
async def restore_from_cloud(
    workspace: Workspace = Depends(get_workspace),
    auth: AuthContext = Depends(AuthConfig.get_auth_dependency())
):
    """Replace local cases and reports with the user's backup, all or nothing"""
    counts = await workspace.restore(auth.user_id, auth.access_token)
    return {"message": "Restore completed", "user_id": auth.user_id, **counts}
