"""
Health check API route
"""

from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException

from api.dependencies import get_workspace
from services.workspace import Workspace

router = APIRouter()


@router.get("/")
async def health_check(workspace: Workspace = Depends(get_workspace)):
    """
    Health check - reports cache store readiness and autosave state.

    A failed autosave does not make the service unhealthy; the in-memory
    collections stay authoritative and the error is reported here.
    """
    info = workspace.health()
    if not info["cache_ready"]:
        raise HTTPException(status_code=503, detail="Cache store not ready")

    return {
        "status": "degraded" if info["last_save_error"] else "healthy",
        "timestamp": datetime.utcnow().isoformat(),
        **info,
    }
