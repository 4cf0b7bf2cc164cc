"""
Criminal code reference lookup
"""

from typing import List

from fastapi import APIRouter, Depends, Query

from api.dependencies import get_workspace
from models.prosecutor import CriminalCodeItem
from services.workspace import Workspace
from utils.auth import AuthConfig, AuthContext

router = APIRouter()


@router.get("/criminal-code", response_model=List[CriminalCodeItem])
async def search_criminal_code(
    q: str = Query("", description="Article number or words from the title"),
    workspace: Workspace = Depends(get_workspace),
    _: AuthContext = Depends(AuthConfig.get_auth_dependency())
):
    return workspace.criminal_code.search(q)
