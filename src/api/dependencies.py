"""
Shared FastAPI dependencies
"""

from fastapi import Request

from services.workspace import Workspace


def get_workspace(request: Request) -> Workspace:
    """The workspace attached to the app by the lifespan manager"""
    return request.app.state.workspace
