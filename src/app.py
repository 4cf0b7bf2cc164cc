"""
Case Tracker Backend API Server
Core functionality: criminal cases, incident reports, deadlines, statistics and cloud backup
"""

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from config.settings import ALLOWED_ORIGINS
from api.routes import health, cases, reports, prosecutors, reference, statistics, export, backup, data
from services.workspace import Workspace
from utils.error_handling import setup_error_handling

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


def create_app(workspace: Optional[Workspace] = None) -> FastAPI:
    """Build the application; a workspace may be injected (tests), else one is built from settings"""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Application lifespan manager"""
        ws = workspace or Workspace.from_settings()
        await ws.start()
        app.state.workspace = ws
        yield
        await ws.stop()

    app = FastAPI(
        title="Case Tracker Backend",
        description="Backend API for criminal case and incident report tracking",
        version="1.0.0",
        lifespan=lifespan
    )

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=ALLOWED_ORIGINS,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["*"],
    )

    setup_error_handling(app)

    app.include_router(health.router, tags=["Health"])
    app.include_router(cases.router, prefix="/api/cases", tags=["Cases"])
    app.include_router(reports.router, prefix="/api/reports", tags=["Reports"])
    app.include_router(prosecutors.router, prefix="/api/prosecutors", tags=["Prosecutors"])
    app.include_router(reference.router, prefix="/api/reference", tags=["Reference"])
    app.include_router(statistics.router, prefix="/api/statistics", tags=["Statistics"])
    app.include_router(export.router, prefix="/api/export", tags=["Export"])
    app.include_router(backup.router, prefix="/api/backup", tags=["Backup"])
    app.include_router(data.router, prefix="/api/data", tags=["Local Data"])

    return app


# FastAPI app instance is exported for use by uvicorn
# Server startup is handled by main.py at the project root
app = create_app()
