"""
Incident report Pydantic models
"""

from typing import Optional

from pydantic import Field

from models.base import CamelModel, DateStr
from models.enums import ReportStage


class Report(CamelModel):
    id: str
    name: str
    charges: str
    resolution_deadline: DateStr
    prosecutor: str
    prosecutor_id: Optional[str] = None
    notes: Optional[str] = None
    stage: ReportStage = ReportStage.PENDING
    prosecution_date: Optional[DateStr] = None
    resolution_date: Optional[DateStr] = None
    created_at: DateStr


class ReportCreateRequest(CamelModel):
    name: str = Field(..., min_length=1)
    charges: str = Field(..., min_length=1)
    resolution_deadline: DateStr
    prosecutor: Optional[str] = None
    prosecutor_id: Optional[str] = None
    notes: Optional[str] = None


class ReportUpdateRequest(CamelModel):
    name: Optional[str] = Field(None, min_length=1)
    charges: Optional[str] = Field(None, min_length=1)
    resolution_deadline: Optional[DateStr] = None
    prosecutor: Optional[str] = None
    prosecutor_id: Optional[str] = None
    notes: Optional[str] = None
    prosecution_date: Optional[DateStr] = None
    resolution_date: Optional[DateStr] = None


class ReportStageRequest(CamelModel):
    stage: ReportStage
    decision_date: Optional[DateStr] = Field(None, description="Defaults to today")


class ReportSearchQuery(CamelModel):
    search: Optional[str] = None
    prosecutor: Optional[str] = None
    stage: Optional[ReportStage] = None
    expiring_soon: bool = False
