"""
Case-related Pydantic models
"""

from typing import List, Optional

from pydantic import Field

from models.base import CamelModel, DateStr
from models.enums import CaseStage, DeadlineTarget, ExtensionUnit, PreventiveMeasure


class Defendant(CamelModel):
    id: str
    name: str
    charges: str = ""
    preventive_measure: PreventiveMeasure = PreventiveMeasure.AT_LARGE
    detention_deadline: Optional[DateStr] = None  # present iff detained


class DefendantInput(CamelModel):
    """Defendant as submitted by a form; id is kept when editing an existing defendant"""
    id: Optional[str] = None
    name: str = Field(..., min_length=1)
    charges: str = ""
    preventive_measure: PreventiveMeasure = PreventiveMeasure.AT_LARGE
    detention_deadline: Optional[DateStr] = None


class Case(CamelModel):
    id: str
    name: str
    charges: str
    investigation_deadline: Optional[DateStr] = None
    prosecutor: str
    prosecutor_id: Optional[str] = None
    supporting_prosecutors: List[str] = Field(default_factory=list)
    notes: Optional[str] = None
    stage: CaseStage = CaseStage.INVESTIGATION
    prosecution_transfer_date: Optional[DateStr] = None
    trial_transfer_date: Optional[DateStr] = None
    resolution_form: Optional[str] = None
    defendants: List[Defendant] = Field(default_factory=list)
    created_at: DateStr
    is_important: bool = False


class CaseCreateRequest(CamelModel):
    """Case form data; also produced by prosecuting a report"""
    name: str = Field(..., min_length=1)
    charges: str = Field(..., min_length=1)
    investigation_deadline: DateStr
    prosecutor: Optional[str] = None
    prosecutor_id: Optional[str] = None
    supporting_prosecutors: List[str] = Field(default_factory=list)
    notes: Optional[str] = None
    defendants: List[DefendantInput] = Field(default_factory=list)


class CaseUpdateRequest(CamelModel):
    name: Optional[str] = Field(None, min_length=1)
    charges: Optional[str] = Field(None, min_length=1)
    investigation_deadline: Optional[DateStr] = None
    prosecutor: Optional[str] = None
    prosecutor_id: Optional[str] = None
    supporting_prosecutors: Optional[List[str]] = None
    notes: Optional[str] = None
    resolution_form: Optional[str] = None
    prosecution_transfer_date: Optional[DateStr] = None
    trial_transfer_date: Optional[DateStr] = None
    defendants: Optional[List[DefendantInput]] = None


class StageTransferRequest(CamelModel):
    stage: CaseStage
    command_date: Optional[DateStr] = Field(None, description="Decision date; defaults to today")
    resolution_form: Optional[str] = None


class ImportantRequest(CamelModel):
    is_important: Optional[bool] = Field(None, description="Omit to toggle")


class ExtensionRequest(CamelModel):
    target: DeadlineTarget
    defendant_id: Optional[str] = Field(None, description="Required for detention extensions")
    amount: int
    unit: Optional[ExtensionUnit] = Field(None, description="Defaults to months for investigation, days for detention")


class PreventiveMeasureRequest(CamelModel):
    preventive_measure: PreventiveMeasure
    detention_deadline: Optional[DateStr] = None


class QrScanRequest(CamelModel):
    qr_data: str


class CaseSearchQuery(CamelModel):
    """Filters for case listings"""
    search: Optional[str] = Field(None, description="Substring match on name, charges and defendants")
    prosecutor: Optional[str] = Field(None, description="Exact match on prosecutor name")
    stage: Optional[CaseStage] = None
    expiring_soon: bool = False
