"""
Statistics response models
"""

from typing import Dict

from pydantic import Field

from models.base import CamelModel


class StageTally(CamelModel):
    cases: int = 0
    defendants: int = 0


class CaseStatistics(CamelModel):
    from_date: str
    to_date: str
    new_cases: int
    new_defendants: int
    processed: StageTally
    processed_by_stage: Dict[str, StageTally] = Field(default_factory=dict)
    by_stage: Dict[str, int] = Field(default_factory=dict)


class ReportStatistics(CamelModel):
    from_date: str
    to_date: str
    total: int
    processed: int
    processed_by_stage: Dict[str, int] = Field(default_factory=dict)
    by_stage: Dict[str, int] = Field(default_factory=dict)
