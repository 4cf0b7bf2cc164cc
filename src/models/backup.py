"""
Backup and local data document models
"""

from typing import List

from pydantic import AliasChoices, Field

from models.base import CamelModel
from models.case import Case
from models.prosecutor import CriminalCodeItem, Prosecutor
from models.report import Report


class BackupPayload(CamelModel):
    """Remote backup document, one per user, replaced wholesale"""
    cases: List[Case] = Field(default_factory=list)
    reports: List[Report] = Field(default_factory=list)


class LocalDataDocument(CamelModel):
    """All local collections, as exported to / imported from a JSON file"""
    cases: List[Case] = Field(default_factory=list)
    reports: List[Report] = Field(default_factory=list)
    prosecutors: List[Prosecutor] = Field(default_factory=list)
    criminal_code_reference: List[CriminalCodeItem] = Field(
        default_factory=list,
        validation_alias=AliasChoices("criminalCodeReference", "criminal_code_reference", "criminalCode"),
    )
