"""
Prosecutor and reference-table models
"""

from typing import Optional

from pydantic import Field

from models.base import CamelModel


class Prosecutor(CamelModel):
    id: str
    name: str
    title: str
    department: Optional[str] = None


class ProsecutorCreateRequest(CamelModel):
    name: str = Field(..., min_length=1)
    title: str = Field(..., min_length=1)
    department: Optional[str] = None


class ProsecutorUpdateRequest(CamelModel):
    name: Optional[str] = Field(None, min_length=1)
    title: Optional[str] = Field(None, min_length=1)
    department: Optional[str] = None


class CriminalCodeItem(CamelModel):
    """Criminal code lookup entry, keyed by article"""
    article: str
    clause: Optional[str] = None
    title: str
    description: str = ""

    def display(self) -> str:
        return f"Điều {self.article} - {self.title}"
