"""
Prosecutors service - the people cases and reports are assigned to
"""

import logging
from typing import List, Optional, Tuple

from models.prosecutor import Prosecutor, ProsecutorCreateRequest, ProsecutorUpdateRequest
from services.base_service import BaseService, new_id
from utils.errors import NotFoundError, ValidationError

logger = logging.getLogger(__name__)


class ProsecutorsService(BaseService[Prosecutor]):
    """Service for prosecutor management operations"""

    collection = "prosecutors"
    model = Prosecutor
    label = "prosecutor"

    def create_prosecutor(self, request: ProsecutorCreateRequest) -> Prosecutor:
        prosecutor = Prosecutor(id=new_id(), **request.model_dump())
        logger.info(f"Creating prosecutor: {prosecutor.name}")
        return self._store(prosecutor)

    def update_prosecutor(self, prosecutor_id: str, request: ProsecutorUpdateRequest) -> Prosecutor:
        current = self.get(prosecutor_id)
        updates = request.model_dump(exclude_unset=True)
        if not updates:
            raise ValidationError("No fields provided for update")
        if updates.get("name") is None:
            updates.pop("name", None)
        if updates.get("title") is None:
            updates.pop("title", None)
        return self._store(current.model_copy(update=updates))

    def delete_prosecutor(self, prosecutor_id: str) -> Prosecutor:
        prosecutor = self._remove(prosecutor_id)
        logger.info(f"Deleted prosecutor {prosecutor_id} ({prosecutor.name})")
        return prosecutor

    def search(self, query: Optional[str] = None) -> List[Prosecutor]:
        """Case-insensitive match on name, title and department, sorted by name"""
        prosecutors = sorted(self.list(), key=lambda p: p.name.lower())
        if not query or not query.strip():
            return prosecutors
        term = query.strip().lower()
        return [
            p for p in prosecutors
            if term in p.name.lower()
            or term in p.title.lower()
            or (p.department and term in p.department.lower())
        ]

    def find_by_name(self, name: str) -> Optional[Prosecutor]:
        """The prosecutor with exactly this name, if there is exactly one"""
        matches = [p for p in self.list() if p.name == name]
        return matches[0] if len(matches) == 1 else None

    def resolve(self, name: Optional[str], prosecutor_id: Optional[str]) -> Tuple[str, Optional[str]]:
        """
        Resolve the (display name, id) pair stored on a case or report.

        An id wins and must exist; a bare name is linked to a prosecutor
        with that exact name when one exists.
        """
        if prosecutor_id:
            try:
                prosecutor = self.get(prosecutor_id)
            except NotFoundError as e:
                raise ValidationError(f"Unknown prosecutorId: {prosecutor_id}") from e
            return prosecutor.name, prosecutor.id
        if not name or not name.strip():
            raise ValidationError("A prosecutor name or prosecutorId is required")
        match = self.find_by_name(name.strip())
        return name.strip(), match.id if match else None
