"""
Base service layer: an in-memory collection kept in sync with the cache store
"""

import logging
import uuid
from typing import Any, Dict, Generic, Iterable, List, Optional, Type, TypeVar

from pydantic import BaseModel, ValidationError as PydanticValidationError

from services.autosave import AutosaveScheduler
from utils.errors import DecodeError, NotFoundError, ValidationError

logger = logging.getLogger(__name__)

T = TypeVar("T", bound=BaseModel)


def new_id() -> str:
    return str(uuid.uuid4())


class BaseService(Generic[T]):
    """
    Owns the single mutable copy of one collection during a session.

    Mutations are synchronous; each one marks the collection dirty so the
    autosave scheduler persists it after the debounce window.
    """

    collection: str = ""
    model: Type[T]
    key_field: str = "id"
    label: str = "record"

    def __init__(self, autosave: Optional[AutosaveScheduler] = None):
        self._items: Dict[str, T] = {}
        self.autosave = autosave
        if autosave:
            autosave.register(self.collection, self.snapshot)
        logger.info(f"{type(self).__name__} initialized for collection: {self.collection}")

    # Loading and snapshots

    def parse_records(self, records: Iterable[Dict[str, Any]]) -> List[T]:
        """Validate raw records; a malformed record rejects the whole batch"""
        items = []
        for index, record in enumerate(records):
            try:
                items.append(self.model.model_validate(record))
            except PydanticValidationError as e:
                raise DecodeError(
                    f"Malformed {self.label} at position {index} in '{self.collection}'",
                    {"errors": e.errors(include_url=False, include_context=False, include_input=False)},
                ) from e
        return items

    def load(self, records: Iterable[Dict[str, Any]]) -> int:
        """Replace the in-memory collection with stored records, without scheduling a save"""
        self._items = {self._key(item): item for item in self.parse_records(records)}
        return len(self._items)

    def replace_all(self, items: Iterable[T]) -> None:
        """Swap in a whole new collection (restore/import); persisted by the caller"""
        self._items = {self._key(item): item for item in items}

    def snapshot(self) -> List[Dict[str, Any]]:
        return [item.to_record() for item in self._items.values()]

    # Reads

    def list(self) -> List[T]:
        return list(self._items.values())

    def count(self) -> int:
        return len(self._items)

    def get(self, key: str) -> T:
        item = self._items.get(key)
        if item is None:
            raise NotFoundError(
                f"{self.label.capitalize()} not found with ID: {key}",
                {"collection": self.collection, "id": key},
            )
        return item

    def exists(self, key: str) -> bool:
        return key in self._items

    # Writes

    def _store(self, item: T) -> T:
        self._items[self._key(item)] = item
        self._touch()
        return item

    def _remove(self, key: str) -> T:
        item = self.get(key)
        del self._items[key]
        self._touch()
        return item

    def _touch(self) -> None:
        if self.autosave:
            self.autosave.mark_dirty(self.collection)

    def _key(self, item: T) -> str:
        return str(getattr(item, self.key_field))


class ProsecutorLinkedService(BaseService[T]):
    """
    Collection whose records name a prosecutor and may reference one by id.

    The stored name is what lists and exports show; the id keeps it in step
    with the prosecutor directory.
    """

    def __init__(self, autosave: Optional[AutosaveScheduler] = None, prosecutors=None):
        super().__init__(autosave)
        self.prosecutors = prosecutors

    def relink_prosecutor(self, prosecutor) -> int:
        """Refresh the display name on records referencing this prosecutor"""
        return self._rewrite_prosecutor(
            lambda item: item.prosecutor_id == prosecutor.id and item.prosecutor != prosecutor.name,
            lambda item: {"prosecutor": prosecutor.name},
        )

    def unlink_prosecutor(self, prosecutor_id: str) -> int:
        """Drop the id reference to a deleted prosecutor; the name stays for display"""
        return self._rewrite_prosecutor(
            lambda item: item.prosecutor_id == prosecutor_id,
            lambda item: {"prosecutor_id": None},
        )

    def link_legacy_prosecutors(self) -> int:
        """
        Bring stored references in line with the local directory.

        Name-only records and records whose id is not in the directory
        (restored from another install) are linked by exact name when one
        prosecutor has it, otherwise left with the name only.
        """
        if not self.prosecutors:
            return 0

        def target(item) -> Optional[str]:
            match = self.prosecutors.find_by_name(item.prosecutor)
            return match.id if match else None

        return self._rewrite_prosecutor(
            lambda item: not (item.prosecutor_id and self.prosecutors.exists(item.prosecutor_id))
            and item.prosecutor_id != target(item),
            lambda item: {"prosecutor_id": target(item)},
        )

    def _rewrite_prosecutor(self, predicate, updates) -> int:
        changed = 0
        for item in self.list():
            if predicate(item):
                self._items[self._key(item)] = item.model_copy(update=updates(item))
                changed += 1
        if changed:
            self._touch()
        return changed

    def _resolve_prosecutor(self, name: Optional[str], prosecutor_id: Optional[str]):
        if self.prosecutors:
            return self.prosecutors.resolve(name, prosecutor_id)
        if prosecutor_id:
            raise ValidationError(f"Unknown prosecutorId: {prosecutor_id}")
        if not name or not name.strip():
            raise ValidationError("A prosecutor name or prosecutorId is required")
        return name.strip(), None
