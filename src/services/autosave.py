"""
Debounced persistence of in-memory collections to the local cache store
"""

import asyncio
import logging
from datetime import datetime
from typing import Callable, Dict, Iterable, List, Optional, Set

from database.cache_store import CacheStore, Record
from utils.errors import PersistenceError

logger = logging.getLogger(__name__)


class AutosaveScheduler:
    """
    Persists a collection snapshot once no mutation has happened for
    debounce_seconds. A failed save keeps the collection dirty and records
    the error; the in-memory collection stays authoritative.
    """

    def __init__(self, store: CacheStore, debounce_seconds: float = 0.5):
        self.store = store
        self.debounce_seconds = debounce_seconds
        self.last_error: Optional[str] = None
        self.last_saved_at: Optional[str] = None
        self._sources: Dict[str, Callable[[], List[Record]]] = {}
        self._timers: Dict[str, asyncio.TimerHandle] = {}
        self._tasks: Set[asyncio.Task] = set()
        self._dirty: Set[str] = set()

    def register(self, collection: str, snapshot: Callable[[], List[Record]]) -> None:
        self._sources[collection] = snapshot

    @property
    def pending(self) -> List[str]:
        return sorted(self._dirty)

    def mark_dirty(self, collection: str) -> None:
        self._dirty.add(collection)
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            # No loop (synchronous caller); picked up by the next flush()
            return
        timer = self._timers.pop(collection, None)
        if timer:
            timer.cancel()
        self._timers[collection] = loop.call_later(self.debounce_seconds, self._fire, collection)

    def _fire(self, collection: str) -> None:
        self._timers.pop(collection, None)
        task = asyncio.get_running_loop().create_task(self._save(collection))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _save(self, collection: str) -> bool:
        if collection not in self._dirty:
            return True
        self._dirty.discard(collection)
        records = self._sources[collection]()
        try:
            await self.store.overwrite_all(collection, records)
        except PersistenceError as e:
            self._dirty.add(collection)
            self.last_error = e.message
            logger.error(f"Autosave of '{collection}' failed, keeping in-memory copy: {e.message}")
            return False
        self.last_error = None
        self.last_saved_at = datetime.utcnow().isoformat()
        logger.debug(f"Autosaved {len(records)} records to '{collection}'")
        return True

    async def quiesce(self, collections: Optional[Iterable[str]] = None) -> None:
        """Cancel pending timers and wait for in-flight saves; dirty flags are kept"""
        names = set(collections) if collections is not None else set(self._timers)
        for name in names:
            timer = self._timers.pop(name, None)
            if timer:
                timer.cancel()
        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    def clear(self, collections: Iterable[str]) -> None:
        """Forget pending changes that were persisted another way"""
        for name in collections:
            self._dirty.discard(name)

    def resume(self, collections: Iterable[str]) -> None:
        """Reschedule saves for collections still dirty after quiesce()"""
        for name in collections:
            if name in self._dirty:
                self.mark_dirty(name)

    async def flush(self) -> bool:
        """Save every dirty collection now; True if all saves succeeded"""
        await self.quiesce()
        results = [await self._save(name) for name in sorted(self._dirty)]
        return all(results)
