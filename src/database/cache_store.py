"""
Local cache store: durable key-value persistence of named collections

Two backends share one contract:
- JsonFileCacheStore keeps every collection in a single JSON file that is
  replaced atomically on each write (desktop default).
- PostgresCacheStore keeps records in one JSONB table via asyncpg.

Every operation waits for init() to finish, so callers may hold a store
before it is ready. Writes to a collection are serialized by a
per-collection lock. overwrite_many() is all-or-nothing.
"""

import asyncio
import copy
import json
import logging
import os
import tempfile
from typing import Any, Dict, Iterable, List, Optional

from database.connection import close_db_pool, create_db_pool
from utils.errors import PersistenceError

logger = logging.getLogger(__name__)

Record = Dict[str, Any]

# collection name -> key field
COLLECTION_KEYS = {
    "cases": "id",
    "reports": "id",
    "prosecutors": "id",
    "criminalCodeReference": "article",
}


class CacheStore:
    """Base class: readiness signal, locking and key handling"""

    def __init__(self):
        self._ready = asyncio.Event()
        self._closed = False
        self._locks = {name: asyncio.Lock() for name in COLLECTION_KEYS}

    # Lifecycle

    async def init(self) -> None:
        if self._ready.is_set():
            return
        try:
            await self._open()
        except PersistenceError:
            raise
        except Exception as e:
            logger.error(f"Cache store initialization failed: {e}", exc_info=True)
            raise PersistenceError(f"Cache store initialization failed: {e}") from e
        self._ready.set()
        logger.info(f"{type(self).__name__} ready")

    async def ready(self) -> None:
        """Wait until init() has completed"""
        await self._ready.wait()

    @property
    def is_ready(self) -> bool:
        return self._ready.is_set() and not self._closed

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        await self._close()
        logger.info(f"{type(self).__name__} closed")

    # Public operations

    async def get_all(self, collection: str) -> List[Record]:
        self._check_collection(collection)
        await self.ready()
        return await self._guard(f"read {collection}", self._get_all(collection))

    async def put(self, collection: str, record: Record) -> None:
        """Insert or replace a record by its key"""
        key = self.key_of(collection, record)
        await self.ready()
        async with self._locks[collection]:
            await self._guard(f"write {collection}/{key}", self._put(collection, key, record))

    async def delete(self, collection: str, key: str) -> None:
        self._check_collection(collection)
        await self.ready()
        async with self._locks[collection]:
            await self._guard(f"delete {collection}/{key}", self._delete(collection, str(key)))

    async def overwrite_all(self, collection: str, records: Iterable[Record]) -> None:
        """Clear the collection and bulk-insert records"""
        await self.overwrite_many({collection: records})

    async def overwrite_many(self, collections: Dict[str, Iterable[Record]]) -> None:
        """Replace several collections at once; either all are replaced or none"""
        staged: Dict[str, Dict[str, Record]] = {}
        for collection, records in collections.items():
            rows: Dict[str, Record] = {}
            for record in records:
                rows[self.key_of(collection, record)] = record
            staged[collection] = rows

        await self.ready()
        # Fixed lock order so concurrent multi-collection writes cannot deadlock
        names = sorted(staged)
        for name in names:
            await self._locks[name].acquire()
        try:
            await self._guard(f"overwrite {', '.join(names)}", self._overwrite_many(staged))
        finally:
            for name in reversed(names):
                self._locks[name].release()

    # Helpers

    def key_of(self, collection: str, record: Record) -> str:
        self._check_collection(collection)
        key_field = COLLECTION_KEYS[collection]
        key = record.get(key_field)
        if key is None or key == "":
            raise PersistenceError(
                f"Record in '{collection}' is missing key field '{key_field}'",
                {"collection": collection},
            )
        return str(key)

    def _check_collection(self, collection: str) -> None:
        if collection not in COLLECTION_KEYS:
            raise PersistenceError(f"Unknown collection: {collection}")
        if self._closed:
            raise PersistenceError("Cache store is closed")

    async def _guard(self, action: str, operation):
        try:
            return await operation
        except PersistenceError:
            raise
        except Exception as e:
            logger.error(f"Cache store failed to {action}: {e}")
            raise PersistenceError(f"Failed to {action}: {e}") from e

    # Backend hooks

    async def _open(self) -> None:
        raise NotImplementedError

    async def _close(self) -> None:
        raise NotImplementedError

    async def _get_all(self, collection: str) -> List[Record]:
        raise NotImplementedError

    async def _put(self, collection: str, key: str, record: Record) -> None:
        raise NotImplementedError

    async def _delete(self, collection: str, key: str) -> None:
        raise NotImplementedError

    async def _overwrite_many(self, staged: Dict[str, Dict[str, Record]]) -> None:
        raise NotImplementedError


class JsonFileCacheStore(CacheStore):
    """All collections in one JSON file, rewritten through a temp file and os.replace"""

    def __init__(self, path: str):
        super().__init__()
        self.path = path
        self._collections: Dict[str, Dict[str, Record]] = {name: {} for name in COLLECTION_KEYS}
        # The whole file is rewritten on every change, so writers share one lock
        self._file_lock = asyncio.Lock()

    async def _open(self) -> None:
        raw = await asyncio.to_thread(self._read_file)
        for name in COLLECTION_KEYS:
            rows: Dict[str, Record] = {}
            for record in raw.get("collections", {}).get(name, []):
                rows[self.key_of(name, record)] = record
            self._collections[name] = rows
        logger.info(f"Loaded local store from {self.path}")

    async def _close(self) -> None:
        return None

    async def _get_all(self, collection: str) -> List[Record]:
        return copy.deepcopy(list(self._collections[collection].values()))

    async def _put(self, collection: str, key: str, record: Record) -> None:
        rows = dict(self._collections[collection])
        rows[key] = copy.deepcopy(record)
        await self._commit({collection: rows})

    async def _delete(self, collection: str, key: str) -> None:
        rows = dict(self._collections[collection])
        rows.pop(key, None)
        await self._commit({collection: rows})

    async def _overwrite_many(self, staged: Dict[str, Dict[str, Record]]) -> None:
        await self._commit(copy.deepcopy(staged))

    async def _commit(self, changes: Dict[str, Dict[str, Record]]) -> None:
        """Write the staged state to disk, then swap it in memory"""
        async with self._file_lock:
            snapshot = dict(self._collections)
            snapshot.update(changes)
            await asyncio.to_thread(self._write_file, snapshot)
            self._collections = snapshot

    def _read_file(self) -> Dict[str, Any]:
        if not os.path.exists(self.path):
            return {}
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                return json.load(f)
        except json.JSONDecodeError as e:
            raise PersistenceError(f"Local store file {self.path} is corrupt: {e}") from e

    def _write_file(self, collections: Dict[str, Dict[str, Record]]) -> None:
        directory = os.path.dirname(os.path.abspath(self.path))
        os.makedirs(directory, exist_ok=True)
        document = {
            "version": 1,
            "collections": {name: list(rows.values()) for name, rows in collections.items()},
        }
        fd, tmp_path = tempfile.mkstemp(prefix=".store-", suffix=".json", dir=directory)
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(document, f, indent=2, ensure_ascii=False)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_path, self.path)
        except BaseException:
            if os.path.exists(tmp_path):
                os.remove(tmp_path)
            raise


class PostgresCacheStore(CacheStore):
    """Collections as rows of a single JSONB table"""

    TABLE = "cache_records"

    def __init__(self, database_url: Optional[str] = None, pool=None):
        super().__init__()
        if not database_url and pool is None:
            raise ValueError("PostgresCacheStore needs a database_url or a pool")
        self.database_url = database_url
        self._pool = pool
        self._owns_pool = pool is None

    async def _open(self) -> None:
        if self._pool is None:
            self._pool = await create_db_pool(self.database_url)
        async with self._pool.acquire() as conn:
            await conn.execute(f"""
                CREATE TABLE IF NOT EXISTS {self.TABLE} (
                    seq BIGSERIAL,
                    collection TEXT NOT NULL,
                    record_key TEXT NOT NULL,
                    data JSONB NOT NULL,
                    updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
                    PRIMARY KEY (collection, record_key)
                )
            """)

    async def _close(self) -> None:
        if self._owns_pool:
            await close_db_pool(self._pool)
        self._pool = None

    async def _get_all(self, collection: str) -> List[Record]:
        async with self._pool.acquire() as conn:
            rows = await conn.fetch(
                f"SELECT data::text AS data FROM {self.TABLE} WHERE collection = $1 ORDER BY seq",
                collection,
            )
        return [json.loads(row["data"]) for row in rows]

    async def _put(self, collection: str, key: str, record: Record) -> None:
        async with self._pool.acquire() as conn:
            await conn.execute(
                f"""
                INSERT INTO {self.TABLE} (collection, record_key, data)
                VALUES ($1, $2, $3::jsonb)
                ON CONFLICT (collection, record_key)
                DO UPDATE SET data = EXCLUDED.data, updated_at = NOW()
                """,
                collection, key, json.dumps(record, ensure_ascii=False),
            )

    async def _delete(self, collection: str, key: str) -> None:
        async with self._pool.acquire() as conn:
            await conn.execute(
                f"DELETE FROM {self.TABLE} WHERE collection = $1 AND record_key = $2",
                collection, key,
            )

    async def _overwrite_many(self, staged: Dict[str, Dict[str, Record]]) -> None:
        async with self._pool.acquire() as conn:
            async with conn.transaction():
                await conn.execute(
                    f"DELETE FROM {self.TABLE} WHERE collection = ANY($1::text[])",
                    list(staged),
                )
                rows = [
                    (collection, key, json.dumps(record, ensure_ascii=False))
                    for collection, records in staged.items()
                    for key, record in records.items()
                ]
                if rows:
                    await conn.executemany(
                        f"INSERT INTO {self.TABLE} (collection, record_key, data) VALUES ($1, $2, $3::jsonb)",
                        rows,
                    )


def build_cache_store(backend: str, data_path: str, database_url: Optional[str] = None) -> CacheStore:
    """Construct the configured backend"""
    if backend == "postgres":
        return PostgresCacheStore(database_url)
    if backend == "json":
        return JsonFileCacheStore(data_path)
    raise ValueError(f"Unsupported cache backend: {backend}")
