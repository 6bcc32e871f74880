# app/db/store.py
"""Generic data-store client used by every service.

Filters use MongoDB query syntax (equality, `$gt`/`$gte`/`$lt`/`$lte`,
`$in`/`$nin`, `$ne`). Sort is a list of `(field, ASCENDING|DESCENDING)`.
Documents are plain dicts keyed by `id`.
"""
from contextlib import asynccontextmanager
from datetime import date, datetime, timezone
from enum import Enum
from typing import Any, AsyncContextManager, Dict, List, Optional, Protocol, Sequence, Tuple

from loguru import logger
from pymongo import ASCENDING, DESCENDING, ReturnDocument
from pymongo.errors import PyMongoError
import motor.motor_asyncio

from app.core.exceptions import StoreError

PROFILES = "profiles"
ITEMS = "alat"
LOANS = "peminjaman"

SortSpec = Sequence[Tuple[str, int]]


class DataStore(Protocol):
    async def get(self, table: str, doc_id: str) -> Optional[Dict[str, Any]]: ...

    async def find(
        self, table: str, filters: Optional[Dict[str, Any]] = None,
        sort: Optional[SortSpec] = None, skip: int = 0, limit: int = 0,
    ) -> List[Dict[str, Any]]: ...

    async def count(self, table: str, filters: Optional[Dict[str, Any]] = None) -> int: ...

    async def insert(self, table: str, doc: Dict[str, Any]) -> Dict[str, Any]: ...

    async def replace(self, table: str, doc_id: str, doc: Dict[str, Any]) -> Optional[Dict[str, Any]]: ...

    async def update(
        self, table: str, doc_id: str, values: Dict[str, Any],
        expected: Optional[Dict[str, Any]] = None,
    ) -> Optional[Dict[str, Any]]:
        """Set `values` only if the row also matches `expected`. Returns the row after, or None."""
        ...

    async def increment(
        self, table: str, doc_id: str, field: str, delta: int, floor: Optional[int] = None,
    ) -> Optional[Dict[str, Any]]:
        """Atomically add `delta` to `field`, clamped at `floor`. Returns the row after, or None."""
        ...

    async def delete(self, table: str, doc_id: str) -> bool: ...

    async def ping(self) -> bool: ...

    def transaction(self) -> AsyncContextManager["DataStore"]:
        """All calls on the yielded store commit together or not at all."""
        ...


# --- Konversi dokumen Mongo <-> dict service ---
def _encode_value(value: Any) -> Any:
    # BSON tidak punya tipe date murni
    if isinstance(value, date) and not isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, dict):
        return {k: _encode_value(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_encode_value(v) for v in value]
    if isinstance(value, Enum):
        return value.value
    return value


def _encode(doc: Dict[str, Any]) -> Dict[str, Any]:
    encoded = _encode_value(dict(doc))
    if "id" in encoded:
        encoded["_id"] = encoded.pop("id")
    return encoded


def _encode_filters(filters: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    encoded = _encode_value(dict(filters or {}))
    if "id" in encoded:
        encoded["_id"] = encoded.pop("id")
    return encoded


def _decode(raw: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    if raw is None:
        return None
    doc = dict(raw)
    doc["id"] = str(doc.pop("_id"))
    return doc


class MongoDataStore:
    """DataStore over a Motor database.

    Outside `transaction()` every mutation is a single-document atomic command.
    Inside it, calls go through the yielded store, which carries the session.
    """

    def __init__(self, database: motor.motor_asyncio.AsyncIOMotorDatabase, session=None):
        self.database = database
        self.session = session

    def _collection(self, table: str):
        return self.database[table]

    @asynccontextmanager
    async def transaction(self):
        if self.session is not None:
            # Sudah di dalam transaksi: ikut transaksi luar
            yield self
            return
        # Transaksi MongoDB butuh replica set (atau mongos)
        client = self.database.client
        try:
            async with await client.start_session() as session:
                async with session.start_transaction():
                    yield MongoDataStore(self.database, session=session)
        except PyMongoError as e:
            logger.error(f"Store transaction aborted: {e}")
            raise StoreError("Gagal menyimpan perubahan. Silakan coba lagi.") from e

    async def get(self, table, doc_id):
        try:
            raw = await self._collection(table).find_one({"_id": doc_id}, session=self.session)
        except PyMongoError as e:
            logger.error(f"Store get failed on {table}/{doc_id}: {e}")
            raise StoreError("Gagal membaca data. Silakan coba lagi.") from e
        return _decode(raw)

    async def find(self, table, filters=None, sort=None, skip=0, limit=0):
        try:
            cursor = self._collection(table).find(
                _encode_filters(filters), skip=skip, limit=limit, session=self.session
            )
            if sort:
                cursor = cursor.sort(list(sort))
            rows = await cursor.to_list(length=None)
        except PyMongoError as e:
            logger.error(f"Store find failed on {table} filters={filters}: {e}")
            raise StoreError("Gagal memuat data. Silakan coba lagi.") from e
        return [_decode(row) for row in rows]

    async def count(self, table, filters=None):
        try:
            return await self._collection(table).count_documents(_encode_filters(filters), session=self.session)
        except PyMongoError as e:
            logger.error(f"Store count failed on {table}: {e}")
            raise StoreError("Gagal menghitung data.") from e

    async def insert(self, table, doc):
        try:
            await self._collection(table).insert_one(_encode(doc), session=self.session)
        except PyMongoError as e:
            logger.error(f"Store insert failed on {table}: {e}")
            raise StoreError("Gagal menyimpan data. Silakan coba lagi.") from e
        return dict(doc)

    async def replace(self, table, doc_id, doc):
        payload = _encode(doc)
        payload.pop("_id", None)
        try:
            raw = await self._collection(table).find_one_and_replace(
                {"_id": doc_id}, payload, return_document=ReturnDocument.AFTER, session=self.session
            )
        except PyMongoError as e:
            logger.error(f"Store replace failed on {table}/{doc_id}: {e}")
            raise StoreError("Gagal memperbarui data. Silakan coba lagi.") from e
        return _decode(raw)

    async def update(self, table, doc_id, values, expected=None):
        query = {"_id": doc_id, **_encode_value(expected or {})}
        try:
            raw = await self._collection(table).find_one_and_update(
                query, {"$set": _encode_value(values)}, return_document=ReturnDocument.AFTER, session=self.session
            )
        except PyMongoError as e:
            logger.error(f"Store update failed on {table}/{doc_id}: {e}")
            raise StoreError("Gagal memperbarui data. Silakan coba lagi.") from e
        return _decode(raw)

    async def increment(self, table, doc_id, field, delta, floor=None):
        new_value: Any = {"$add": [f"${field}", delta]}
        if floor is not None:
            new_value = {"$max": [floor, new_value]}
        # Update pipeline: baca-hitung-tulis terjadi di server dalam satu operasi
        pipeline = [{"$set": {field: new_value, "updated_at": datetime.now(timezone.utc)}}]
        try:
            raw = await self._collection(table).find_one_and_update(
                {"_id": doc_id}, pipeline, return_document=ReturnDocument.AFTER, session=self.session
            )
        except PyMongoError as e:
            logger.error(f"Store increment failed on {table}/{doc_id}.{field} by {delta}: {e}")
            raise StoreError("Gagal memperbarui stok. Silakan coba lagi.") from e
        return _decode(raw)

    async def delete(self, table, doc_id):
        try:
            result = await self._collection(table).delete_one({"_id": doc_id}, session=self.session)
        except PyMongoError as e:
            logger.error(f"Store delete failed on {table}/{doc_id}: {e}")
            raise StoreError("Gagal menghapus data. Silakan coba lagi.") from e
        return result.deleted_count > 0

    async def ping(self):
        try:
            await self.database.command("ping")
            return True
        except PyMongoError as e:
            logger.warning(f"MongoDB ping failed: {e}")
            return False


__all__ = [
    "ASCENDING", "DESCENDING", "DataStore", "MongoDataStore",
    "PROFILES", "ITEMS", "LOANS",
]
