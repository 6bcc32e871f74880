# app/services/inventory.py
import re
import time
from typing import Any, Dict, List, Optional

from loguru import logger

from app.core.config import ALLOWED_IMAGE_TYPES, MAX_IMAGE_SIZE_BYTES
from app.core.exceptions import InvalidStateError, NotFoundError, PortalError, ValidationError
from app.core.utils import new_id, utc_now, validate_model
from app.db.store import ASCENDING, DataStore, ITEMS, LOANS
from app.integrations.storage import ObjectStore
from app.models.enum import LoanStatus, StockStatus
from app.models.item import Item

# Status stok yang masih boleh dipinjam
BORROWABLE_STOCK_STATUSES = [StockStatus.AMAN.value, StockStatus.HAMPIR_HABIS.value]


def sanitize_filename(filename: str) -> str:
    return re.sub(r"[^a-z0-9.]", "-", (filename or "").lower())


def build_image_path(filename: str, timestamp_ms: Optional[int] = None) -> str:
    """`<epoch-millis>-<sanitized name>`: unik per unggahan."""
    if timestamp_ms is None:
        timestamp_ms = int(time.time() * 1000)
    return f"{timestamp_ms}-{sanitize_filename(filename)}"


class InventoryLedger:
    """Admin-owned tool/material rows (`alat`)."""

    def __init__(
        self,
        store: DataStore,
        object_store: Optional[ObjectStore] = None,
        allowed_image_types: Optional[List[str]] = None,
        max_image_size: int = MAX_IMAGE_SIZE_BYTES,
    ):
        self.store = store
        self.object_store = object_store
        self.allowed_image_types = allowed_image_types or ALLOWED_IMAGE_TYPES
        self.max_image_size = max_image_size

    async def list(self, sort: str = "nama", available_only: bool = False) -> List[Item]:
        if available_only:
            query_filters = {"jumlah": {"$gt": 0}, "status_stok": {"$in": BORROWABLE_STOCK_STATUSES}}
            order = [("kategori", ASCENDING), ("nama", ASCENDING)]
        else:
            query_filters = {}
            order = [(sort, ASCENDING)]
        docs = await self.store.find(ITEMS, query_filters, sort=order)
        return [Item.model_validate(doc) for doc in docs]

    async def get(self, item_id: str) -> Item:
        doc = await self.store.get(ITEMS, item_id)
        if not doc:
            logger.info(f"Item lookup failed for ID '{item_id}'.")
            raise NotFoundError(f"Alat dengan ID '{item_id}' tidak ditemukan.")
        return Item.model_validate(doc)

    async def upsert(
        self,
        item_id: Optional[str],
        data: Dict[str, Any],
        image: Optional[Dict[str, Any]] = None,
    ) -> Item:
        """Create (item_id None) or full-row replace. `image` = {filename, content_type, data}."""
        payload = validate_model(Item.Upsert, data)

        existing = None
        if item_id is not None:
            existing = await self.get(item_id)

        row = payload.model_dump()
        if image is not None:
            # Gagal upload -> StoreError, item tidak ditulis
            row["gambar_url"] = await self.upload_image(
                image.get("filename", ""), image.get("content_type", ""), image.get("data", b"")
            )

        try:
            return await self._save(existing, row)
        except PortalError:
            if image is not None:
                logger.error(f"Uploaded image '{row['gambar_url']}' is orphaned: item write failed.")
            raise

    async def _save(self, existing: Optional[Item], row: Dict[str, Any]) -> Item:
        now = utc_now()
        if existing is None:
            item = validate_model(Item, {**row, "id": new_id(), "tanggal_ditambahkan": now, "updated_at": now})
            await self.store.insert(ITEMS, item.model_dump())
            logger.info(f"Item '{item.nama}' (ID: {item.id}) created with jumlah={item.jumlah}.")
            return item

        item = validate_model(Item, {
            **row,
            "id": existing.id,
            "tanggal_ditambahkan": existing.tanggal_ditambahkan,
            "updated_at": now,
        })
        replaced = await self.store.replace(ITEMS, existing.id, item.model_dump())
        if not replaced:
            raise NotFoundError(f"Alat dengan ID '{existing.id}' tidak ditemukan.")
        logger.info(f"Item '{item.nama}' (ID: {item.id}) replaced. jumlah {existing.jumlah} -> {item.jumlah}.")
        return Item.model_validate(replaced)

    async def delete(self, item_id: str) -> None:
        # Cek peminjaman terbuka dan hapus dalam satu transaksi
        async with self.store.transaction() as tx:
            doc = await tx.get(ITEMS, item_id)
            if not doc:
                raise NotFoundError(f"Alat dengan ID '{item_id}' tidak ditemukan.")
            item = Item.model_validate(doc)
            open_loans = await tx.count(LOANS, {
                "alat_id": item_id,
                "$or": [
                    {"status": LoanStatus.PENDING.value},
                    {"status": LoanStatus.DISETUJUI.value, "dikembalikan": False},
                ],
            })
            if open_loans:
                raise InvalidStateError(
                    f"Alat '{item.nama}' masih memiliki {open_loans} peminjaman aktif dan tidak dapat dihapus."
                )
            if not await tx.delete(ITEMS, item_id):
                raise NotFoundError(f"Alat dengan ID '{item_id}' tidak ditemukan.")
        logger.info(f"Item '{item.nama}' (ID: {item_id}) deleted.")

    def resolve_image(self, path: Optional[str]) -> Optional[str]:
        if not path:
            return None
        if self.object_store is None:
            return None
        return self.object_store.public_url(path)

    async def upload_image(self, filename: str, content_type: str, data: bytes) -> str:
        if content_type not in self.allowed_image_types:
            raise ValidationError("Tipe file tidak didukung. Gunakan format JPG, PNG, GIF, atau WebP.")
        if len(data) > self.max_image_size:
            limit_mb = self.max_image_size / (1024 * 1024)
            raise ValidationError(f"Ukuran file melebihi batas {limit_mb:g}MB.")
        if not data:
            raise ValidationError("File gambar kosong.")
        if self.object_store is None:
            raise ValidationError("Penyimpanan gambar belum dikonfigurasi.")
        path = build_image_path(filename)
        return await self.object_store.upload(path, data, content_type)

    async def attach_image(self, item_id: str, filename: str, content_type: str, data: bytes) -> Item:
        item = await self.get(item_id)
        path = await self.upload_image(filename, content_type, data)
        row = item.model_dump(exclude={"id", "tanggal_ditambahkan", "updated_at"})
        row["gambar_url"] = path
        try:
            return await self.upsert(item.id, row)
        except PortalError:
            logger.error(f"Uploaded image '{path}' is orphaned: item '{item_id}' was not updated.")
            raise

    def to_response(self, item: Item) -> Item.Response:
        data = item.model_dump()
        data["gambar_public_url"] = self.resolve_image(item.gambar_url)
        return Item.Response.model_validate(data)
