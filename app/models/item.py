# app/models/item.py
from typing import Optional
from datetime import datetime, timezone
from pydantic import BaseModel, ConfigDict, Field, StrictInt

from .enum import ItemCondition, StockStatus


class Item(BaseModel):
    """Satu baris per jenis alat/bahan (tabel `alat`); `jumlah` adalah counter stok."""
    model_config = ConfigDict(extra="ignore")

    id: str
    nama: str = Field(..., max_length=200)
    jumlah: int = Field(default=0, ge=0)
    kondisi: ItemCondition = ItemCondition.BARU
    status_stok: StockStatus = StockStatus.AMAN  # Diset admin, tidak diturunkan dari jumlah
    deskripsi: Optional[str] = None
    gambar_url: Optional[str] = None  # Path di object store, bukan URL publik
    kategori: Optional[str] = None
    tanggal_ditambahkan: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    updated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    # --- Pydantic Schemas for API ---
    class Upsert(BaseModel):
        """Full-row payload untuk create maupun update (update = replace)."""
        model_config = ConfigDict(extra="ignore")

        nama: str = Field(..., min_length=1, max_length=200)
        jumlah: StrictInt = Field(..., ge=0, description="Jumlah stok, bilangan bulat >= 0")
        kondisi: ItemCondition = ItemCondition.BARU
        status_stok: StockStatus = StockStatus.AMAN
        deskripsi: Optional[str] = None
        gambar_url: Optional[str] = None
        kategori: Optional[str] = None

    class Response(BaseModel):
        model_config = ConfigDict(from_attributes=True, use_enum_values=True)

        id: str
        nama: str
        jumlah: int
        kondisi: ItemCondition
        status_stok: StockStatus
        deskripsi: Optional[str] = None
        gambar_url: Optional[str] = None
        gambar_public_url: Optional[str] = None
        kategori: Optional[str] = None
        tanggal_ditambahkan: datetime
        updated_at: datetime
