# app/models/loan.py
from typing import List, Optional
from datetime import date, datetime, timezone
from pydantic import BaseModel, ConfigDict, Field, StrictInt, model_validator

from .enum import LoanStatus, ProfileRole


class LoanLine(BaseModel):
    """Satu baris alat dalam pengajuan batch."""
    alat_id: str = Field(..., min_length=1)
    jumlah: StrictInt = Field(1, gt=0)


class LoanBorrower(BaseModel):
    """Ringkasan peminjam untuk tampilan daftar admin."""
    model_config = ConfigDict(use_enum_values=True)

    id: str
    nama_lengkap: str
    role: ProfileRole
    kelas: Optional[str] = None
    jurusan: Optional[str] = None


class LoanItem(BaseModel):
    id: str
    nama: str
    jumlah: int
    gambar_url: Optional[str] = None


class LoanRequest(BaseModel):
    """Satu pengajuan peminjaman per alat (tabel `peminjaman`)."""
    model_config = ConfigDict(extra="ignore")

    id: str
    user_id: str
    alat_id: str
    jumlah: int = Field(..., gt=0, description="Number of units requested")
    keperluan: Optional[str] = None
    tanggal_pinjam: date
    tanggal_kembali_rencana: Optional[date] = None
    tanggal_kembali: Optional[date] = None  # Tanggal kembali aktual
    dikembalikan: bool = False
    status: LoanStatus = LoanStatus.PENDING
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    updated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    # --- Pydantic Schemas ---
    class Create(BaseModel):
        alat_id: str = Field(..., min_length=1)
        jumlah: StrictInt = Field(1, gt=0, description="Jumlah unit yang dipinjam (bilangan bulat > 0)")
        keperluan: str = Field(..., min_length=1)
        tanggal_pinjam: Optional[date] = None  # Default: hari ini
        tanggal_kembali_rencana: date

    class CreateBatch(BaseModel):
        """Pengajuan beberapa alat sekaligus, satu baris peminjaman per alat."""
        items: List[LoanLine] = Field(..., min_length=1)
        keperluan: str = Field(..., min_length=1)
        tanggal_pinjam: Optional[date] = None
        tanggal_kembali_rencana: date

        @model_validator(mode="after")
        def check_unique_items(self):
            ids = [line.alat_id for line in self.items]
            if len(ids) != len(set(ids)):
                raise ValueError("Setiap alat hanya boleh dipilih sekali.")
            return self

    class Response(BaseModel):
        model_config = ConfigDict(from_attributes=True, use_enum_values=True)

        id: str
        user_id: str
        alat_id: str
        jumlah: int
        keperluan: Optional[str] = None
        tanggal_pinjam: date
        tanggal_kembali_rencana: Optional[date] = None
        tanggal_kembali: Optional[date] = None
        dikembalikan: bool
        status: LoanStatus
        created_at: datetime
        updated_at: datetime
        peminjam: Optional[LoanBorrower] = None
        alat: Optional[LoanItem] = None
