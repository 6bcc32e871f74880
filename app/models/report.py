# app/models/report.py
from pydantic import BaseModel, Field
from typing import List

from .loan import LoanRequest


class AdminStats(BaseModel):
    """Ringkasan angka untuk dashboard admin."""
    pending_users: int = Field(default=0)
    total_alat: int = Field(default=0)
    pending_peminjaman: int = Field(default=0)
    active_peminjaman: int = Field(default=0)  # disetujui, belum kembali


class BorrowerSummary(BaseModel):
    """Riwayat peminjaman milik satu pengguna."""
    user_id: str
    total: int = Field(default=0)
    pending: int = Field(default=0)
    disetujui: int = Field(default=0)
    ditolak: int = Field(default=0)
    selesai: int = Field(default=0)
    riwayat: List[LoanRequest.Response] = Field(default_factory=list)
