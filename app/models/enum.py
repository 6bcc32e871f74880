# app/models/enum.py
from enum import Enum


class ProfileRole(str, Enum):
    ADMIN = "admin"
    SISWA = "siswa"
    GURU = "guru"
    UMUM = "umum"  # Default saat sign-up, sebelum data sekolah dilengkapi


class ProfileStatus(str, Enum):
    PENDING = "pending"
    DISETUJUI = "disetujui"
    DITOLAK = "ditolak"


class LoanStatus(str, Enum):
    PENDING = "pending"      # <-- Status awal setelah pengajuan
    DISETUJUI = "disetujui"  # <-- Disetujui admin, stok sudah dikurangi
    DITOLAK = "ditolak"      # terminal
    SELESAI = "selesai"      # terminal, alat sudah kembali


class ItemCondition(str, Enum):
    BARU = "baru"
    BEKAS = "bekas"
    RUSAK = "rusak"


class StockStatus(str, Enum):
    AMAN = "aman"
    HAMPIR_HABIS = "hampir_habis"
    HABIS = "habis"
    PENDING_PENGADAAN = "pending_pengadaan"
