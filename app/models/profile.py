# app/models/profile.py
from typing import Optional
from datetime import datetime, timezone
from pydantic import BaseModel, ConfigDict, EmailStr, Field, model_validator

from .enum import ProfileRole, ProfileStatus


class Profile(BaseModel):
    """Satu profil per akun auth provider (tabel `profiles`)."""
    model_config = ConfigDict(use_enum_values=False, extra="ignore")

    id: str
    email: EmailStr
    nama_lengkap: Optional[str] = None
    role: ProfileRole = ProfileRole.UMUM
    status: ProfileStatus = ProfileStatus.PENDING
    # Data siswa
    kelas: Optional[str] = None
    jurusan: Optional[str] = None
    nis: Optional[str] = None
    # Data guru
    mata_pelajaran: Optional[str] = None
    nip: Optional[str] = None
    alasan_penolakan: Optional[str] = None
    tanggal_daftar: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    updated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    # --- Pydantic Schemas ---
    class Register(BaseModel):
        """Payload pendaftaran siswa/guru."""
        model_config = ConfigDict(extra="ignore")

        nama_lengkap: str = Field(..., min_length=1, max_length=150)
        email: Optional[EmailStr] = None  # Diambil dari token jika kosong
        role: ProfileRole = ProfileRole.SISWA
        kelas: Optional[str] = None
        jurusan: Optional[str] = None
        nis: Optional[str] = None
        mata_pelajaran: Optional[str] = None
        nip: Optional[str] = None

        @model_validator(mode="after")
        def check_role_fields(self):
            if self.role == ProfileRole.ADMIN:
                raise ValueError("Role admin tidak dapat didaftarkan sendiri.")
            if self.role == ProfileRole.SISWA:
                missing = [f for f in ("kelas", "jurusan", "nis") if not (getattr(self, f) or "").strip()]
                if missing:
                    raise ValueError(f"Data siswa belum lengkap: {', '.join(missing)}")
            if self.role == ProfileRole.GURU:
                missing = [f for f in ("mata_pelajaran", "nip") if not (getattr(self, f) or "").strip()]
                if missing:
                    raise ValueError(f"Data guru belum lengkap: {', '.join(missing)}")
            return self

    class Decision(BaseModel):
        alasan: Optional[str] = None

    class Response(BaseModel):
        model_config = ConfigDict(from_attributes=True, use_enum_values=True)

        id: str
        email: str
        nama_lengkap: Optional[str] = None
        role: ProfileRole
        status: ProfileStatus
        kelas: Optional[str] = None
        jurusan: Optional[str] = None
        nis: Optional[str] = None
        mata_pelajaran: Optional[str] = None
        nip: Optional[str] = None
        alasan_penolakan: Optional[str] = None
        tanggal_daftar: datetime
        updated_at: datetime
