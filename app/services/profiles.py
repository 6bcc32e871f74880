# app/services/profiles.py
from typing import Any, Dict, Optional

from loguru import logger

from app.core.exceptions import NotFoundError, ValidationError
from app.core.utils import utc_now, validate_model
from app.db.store import DataStore, PROFILES
from app.models.enum import ProfileRole, ProfileStatus
from app.models.profile import Profile


class ProfileService:
    """Profile creation at sign-up and lookups."""

    def __init__(self, store: DataStore):
        self.store = store

    async def get(self, profile_id: str) -> Profile:
        doc = await self.store.get(PROFILES, profile_id)
        if not doc:
            logger.info(f"Profile lookup failed for ID '{profile_id}'.")
            raise NotFoundError(f"Profil dengan ID '{profile_id}' tidak ditemukan.")
        return Profile.model_validate(doc)

    async def find(self, profile_id: str) -> Optional[Profile]:
        doc = await self.store.get(PROFILES, profile_id)
        return Profile.model_validate(doc) if doc else None

    async def register(self, user_id: str, email: Optional[str], payload: Dict[str, Any]) -> Profile:
        """Create the profile of a freshly signed-up account with status `pending`."""
        data = validate_model(Profile.Register, payload)
        email = data.email or email
        if not email:
            raise ValidationError("Email wajib diisi.")
        if await self.store.get(PROFILES, user_id):
            raise ValidationError("Akun ini sudah terdaftar.")

        now = utc_now()
        profile = validate_model(Profile, {
            **data.model_dump(exclude={"email"}),
            "id": user_id,
            "email": email,
            "status": ProfileStatus.PENDING,
            "alasan_penolakan": None,
            "tanggal_daftar": now,
            "updated_at": now,
        })
        await self.store.insert(PROFILES, profile.model_dump())
        logger.info(f"Profile '{user_id}' registered as '{profile.role.value}', awaiting verification.")
        return profile

    async def create_admin(self, user_id: str, email: str, nama_lengkap: Optional[str] = None) -> Profile:
        """Bootstrap: admin profile for an existing auth account, or promote its profile."""
        if await self.find(user_id):
            return await self.promote_to_admin(user_id)
        now = utc_now()
        profile = validate_model(Profile, {
            "id": user_id,
            "email": email,
            "nama_lengkap": nama_lengkap,
            "role": ProfileRole.ADMIN,
            "status": ProfileStatus.DISETUJUI,
            "tanggal_daftar": now,
            "updated_at": now,
        })
        await self.store.insert(PROFILES, profile.model_dump())
        logger.warning(f"Admin profile '{user_id}' created.")
        return profile

    async def promote_to_admin(self, profile_id: str) -> Profile:
        await self.get(profile_id)
        doc = await self.store.update(PROFILES, profile_id, {
            "role": ProfileRole.ADMIN.value,
            "status": ProfileStatus.DISETUJUI.value,
            "alasan_penolakan": None,
            "updated_at": utc_now(),
        })
        if not doc:
            raise NotFoundError(f"Profil dengan ID '{profile_id}' tidak ditemukan.")
        logger.warning(f"Profile '{profile_id}' promoted to admin.")
        return Profile.model_validate(doc)
