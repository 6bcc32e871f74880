# app/services/verification.py
from typing import Iterable, List, Optional

from loguru import logger

from app.core.exceptions import InvalidStateError, NotFoundError, ValidationError
from app.core.utils import utc_now
from app.db.store import DataStore, DESCENDING, PROFILES
from app.integrations.auth_provider import AuthProvider
from app.models.enum import ProfileRole, ProfileStatus
from app.models.profile import Profile


class AccountVerificationService:
    """Admin verification of registrants: pending -> disetujui / ditolak."""

    def __init__(
        self,
        store: DataStore,
        auth_provider: Optional[AuthProvider] = None,
        roles: Optional[Iterable[str]] = None,
    ):
        self.store = store
        self.auth_provider = auth_provider
        # Varian deployment: {siswa}, {siswa, guru} atau semua role non-admin
        default_roles = [r.value for r in ProfileRole if r != ProfileRole.ADMIN]
        self.roles = [ProfileRole(r).value for r in (roles or default_roles) if ProfileRole(r) != ProfileRole.ADMIN]

    async def list_profiles(
        self,
        role_filter: Optional[Iterable[str]] = None,
        status: Optional[ProfileStatus] = None,
    ) -> List[Profile]:
        roles = [ProfileRole(r).value for r in role_filter] if role_filter else self.roles
        roles = [r for r in roles if r != ProfileRole.ADMIN.value]
        query_filters = {"role": {"$in": roles}}
        if status:
            query_filters["status"] = ProfileStatus(status).value
        docs = await self.store.find(PROFILES, query_filters, sort=[("tanggal_daftar", DESCENDING)])
        return [Profile.model_validate(doc) for doc in docs]

    async def decide(self, profile_id: str, outcome: ProfileStatus, reason: Optional[str] = None) -> Profile:
        outcome = ProfileStatus(outcome)
        if outcome == ProfileStatus.PENDING:
            raise ValidationError("Keputusan harus 'disetujui' atau 'ditolak'.")
        reason = (reason or "").strip()
        if outcome == ProfileStatus.DITOLAK and not reason:
            raise ValidationError("Alasan penolakan wajib diisi.")

        doc = await self.store.get(PROFILES, profile_id)
        if not doc:
            raise NotFoundError(f"Profil dengan ID '{profile_id}' tidak ditemukan.")
        profile = Profile.model_validate(doc)

        if profile.role == ProfileRole.ADMIN:
            logger.warning(f"Refused to set verification status on admin account '{profile_id}'.")
            raise InvalidStateError("Akun admin tidak melalui verifikasi.")
        if profile.status == outcome:
            logger.info(f"Profile '{profile_id}' already '{outcome.value}'. No action taken.")
            return profile
        if profile.status != ProfileStatus.PENDING:
            logger.warning(
                f"Profile '{profile_id}' re-decided from '{profile.status.value}' to '{outcome.value}'."
            )

        update_data = {
            "status": outcome.value,
            "alasan_penolakan": reason if outcome == ProfileStatus.DITOLAK else None,
            "updated_at": utc_now(),
        }
        # Kondisional pada status lama agar dua admin tidak menimpa keputusan satu sama lain
        updated = await self.store.update(
            PROFILES,
            profile_id,
            update_data,
            expected={"status": profile.status.value, "role": {"$ne": ProfileRole.ADMIN.value}},
        )
        if not updated:
            current = await self.store.get(PROFILES, profile_id)
            if not current:
                raise NotFoundError(f"Profil dengan ID '{profile_id}' tidak ditemukan.")
            logger.info(f"Profile '{profile_id}' was decided concurrently; returning current state.")
            return Profile.model_validate(current)

        logger.info(f"Profile '{profile_id}' status updated to '{outcome.value}'.")
        if outcome == ProfileStatus.DISETUJUI:
            await self._confirm_email(profile_id)
        return Profile.model_validate(updated)

    async def _confirm_email(self, profile_id: str) -> None:
        if self.auth_provider is None:
            return
        try:
            await self.auth_provider.confirm_email(profile_id)
        except Exception as e:
            # Efek samping best-effort, tidak boleh menggagalkan verifikasi
            logger.warning(f"Email confirmation side effect failed for '{profile_id}': {e}")
