# app/integrations/auth_provider.py
from typing import Optional

import httpx
from loguru import logger

from app.core.config import AUTH_URL, AUTH_SERVICE_KEY, HTTP_TIMEOUT_SECONDS


class AuthProvider:
    """Admin-side calls to the external auth provider (GoTrue-style admin API)."""

    def __init__(
        self,
        base_url: str = AUTH_URL,
        service_key: str = AUTH_SERVICE_KEY,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.base_url = (base_url or "").rstrip("/")
        self.service_key = service_key
        self._client = client or httpx.AsyncClient(timeout=httpx.Timeout(HTTP_TIMEOUT_SECONDS, connect=5.0))

    @property
    def enabled(self) -> bool:
        return bool(self.base_url and self.service_key)

    def _headers(self) -> dict:
        return {
            "apikey": self.service_key,
            "Authorization": f"Bearer {self.service_key}",
        }

    async def confirm_email(self, user_id: str) -> bool:
        """Mark the account's e-mail as confirmed. Returns False on any failure, never raises."""
        if not self.enabled:
            logger.debug(f"Auth provider not configured; skipping email confirmation for {user_id}.")
            return False
        url = f"{self.base_url}/auth/v1/admin/users/{user_id}"
        try:
            response = await self._client.put(url, json={"email_confirm": True}, headers=self._headers())
            response.raise_for_status()
        except httpx.HTTPError as e:
            logger.warning(f"Email confirmation for user {user_id} failed (non-fatal): {e}")
            return False
        logger.info(f"Email for user {user_id} confirmed at auth provider.")
        return True

    async def aclose(self):
        await self._client.aclose()
