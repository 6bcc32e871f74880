# app/integrations/storage.py
from typing import Optional
from urllib.parse import quote

import httpx
from loguru import logger

from app.core.config import STORAGE_URL, STORAGE_BUCKET, AUTH_SERVICE_KEY, HTTP_TIMEOUT_SECONDS
from app.core.exceptions import StoreError


class ObjectStore:
    """Blob storage for item images: upload by path, public URL by naming convention."""

    def __init__(
        self,
        base_url: str = STORAGE_URL,
        bucket: str = STORAGE_BUCKET,
        service_key: str = AUTH_SERVICE_KEY,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.base_url = (base_url or "").rstrip("/")
        self.bucket = bucket
        self.service_key = service_key
        self._client = client or httpx.AsyncClient(timeout=httpx.Timeout(HTTP_TIMEOUT_SECONDS, connect=5.0))

    async def upload(self, path: str, data: bytes, content_type: str) -> str:
        url = f"{self.base_url}/storage/v1/object/{self.bucket}/{quote(path)}"
        headers = {
            "Authorization": f"Bearer {self.service_key}",
            "apikey": self.service_key,
            "Content-Type": content_type,
            "x-upsert": "false",
        }
        try:
            response = await self._client.post(url, content=data, headers=headers)
            response.raise_for_status()
        except httpx.HTTPError as e:
            logger.error(f"Upload of '{path}' to bucket '{self.bucket}' failed: {e}")
            raise StoreError("Gagal mengunggah gambar. Silakan coba lagi.") from e
        logger.info(f"Uploaded '{path}' ({len(data)} bytes) to bucket '{self.bucket}'.")
        return path

    def public_url(self, path: str) -> str:
        # Tidak mengecek apakah objeknya benar-benar ada
        return f"{self.base_url}/storage/v1/object/public/{self.bucket}/{quote(path)}"

    async def aclose(self):
        await self._client.aclose()
