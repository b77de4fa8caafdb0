"""
Supabase Storage client for uploaded movie files.

Wraps httpx with the service key headers; one client per instance, created
lazily and closed with ``close()``.
"""
from __future__ import annotations
import logging
from typing import Optional
from urllib.parse import quote

import httpx

from reelbox.core.config import settings
from reelbox.core.errors import StorageError

log = logging.getLogger("reelbox.storage")


class SupabaseStorage:
    def __init__(
        self,
        *,
        base_url: str | None = None,
        key: str | None = None,
        bucket: str | None = None,
        client: httpx.AsyncClient | None = None,
        timeout: float = 20,
    ):
        self.base_url = (base_url or settings.supabase_url).rstrip("/")
        self.key = settings.supabase_key if key is None else key
        self.bucket = bucket or settings.storage_bucket
        self.timeout = timeout
        self._client = client

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                timeout=self.timeout,
                headers={"Authorization": f"Bearer {self.key}", "apikey": self.key},
            )
        return self._client

    async def close(self):
        if self._client and not self._client.is_closed:
            await self._client.aclose()

    def _object_url(self, *parts: str) -> str:
        return "/".join([f"{self.base_url}/storage/v1/object", *parts])

    # ── storage port ──────────────────

    async def get_public_url(self, path: str) -> str:
        return self._object_url("public", self.bucket, quote(path))

    async def get_signed_url(self, path: str, expires_in: int = 3600) -> Optional[str]:
        client = self._get_client()
        try:
            resp = await client.post(
                self._object_url("sign", self.bucket, quote(path)),
                json={"expiresIn": expires_in},
            )
        except httpx.HTTPError as e:
            log.error(f"Error creating signed URL for {path}: {e}")
            return None
        if resp.status_code >= 400:
            log.error(f"Error creating signed URL for {path}: HTTP {resp.status_code}")
            return None
        signed = resp.json().get("signedURL")
        if not signed:
            return None
        return f"{self.base_url}/storage/v1{signed}"

    async def upload(self, path: str, data: bytes, content_type: str) -> str:
        """Upload ``data`` to ``path`` (no overwrite) and return its public URL."""
        client = self._get_client()
        try:
            resp = await client.post(
                self._object_url(self.bucket, quote(path)),
                content=data,
                headers={"Content-Type": content_type, "cache-control": "3600", "x-upsert": "false"},
            )
        except httpx.HTTPError as e:
            raise StorageError(f"Upload failed: {e}") from e
        if resp.status_code >= 400:
            raise StorageError(f"Upload failed: HTTP {resp.status_code} {resp.text[:200]}")
        log.info(f"Uploaded {path} ({len(data)} bytes)")
        return await self.get_public_url(path)

    async def remove(self, path: str) -> bool:
        client = self._get_client()
        try:
            resp = await client.request(
                "DELETE", self._object_url(self.bucket), json={"prefixes": [path]})
        except httpx.HTTPError as e:
            log.error(f"Error deleting file {path}: {e}")
            return False
        if resp.status_code >= 400:
            log.error(f"Error deleting file {path}: HTTP {resp.status_code}")
            return False
        return True
