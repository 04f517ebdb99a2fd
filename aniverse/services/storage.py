"""
Blob Storage - Supabase Storage over its REST API.

Generated images are uploaded with the service-role key and served from the
bucket's public URL.
"""

import time
from typing import Protocol

import httpx
from structlog import get_logger

from aniverse.exceptions import StorageError

logger = get_logger(__name__)

OBJECT_PREFIX = "aniverse"


def object_name_for(timestamp_ms: int | None = None) -> str:
    """Object name for a generated image: aniverse-<epoch-ms>.jpg"""
    if timestamp_ms is None:
        timestamp_ms = int(time.time() * 1000)
    return f"{OBJECT_PREFIX}-{timestamp_ms}.jpg"


class BlobStore(Protocol):
    """Interface the generation workflow depends on."""

    async def upload(self, name: str, data: bytes, content_type: str) -> None: ...

    def public_url(self, name: str) -> str: ...

    async def remove(self, name: str) -> None: ...


class SupabaseStorage:
    """Supabase Storage bucket client."""

    def __init__(
        self,
        base_url: str,
        service_role_key: str,
        bucket: str,
        timeout_seconds: float = 60.0,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.service_role_key = service_role_key
        self.bucket = bucket
        self.timeout_seconds = timeout_seconds
        self._http_client = http_client

    @property
    def http_client(self) -> httpx.AsyncClient:
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(timeout=self.timeout_seconds)
        return self._http_client

    @property
    def _headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self.service_role_key}",
            "apikey": self.service_role_key,
        }

    async def upload(self, name: str, data: bytes, content_type: str) -> None:
        """Upload bytes under name; existing objects are not overwritten."""
        url = f"{self.base_url}/storage/v1/object/{self.bucket}/{name}"
        try:
            response = await self.http_client.post(
                url,
                content=data,
                headers={**self._headers, "Content-Type": content_type, "x-upsert": "false"},
            )
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            logger.error(
                "storage_upload_failed",
                object_name=name,
                status=e.response.status_code,
                text=e.response.text,
            )
            raise StorageError(name, f"upload rejected with {e.response.status_code}") from e
        except httpx.HTTPError as e:
            logger.error("storage_upload_error", object_name=name, error=str(e))
            raise StorageError(name, str(e) or type(e).__name__) from e

        logger.info("storage_object_uploaded", object_name=name, size=len(data))

    def public_url(self, name: str) -> str:
        return f"{self.base_url}/storage/v1/object/public/{self.bucket}/{name}"

    async def remove(self, name: str) -> None:
        """Delete an object from the bucket."""
        url = f"{self.base_url}/storage/v1/object/{self.bucket}"
        try:
            response = await self.http_client.request(
                "DELETE", url, json={"prefixes": [name]}, headers=self._headers
            )
            response.raise_for_status()
        except httpx.HTTPError as e:
            logger.error("storage_remove_failed", object_name=name, error=str(e))
            raise StorageError(name, f"remove failed: {e}") from e

        logger.info("storage_object_removed", object_name=name)

    async def close(self) -> None:
        """Close HTTP client."""
        if self._http_client:
            await self._http_client.aclose()
