"""
Supabase Storage backend over its REST API.

Uses ``httpx.AsyncClient`` with the service-role key from settings.
Every non-2xx response or transport failure becomes a ``StorageError``.
"""

import logging

import httpx

from meetnotes.core.exceptions import StorageError
from meetnotes.services.objects.base import BaseObjectStore

logger = logging.getLogger(__name__)


class SupabaseObjectStore(BaseObjectStore):
    """Object store backed by a Supabase Storage bucket.

    Args:
        url: Supabase project URL, e.g. ``https://xyz.supabase.co``.
        service_key: Service-role API key.
        bucket: Bucket holding the uploads.
        client: Optional preconfigured ``httpx.AsyncClient`` (used in tests).
    """

    def __init__(
        self,
        url: str,
        service_key: str,
        bucket: str = "user-uploads",
        client: httpx.AsyncClient | None = None,
    ) -> None:
        if not url or not service_key:
            raise StorageError("Supabase storage requires supabase_url and supabase_service_key")
        self._storage_url = f"{url.rstrip('/')}/storage/v1"
        self._bucket = bucket
        self._client = client or httpx.AsyncClient(timeout=httpx.Timeout(60.0, connect=10.0))
        self._headers = {"Authorization": f"Bearer {service_key}", "apikey": service_key}

    async def _request(self, method: str, url: str, **kwargs) -> httpx.Response:
        headers = {**self._headers, **kwargs.pop("headers", {})}
        try:
            response = await self._client.request(method, url, headers=headers, **kwargs)
        except httpx.HTTPError as exc:
            raise StorageError(f"Storage request failed: {exc}") from exc
        if response.is_error:
            raise StorageError(f"Storage returned HTTP {response.status_code}: {response.text[:200]}")
        return response

    async def put(self, path: str, data: bytes, content_type: str) -> None:
        await self._request(
            "POST",
            f"{self._storage_url}/object/{self._bucket}/{path}",
            content=data,
            headers={"Content-Type": content_type, "x-upsert": "false"},
        )

    async def create_signed_url(self, path: str, expires_in: int) -> str:
        response = await self._request(
            "POST",
            f"{self._storage_url}/object/sign/{self._bucket}/{path}",
            json={"expiresIn": expires_in},
        )
        signed = response.json().get("signedURL")
        if not signed:
            raise StorageError(f"Storage returned no signed URL for {path}")
        return f"{self._storage_url}{signed}"

    async def fetch(self, signed_url: str) -> bytes:
        try:
            response = await self._client.get(signed_url)
        except httpx.HTTPError as exc:
            raise StorageError(f"Download failed: {exc}") from exc
        if response.is_error:
            raise StorageError(f"Download returned HTTP {response.status_code}")
        return response.content

    async def delete(self, paths: list[str]) -> None:
        if not paths:
            return
        await self._request("DELETE", f"{self._storage_url}/object/{self._bucket}", json={"prefixes": paths})

    async def list_paths(self, prefix: str) -> list[str]:
        folder = prefix.strip("/")
        response = await self._request(
            "POST",
            f"{self._storage_url}/object/list/{self._bucket}",
            json={"prefix": folder, "limit": 1000, "offset": 0},
        )
        # Folders come back with a null id.
        return [
            f"{folder}/{item['name']}" if folder else item["name"]
            for item in response.json()
            if item.get("id") is not None
        ]

    async def aclose(self) -> None:
        await self._client.aclose()
