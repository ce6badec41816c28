"""Tests for the local (HMAC-signed) and Supabase object stores."""

import json

import httpx
import pytest

from meetnotes.core.exceptions import StorageError
from meetnotes.services.objects import LocalObjectStore, SupabaseObjectStore, create_object_store

# ===================================================================
# LocalObjectStore
# ===================================================================


@pytest.fixture
def clock():
    """Mutable clock so tests can move time forward."""
    state = {"now": 1_700_000_000.0}

    def _now() -> float:
        return state["now"]

    _now.state = state
    return _now


@pytest.fixture
def local_store(tmp_path, clock):
    return LocalObjectStore(tmp_path / "objects", "http://test", "secret", clock=clock)


class TestLocalObjectStore:
    async def test_put_then_fetch_via_signed_url(self, local_store):
        await local_store.put("recordings/u1/a.mp3", b"abc", "audio/mpeg")
        url = await local_store.create_signed_url("recordings/u1/a.mp3", 300)

        assert url.startswith("http://test/storage/v1/object/sign/recordings/u1/a.mp3?expires=")
        assert await local_store.fetch(url) == b"abc"

    async def test_signing_missing_object_fails(self, local_store):
        with pytest.raises(StorageError, match="not found"):
            await local_store.create_signed_url("recordings/u1/missing.mp3", 300)

    async def test_expired_url_rejected(self, local_store, clock):
        await local_store.put("recordings/u1/a.mp3", b"abc", "audio/mpeg")
        url = await local_store.create_signed_url("recordings/u1/a.mp3", 60)
        clock.state["now"] += 61

        with pytest.raises(StorageError, match="expired"):
            await local_store.fetch(url)

    async def test_tampered_token_rejected(self, local_store):
        await local_store.put("recordings/u1/a.mp3", b"abc", "audio/mpeg")
        url = await local_store.create_signed_url("recordings/u1/a.mp3", 60)

        with pytest.raises(StorageError, match="Invalid signed URL"):
            await local_store.fetch(url[:-4] + "0000")

    async def test_path_traversal_rejected(self, local_store):
        with pytest.raises(StorageError, match="Invalid object path"):
            await local_store.put("../outside.mp3", b"x", "audio/mpeg")

    async def test_list_delete_and_exists(self, local_store):
        await local_store.put("chunks/t1/00000.part", b"1", "application/octet-stream")
        await local_store.put("chunks/t1/00001.part", b"2", "application/octet-stream")

        assert await local_store.list_paths("chunks/t1") == ["chunks/t1/00000.part", "chunks/t1/00001.part"]
        assert await local_store.exists("chunks/t1/00001.part")

        await local_store.delete(["chunks/t1/00000.part", "chunks/t1/00001.part", "chunks/t1/gone.part"])
        assert await local_store.list_paths("chunks/t1") == []
        assert not (local_store.root / "chunks").exists()

    def test_requires_signing_secret(self, tmp_path):
        with pytest.raises(StorageError):
            LocalObjectStore(tmp_path, "http://test", "")


# ===================================================================
# SupabaseObjectStore
# ===================================================================


def _supabase(handler) -> SupabaseObjectStore:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return SupabaseObjectStore("https://proj.supabase.co", "service-key", "user-uploads", client=client)


class TestSupabaseObjectStore:
    async def test_put_sends_bytes_with_auth(self):
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={"Key": "user-uploads/recordings/u1/a.mp3"})

        store = _supabase(handler)
        await store.put("recordings/u1/a.mp3", b"audio", "audio/mpeg")

        request = seen[0]
        assert request.method == "POST"
        assert request.url.path == "/storage/v1/object/user-uploads/recordings/u1/a.mp3"
        assert request.headers["authorization"] == "Bearer service-key"
        assert request.headers["content-type"] == "audio/mpeg"
        assert request.content == b"audio"

    async def test_create_signed_url_prefixes_storage_root(self):
        def handler(request: httpx.Request) -> httpx.Response:
            assert json.loads(request.content) == {"expiresIn": 300}
            return httpx.Response(200, json={"signedURL": "/object/sign/user-uploads/a.mp3?token=t"})

        store = _supabase(handler)
        url = await store.create_signed_url("a.mp3", 300)
        assert url == "https://proj.supabase.co/storage/v1/object/sign/user-uploads/a.mp3?token=t"

    async def test_error_status_becomes_storage_error(self):
        store = _supabase(lambda request: httpx.Response(400, json={"error": "Duplicate"}))
        with pytest.raises(StorageError, match="HTTP 400"):
            await store.put("a.mp3", b"x", "audio/mpeg")

    async def test_transport_error_becomes_storage_error(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("boom", request=request)

        store = _supabase(handler)
        with pytest.raises(StorageError, match="failed"):
            await store.fetch("https://proj.supabase.co/storage/v1/object/sign/a.mp3?token=t")

    async def test_list_skips_folders(self):
        def handler(request: httpx.Request) -> httpx.Response:
            assert json.loads(request.content)["prefix"] == "recordings/u1"
            return httpx.Response(
                200,
                json=[{"name": "1.mp3", "id": "abc"}, {"name": "sub", "id": None}],
            )

        store = _supabase(handler)
        assert await store.list_paths("recordings/u1") == ["recordings/u1/1.mp3"]

    async def test_delete_sends_prefixes(self):
        bodies: list[dict] = []

        def handler(request: httpx.Request) -> httpx.Response:
            assert request.method == "DELETE"
            bodies.append(json.loads(request.content))
            return httpx.Response(200, json=[])

        store = _supabase(handler)
        await store.delete(["a.part", "b.part"])
        assert bodies == [{"prefixes": ["a.part", "b.part"]}]


class TestFactory:
    def test_local_provider(self, settings):
        assert isinstance(create_object_store(settings), LocalObjectStore)

    def test_unknown_provider(self, settings):
        with pytest.raises(ValueError):
            create_object_store(settings.model_copy(update={"storage_provider": "ftp"}))
