"""
Filesystem object store with HMAC-signed read URLs.

Signed URLs point at the API's ``/storage/v1/object/sign/<path>`` route,
so remote consumers (the STT engine) can download objects the same way
they would from a hosted bucket. ``fetch`` resolves URLs issued by this
store directly from disk.
"""

import asyncio
import hashlib
import hmac
import logging
import time
from pathlib import Path
from urllib.parse import parse_qs, quote, unquote, urlsplit

from meetnotes.core.exceptions import StorageError
from meetnotes.services.objects.base import BaseObjectStore

logger = logging.getLogger(__name__)

SIGNED_ROUTE = "/storage/v1/object/sign/"


class LocalObjectStore(BaseObjectStore):
    """Stores objects as files below ``root``.

    Args:
        root: Directory holding the objects.
        base_url: Public base URL of the API serving signed downloads.
        signing_secret: HMAC key for signed URLs.
        clock: Returns the current epoch time in seconds.
    """

    def __init__(self, root: str | Path, base_url: str, signing_secret: str, clock=time.time) -> None:
        if not signing_secret:
            raise StorageError("Local object store requires a signing secret")
        self._root = Path(root).resolve()
        self._base_url = base_url.rstrip("/")
        self._secret = signing_secret.encode()
        self._clock = clock

    @property
    def root(self) -> Path:
        return self._root

    def _resolve(self, path: str) -> Path:
        target = (self._root / path).resolve()
        if not target.is_relative_to(self._root) or target == self._root:
            raise StorageError(f"Invalid object path: {path!r}")
        return target

    def _signature(self, path: str, expires: int) -> str:
        message = f"{path}:{expires}".encode()
        return hmac.new(self._secret, message, hashlib.sha256).hexdigest()

    async def put(self, path: str, data: bytes, content_type: str) -> None:
        target = self._resolve(path)

        def _write() -> None:
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_bytes(data)

        try:
            await asyncio.to_thread(_write)
        except OSError as exc:
            raise StorageError(f"Failed to write {path}: {exc}") from exc
        logger.debug("Stored %s (%d bytes, %s)", path, len(data), content_type)

    async def create_signed_url(self, path: str, expires_in: int) -> str:
        target = self._resolve(path)
        if not await asyncio.to_thread(target.is_file):
            raise StorageError(f"Object not found: {path}")
        expires = int(self._clock()) + expires_in
        token = self._signature(path, expires)
        return f"{self._base_url}{SIGNED_ROUTE}{quote(path)}?expires={expires}&token={token}"

    def verify(self, path: str, expires: int, token: str) -> Path:
        """Check a signed URL's parameters and return the object's file.

        Raises:
            StorageError: If the signature is wrong, expired, or the object is gone.
        """
        if expires < int(self._clock()):
            raise StorageError("Signed URL has expired")
        if not hmac.compare_digest(self._signature(path, expires), token):
            raise StorageError("Invalid signed URL")
        target = self._resolve(path)
        if not target.is_file():
            raise StorageError(f"Object not found: {path}")
        return target

    async def fetch(self, signed_url: str) -> bytes:
        parts = urlsplit(signed_url)
        if not parts.path.startswith(SIGNED_ROUTE):
            raise StorageError(f"URL was not issued by this store: {signed_url}")
        query = parse_qs(parts.query)
        try:
            expires = int(query["expires"][0])
            token = query["token"][0]
        except (KeyError, ValueError) as exc:
            raise StorageError("Malformed signed URL") from exc
        target = self.verify(unquote(parts.path[len(SIGNED_ROUTE) :]), expires, token)
        try:
            return await asyncio.to_thread(target.read_bytes)
        except OSError as exc:
            raise StorageError(f"Failed to read {target.name}: {exc}") from exc

    async def delete(self, paths: list[str]) -> None:
        def _remove() -> None:
            for path in paths:
                target = self._resolve(path)
                target.unlink(missing_ok=True)
                parent = target.parent
                # Drop emptied chunk directories, never the root itself.
                while parent != self._root and parent.is_dir() and not any(parent.iterdir()):
                    parent.rmdir()
                    parent = parent.parent

        try:
            await asyncio.to_thread(_remove)
        except OSError as exc:
            raise StorageError(f"Failed to delete objects: {exc}") from exc

    async def list_paths(self, prefix: str) -> list[str]:
        directory = self._resolve(prefix) if prefix.strip("/") else self._root

        def _scan() -> list[str]:
            if not directory.is_dir():
                return []
            return sorted(
                entry.relative_to(self._root).as_posix() for entry in directory.iterdir() if entry.is_file()
            )

        return await asyncio.to_thread(_scan)
