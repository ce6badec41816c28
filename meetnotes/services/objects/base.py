"""
Abstract base class for object storage backends.
"""

import posixpath
from abc import ABC, abstractmethod


class BaseObjectStore(ABC):
    """Interface for blob storage holding uploaded recordings.

    Paths are ``/``-separated keys relative to the store's bucket or root.
    Backend failures are raised as :class:`StorageError`.
    """

    @abstractmethod
    async def put(self, path: str, data: bytes, content_type: str) -> None:
        """Write ``data`` at ``path``."""
        ...

    @abstractmethod
    async def create_signed_url(self, path: str, expires_in: int) -> str:
        """Return a URL granting read access to ``path`` for ``expires_in`` seconds."""
        ...

    @abstractmethod
    async def fetch(self, signed_url: str) -> bytes:
        """Download the bytes behind a URL issued by :meth:`create_signed_url`."""
        ...

    @abstractmethod
    async def delete(self, paths: list[str]) -> None:
        """Remove the given objects; missing ones are ignored."""
        ...

    @abstractmethod
    async def list_paths(self, prefix: str) -> list[str]:
        """Return the full paths of the objects directly under ``prefix``."""
        ...

    async def exists(self, path: str) -> bool:
        """Return True when an object is stored at ``path``."""
        parent = posixpath.dirname(path)
        return path in await self.list_paths(parent)

    async def aclose(self) -> None:
        """Release network clients held by the store."""
        return None
