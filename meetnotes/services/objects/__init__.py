"""Object storage backends for uploaded recordings."""

from meetnotes.core.config import Settings
from meetnotes.services.objects.base import BaseObjectStore
from meetnotes.services.objects.local import LocalObjectStore
from meetnotes.services.objects.supabase import SupabaseObjectStore


def create_object_store(settings: Settings) -> BaseObjectStore:
    """Factory: return the object store selected by ``settings.storage_provider``.

    Raises:
        ValueError: If the provider name is not recognised.
    """
    if settings.storage_provider == "local":
        return LocalObjectStore(
            root=settings.storage_root,
            base_url=settings.public_base_url,
            signing_secret=settings.storage_signing_secret,
        )
    if settings.storage_provider == "supabase":
        return SupabaseObjectStore(
            url=settings.supabase_url,
            service_key=settings.supabase_service_key,
            bucket=settings.storage_bucket,
        )
    raise ValueError(f"Unknown storage provider: {settings.storage_provider}")


__all__ = ["BaseObjectStore", "LocalObjectStore", "SupabaseObjectStore", "create_object_store"]
