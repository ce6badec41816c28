"""
Signed download route for the local object store.

Serves ``/storage/v1/object/sign/<path>?expires=..&token=..`` URLs issued
by ``LocalObjectStore`` so external consumers can fetch uploaded files.
"""

import mimetypes

from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import FileResponse

from meetnotes.api.deps import get_services
from meetnotes.core.exceptions import StorageError
from meetnotes.services.container import Services
from meetnotes.services.objects.local import LocalObjectStore

router = APIRouter(prefix="/storage/v1/object/sign", tags=["storage"])


@router.get("/{path:path}")
async def download_signed(
    path: str,
    expires: int = Query(...),
    token: str = Query(...),
    services: Services = Depends(get_services),
):
    """Stream an object after checking its URL signature."""
    store = services.object_store
    if not isinstance(store, LocalObjectStore):
        raise HTTPException(status_code=404, detail="Signed downloads are served by the storage provider")
    try:
        target = store.verify(path, expires, token)
    except StorageError as exc:
        raise HTTPException(status_code=403, detail=exc.detail) from exc
    media_type = mimetypes.guess_type(target.name)[0] or "application/octet-stream"
    return FileResponse(target, media_type=media_type)
