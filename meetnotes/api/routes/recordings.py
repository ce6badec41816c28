"""
Recording REST endpoints.

Upload (with chunked transfer for large files), listing, lookup and
deletion of an owner's recordings.
"""

import logging
import time

from fastapi import APIRouter, BackgroundTasks, Depends, File, Query, Response, UploadFile

from meetnotes.api.deps import current_owner, get_services
from meetnotes.core.exceptions import InvalidTransitionError, MeetNotesError, ValidationError
from meetnotes.core.models import RecordingResponse, RecordingStatus
from meetnotes.core.utils import recording_object_path
from meetnotes.services.container import Services

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/recordings", tags=["recordings"])


async def process_recording(services: Services, recording_id: int, owner_id: str) -> None:
    """Transcribe then summarize; failures are already recorded on the recording."""
    try:
        await services.transcriber.run(recording_id, owner_id)
        await services.summarizer.run(recording_id, owner_id)
    except MeetNotesError as exc:
        logger.warning("Background processing of recording %s stopped: %s", recording_id, exc.detail)


def _validate_upload(services: Services, file: UploadFile) -> str:
    settings = services.settings
    mime_type = (file.content_type or "").split(";")[0].strip().lower()
    if mime_type not in settings.upload_allowed_mime_types:
        raise ValidationError(f"Unsupported file type: {mime_type or 'unknown'}")
    if file.size is not None and file.size > settings.upload_max_file_size:
        raise ValidationError(f"File exceeds the {settings.upload_max_file_size} byte limit")
    return mime_type


@router.post("", response_model=RecordingResponse, status_code=201)
async def upload_recording(
    background_tasks: BackgroundTasks,
    file: UploadFile = File(...),
    process: bool = Query(False, description="Transcribe and summarize after upload"),
    owner_id: str = Depends(current_owner),
    services: Services = Depends(get_services),
):
    """Store an uploaded recording and mark it ready for transcription."""
    mime_type = _validate_upload(services, file)
    data = await file.read()
    if not data:
        raise ValidationError("Uploaded file is empty")
    if len(data) > services.settings.upload_max_file_size:
        raise ValidationError(f"File exceeds the {services.settings.upload_max_file_size} byte limit")

    file_name = file.filename or "recording"
    storage_path = recording_object_path(owner_id, int(time.time() * 1000), mime_type, file_name)
    recording = await services.jobs.create(
        owner_id=owner_id,
        file_name=file_name,
        mime_type=mime_type,
        byte_size=len(data),
        storage_path=storage_path,
    )

    def _log_progress(percent: int) -> None:
        if percent % 25 == 0:
            logger.debug("Upload of recording %s: %d%%", recording.id, percent)

    try:
        await services.uploader.upload(data, storage_path, mime_type, on_progress=_log_progress)
    except MeetNotesError as exc:
        await services.jobs.mark_failed(
            recording.id, f"Upload failed: {exc.detail}", expected=[RecordingStatus.pending]
        )
        raise

    try:
        recording = await services.jobs.transition(recording.id, RecordingStatus.processing)
    except InvalidTransitionError:
        # The sweep saw the stored object first and promoted the recording.
        recording = await services.jobs.get(recording.id)
        if recording.status in (RecordingStatus.pending, RecordingStatus.failed):
            raise
        logger.info("Recording %s already advanced to %s after upload", recording.id, recording.status)
    if process:
        background_tasks.add_task(process_recording, services, recording.id, owner_id)
    return RecordingResponse.model_validate(recording)


@router.get("", response_model=list[RecordingResponse])
async def list_recordings(
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    owner_id: str = Depends(current_owner),
    services: Services = Depends(get_services),
):
    """List the caller's recordings, newest first."""
    recordings = await services.jobs.list_for_owner(owner_id, limit=limit, offset=offset)
    return [RecordingResponse.model_validate(r) for r in recordings]


@router.get("/{recording_id}", response_model=RecordingResponse)
async def get_recording(
    recording_id: int,
    owner_id: str = Depends(current_owner),
    services: Services = Depends(get_services),
):
    """Get a single recording by ID."""
    recording = await services.jobs.get(recording_id, owner_id)
    return RecordingResponse.model_validate(recording)


@router.delete("/{recording_id}", status_code=204)
async def delete_recording(
    recording_id: int,
    owner_id: str = Depends(current_owner),
    services: Services = Depends(get_services),
):
    """Delete the stored file, then the recording with its transcript and summaries."""
    recording = await services.jobs.get(recording_id, owner_id)
    await services.object_store.delete([recording.storage_path])
    await services.jobs.delete(recording_id)
    return Response(status_code=204)
