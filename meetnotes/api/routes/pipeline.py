"""
Processing endpoints: transcription, summarization and status polling.
"""

from fastapi import APIRouter, Depends

from meetnotes.api.deps import current_owner, get_services
from meetnotes.core.models import (
    StatusResponse,
    SummaryResponse,
    TranscriptionResponse,
    TranscriptResponse,
)
from meetnotes.services.container import Services
from meetnotes.services.storage.repository import RecordingRepository

router = APIRouter(prefix="/recordings", tags=["pipeline"])


@router.post("/{recording_id}/transcribe", response_model=TranscriptionResponse)
async def transcribe_recording(
    recording_id: int,
    owner_id: str = Depends(current_owner),
    services: Services = Depends(get_services),
):
    """Run speech-to-text on a processing (or previously failed) recording."""
    outcome = await services.transcriber.run(recording_id, owner_id)
    return TranscriptionResponse(
        recording_id=outcome.recording_id,
        status=outcome.status,
        status_committed=outcome.status_committed,
        transcript=outcome.transcript,
    )


@router.get("/{recording_id}/transcript", response_model=TranscriptResponse)
async def get_transcript(
    recording_id: int,
    owner_id: str = Depends(current_owner),
    services: Services = Depends(get_services),
):
    """Return the recording's transcript."""
    await services.jobs.get(recording_id, owner_id)
    async with services.database.session() as session:
        transcript = await RecordingRepository(session).get_transcript(recording_id)
    return TranscriptResponse.model_validate(transcript)


@router.post("/{recording_id}/summarize", response_model=SummaryResponse, status_code=201)
async def summarize_recording(
    recording_id: int,
    owner_id: str = Depends(current_owner),
    services: Services = Depends(get_services),
):
    """Summarize the recording's transcript; earlier summaries are kept."""
    return await services.summarizer.run(recording_id, owner_id)


@router.get("/{recording_id}/summaries", response_model=list[SummaryResponse])
async def list_summaries(
    recording_id: int,
    owner_id: str = Depends(current_owner),
    services: Services = Depends(get_services),
):
    """All summaries of a recording, newest (current) first."""
    await services.jobs.get(recording_id, owner_id)
    async with services.database.session() as session:
        summaries = await RecordingRepository(session).list_summaries(recording_id)
    return [SummaryResponse.model_validate(s) for s in summaries]


@router.get("/{recording_id}/status", response_model=StatusResponse)
async def get_status(
    recording_id: int,
    owner_id: str = Depends(current_owner),
    services: Services = Depends(get_services),
):
    """Current status, error message and transcript (when available)."""
    return await services.jobs.snapshot(recording_id, owner_id)
