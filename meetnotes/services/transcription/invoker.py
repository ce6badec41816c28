"""Runs one recording through speech-to-text and persists the transcript.

The recording's status only advances after the corresponding write has
committed: the transcript row first, then ``completed``. Any failure
before the transcript is stored marks the recording ``failed`` with a
readable message, but only from the status this attempt observed or
claimed: a losing attempt never fails a recording another one holds.
"""

import logging
from dataclasses import dataclass

from meetnotes.core.exceptions import (
    MeetNotesError,
    PersistenceError,
    TranscriptionError,
)
from meetnotes.core.models import RecordingStatus, TranscriptResponse
from meetnotes.services.jobs import JobStateStore, ensure_can_transcribe
from meetnotes.services.notifications import StatusEvent, StatusHub
from meetnotes.services.objects.base import BaseObjectStore
from meetnotes.services.storage.database import Database
from meetnotes.services.storage.repository import RecordingRepository
from meetnotes.services.transcription.base import BaseSTT

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TranscriptionOutcome:
    """Result of a transcription run.

    ``status_committed`` is False when the transcript was stored but the
    recording could not be moved to ``completed``.
    """

    recording_id: int
    transcript: TranscriptResponse
    status: RecordingStatus
    status_committed: bool


class TranscriptionInvoker:
    """Drives a recording from ``processing`` (or ``failed``) to ``completed``.

    Args:
        jobs: Recording status store.
        database: Used for the transcript write.
        object_store: Holds the uploaded file.
        stt: Speech-to-text provider.
        hub: Push channel for the transcript event.
        signed_url_ttl: Lifetime of the read URL, in seconds.
    """

    def __init__(
        self,
        jobs: JobStateStore,
        database: Database,
        object_store: BaseObjectStore,
        stt: BaseSTT,
        hub: StatusHub | None = None,
        signed_url_ttl: int = 300,
    ) -> None:
        self._jobs = jobs
        self._db = database
        self._store = object_store
        self._stt = stt
        self._hub = hub
        self._signed_url_ttl = signed_url_ttl

    async def run(self, recording_id: int, owner_id: str | None = None) -> TranscriptionOutcome:
        """Transcribe a recording and store the result.

        Args:
            recording_id: Recording to transcribe.
            owner_id: When given, the recording must belong to this owner.

        Raises:
            RecordingNotFoundError: Unknown recording or wrong owner.
            InvalidTransitionError: Recording is pending or already completed.
            RecordingBusyError: Another attempt is transcribing it.
            StorageError, TranscriptionError, PersistenceError: Pipeline failures;
                the recording is marked failed before these propagate.
        """
        recording = await self._jobs.get(recording_id, owner_id)
        ensure_can_transcribe(recording)
        observed = RecordingStatus(recording.status)

        try:
            signed_url = await self._store.create_signed_url(recording.storage_path, self._signed_url_ttl)
        except MeetNotesError as exc:
            # Not claimed yet: only fail the status this attempt saw.
            await self._fail(recording_id, exc, expected=observed)
            raise

        await self._jobs.claim_transcription(recording_id)

        try:
            audio = await self._store.fetch(signed_url)
            result = await self._stt.transcribe(audio, content_type=recording.mime_type)
            content = result.text.strip()
            if not content:
                raise TranscriptionError("Speech-to-text returned an empty transcript")
        except MeetNotesError as exc:
            await self._fail(recording_id, exc, expected=RecordingStatus.transcribing)
            raise
        except Exception as exc:
            logger.exception("Unexpected error transcribing recording %s", recording_id)
            error = TranscriptionError(f"Unexpected transcription error: {exc}")
            await self._fail(recording_id, error, expected=RecordingStatus.transcribing)
            raise error from exc

        try:
            async with self._db.session() as session:
                transcript = await RecordingRepository(session).create_transcript(recording_id, content)
        except PersistenceError as exc:
            await self._fail(recording_id, exc, expected=RecordingStatus.transcribing)
            raise
        saved = TranscriptResponse.model_validate(transcript)
        logger.info(
            "Transcript %s stored for recording %s (%d chars, %.1fs audio)",
            saved.id,
            recording_id,
            len(content),
            result.duration,
        )

        if self._hub is not None:
            self._hub.publish(
                StatusEvent(
                    recording_id=recording_id,
                    kind="transcript",
                    transcript=saved.content,
                    transcript_id=saved.id,
                )
            )

        try:
            await self._jobs.transition(recording_id, RecordingStatus.completed)
        except MeetNotesError:
            logger.exception(
                "Transcript %s saved but recording %s could not be marked completed; needs follow-up",
                saved.id,
                recording_id,
            )
            return TranscriptionOutcome(
                recording_id=recording_id,
                transcript=saved,
                status=RecordingStatus.transcribing,
                status_committed=False,
            )

        return TranscriptionOutcome(
            recording_id=recording_id,
            transcript=saved,
            status=RecordingStatus.completed,
            status_committed=True,
        )

    async def _fail(self, recording_id: int, exc: MeetNotesError, expected: RecordingStatus) -> None:
        try:
            await self._jobs.mark_failed(recording_id, exc.detail, expected=[expected])
        except MeetNotesError:
            logger.exception("Could not mark recording %s failed after: %s", recording_id, exc.detail)
