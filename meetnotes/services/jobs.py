"""Recording job state: lifecycle transitions over the recordings table.

Every status change is a compare-and-swap on the current status, so two
writers racing on one recording cannot both succeed. Changes are
published on the ``StatusHub`` only after they commit.
"""

import logging
from collections.abc import Iterable

from meetnotes.core.exceptions import (
    InvalidTransitionError,
    PersistenceError,
    RecordingBusyError,
)
from meetnotes.core.models import RecordingStatus, StatusResponse, TranscriptResponse
from meetnotes.services.notifications import StatusEvent, StatusHub
from meetnotes.services.storage.database import Database
from meetnotes.services.storage.models_db import Recording
from meetnotes.services.storage.repository import RecordingRepository

logger = logging.getLogger(__name__)

ALLOWED_TRANSITIONS: dict[RecordingStatus, frozenset[RecordingStatus]] = {
    RecordingStatus.pending: frozenset({RecordingStatus.processing, RecordingStatus.failed}),
    RecordingStatus.processing: frozenset({RecordingStatus.transcribing, RecordingStatus.failed}),
    RecordingStatus.transcribing: frozenset({RecordingStatus.completed, RecordingStatus.failed}),
    RecordingStatus.failed: frozenset({RecordingStatus.transcribing}),
    RecordingStatus.completed: frozenset(),
}

UNFINISHED = (RecordingStatus.pending, RecordingStatus.processing)


def ensure_can_transcribe(recording: Recording) -> None:
    """Raise unless ``recording`` may be claimed for transcription."""
    current = RecordingStatus(recording.status)
    if current == RecordingStatus.transcribing:
        raise RecordingBusyError(recording.id)
    if RecordingStatus.transcribing not in ALLOWED_TRANSITIONS[current]:
        raise InvalidTransitionError(recording.id, current, RecordingStatus.transcribing)


class JobStateStore:
    """Reads and advances recording status.

    Args:
        database: Job state persistence.
        hub: Push channel notified after each committed change.
    """

    def __init__(self, database: Database, hub: StatusHub | None = None) -> None:
        self._db = database
        self._hub = hub

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    async def create(
        self,
        owner_id: str,
        file_name: str,
        mime_type: str,
        byte_size: int,
        storage_path: str,
    ) -> Recording:
        async with self._db.session() as session:
            recording = await RecordingRepository(session).create_recording(
                owner_id=owner_id,
                file_name=file_name,
                mime_type=mime_type,
                byte_size=byte_size,
                storage_path=storage_path,
            )
        logger.info("Recording %s created for owner %s (%s)", recording.id, owner_id, storage_path)
        return recording

    async def get(self, recording_id: int, owner_id: str | None = None) -> Recording:
        async with self._db.session() as session:
            return await RecordingRepository(session).get_recording(recording_id, owner_id)

    async def list_for_owner(self, owner_id: str, limit: int = 50, offset: int = 0) -> list[Recording]:
        async with self._db.session() as session:
            return await RecordingRepository(session).list_recordings(owner_id, limit, offset)

    async def list_unfinished(self, limit: int) -> list[Recording]:
        """Return pending and processing recordings, oldest first."""
        async with self._db.session() as session:
            return await RecordingRepository(session).list_by_status(UNFINISHED, limit)

    async def snapshot(self, recording_id: int, owner_id: str | None = None) -> StatusResponse:
        """Current status plus the transcript when one exists."""
        async with self._db.session() as session:
            repo = RecordingRepository(session)
            recording = await repo.get_recording(recording_id, owner_id)
            transcript = await repo.find_transcript(recording_id)
        return StatusResponse(
            recording_id=recording.id,
            status=RecordingStatus(recording.status),
            error_message=recording.error_message,
            transcript=TranscriptResponse.model_validate(transcript) if transcript else None,
            updated_at=recording.updated_at,
        )

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    async def transition(
        self, recording_id: int, target: RecordingStatus, error_message: str | None = None
    ) -> Recording:
        """Move a recording to ``target`` if the transition table allows it.

        Raises:
            RecordingNotFoundError: If the recording does not exist.
            InvalidTransitionError: If the move is not allowed, or the status
                changed underneath this call.
        """
        async with self._db.session() as session:
            repo = RecordingRepository(session)
            recording = await repo.get_recording(recording_id)
            current = RecordingStatus(recording.status)
            if target not in ALLOWED_TRANSITIONS[current]:
                raise InvalidTransitionError(recording_id, current, target)
            changed = await repo.update_status(
                recording_id,
                target,
                expected=[current],
                error_message=error_message,
                clear_error=target != RecordingStatus.failed,
            )
            if not changed:
                raise InvalidTransitionError(recording_id, current, target)
            recording = await repo.get_recording(recording_id, refresh=True)

        logger.info("Recording %s: %s -> %s", recording_id, current, target)
        self._publish(recording)
        return recording

    async def claim_transcription(self, recording_id: int) -> Recording:
        """Atomically move a recording into ``transcribing``.

        Raises:
            RecordingBusyError: If another attempt holds the recording.
            InvalidTransitionError: If the recording is pending or completed.
        """
        async with self._db.session() as session:
            repo = RecordingRepository(session)
            recording = await repo.get_recording(recording_id)
            ensure_can_transcribe(recording)
            current = RecordingStatus(recording.status)
            changed = await repo.update_status(
                recording_id,
                RecordingStatus.transcribing,
                expected=[current],
                clear_error=True,
            )
            if not changed:
                raise RecordingBusyError(recording_id)
            recording = await repo.get_recording(recording_id, refresh=True)

        logger.info("Recording %s claimed for transcription (was %s)", recording_id, current)
        self._publish(recording)
        return recording

    async def mark_failed(
        self,
        recording_id: int,
        message: str,
        expected: Iterable[RecordingStatus] | None = None,
    ) -> bool:
        """Record a failure; a completed recording is left untouched.

        ``expected`` narrows the statuses the failure may overwrite, so a
        caller only fails the state it actually observed or holds. If
        storing the message fails, the status alone is written.

        Returns:
            Whether the recording was moved to ``failed``.
        """
        candidates = RecordingStatus if expected is None else expected
        expected = [status for status in candidates if status != RecordingStatus.completed]
        try:
            async with self._db.session() as session:
                changed = await RecordingRepository(session).update_status(
                    recording_id, RecordingStatus.failed, expected=expected, error_message=message
                )
        except PersistenceError:
            logger.exception("Could not store failure message for recording %s; retrying without it", recording_id)
            async with self._db.session() as session:
                changed = await RecordingRepository(session).update_status(
                    recording_id, RecordingStatus.failed, expected=expected
                )

        if not changed:
            logger.warning("Recording %s not marked failed (missing, completed or status moved on)", recording_id)
            return False
        logger.info("Recording %s failed: %s", recording_id, message)
        if self._hub is not None:
            self._hub.publish(
                StatusEvent(
                    recording_id=recording_id,
                    kind="status",
                    status=RecordingStatus.failed,
                    error_message=message,
                )
            )
        return True

    async def delete(self, recording_id: int) -> None:
        """Remove the recording row with its transcript and summaries."""
        async with self._db.session() as session:
            await RecordingRepository(session).delete_recording(recording_id)
        logger.info("Recording %s deleted", recording_id)

    def _publish(self, recording: Recording) -> None:
        if self._hub is None:
            return
        self._hub.publish(
            StatusEvent(
                recording_id=recording.id,
                kind="status",
                status=RecordingStatus(recording.status),
                error_message=recording.error_message,
            )
        )
