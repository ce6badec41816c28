"""Scheduled sweep that advances unfinished recordings by one step.

Each recording in the batch is handled as an independent task, so one
slow or failing recording does not hold up the others:

* ``pending`` with its object stored -> ``processing``
* ``pending`` past the upload timeout with no object -> ``failed``
* ``processing`` -> transcription, then optionally summarization
"""

import asyncio
import logging
from collections.abc import Callable
from datetime import UTC, datetime

from meetnotes.core.exceptions import MeetNotesError
from meetnotes.core.models import RecordingStatus, SweepItem
from meetnotes.services.jobs import JobStateStore
from meetnotes.services.objects.base import BaseObjectStore
from meetnotes.services.storage.models_db import Recording
from meetnotes.services.summarization.invoker import SummarizationInvoker
from meetnotes.services.transcription.invoker import TranscriptionInvoker

logger = logging.getLogger(__name__)

UPLOAD_TIMEOUT_MESSAGE = "Upload did not complete"


def _as_utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes.
    return value if value.tzinfo else value.replace(tzinfo=UTC)


class RecordingSweeper:
    """Advances a batch of pending/processing recordings.

    Args:
        jobs: Recording status store.
        object_store: Used to confirm pending uploads landed.
        transcriber: Runs transcription for processing recordings.
        summarizer: Runs summarization after a successful transcription.
        batch_size: Maximum recordings per sweep.
        auto_summarize: Whether to summarize right after transcribing.
        pending_timeout: Seconds after which an object-less pending recording fails.
        now: Returns the current UTC time.
    """

    def __init__(
        self,
        jobs: JobStateStore,
        object_store: BaseObjectStore,
        transcriber: TranscriptionInvoker,
        summarizer: SummarizationInvoker | None = None,
        batch_size: int = 10,
        auto_summarize: bool = True,
        pending_timeout: float = 3600,
        now: Callable[[], datetime] = lambda: datetime.now(UTC),
    ) -> None:
        self._jobs = jobs
        self._store = object_store
        self._transcriber = transcriber
        self._summarizer = summarizer
        self._batch_size = batch_size
        self._auto_summarize = auto_summarize and summarizer is not None
        self._pending_timeout = pending_timeout
        self._now = now

    async def sweep(self) -> list[SweepItem]:
        """Run one sweep and report what happened to each recording."""
        recordings = await self._jobs.list_unfinished(self._batch_size)
        if not recordings:
            return []
        logger.info("Sweeping %d unfinished recordings", len(recordings))
        return list(await asyncio.gather(*(self._advance(recording) for recording in recordings)))

    async def _advance(self, recording: Recording) -> SweepItem:
        status = RecordingStatus(recording.status)
        try:
            if status == RecordingStatus.pending:
                return await self._advance_pending(recording)
            return await self._advance_processing(recording)
        except MeetNotesError as exc:
            logger.warning("Sweep of recording %s (%s) failed: %s", recording.id, status, exc.detail)
            return SweepItem(
                recording_id=recording.id,
                previous_status=status,
                action="failed",
                success=False,
                error=exc.detail,
            )

    async def _advance_pending(self, recording: Recording) -> SweepItem:
        if await self._store.exists(recording.storage_path):
            await self._jobs.transition(recording.id, RecordingStatus.processing)
            action = "promoted"
        elif (self._now() - _as_utc(recording.created_at)).total_seconds() > self._pending_timeout:
            await self._jobs.mark_failed(
                recording.id, UPLOAD_TIMEOUT_MESSAGE, expected=[RecordingStatus.pending]
            )
            action = "expired"
        else:
            action = "waiting"
        return SweepItem(recording_id=recording.id, previous_status=RecordingStatus.pending, action=action)

    async def _advance_processing(self, recording: Recording) -> SweepItem:
        outcome = await self._transcriber.run(recording.id)
        item = SweepItem(
            recording_id=recording.id,
            previous_status=RecordingStatus.processing,
            action="transcribed",
        )
        if not self._auto_summarize or not outcome.status_committed:
            return item

        try:
            await self._summarizer.run(recording.id)
        except MeetNotesError as exc:
            logger.warning("Summarization of recording %s failed: %s", recording.id, exc.detail)
            return item.model_copy(update={"error": exc.detail})
        return item.model_copy(update={"action": "summarized"})
