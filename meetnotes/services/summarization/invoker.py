"""Turns a stored transcript into a persisted summary.

Summarization never changes the recording's status; failures are reported
to the caller only.
"""

import logging

from meetnotes.core.models import SummaryResponse
from meetnotes.services.jobs import JobStateStore
from meetnotes.services.storage.database import Database
from meetnotes.services.storage.repository import RecordingRepository
from meetnotes.services.summarization.meeting_summarizer import MeetingSummarizer

logger = logging.getLogger(__name__)

SUMMARY_TITLE = "Meeting Summary"


class SummarizationInvoker:
    """Loads the transcript, calls the summarizer and appends a summary row."""

    def __init__(self, jobs: JobStateStore, database: Database, summarizer: MeetingSummarizer) -> None:
        self._jobs = jobs
        self._db = database
        self._summarizer = summarizer

    async def run(self, recording_id: int, owner_id: str | None = None) -> SummaryResponse:
        """Summarize a recording's transcript.

        Raises:
            RecordingNotFoundError: Unknown recording or wrong owner.
            TranscriptNotFoundError: The recording has no transcript yet.
            SummarizationError: The model call failed.
            SummaryParseError: The model's answer could not be parsed.
        """
        await self._jobs.get(recording_id, owner_id)
        async with self._db.session() as session:
            transcript = await RecordingRepository(session).get_transcript(recording_id)

        result = await self._summarizer.summarize(transcript.content)

        async with self._db.session() as session:
            summary = await RecordingRepository(session).create_summary(recording_id, result, title=SUMMARY_TITLE)
        logger.info("Summary %s stored for recording %s (%s)", summary.id, recording_id, result.model_used)
        return SummaryResponse.model_validate(summary)
