"""
CRUD repository for the meetnotes tables.

``RecordingRepository`` receives an ``AsyncSession`` and provides all
data-access methods.  It calls ``flush()`` rather than ``commit()`` so
that transaction boundaries are controlled by the caller (typically
:meth:`Database.session`).
"""

import logging
from collections.abc import Iterable
from datetime import UTC, datetime

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from meetnotes.core.exceptions import RecordingNotFoundError, TranscriptNotFoundError
from meetnotes.core.models import SummaryResult
from meetnotes.services.storage.models_db import Recording, Summary, Transcript

logger = logging.getLogger(__name__)


class RecordingRepository:
    """Data-access layer for the meetnotes schema.

    Args:
        session: An active SQLAlchemy ``AsyncSession``.
    """

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    # ------------------------------------------------------------------
    # Recordings
    # ------------------------------------------------------------------

    async def create_recording(
        self,
        owner_id: str,
        file_name: str,
        mime_type: str,
        byte_size: int,
        storage_path: str,
    ) -> Recording:
        """Create and return a new recording with status *pending*."""
        recording = Recording(
            owner_id=owner_id,
            file_name=file_name,
            mime_type=mime_type,
            byte_size=byte_size,
            storage_path=storage_path,
            status="pending",
        )
        self._session.add(recording)
        await self._session.flush()
        return recording

    async def get_recording(
        self, recording_id: int, owner_id: str | None = None, *, refresh: bool = False
    ) -> Recording:
        """Return a recording by ID or raise :class:`RecordingNotFoundError`.

        When ``owner_id`` is given, a recording owned by someone else is
        reported as missing.
        """
        stmt = select(Recording).where(Recording.id == recording_id)
        if owner_id is not None:
            stmt = stmt.where(Recording.owner_id == owner_id)
        if refresh:
            stmt = stmt.execution_options(populate_existing=True)
        result = await self._session.execute(stmt)
        recording = result.scalar_one_or_none()
        if recording is None:
            raise RecordingNotFoundError(recording_id)
        return recording

    async def list_recordings(self, owner_id: str, limit: int = 50, offset: int = 0) -> list[Recording]:
        """Return an owner's recordings, newest first."""
        stmt = (
            select(Recording)
            .where(Recording.owner_id == owner_id)
            .order_by(Recording.created_at.desc(), Recording.id.desc())
            .limit(limit)
            .offset(offset)
        )
        result = await self._session.execute(stmt)
        return list(result.scalars().all())

    async def list_by_status(self, statuses: Iterable[str], limit: int) -> list[Recording]:
        """Return recordings in any of ``statuses``, oldest first."""
        stmt = (
            select(Recording)
            .where(Recording.status.in_(list(statuses)))
            .order_by(Recording.created_at.asc(), Recording.id.asc())
            .limit(limit)
        )
        result = await self._session.execute(stmt)
        return list(result.scalars().all())

    async def update_status(
        self,
        recording_id: int,
        status: str,
        *,
        expected: Iterable[str] | None = None,
        error_message: str | None = None,
        clear_error: bool = False,
    ) -> int:
        """Set a recording's status, optionally only when it is in ``expected``.

        Returns the number of rows changed, so 0 means the guard did not match.
        """
        values: dict = {"status": status, "updated_at": datetime.now(UTC)}
        if error_message is not None:
            values["error_message"] = error_message
        elif clear_error:
            values["error_message"] = None

        stmt = update(Recording).where(Recording.id == recording_id)
        if expected is not None:
            stmt = stmt.where(Recording.status.in_(list(expected)))
        stmt = stmt.values(**values).execution_options(synchronize_session=False)
        result = await self._session.execute(stmt)
        return result.rowcount

    async def delete_recording(self, recording_id: int) -> None:
        """Delete a recording and its transcript and summaries."""
        recording = await self.get_recording(recording_id)
        await self._session.delete(recording)
        await self._session.flush()

    # ------------------------------------------------------------------
    # Transcripts
    # ------------------------------------------------------------------

    async def create_transcript(self, recording_id: int, content: str) -> Transcript:
        """Persist the transcript of a recording."""
        transcript = Transcript(recording_id=recording_id, content=content, status="completed")
        self._session.add(transcript)
        await self._session.flush()
        return transcript

    async def find_transcript(self, recording_id: int) -> Transcript | None:
        """Return the recording's transcript, or None."""
        stmt = select(Transcript).where(Transcript.recording_id == recording_id)
        result = await self._session.execute(stmt)
        return result.scalar_one_or_none()

    async def get_transcript(self, recording_id: int) -> Transcript:
        """Return the recording's transcript or raise :class:`TranscriptNotFoundError`."""
        transcript = await self.find_transcript(recording_id)
        if transcript is None:
            raise TranscriptNotFoundError(recording_id)
        return transcript

    # ------------------------------------------------------------------
    # Summaries
    # ------------------------------------------------------------------

    async def create_summary(
        self, recording_id: int, result: SummaryResult, title: str = "Meeting Summary"
    ) -> Summary:
        """Append a summary row; earlier summaries are kept."""
        summary = Summary(
            recording_id=recording_id,
            title=title,
            key_points=result.key_points,
            action_items=result.action_items,
            participants=result.participants,
            general_notes=result.general_notes,
            model_used=result.model_used,
        )
        self._session.add(summary)
        await self._session.flush()
        return summary

    async def list_summaries(self, recording_id: int) -> list[Summary]:
        """Return a recording's summaries, newest first."""
        stmt = (
            select(Summary)
            .where(Summary.recording_id == recording_id)
            .order_by(Summary.created_at.desc(), Summary.id.desc())
        )
        result = await self._session.execute(stmt)
        return list(result.scalars().all())
