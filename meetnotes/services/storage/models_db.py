"""
SQLAlchemy ORM models for the meetnotes schema.

Tables: ``recordings``, ``transcripts``, ``summaries``.
"""

from datetime import UTC, datetime

from sqlalchemy import BigInteger, ForeignKey, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.types import JSON

from meetnotes.services.storage.database import Base


def _utcnow() -> datetime:
    return datetime.now(UTC)


class Recording(Base):
    """An uploaded audio/video file and its processing status."""

    __tablename__ = "recordings"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    owner_id: Mapped[str] = mapped_column(String(64), index=True)
    file_name: Mapped[str] = mapped_column(String(255))
    mime_type: Mapped[str] = mapped_column(String(100))
    byte_size: Mapped[int] = mapped_column(BigInteger, default=0)
    storage_path: Mapped[str] = mapped_column(String(512))
    status: Mapped[str] = mapped_column(String(20), default="pending", index=True)
    error_message: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(default=_utcnow)
    updated_at: Mapped[datetime] = mapped_column(default=_utcnow)

    transcript: Mapped["Transcript | None"] = relationship(
        back_populates="recording",
        cascade="all, delete-orphan",
        lazy="selectin",
        uselist=False,
    )
    summaries: Mapped[list["Summary"]] = relationship(
        back_populates="recording",
        cascade="all, delete-orphan",
        lazy="selectin",
    )

    def __repr__(self) -> str:
        return f"<Recording id={self.id} status={self.status!r}>"


class Transcript(Base):
    """The single transcript of a recording."""

    __tablename__ = "transcripts"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    recording_id: Mapped[int] = mapped_column(ForeignKey("recordings.id"), unique=True)
    content: Mapped[str] = mapped_column(Text)
    status: Mapped[str] = mapped_column(String(20), default="completed")
    created_at: Mapped[datetime] = mapped_column(default=_utcnow)
    updated_at: Mapped[datetime] = mapped_column(default=_utcnow)

    recording: Mapped["Recording"] = relationship(back_populates="transcript")

    def __repr__(self) -> str:
        return f"<Transcript id={self.id} recording={self.recording_id}>"


class Summary(Base):
    """A structured meeting summary; a recording may accumulate several."""

    __tablename__ = "summaries"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    recording_id: Mapped[int] = mapped_column(ForeignKey("recordings.id"), index=True)
    title: Mapped[str] = mapped_column(String(255), default="Meeting Summary")
    key_points: Mapped[list] = mapped_column(JSON, default=list)
    action_items: Mapped[list] = mapped_column(JSON, default=list)
    participants: Mapped[list] = mapped_column(JSON, default=list)
    general_notes: Mapped[str] = mapped_column(Text, default="")
    model_used: Mapped[str] = mapped_column(String(100), default="")
    created_at: Mapped[datetime] = mapped_column(default=_utcnow)

    recording: Mapped["Recording"] = relationship(back_populates="summaries")

    def __repr__(self) -> str:
        return f"<Summary id={self.id} recording={self.recording_id}>"
