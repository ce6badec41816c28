"""
Pydantic v2 request / response models used across the API and service layers.
"""

from datetime import datetime
from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field, field_validator

# ---------------------------------------------------------------------------
# Health
# ---------------------------------------------------------------------------


class HealthResponse(BaseModel):
    """GET /health response."""

    status: str = "ok"
    version: str = "0.1.0"
    timestamp: datetime


# ---------------------------------------------------------------------------
# Recording
# ---------------------------------------------------------------------------


class RecordingStatus(StrEnum):
    """Processing stages of an uploaded recording."""

    pending = "pending"
    processing = "processing"
    transcribing = "transcribing"
    completed = "completed"
    failed = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (RecordingStatus.completed, RecordingStatus.failed)


class RecordingResponse(BaseModel):
    """Standard recording representation returned by the API."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    owner_id: str
    file_name: str
    mime_type: str
    byte_size: int
    storage_path: str
    status: RecordingStatus
    error_message: str | None = None
    created_at: datetime
    updated_at: datetime


# ---------------------------------------------------------------------------
# Transcription
# ---------------------------------------------------------------------------


class TranscriptionResult(BaseModel):
    """Internal service result from a speech-to-text call."""

    text: str
    language: str = "unknown"
    confidence: float = 0.0
    duration: float = 0.0
    model: str = ""


class TranscriptResponse(BaseModel):
    """A recording's single persisted transcript."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    recording_id: int
    content: str
    status: str = "completed"
    created_at: datetime
    updated_at: datetime


class TranscriptionResponse(BaseModel):
    """POST /recordings/{id}/transcribe response.

    ``status_committed`` is False when the transcript was saved but the
    recording could not be marked completed.
    """

    recording_id: int
    status: RecordingStatus
    status_committed: bool = True
    transcript: TranscriptResponse


# ---------------------------------------------------------------------------
# Summary
# ---------------------------------------------------------------------------


class SummaryResult(BaseModel):
    """Internal service result parsed from the summarization model."""

    key_points: list[str] = Field(default_factory=list)
    action_items: list[str] = Field(default_factory=list)
    participants: list[str] = Field(default_factory=list)
    general_notes: str = ""
    model_used: str = ""

    @field_validator("general_notes", mode="before")
    @classmethod
    def _join_note_lines(cls, value: object) -> object:
        if isinstance(value, list) and all(isinstance(item, str) for item in value):
            return "\n".join(value)
        return value


class SummaryResponse(BaseModel):
    """A persisted meeting summary."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    recording_id: int
    title: str
    key_points: list[str] = Field(default_factory=list)
    action_items: list[str] = Field(default_factory=list)
    participants: list[str] = Field(default_factory=list)
    general_notes: str = ""
    model_used: str = ""
    created_at: datetime


# ---------------------------------------------------------------------------
# Status
# ---------------------------------------------------------------------------


class StatusResponse(BaseModel):
    """GET /recordings/{id}/status response, also the polling snapshot."""

    recording_id: int
    status: RecordingStatus
    error_message: str | None = None
    transcript: TranscriptResponse | None = None
    updated_at: datetime | None = None


class StatusMessageType(StrEnum):
    """Types of messages sent over the status WebSocket."""

    snapshot = "snapshot"
    status = "status"
    transcript = "transcript"
    progress = "progress"
    error = "error"


class StatusMessage(BaseModel):
    """Envelope for all status WebSocket messages."""

    type: StatusMessageType
    data: dict = Field(default_factory=dict)


# ---------------------------------------------------------------------------
# Sweep
# ---------------------------------------------------------------------------


class SweepItem(BaseModel):
    """Outcome of advancing one recording by one step."""

    recording_id: int
    previous_status: RecordingStatus
    action: str
    success: bool = True
    error: str | None = None


class SweepResponse(BaseModel):
    """GET/POST /cron/process-recordings response."""

    message: str
    processed: list[SweepItem] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Error
# ---------------------------------------------------------------------------


class ErrorResponse(BaseModel):
    """Standard error envelope."""

    detail: str
    code: str
    timestamp: str
    raw: str | None = None
