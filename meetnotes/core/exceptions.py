"""
meetnotes exception hierarchy.

All application-specific exceptions inherit from MeetNotesError,
enabling centralized error handling in the API middleware layer.
"""

from datetime import UTC, datetime


class MeetNotesError(Exception):
    """Base exception for all meetnotes errors."""

    def __init__(
        self,
        detail: str = "An unexpected error occurred",
        code: str = "MEETNOTES_ERROR",
        status_code: int = 500,
    ) -> None:
        self.detail = detail
        self.code = code
        self.status_code = status_code
        self.timestamp = datetime.now(UTC).isoformat()
        super().__init__(detail)

    @property
    def public_detail(self) -> str:
        """Message safe to return to API clients."""
        return self.detail


class ValidationError(MeetNotesError):
    """Raised for malformed ids, unsupported files or oversize uploads."""

    def __init__(self, detail: str = "Invalid request") -> None:
        super().__init__(detail=detail, code="VALIDATION_ERROR", status_code=400)


class AuthenticationError(MeetNotesError):
    """Raised when a request carries no authenticated owner."""

    def __init__(self, detail: str = "Authentication required") -> None:
        super().__init__(detail=detail, code="AUTHENTICATION_REQUIRED", status_code=401)


class NotFoundError(MeetNotesError):
    """Raised when a requested entity does not exist."""

    def __init__(self, detail: str = "Not found", code: str = "NOT_FOUND") -> None:
        super().__init__(detail=detail, code=code, status_code=404)


class RecordingNotFoundError(NotFoundError):
    """Raised when a recording ID does not exist or belongs to another owner."""

    def __init__(self, recording_id: int | str) -> None:
        super().__init__(
            detail=f"Recording not found: {recording_id}",
            code="RECORDING_NOT_FOUND",
        )


class TranscriptNotFoundError(NotFoundError):
    """Raised when summarization is requested before a transcript exists."""

    def __init__(self, recording_id: int | str) -> None:
        super().__init__(
            detail=f"Transcript not found for recording: {recording_id}",
            code="TRANSCRIPT_NOT_FOUND",
        )


class InvalidTransitionError(MeetNotesError):
    """Raised when a status change is not allowed from the current status."""

    def __init__(self, recording_id: int, current: str, target: str) -> None:
        self.current = current
        self.target = target
        super().__init__(
            detail=f"Recording {recording_id} cannot move from {current!r} to {target!r}",
            code="INVALID_TRANSITION",
            status_code=409,
        )


class RecordingBusyError(MeetNotesError):
    """Raised when another transcription attempt already holds the recording."""

    def __init__(self, recording_id: int) -> None:
        super().__init__(
            detail=f"Recording {recording_id} is already being transcribed",
            code="RECORDING_BUSY",
            status_code=409,
        )


class UpstreamError(MeetNotesError):
    """Raised when an external dependency (storage, STT, LLM) fails."""

    def __init__(self, detail: str = "Upstream service failed", code: str = "UPSTREAM_ERROR") -> None:
        super().__init__(detail=detail, code=code, status_code=502)

    @property
    def public_detail(self) -> str:
        return "An upstream service failed while processing the request"


class StorageError(UpstreamError):
    """Raised when an object storage operation fails."""

    def __init__(self, detail: str = "Storage operation failed") -> None:
        super().__init__(detail=detail, code="STORAGE_ERROR")


class TranscriptionError(UpstreamError):
    """Raised when STT processing fails or yields no transcript."""

    def __init__(self, detail: str = "Transcription failed") -> None:
        super().__init__(detail=detail, code="TRANSCRIPTION_ERROR")


class SummarizationError(UpstreamError):
    """Raised when the summarization model call fails."""

    def __init__(self, detail: str = "Summarization failed") -> None:
        super().__init__(detail=detail, code="SUMMARIZATION_ERROR")


class ParseError(MeetNotesError):
    """Raised when an upstream response cannot be parsed; keeps the raw text."""

    def __init__(self, detail: str, raw: str, code: str = "PARSE_ERROR") -> None:
        self.raw = raw
        super().__init__(detail=detail, code=code, status_code=502)


class SummaryParseError(ParseError):
    """Raised when the model's summary is not the expected JSON object."""

    def __init__(self, detail: str, raw: str) -> None:
        super().__init__(detail=detail, raw=raw, code="SUMMARY_PARSE_ERROR")


class PersistenceError(MeetNotesError):
    """Raised when a database write or read fails."""

    def __init__(self, detail: str = "Database operation failed") -> None:
        super().__init__(detail=detail, code="PERSISTENCE_ERROR", status_code=500)
