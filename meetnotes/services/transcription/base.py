"""
Abstract base class for Speech-to-Text providers.

All STT implementations must implement this interface, enabling
provider-agnostic transcription in the service layer.
"""

from abc import ABC, abstractmethod

from meetnotes.core.models import TranscriptionResult


class BaseSTT(ABC):
    """Interface that every STT provider must implement."""

    @abstractmethod
    async def transcribe(self, audio: bytes, content_type: str, **kwargs) -> TranscriptionResult:
        """Transcribe a complete audio/video file.

        Args:
            audio: Raw file bytes.
            content_type: MIME type of ``audio``.
            **kwargs: Provider-specific options (language, model, etc.).

        Returns:
            The transcript text with whatever metadata the provider reports.

        Raises:
            TranscriptionError: If the provider fails or the response is unusable.
        """

    async def aclose(self) -> None:
        """Release network clients held by the provider."""
        return None
