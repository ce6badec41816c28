"""
Deepgram prerecorded-audio STT provider.

Posts the raw file bytes to ``/v1/listen`` with ``httpx`` and retries
non-2xx responses and transport failures a fixed number of times with a
fixed wait (tenacity). The wait function is injectable so tests run
without real sleeps.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable

import httpx
from tenacity import (
    AsyncRetrying,
    before_sleep_log,
    retry_if_exception_type,
    stop_after_attempt,
    wait_fixed,
)

from meetnotes.core.exceptions import TranscriptionError
from meetnotes.core.models import TranscriptionResult
from meetnotes.services.transcription.base import BaseSTT

logger = logging.getLogger(__name__)


class UpstreamStatusError(Exception):
    """A non-2xx response from the STT engine."""

    def __init__(self, status_code: int, body: str) -> None:
        self.status_code = status_code
        self.body = body
        super().__init__(f"HTTP {status_code}: {body[:200]}")


class DeepgramSTT(BaseSTT):
    """Deepgram API speech-to-text with bounded retry.

    Args:
        api_key: Deepgram API key.
        base_url: API root, e.g. ``https://api.deepgram.com``.
        model: Deepgram model name.
        language: ISO 639-1 code, or empty for auto-detect.
        max_attempts: Total attempts including the first.
        retry_wait: Seconds between attempts.
        timeout: Per-request timeout in seconds; None waits indefinitely.
        client: Optional preconfigured ``httpx.AsyncClient`` (used in tests).
        sleep: Coroutine used to wait between attempts.
    """

    def __init__(
        self,
        api_key: str,
        base_url: str = "https://api.deepgram.com",
        model: str = "nova-2",
        language: str = "",
        max_attempts: int = 3,
        retry_wait: float = 2.0,
        timeout: float | None = None,
        client: httpx.AsyncClient | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        if not api_key:
            raise ValueError("Deepgram STT requires an API key")
        self._api_key = api_key
        self._url = f"{base_url.rstrip('/')}/v1/listen"
        self._model = model
        self._language = language
        self._max_attempts = max_attempts
        self._retry_wait = retry_wait
        self._client = client or httpx.AsyncClient(timeout=httpx.Timeout(timeout))
        self._sleep = sleep

    async def _post(self, audio: bytes, content_type: str, params: dict) -> dict:
        response = await self._client.post(
            self._url,
            params=params,
            content=audio,
            headers={
                "Authorization": f"Bearer {self._api_key}",
                "Content-Type": content_type,
            },
        )
        if not response.is_success:
            logger.warning("Deepgram returned HTTP %d", response.status_code)
            raise UpstreamStatusError(response.status_code, response.text)
        try:
            return response.json()
        except ValueError as exc:
            raise TranscriptionError("Deepgram returned a non-JSON response") from exc

    async def transcribe(self, audio: bytes, content_type: str, **kwargs) -> TranscriptionResult:
        """Send ``audio`` to Deepgram and return the first alternative's transcript."""
        language = kwargs.get("language", self._language)
        params = {"model": self._model, "smart_format": "true", "punctuate": "true"}
        if language:
            params["language"] = language
        else:
            params["detect_language"] = "true"

        retrying = AsyncRetrying(
            stop=stop_after_attempt(self._max_attempts),
            wait=wait_fixed(self._retry_wait),
            retry=retry_if_exception_type((UpstreamStatusError, httpx.TransportError)),
            before_sleep=before_sleep_log(logger, logging.WARNING),
            sleep=self._sleep,
            reraise=True,
        )
        try:
            async for attempt in retrying:
                with attempt:
                    payload = await self._post(audio, content_type, params)
        except UpstreamStatusError as exc:
            raise TranscriptionError(
                f"Deepgram failed after {self._max_attempts} attempts: {exc}"
            ) from exc
        except httpx.HTTPError as exc:
            raise TranscriptionError(
                f"Deepgram unreachable after {self._max_attempts} attempts: {exc}"
            ) from exc

        return self._parse(payload)

    def _parse(self, payload: dict) -> TranscriptionResult:
        try:
            channel = payload["results"]["channels"][0]
            alternative = channel["alternatives"][0]
            text = alternative["transcript"]
        except (KeyError, IndexError, TypeError) as exc:
            raise TranscriptionError("Deepgram response has no transcript") from exc
        if not isinstance(text, str):
            raise TranscriptionError("Deepgram transcript is not text")

        metadata = payload.get("metadata") or {}
        return TranscriptionResult(
            text=text,
            language=channel.get("detected_language") or self._language or "unknown",
            confidence=float(alternative.get("confidence") or 0.0),
            duration=float(metadata.get("duration") or 0.0),
            model=self._model,
        )

    async def aclose(self) -> None:
        await self._client.aclose()
