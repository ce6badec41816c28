"""
Claude LLM provider implementation.

Uses the Anthropic Python SDK (``anthropic.AsyncAnthropic``) to interact with
the Claude API. A semaphore bounds concurrent requests; calls are not retried.
"""

import asyncio
import logging

from anthropic import (
    APIConnectionError,
    APIStatusError,
    APITimeoutError,
    AsyncAnthropic,
)

from meetnotes.core.exceptions import SummarizationError
from meetnotes.services.llm.base import BaseLLM

logger = logging.getLogger(__name__)


class ClaudeLLM(BaseLLM):
    """Claude API LLM provider with rate-limit semaphore."""

    provider = "claude"

    def __init__(
        self,
        api_key: str,
        model: str = "claude-sonnet-4-20250514",
        max_tokens: int = 1024,
        temperature: float = 0.7,
        max_concurrent: int = 5,
        client: AsyncAnthropic | None = None,
    ) -> None:
        self._model = model
        self._max_tokens = max_tokens
        self._temperature = temperature
        self._semaphore = asyncio.Semaphore(max_concurrent)
        self._client = client or AsyncAnthropic(api_key=api_key)

    @property
    def model_name(self) -> str:
        return self._model

    async def generate(self, prompt: str, **kwargs) -> str:
        """Send a request to Claude, respecting the concurrency semaphore.

        SDK exceptions are translated to :class:`SummarizationError`.
        """
        system = kwargs.get("system")
        temperature = kwargs.get("temperature")
        async with self._semaphore:
            try:
                request: dict = {
                    "model": self._model,
                    "max_tokens": kwargs.get("max_tokens") or self._max_tokens,
                    "temperature": temperature if temperature is not None else self._temperature,
                    "messages": [{"role": "user", "content": prompt}],
                }
                if system:
                    request["system"] = system

                response = await self._client.messages.create(**request)
                return response.content[0].text

            except APITimeoutError as exc:
                logger.warning("Claude API timeout: %s", exc)
                raise SummarizationError(f"Claude API request timed out: {exc}") from exc
            except APIConnectionError as exc:
                logger.warning("Claude API connection error: %s", exc)
                raise SummarizationError(f"Failed to connect to Claude API: {exc}") from exc
            except APIStatusError as exc:
                logger.error("Claude API returned HTTP %s: %s", exc.status_code, exc)
                raise SummarizationError(f"Claude API error ({exc.status_code}): {exc}") from exc
            except (IndexError, AttributeError) as exc:
                raise SummarizationError("Claude API returned no text content") from exc

    async def aclose(self) -> None:
        await self._client.close()
