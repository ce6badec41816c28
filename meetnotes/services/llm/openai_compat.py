"""
OpenAI-compatible chat completion provider.

Uses ``openai.AsyncOpenAI``; pointing ``base_url`` at OpenRouter (or any
other compatible gateway) reuses the same code path.
"""

import logging

from openai import APIConnectionError, APIStatusError, APITimeoutError, AsyncOpenAI

from meetnotes.core.exceptions import SummarizationError
from meetnotes.services.llm.base import BaseLLM

logger = logging.getLogger(__name__)


class OpenAICompatLLM(BaseLLM):
    """Chat-completions provider for OpenAI and OpenAI-compatible APIs."""

    provider = "openai"

    def __init__(
        self,
        api_key: str,
        model: str = "gpt-4o-mini",
        base_url: str | None = None,
        temperature: float = 0.7,
        max_tokens: int = 1024,
        client: AsyncOpenAI | None = None,
    ) -> None:
        self._model = model
        self._temperature = temperature
        self._max_tokens = max_tokens
        self._client = client or AsyncOpenAI(api_key=api_key, base_url=base_url or None)

    @property
    def model_name(self) -> str:
        return self._model

    async def generate(self, prompt: str, **kwargs) -> str:
        messages = []
        if kwargs.get("system"):
            messages.append({"role": "system", "content": kwargs["system"]})
        messages.append({"role": "user", "content": prompt})
        temperature = kwargs.get("temperature")

        try:
            response = await self._client.chat.completions.create(
                model=self._model,
                messages=messages,
                temperature=temperature if temperature is not None else self._temperature,
                max_tokens=kwargs.get("max_tokens") or self._max_tokens,
            )
        except APITimeoutError as exc:
            logger.warning("Chat completion timed out: %s", exc)
            raise SummarizationError(f"Summarization model timed out: {exc}") from exc
        except APIConnectionError as exc:
            logger.warning("Chat completion connection error: %s", exc)
            raise SummarizationError(f"Failed to reach summarization model: {exc}") from exc
        except APIStatusError as exc:
            logger.error("Chat completion returned HTTP %s: %s", exc.status_code, exc)
            raise SummarizationError(f"Summarization model error ({exc.status_code}): {exc}") from exc

        if not response.choices:
            raise SummarizationError("Summarization model returned no choices")
        return response.choices[0].message.content or ""

    async def aclose(self) -> None:
        await self._client.close()
