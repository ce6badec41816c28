"""
Ollama LLM provider implementation.

Uses the Ollama Python SDK (``ollama.AsyncClient``) to interact with a
locally running Ollama server.
"""

import logging

import httpx
from ollama import AsyncClient, ResponseError

from meetnotes.core.exceptions import SummarizationError
from meetnotes.services.llm.base import BaseLLM

logger = logging.getLogger(__name__)


class OllamaLLM(BaseLLM):
    """Ollama local LLM provider.

    Connects to a locally running Ollama server via its REST API.
    """

    provider = "ollama"

    def __init__(
        self,
        base_url: str = "http://localhost:11434",
        model: str = "llama3.2",
        temperature: float = 0.7,
        client: AsyncClient | None = None,
    ) -> None:
        """Initialize the Ollama LLM provider.

        Args:
            base_url: Ollama server URL.
            model: Model name to use (e.g. "llama3.2").
            temperature: Default sampling temperature (0.0 to 1.0).
            client: Optional preconfigured SDK client (used in tests).
        """
        self._base_url = base_url
        self._model = model
        self._temperature = temperature
        self._client = client or AsyncClient(host=base_url)

    @property
    def model_name(self) -> str:
        return self._model

    async def generate(self, prompt: str, **kwargs) -> str:
        """Send a chat request to the Ollama server."""
        messages: list[dict[str, str]] = []
        if kwargs.get("system"):
            messages.append({"role": "system", "content": kwargs["system"]})
        messages.append({"role": "user", "content": prompt})
        temperature = kwargs.get("temperature")

        try:
            response = await self._client.chat(
                model=self._model,
                messages=messages,
                options={"temperature": temperature if temperature is not None else self._temperature},
            )
            return response.message.content or ""

        except (ConnectionError, TimeoutError, httpx.TransportError) as exc:
            logger.warning("Ollama connection error (%s): %s", self._base_url, exc)
            raise SummarizationError(f"Failed to connect to Ollama at {self._base_url}: {exc}") from exc
        except ResponseError as exc:
            logger.error("Ollama response error: %s", exc)
            raise SummarizationError(f"Ollama error: {exc}") from exc
