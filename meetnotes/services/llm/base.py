"""
Abstract base class for LLM providers.

All LLM implementations (OpenAI-compatible, Claude, Ollama) must implement
this interface, enabling provider-agnostic business logic in the service layer.
"""

from abc import ABC, abstractmethod


class BaseLLM(ABC):
    """Interface that every LLM provider must implement."""

    provider: str = ""

    @property
    @abstractmethod
    def model_name(self) -> str:
        """Model identifier recorded alongside generated summaries."""

    @abstractmethod
    async def generate(self, prompt: str, **kwargs) -> str:
        """Generate a free-form text response.

        Args:
            prompt: The user prompt to send to the model.
            **kwargs: ``system``, ``temperature``, ``max_tokens``.

        Returns:
            The model's text response.

        Raises:
            SummarizationError: If the provider call fails.
        """

    async def aclose(self) -> None:
        """Release network clients held by the provider."""
        return None
