"""Abstract base class for chat-completion service providers.

Defines the contract for the generative model that turns retrieved context
into a short answer.  Implementations wrap Google Gemini, OpenAI or the
Anthropic Messages API, selected by ``Settings.llm_provider``.
"""

from __future__ import annotations

from abc import ABC, abstractmethod


# Concrete implementations: GeminiLLMProvider, OpenAILLMProvider, AnthropicLLMProvider
# Located in: bookrag/providers/llm/
class ILLMProvider(ABC):
    """Contract for chat models used by the answer synthesizer."""

    @abstractmethod
    async def complete(
        self,
        system_prompt: str,
        user_prompt: str,
        temperature: float = 0.3,
        max_tokens: int = 256,
    ) -> str:
        """Generate a text completion from the model.

        Parameters
        ----------
        system_prompt:
            The system/instruction message that sets the model's behaviour.
        user_prompt:
            The prompt containing context and question.
        temperature:
            Sampling temperature (0.0 = deterministic, 1.0 = creative).
        max_tokens:
            Upper bound on the number of tokens in the response.

        Returns
        -------
        str
            The model's text response.

        Raises
        ------
        bookrag.utils.errors.LLMError
            If the API call fails or returns an empty response.
        """

    @abstractmethod
    def get_model_name(self) -> str:
        """Return the chat model identifier, e.g. ``"gemini-1.5-flash"``."""

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a human-readable identifier for this LLM provider."""

    @abstractmethod
    def is_available(self) -> bool:
        """Return ``True`` if the provider has credentials configured."""
