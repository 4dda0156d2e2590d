"""Google Gemini LLM provider adapter.

Wraps the ``google-genai`` async client to implement :class:`ILLMProvider`.
The system prompt is passed as ``system_instruction`` in the generation
config rather than as a message.
"""

from __future__ import annotations

import httpx
import structlog
from google import genai
from google.genai import errors as genai_errors
from google.genai import types

from bookrag.config.settings import Settings
from bookrag.interfaces.llm_provider import ILLMProvider
from bookrag.utils.errors import LLMError

logger = structlog.get_logger(logger_name=__name__)

_DEFAULT_MODEL = "gemini-1.5-flash"


class GeminiLLMProvider(ILLMProvider):
    """LLM provider backed by the Gemini generate-content API."""

    def __init__(self, settings: Settings) -> None:
        self._settings = settings
        self._api_key = settings.gemini_api_key
        self._client = genai.Client(api_key=self._api_key) if self._api_key else None
        self._model = settings.chat_model or _DEFAULT_MODEL

    # ------------------------------------------------------------------
    # ILLMProvider implementation
    # ------------------------------------------------------------------

    async def complete(
        self,
        system_prompt: str,
        user_prompt: str,
        temperature: float = 0.3,
        max_tokens: int = 256,
    ) -> str:
        """Generate a text completion via Gemini."""
        if self._client is None:
            raise LLMError(
                message="GEMINI_API_KEY is not configured",
                provider_name=self.get_provider_name(),
            )

        try:
            response = await self._client.aio.models.generate_content(
                model=self._model,
                contents=user_prompt,
                config=types.GenerateContentConfig(
                    system_instruction=system_prompt,
                    temperature=temperature,
                    max_output_tokens=max_tokens,
                ),
            )
        except genai_errors.APIError as exc:
            raise LLMError(
                message=f"Gemini API error: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc
        except httpx.HTTPError as exc:
            raise LLMError(
                message=f"Gemini request failed: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

        text = response.text
        if not text:
            raise LLMError(
                message="Gemini returned empty response",
                provider_name=self.get_provider_name(),
            )
        usage = response.usage_metadata
        logger.info(
            "gemini_completion",
            model=self._model,
            tokens=usage.total_token_count if usage else None,
        )
        return text

    def get_model_name(self) -> str:
        return self._model

    def get_provider_name(self) -> str:
        return "gemini"

    def is_available(self) -> bool:
        """Return ``True`` if an API key is configured."""
        return bool(self._api_key)
