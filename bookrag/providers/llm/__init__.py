"""LLM provider adapters.

Three concrete implementations of ILLMProvider (bookrag/interfaces/llm_provider.py):
    - GeminiLLMProvider    -- gemini-1.5-flash via google-genai (default)
    - OpenAILLMProvider    -- gpt-4o-mini (also supports OpenAI-compatible APIs)
    - AnthropicLLMProvider -- Claude via the Messages API

``bookrag.main.build_pipeline`` creates the provider named by
``Settings.llm_provider`` and injects it into the answer synthesizer.
"""

from bookrag.providers.llm.anthropic_provider import AnthropicLLMProvider
from bookrag.providers.llm.gemini_provider import GeminiLLMProvider
from bookrag.providers.llm.openai_provider import OpenAILLMProvider

__all__ = ["AnthropicLLMProvider", "GeminiLLMProvider", "OpenAILLMProvider"]
