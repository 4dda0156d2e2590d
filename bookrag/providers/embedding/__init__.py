"""Embedding provider implementations.

Embeddings convert text into numeric vectors that capture semantic meaning.
They are stored per book in ChromaDB and compared at query time.

Two implementations of IEmbeddingProvider:
    1. GeminiEmbeddingProvider  -- text-embedding-004 (768 dims). Default.
    2. OpenAIEmbeddingProvider  -- text-embedding-3-small (1536 dims).
       Also serves OpenAI-compatible endpoints via ``openai_base_url``.
"""

from bookrag.providers.embedding.gemini_embedding_provider import GeminiEmbeddingProvider
from bookrag.providers.embedding.openai_embedding_provider import OpenAIEmbeddingProvider

__all__ = ["GeminiEmbeddingProvider", "OpenAIEmbeddingProvider"]
