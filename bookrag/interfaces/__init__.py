"""Public interface definitions for all external service providers.

Every external API or service used by bookrag is accessed through the
abstract base classes defined in this package.  Concrete adapters live in
``bookrag/providers/`` and are wired together in ``bookrag/main.py``.

CONCRETE PROVIDER MAP:
    Interface                  →  Concrete implementations
    ─────────────────────────────────────────────────────────────────────
    IEmbeddingProvider         →  GeminiEmbeddingProvider, OpenAIEmbeddingProvider
    ILLMProvider               →  GeminiLLMProvider, OpenAILLMProvider,
                                  AnthropicLLMProvider
    IVectorStoreProvider       →  ChromaDBProvider
    IDocumentSource            →  PDFDocumentSource
    IItemRecordStore           →  SQLiteItemRecordStore
"""

from bookrag.interfaces.document_source import IDocumentSource
from bookrag.interfaces.embedding_provider import IEmbeddingProvider
from bookrag.interfaces.item_record_store import IItemRecordStore
from bookrag.interfaces.llm_provider import ILLMProvider
from bookrag.interfaces.vector_store_provider import IVectorStoreProvider

__all__ = [
    "IDocumentSource",
    "IEmbeddingProvider",
    "IItemRecordStore",
    "ILLMProvider",
    "IVectorStoreProvider",
]
