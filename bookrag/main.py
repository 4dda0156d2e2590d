"""bookrag composition root.

Wires providers and services into a :class:`KnowledgeBasePipeline` via
constructor injection.  Provider selection is by name from
:class:`~bookrag.config.settings.Settings`; adding a backend means adding
an adapter and one branch in the matching ``_build_*`` function.
"""

from __future__ import annotations

import structlog

from bookrag.config.settings import Settings
from bookrag.interfaces.embedding_provider import IEmbeddingProvider
from bookrag.interfaces.item_record_store import IItemRecordStore
from bookrag.interfaces.llm_provider import ILLMProvider
from bookrag.interfaces.vector_store_provider import IVectorStoreProvider
from bookrag.pipeline.orchestrator import KnowledgeBasePipeline
from bookrag.pipeline.progress_tracker import ProgressTracker
from bookrag.providers.document.pdf_source import PDFDocumentSource
from bookrag.services.answer_synthesizer import AnswerSynthesizer
from bookrag.services.chunker import TextChunker
from bookrag.services.collection_registry import CollectionRegistry
from bookrag.services.embedding_service import EmbeddingService
from bookrag.services.knowledge_store import KnowledgeStore
from bookrag.services.retriever import Retriever
from bookrag.utils.errors import ConfigurationError
from bookrag.utils.logging import get_logger

_logger: structlog.BoundLogger = get_logger(__name__)


# ---------------------------------------------------------------------------
# Provider selection
# ---------------------------------------------------------------------------


def _build_embedding_provider(app_settings: Settings) -> IEmbeddingProvider:
    """Return the embedding adapter named by ``EMBEDDING_PROVIDER``.

    Imports are deferred so only the selected SDK is loaded.
    """
    name = app_settings.embedding_provider.strip().lower()
    if name == "gemini":
        from bookrag.providers.embedding.gemini_embedding_provider import (
            GeminiEmbeddingProvider,
        )

        return GeminiEmbeddingProvider(settings=app_settings)
    if name == "openai":
        from bookrag.providers.embedding.openai_embedding_provider import (
            OpenAIEmbeddingProvider,
        )

        return OpenAIEmbeddingProvider(settings=app_settings)

    raise ConfigurationError(
        message=f"Unknown embedding provider: {app_settings.embedding_provider!r}",
        provider_name="settings",
    )


def _build_llm_provider(app_settings: Settings) -> ILLMProvider:
    """Return the chat adapter named by ``LLM_PROVIDER``."""
    name = app_settings.llm_provider.strip().lower()
    if name == "gemini":
        from bookrag.providers.llm.gemini_provider import GeminiLLMProvider

        return GeminiLLMProvider(settings=app_settings)
    if name == "openai":
        from bookrag.providers.llm.openai_provider import OpenAILLMProvider

        return OpenAILLMProvider(settings=app_settings)
    if name == "anthropic":
        from bookrag.providers.llm.anthropic_provider import AnthropicLLMProvider

        return AnthropicLLMProvider(settings=app_settings)

    raise ConfigurationError(
        message=f"Unknown LLM provider: {app_settings.llm_provider!r}",
        provider_name="settings",
    )


def _build_vector_store(app_settings: Settings) -> IVectorStoreProvider:
    from bookrag.providers.vector_store.chromadb_provider import ChromaDBProvider

    return ChromaDBProvider(persist_directory=app_settings.chromadb_persist_dir)


def _build_item_record_store(app_settings: Settings) -> IItemRecordStore | None:
    if not app_settings.item_record_db_path:
        return None
    from bookrag.providers.item_record.sqlite_item_record_store import (
        SQLiteItemRecordStore,
    )

    return SQLiteItemRecordStore(db_path=app_settings.item_record_db_path)


# ---------------------------------------------------------------------------
# Pipeline assembly
# ---------------------------------------------------------------------------


def build_pipeline(
    app_settings: Settings,
    vector_store: IVectorStoreProvider | None = None,
) -> KnowledgeBasePipeline:
    """Construct a :class:`KnowledgeBasePipeline` with injected dependencies.

    Parameters
    ----------
    app_settings:
        Application settings.
    vector_store:
        Optional pre-built store; defaults to a persistent ChromaDB client
        at ``chromadb_persist_dir``.

    Raises
    ------
    ConfigurationError
        If a provider name in *app_settings* is not recognised.
    """
    embedding_provider = _build_embedding_provider(app_settings)
    llm_provider = _build_llm_provider(app_settings)
    store_provider = vector_store or _build_vector_store(app_settings)

    embedding_service = EmbeddingService(
        provider=embedding_provider,
        batch_size=app_settings.embedding_batch_size,
        batch_delay=app_settings.embedding_batch_delay,
        max_retries=app_settings.embedding_max_retries,
        retry_backoff=app_settings.embedding_retry_backoff,
    )
    registry = CollectionRegistry(
        vector_store=store_provider,
        embedding_provider=embedding_provider,
        base_name=app_settings.base_collection_name,
    )
    store = KnowledgeStore(vector_store=store_provider)
    retriever = Retriever(
        store=store,
        embedding_service=embedding_service,
        max_context_chunks=app_settings.max_context_chunks,
        candidate_limit=app_settings.candidate_limit,
    )
    synthesizer = AnswerSynthesizer(
        llm_provider=llm_provider,
        max_context_chunks=app_settings.max_context_chunks,
    )

    _logger.info(
        "pipeline_built",
        embedding_provider=embedding_provider.get_provider_name(),
        embedding_model=embedding_provider.get_model_name(),
        llm_provider=llm_provider.get_provider_name(),
        vector_store=store_provider.get_provider_name(),
    )

    return KnowledgeBasePipeline(
        registry=registry,
        store=store,
        chunker=TextChunker(
            chunk_size=app_settings.chunk_size,
            overlap=app_settings.chunk_overlap,
        ),
        embedding_service=embedding_service,
        retriever=retriever,
        synthesizer=synthesizer,
        document_source=PDFDocumentSource(timeout=app_settings.download_timeout),
        progress_tracker=ProgressTracker(),
        item_records=_build_item_record_store(app_settings),
        confidence_floor=app_settings.confidence_floor,
    )
