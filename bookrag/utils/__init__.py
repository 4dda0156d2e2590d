"""Utility modules for bookrag.

- **confidence** -- heuristic answer-confidence score from chunk similarities.
- **concurrency** -- per-key asyncio lock used around exists-then-insert.
- **errors** -- exception hierarchy rooted at BookRAGError; each pipeline
  stage raises its own subclass.
- **logging** -- structlog setup with coloured console output in
  development and JSON in production.
- **text_normalizer** -- cleanup of PDF-extracted text and word counting.
"""

# -- Confidence scoring ----------------------------------------------------
from bookrag.utils.confidence import DEFAULT_CONFIDENCE_FLOOR, answer_confidence

# -- Per-key locking -------------------------------------------------------
from bookrag.utils.concurrency import KeyedLock

# -- Domain exception hierarchy --------------------------------------------
from bookrag.utils.errors import (
    BookRAGError,
    ConfigurationError,
    EmbeddingError,
    EmptyContentError,
    ExtractionError,
    LLMError,
    StoreError,
)

# -- Structured logging setup ----------------------------------------------
from bookrag.utils.logging import configure_logging, get_logger

# -- Extracted-text cleanup ------------------------------------------------
from bookrag.utils.text_normalizer import count_words, normalize_extracted_text

__all__ = [
    "DEFAULT_CONFIDENCE_FLOOR",
    "BookRAGError",
    "ConfigurationError",
    "EmbeddingError",
    "EmptyContentError",
    "ExtractionError",
    "KeyedLock",
    "LLMError",
    "StoreError",
    "answer_confidence",
    "configure_logging",
    "count_words",
    "get_logger",
    "normalize_extracted_text",
]
