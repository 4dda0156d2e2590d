"""Text chunking with overlapping character windows.

Splits normalized document text into short chunk strings sized for
question answering over a single book (~200 characters by default, with
~30 characters of overlap).

The algorithm is word-based so no chunk starts or ends mid-word:

1. **Accumulate** words until the joined window reaches ``chunk_size``
   characters, then emit it.
2. **Overlap** -- the next window starts with the trailing words of the
   emitted one whose joined length is at most ``overlap`` characters, so a
   phrase spanning a boundary is retrievable from at least one chunk.
3. **Floor** -- windows shorter than :data:`MIN_CHUNK_LENGTH` are dropped.

Documents whose normalized text is shorter than
:data:`MIN_MEANINGFUL_LENGTH` produce a single sentinel chunk instead of an
empty sequence, so that a near-empty upload still yields a record callers
can see.
"""

from __future__ import annotations

from collections.abc import Iterator

import structlog

from bookrag.utils.text_normalizer import normalize_extracted_text

logger = structlog.get_logger(logger_name=__name__)

MIN_MEANINGFUL_LENGTH = 100
MIN_CHUNK_LENGTH = 20
MINIMAL_TEXT_SENTINEL = (
    "This document contains minimal extractable text. "
    "It may be a scanned image or a mostly graphical PDF."
)


class TextChunker:
    """Splits text into overlapping, bounded-size chunks.

    Parameters
    ----------
    chunk_size:
        Target window length in characters (default 200).
    overlap:
        Maximum characters carried over from the end of one window to the
        start of the next (default 30).  Must be smaller than *chunk_size*.
    """

    def __init__(self, chunk_size: int = 200, overlap: int = 30) -> None:
        if chunk_size <= 0:
            raise ValueError(f"chunk_size must be positive, got {chunk_size}")
        if overlap < 0 or overlap >= chunk_size:
            raise ValueError(
                f"overlap must satisfy 0 <= overlap < chunk_size, got {overlap}"
            )
        self._chunk_size = chunk_size
        self._overlap = overlap
        # Words longer than this are split so that one word can push a
        # window only slightly past ``chunk_size``.
        self._max_word = max(overlap, MIN_CHUNK_LENGTH)

    @property
    def chunk_size(self) -> int:
        return self._chunk_size

    @property
    def overlap(self) -> int:
        return self._overlap

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def chunk(self, raw_text: str) -> list[str]:
        """Split *raw_text* into overlapping chunk strings.

        Parameters
        ----------
        raw_text:
            Text as extracted from the document; normalized here.

        Returns
        -------
        list[str]
            Chunks in reading order.  Text shorter than
            :data:`MIN_MEANINGFUL_LENGTH` after normalization returns
            ``[MINIMAL_TEXT_SENTINEL]``.
        """
        chunks = list(self.iter_chunks(raw_text))
        logger.debug(
            "chunking_complete",
            num_chunks=len(chunks),
            chunk_size=self._chunk_size,
            overlap=self._overlap,
        )
        return chunks

    def iter_chunks(self, raw_text: str) -> Iterator[str]:
        """Yield the same chunks as :meth:`chunk`, lazily.

        Each call returns a fresh generator, so the sequence can be
        restarted.
        """
        text = normalize_extracted_text(raw_text)
        if len(text) < MIN_MEANINGFUL_LENGTH:
            logger.info("chunking_minimal_text", chars=len(text))
            yield MINIMAL_TEXT_SENTINEL
            return

        for window in self._windows(self._words(text)):
            if len(window) >= MIN_CHUNK_LENGTH:
                yield window

    # ------------------------------------------------------------------
    # Window accumulation
    # ------------------------------------------------------------------

    def _words(self, text: str) -> Iterator[str]:
        """Yield whitespace-delimited words, splitting any that are too long."""
        for word in text.split():
            if len(word) <= self._max_word:
                yield word
                continue
            for start in range(0, len(word), self._max_word):
                yield word[start : start + self._max_word]

    def _windows(self, words: Iterator[str]) -> Iterator[str]:
        """Greedily pack *words* into windows of at least ``chunk_size`` chars."""
        current: list[str] = []
        current_length = 0
        # Words added since the last emit; a trailing overlap-only window
        # would just repeat the end of the previous chunk.
        fresh = 0

        for word in words:
            current_length += len(word) + (1 if current else 0)
            current.append(word)
            fresh += 1

            if current_length >= self._chunk_size:
                yield " ".join(current)
                current = self._overlap_tail(current)
                current_length = len(" ".join(current))
                fresh = 0

        if fresh:
            yield " ".join(current)

    def _overlap_tail(self, words: list[str]) -> list[str]:
        """Return trailing *words* whose joined length is <= ``overlap``."""
        tail: list[str] = []
        length = 0
        for word in reversed(words):
            added = len(word) + (1 if tail else 0)
            if length + added > self._overlap:
                break
            tail.insert(0, word)
            length += added
        return tail
