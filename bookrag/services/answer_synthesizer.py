"""Short-answer synthesis from ranked chunks.

Builds one bounded prompt from the top-ranked chunks and makes a single
chat call.  Generation failures are absorbed: the caller receives
:data:`FALLBACK_ANSWER` with ``method = "error-fallback"`` and
``tokens_used = 0`` so interactive chat stays responsive and a degraded
answer can be told apart from a real one.

``tokens_used`` is an estimate (``(len(prompt) + len(answer)) / 4``), not a
provider-reported count, so it is comparable across chat backends.
"""

from __future__ import annotations

import structlog

from bookrag.interfaces.llm_provider import ILLMProvider
from bookrag.models.knowledge import ChunkDetail, RankedChunk, SynthesizedAnswer
from bookrag.utils.errors import LLMError

logger = structlog.get_logger(logger_name=__name__)

SYSTEM_PROMPT = (
    "You are a helpful AI assistant that provides concise answers in 1-2 sentences. "
    "Answer using only the given context."
)
FALLBACK_ANSWER = "Unable to generate response. Please try again."
CONTEXT_PREVIEW_CHARS = 200
CHARS_PER_TOKEN = 4

METHOD_RAG = "rag-retrieval"
METHOD_ERROR_FALLBACK = "error-fallback"


class AnswerSynthesizer:
    """Turns ranked chunks into a concise answer.

    Parameters
    ----------
    llm_provider:
        Chat backend selected by configuration.
    max_context_chunks:
        Upper bound on chunks rendered into the context block.
    max_tokens:
        Response token budget passed to the chat call.
    """

    def __init__(
        self,
        llm_provider: ILLMProvider,
        max_context_chunks: int = 5,
        max_tokens: int = 256,
    ) -> None:
        self._llm = llm_provider
        self._max_context_chunks = max_context_chunks
        self._max_tokens = max_tokens

    @property
    def model_name(self) -> str:
        return self._llm.get_model_name()

    def is_available(self) -> bool:
        return self._llm.is_available()

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def synthesize(self, question: str, ranked_chunks: list[RankedChunk]) -> SynthesizedAnswer:
        """Answer *question* from *ranked_chunks*; never raises on chat failure."""
        used = ranked_chunks[: self._max_context_chunks]
        details = [
            ChunkDetail(
                chunk_index=rc.chunk.chunk_index,
                similarity=rc.similarity,
                file_name=rc.chunk.file_name,
            )
            for rc in used
        ]
        prompt = self.build_prompt(question, used)

        try:
            answer = await self._llm.complete(
                system_prompt=SYSTEM_PROMPT,
                user_prompt=prompt,
                temperature=0.3,
                max_tokens=self._max_tokens,
            )
        except LLMError as exc:
            logger.warning(
                "answer_generation_failed",
                error=str(exc),
                provider=self._llm.get_provider_name(),
            )
            return SynthesizedAnswer(
                answer=FALLBACK_ANSWER,
                tokens_used=0,
                method=METHOD_ERROR_FALLBACK,
                model_used=self.model_name,
                chunk_details=details,
            )

        tokens_used = round((len(prompt) + len(answer)) / CHARS_PER_TOKEN)
        logger.info(
            "answer_generated",
            provider=self._llm.get_provider_name(),
            context_chunks=len(used),
            tokens_used=tokens_used,
        )
        return SynthesizedAnswer(
            answer=answer,
            tokens_used=tokens_used,
            method=METHOD_RAG,
            model_used=self.model_name,
            chunk_details=details,
        )

    # ------------------------------------------------------------------
    # Prompt construction
    # ------------------------------------------------------------------

    @staticmethod
    def build_context(ranked_chunks: list[RankedChunk]) -> str:
        """Render ``[i] <preview>... (<pct>% match)`` lines, 1-based."""
        lines = []
        for i, rc in enumerate(ranked_chunks, start=1):
            preview = rc.chunk.text[:CONTEXT_PREVIEW_CHARS]
            percent = round(rc.similarity * 100)
            lines.append(f"[{i}] {preview}... ({percent}% match)")
        return "\n\n".join(lines)

    def build_prompt(self, question: str, ranked_chunks: list[RankedChunk]) -> str:
        context = self.build_context(ranked_chunks[: self._max_context_chunks])
        return f"Context: {context}\n\nQuestion: {question}\n\nAnswer in 1-2 sentences:"
