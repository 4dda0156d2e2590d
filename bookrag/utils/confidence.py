"""Confidence scoring for generated answers.

The score reported with every answer is a UX heuristic, not a calibrated
probability: it is the mean cosine similarity of the chunks used as
context, expressed as a percentage and raised to a configurable floor so
that answers grounded in any retrieved context never display as "low
confidence".  A query with no context chunks scores 0.
"""

DEFAULT_CONFIDENCE_FLOOR = 75


def answer_confidence(
    similarities: list[float],
    floor: int = DEFAULT_CONFIDENCE_FLOOR,
) -> int:
    """Return ``max(round(mean(similarities) * 100), floor)`` clamped to 0..100.

    Args:
        similarities: Cosine similarities of the chunks used as context.
        floor: Heuristic minimum applied whenever at least one chunk was used.

    Returns:
        Integer percentage; 0 when *similarities* is empty.
    """
    if not similarities:
        return 0

    average = sum(similarities) / len(similarities)
    score = max(round(average * 100), floor)
    return max(0, min(100, score))
