"""Unit tests for the heuristic answer-confidence score."""

from __future__ import annotations

import pytest

from bookrag.utils.confidence import DEFAULT_CONFIDENCE_FLOOR, answer_confidence


class TestAnswerConfidence:
    def test_empty_similarities_score_zero(self) -> None:
        assert answer_confidence([]) == 0

    def test_floor_applied_to_low_similarity(self) -> None:
        assert answer_confidence([0.1, 0.2]) == DEFAULT_CONFIDENCE_FLOOR

    def test_high_similarity_above_floor(self) -> None:
        assert answer_confidence([0.9, 0.8]) == 85

    def test_rounds_to_nearest_percent(self) -> None:
        assert answer_confidence([0.876]) == 88

    def test_custom_floor(self) -> None:
        assert answer_confidence([0.1], floor=0) == 10

    def test_clamped_to_hundred(self) -> None:
        assert answer_confidence([1.0, 1.0]) == 100

    def test_negative_similarity_with_zero_floor_clamped(self) -> None:
        assert answer_confidence([-0.5], floor=0) == 0

    @pytest.mark.parametrize("sims", [[0.0], [0.5, 0.99], [0.75] * 10])
    def test_always_within_bounds(self, sims: list[float]) -> None:
        score = answer_confidence(sims)
        assert DEFAULT_CONFIDENCE_FLOOR <= score <= 100
