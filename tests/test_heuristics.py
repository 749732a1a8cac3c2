"""Tests for the deterministic heuristics."""

import pytest

from tier_router.heuristics import KeywordConflictDetector, classify_heuristic
from tier_router.models import Complexity


@pytest.mark.parametrize("text,expected", [
    ("hi", Complexity.LOW),
    ("what time is it", Complexity.LOW),
    ("explain the algorithm implementation", Complexity.HIGH),
    ("```print(1)```", Complexity.HIGH),
    ("import os then list files", Complexity.HIGH),
    ("Can you Analyze this", Complexity.HIGH),
    ("what is the capital city of France please", Complexity.MEDIUM),
    (" ".join(["word"] * 51), Complexity.HIGH),
    (" ".join(["word"] * 50), Complexity.MEDIUM),
])
def test_classify_heuristic(text, expected):
    assert classify_heuristic(text) == expected


def test_classify_heuristic_is_deterministic():
    text = "tell me about the weather in spring today"
    assert {classify_heuristic(text) for _ in range(5)} == {Complexity.MEDIUM}


class TestKeywordConflictDetector:

    @pytest.mark.parametrize("review", [
        "the solution fails on empty input",
        "Overall: NEEDS-IMPROVEMENT",
        "this needs improvement in places",
        "There is a critical bug in the loop",
        "major error handling gap",
        "The output is incorrect",
        "this is the wrong approach",
    ])
    def test_flags_conflicts(self, review):
        assert KeywordConflictDetector().detect(review)

    @pytest.mark.parametrize("review", [
        "consider renaming this variable for clarity",
        "Overall assessment: good. A critical path is well covered.",
        "acceptable; minor bug-free refactor suggestions only",
        "",
    ])
    def test_ignores_suggestions(self, review):
        assert KeywordConflictDetector().detect(review) == []

    def test_reports_each_reason_once(self):
        conflicts = KeywordConflictDetector().detect("needs improvement: critical bug, output is wrong")
        assert len(conflicts) == 3
