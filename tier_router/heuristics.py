"""Deterministic text heuristics.

Two cheap, side-effect-free checks live here so they can be tested without
a live backend:

- ``classify_heuristic``: complexity fallback when the classifier model is
  unavailable or answers badly.
- ``KeywordConflictDetector``: decides whether a reviewer's text disagrees
  with the primary answer. Literal, case-insensitive substring matching.
"""

import re
from abc import ABC, abstractmethod

from tier_router.models import Complexity

CODE_MARKERS = re.compile(r"```|\b(?:function|class|import|const|let|var)\b")

COMPLEXITY_SIGNALS = re.compile(
    r"(explain|analyze|compare|evaluate|implement|design|architecture|algorithm)",
    re.IGNORECASE,
)


def classify_heuristic(text: str) -> Complexity:
    """Low: <=5 words, no code, no signals. High: code, signals or >50 words."""
    word_count = len(text.split())
    has_code = bool(CODE_MARKERS.search(text))
    has_signals = bool(COMPLEXITY_SIGNALS.search(text))

    if word_count <= 5 and not has_code and not has_signals:
        return Complexity.LOW
    if has_code or has_signals or word_count > 50:
        return Complexity.HIGH
    return Complexity.MEDIUM


class ConflictDetector(ABC):
    """Turns a reviewer's text into a list of conflict reasons (empty = agreement)."""

    @abstractmethod
    def detect(self, review_text: str) -> list[str]:
        ...


class KeywordConflictDetector(ConflictDetector):
    """Flags explicit negative assessments, not constructive suggestions."""

    def detect(self, review_text: str) -> list[str]:
        text = review_text.lower()
        conflicts: list[str] = []

        if "needs-improvement" in text or "needs improvement" in text:
            conflicts.append("Reviewer assessed the solution as needing improvement")
        if ("critical" in text or "major" in text) and ("bug" in text or "error" in text):
            conflicts.append("Reviewer reported a critical or major bug")
        if "incorrect" in text or "wrong" in text or "fails" in text:
            conflicts.append("Reviewer reported incorrect or failing behaviour")

        return conflicts
