"""Keyword/emoji feedback classifier.

A pure local heuristic, no model call: the lowercased text is scanned
against the positive patterns first and then the negative ones, and the
first substring hit decides the polarity.  Each list is tried longest
pattern first so that a specific phrase ("não curtiu") is reported
before a shorter pattern it contains ("não").

Known limitation kept as-is: positives are scanned before negatives, so
a negated positive such as "não gostei" classifies as positive through
"gostei".
"""

from collections.abc import Iterable
from dataclasses import dataclass
from typing import Literal

from .patterns import NEGATIVE_PATTERNS, POSITIVE_PATTERNS

POLARITY_POSITIVE: Literal["positive"] = "positive"
POLARITY_NEGATIVE: Literal["negative"] = "negative"
POLARITY_NONE: Literal["none"] = "none"

Polarity = Literal["positive", "negative", "none"]


@dataclass(frozen=True)
class FeedbackResult:
    """Outcome of classifying one inbound text."""

    is_feedback: bool
    polarity: Polarity
    pattern: str | None = None


NO_FEEDBACK = FeedbackResult(is_feedback=False, polarity=POLARITY_NONE)


def _longest_first(patterns: Iterable[str]) -> tuple[str, ...]:
    """Lowercase, de-duplicate (first occurrence wins) and sort by length."""
    unique = dict.fromkeys(p.lower() for p in patterns if p)
    return tuple(sorted(unique, key=len, reverse=True))


class FeedbackClassifier:
    """Classifies free text as positive, negative or no feedback."""

    def __init__(
        self,
        positive_patterns: Iterable[str] | None = None,
        negative_patterns: Iterable[str] | None = None,
    ) -> None:
        self._positive = _longest_first(
            POSITIVE_PATTERNS if positive_patterns is None else positive_patterns
        )
        self._negative = _longest_first(
            NEGATIVE_PATTERNS if negative_patterns is None else negative_patterns
        )

    @property
    def positive_patterns(self) -> tuple[str, ...]:
        return self._positive

    @property
    def negative_patterns(self) -> tuple[str, ...]:
        return self._negative

    def classify(self, text: str | None) -> FeedbackResult:
        if not text:
            return NO_FEEDBACK
        normalized = text.lower()
        for polarity, patterns in (
            (POLARITY_POSITIVE, self._positive),
            (POLARITY_NEGATIVE, self._negative),
        ):
            for pattern in patterns:
                if pattern in normalized:
                    return FeedbackResult(True, polarity, pattern)
        return NO_FEEDBACK
