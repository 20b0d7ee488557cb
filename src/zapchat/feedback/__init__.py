"""Feedback detection and run/item correlation."""

from .classifier import (
    NO_FEEDBACK,
    POLARITY_NEGATIVE,
    POLARITY_NONE,
    POLARITY_POSITIVE,
    FeedbackClassifier,
    FeedbackResult,
    Polarity,
)
from .correlator import RunCorrelator

__all__ = [
    "NO_FEEDBACK",
    "POLARITY_NEGATIVE",
    "POLARITY_NONE",
    "POLARITY_POSITIVE",
    "FeedbackClassifier",
    "FeedbackResult",
    "Polarity",
    "RunCorrelator",
]
