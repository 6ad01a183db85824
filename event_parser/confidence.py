"""Confidence score for a parse result."""
from typing import List

BASE_CONFIDENCE = 0.9
WARNING_PENALTY = 0.15
NO_EXPLICIT_TIME_PENALTY = 0.1
MIN_CONFIDENCE = 0.3


def score_confidence(warnings: List[str], has_explicit_time: bool) -> float:
    """
    Score how much of the event the parser had to assume.

    Args:
        warnings: Warnings collected while resolving date and time
        has_explicit_time: Whether a time point, range or all-day was matched

    Returns:
        Confidence in [0.3, 0.9]
    """
    confidence = BASE_CONFIDENCE - len(warnings) * WARNING_PENALTY
    if not has_explicit_time:
        confidence -= NO_EXPLICIT_TIME_PENALTY
    return round(max(MIN_CONFIDENCE, confidence), 2)
