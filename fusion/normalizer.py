"""
Score Normalizer

Turns raw, possibly non-summing category weights into a valid
probability-like emotion vector.
"""

import logging
from typing import Dict, Mapping, Optional

from fusion.models import EMOTION_LABELS, EmotionVector

logger = logging.getLogger(__name__)

# Tolerance used when accepting vectors from producers
SUM_TOLERANCE = 1e-6


def neutral_vector() -> Dict[str, float]:
    """Degenerate distribution used when there is no signal."""
    scores = {label: 0.0 for label in EMOTION_LABELS}
    scores["neutral"] = 1.0
    return scores


def normalize_scores(raw: Mapping[str, float]) -> Dict[str, float]:
    """
    Normalize raw category weights so they sum to 1.

    Negative values are clipped to 0 before summing and missing labels count
    as 0. If nothing is left after clipping, returns neutral=1 (detection
    failure, not an error).

    Args:
        raw: Mapping of emotion label to raw weight

    Returns:
        Dictionary with every label in EMOTION_LABELS, summing to 1.0
    """
    unknown = set(raw.keys()) - set(EMOTION_LABELS)
    if unknown:
        logger.warning(f"Ignoring unknown emotion labels: {sorted(unknown)}")

    clipped = {label: max(0.0, float(raw.get(label, 0.0))) for label in EMOTION_LABELS}
    total = sum(clipped.values())

    if total == 0:
        logger.debug("All-zero scores, falling back to neutral")
        return neutral_vector()

    return {label: value / total for label, value in clipped.items()}


def to_emotion_vector(
    raw: Mapping[str, float],
    timestamp: float,
    confidence: Optional[float] = None
) -> EmotionVector:
    """
    Build an EmotionVector from raw category weights.

    Args:
        raw: Mapping of emotion label to raw weight
        timestamp: Producer-assigned timestamp
        confidence: Producer certainty; defaults to the top category's normalized score

    Returns:
        Normalized EmotionVector
    """
    emotions = normalize_scores(raw)
    if confidence is None:
        confidence = max(emotions.values())
    return EmotionVector(
        timestamp=timestamp,
        confidence=min(max(confidence, 0.0), 1.0),
        emotions=emotions
    )


def is_valid_emotion_vector(vector: EmotionVector, tolerance: float = SUM_TOLERANCE) -> bool:
    """Check a producer's vector is non-negative and sums to 1 within tolerance."""
    if any(score < 0 for score in vector.emotions.values()):
        return False
    return abs(sum(vector.emotions.values()) - 1.0) <= tolerance
