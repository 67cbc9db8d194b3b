"""
Sustained Emotion Monitor

Raises an alert when a negative emotion stays high across the most recent
few seconds of fused samples.
"""

import logging
from typing import List, Optional

from pydantic import BaseModel, Field

from fusion.fusion_logic import WeightsLike, WindowLike, combine_sample, resolve_weights
from fusion.models import EMOTION_LABELS, AlertMessage

logger = logging.getLogger(__name__)


class AlertRule(BaseModel):
    """Average score threshold for one emotion."""
    emotion: str
    threshold: float = Field(ge=0.0)
    level: str = "warning"
    message: str = ""


DEFAULT_ALERT_RULES = [
    AlertRule(emotion="angry", threshold=0.8, level="warning",
              message="Anger has stayed high for several seconds"),
    AlertRule(emotion="sad", threshold=0.7, level="info",
              message="Sadness has stayed high for several seconds"),
]

KEEP_SECONDS = 5.0
MIN_DURATION_SECONDS = 3.0


class SustainedEmotionMonitor:
    """
    Checks the recent window against ordered alert rules; first match wins.

    Thresholds are compared with weighted sums of the modality scores. When
    the weights do not sum to 1 the combined scores scale with the weight
    total, so a threshold such as angry >= 0.8 is reached more or less easily.
    """

    def __init__(
        self,
        rules: Optional[List[AlertRule]] = None,
        keep_seconds: float = KEEP_SECONDS,
        min_duration_seconds: float = MIN_DURATION_SECONDS
    ):
        self.rules = list(rules) if rules is not None else list(DEFAULT_ALERT_RULES)
        for rule in self.rules:
            if rule.emotion not in EMOTION_LABELS:
                raise ValueError(f"Alert rule uses unknown emotion '{rule.emotion}'")
        self.keep_seconds = keep_seconds
        self.min_duration_seconds = min_duration_seconds

    def evaluate(self, window: WindowLike, weights: WeightsLike) -> Optional[AlertMessage]:
        """
        Evaluate the samples within keep_seconds of the newest sample.

        Args:
            window: ModalityWindow or sequence of samples (oldest first)
            weights: Weight per modality, used to combine each sample

        Returns:
            AlertMessage for the first matching rule, or None
        """
        samples = list(window)
        if not samples:
            return None

        cutoff = samples[-1].timestamp - self.keep_seconds
        recent = [s for s in samples if s.timestamp >= cutoff]
        duration = recent[-1].timestamp - recent[0].timestamp

        if duration < self.min_duration_seconds:
            return None

        resolved = resolve_weights(weights)
        combined = [combine_sample(s, resolved) for s in recent]

        for rule in self.rules:
            average = sum(c[rule.emotion] for c in combined) / len(combined)
            if average >= rule.threshold:
                logger.info(
                    f"Alert ({rule.level}): {rule.emotion} averaged {average:.3f} "
                    f">= {rule.threshold} over {duration:.1f}s"
                )
                return AlertMessage(
                    level=rule.level,
                    emotion=rule.emotion,
                    average_score=average,
                    duration_seconds=duration,
                    message=rule.message or f"{rule.emotion} above {rule.threshold}"
                )

        return None
