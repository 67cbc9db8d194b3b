"""
Trend Analyzer

Runs the fusion computation at several window sizes over the same history
to give short, medium and long-term views in one pass.
"""

import logging
from typing import List, Sequence

from fusion.fusion_logic import DEFAULT_DEVIATION_THRESHOLD, WeightsLike, WindowLike, compute_fusion
from fusion.models import TrendEntry

logger = logging.getLogger(__name__)

DEFAULT_TREND_WINDOWS = (5, 10, 30)


def analyze_trend(
    window: WindowLike,
    window_sizes: Sequence[int],
    weights: WeightsLike,
    deviation_threshold: float = DEFAULT_DEVIATION_THRESHOLD
) -> List[TrendEntry]:
    """
    Fuse the same window once per requested window size.

    Args:
        window: ModalityWindow or sequence of samples
        window_sizes: Window sizes (e.g. DEFAULT_TREND_WINDOWS), results keep this order
        weights: Weight per modality
        deviation_threshold: Threshold passed through to each fusion

    Returns:
        One TrendEntry per window size (result is None if the window is empty)
    """
    # Snapshot once so every size sees the same tail
    samples = list(window)

    entries = [
        TrendEntry(
            window_size=size,
            result=compute_fusion(samples, size, weights, deviation_threshold)
        )
        for size in window_sizes
    ]

    logger.debug(f"Trend analysis over {len(samples)} samples for sizes {list(window_sizes)}")
    return entries
