"""
Core Fusion Logic for Fusion Service

This module implements the windowed weighted fusion algorithm that combines
face, voice and text emotion vectors into one estimate and compares the
latest reading against its moving-average trend.

Combined outputs are plain weighted sums and are never renormalized, so
deviation magnitudes scale with the configured weights.
"""

import logging
from typing import Dict, List, Mapping, Optional, Sequence, Tuple, Union

from fusion.models import EMOTION_LABELS, MODALITIES, FusionResult, ModalitySample, WeightConfig
from fusion.window import ModalityWindow

logger = logging.getLogger(__name__)

# |deviation| above this marks a category as a significant change
DEFAULT_DEVIATION_THRESHOLD = 0.05

WeightsLike = Union[WeightConfig, Mapping[str, float]]
WindowLike = Union[ModalityWindow, Sequence[ModalitySample]]


def resolve_weights(weights: WeightsLike) -> Dict[str, float]:
    """
    Convert weights to a plain dict, refusing missing modalities.

    Raises:
        ValueError: If a modality weight is missing or negative
    """
    if isinstance(weights, WeightConfig):
        return weights.as_dict()

    missing = [m for m in MODALITIES if m not in weights]
    if missing:
        raise ValueError(f"Weights missing required modalities: {missing}")

    resolved = {m: float(weights[m]) for m in MODALITIES}
    negative = [m for m, w in resolved.items() if w < 0]
    if negative:
        raise ValueError(f"Weights must be non-negative, got negative for: {negative}")
    return resolved


def take_window(window: WindowLike, window_size: int) -> List[ModalitySample]:
    """Last min(window_size, len(window)) samples, oldest first."""
    if window_size < 1:
        raise ValueError(f"window_size must be >= 1, got {window_size}")
    if isinstance(window, ModalityWindow):
        return window.tail(window_size)
    return list(window)[-window_size:]


def calculate_modality_average(samples: Sequence[ModalitySample], modality: str) -> Dict[str, float]:
    """Element-wise mean of one modality's emotions across the samples."""
    if not samples:
        return {label: 0.0 for label in EMOTION_LABELS}

    totals = {label: 0.0 for label in EMOTION_LABELS}
    for sample in samples:
        emotions = sample.get(modality).emotions
        for label in EMOTION_LABELS:
            totals[label] += emotions[label]

    count = len(samples)
    return {label: total / count for label, total in totals.items()}


def combine_modalities(per_modality: Mapping[str, Mapping[str, float]], weights: Dict[str, float]) -> Dict[str, float]:
    """Weighted sum across modalities, per category."""
    combined = {label: 0.0 for label in EMOTION_LABELS}
    for modality in MODALITIES:
        weight = weights[modality]
        if weight == 0.0:
            continue
        for label in EMOTION_LABELS:
            combined[label] += per_modality[modality][label] * weight
    return combined


def combine_sample(sample: ModalitySample, weights: Dict[str, float]) -> Dict[str, float]:
    """Weighted combination of one sample's three vectors."""
    return combine_modalities(
        {m: sample.get(m).emotions for m in MODALITIES},
        weights
    )


def calculate_deviations(combined_emotions: Dict[str, float], combined_averages: Dict[str, float]) -> Dict[str, float]:
    """Latest minus trend per category; positive means above trend."""
    return {
        label: combined_emotions[label] - combined_averages[label]
        for label in EMOTION_LABELS
    }


def detect_significant_deviations(
    deviations: Dict[str, float],
    threshold: float = DEFAULT_DEVIATION_THRESHOLD
) -> Dict[str, float]:
    """Categories whose deviation magnitude exceeds the threshold."""
    return {
        label: value
        for label, value in deviations.items()
        if abs(value) > threshold
    }


def get_dominant_emotion(emotions: Dict[str, float]) -> Tuple[Optional[str], float]:
    """Label with the highest positive score, or (None, 0.0) if all are zero."""
    best_label = None
    best_score = 0.0
    for label in EMOTION_LABELS:
        if emotions[label] > best_score:
            best_label = label
            best_score = emotions[label]
    return best_label, best_score


def compute_fusion(
    window: WindowLike,
    window_size: int,
    weights: WeightsLike,
    deviation_threshold: float = DEFAULT_DEVIATION_THRESHOLD
) -> Optional[FusionResult]:
    """
    Fuse the most recent samples of a window.

    Algorithm:
    1. Take the last min(window_size, len(window)) samples
    2. Average each modality's emotions across that slice
    3. Take the latest sample of the slice
    4. combined_emotions = sum(weight[m] * latest[m])
    5. combined_averages = sum(weight[m] * average[m])
    6. deviations = combined_emotions - combined_averages

    Args:
        window: ModalityWindow or sequence of samples (oldest first)
        window_size: Number of most recent samples to average (>= 1)
        weights: Weight per modality (face, voice, text)
        deviation_threshold: Magnitude above which a deviation is significant

    Returns:
        FusionResult, or None when the window is empty

    Raises:
        ValueError: If window_size < 1 or weights are invalid
    """
    resolved_weights = resolve_weights(weights)
    samples = take_window(window, window_size)

    if not samples:
        logger.debug("Window is empty, no fusion result")
        return None

    # Averages use the same slice the latest sample comes from
    modality_averages = {
        m: calculate_modality_average(samples, m)
        for m in MODALITIES
    }
    latest = samples[-1]

    combined_emotions = combine_sample(latest, resolved_weights)
    combined_averages = combine_modalities(modality_averages, resolved_weights)
    deviations = calculate_deviations(combined_emotions, combined_averages)

    dominant_emotion, dominant_score = get_dominant_emotion(combined_emotions)
    significant = detect_significant_deviations(deviations, deviation_threshold)

    logger.debug(
        f"Fused {len(samples)}/{window_size} samples: dominant={dominant_emotion} "
        f"({dominant_score:.3f}), significant={list(significant.keys())}"
    )

    return FusionResult(
        window_size=window_size,
        sample_count=len(samples),
        combined_emotions=combined_emotions,
        combined_averages=combined_averages,
        deviations=deviations,
        dominant_emotion=dominant_emotion,
        dominant_score=dominant_score,
        significant_deviations=significant
    )
