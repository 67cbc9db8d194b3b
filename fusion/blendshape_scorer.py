"""
Blendshape Scorer

Maps the face landmark classifier's per-blendshape confidences into the five
coarse emotion categories.

Blendshape names are resolved through a static table over the MediaPipe
face landmarker vocabulary. Names outside the table contribute 0.
"""

import logging
from typing import Dict, Iterable, List, Optional, Sequence, Union

from pydantic import BaseModel

from fusion.models import BlendshapeCategory, EmotionVector
from fusion.normalizer import to_emotion_vector

logger = logging.getLogger(__name__)

# MediaPipe face landmarker blendshape vocabulary (52 categories)
KNOWN_BLENDSHAPES = (
    "_neutral",
    "browDownLeft", "browDownRight", "browInnerUp", "browOuterUpLeft", "browOuterUpRight",
    "cheekPuff", "cheekSquintLeft", "cheekSquintRight",
    "eyeBlinkLeft", "eyeBlinkRight",
    "eyeLookDownLeft", "eyeLookDownRight", "eyeLookInLeft", "eyeLookInRight",
    "eyeLookOutLeft", "eyeLookOutRight", "eyeLookUpLeft", "eyeLookUpRight",
    "eyeSquintLeft", "eyeSquintRight", "eyeWideLeft", "eyeWideRight",
    "jawForward", "jawLeft", "jawOpen", "jawRight",
    "mouthClose", "mouthDimpleLeft", "mouthDimpleRight",
    "mouthFrownLeft", "mouthFrownRight", "mouthFunnel", "mouthLeft",
    "mouthLowerDownLeft", "mouthLowerDownRight", "mouthPressLeft", "mouthPressRight",
    "mouthPucker", "mouthRight", "mouthRollLower", "mouthRollUpper",
    "mouthShrugLower", "mouthShrugUpper", "mouthSmileLeft", "mouthSmileRight",
    "mouthStretchLeft", "mouthStretchRight", "mouthUpperUpLeft", "mouthUpperUpRight",
    "noseSneerLeft", "noseSneerRight",
)

# Feature group -> blendshapes averaged into it
FEATURE_GROUPS: Dict[str, tuple] = {
    "mouth_smile": ("mouthSmileLeft", "mouthSmileRight"),
    "mouth_frown": ("mouthFrownLeft", "mouthFrownRight"),
    "brow_raise": ("browInnerUp", "browOuterUpLeft", "browOuterUpRight"),
    "brow_down": ("browDownLeft", "browDownRight"),
    "eye_wide": ("eyeWideLeft", "eyeWideRight"),
    "jaw_open": ("jawOpen",),
}

# Reverse lookup, lowercased so producers that change case still match
_BLENDSHAPE_TO_GROUP = {
    name.lower(): group
    for group, names in FEATURE_GROUPS.items()
    for name in names
}

_KNOWN_LOWER = {name.lower() for name in KNOWN_BLENDSHAPES}


class BlendshapeCoefficients(BaseModel):
    """Linear combination weights from feature groups to raw emotions."""
    smile_gain: float = 1.2
    frown_gain: float = 1.1
    brow_down_gain: float = 1.1
    sad_brow_raise: float = 0.3
    angry_frown: float = 0.4


DEFAULT_COEFFICIENTS = BlendshapeCoefficients()

CategoryLike = Union[BlendshapeCategory, Dict]


def _as_category(item: CategoryLike) -> BlendshapeCategory:
    if isinstance(item, BlendshapeCategory):
        return item
    return BlendshapeCategory(**item)


def validate_vocabulary(names: Iterable[str]) -> List[str]:
    """
    Check a producer's category vocabulary against the known table.

    Args:
        names: Category names the producer can report

    Returns:
        Names not in the known vocabulary (they will contribute 0)
    """
    unknown = [name for name in names if name.lower() not in _KNOWN_LOWER]
    if unknown:
        logger.warning(f"Unrecognized blendshape categories will contribute 0: {unknown}")
    return unknown


def compute_group_scores(categories: Sequence[CategoryLike]) -> Dict[str, float]:
    """Mean score per feature group. Groups with no reported member score 0."""
    collected: Dict[str, List[float]] = {group: [] for group in FEATURE_GROUPS}

    for item in categories:
        category = _as_category(item)
        group = _BLENDSHAPE_TO_GROUP.get(category.name.lower())
        if group is not None:
            collected[group].append(category.score)

    return {
        group: (sum(scores) / len(scores) if scores else 0.0)
        for group, scores in collected.items()
    }


def compute_raw_emotions(
    groups: Dict[str, float],
    coefficients: BlendshapeCoefficients = DEFAULT_COEFFICIENTS
) -> Dict[str, float]:
    """Raw (unnormalized) emotion magnitudes from feature group scores."""
    smile = groups["mouth_smile"] * coefficients.smile_gain
    frown = groups["mouth_frown"] * coefficients.frown_gain
    brow_down = groups["brow_down"] * coefficients.brow_down_gain

    emotions = {
        "happy": smile,
        "sad": frown + groups["brow_raise"] * coefficients.sad_brow_raise,
        "angry": brow_down + frown * coefficients.angry_frown,
        "surprised": (groups["eye_wide"] + groups["jaw_open"]) / 2,
    }
    # Neutral is the absence of expressed emotion, never negative
    emotions["neutral"] = max(0.0, 1.0 - sum(emotions.values()))
    return emotions


def score_blendshapes(
    categories: Sequence[CategoryLike],
    timestamp: float,
    coefficients: Optional[BlendshapeCoefficients] = None,
    confidence: Optional[float] = None
) -> EmotionVector:
    """
    Score one detected face's blendshapes as an EmotionVector.

    Callers must not invoke this for frames without a face; an empty
    category list is rejected so no spurious vector reaches the window.

    Args:
        categories: Blendshape categories ({name/categoryName, score}) for one face
        timestamp: Frame timestamp
        coefficients: Optional override of the linear combination weights
        confidence: Optional producer confidence; defaults to the top emotion score

    Returns:
        Normalized EmotionVector

    Raises:
        ValueError: If categories is empty
    """
    if not categories:
        raise ValueError("Cannot score an empty blendshape category list")

    groups = compute_group_scores(categories)
    raw = compute_raw_emotions(groups, coefficients or DEFAULT_COEFFICIENTS)

    logger.debug(
        "Blendshape groups: " + ", ".join(f"{k}={v:.3f}" for k, v in groups.items())
    )

    return to_emotion_vector(raw, timestamp=timestamp, confidence=confidence)
