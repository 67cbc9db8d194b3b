"""
Unit Tests: Blendshape Scorer

Tests the mapping from face landmark blendshapes to emotion vectors.

Coefficients: smile x1.2, frown x1.1, brow_down x1.1
    happy     = smile
    sad       = frown + 0.3 x brow_raise
    angry     = brow_down + 0.4 x frown
    surprised = (eye_wide + jaw_open) / 2
    neutral   = max(0, 1 - sum(others))

Run with: pytest testing/test_blendshape_scorer.py -v
"""

import pytest
import sys
import os

# Add parent directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from fusion.blendshape_scorer import (
    KNOWN_BLENDSHAPES,
    BlendshapeCoefficients,
    compute_group_scores,
    compute_raw_emotions,
    score_blendshapes,
    validate_vocabulary,
)
from fusion.models import BlendshapeCategory


def cat(name: str, score: float) -> dict:
    """Helper to build a blendshape category the way the landmarker reports it."""
    return {"categoryName": name, "score": score}


def neutral_face() -> list:
    return [cat(name, 0.0) for name in KNOWN_BLENDSHAPES]


class TestScoreBlendshapes:

    def test_full_smile_is_happy(self):
        vector = score_blendshapes([cat("mouthSmileLeft", 1.0), cat("mouthSmileRight", 1.0)], timestamp=1.0)

        # happy raw 1.2, neutral clipped to 0
        assert vector.emotions["happy"] == pytest.approx(1.0)
        assert vector.emotions["neutral"] == 0
        assert vector.dominant() == "happy"

    def test_no_expression_is_neutral(self):
        vector = score_blendshapes(neutral_face(), timestamp=1.0)

        assert vector.emotions["neutral"] == pytest.approx(1.0)
        assert vector.emotions["happy"] == 0

    def test_partial_smile_keeps_some_neutral(self):
        vector = score_blendshapes([cat("mouthSmileLeft", 0.5), cat("mouthSmileRight", 0.5)], timestamp=1.0)

        assert vector.emotions["happy"] == pytest.approx(0.6)
        assert vector.emotions["neutral"] == pytest.approx(0.4)

    def test_group_is_mean_of_its_members(self):
        vector = score_blendshapes([cat("mouthSmileLeft", 1.0), cat("mouthSmileRight", 0.0)], timestamp=1.0)

        assert vector.emotions["happy"] == pytest.approx(0.6)

    def test_frown_feeds_sad_and_angry(self):
        vector = score_blendshapes([cat("mouthFrownLeft", 0.5), cat("mouthFrownRight", 0.5)], timestamp=1.0)

        # frown' = 0.55 -> sad 0.55, angry 0.22, neutral 0.23
        assert vector.emotions["sad"] == pytest.approx(0.55)
        assert vector.emotions["angry"] == pytest.approx(0.22)
        assert vector.emotions["neutral"] == pytest.approx(0.23)

    def test_wide_eyes_and_open_jaw_are_surprised(self):
        categories = [cat("eyeWideLeft", 1.0), cat("eyeWideRight", 1.0), cat("jawOpen", 1.0)]

        vector = score_blendshapes(categories, timestamp=1.0)

        assert vector.emotions["surprised"] == pytest.approx(1.0)

    def test_unknown_categories_contribute_zero(self):
        vector = score_blendshapes([cat("cheekWobble", 1.0)], timestamp=1.0)

        assert vector.emotions["neutral"] == pytest.approx(1.0)

    def test_name_match_is_case_insensitive(self):
        vector = score_blendshapes([cat("MOUTHSMILELEFT", 1.0)], timestamp=1.0)

        assert vector.dominant() == "happy"

    def test_accepts_category_models(self):
        categories = [BlendshapeCategory(name="mouthSmileLeft", score=1.0)]

        vector = score_blendshapes(categories, timestamp=3.0)

        assert vector.timestamp == 3.0
        assert vector.dominant() == "happy"

    def test_custom_coefficients(self):
        coefficients = BlendshapeCoefficients(smile_gain=0.5)

        vector = score_blendshapes([cat("mouthSmileLeft", 1.0)], timestamp=1.0, coefficients=coefficients)

        assert vector.emotions["happy"] == pytest.approx(0.5)
        assert vector.emotions["neutral"] == pytest.approx(0.5)

    def test_output_sums_to_one(self):
        categories = [cat(name, 0.7) for name in KNOWN_BLENDSHAPES]

        vector = score_blendshapes(categories, timestamp=1.0)

        assert sum(vector.emotions.values()) == pytest.approx(1.0, abs=1e-9)
        assert all(v >= 0 for v in vector.emotions.values())

    def test_empty_categories_rejected(self):
        with pytest.raises(ValueError):
            score_blendshapes([], timestamp=1.0)


class TestHelpers:

    def test_missing_groups_score_zero(self):
        groups = compute_group_scores([cat("jawOpen", 0.8)])

        assert groups["jaw_open"] == pytest.approx(0.8)
        assert groups["mouth_smile"] == 0.0
        assert groups["brow_raise"] == 0.0

    def test_neutral_never_negative(self):
        groups = {"mouth_smile": 1.0, "mouth_frown": 1.0, "brow_raise": 1.0,
                  "brow_down": 1.0, "eye_wide": 1.0, "jaw_open": 1.0}

        raw = compute_raw_emotions(groups)

        assert raw["neutral"] == 0.0

    def test_validate_vocabulary(self):
        unknown = validate_vocabulary(["mouthSmileLeft", "jawOpen", "tongueOut"])

        assert unknown == ["tongueOut"]
        assert validate_vocabulary(KNOWN_BLENDSHAPES) == []

    def test_brow_raise_averages_inner_and_outer_brows(self):
        groups = compute_group_scores([
            cat("browInnerUp", 0.9),
            cat("browOuterUpLeft", 0.3),
            cat("browOuterUpRight", 0.3),
        ])

        assert groups["brow_raise"] == pytest.approx(0.5)
