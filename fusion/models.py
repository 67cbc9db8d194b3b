"""
Pydantic Models for Fusion Service

This module defines the emotion vector types shared by every modality,
the fusion result structures, and the request/response models for the API.
"""

from types import MappingProxyType

from pydantic import BaseModel, ConfigDict, Field, field_serializer, field_validator
from typing import Optional, List, Dict, Mapping


# Closed label set shared by every modality and by the fused output
EMOTION_LABELS = ["happy", "sad", "angry", "surprised", "neutral"]

MODALITIES = ["face", "voice", "text"]


class EmotionVector(BaseModel):
    """Five-category emotion score vector produced by one modality. Immutable."""
    model_config = ConfigDict(frozen=True)

    timestamp: float = Field(..., description="Producer-assigned timestamp (seconds)")
    confidence: float = Field(default=0.0, ge=0.0, le=1.0, description="Producer certainty in its top category")
    emotions: Dict[str, float]

    @field_validator("emotions")
    @classmethod
    def check_emotions(cls, value: Dict[str, float]) -> Mapping[str, float]:
        if set(value.keys()) != set(EMOTION_LABELS):
            raise ValueError(f"emotions must contain exactly {EMOTION_LABELS}, got {sorted(value.keys())}")
        for label, score in value.items():
            if score < 0:
                raise ValueError(f"emotion '{label}' has negative score {score}")
        # Read-only view; samples in the window must not change after fusion
        return MappingProxyType({label: float(value[label]) for label in EMOTION_LABELS})

    @field_serializer("emotions")
    def serialize_emotions(self, value: Mapping[str, float]) -> Dict[str, float]:
        return dict(value)

    def dominant(self) -> str:
        """Return the label with the highest score."""
        return max(EMOTION_LABELS, key=lambda label: self.emotions[label])


class ModalitySample(BaseModel):
    """One tick worth of emotion vectors, one per modality. Immutable."""
    model_config = ConfigDict(frozen=True)

    face: EmotionVector
    voice: EmotionVector
    text: EmotionVector

    @property
    def timestamp(self) -> float:
        return max(self.face.timestamp, self.voice.timestamp, self.text.timestamp)

    def get(self, modality: str) -> EmotionVector:
        return getattr(self, modality)


class WeightConfig(BaseModel):
    """Per-modality fusion weights. Not required to sum to 1."""
    face: float = Field(ge=0.0)
    voice: float = Field(ge=0.0)
    text: float = Field(ge=0.0)

    def as_dict(self) -> Dict[str, float]:
        return {"face": self.face, "voice": self.voice, "text": self.text}


class BlendshapeCategory(BaseModel):
    """Single blendshape reported by the face landmark classifier."""
    name: str = Field(..., alias="categoryName")
    score: float = Field(ge=0.0, le=1.0)

    model_config = ConfigDict(populate_by_name=True)


class FaceDetection(BaseModel):
    """Blendshapes for one detected face."""
    categories: List[BlendshapeCategory] = Field(default_factory=list)


class FaceDetectResponse(BaseModel):
    """Response structure from the face producer's /detect endpoint."""
    timestamp: float
    faces: List[FaceDetection] = Field(default_factory=list)


class FusionResult(BaseModel):
    """Output of one fusion computation over a window."""
    window_size: int
    sample_count: int = Field(description="Samples actually used (<= window_size)")
    combined_emotions: Dict[str, float]
    combined_averages: Dict[str, float]
    deviations: Dict[str, float]
    dominant_emotion: Optional[str] = None
    dominant_score: float = 0.0
    significant_deviations: Dict[str, float] = Field(default_factory=dict)


class TrendEntry(BaseModel):
    """Fusion result for one window size of a trend analysis."""
    window_size: int
    result: Optional[FusionResult] = None


class AlertMessage(BaseModel):
    """Alert raised when an emotion stays high across the recent window."""
    type: str = "alert"
    level: str  # "warning" | "info"
    emotion: str
    average_score: float
    duration_seconds: float
    message: str


# =============================================================================
# API models
# =============================================================================

class FusionSnapshotResponse(BaseModel):
    """Response carrying the latest fused result."""
    timestamp: float
    result: FusionResult
    alert: Optional[AlertMessage] = None


class NoResultResponse(BaseModel):
    """Response when no fused result is available yet."""
    status: str = "no_result"
    reason: str = "window is empty"


class BlendshapeScoreRequest(BaseModel):
    """Request model for scoring one face's blendshapes."""
    timestamp: Optional[float] = None
    categories: List[BlendshapeCategory] = Field(default_factory=list)


class NoFaceResponse(BaseModel):
    """Response when the request carried no face to score."""
    status: str = "no_face"
    reason: str = "no blendshape categories provided"


class TextUpdateRequest(BaseModel):
    """Request model for updating the text fed to the text producer."""
    text: str


class SampleDemoRequest(BaseModel):
    """Demo request that pushes a complete sample directly into the window."""
    face: EmotionVector
    voice: EmotionVector
    text: EmotionVector
