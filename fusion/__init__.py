"""
Fusion package for the multi-modal emotion fusion service.

This package provides:
- Models: EmotionVector, ModalitySample, FusionResult
- Normalizer and blendshape scorer: raw scores to emotion vectors
- Window, fusion logic and trend analyzer: the fusion engine
- Alert rules: sustained-emotion monitor
- Model clients: HTTP clients for face/voice/text producers
- Orchestrator: the sampling loop
- API endpoints: GET /fusion/latest, GET /fusion/trend, GET /fusion/health
"""

from . import models
from . import normalizer
from . import blendshape_scorer
from . import window
from . import fusion_logic
from . import trend_analyzer
from . import alert_rules
from . import config_loader
from . import model_clients
from . import orchestrator
from . import api

__all__ = [
    'models',
    'normalizer',
    'blendshape_scorer',
    'window',
    'fusion_logic',
    'trend_analyzer',
    'alert_rules',
    'config_loader',
    'model_clients',
    'orchestrator',
    'api'
]
