"""
Configuration Loader for Fusion Service

This module loads configuration from JSON file and provides fallback defaults.
Weight and window settings are validated here so a bad configuration stops
the service at startup.
"""

import json
import os
import logging
from typing import Dict, Any, List

from fusion.alert_rules import AlertRule
from fusion.blendshape_scorer import BlendshapeCoefficients
from fusion.models import MODALITIES, WeightConfig

logger = logging.getLogger(__name__)

# Default configuration (used as fallback)
DEFAULT_CONFIG = {
    "fusion_weights": {
        "face": 0.4,
        "voice": 0.3,
        "text": 0.3
    },
    "window_size": 5,
    "history_capacity": 50,
    "trend_window_sizes": [5, 10, 30],
    "tick_interval_seconds": 2.0,
    "deviation_threshold": 0.05,
    "model_timeout_seconds": 1.5,
    "model_service_urls": {
        "face": "http://localhost:8005/face",
        "voice": "http://localhost:8005/voice",
        "text": "http://localhost:8005/text"
    },
    "blendshape_coefficients": {
        "smile_gain": 1.2,
        "frown_gain": 1.1,
        "brow_down_gain": 1.1,
        "sad_brow_raise": 0.3,
        "angry_frown": 0.4
    },
    "alerts": {
        "keep_seconds": 5.0,
        "min_duration_seconds": 3.0,
        "rules": [
            {"emotion": "angry", "threshold": 0.8, "level": "warning",
             "message": "Anger has stayed high for several seconds"},
            {"emotion": "sad", "threshold": 0.7, "level": "info",
             "message": "Sadness has stayed high for several seconds"}
        ]
    },
    "activity_log_enabled": True
}


class ConfigError(ValueError):
    """Raised when the configuration cannot be used to run the service."""


# Cache for loaded config
_config_cache: Dict[str, Any] = None


def load_config(config_path: str = None) -> Dict[str, Any]:
    """
    Load configuration from JSON file.

    Args:
        config_path: Path to config file. If None, uses FUSION_CONFIG_PATH or
            config.json next to this module.

    Returns:
        Configuration dictionary. Returns default config if file not found or invalid.
    """
    global _config_cache

    # Return cached config if available
    if _config_cache is not None:
        return _config_cache

    # Determine config file path
    if config_path is None:
        config_path = os.getenv("FUSION_CONFIG_PATH")
    if config_path is None:
        module_dir = os.path.dirname(os.path.abspath(__file__))
        config_path = os.path.join(module_dir, "config.json")

    try:
        if os.path.exists(config_path):
            with open(config_path, 'r', encoding='utf-8') as f:
                config = json.load(f)
            logger.info(f"Loaded configuration from {config_path}")
            _config_cache = config
            return config
        else:
            logger.warning(f"Config file not found at {config_path}, using default configuration")
            _config_cache = DEFAULT_CONFIG
            return DEFAULT_CONFIG
    except json.JSONDecodeError as e:
        logger.error(f"Invalid JSON in config file {config_path}: {e}. Using default configuration.")
        _config_cache = DEFAULT_CONFIG
        return DEFAULT_CONFIG


def clear_config_cache() -> None:
    """Forget the cached configuration so the next load re-reads the file."""
    global _config_cache
    _config_cache = None


def get_weight_config(config: Dict[str, Any]) -> WeightConfig:
    """
    Validate and return the fusion weights.

    A missing modality is not treated as weight 0: the service refuses to run.

    Raises:
        ConfigError: If a weight is missing, non-numeric, negative, or all are zero
    """
    weights = config.get("fusion_weights")
    if not isinstance(weights, dict):
        raise ConfigError("'fusion_weights' must be an object with face, voice and text weights")

    missing = [m for m in MODALITIES if m not in weights]
    if missing:
        raise ConfigError(f"'fusion_weights' is missing required modalities: {missing}")

    try:
        weight_config = WeightConfig(**{m: float(weights[m]) for m in MODALITIES})
    except (TypeError, ValueError) as e:
        raise ConfigError(f"Invalid 'fusion_weights': {e}") from e

    total = sum(weight_config.as_dict().values())
    if total == 0:
        raise ConfigError("'fusion_weights' are all zero")
    if abs(total - 1.0) > 1e-6:
        logger.warning(f"Fusion weights sum to {total:.3f}; combined scores will not sum to 1")

    return weight_config


def _positive_int(config: Dict[str, Any], key: str) -> int:
    value = config.get(key, DEFAULT_CONFIG[key])
    if not isinstance(value, int) or isinstance(value, bool) or value < 1:
        raise ConfigError(f"'{key}' must be an integer >= 1, got {value!r}")
    return value


def get_window_size(config: Dict[str, Any]) -> int:
    return _positive_int(config, "window_size")


def get_history_capacity(config: Dict[str, Any]) -> int:
    return _positive_int(config, "history_capacity")


def get_trend_window_sizes(config: Dict[str, Any]) -> List[int]:
    sizes = config.get("trend_window_sizes", DEFAULT_CONFIG["trend_window_sizes"])
    if not sizes or any(not isinstance(s, int) or isinstance(s, bool) or s < 1 for s in sizes):
        raise ConfigError(f"'trend_window_sizes' must be a non-empty list of integers >= 1, got {sizes!r}")
    return list(sizes)


def get_model_service_urls(config: Dict[str, Any]) -> Dict[str, str]:
    """
    Return the producer service URL per modality.

    Falls back to the default URLs when the key is absent.

    Raises:
        ConfigError: If the value is not an object or a modality URL is missing or empty
    """
    urls = config.get("model_service_urls", DEFAULT_CONFIG["model_service_urls"])
    if not isinstance(urls, dict):
        raise ConfigError("'model_service_urls' must be an object with face, voice and text URLs")

    missing = [m for m in MODALITIES if not isinstance(urls.get(m), str) or not urls.get(m)]
    if missing:
        raise ConfigError(f"'model_service_urls' is missing URLs for modalities: {missing}")

    return {m: urls[m] for m in MODALITIES}


def get_blendshape_coefficients(config: Dict[str, Any]) -> BlendshapeCoefficients:
    return BlendshapeCoefficients(**config.get("blendshape_coefficients", {}))


def get_alert_rules(config: Dict[str, Any]) -> List[AlertRule]:
    alerts = config.get("alerts", DEFAULT_CONFIG["alerts"])
    return [AlertRule(**rule) for rule in alerts.get("rules", [])]
