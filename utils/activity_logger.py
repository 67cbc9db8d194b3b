"""
Activity Logger Utility

Provides activity logging for the fusion sampling loop.
Logs are written to JSONL files for easy parsing and dashboard display.
"""

import json
import os
import logging
import threading
from datetime import datetime
from typing import Dict, List, Optional

logger = logging.getLogger(__name__)

# Base directory for activity logs
BASE_LOG_DIR = os.getenv("ACTIVITY_LOG_DIR", "data/activity_logs")

# Lock for thread-safe file writing
_fusion_lock = threading.Lock()


def _ensure_log_dir(log_dir: str):
    """Ensure log directory exists."""
    os.makedirs(log_dir, exist_ok=True)


def _get_log_file(log_dir: str, prefix: str) -> str:
    """
    Get log file path for today's date.

    Args:
        log_dir: Log directory path
        prefix: File prefix (e.g., "fusion")

    Returns:
        Path to log file
    """
    _ensure_log_dir(log_dir)
    today = datetime.now().strftime("%Y%m%d")
    return os.path.join(log_dir, f"{prefix}_activity_{today}.jsonl")


def log_fusion_activity(
    sample_timestamp: Optional[float],
    status: str,  # "success", "dropped", "error"
    window_size: Optional[int] = None,
    window_length: Optional[int] = None,
    dominant_emotion: Optional[str] = None,
    dominant_score: Optional[float] = None,
    combined_emotions: Optional[Dict[str, float]] = None,
    significant_deviations: Optional[Dict[str, float]] = None,
    missing_modalities: Optional[List[str]] = None,
    alert_level: Optional[str] = None,
    error: Optional[str] = None,
    duration_seconds: Optional[float] = None
):
    """
    Log one sampling-loop tick.

    Args:
        sample_timestamp: Timestamp of the appended sample (None if dropped)
        status: Tick status ("success", "dropped", "error")
        window_size: Fusion window size used
        window_length: Number of samples in the window after the tick
        dominant_emotion: Dominant fused emotion (if successful)
        dominant_score: Its combined score
        combined_emotions: Weighted combination of the latest sample
        significant_deviations: Categories deviating from trend
        missing_modalities: Modalities that failed or returned nothing
        alert_level: Level of the alert raised this tick, if any
        error: Error message (if failed)
        duration_seconds: Processing duration in seconds
    """
    log_file = _get_log_file(os.path.join(BASE_LOG_DIR, "fusion"), "fusion")

    log_entry = {
        "sample_timestamp": sample_timestamp,
        "logged_at": datetime.now().isoformat(),
        "status": status,
        "window_size": window_size,
        "window_length": window_length,
        "dominant_emotion": dominant_emotion,
        "dominant_score": dominant_score,
        "combined_emotions": combined_emotions or {},
        "significant_deviations": significant_deviations or {},
        "missing_modalities": missing_modalities or [],
        "alert_level": alert_level,
        "error": error,
        "duration_seconds": duration_seconds
    }

    try:
        with _fusion_lock:
            with open(log_file, 'a', encoding='utf-8') as f:
                f.write(json.dumps(log_entry, ensure_ascii=False) + '\n')
        logger.debug(f"Logged fusion activity to {log_file}")
    except OSError as e:
        logger.warning(f"Failed to log fusion activity: {e}", exc_info=True)
