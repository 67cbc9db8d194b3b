"""
Orchestrator Layer for Fusion Service

This module runs the sampling loop that drives the fusion engine:
1. Call the face, voice and text producers in parallel
2. Drop the tick if any modality failed or returned nothing
3. Append the complete sample to the window
4. Run fusion logic and the sustained-emotion monitor
5. Log activity and publish the latest result

The window is only mutated from this loop's methods on one event loop, and
the append-and-fuse section never awaits, so readers always see a
consistent tail.
"""

import asyncio
import logging
import time
from typing import Any, Callable, Dict, List, Optional, Sequence

from fusion.alert_rules import SustainedEmotionMonitor
from fusion.config_loader import (
    get_alert_rules,
    get_history_capacity,
    get_trend_window_sizes,
    get_weight_config,
    get_window_size,
)
from fusion.fusion_logic import DEFAULT_DEVIATION_THRESHOLD, WeightsLike, compute_fusion, resolve_weights
from fusion.models import MODALITIES, AlertMessage, FusionResult, ModalitySample, TrendEntry
from fusion.normalizer import is_valid_emotion_vector
from fusion.trend_analyzer import DEFAULT_TREND_WINDOWS, analyze_trend
from fusion.window import ModalityWindow
from utils import activity_logger

logger = logging.getLogger(__name__)

DEFAULT_TICK_INTERVAL_SECONDS = 2.0


class SamplingLoop:
    """Periodic tick that gathers one sample per modality and fuses the window."""

    def __init__(
        self,
        producers: Dict[str, Any],
        weights: WeightsLike,
        window: Optional[ModalityWindow] = None,
        window_size: int = 5,
        tick_interval: float = DEFAULT_TICK_INTERVAL_SECONDS,
        trend_window_sizes: Sequence[int] = DEFAULT_TREND_WINDOWS,
        deviation_threshold: float = DEFAULT_DEVIATION_THRESHOLD,
        alert_monitor: Optional[SustainedEmotionMonitor] = None,
        log_activity: bool = True,
        on_result: Optional[Callable[[FusionResult, Optional[AlertMessage]], None]] = None
    ):
        """
        Initialize the sampling loop.

        Args:
            producers: Mapping of modality -> object with async produce() returning an EmotionVector or None
            weights: Weight per modality
            window: History window (a new 50-sample window if omitted)
            window_size: Number of recent samples the fusion averages over
            tick_interval: Seconds between ticks when running in the background
            trend_window_sizes: Window sizes for trend analysis
            deviation_threshold: Threshold for significant deviations
            alert_monitor: Sustained-emotion monitor (None disables alerts)
            log_activity: Write one JSONL activity entry per tick
            on_result: Callback invoked with each new result and alert
        """
        missing = [m for m in MODALITIES if m not in producers]
        if missing:
            raise ValueError(f"Producers missing for modalities: {missing}")
        if window_size < 1:
            raise ValueError(f"window_size must be >= 1, got {window_size}")

        self.producers = producers
        self.weights = resolve_weights(weights)
        self.window = window if window is not None else ModalityWindow()
        self.window_size = window_size
        self.tick_interval = tick_interval
        self.trend_window_sizes = list(trend_window_sizes)
        self.deviation_threshold = deviation_threshold
        self.alert_monitor = alert_monitor
        self.log_activity = log_activity
        self.on_result = on_result

        self.latest_result: Optional[FusionResult] = None
        self.latest_alert: Optional[AlertMessage] = None
        self.latest_timestamp: Optional[float] = None
        self.ticks_dropped = 0
        self._task: Optional[asyncio.Task] = None

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def run_tick(self) -> Optional[FusionResult]:
        """
        Run one tick: gather all producers, append, fuse.

        Returns:
            The new FusionResult, or None if the tick was dropped
        """
        tick_start = time.monotonic()

        outputs = await asyncio.gather(
            *(self.producers[m].produce() for m in MODALITIES),
            return_exceptions=True
        )

        vectors = {}
        missing = []
        for modality, output in zip(MODALITIES, outputs):
            if isinstance(output, BaseException):
                logger.warning(f"{modality} producer raised exception: {output!r}")
                missing.append(modality)
            elif output is None:
                logger.info(f"{modality} producer returned no vector")
                missing.append(modality)
            elif not is_valid_emotion_vector(output):
                logger.warning(f"{modality} producer returned an invalid vector, rejecting")
                missing.append(modality)
            else:
                vectors[modality] = output

        if missing:
            self.ticks_dropped += 1
            logger.info(f"Dropping tick, incomplete sample (missing: {missing})")
            if self.log_activity:
                activity_logger.log_fusion_activity(
                    sample_timestamp=None,
                    status="dropped",
                    window_size=self.window_size,
                    window_length=len(self.window),
                    missing_modalities=missing,
                    duration_seconds=time.monotonic() - tick_start
                )
            return None

        return self._record(ModalitySample(**vectors), tick_start)

    def submit_sample(self, sample: ModalitySample) -> Optional[FusionResult]:
        """
        Append an externally supplied sample and fuse.

        Raises:
            ValueError: If any vector is negative or does not sum to 1
        """
        invalid = [m for m in MODALITIES if not is_valid_emotion_vector(sample.get(m))]
        if invalid:
            raise ValueError(f"Invalid emotion vectors for modalities: {invalid}")
        return self._record(sample, time.monotonic())

    def _record(self, sample: ModalitySample, tick_start: float) -> Optional[FusionResult]:
        self.window.append(sample)

        result = compute_fusion(self.window, self.window_size, self.weights, self.deviation_threshold)
        alert = self.alert_monitor.evaluate(self.window, self.weights) if self.alert_monitor else None

        self.latest_result = result
        self.latest_alert = alert
        self.latest_timestamp = sample.timestamp

        if result is not None:
            logger.info(
                f"Fused tick: {result.dominant_emotion} ({result.dominant_score:.3f}), "
                f"window {len(self.window)}/{self.window.capacity}"
            )
            if result.significant_deviations:
                logger.info(
                    "Significant deviations: "
                    + ", ".join(f"{k}={v:+.3f}" for k, v in result.significant_deviations.items())
                )

        if self.log_activity:
            activity_logger.log_fusion_activity(
                sample_timestamp=sample.timestamp,
                status="success",
                window_size=self.window_size,
                window_length=len(self.window),
                dominant_emotion=result.dominant_emotion if result else None,
                dominant_score=result.dominant_score if result else None,
                combined_emotions=result.combined_emotions if result else None,
                significant_deviations=result.significant_deviations if result else None,
                alert_level=alert.level if alert else None,
                duration_seconds=time.monotonic() - tick_start
            )

        if self.on_result is not None and result is not None:
            self.on_result(result, alert)

        return result

    def trend(self, window_sizes: Optional[Sequence[int]] = None) -> List[TrendEntry]:
        """Trend analysis over the current window."""
        return analyze_trend(
            self.window,
            window_sizes or self.trend_window_sizes,
            self.weights,
            self.deviation_threshold
        )

    async def start(self):
        """Start ticking in a background task."""
        if self.is_running:
            logger.warning("Sampling loop already running")
            return
        self._task = asyncio.create_task(self._run())

    async def stop(self):
        """Cancel the background task, including any pending producer calls."""
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        logger.info("Sampling loop stopped")

    async def _run(self):
        logger.info(f"Starting sampling loop with interval={self.tick_interval}s, window_size={self.window_size}")

        while True:
            try:
                await self.run_tick()
                await asyncio.sleep(self.tick_interval)
            except asyncio.CancelledError:
                logger.info("Sampling loop task cancelled")
                break
            except Exception as e:
                logger.error(f"Error in sampling tick: {e}", exc_info=True)
                if self.log_activity:
                    activity_logger.log_fusion_activity(
                        sample_timestamp=None,
                        status="error",
                        window_size=self.window_size,
                        window_length=len(self.window),
                        error=str(e)
                    )
                await asyncio.sleep(self.tick_interval)


def build_sampling_loop(config: Dict[str, Any], producers: Dict[str, Any], **overrides) -> SamplingLoop:
    """
    Build a SamplingLoop from a configuration dictionary.

    Raises:
        ConfigError: If weights or window settings are invalid
    """
    alerts = config.get("alerts", {})
    alert_monitor = SustainedEmotionMonitor(
        rules=get_alert_rules(config),
        keep_seconds=alerts.get("keep_seconds", 5.0),
        min_duration_seconds=alerts.get("min_duration_seconds", 3.0)
    )

    kwargs = dict(
        producers=producers,
        weights=get_weight_config(config),
        window=ModalityWindow(get_history_capacity(config)),
        window_size=get_window_size(config),
        tick_interval=config.get("tick_interval_seconds", DEFAULT_TICK_INTERVAL_SECONDS),
        trend_window_sizes=get_trend_window_sizes(config),
        deviation_threshold=config.get("deviation_threshold", DEFAULT_DEVIATION_THRESHOLD),
        alert_monitor=alert_monitor,
        log_activity=config.get("activity_log_enabled", True)
    )
    kwargs.update(overrides)
    return SamplingLoop(**kwargs)
