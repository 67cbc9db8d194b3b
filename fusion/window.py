"""
Modality Window

Bounded FIFO history of ModalitySample used as the moving-average basis.
"""

import logging
from collections import deque
from typing import Iterator, List

from fusion.models import ModalitySample

logger = logging.getLogger(__name__)

# Capacity used for multimodal fusion history
DEFAULT_CAPACITY = 50


class ModalityWindow:
    """Append-only ring of samples; the oldest sample is evicted first."""

    def __init__(self, capacity: int = DEFAULT_CAPACITY):
        if capacity < 1:
            raise ValueError(f"Window capacity must be >= 1, got {capacity}")
        self.capacity = capacity
        self._samples = deque(maxlen=capacity)

    def append(self, sample: ModalitySample) -> None:
        if len(self._samples) == self.capacity:
            logger.debug(f"Window full ({self.capacity}), evicting oldest sample")
        self._samples.append(sample)

    def tail(self, count: int) -> List[ModalitySample]:
        """Return the last `count` samples, oldest first."""
        if count <= 0:
            return []
        return list(self._samples)[-count:]

    def latest(self) -> ModalitySample:
        if not self._samples:
            raise IndexError("latest() on empty window")
        return self._samples[-1]

    def clear(self) -> None:
        self._samples.clear()

    def __len__(self) -> int:
        return len(self._samples)

    def __iter__(self) -> Iterator[ModalitySample]:
        return iter(list(self._samples))

    def __bool__(self) -> bool:
        return bool(self._samples)
