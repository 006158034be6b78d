from __future__ import annotations

import logging
import time
from collections import deque
from dataclasses import dataclass, field
from typing import Deque, List, Optional

import psutil

from memory_gallery.core.dto.capabilities import DeviceCapabilities

logger = logging.getLogger(__name__)

DEFAULT_WINDOW = 50
MEMORY_WINDOW = 20
SLOW_LOAD_MS = 1000.0

# Average load time above which the gallery is considered degraded
DEGRADED_DESKTOP_MS = 2000.0
DEGRADED_MOBILE_MS = 3000.0
DEGRADED_SLOW_CONNECTION_MS = 5000.0


@dataclass(frozen=True, slots=True)
class PerformanceSample:
    load_time: float    # ms
    image_size: int     # px^2
    timestamp: float


@dataclass(frozen=True, slots=True)
class MemorySample:
    used: int           # process RSS, bytes
    total: int          # system memory, bytes
    timestamp: float


@dataclass(frozen=True, slots=True)
class PerformanceMetrics:
    image_load_times: List[PerformanceSample]
    average_load_time: float
    total_images_loaded: int
    memory_usage: List[MemorySample] = field(default_factory=list)


class PerformanceMonitor:
    """
    Rolling window of image load durations, for diagnostics only.

    The average covers the retained window; total_images_loaded counts every
    sample ever recorded since the last reset().
    """

    def __init__(self, window: int = DEFAULT_WINDOW, slow_load_ms: float = SLOW_LOAD_MS):
        self.window = max(1, window)
        self.slow_load_ms = slow_load_ms
        self._samples: Deque[PerformanceSample] = deque(maxlen=self.window)
        self._memory: Deque[MemorySample] = deque(maxlen=MEMORY_WINDOW)
        self._average = 0.0
        self._total = 0

    def record_image_load_time(self, start_time: float, end_time: float, image_size: int) -> PerformanceSample:
        load_time = end_time - start_time
        sample = PerformanceSample(load_time=load_time, image_size=image_size, timestamp=time.time())
        self._samples.append(sample)
        self._total += 1
        self._average = sum(s.load_time for s in self._samples) / len(self._samples)

        if load_time > self.slow_load_ms:
            logger.warning(f"Slow image load: {load_time:.0f}ms for {image_size}px")
        return sample

    def record_memory_usage(self) -> MemorySample:
        """Sample process memory; only the last 20 samples are kept."""
        sample = MemorySample(
            used=psutil.Process().memory_info().rss,
            total=psutil.virtual_memory().total,
            timestamp=time.time(),
        )
        self._memory.append(sample)
        return sample

    def get_metrics(self) -> PerformanceMetrics:
        return PerformanceMetrics(
            image_load_times=list(self._samples),
            average_load_time=self._average,
            total_images_loaded=self._total,
            memory_usage=list(self._memory),
        )

    def reset(self) -> None:
        self._samples.clear()
        self._memory.clear()
        self._average = 0.0
        self._total = 0

    def is_performance_degraded(self, capabilities: Optional[DeviceCapabilities] = None) -> bool:
        threshold = DEGRADED_DESKTOP_MS
        if capabilities is not None:
            if capabilities.is_mobile:
                threshold = DEGRADED_MOBILE_MS
            if capabilities.is_slow_connection:
                threshold = DEGRADED_SLOW_CONNECTION_MS
        return self._average > threshold
