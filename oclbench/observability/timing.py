# Copyright 2025 Wahyu Ardiansyah
# Licensed under the Apache License, Version 2.0

"""
Lap timing utilities.

LapTimer is a stopwatch: each ``next_lap()`` records the time elapsed since
the previous lap (or since start). Statistics follow numpy conventions
(population standard deviation).
"""

import time
from dataclasses import dataclass
from typing import Optional

import numpy as np


@dataclass
class LatencyStats:
    """Latency statistics from timing samples, in seconds."""

    mean_s: float = 0.0
    std_s: float = 0.0
    min_s: float = 0.0
    max_s: float = 0.0
    p50_s: float = 0.0
    p99_s: float = 0.0
    num_samples: int = 0

    @staticmethod
    def compute(samples_s: list[float]) -> "LatencyStats":
        """Compute statistics from timing samples."""
        if not samples_s:
            return LatencyStats()

        arr = np.asarray(samples_s, dtype=np.float64)
        return LatencyStats(
            mean_s=float(np.mean(arr)),
            std_s=float(np.std(arr)),
            min_s=float(np.min(arr)),
            max_s=float(np.max(arr)),
            p50_s=float(np.percentile(arr, 50)),
            p99_s=float(np.percentile(arr, 99)),
            num_samples=len(samples_s),
        )

    def summary(self) -> str:
        return (
            f"{self.mean_s:.6f}+-{self.std_s:.6f} s "
            f"(min={self.min_s:.6f}, max={self.max_s:.6f}, "
            f"p50={self.p50_s:.6f}, p99={self.p99_s:.6f}, n={self.num_samples})"
        )


class LapTimer:
    """
    High-resolution lap stopwatch.

    Example:
        timer = LapTimer()
        for _ in range(20):
            run_once()
            timer.next_lap()
        print(timer.lap_avg(), timer.lap_std())
    """

    def __init__(self):
        self._laps: list[float] = []
        self._last = time.perf_counter()

    def restart(self) -> None:
        """Forget recorded laps and restart the clock."""
        self._laps.clear()
        self._last = time.perf_counter()

    def next_lap(self, duration_s: Optional[float] = None) -> float:
        """
        Record a lap.

        Args:
            duration_s: Externally measured duration (e.g. from device
                profiling) to record instead of the wall-clock lap.

        Returns:
            The recorded lap duration in seconds.
        """
        now = time.perf_counter()
        lap = now - self._last if duration_s is None else duration_s
        self._last = now
        self._laps.append(lap)
        return lap

    @property
    def laps(self) -> list[float]:
        return list(self._laps)

    def lap_avg(self) -> float:
        return float(np.mean(self._laps)) if self._laps else 0.0

    def lap_std(self) -> float:
        return float(np.std(self._laps)) if self._laps else 0.0

    def stats(self) -> LatencyStats:
        return LatencyStats.compute(self._laps)
