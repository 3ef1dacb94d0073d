# Copyright 2025 Wahyu Ardiansyah
# Licensed under the Apache License, Version 2.0

"""
oclbench Observability Module

Components:
- HarnessLogger: Structured stage logging with text or JSON output
- LapTimer / LatencyStats: Lap timing and summary statistics
"""

from .logger import (
    HarnessLogger,
    LogEntry,
    Verbosity,
    get_logger,
    set_verbosity,
)
from .timing import LapTimer, LatencyStats

__all__ = [
    "HarnessLogger",
    "LapTimer",
    "LatencyStats",
    "LogEntry",
    "Verbosity",
    "get_logger",
    "set_verbosity",
]
