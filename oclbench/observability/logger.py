# Copyright 2025 Wahyu Ardiansyah
# Licensed under the Apache License, Version 2.0

"""
Structured Logger for oclbench

Emits one line per pipeline event, as text or JSON, to stderr so that the
benchmark report on stdout stays clean.

Example:
    from oclbench.observability import get_logger, Verbosity

    logger = get_logger()
    logger.set_verbosity(Verbosity.DEBUG)
    with logger.stage("build", component="program"):
        builder.build(...)
"""

import json
import logging
import os
import sys
import time
from contextlib import contextmanager
from dataclasses import asdict, dataclass, field
from datetime import datetime
from enum import IntEnum
from typing import Callable, Iterator, Optional, TextIO


class Verbosity(IntEnum):
    """
    Logging verbosity levels.

    Uses IntEnum for numeric comparison (e.g., if verbosity >= INFO).
    """

    SILENT = 0
    ERROR = 1
    WARNING = 2
    INFO = 3
    DEBUG = 4


_STDLIB_LEVELS = {
    Verbosity.SILENT: logging.CRITICAL + 10,
    Verbosity.ERROR: logging.ERROR,
    Verbosity.WARNING: logging.WARNING,
    Verbosity.INFO: logging.INFO,
    Verbosity.DEBUG: logging.DEBUG,
}


@dataclass
class LogEntry:
    """
    Structured log entry.

    Attributes:
        level: Log level (ERROR, WARNING, INFO, DEBUG)
        message: Log message
        timestamp: ISO format timestamp
        component: Source component (resolver, buffers, program, dispatch)
        stage: Optional pipeline stage name
        duration_ms: Optional stage duration in milliseconds
        extra: Additional context fields
    """

    level: str
    message: str
    timestamp: str
    component: str = "oclbench"
    stage: Optional[str] = None
    duration_ms: Optional[float] = None
    extra: dict = field(default_factory=dict)

    def to_json(self) -> str:
        data = {k: v for k, v in asdict(self).items() if v is not None}
        if not data.get("extra"):
            data.pop("extra", None)
        return json.dumps(data, default=str)

    def to_text(self) -> str:
        parts = [f"[{self.level}]", f"[{self.component}]", self.message]
        if self.duration_ms is not None:
            parts.append(f"({self.duration_ms:.2f}ms)")
        for key, value in self.extra.items():
            parts.append(f"{key}={value}")
        return " ".join(parts)


class HarnessLogger:
    """
    Structured logger for the benchmark pipeline.

    Singleton; verbosity defaults to WARNING and can be set with the
    OCLBENCH_VERBOSITY environment variable (0-4).
    """

    _instance: Optional["HarnessLogger"] = None

    def __init__(self):
        self._verbosity = Verbosity.WARNING
        self._output: TextIO = sys.stderr
        self._json_format = False
        self._handlers: list[Callable[[LogEntry], None]] = []

        env_verbosity = os.environ.get("OCLBENCH_VERBOSITY")
        if env_verbosity is not None:
            try:
                self._verbosity = Verbosity(int(env_verbosity))
            except ValueError:
                pass

    @classmethod
    def get(cls) -> "HarnessLogger":
        """Get the singleton logger instance."""
        if cls._instance is None:
            cls._instance = HarnessLogger()
        return cls._instance

    @classmethod
    def reset(cls) -> None:
        """Reset the singleton instance (for testing)."""
        cls._instance = None

    def set_verbosity(self, level: int) -> None:
        if isinstance(level, Verbosity):
            self._verbosity = level
        else:
            self._verbosity = Verbosity(max(0, min(4, level)))
        logging.getLogger("oclbench").setLevel(_STDLIB_LEVELS[self._verbosity])

    def get_verbosity(self) -> Verbosity:
        return self._verbosity

    def set_json_format(self, enabled: bool) -> None:
        self._json_format = enabled

    def set_output(self, output: TextIO) -> None:
        self._output = output

    def add_handler(self, handler: Callable[[LogEntry], None]) -> None:
        """Add a callback receiving every emitted LogEntry."""
        self._handlers.append(handler)

    def _log(self, level: Verbosity, message: str, context: dict) -> None:
        if self._verbosity < level:
            return
        entry = LogEntry(
            level=level.name,
            message=message,
            timestamp=datetime.now().isoformat(),
            component=context.pop("component", "oclbench"),
            stage=context.pop("stage", None),
            duration_ms=context.pop("duration_ms", None),
            extra=context,
        )
        line = entry.to_json() if self._json_format else entry.to_text()
        self._output.write(line + "\n")
        self._output.flush()

        for handler in self._handlers:
            handler(entry)

    def debug(self, message: str, **context) -> None:
        self._log(Verbosity.DEBUG, message, context)

    def info(self, message: str, **context) -> None:
        self._log(Verbosity.INFO, message, context)

    def warning(self, message: str, **context) -> None:
        self._log(Verbosity.WARNING, message, context)

    def error(self, message: str, **context) -> None:
        self._log(Verbosity.ERROR, message, context)

    @contextmanager
    def stage(self, name: str, component: str = "pipeline", **context) -> Iterator[None]:
        """
        Time a pipeline stage.

        Logs "<name> started" at DEBUG and "<name> finished" with duration at
        INFO. On error, logs "<name> failed" at ERROR and re-raises.
        """
        self.debug(f"{name} started", component=component, stage=name, **context)
        start = time.perf_counter()
        try:
            yield
        except Exception as e:
            self.error(
                f"{name} failed: {type(e).__name__}",
                component=component,
                stage=name,
                duration_ms=(time.perf_counter() - start) * 1000.0,
            )
            raise
        self.info(
            f"{name} finished",
            component=component,
            stage=name,
            duration_ms=(time.perf_counter() - start) * 1000.0,
            **context,
        )


def get_logger() -> HarnessLogger:
    """Get the global oclbench logger."""
    return HarnessLogger.get()


def set_verbosity(level: int) -> None:
    """
    Set global verbosity level.

    Args:
        level: Verbosity level (0=SILENT, 1=ERROR, 2=WARNING, 3=INFO, 4=DEBUG)
    """
    HarnessLogger.get().set_verbosity(level)
