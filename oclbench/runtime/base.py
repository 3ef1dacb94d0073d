# Copyright 2025 Wahyu Ardiansyah
# Licensed under the Apache License, Version 2.0

"""
Compute Runtime Base Classes

This module defines the abstract interface between the harness components
and an OpenCL-style compute runtime.

Contract:
- Handles (platform, device, context, queue, buffer, program, kernel, event)
  are opaque objects owned by the runtime implementation.
- Every call either succeeds or raises RuntimeStatusError carrying the
  numeric OpenCL status code and the routine name.
- Device enumeration returning "device not found" yields an empty list.
"""

from abc import ABC, abstractmethod
from enum import Enum
from typing import Any, Optional, Sequence

import numpy as np


class DeviceKind(Enum):
    """Kind of compute device."""

    GPU = "gpu"
    CPU = "cpu"


class AccessMode(Enum):
    """Device-side access mode of a buffer."""

    READ_ONLY = "read_only"
    WRITE_ONLY = "write_only"
    READ_WRITE = "read_write"


class ComputeRuntime(ABC):
    """
    Abstract base class for compute runtimes.

    Implementations:
    - PyOpenCLRuntime: real OpenCL drivers through pyopencl
    - SimulatedRuntime: in-process numpy execution for tests and dry runs

    Thread Safety: Not required. The harness drives a runtime from a single
    thread.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Return the unique identifier for this runtime."""
        pass

    # ------------------------------------------------------------------
    # Discovery
    # ------------------------------------------------------------------

    @abstractmethod
    def get_platforms(self) -> list[Any]:
        """Enumerate platforms in driver order. Empty list if none."""
        pass

    @abstractmethod
    def get_devices(self, platform: Any, kind: DeviceKind) -> list[Any]:
        """Enumerate devices of one kind on a platform. Empty list if none."""
        pass

    def get_platform_name(self, platform: Any) -> str:
        return str(platform)

    def get_device_name(self, device: Any) -> str:
        return str(device)

    # ------------------------------------------------------------------
    # Context and queue
    # ------------------------------------------------------------------

    @abstractmethod
    def create_context(self, devices: Sequence[Any]) -> Any:
        pass

    @abstractmethod
    def create_queue(self, context: Any, device: Any, profiling: bool = False) -> Any:
        pass

    @abstractmethod
    def finish(self, queue: Any) -> None:
        """Block until every command submitted to the queue has completed."""
        pass

    # ------------------------------------------------------------------
    # Memory
    # ------------------------------------------------------------------

    @abstractmethod
    def create_buffer(self, context: Any, access: AccessMode, size_bytes: int) -> Any:
        pass

    @abstractmethod
    def enqueue_write_buffer(
        self, queue: Any, buffer: Any, host: np.ndarray, blocking: bool = True
    ) -> Any:
        """Copy host -> device. Returns a completion event."""
        pass

    @abstractmethod
    def enqueue_read_buffer(
        self, queue: Any, buffer: Any, host: np.ndarray, blocking: bool = True
    ) -> Any:
        """Copy device -> host. Returns a completion event."""
        pass

    # ------------------------------------------------------------------
    # Programs and kernels
    # ------------------------------------------------------------------

    @abstractmethod
    def create_program(self, context: Any, source: str) -> Any:
        pass

    @abstractmethod
    def build_program(
        self, program: Any, devices: Sequence[Any], options: Sequence[str] = ()
    ) -> None:
        """Compile a program. Raises RuntimeStatusError on build failure."""
        pass

    @abstractmethod
    def get_build_log(self, program: Any, device: Any) -> str:
        pass

    @abstractmethod
    def create_kernel(self, program: Any, name: str) -> Any:
        pass

    @abstractmethod
    def set_kernel_arg(self, kernel: Any, index: int, value: Any) -> None:
        pass

    @abstractmethod
    def enqueue_nd_range_kernel(
        self,
        queue: Any,
        kernel: Any,
        global_size: int,
        local_size: Optional[int],
    ) -> Any:
        """Submit a 1-D kernel launch. Returns a completion event."""
        pass

    @abstractmethod
    def wait_for_events(self, events: Sequence[Any]) -> None:
        pass

    def event_duration_s(self, event: Any) -> Optional[float]:
        """
        Device-side duration of a completed event in seconds, or None when
        the queue was created without profiling.
        """
        return None

    # ------------------------------------------------------------------
    # Lifetime
    # ------------------------------------------------------------------

    @abstractmethod
    def release(self, handle: Any) -> None:
        """Release a context, queue, buffer, program or kernel handle."""
        pass

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__}({self.name})>"
