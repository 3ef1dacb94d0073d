# Copyright 2025 Wahyu Ardiansyah
# Licensed under the Apache License, Version 2.0

"""
Buffer Manager - device buffer allocation and host<->device transfers.

All transfers in the benchmark flow are blocking: the calling thread waits
until the copy has completed, so transfers never overlap with compute.
Device buffers are not assumed to be zero-initialized.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Optional

import numpy as np

from .errors import BufferAllocationError, TransferError, runtime_call
from .handles import OwnedHandle
from .observability.timing import LapTimer, LatencyStats
from .runtime.base import AccessMode, ComputeRuntime
from .runtime.status import RuntimeStatusError, StatusCode

logger = logging.getLogger("oclbench.buffers")


class DeviceBuffer(OwnedHandle):
    """Owned device buffer with a fixed byte size and access mode."""

    def __init__(
        self, runtime: ComputeRuntime, raw: Any, size_bytes: int, access: AccessMode
    ):
        super().__init__(runtime, raw, "buffer")
        self.size_bytes = size_bytes
        self.access = access

    def take(self) -> "DeviceBuffer":
        moved = DeviceBuffer(self._runtime, self.raw, self.size_bytes, self.access)
        self._raw = None
        return moved

    def __repr__(self) -> str:
        state = "empty" if self.is_empty else "owned"
        return f"<DeviceBuffer({self.access.value}, {self.size_bytes} bytes, {state})>"


class BufferManager:
    """
    Allocates buffers and moves data between host arrays and the device.

    Example:
        manager = BufferManager(runtime)
        a_buf = scope.adopt(manager.allocate(context, a.nbytes, AccessMode.READ_ONLY))
        manager.write_buffer(queue, a_buf, a)
    """

    def __init__(self, runtime: ComputeRuntime):
        self.runtime = runtime

    def allocate(
        self, context: OwnedHandle, size_bytes: int, access: AccessMode
    ) -> DeviceBuffer:
        """
        Allocate a device buffer.

        Raises:
            BufferAllocationError: On invalid size or insufficient device memory.
        """
        with runtime_call(BufferAllocationError, "clCreateBuffer"):
            if size_bytes <= 0:
                raise RuntimeStatusError(
                    StatusCode.INVALID_BUFFER_SIZE, "clCreateBuffer", f"size={size_bytes}"
                )
            raw = self.runtime.create_buffer(context.raw, access, size_bytes)
        logger.debug(f"Allocated {size_bytes} bytes ({access.value})")
        return DeviceBuffer(self.runtime, raw, size_bytes, access)

    def write_buffer(
        self,
        queue: OwnedHandle,
        buffer: DeviceBuffer,
        host_data: np.ndarray,
        blocking: bool = True,
    ) -> Any:
        """
        Copy a host array into a device buffer.

        Returns:
            Completion event of the transfer.

        Raises:
            TransferError: On size mismatch or queue/device failure.
        """
        with runtime_call(TransferError, "clEnqueueWriteBuffer"):
            self._check_host(host_data, buffer, "clEnqueueWriteBuffer")
            return self.runtime.enqueue_write_buffer(
                queue.raw, buffer.raw, host_data, blocking=blocking
            )

    def read_buffer(
        self,
        queue: OwnedHandle,
        buffer: DeviceBuffer,
        host_data: np.ndarray,
        blocking: bool = True,
    ) -> Any:
        """
        Copy a device buffer into a host array.

        Returns:
            Completion event of the transfer.

        Raises:
            TransferError: On size mismatch or queue/device failure.
        """
        with runtime_call(TransferError, "clEnqueueReadBuffer"):
            self._check_host(host_data, buffer, "clEnqueueReadBuffer")
            return self.runtime.enqueue_read_buffer(
                queue.raw, buffer.raw, host_data, blocking=blocking
            )

    @staticmethod
    def _check_host(host_data: np.ndarray, buffer: DeviceBuffer, routine: str) -> None:
        problem: Optional[str] = None
        if not isinstance(host_data, np.ndarray):
            problem = f"expected numpy array, got {type(host_data).__name__}"
        elif not host_data.flags.c_contiguous:
            problem = "host array must be C-contiguous"
        elif host_data.nbytes != buffer.size_bytes:
            problem = f"host array is {host_data.nbytes} bytes, buffer is {buffer.size_bytes}"
        if problem:
            raise RuntimeStatusError(StatusCode.INVALID_VALUE, routine, problem)

    def benchmark_read(
        self,
        queue: OwnedHandle,
        buffer: DeviceBuffer,
        host_data: np.ndarray,
        iterations: int,
    ) -> "TransferTiming":
        """Time ``iterations`` blocking device->host reads of a buffer."""
        timer = LapTimer()
        for _ in range(iterations):
            self.read_buffer(queue, buffer, host_data, blocking=True)
            timer.next_lap()
        return TransferTiming(size_bytes=buffer.size_bytes, samples_s=timer.laps)


@dataclass
class TransferTiming:
    """Timing of repeated buffer transfers."""

    size_bytes: int
    samples_s: list[float] = field(default_factory=list)

    @property
    def stats(self) -> LatencyStats:
        return LatencyStats.compute(self.samples_s)

    @property
    def mean_s(self) -> float:
        return self.stats.mean_s

    @property
    def std_s(self) -> float:
        return self.stats.std_s

    @property
    def bandwidth_gbs(self) -> float:
        """Transfer bandwidth in GiB/s."""
        mean = self.mean_s
        return self.size_bytes / mean / float(1 << 30) if mean > 0 else float("inf")
