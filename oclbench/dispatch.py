# Copyright 2025 Wahyu Ardiansyah
# Licensed under the Apache License, Version 2.0

"""
Kernel Dispatcher - binds kernel arguments and runs timed dispatches.

Work-sizing policy: the work-group (local) size is a fixed constant and the
global size is rounded up to the next multiple of it. The kernel bounds-checks
the tail work items against the true element count.

Synchronization policies:
- BLOCKING: wait for each dispatch before the next lap tick (default)
- BATCHED: submit every dispatch, then wait for all of them
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Optional, Sequence

import numpy as np

from .config import FLOAT_SIZE, SyncPolicy
from .errors import (
    ArgumentBindingError,
    DispatchError,
    KernelNotFoundError,
    runtime_call,
)
from .handles import OwnedHandle
from .observability.timing import LapTimer, LatencyStats
from .runtime.base import ComputeRuntime
from .runtime.status import RuntimeStatusError, StatusCode

logger = logging.getLogger("oclbench.dispatch")

GIB = float(1 << 30)


def compute_global_size(n: int, local_size: int) -> int:
    """
    Round n up to a multiple of local_size.

    The result G satisfies G >= n, G % local_size == 0 and G < n + local_size.
    """
    if n <= 0 or local_size <= 0:
        raise ValueError(f"n and local_size must be positive, got {n}, {local_size}")
    return (n + local_size - 1) // local_size * local_size


@dataclass
class KernelTiming:
    """Timing of repeated kernel executions and derived throughput."""

    n: int
    global_size: int
    local_size: int
    policy: SyncPolicy
    samples_s: list[float] = field(default_factory=list)
    device_timed: bool = False

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
    def per_dispatch_samples(self) -> bool:
        """
        False when samples are one batch time split evenly (BATCHED without
        profiling); their standard deviation is then meaningless.
        """
        return self.policy is SyncPolicy.BLOCKING or self.device_timed

    @property
    def gflops(self) -> float:
        """Element count over mean duration, in billions of operations/second."""
        mean = self.mean_s
        return self.n / mean / 1e9 if mean > 0 else float("inf")

    @property
    def bandwidth_gbs(self) -> float:
        """Device memory bandwidth: reads of a and b plus write of c, in GiB/s."""
        mean = self.mean_s
        moved = 3.0 * self.n * FLOAT_SIZE
        return moved / mean / GIB if mean > 0 else float("inf")


class KernelDispatcher:
    """
    Create kernels, bind their arguments and submit timed launches.

    Example:
        dispatcher = KernelDispatcher(runtime)
        kernel = scope.adopt(dispatcher.create_kernel(program, "aplusb"))
        dispatcher.set_arguments(kernel, a_buf, b_buf, c_buf, n)
        timing = dispatcher.run_timed(queue, kernel, n, iterations=20)
    """

    def __init__(self, runtime: ComputeRuntime):
        self.runtime = runtime

    def create_kernel(self, program: OwnedHandle, name: str) -> OwnedHandle:
        """
        Raises:
            KernelNotFoundError: If the entry point is absent from the program.
        """
        with runtime_call(KernelNotFoundError, "clCreateKernel", kernel_name=name):
            raw = self.runtime.create_kernel(program.raw, name)
        return OwnedHandle(self.runtime, raw, "kernel")

    def set_argument(self, kernel: OwnedHandle, index: int, value: Any) -> None:
        """
        Bind one positional argument.

        Buffers are passed as owned handles; Python integers are bound as
        unsigned 32-bit scalars. Argument order and types are not checked
        across arguments.

        Raises:
            ArgumentBindingError: If the runtime rejects the argument.
        """
        with runtime_call(ArgumentBindingError, "clSetKernelArg"):
            if isinstance(value, OwnedHandle):
                value = value.raw
            elif isinstance(value, (bool, float)):
                raise RuntimeStatusError(
                    StatusCode.INVALID_ARG_VALUE,
                    "clSetKernelArg",
                    f"index={index} unsupported scalar {type(value).__name__}",
                )
            elif isinstance(value, int):
                if not 0 <= value <= 0xFFFFFFFF:
                    raise RuntimeStatusError(
                        StatusCode.INVALID_ARG_VALUE,
                        "clSetKernelArg",
                        f"index={index} value {value} does not fit in uint32",
                    )
                value = np.uint32(value)
            self.runtime.set_kernel_arg(kernel.raw, index, value)

    def set_arguments(self, kernel: OwnedHandle, *values: Any) -> None:
        """Bind arguments 0..len(values)-1 in declaration order."""
        for index, value in enumerate(values):
            self.set_argument(kernel, index, value)

    def dispatch(
        self,
        queue: OwnedHandle,
        kernel: OwnedHandle,
        global_size: int,
        local_size: Optional[int],
    ) -> Any:
        """
        Submit a 1-D launch.

        Returns:
            Completion handle (event) for the launch.

        Raises:
            DispatchError: If the runtime rejects the submission.
        """
        with runtime_call(DispatchError, "clEnqueueNDRangeKernel"):
            return self.runtime.enqueue_nd_range_kernel(
                queue.raw, kernel.raw, global_size, local_size
            )

    def wait(self, events: Sequence[Any]) -> None:
        with runtime_call(DispatchError, "clWaitForEvents"):
            self.runtime.wait_for_events(events)

    def run_timed(
        self,
        queue: OwnedHandle,
        kernel: OwnedHandle,
        n: int,
        iterations: int,
        local_size: int = 128,
        policy: SyncPolicy = SyncPolicy.BLOCKING,
        profiling: bool = False,
    ) -> KernelTiming:
        """
        Run the kernel ``iterations`` times and collect one sample per
        completed dispatch.

        With profiling enabled, samples are device-side event durations;
        otherwise they are host wall-clock laps.
        """
        global_size = compute_global_size(n, local_size)
        timing = KernelTiming(
            n=n, global_size=global_size, local_size=local_size, policy=policy
        )
        logger.debug(
            f"Dispatching {iterations}x global={global_size} local={local_size} "
            f"policy={policy.value}"
        )

        timer = LapTimer()
        if policy is SyncPolicy.BLOCKING:
            durations = []
            for _ in range(iterations):
                event = self.dispatch(queue, kernel, global_size, local_size)
                self.wait([event])
                duration = self._device_duration(event, profiling)
                durations.append(duration)
                timer.next_lap(duration)
            timing.samples_s = timer.laps
        else:
            events = [
                self.dispatch(queue, kernel, global_size, local_size)
                for _ in range(iterations)
            ]
            self.wait(events)
            batch_s = timer.next_lap()
            durations = [self._device_duration(e, profiling) for e in events]
            if all(d is not None for d in durations):
                timing.samples_s = durations
            else:
                timing.samples_s = [batch_s / iterations] * iterations

        timing.device_timed = all(d is not None for d in durations)
        return timing

    def _device_duration(self, event: Any, profiling: bool) -> Optional[float]:
        if not profiling:
            return None
        return self.runtime.event_duration_s(event)
