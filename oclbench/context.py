# Copyright 2025 Wahyu Ardiansyah
# Licensed under the Apache License, Version 2.0

"""
Execution Context - owns the device context and the command queue.

Both are fallible allocations; any non-success status becomes a
DeviceAllocationError carrying the status code and call site. No retry.
"""

import logging
from typing import Any

from .errors import DeviceAllocationError, runtime_call
from .handles import OwnedHandle
from .runtime.base import ComputeRuntime

logger = logging.getLogger("oclbench.context")


class ExecutionContext:
    """
    Creates the context and queue for a resolved device.

    Example:
        executor = ExecutionContext(runtime)
        context = scope.adopt(executor.create_context(resolved.device))
        queue = scope.adopt(executor.create_queue(context, resolved.device))
    """

    def __init__(self, runtime: ComputeRuntime):
        self.runtime = runtime

    def create_context(self, device: Any) -> OwnedHandle:
        with runtime_call(DeviceAllocationError, "clCreateContext"):
            raw = self.runtime.create_context([device])
        logger.debug("Context created")
        return OwnedHandle(self.runtime, raw, "context")

    def create_queue(
        self, context: OwnedHandle, device: Any, profiling: bool = False
    ) -> OwnedHandle:
        with runtime_call(DeviceAllocationError, "clCreateCommandQueue"):
            raw = self.runtime.create_queue(context.raw, device, profiling=profiling)
        logger.debug(f"Command queue created (profiling={profiling})")
        return OwnedHandle(self.runtime, raw, "queue")

    def finish(self, queue: OwnedHandle) -> None:
        """Drain the queue."""
        with runtime_call(DeviceAllocationError, "clFinish"):
            self.runtime.finish(queue.raw)
