# Copyright 2025 Wahyu Ardiansyah
# Licensed under the Apache License, Version 2.0

"""
PyOpenCL Runtime Implementation

Drives real OpenCL drivers through pyopencl. Every pyopencl error is turned
into RuntimeStatusError carrying the driver's numeric status code, so the
harness components never see pyopencl exception types.
"""

import logging
import re
from typing import Any, Optional, Sequence

import numpy as np

from .base import AccessMode, ComputeRuntime, DeviceKind
from .status import RuntimeStatusError, StatusCode

logger = logging.getLogger("oclbench.runtime.opencl")

try:
    import pyopencl as cl

    HAS_PYOPENCL = True
except ImportError:
    cl = None
    HAS_PYOPENCL = False


def is_available() -> bool:
    """Check if pyopencl is importable and at least one platform exists."""
    if not HAS_PYOPENCL:
        return False
    try:
        return len(cl.get_platforms()) > 0
    except cl.Error:
        return False


_BUILD_LOG_HEADER = re.compile(r"^Build on .*:[ \t]*$", re.MULTILINE)
_SECTION_RULE = re.compile(r"^=+[ \t]*$", re.MULTILINE)


def device_build_log(error_text: str) -> str:
    """
    Extract the first device's compiler output from pyopencl build error text.

    pyopencl prefixes the log with the failing routine and the build options,
    then one "Build on <device>:" section per device separated by "=" rules.
    Text without such a header is returned unchanged.
    """
    sections = _BUILD_LOG_HEADER.split(error_text, maxsplit=1)
    if len(sections) < 2:
        return error_text
    return _SECTION_RULE.split(sections[1], maxsplit=1)[0].strip("\n")


def _status_error(err: "cl.Error", routine: str) -> RuntimeStatusError:
    code = getattr(err, "code", None)
    if not isinstance(code, int):
        code = StatusCode.OUT_OF_RESOURCES
    return RuntimeStatusError(
        code=code,
        routine=getattr(err, "routine", None) or routine,
        detail=str(err),
    )


class PyOpenCLRuntime(ComputeRuntime):
    """
    OpenCL runtime backed by pyopencl.

    Detection Strategy:
    - clGetPlatformIDs reporting PLATFORM_NOT_FOUND_KHR means zero platforms
    - clGetDeviceIDs reporting DEVICE_NOT_FOUND means zero devices of a kind
    """

    def __init__(self):
        if not HAS_PYOPENCL:
            raise RuntimeError(
                "pyopencl is required for the OpenCL runtime. Install pyopencl."
            )
        # pyopencl folds the device build log into the build error text and
        # drops the failed program object, so the log is kept here per program.
        self._failed_build_logs: dict[int, str] = {}

    @property
    def name(self) -> str:
        return "opencl"

    # ------------------------------------------------------------------
    # Discovery
    # ------------------------------------------------------------------

    def get_platforms(self) -> list[Any]:
        try:
            return list(cl.get_platforms())
        except cl.Error as e:
            if getattr(e, "code", None) == StatusCode.PLATFORM_NOT_FOUND_KHR:
                return []
            raise _status_error(e, "clGetPlatformIDs") from e

    def get_devices(self, platform: Any, kind: DeviceKind) -> list[Any]:
        device_type = cl.device_type.GPU if kind is DeviceKind.GPU else cl.device_type.CPU
        try:
            return list(platform.get_devices(device_type=device_type))
        except cl.Error as e:
            if getattr(e, "code", None) == StatusCode.DEVICE_NOT_FOUND:
                return []
            raise _status_error(e, "clGetDeviceIDs") from e

    def get_platform_name(self, platform: Any) -> str:
        return platform.name.strip()

    def get_device_name(self, device: Any) -> str:
        return device.name.strip()

    # ------------------------------------------------------------------
    # Context and queue
    # ------------------------------------------------------------------

    def create_context(self, devices: Sequence[Any]) -> Any:
        try:
            return cl.Context(devices=list(devices))
        except cl.Error as e:
            raise _status_error(e, "clCreateContext") from e

    def create_queue(self, context: Any, device: Any, profiling: bool = False) -> Any:
        properties = cl.command_queue_properties.PROFILING_ENABLE if profiling else 0
        try:
            return cl.CommandQueue(context, device, properties=properties)
        except cl.Error as e:
            raise _status_error(e, "clCreateCommandQueue") from e

    def finish(self, queue: Any) -> None:
        try:
            queue.finish()
        except cl.Error as e:
            raise _status_error(e, "clFinish") from e

    # ------------------------------------------------------------------
    # Memory
    # ------------------------------------------------------------------

    def create_buffer(self, context: Any, access: AccessMode, size_bytes: int) -> Any:
        if size_bytes <= 0:
            raise RuntimeStatusError(
                StatusCode.INVALID_BUFFER_SIZE,
                "clCreateBuffer",
                f"size={size_bytes}",
            )
        flags = {
            AccessMode.READ_ONLY: cl.mem_flags.READ_ONLY,
            AccessMode.WRITE_ONLY: cl.mem_flags.WRITE_ONLY,
            AccessMode.READ_WRITE: cl.mem_flags.READ_WRITE,
        }[access]
        try:
            return cl.Buffer(context, flags, size=size_bytes)
        except cl.Error as e:
            raise _status_error(e, "clCreateBuffer") from e

    def enqueue_write_buffer(
        self, queue: Any, buffer: Any, host: np.ndarray, blocking: bool = True
    ) -> Any:
        try:
            return cl.enqueue_copy(queue, buffer, host, is_blocking=blocking)
        except cl.Error as e:
            raise _status_error(e, "clEnqueueWriteBuffer") from e

    def enqueue_read_buffer(
        self, queue: Any, buffer: Any, host: np.ndarray, blocking: bool = True
    ) -> Any:
        try:
            return cl.enqueue_copy(queue, host, buffer, is_blocking=blocking)
        except cl.Error as e:
            raise _status_error(e, "clEnqueueReadBuffer") from e

    # ------------------------------------------------------------------
    # Programs and kernels
    # ------------------------------------------------------------------

    def create_program(self, context: Any, source: str) -> Any:
        try:
            return cl.Program(context, source)
        except cl.Error as e:
            raise _status_error(e, "clCreateProgramWithSource") from e

    def build_program(
        self, program: Any, devices: Sequence[Any], options: Sequence[str] = ()
    ) -> None:
        try:
            program.build(options=list(options), devices=list(devices))
        except cl.Error as e:
            if getattr(e, "code", None) == StatusCode.BUILD_PROGRAM_FAILURE:
                self._failed_build_logs[id(program)] = device_build_log(str(e))
            raise _status_error(e, "clBuildProgram") from e

    def get_build_log(self, program: Any, device: Any) -> str:
        failed = self._failed_build_logs.get(id(program))
        if failed is not None:
            return failed
        try:
            return program.get_build_info(device, cl.program_build_info.LOG) or ""
        except cl.Error as e:
            raise _status_error(e, "clGetProgramBuildInfo") from e

    def create_kernel(self, program: Any, name: str) -> Any:
        try:
            return cl.Kernel(program, name)
        except cl.Error as e:
            raise _status_error(e, "clCreateKernel") from e

    def set_kernel_arg(self, kernel: Any, index: int, value: Any) -> None:
        try:
            kernel.set_arg(index, value)
        except cl.Error as e:
            raise _status_error(e, "clSetKernelArg") from e

    def enqueue_nd_range_kernel(
        self,
        queue: Any,
        kernel: Any,
        global_size: int,
        local_size: Optional[int],
    ) -> Any:
        local = (local_size,) if local_size else None
        try:
            return cl.enqueue_nd_range_kernel(queue, kernel, (global_size,), local)
        except cl.Error as e:
            raise _status_error(e, "clEnqueueNDRangeKernel") from e

    def wait_for_events(self, events: Sequence[Any]) -> None:
        try:
            cl.wait_for_events(list(events))
        except cl.Error as e:
            raise _status_error(e, "clWaitForEvents") from e

    def event_duration_s(self, event: Any) -> Optional[float]:
        try:
            return (event.profile.end - event.profile.start) * 1e-9
        except cl.Error:
            # PROFILING_INFO_NOT_AVAILABLE: queue created without profiling
            return None

    # ------------------------------------------------------------------
    # Lifetime
    # ------------------------------------------------------------------

    def release(self, handle: Any) -> None:
        if isinstance(handle, cl.CommandQueue):
            self.finish(handle)
        elif isinstance(handle, cl.Program):
            self._failed_build_logs.pop(id(handle), None)

        release = getattr(handle, "release", None)
        if callable(release):
            try:
                release()
            except cl.Error as e:
                raise _status_error(e, "clRelease") from e
