# Copyright 2025 Wahyu Ardiansyah
# Licensed under the Apache License, Version 2.0

"""
Simulated Runtime - in-process OpenCL-style runtime backed by numpy.

Used as the host-side fallback when no driver is installed and by the test
suite. It behaves like a driver at the harness boundary:
- Configurable platforms and GPU/CPU devices
- Status codes for invalid sizes, bad arguments and exhausted memory
- A source checker that rejects unbalanced kernel source with a build log
- Kernels executed by Python callables registered by name

Buffers are filled with a 0xCD pattern on allocation so that code relying on
zero-initialized device memory fails visibly.
"""

import re
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Optional, Sequence

import numpy as np

from .base import AccessMode, ComputeRuntime, DeviceKind
from .status import RuntimeStatusError, StatusCode

# (global_size, *args) -> None. Buffer arguments arrive as uint8 views of the
# device storage, scalars as numpy scalars.
KernelFunction = Callable[..., None]

UNINITIALIZED_BYTE = 0xCD

_KERNEL_SIGNATURE = re.compile(r"__kernel\s+void\s+(\w+)\s*\(([^)]*)\)")
_BRACKETS = {"(": ")", "{": "}", "[": "]"}


def _aplusb(global_size: int, a, b, c, n) -> None:
    count = min(global_size, int(n))
    out = c.view(np.float32)
    out[:count] = a.view(np.float32)[:count] + b.view(np.float32)[:count]


BUILTIN_KERNELS: dict[str, KernelFunction] = {
    "aplusb": _aplusb,
}


# ============================================================================
# Handles
# ============================================================================


@dataclass
class SimulatedDevice:
    """A simulated compute device."""

    name: str
    kind: DeviceKind = DeviceKind.GPU
    global_mem_size: int = 1 << 30
    max_work_group_size: int = 1024


@dataclass
class SimulatedPlatform:
    """A simulated vendor platform exposing devices."""

    name: str
    devices: list[SimulatedDevice] = field(default_factory=list)


@dataclass
class SimulatedContext:
    devices: list[SimulatedDevice]
    allocated_bytes: int = 0
    released: bool = False


@dataclass
class SimulatedQueue:
    context: SimulatedContext
    device: SimulatedDevice
    profiling: bool = False
    released: bool = False


@dataclass
class SimulatedBuffer:
    context: SimulatedContext
    access: AccessMode
    storage: np.ndarray
    released: bool = False

    @property
    def size_bytes(self) -> int:
        return self.storage.nbytes


@dataclass
class SimulatedProgram:
    context: SimulatedContext
    source: str
    built: bool = False
    build_logs: dict[str, str] = field(default_factory=dict)
    kernel_params: dict[str, list[bool]] = field(default_factory=dict)
    released: bool = False


@dataclass
class SimulatedKernel:
    name: str
    function: KernelFunction
    # True for pointer (buffer) parameters, False for scalars
    params: list[bool]
    args: dict[int, Any] = field(default_factory=dict)
    released: bool = False


@dataclass
class SimulatedEvent:
    duration_s: Optional[float] = None
    complete: bool = True


# ============================================================================
# Source checking
# ============================================================================


def check_source(source: str) -> list[str]:
    """
    Check bracket balance of kernel source.

    Returns:
        List of diagnostic lines in compiler format, empty when the source
        is well formed.
    """
    stack: list[tuple[str, int, int]] = []
    line, col = 1, 0
    for ch in source:
        if ch == "\n":
            line, col = line + 1, 0
            continue
        col += 1
        if ch in _BRACKETS:
            stack.append((ch, line, col))
        elif ch in _BRACKETS.values():
            if not stack or _BRACKETS[stack[-1][0]] != ch:
                return [f"<source>:{line}:{col}: error: unexpected '{ch}'"]
            stack.pop()

    if stack:
        opener, open_line, open_col = stack[-1]
        return [
            f"<source>:{line}:{col}: error: expected '{_BRACKETS[opener]}'",
            f"<source>:{open_line}:{open_col}: note: to match this '{opener}'",
        ]
    return []


def parse_kernels(source: str) -> dict[str, list[bool]]:
    """Map each ``__kernel`` entry point to its pointer/scalar parameter list."""
    kernels = {}
    for match in _KERNEL_SIGNATURE.finditer(source):
        params = [p.strip() for p in match.group(2).split(",") if p.strip()]
        kernels[match.group(1)] = ["*" in p for p in params]
    return kernels


# ============================================================================
# Runtime
# ============================================================================


class SimulatedRuntime(ComputeRuntime):
    """
    numpy-backed compute runtime.

    Example:
        runtime = SimulatedRuntime.with_devices(cpu=1)
        runtime = SimulatedRuntime(fail_on={"clCreateContext": StatusCode.OUT_OF_HOST_MEMORY})

    Attributes:
        platforms: Platforms in enumeration order
        kernels: Kernel implementations by entry point name
        fail_on: Routine name -> status code to return instead of running it
        release_log: Kinds of handles released, in release order
    """

    def __init__(
        self,
        platforms: Optional[list[SimulatedPlatform]] = None,
        kernels: Optional[dict[str, KernelFunction]] = None,
        fail_on: Optional[dict[str, int]] = None,
    ):
        if platforms is None:
            platforms = [
                SimulatedPlatform(
                    name="oclbench Simulated Platform",
                    devices=[SimulatedDevice(name="Simulated GPU", kind=DeviceKind.GPU)],
                )
            ]
        self.platforms = platforms
        self.kernels = dict(BUILTIN_KERNELS)
        if kernels:
            self.kernels.update(kernels)
        self.fail_on = dict(fail_on or {})
        self.release_log: list[str] = []
        self.calls: list[str] = []

    @classmethod
    def with_devices(cls, gpu: int = 0, cpu: int = 0, **kwargs) -> "SimulatedRuntime":
        """Single platform with the given number of GPU and CPU devices."""
        devices = [
            SimulatedDevice(name=f"Simulated GPU {i}", kind=DeviceKind.GPU)
            for i in range(gpu)
        ]
        devices += [
            SimulatedDevice(name=f"Simulated CPU {i}", kind=DeviceKind.CPU)
            for i in range(cpu)
        ]
        platform = SimulatedPlatform(name="oclbench Simulated Platform", devices=devices)
        return cls(platforms=[platform], **kwargs)

    @property
    def name(self) -> str:
        return "simulated"

    def _enter(self, routine: str) -> None:
        self.calls.append(routine)
        code = self.fail_on.get(routine)
        if code is not None:
            raise RuntimeStatusError(code, routine, "injected failure")

    @staticmethod
    def _require_live(handle: Any, routine: str, code: int) -> None:
        if handle is None or getattr(handle, "released", False):
            raise RuntimeStatusError(code, routine, "handle is released")

    # ------------------------------------------------------------------
    # Discovery
    # ------------------------------------------------------------------

    def get_platforms(self) -> list[Any]:
        self._enter("clGetPlatformIDs")
        return list(self.platforms)

    def get_devices(self, platform: Any, kind: DeviceKind) -> list[Any]:
        self._enter("clGetDeviceIDs")
        if not isinstance(platform, SimulatedPlatform):
            raise RuntimeStatusError(StatusCode.INVALID_PLATFORM, "clGetDeviceIDs")
        return [d for d in platform.devices if d.kind is kind]

    def get_platform_name(self, platform: Any) -> str:
        return platform.name

    def get_device_name(self, device: Any) -> str:
        return device.name

    # ------------------------------------------------------------------
    # Context and queue
    # ------------------------------------------------------------------

    def create_context(self, devices: Sequence[Any]) -> Any:
        self._enter("clCreateContext")
        if not devices:
            raise RuntimeStatusError(StatusCode.INVALID_VALUE, "clCreateContext", "no devices")
        return SimulatedContext(devices=list(devices))

    def create_queue(self, context: Any, device: Any, profiling: bool = False) -> Any:
        self._enter("clCreateCommandQueue")
        self._require_live(context, "clCreateCommandQueue", StatusCode.INVALID_CONTEXT)
        if device not in context.devices:
            raise RuntimeStatusError(StatusCode.INVALID_DEVICE, "clCreateCommandQueue")
        return SimulatedQueue(context=context, device=device, profiling=profiling)

    def finish(self, queue: Any) -> None:
        self._enter("clFinish")
        self._require_live(queue, "clFinish", StatusCode.INVALID_COMMAND_QUEUE)

    # ------------------------------------------------------------------
    # Memory
    # ------------------------------------------------------------------

    def create_buffer(self, context: Any, access: AccessMode, size_bytes: int) -> Any:
        self._enter("clCreateBuffer")
        self._require_live(context, "clCreateBuffer", StatusCode.INVALID_CONTEXT)
        if size_bytes <= 0:
            raise RuntimeStatusError(
                StatusCode.INVALID_BUFFER_SIZE, "clCreateBuffer", f"size={size_bytes}"
            )
        capacity = min(d.global_mem_size for d in context.devices)
        if context.allocated_bytes + size_bytes > capacity:
            raise RuntimeStatusError(
                StatusCode.MEM_OBJECT_ALLOCATION_FAILURE,
                "clCreateBuffer",
                f"requested {size_bytes} bytes, {capacity - context.allocated_bytes} free",
            )
        context.allocated_bytes += size_bytes
        storage = np.full(size_bytes, UNINITIALIZED_BYTE, dtype=np.uint8)
        return SimulatedBuffer(context=context, access=access, storage=storage)

    def _host_bytes(self, host: np.ndarray, buffer: SimulatedBuffer, routine: str) -> np.ndarray:
        if not isinstance(host, np.ndarray) or not host.flags.c_contiguous:
            raise RuntimeStatusError(StatusCode.INVALID_VALUE, routine, "host array must be contiguous")
        if host.nbytes > buffer.size_bytes:
            raise RuntimeStatusError(
                StatusCode.INVALID_VALUE,
                routine,
                f"{host.nbytes} bytes exceeds buffer size {buffer.size_bytes}",
            )
        return host.reshape(-1).view(np.uint8)

    def enqueue_write_buffer(
        self, queue: Any, buffer: Any, host: np.ndarray, blocking: bool = True
    ) -> Any:
        self._enter("clEnqueueWriteBuffer")
        self._require_live(queue, "clEnqueueWriteBuffer", StatusCode.INVALID_COMMAND_QUEUE)
        self._require_live(buffer, "clEnqueueWriteBuffer", StatusCode.INVALID_MEM_OBJECT)
        data = self._host_bytes(host, buffer, "clEnqueueWriteBuffer")
        start = time.perf_counter()
        buffer.storage[: data.size] = data
        return SimulatedEvent(duration_s=self._profiled(queue, start))

    def enqueue_read_buffer(
        self, queue: Any, buffer: Any, host: np.ndarray, blocking: bool = True
    ) -> Any:
        self._enter("clEnqueueReadBuffer")
        self._require_live(queue, "clEnqueueReadBuffer", StatusCode.INVALID_COMMAND_QUEUE)
        self._require_live(buffer, "clEnqueueReadBuffer", StatusCode.INVALID_MEM_OBJECT)
        data = self._host_bytes(host, buffer, "clEnqueueReadBuffer")
        start = time.perf_counter()
        data[:] = buffer.storage[: data.size]
        return SimulatedEvent(duration_s=self._profiled(queue, start))

    @staticmethod
    def _profiled(queue: SimulatedQueue, start: float) -> Optional[float]:
        if not queue.profiling:
            return None
        return time.perf_counter() - start

    # ------------------------------------------------------------------
    # Programs and kernels
    # ------------------------------------------------------------------

    def create_program(self, context: Any, source: str) -> Any:
        self._enter("clCreateProgramWithSource")
        self._require_live(context, "clCreateProgramWithSource", StatusCode.INVALID_CONTEXT)
        if not source:
            raise RuntimeStatusError(StatusCode.INVALID_VALUE, "clCreateProgramWithSource")
        return SimulatedProgram(context=context, source=source)

    def build_program(
        self, program: Any, devices: Sequence[Any], options: Sequence[str] = ()
    ) -> None:
        self._enter("clBuildProgram")
        self._require_live(program, "clBuildProgram", StatusCode.INVALID_PROGRAM)
        for option in options:
            if not option.startswith(("-D", "-I", "-cl-", "-w", "-Werror")):
                raise RuntimeStatusError(
                    StatusCode.INVALID_BUILD_OPTIONS, "clBuildProgram", option
                )

        diagnostics = check_source(program.source)
        kernels = parse_kernels(program.source)
        for name in kernels:
            if name not in self.kernels:
                diagnostics.append(
                    f"<source>: error: no simulated implementation for kernel '{name}'"
                )

        for device in devices:
            program.build_logs[device.name] = "\n".join(diagnostics)

        if diagnostics:
            program.built = False
            raise RuntimeStatusError(StatusCode.BUILD_PROGRAM_FAILURE, "clBuildProgram")

        program.built = True
        program.kernel_params = kernels

    def get_build_log(self, program: Any, device: Any) -> str:
        self._enter("clGetProgramBuildInfo")
        self._require_live(program, "clGetProgramBuildInfo", StatusCode.INVALID_PROGRAM)
        return program.build_logs.get(device.name, "")

    def create_kernel(self, program: Any, name: str) -> Any:
        self._enter("clCreateKernel")
        self._require_live(program, "clCreateKernel", StatusCode.INVALID_PROGRAM)
        if not program.built:
            raise RuntimeStatusError(StatusCode.INVALID_PROGRAM_EXECUTABLE, "clCreateKernel")
        if name not in program.kernel_params:
            raise RuntimeStatusError(StatusCode.INVALID_KERNEL_NAME, "clCreateKernel", name)
        return SimulatedKernel(
            name=name,
            function=self.kernels[name],
            params=program.kernel_params[name],
        )

    def set_kernel_arg(self, kernel: Any, index: int, value: Any) -> None:
        self._enter("clSetKernelArg")
        self._require_live(kernel, "clSetKernelArg", StatusCode.INVALID_KERNEL)
        if not 0 <= index < len(kernel.params):
            raise RuntimeStatusError(StatusCode.INVALID_ARG_INDEX, "clSetKernelArg", f"index={index}")
        if kernel.params[index]:
            if not isinstance(value, SimulatedBuffer) or value.released:
                raise RuntimeStatusError(
                    StatusCode.INVALID_MEM_OBJECT, "clSetKernelArg", f"index={index}"
                )
        elif isinstance(value, SimulatedBuffer) or not isinstance(value, (int, np.generic)):
            raise RuntimeStatusError(StatusCode.INVALID_ARG_SIZE, "clSetKernelArg", f"index={index}")
        kernel.args[index] = value

    def enqueue_nd_range_kernel(
        self,
        queue: Any,
        kernel: Any,
        global_size: int,
        local_size: Optional[int],
    ) -> Any:
        self._enter("clEnqueueNDRangeKernel")
        self._require_live(queue, "clEnqueueNDRangeKernel", StatusCode.INVALID_COMMAND_QUEUE)
        self._require_live(kernel, "clEnqueueNDRangeKernel", StatusCode.INVALID_KERNEL)
        if len(kernel.args) != len(kernel.params):
            raise RuntimeStatusError(StatusCode.INVALID_KERNEL_ARGS, "clEnqueueNDRangeKernel")
        if global_size <= 0:
            raise RuntimeStatusError(StatusCode.INVALID_GLOBAL_WORK_SIZE, "clEnqueueNDRangeKernel")
        if local_size:
            if local_size > queue.device.max_work_group_size or global_size % local_size:
                raise RuntimeStatusError(
                    StatusCode.INVALID_WORK_GROUP_SIZE,
                    "clEnqueueNDRangeKernel",
                    f"global={global_size} local={local_size}",
                )

        args = [
            arg.storage if isinstance(arg, SimulatedBuffer) else arg
            for _, arg in sorted(kernel.args.items())
        ]
        start = time.perf_counter()
        kernel.function(global_size, *args)
        return SimulatedEvent(duration_s=self._profiled(queue, start))

    def wait_for_events(self, events: Sequence[Any]) -> None:
        self._enter("clWaitForEvents")
        if not events:
            raise RuntimeStatusError(StatusCode.INVALID_VALUE, "clWaitForEvents")

    def event_duration_s(self, event: Any) -> Optional[float]:
        return event.duration_s

    # ------------------------------------------------------------------
    # Lifetime
    # ------------------------------------------------------------------

    def release(self, handle: Any) -> None:
        kind = {
            SimulatedContext: "context",
            SimulatedQueue: "queue",
            SimulatedBuffer: "buffer",
            SimulatedProgram: "program",
            SimulatedKernel: "kernel",
        }.get(type(handle))
        if kind is None:
            raise RuntimeStatusError(StatusCode.INVALID_VALUE, "clRelease", repr(handle))
        self._enter(f"clRelease{kind.capitalize()}")
        if handle.released:
            raise RuntimeStatusError(StatusCode.INVALID_VALUE, "clRelease", f"{kind} released twice")
        if isinstance(handle, SimulatedBuffer):
            handle.context.allocated_bytes -= handle.size_bytes
        handle.released = True
        self.release_log.append(kind)
