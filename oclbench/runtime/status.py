# Copyright 2025 Wahyu Ardiansyah
# Licensed under the Apache License, Version 2.0

"""
OpenCL status codes and the low-level runtime status exception.

Values match the constants in the Khronos ``CL/cl.h`` header so that codes
reported by pyopencl and by the simulated runtime read the same way.
"""

from typing import Optional


class StatusCode:
    """Subset of OpenCL status codes used by the harness."""

    SUCCESS = 0
    DEVICE_NOT_FOUND = -1
    DEVICE_NOT_AVAILABLE = -2
    COMPILER_NOT_AVAILABLE = -3
    MEM_OBJECT_ALLOCATION_FAILURE = -4
    OUT_OF_RESOURCES = -5
    OUT_OF_HOST_MEMORY = -6
    BUILD_PROGRAM_FAILURE = -11
    INVALID_VALUE = -30
    INVALID_DEVICE_TYPE = -31
    INVALID_PLATFORM = -32
    INVALID_DEVICE = -33
    INVALID_CONTEXT = -34
    INVALID_COMMAND_QUEUE = -36
    INVALID_MEM_OBJECT = -38
    INVALID_BUILD_OPTIONS = -43
    INVALID_PROGRAM = -44
    INVALID_PROGRAM_EXECUTABLE = -45
    INVALID_KERNEL_NAME = -46
    INVALID_KERNEL = -48
    INVALID_ARG_INDEX = -49
    INVALID_ARG_VALUE = -50
    INVALID_ARG_SIZE = -51
    INVALID_KERNEL_ARGS = -52
    INVALID_WORK_DIMENSION = -53
    INVALID_WORK_GROUP_SIZE = -54
    INVALID_GLOBAL_WORK_SIZE = -63
    INVALID_BUFFER_SIZE = -61
    PLATFORM_NOT_FOUND_KHR = -1001


_CODE_NAMES = {
    value: f"CL_{name}"
    for name, value in vars(StatusCode).items()
    if not name.startswith("_")
}


def status_name(code: int) -> str:
    """Return the symbolic name of a status code, e.g. ``CL_INVALID_VALUE``."""
    return _CODE_NAMES.get(code, f"CL_UNKNOWN_ERROR({code})")


class RuntimeStatusError(Exception):
    """
    Raised by a ComputeRuntime when an underlying call returns a non-success
    status.

    This never escapes a harness component: components translate it into the
    matching error from ``oclbench.errors``.

    Attributes:
        code: Numeric OpenCL status code
        routine: Name of the runtime routine that failed (e.g. clCreateBuffer)
        detail: Optional driver-provided message
    """

    def __init__(self, code: int, routine: str, detail: Optional[str] = None):
        self.code = code
        self.routine = routine
        self.detail = detail
        message = f"{routine} failed: {status_name(code)}"
        if detail:
            message = f"{message} ({detail})"
        super().__init__(message)
