# Copyright 2025 Wahyu Ardiansyah
# Licensed under the Apache License, Version 2.0

"""
oclbench Compute Runtime Package

Abstraction layer between the harness components and the compute driver:
- PyOpenCLRuntime: real OpenCL platforms through pyopencl
- SimulatedRuntime: in-process numpy runtime (tests, dry runs)

Usage:
    from oclbench.runtime import get_runtime

    runtime = get_runtime("opencl")
    platforms = runtime.get_platforms()
"""

from .base import AccessMode, ComputeRuntime, DeviceKind
from .opencl import PyOpenCLRuntime
from .opencl import is_available as is_opencl_available
from .simulated import (
    SimulatedDevice,
    SimulatedPlatform,
    SimulatedRuntime,
)
from .status import RuntimeStatusError, StatusCode, status_name

RUNTIMES = {
    "opencl": PyOpenCLRuntime,
    "simulated": SimulatedRuntime,
}


def get_runtime(name: str = "opencl") -> ComputeRuntime:
    """
    Instantiate a runtime by name.

    Args:
        name: "opencl" or "simulated"

    Raises:
        KeyError: If the name is unknown.
    """
    return RUNTIMES[name]()


__all__ = [
    "AccessMode",
    "ComputeRuntime",
    "DeviceKind",
    "PyOpenCLRuntime",
    "RuntimeStatusError",
    "SimulatedDevice",
    "SimulatedPlatform",
    "SimulatedRuntime",
    "StatusCode",
    "get_runtime",
    "is_opencl_available",
    "status_name",
]
