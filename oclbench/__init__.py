# Copyright 2025 Wahyu Ardiansyah
# Licensed under the Apache License, Version 2.0

"""
oclbench: OpenCL a+b Benchmark Harness

Discovers a compute device (GPU first, CPU fallback), uploads two float
vectors, builds and runs the ``aplusb`` kernel repeatedly, reports timing and
bandwidth, and verifies the result exactly against the host.

Example:
    from oclbench import HarnessConfig, run_benchmark
    from oclbench.runtime import SimulatedRuntime

    report = run_benchmark(HarnessConfig(n=1024), runtime=SimulatedRuntime())
    print(report.kernel.gflops)
"""

__version__ = "0.1.0"
__author__ = "Wahyu Ardiansyah"

from .config import HarnessConfig, SyncPolicy
from .errors import (
    HarnessError,
    DeviceNotFoundError,
    NoPlatformError,
    NoDeviceError,
    RuntimeCallError,
    DeviceAllocationError,
    BufferAllocationError,
    TransferError,
    EmptySourceError,
    CompilationError,
    KernelNotFoundError,
    ArgumentBindingError,
    DispatchError,
    ResourceReleaseError,
    ResultMismatchError,
    ConfigurationError,
)
from .observability import Verbosity, set_verbosity
from .pipeline import BenchmarkReport, generate_inputs, run_benchmark

__all__ = [
    "__version__",
    "HarnessConfig",
    "SyncPolicy",
    "BenchmarkReport",
    "generate_inputs",
    "run_benchmark",
    "Verbosity",
    "set_verbosity",
    "HarnessError",
    "DeviceNotFoundError",
    "NoPlatformError",
    "NoDeviceError",
    "RuntimeCallError",
    "DeviceAllocationError",
    "BufferAllocationError",
    "TransferError",
    "EmptySourceError",
    "CompilationError",
    "KernelNotFoundError",
    "ArgumentBindingError",
    "DispatchError",
    "ResourceReleaseError",
    "ResultMismatchError",
    "ConfigurationError",
]
