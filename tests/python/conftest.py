# Copyright 2025 Wahyu Ardiansyah
# Licensed under the Apache License, Version 2.0

"""
Pytest configuration for oclbench tests.
"""

import sys
from pathlib import Path

import numpy as np
import pytest

# Add the project root to sys.path so we can import oclbench
project_root = Path(__file__).parent.parent.parent
sys.path.insert(0, str(project_root))

# Skip test modules that require optional dependencies not installed
collect_ignore = []

try:
    import hypothesis  # noqa: F401
except ImportError:
    collect_ignore.append("test_property_based.py")


COPY_SOURCE = """
__kernel void copy(__global const float* a,
                   __global float* c,
                   unsigned int n)
{
    const unsigned int i = get_global_id(0);
    if (i >= n)
        return;
    c[i] = a[i];
}
"""


def _copy(global_size, a, c, n):
    count = min(global_size, int(n))
    c.view(np.float32)[:count] = a.view(np.float32)[:count]


@pytest.fixture(autouse=True)
def reset_logger():
    """Give every test a fresh structured logger."""
    from oclbench.observability import HarnessLogger

    HarnessLogger.reset()
    yield
    HarnessLogger.reset()


@pytest.fixture
def runtime():
    """Simulated runtime with one GPU and one CPU device."""
    from oclbench.runtime import SimulatedRuntime

    return SimulatedRuntime.with_devices(gpu=1, cpu=1, kernels={"copy": _copy})


@pytest.fixture
def resolved(runtime):
    from oclbench.device import DeviceResolver

    return DeviceResolver(runtime).resolve()


@pytest.fixture
def scope():
    from oclbench.handles import ResourceScope

    with ResourceScope() as s:
        yield s


@pytest.fixture
def context(runtime, resolved, scope):
    from oclbench.context import ExecutionContext

    return scope.adopt(ExecutionContext(runtime).create_context(resolved.device))


@pytest.fixture
def queue(runtime, resolved, context, scope):
    from oclbench.context import ExecutionContext

    return scope.adopt(ExecutionContext(runtime).create_queue(context, resolved.device))


@pytest.fixture
def copy_source():
    return COPY_SOURCE


@pytest.fixture
def aplusb_source():
    from oclbench.config import DEFAULT_KERNEL_PATH

    return DEFAULT_KERNEL_PATH.read_text()
