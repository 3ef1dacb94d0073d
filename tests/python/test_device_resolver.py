# Copyright 2025 Wahyu Ardiansyah
# Licensed under the Apache License, Version 2.0

"""
Tests for the Device Resolver

Validates the GPU-preferred, first-fit selection policy.
"""

import pytest

from oclbench.device import DeviceResolver
from oclbench.errors import NoDeviceError, NoPlatformError, RuntimeCallError
from oclbench.runtime import (
    DeviceKind,
    SimulatedDevice,
    SimulatedPlatform,
    SimulatedRuntime,
    StatusCode,
)


class TestResolve:
    """Selection policy."""

    def test_no_platforms(self):
        runtime = SimulatedRuntime(platforms=[])
        with pytest.raises(NoPlatformError):
            DeviceResolver(runtime).resolve()
        # Devices are never enumerated
        assert "clGetDeviceIDs" not in runtime.calls

    def test_no_devices(self):
        runtime = SimulatedRuntime.with_devices(gpu=0, cpu=0)
        with pytest.raises(NoDeviceError) as exc_info:
            DeviceResolver(runtime).resolve()
        assert "GPU and CPU devices not found" in str(exc_info.value)

    def test_cpu_fallback(self):
        runtime = SimulatedRuntime.with_devices(gpu=0, cpu=2)
        resolved = DeviceResolver(runtime).resolve()
        assert resolved.kind is DeviceKind.CPU
        assert resolved.name == "Simulated CPU 0"

    def test_gpu_preferred(self):
        runtime = SimulatedRuntime.with_devices(gpu=2, cpu=1)
        resolved = DeviceResolver(runtime).resolve()
        assert resolved.kind is DeviceKind.GPU
        assert resolved.name == "Simulated GPU 0"

    def test_first_platform_only(self):
        runtime = SimulatedRuntime(
            platforms=[
                SimulatedPlatform("first", [SimulatedDevice("cpu", DeviceKind.CPU)]),
                SimulatedPlatform("second", [SimulatedDevice("gpu", DeviceKind.GPU)]),
            ]
        )
        resolved = DeviceResolver(runtime).resolve()
        assert resolved.platform_name == "first"
        assert resolved.kind is DeviceKind.CPU
        assert resolved.platform_count == 2

    def test_first_platform_without_devices_is_not_skipped(self):
        runtime = SimulatedRuntime(
            platforms=[
                SimulatedPlatform("empty", []),
                SimulatedPlatform("second", [SimulatedDevice("gpu", DeviceKind.GPU)]),
            ]
        )
        with pytest.raises(NoDeviceError):
            DeviceResolver(runtime).resolve()

    def test_enumeration_failure_is_fatal(self):
        runtime = SimulatedRuntime(fail_on={"clGetDeviceIDs": StatusCode.INVALID_PLATFORM})
        with pytest.raises(RuntimeCallError) as exc_info:
            DeviceResolver(runtime).resolve()
        assert exc_info.value.code == StatusCode.INVALID_PLATFORM


class TestReportLines:
    """Console lines emitted while resolving."""

    def test_platform_count_reported(self):
        lines = []
        DeviceResolver(SimulatedRuntime(), report=lines.append).resolve()
        assert lines == ["Number of OpenCL platforms: 1"]

    def test_zero_platforms_reported_before_failure(self):
        lines = []
        with pytest.raises(NoPlatformError):
            DeviceResolver(SimulatedRuntime(platforms=[]), report=lines.append).resolve()
        assert lines == ["Number of OpenCL platforms: 0"]

    def test_gpu_fallback_reported(self):
        lines = []
        runtime = SimulatedRuntime.with_devices(cpu=1)
        DeviceResolver(runtime, report=lines.append).resolve()
        assert "GPU devices not found" in lines


class TestDescribe:
    def test_lists_all_platforms_and_kinds(self):
        runtime = SimulatedRuntime(
            platforms=[
                SimulatedPlatform(
                    "p0",
                    [
                        SimulatedDevice("c0", DeviceKind.CPU),
                        SimulatedDevice("g0", DeviceKind.GPU),
                    ],
                ),
                SimulatedPlatform("p1", [SimulatedDevice("g1", DeviceKind.GPU)]),
            ]
        )
        rows = DeviceResolver(runtime).describe()
        assert rows == [
            ("p0", "gpu", "g0"),
            ("p0", "cpu", "c0"),
            ("p1", "gpu", "g1"),
        ]
