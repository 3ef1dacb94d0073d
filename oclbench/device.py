# Copyright 2025 Wahyu Ardiansyah
# Licensed under the Apache License, Version 2.0

"""
Device Resolver - selects one compute device with GPU-preferred fallback.

Selection is first-fit, not best-fit:
1. Take the first platform in enumeration order (no scoring)
2. Take its first GPU device
3. Otherwise take its first CPU device
"""

import logging
from dataclasses import dataclass
from typing import Any, Callable, Optional

from .errors import NoDeviceError, NoPlatformError, RuntimeCallError, runtime_call
from .runtime.base import ComputeRuntime, DeviceKind

logger = logging.getLogger("oclbench.device")


@dataclass(frozen=True)
class ResolvedDevice:
    """The device selected for the run. Not owned: never released."""

    platform: Any
    device: Any
    kind: DeviceKind
    name: str
    platform_name: str
    platform_count: int


class DeviceResolver:
    """
    Resolve the compute device for a run.

    Example:
        resolved = DeviceResolver(runtime).resolve()
        print(resolved.name, resolved.kind)
    """

    def __init__(
        self,
        runtime: ComputeRuntime,
        report: Optional[Callable[[str], None]] = None,
    ):
        """
        Args:
            runtime: Compute runtime to enumerate
            report: Receives console report lines (platform count, fallback)
        """
        self.runtime = runtime
        self._report = report or (lambda line: None)

    def list_platforms(self) -> list[Any]:
        with runtime_call(RuntimeCallError, "clGetPlatformIDs"):
            return self.runtime.get_platforms()

    def list_devices(self, platform: Any, kind: DeviceKind) -> list[Any]:
        with runtime_call(RuntimeCallError, "clGetDeviceIDs"):
            return self.runtime.get_devices(platform, kind)

    def resolve(self) -> ResolvedDevice:
        """
        Select a device.

        Raises:
            NoPlatformError: If zero platforms are discoverable.
            NoDeviceError: If the first platform has neither GPU nor CPU devices.
        """
        platforms = self.list_platforms()
        self._report(f"Number of OpenCL platforms: {len(platforms)}")
        if not platforms:
            raise NoPlatformError()

        platform = platforms[0]
        platform_name = self.runtime.get_platform_name(platform)

        kind = DeviceKind.GPU
        devices = self.list_devices(platform, DeviceKind.GPU)
        if not devices:
            self._report("GPU devices not found")
            logger.info(f"No GPU on '{platform_name}', falling back to CPU")
            kind = DeviceKind.CPU
            devices = self.list_devices(platform, DeviceKind.CPU)

        if not devices:
            raise NoDeviceError(platform_name)

        device = devices[0]
        return ResolvedDevice(
            platform=platform,
            device=device,
            kind=kind,
            name=self.runtime.get_device_name(device),
            platform_name=platform_name,
            platform_count=len(platforms),
        )

    def describe(self) -> list[tuple[str, str, str]]:
        """
        List every GPU and CPU device on every platform.

        Returns:
            (platform name, device kind, device name) tuples in enumeration order.
        """
        rows = []
        for platform in self.list_platforms():
            platform_name = self.runtime.get_platform_name(platform)
            for kind in (DeviceKind.GPU, DeviceKind.CPU):
                for device in self.list_devices(platform, kind):
                    rows.append(
                        (platform_name, kind.value, self.runtime.get_device_name(device))
                    )
        return rows
