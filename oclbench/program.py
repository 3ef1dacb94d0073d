# Copyright 2025 Wahyu Ardiansyah
# Licensed under the Apache License, Version 2.0

"""
Program Builder - compiles kernel source for the target device.

State machine:
    SOURCE_LOADED -> build -> BUILD_SUCCEEDED
                           -> BUILD_FAILED (log captured, CompilationError raised)

Empty source is rejected with EmptySourceError before the compiler is
invoked; it points at a misconfigured resource location, not a kernel bug.
"""

import logging
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Optional, Sequence, Union

from .errors import (
    CompilationError,
    ConfigurationError,
    EmptySourceError,
    RuntimeCallError,
    format_call_site,
    runtime_call,
)
from .handles import OwnedHandle
from .runtime.base import ComputeRuntime
from .runtime.status import RuntimeStatusError, StatusCode

logger = logging.getLogger("oclbench.program")


class BuildState(Enum):
    SOURCE_LOADED = "source_loaded"
    BUILD_SUCCEEDED = "build_succeeded"
    BUILD_FAILED = "build_failed"


def load_kernel_source(path: Union[str, Path]) -> str:
    """
    Read a kernel source resource.

    Raises:
        EmptySourceError: If the file is missing or empty.
        ConfigurationError: If the path exists but cannot be read as UTF-8
            text (a directory, no permission, binary content).
    """
    path = Path(path)
    try:
        source = path.read_text(encoding="utf-8")
    except FileNotFoundError:
        source = ""
    except (OSError, UnicodeDecodeError) as e:
        raise ConfigurationError(
            f"cannot read kernel source: {e}", "kernel_path", str(path)
        ) from e
    if not source:
        raise EmptySourceError(str(path))
    return source


class ProgramBuilder:
    """
    Build kernel programs and surface device build logs.

    Example:
        builder = ProgramBuilder(runtime, report=print)
        program = scope.adopt(builder.build(context, source, [device]))
    """

    def __init__(
        self,
        runtime: ComputeRuntime,
        report: Optional[Callable[[str], None]] = None,
    ):
        self.runtime = runtime
        self._report = report or (lambda line: None)
        self.state: Optional[BuildState] = None
        self.build_log = ""

    def build(
        self,
        context: OwnedHandle,
        source: str,
        devices: Sequence[Any],
        options: Sequence[str] = (),
    ) -> OwnedHandle:
        """
        Compile source into a program for the given devices.

        Raises:
            EmptySourceError: If source is empty. Compilation is not attempted.
            CompilationError: If the build fails; carries the build log.
        """
        self.build_log = ""
        if not source:
            self.state = None
            raise EmptySourceError()

        with runtime_call(RuntimeCallError, "clCreateProgramWithSource"):
            raw = self.runtime.create_program(context.raw, source)
        program = OwnedHandle(self.runtime, raw, "program")
        self.state = BuildState.SOURCE_LOADED

        try:
            with runtime_call(RuntimeCallError, "clBuildProgram"):
                self._build(program, devices, options)
        except BaseException:
            program.release()
            raise

        self.state = BuildState.BUILD_SUCCEEDED
        logger.debug(f"Program built for {len(devices)} device(s)")
        return program

    def _build(
        self, program: OwnedHandle, devices: Sequence[Any], options: Sequence[str]
    ) -> None:
        try:
            self.runtime.build_program(program.raw, devices, options)
        except RuntimeStatusError as e:
            if e.code != StatusCode.BUILD_PROGRAM_FAILURE:
                raise
            self.state = BuildState.BUILD_FAILED
            device = devices[0]
            self.build_log = self.runtime.get_build_log(program.raw, device)
            if len(self.build_log) > 1:
                self._report("Log:")
                self._report(self.build_log)
            logger.error("Kernel program build failed")
            raise CompilationError(
                build_log=self.build_log,
                code=e.code,
                device_name=self.runtime.get_device_name(device),
                call_site=format_call_site(e.__traceback__),
            ) from e
