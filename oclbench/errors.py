# Copyright 2025 Wahyu Ardiansyah
# Licensed under the Apache License, Version 2.0

"""
oclbench Error Hierarchy

Provides the error types raised by the harness with:
- Clear error categorization
- Helpful error messages with suggestions
- Context information for debugging

Error Categories:
- HarnessError: Base class for all harness errors
- DeviceNotFoundError: No usable platform or device (exit code 1)
- RuntimeCallError: A compute runtime call returned a non-success status
- EmptySourceError: Kernel source resource is missing or empty
- CompilationError: Kernel program failed to build (carries the build log)
- ResultMismatchError: Device output differs from the host reference
- ConfigurationError: Invalid harness configuration
"""

import os
from types import TracebackType
from typing import Optional, Type

from .runtime.status import RuntimeStatusError, StatusCode, status_name


class HarnessError(Exception):
    """
    Base class for all oclbench errors.

    Provides consistent error formatting and context tracking.

    Attributes:
        message: Human-readable error message
        suggestions: List of suggestions to fix the error
        context: Optional context dictionary for debugging
    """

    def __init__(
        self,
        message: str,
        suggestions: Optional[list[str]] = None,
        context: Optional[dict] = None,
    ):
        self.message = message
        self.suggestions = suggestions or []
        self.context = context or {}

        full_message = self._format_message()
        super().__init__(full_message)

    def _format_message(self) -> str:
        """Format the error message with suggestions."""
        lines = [self.message]

        if self.suggestions:
            lines.append("")
            lines.append("Suggestions:")
            for i, suggestion in enumerate(self.suggestions, 1):
                lines.append(f"  {i}. {suggestion}")

        if self.context:
            lines.append("")
            lines.append("Context:")
            for key, value in self.context.items():
                lines.append(f"  {key}: {value}")

        return "\n".join(lines)


# ============================================================================
# Device discovery
# ============================================================================


class DeviceNotFoundError(HarnessError):
    """No usable compute platform or device was discovered."""


class NoPlatformError(DeviceNotFoundError):
    """Raised when zero compute platforms are discoverable."""

    def __init__(self):
        super().__init__(
            message="Platforms not found",
            suggestions=[
                "Install an OpenCL driver (ICD) for your GPU or CPU",
                "Install pocl for a portable CPU implementation",
                "Run with --runtime simulated to exercise the harness without a driver",
            ],
        )


class NoDeviceError(DeviceNotFoundError):
    """Raised when the chosen platform exposes neither GPU nor CPU devices."""

    def __init__(self, platform_name: Optional[str] = None):
        context = {}
        if platform_name:
            context["platform"] = platform_name

        super().__init__(
            message="GPU and CPU devices not found",
            suggestions=[
                "Check that the device driver is loaded",
                "Verify the first OpenCL platform is the one you expect",
            ],
            context=context,
        )


# ============================================================================
# Runtime status errors
# ============================================================================


class RuntimeCallError(HarnessError):
    """
    A compute runtime call returned a non-success status.

    Attributes:
        code: Numeric OpenCL status code
        code_name: Symbolic status name (e.g. CL_OUT_OF_RESOURCES)
        operation: Runtime routine that failed
        call_site: "file.py:line" of the harness call that issued it
    """

    summary = "OpenCL call failed"
    default_suggestions: list[str] = []

    def __init__(
        self,
        code: int,
        operation: str,
        call_site: Optional[str] = None,
        detail: Optional[str] = None,
        suggestions: Optional[list[str]] = None,
        context: Optional[dict] = None,
    ):
        self.code = code
        self.code_name = status_name(code)
        self.operation = operation
        self.call_site = call_site

        ctx = {"operation": operation, "status": f"{code} ({self.code_name})"}
        if call_site:
            ctx["call_site"] = call_site
        if detail:
            ctx["detail"] = detail
        if context:
            ctx.update(context)

        message = f"{self.summary}: OpenCL error code {code} encountered"
        if call_site:
            message = f"{message} at {call_site}"

        super().__init__(
            message=message,
            suggestions=suggestions or list(self.default_suggestions),
            context=ctx,
        )


class DeviceAllocationError(RuntimeCallError):
    """Context or command queue creation failed."""

    summary = "Device allocation failed"
    default_suggestions = [
        "Check that the device is not in use by another exclusive process",
        "Verify the OpenCL driver installation",
    ]


class BufferAllocationError(RuntimeCallError):
    """Device buffer allocation failed (invalid size or out of memory)."""

    summary = "Buffer allocation failed"
    default_suggestions = [
        "Reduce the element count with -n",
        "Check the device's maximum allocation size",
    ]


class TransferError(RuntimeCallError):
    """A host<->device transfer failed."""

    summary = "Buffer transfer failed"
    default_suggestions = [
        "Ensure the host array matches the buffer size",
        "Check for earlier device failures on the queue",
    ]


class KernelNotFoundError(RuntimeCallError):
    """The named entry point is absent from the built program."""

    summary = "Kernel not found"

    def __init__(
        self,
        kernel_name: str,
        code: int = StatusCode.INVALID_KERNEL_NAME,
        operation: str = "clCreateKernel",
        call_site: Optional[str] = None,
        detail: Optional[str] = None,
    ):
        self.kernel_name = kernel_name
        super().__init__(
            code=code,
            operation=operation,
            call_site=call_site,
            detail=detail,
            suggestions=[
                f"Check that the kernel source exports '{kernel_name}'",
                "Pass the correct entry point with --kernel-name",
            ],
            context={"kernel": kernel_name},
        )


class ArgumentBindingError(RuntimeCallError):
    """A kernel argument could not be bound."""

    summary = "Kernel argument binding failed"
    default_suggestions = [
        "Bind arguments in declaration order: a, b, c, n",
        "Pass the element count as an unsigned 32-bit scalar",
    ]


class ResourceReleaseError(RuntimeCallError):
    """Releasing a runtime handle failed."""

    summary = "Resource release failed"


class DispatchError(RuntimeCallError):
    """Kernel submission or completion wait failed."""

    summary = "Kernel dispatch failed"
    default_suggestions = [
        "Check that the work-group size is supported by the device",
        "Check that all kernel arguments are bound",
    ]


# ============================================================================
# Program build
# ============================================================================


class EmptySourceError(HarnessError):
    """Kernel source is empty or missing; compilation is never attempted."""

    def __init__(self, location: Optional[str] = None):
        self.location = location
        context = {}
        if location:
            context["location"] = location

        super().__init__(
            message="Empty source file! May be you forgot to configure working directory properly?",
            suggestions=[
                "Check the kernel path passed with --kernel-path",
                "Run from the project root or use the packaged kernel",
            ],
            context=context,
        )


class CompilationError(HarnessError):
    """
    Kernel program failed to build.

    Attributes:
        build_log: Device compiler diagnostic output
        code: Numeric status code of the build call
    """

    def __init__(
        self,
        build_log: str,
        code: int = StatusCode.BUILD_PROGRAM_FAILURE,
        device_name: Optional[str] = None,
        call_site: Optional[str] = None,
    ):
        self.build_log = build_log
        self.code = code
        self.call_site = call_site

        context = {"status": f"{code} ({status_name(code)})"}
        if device_name:
            context["device"] = device_name
        if call_site:
            context["call_site"] = call_site

        message = "Compilation failed: kernel program build failed"
        if build_log.strip():
            message = f"{message}\n\nBuild log:\n{build_log.rstrip()}"

        super().__init__(
            message=message,
            suggestions=[
                "Fix the errors reported in the build log",
                "Check the build options passed with --build-options",
            ],
            context=context,
        )


# ============================================================================
# Verification and configuration
# ============================================================================


class ResultMismatchError(HarnessError):
    """
    Device output differs from the host reference.

    Attributes:
        index: First index where the results differ
        expected: Host reference value at index
        actual: Device value at index
    """

    def __init__(self, index: int, expected: float, actual: float):
        self.index = index
        self.expected = expected
        self.actual = actual

        super().__init__(
            message="CPU and GPU results differ!",
            suggestions=[
                "Check the kernel bounds test and indexing",
                "Check that all arguments were bound in declaration order",
            ],
            context={
                "index": index,
                "expected": repr(expected),
                "actual": repr(actual),
            },
        )


class ConfigurationError(HarnessError):
    """Invalid harness configuration."""

    def __init__(
        self,
        message: str,
        config_key: Optional[str] = None,
        config_value: Optional[str] = None,
    ):
        context = {}
        if config_key:
            context["config_key"] = config_key
        if config_value is not None:
            context["config_value"] = str(config_value)

        super().__init__(
            message=f"Configuration error: {message}",
            suggestions=[
                "Check command line options and OCLBENCH_* environment variables",
            ],
            context=context,
        )


# ============================================================================
# Status translation
# ============================================================================


def format_call_site(tb: Optional[TracebackType]) -> Optional[str]:
    """Return "file.py:line" for the first traceback frame, or None."""
    if tb is None:
        return None
    filename = os.path.basename(tb.tb_frame.f_code.co_filename)
    return f"{filename}:{tb.tb_lineno}"


class runtime_call:
    """
    Translate ``RuntimeStatusError`` raised inside the block into ``error_cls``.

    The call site recorded on the error is the line of the failing call in
    the function that opened the block.

    Example:
        with runtime_call(BufferAllocationError, "clCreateBuffer"):
            handle = runtime.create_buffer(context, flags, size)
    """

    def __init__(self, error_cls: Type[RuntimeCallError], operation: str, **extra):
        self.error_cls = error_cls
        self.operation = operation
        self.extra = extra

    def __enter__(self) -> "runtime_call":
        return self

    def __exit__(
        self,
        exc_type: Optional[Type[BaseException]],
        exc: Optional[BaseException],
        tb: Optional[TracebackType],
    ) -> bool:
        if exc is None or not isinstance(exc, RuntimeStatusError):
            return False

        raise self.error_cls(
            code=exc.code,
            operation=exc.routine or self.operation,
            call_site=format_call_site(tb),
            detail=exc.detail,
            **self.extra,
        ) from exc
