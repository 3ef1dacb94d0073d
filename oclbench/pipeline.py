# Copyright 2025 Wahyu Ardiansyah
# Licensed under the Apache License, Version 2.0

"""
Benchmark pipeline - runs the components in order:

    Resolver -> Context -> Buffers -> Builder -> Dispatcher -> Verifier

Every acquired handle is owned by one ResourceScope, so kernel, program,
buffers, queue and context are released in that order whether the run
succeeds or fails part way.
"""

import sys
from dataclasses import dataclass
from typing import Optional, TextIO

import numpy as np

from .buffers import BufferManager, TransferTiming
from .config import HarnessConfig
from .context import ExecutionContext
from .device import DeviceResolver, ResolvedDevice
from .dispatch import KernelDispatcher, KernelTiming
from .handles import ResourceScope
from .observability import get_logger
from .program import ProgramBuilder, load_kernel_source
from .runtime import ComputeRuntime, get_runtime
from .runtime.base import AccessMode
from .verify import VerificationResult, verify


@dataclass
class BenchmarkReport:
    """Everything measured during one run."""

    config: HarnessConfig
    device: ResolvedDevice
    kernel: KernelTiming
    transfer: TransferTiming
    verification: VerificationResult


def generate_inputs(n: int, seed: int) -> tuple[np.ndarray, np.ndarray]:
    """Deterministic float32 inputs in [0, 1) for a given seed."""
    rng = np.random.default_rng(seed)
    a = rng.random(n, dtype=np.float32)
    b = rng.random(n, dtype=np.float32)
    return a, b


class ConsoleReport:
    """Line-oriented human-readable report writer."""

    def __init__(self, out: Optional[TextIO] = None):
        self.out = out or sys.stdout

    def __call__(self, line: str) -> None:
        print(line, file=self.out, flush=True)


def run_benchmark(
    config: HarnessConfig,
    runtime: Optional[ComputeRuntime] = None,
    out: Optional[TextIO] = None,
    inputs: Optional[tuple[np.ndarray, np.ndarray]] = None,
) -> BenchmarkReport:
    """
    Run the full benchmark.

    Args:
        config: Run parameters
        runtime: Compute runtime (defaults to the pyopencl runtime)
        out: Stream for the console report (defaults to stdout)
        inputs: Optional (a, b) arrays of length config.n; generated from
            the config seed when omitted

    Raises:
        NoPlatformError, NoDeviceError: No usable device.
        HarnessError: Any other failure, after resources are released.
    """
    runtime = runtime or get_runtime("opencl")
    report = ConsoleReport(out)
    log = get_logger()
    log.debug("Benchmark starting", runtime=runtime.name, n=config.n)

    with log.stage("resolve", component="resolver"):
        resolved = DeviceResolver(runtime, report).resolve()
    report(f"Using {resolved.kind.value.upper()} device: {resolved.name}")

    if inputs is None:
        a, b = generate_inputs(config.n, config.effective_seed)
    else:
        a, b = (np.ascontiguousarray(x, dtype=np.float32) for x in inputs)
        if len(a) != config.n or len(b) != config.n:
            raise ValueError(f"inputs must have {config.n} elements")
    c = np.empty(config.n, dtype=np.float32)
    report(f"Data generated for n={config.n}!")

    executor = ExecutionContext(runtime)
    buffers = BufferManager(runtime)
    builder = ProgramBuilder(runtime, report)
    dispatcher = KernelDispatcher(runtime)
    size = config.buffer_size_bytes

    with ResourceScope() as scope:
        with log.stage("context", component="context"):
            context = scope.adopt(executor.create_context(resolved.device))
            queue = scope.adopt(
                executor.create_queue(context, resolved.device, profiling=config.profiling)
            )

        with log.stage("buffers", component="buffers", size_bytes=size):
            a_buf = scope.adopt(buffers.allocate(context, size, AccessMode.READ_ONLY))
            buffers.write_buffer(queue, a_buf, a)
            b_buf = scope.adopt(buffers.allocate(context, size, AccessMode.READ_ONLY))
            buffers.write_buffer(queue, b_buf, b)
            c_buf = scope.adopt(buffers.allocate(context, size, AccessMode.WRITE_ONLY))
        report("Buffers successfully created")

        with log.stage("build", component="program"):
            source = load_kernel_source(config.kernel_path)
            program = scope.adopt(
                builder.build(context, source, [resolved.device], config.build_options)
            )

        with log.stage("kernel", component="dispatch"):
            kernel = scope.adopt(dispatcher.create_kernel(program, config.kernel_name))
            dispatcher.set_arguments(kernel, a_buf, b_buf, c_buf, config.n)
            kernel_timing = dispatcher.run_timed(
                queue,
                kernel,
                config.n,
                config.iterations,
                local_size=config.local_size,
                policy=config.sync_policy,
                profiling=config.profiling,
            )
        if kernel_timing.per_dispatch_samples:
            report(f"Kernel average time: {kernel_timing.mean_s}+-{kernel_timing.std_s} s")
        else:
            report(
                f"Kernel average time: {kernel_timing.mean_s} s "
                "(stddev n/a: batched without profiling)"
            )
        report(f"GFlops: {kernel_timing.gflops}")
        report(f"VRAM bandwidth: {kernel_timing.bandwidth_gbs} GB/s")

        with log.stage("transfer", component="buffers"):
            transfer = buffers.benchmark_read(queue, c_buf, c, config.iterations)
        report(f"Result data transfer time: {transfer.mean_s}+-{transfer.std_s} s")
        report(f"VRAM -> RAM bw: {transfer.bandwidth_gbs} GB/s")

    with log.stage("verify", component="verifier"):
        verification = verify(a, b, c)
    report("Results verified: CPU and GPU results match")

    return BenchmarkReport(
        config=config,
        device=resolved,
        kernel=kernel_timing,
        transfer=transfer,
        verification=verification,
    )
