# Copyright 2025 Wahyu Ardiansyah
# Licensed under the Apache License, Version 2.0

"""
Tests for the Kernel Dispatcher

Validates:
- Work sizing
- Kernel lookup and argument binding errors
- Timed dispatch under both synchronization policies
- Derived throughput metrics
"""

import numpy as np
import pytest

from oclbench.buffers import BufferManager
from oclbench.config import SyncPolicy
from oclbench.dispatch import KernelDispatcher, KernelTiming, compute_global_size
from oclbench.errors import ArgumentBindingError, DispatchError, KernelNotFoundError
from oclbench.program import ProgramBuilder
from oclbench.runtime import AccessMode, StatusCode


@pytest.fixture
def program(runtime, resolved, context, scope, aplusb_source):
    return scope.adopt(ProgramBuilder(runtime).build(context, aplusb_source, [resolved.device]))


@pytest.fixture
def bound_kernel(runtime, context, queue, program, scope):
    """aplusb kernel bound to buffers of 300 elements (a=1, b=2)."""
    n = 300
    manager = BufferManager(runtime)
    a_buf = scope.adopt(manager.allocate(context, n * 4, AccessMode.READ_ONLY))
    b_buf = scope.adopt(manager.allocate(context, n * 4, AccessMode.READ_ONLY))
    c_buf = scope.adopt(manager.allocate(context, n * 4, AccessMode.WRITE_ONLY))
    manager.write_buffer(queue, a_buf, np.ones(n, dtype=np.float32))
    manager.write_buffer(queue, b_buf, np.full(n, 2.0, dtype=np.float32))

    dispatcher = KernelDispatcher(runtime)
    kernel = scope.adopt(dispatcher.create_kernel(program, "aplusb"))
    dispatcher.set_arguments(kernel, a_buf, b_buf, c_buf, n)
    return kernel, c_buf, n


class TestWorkSizing:
    @pytest.mark.parametrize(
        "n, expected",
        [(1, 128), (127, 128), (128, 128), (129, 256), (100_000_000, 100_000_000)],
    )
    def test_rounding(self, n, expected):
        assert compute_global_size(n, 128) == expected

    def test_invalid(self):
        with pytest.raises(ValueError):
            compute_global_size(0, 128)
        with pytest.raises(ValueError):
            compute_global_size(16, 0)


class TestKernelAndArguments:
    def test_kernel_not_found(self, runtime, program):
        with pytest.raises(KernelNotFoundError) as exc_info:
            KernelDispatcher(runtime).create_kernel(program, "amulb")
        assert exc_info.value.kernel_name == "amulb"
        assert exc_info.value.code == StatusCode.INVALID_KERNEL_NAME

    def test_bad_index(self, runtime, program, scope):
        dispatcher = KernelDispatcher(runtime)
        kernel = scope.adopt(dispatcher.create_kernel(program, "aplusb"))
        with pytest.raises(ArgumentBindingError) as exc_info:
            dispatcher.set_argument(kernel, 4, 16)
        assert exc_info.value.code == StatusCode.INVALID_ARG_INDEX

    def test_scalar_out_of_range(self, runtime, program, scope):
        dispatcher = KernelDispatcher(runtime)
        kernel = scope.adopt(dispatcher.create_kernel(program, "aplusb"))
        with pytest.raises(ArgumentBindingError):
            dispatcher.set_argument(kernel, 3, -1)
        with pytest.raises(ArgumentBindingError):
            dispatcher.set_argument(kernel, 3, 1 << 32)

    def test_float_scalar_rejected(self, runtime, program, scope):
        dispatcher = KernelDispatcher(runtime)
        kernel = scope.adopt(dispatcher.create_kernel(program, "aplusb"))
        with pytest.raises(ArgumentBindingError):
            dispatcher.set_argument(kernel, 3, 16.0)

    def test_dispatch_without_arguments(self, runtime, queue, program, scope):
        dispatcher = KernelDispatcher(runtime)
        kernel = scope.adopt(dispatcher.create_kernel(program, "aplusb"))
        with pytest.raises(DispatchError) as exc_info:
            dispatcher.dispatch(queue, kernel, 128, 128)
        assert exc_info.value.code == StatusCode.INVALID_KERNEL_ARGS

    def test_unaligned_global_size(self, runtime, queue, bound_kernel):
        kernel, _, _ = bound_kernel
        with pytest.raises(DispatchError) as exc_info:
            KernelDispatcher(runtime).dispatch(queue, kernel, 300, 128)
        assert exc_info.value.code == StatusCode.INVALID_WORK_GROUP_SIZE


class TestRunTimed:
    @pytest.mark.parametrize("policy", [SyncPolicy.BLOCKING, SyncPolicy.BATCHED])
    def test_samples_per_iteration(self, runtime, queue, bound_kernel, policy):
        kernel, c_buf, n = bound_kernel
        timing = KernelDispatcher(runtime).run_timed(
            queue, kernel, n, iterations=7, local_size=128, policy=policy
        )
        assert len(timing.samples_s) == 7
        assert timing.global_size == 384
        assert timing.policy is policy
        assert not timing.device_timed

        out = np.empty(n, dtype=np.float32)
        BufferManager(runtime).read_buffer(queue, c_buf, out)
        np.testing.assert_array_equal(out, np.full(n, 3.0, dtype=np.float32))

    def test_blocking_waits_after_each_dispatch(self, runtime, queue, bound_kernel):
        kernel, _, n = bound_kernel
        start = len(runtime.calls)
        KernelDispatcher(runtime).run_timed(queue, kernel, n, iterations=3)
        calls = [
            c for c in runtime.calls[start:]
            if c in ("clEnqueueNDRangeKernel", "clWaitForEvents")
        ]
        assert calls == ["clEnqueueNDRangeKernel", "clWaitForEvents"] * 3

    def test_batched_waits_once(self, runtime, queue, bound_kernel):
        kernel, _, n = bound_kernel
        start = len(runtime.calls)
        KernelDispatcher(runtime).run_timed(
            queue, kernel, n, iterations=3, policy=SyncPolicy.BATCHED
        )
        calls = [
            c for c in runtime.calls[start:]
            if c in ("clEnqueueNDRangeKernel", "clWaitForEvents")
        ]
        assert calls == ["clEnqueueNDRangeKernel"] * 3 + ["clWaitForEvents"]

    def test_profiling_samples(self, runtime, resolved, context, program, scope):
        from oclbench.context import ExecutionContext

        queue = scope.adopt(
            ExecutionContext(runtime).create_queue(context, resolved.device, profiling=True)
        )
        n = 128
        manager = BufferManager(runtime)
        bufs = [
            scope.adopt(manager.allocate(context, n * 4, mode))
            for mode in (AccessMode.READ_ONLY, AccessMode.READ_ONLY, AccessMode.WRITE_ONLY)
        ]
        dispatcher = KernelDispatcher(runtime)
        kernel = scope.adopt(dispatcher.create_kernel(program, "aplusb"))
        dispatcher.set_arguments(kernel, *bufs, n)

        timing = dispatcher.run_timed(queue, kernel, n, iterations=4, profiling=True)
        assert timing.device_timed
        assert len(timing.samples_s) == 4

    def test_dispatch_failure_propagates(self, runtime, queue, bound_kernel):
        kernel, _, n = bound_kernel
        runtime.fail_on["clWaitForEvents"] = StatusCode.OUT_OF_RESOURCES
        with pytest.raises(DispatchError) as exc_info:
            KernelDispatcher(runtime).run_timed(queue, kernel, n, iterations=2)
        assert exc_info.value.operation == "clWaitForEvents"


class TestKernelTiming:
    def test_metrics(self):
        timing = KernelTiming(
            n=1_000_000_000,
            global_size=1_000_000_000,
            local_size=128,
            policy=SyncPolicy.BLOCKING,
            samples_s=[0.5, 1.5],
        )
        assert timing.mean_s == pytest.approx(1.0)
        assert timing.std_s == pytest.approx(0.5)
        assert timing.gflops == pytest.approx(1.0)
        assert timing.bandwidth_gbs == pytest.approx(3 * 4 * 1e9 / (1 << 30))

    @pytest.mark.parametrize(
        "policy, device_timed, expected",
        [
            (SyncPolicy.BLOCKING, False, True),
            (SyncPolicy.BLOCKING, True, True),
            (SyncPolicy.BATCHED, True, True),
            (SyncPolicy.BATCHED, False, False),
        ],
    )
    def test_per_dispatch_samples(self, policy, device_timed, expected):
        timing = KernelTiming(
            n=16, global_size=128, local_size=128, policy=policy, device_timed=device_timed
        )
        assert timing.per_dispatch_samples is expected

    def test_batched_host_timing_splits_evenly(self, runtime, queue, bound_kernel):
        kernel, _, n = bound_kernel
        timing = KernelDispatcher(runtime).run_timed(
            queue, kernel, n, iterations=4, policy=SyncPolicy.BATCHED
        )
        assert not timing.per_dispatch_samples
        assert len(set(timing.samples_s)) == 1
