# Copyright 2025 Wahyu Ardiansyah
# Licensed under the Apache License, Version 2.0

"""
Tests for the Buffer Manager

Validates:
- Allocation size and access mode
- Allocation failures (invalid size, exhausted memory)
- Blocking transfers and size checks
- Round-trip through an identity kernel
"""

import numpy as np
import pytest

from oclbench.buffers import BufferManager, DeviceBuffer, TransferTiming
from oclbench.dispatch import KernelDispatcher, compute_global_size
from oclbench.errors import BufferAllocationError, TransferError
from oclbench.program import ProgramBuilder
from oclbench.runtime import AccessMode, StatusCode
from oclbench.runtime.simulated import UNINITIALIZED_BYTE


class TestAllocate:
    def test_allocate(self, runtime, context, scope):
        buf = scope.adopt(BufferManager(runtime).allocate(context, 64, AccessMode.READ_ONLY))
        assert isinstance(buf, DeviceBuffer)
        assert buf.size_bytes == 64
        assert buf.access is AccessMode.READ_ONLY

    @pytest.mark.parametrize("size", [0, -4])
    def test_invalid_size(self, runtime, context, size):
        with pytest.raises(BufferAllocationError) as exc_info:
            BufferManager(runtime).allocate(context, size, AccessMode.READ_ONLY)
        assert exc_info.value.code == StatusCode.INVALID_BUFFER_SIZE

    def test_out_of_device_memory(self, runtime, context):
        too_big = context.raw.devices[0].global_mem_size + 1
        with pytest.raises(BufferAllocationError) as exc_info:
            BufferManager(runtime).allocate(context, too_big, AccessMode.WRITE_ONLY)
        assert exc_info.value.code == StatusCode.MEM_OBJECT_ALLOCATION_FAILURE
        assert exc_info.value.call_site.startswith("buffers.py:")

    def test_take_keeps_metadata(self, runtime, context):
        buf = BufferManager(runtime).allocate(context, 16, AccessMode.WRITE_ONLY)
        moved = buf.take()
        assert isinstance(moved, DeviceBuffer)
        assert moved.size_bytes == 16
        assert moved.access is AccessMode.WRITE_ONLY
        moved.release()

    def test_not_zero_initialized(self, runtime, context, queue, scope):
        manager = BufferManager(runtime)
        buf = scope.adopt(manager.allocate(context, 16, AccessMode.WRITE_ONLY))
        host = np.zeros(16, dtype=np.uint8)
        manager.read_buffer(queue, buf, host)
        assert (host == UNINITIALIZED_BYTE).all()


class TestTransfer:
    def test_write_then_read(self, runtime, context, queue, scope):
        manager = BufferManager(runtime)
        data = np.arange(8, dtype=np.float32)
        buf = scope.adopt(manager.allocate(context, data.nbytes, AccessMode.READ_WRITE))
        manager.write_buffer(queue, buf, data)

        out = np.empty_like(data)
        manager.read_buffer(queue, buf, out)
        np.testing.assert_array_equal(out, data)

    def test_size_mismatch(self, runtime, context, queue, scope):
        manager = BufferManager(runtime)
        buf = scope.adopt(manager.allocate(context, 16, AccessMode.READ_ONLY))
        with pytest.raises(TransferError) as exc_info:
            manager.write_buffer(queue, buf, np.zeros(8, dtype=np.float32))
        assert exc_info.value.code == StatusCode.INVALID_VALUE

    def test_non_contiguous_rejected(self, runtime, context, queue, scope):
        manager = BufferManager(runtime)
        data = np.zeros(8, dtype=np.float32)[::2]
        buf = scope.adopt(manager.allocate(context, data.nbytes, AccessMode.READ_ONLY))
        with pytest.raises(TransferError):
            manager.write_buffer(queue, buf, data)

    def test_queue_failure(self, runtime, context, queue, scope):
        manager = BufferManager(runtime)
        buf = scope.adopt(manager.allocate(context, 16, AccessMode.READ_ONLY))
        runtime.fail_on["clEnqueueWriteBuffer"] = StatusCode.OUT_OF_RESOURCES
        with pytest.raises(TransferError) as exc_info:
            manager.write_buffer(queue, buf, np.zeros(4, dtype=np.float32))
        assert exc_info.value.code == StatusCode.OUT_OF_RESOURCES
        assert exc_info.value.operation == "clEnqueueWriteBuffer"


class TestRoundTrip:
    """Host array -> read-only buffer -> identity kernel -> host."""

    @pytest.mark.parametrize("n", [1, 5, 128, 1000])
    def test_identity_kernel(self, runtime, resolved, context, queue, scope, copy_source, n):
        manager = BufferManager(runtime)
        dispatcher = KernelDispatcher(runtime)
        data = np.random.default_rng(n).standard_normal(n).astype(np.float32)
        data[0] = -0.0

        src = scope.adopt(manager.allocate(context, data.nbytes, AccessMode.READ_ONLY))
        dst = scope.adopt(manager.allocate(context, data.nbytes, AccessMode.WRITE_ONLY))
        manager.write_buffer(queue, src, data)

        program = scope.adopt(
            ProgramBuilder(runtime).build(context, copy_source, [resolved.device])
        )
        kernel = scope.adopt(dispatcher.create_kernel(program, "copy"))
        dispatcher.set_arguments(kernel, src, dst, n)
        event = dispatcher.dispatch(queue, kernel, compute_global_size(n, 128), 128)
        dispatcher.wait([event])

        out = np.empty_like(data)
        manager.read_buffer(queue, dst, out)
        np.testing.assert_array_equal(out, data)
        assert out.tobytes() == data.tobytes()


class TestBenchmarkRead:
    def test_samples_and_bandwidth(self, runtime, context, queue, scope):
        manager = BufferManager(runtime)
        host = np.zeros(256, dtype=np.float32)
        buf = scope.adopt(manager.allocate(context, host.nbytes, AccessMode.WRITE_ONLY))
        timing = manager.benchmark_read(queue, buf, host, iterations=5)
        assert len(timing.samples_s) == 5
        assert timing.size_bytes == host.nbytes
        assert timing.bandwidth_gbs > 0

    def test_bandwidth_formula(self):
        timing = TransferTiming(size_bytes=1 << 30, samples_s=[0.5, 0.5])
        assert timing.mean_s == pytest.approx(0.5)
        assert timing.std_s == pytest.approx(0.0)
        assert timing.bandwidth_gbs == pytest.approx(2.0)
