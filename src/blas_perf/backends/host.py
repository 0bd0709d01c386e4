"""Host-memory emulation of an accelerator device.

Buffers are numpy arrays and each queue is in-order. Kernels are only queued
on submission and run when the queue is drained, either by waiting on an event
or finishing the queue, or by a blocking transfer that must observe them.
Memory limits and double-precision support are configurable so the benchmark
protocol can be exercised without a GPU.
"""

from __future__ import annotations

import platform
from collections.abc import Callable, Sequence
from typing import Any

import attrs
import numpy as np

from blas_perf.syrk_bench.reference import syrk_reference

from .base import Access, AllocationError, DeviceError

GiB = 1024**3

# OpenCL status codes reused for emulated failures.
CL_MEM_OBJECT_ALLOCATION_FAILURE = -4
CL_INVALID_VALUE = -30
CL_INVALID_MEM_OBJECT = -38

# OpenCL command execution states.
CL_COMPLETE = 0
CL_QUEUED = 3


@attrs.define(slots=True, eq=False)
class HostBuffer:
    data: np.ndarray
    access: Access
    released: bool = False

    @property
    def nbytes(self) -> int:
        return int(self.data.nbytes)


@attrs.define(slots=True, eq=False)
class HostEvent:
    command: str
    status: int = CL_COMPLETE


@attrs.define(slots=True, eq=False)
class HostQueue:
    index: int
    flushes: int = 0
    pending: list[tuple[HostEvent, Callable[[], None]]] = attrs.field(factory=list)

    def enqueue(self, command: str, run: Callable[[], None]) -> HostEvent:
        event = HostEvent(command=command, status=CL_QUEUED)
        self.pending.append((event, run))
        return event

    def drain(self) -> None:
        while self.pending:
            event, run = self.pending.pop(0)
            run()
            event.status = CL_COMPLETE

    def holds(self, event: HostEvent) -> bool:
        return any(e is event for e, _ in self.pending)


class HostBackend:
    name = "host"

    def __init__(
        self,
        *,
        global_mem_size: int = 8 * GiB,
        max_alloc_size: int | None = None,
        double_precision: bool = True,
        queue_count: int = 1,
    ) -> None:
        self.global_mem_size = global_mem_size
        # OpenCL guarantees at least a quarter of global memory per allocation.
        self.max_alloc_size = global_mem_size // 4 if max_alloc_size is None else max_alloc_size
        self.double_precision = double_precision
        self.queues = [HostQueue(index=i) for i in range(queue_count)]
        self.live_buffers: list[HostBuffer] = []
        self.allocation_count = 0

    def device_name(self) -> str:
        return f"host emulation ({platform.machine() or 'unknown'})"

    def available_global_mem_size(self) -> int:
        return self.global_mem_size

    def max_mem_alloc_size(self) -> int:
        return self.max_alloc_size

    def supports_double_precision(self) -> bool:
        return self.double_precision

    def command_queues(self) -> Sequence[HostQueue]:
        return self.queues

    @property
    def allocated_bytes(self) -> int:
        return sum(b.nbytes for b in self.live_buffers)

    def create_buffer(self, host: np.ndarray, *, offset_bytes: int, access: Access) -> HostBuffer:
        if offset_bytes % host.itemsize:
            raise DeviceError("create_buffer", CL_INVALID_VALUE, f"offset {offset_bytes} is not element aligned")
        size = host.nbytes + offset_bytes
        if size > self.max_alloc_size or self.allocated_bytes + size > self.global_mem_size:
            raise AllocationError(
                "create_buffer", CL_MEM_OBJECT_ALLOCATION_FAILURE, f"cannot allocate {size} bytes"
            )
        off = offset_bytes // host.itemsize
        data = np.zeros(off + host.size, dtype=host.dtype)
        data[off:] = host.reshape(-1)
        buf = HostBuffer(data=data, access=access)
        self.live_buffers.append(buf)
        self.allocation_count += 1
        return buf

    def release_buffer(self, buf: HostBuffer) -> None:
        if buf.released:
            return
        buf.released = True
        self.live_buffers.remove(buf)

    def _check_buffer(self, stage: str, buf: HostBuffer) -> None:
        if buf.released:
            raise DeviceError(stage, CL_INVALID_MEM_OBJECT, "buffer already released")

    def write_buffer(
        self, queue: HostQueue, buf: HostBuffer, host: np.ndarray, *, offset_bytes: int, blocking: bool
    ) -> HostEvent:
        self._check_buffer("write_buffer", buf)
        off = offset_bytes // buf.data.itemsize
        data = host.reshape(-1).copy()

        def _write() -> None:
            buf.data[off : off + data.size] = data

        event = queue.enqueue("write_buffer", _write)
        if blocking:
            queue.drain()
        return event

    def read_buffer(self, queue: HostQueue, buf: HostBuffer, out: np.ndarray, *, offset_bytes: int) -> None:
        self._check_buffer("read_buffer", buf)
        queue.drain()
        off = offset_bytes // buf.data.itemsize
        out.reshape(-1)[:] = buf.data[off : off + out.size]

    def _wait(self, stage: str, events: Sequence[HostEvent]) -> None:
        for event in events:
            if event.status == CL_QUEUED:
                for q in self.queues:
                    if q.holds(event):
                        q.drain()
            if event.status != CL_COMPLETE:
                raise DeviceError(stage, event.status, event.command)

    def wait_for_events(self, events: Sequence[HostEvent]) -> None:
        self._wait("wait_for_events", events)

    def syrk(
        self,
        *,
        order: str,
        uplo: str,
        trans_a: str,
        n: int,
        k: int,
        alpha: Any,
        a: HostBuffer,
        off_a: int,
        lda: int,
        beta: Any,
        c: HostBuffer,
        off_c: int,
        ldc: int,
        queues: Sequence[HostQueue],
        wait_for: Sequence[HostEvent] = (),
    ) -> HostEvent:
        self._check_buffer("syrk", a)
        self._check_buffer("syrk", c)
        if c.access != "read_write":
            raise DeviceError("syrk", CL_INVALID_MEM_OBJECT, "C buffer is not writable")
        self.wait_for_events(wait_for)

        def _run() -> None:
            syrk_reference(
                order=order,
                uplo=uplo,
                trans_a=trans_a,
                n=n,
                k=k,
                alpha=alpha,
                a=a.data,
                off_a=off_a,
                lda=lda,
                beta=beta,
                c=c.data,
                off_c=off_c,
                ldc=ldc,
            )

        # Only queued here; the update runs when the queue is drained.
        return queues[0].enqueue("syrk", _run)

    def flush(self, queues: Sequence[HostQueue]) -> None:
        for q in queues:
            q.flushes += 1

    def wait_for_finish(self, queues: Sequence[HostQueue], event: HostEvent) -> None:
        for q in queues:
            q.drain()
        self._wait("wait_for_finish", [event])
