"""OpenCL device backend.

Context, queues, buffers and events come from pyopencl; the SYRK kernel is
CLBlast's, reached through pyclblast. CLBlast only accepts row-major layouts,
so column-major requests are mapped onto the equivalent row-major call.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import Any

import attrs
import numpy as np
import pyclblast
import pyopencl as cl
import pyopencl.array as cla

from blas_perf.syrk_bench.config import env_int
from blas_perf.syrk_bench.reference import to_row_major

from .base import Access, AllocationError, DeviceError

logger = logging.getLogger(__name__)

PLATFORM_ENV = "BLAS_PERF_OPENCL_PLATFORM"
DEVICE_ENV = "BLAS_PERF_OPENCL_DEVICE"


@attrs.define(slots=True, eq=False)
class OpenCLBuffer:
    buf: cl.Buffer
    array: cla.Array
    nbytes: int


def _status(e: Exception) -> int | None:
    code = getattr(e, "code", None)
    return code if isinstance(code, int) else None


def select_device(platform_index: int | None = None, device_index: int | None = None) -> cl.Device:
    platform_index = env_int(PLATFORM_ENV) if platform_index is None else platform_index
    device_index = env_int(DEVICE_ENV) if device_index is None else device_index
    platforms = cl.get_platforms()
    if not platforms:
        raise RuntimeError("No OpenCL platform found")
    platform = platforms[platform_index or 0]
    devices = platform.get_devices()
    if not devices:
        raise RuntimeError(f"OpenCL platform {platform.name!r} exposes no device")
    return devices[device_index or 0]


class OpenCLBackend:
    name = "opencl"

    def __init__(self, *, platform_index: int | None = None, device_index: int | None = None, queue_count: int = 1) -> None:
        self.device = select_device(platform_index, device_index)
        self.context = cl.Context([self.device])
        try:
            self.queues = [cl.CommandQueue(self.context, self.device) for _ in range(queue_count)]
        except cl.Error as e:
            logger.error("Command queue creation failed on %s: %s", self.device.name, e)
            self.queues = []
        logger.info("Using OpenCL device %s (%s)", self.device.name.strip(), self.device.platform.name.strip())

    def device_name(self) -> str:
        return self.device.name.strip()

    def available_global_mem_size(self) -> int:
        return int(self.device.global_mem_size)

    def max_mem_alloc_size(self) -> int:
        return int(self.device.max_mem_alloc_size)

    def supports_double_precision(self) -> bool:
        return bool(self.device.double_fp_config)

    def command_queues(self) -> Sequence[cl.CommandQueue]:
        return self.queues

    def create_buffer(self, host: np.ndarray, *, offset_bytes: int, access: Access) -> OpenCLBuffer:
        flags = cl.mem_flags.READ_ONLY if access == "read_only" else cl.mem_flags.READ_WRITE
        size = host.nbytes + offset_bytes
        buf: cl.Buffer | None = None
        try:
            buf = cl.Buffer(self.context, flags, size=size)
            # OpenCL allocates lazily; the blocking write surfaces out-of-memory here.
            cl.enqueue_copy(self.queues[0], buf, host, device_offset=offset_bytes, is_blocking=True)
        except cl.Error as e:
            if buf is not None:
                buf.release()
            raise AllocationError("create_buffer", _status(e), str(e)) from e
        # CLBlast only checks the dimensionality of the wrapper; offsets are passed separately.
        array = cla.Array(self.queues[0], (1, size // host.itemsize), host.dtype, data=buf)
        return OpenCLBuffer(buf=buf, array=array, nbytes=size)

    def release_buffer(self, buf: OpenCLBuffer) -> None:
        buf.buf.release()

    def write_buffer(
        self, queue: cl.CommandQueue, buf: OpenCLBuffer, host: np.ndarray, *, offset_bytes: int, blocking: bool
    ) -> cl.Event:
        try:
            return cl.enqueue_copy(queue, buf.buf, host, device_offset=offset_bytes, is_blocking=blocking)
        except cl.Error as e:
            raise DeviceError("write_buffer", _status(e), str(e)) from e

    def read_buffer(self, queue: cl.CommandQueue, buf: OpenCLBuffer, out: np.ndarray, *, offset_bytes: int) -> None:
        try:
            cl.enqueue_copy(queue, out, buf.buf, device_offset=offset_bytes, is_blocking=True)
        except cl.Error as e:
            raise DeviceError("read_buffer", _status(e), str(e)) from e

    def wait_for_events(self, events: Sequence[cl.Event]) -> None:
        try:
            cl.wait_for_events(list(events))
        except cl.Error as e:
            raise DeviceError("wait_for_events", _status(e), str(e)) from e

    def syrk(
        self,
        *,
        order: str,
        uplo: str,
        trans_a: str,
        n: int,
        k: int,
        alpha: Any,
        a: OpenCLBuffer,
        off_a: int,
        lda: int,
        beta: Any,
        c: OpenCLBuffer,
        off_c: int,
        ldc: int,
        queues: Sequence[cl.CommandQueue],
        wait_for: Sequence[cl.Event] = (),
    ) -> cl.Event:
        if wait_for:
            self.wait_for_events(wait_for)
        row_uplo, row_trans = to_row_major(order, uplo, trans_a)
        is_complex = np.iscomplexobj(alpha)
        try:
            return pyclblast.syrk(
                queues[0],
                n,
                k,
                a.array,
                c.array,
                a_ld=lda,
                c_ld=ldc,
                alpha=complex(alpha) if is_complex else float(alpha),
                beta=complex(beta) if is_complex else float(beta),
                lower_triangle=row_uplo == "lower",
                a_transp=row_trans == "t",
                a_offset=off_a,
                c_offset=off_c,
            )
        except (cl.Error, RuntimeError) as e:
            raise DeviceError("syrk", _status(e), str(e)) from e

    def flush(self, queues: Sequence[cl.CommandQueue]) -> None:
        for q in queues:
            try:
                q.flush()
            except cl.Error as e:
                raise DeviceError("flush", _status(e), str(e)) from e

    def wait_for_finish(self, queues: Sequence[cl.CommandQueue], event: cl.Event) -> None:
        try:
            event.wait()
            status = event.command_execution_status
        except cl.Error as e:
            raise DeviceError("wait_for_finish", _status(e), str(e)) from e
        if status != cl.command_execution_status.COMPLETE:
            raise DeviceError("wait_for_finish", int(status), "command did not complete successfully")
