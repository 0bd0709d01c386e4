from __future__ import annotations

import logging
from typing import Any

import attrs

from blas_perf.backends.base import AllocationError, DeviceBackend

from .config import ElementType, ProblemParameters
from .matrices import HostMatrices

logger = logging.getLogger(__name__)


@attrs.define(slots=True)
class DeviceBuffers:
    a: Any = None
    c: Any = None

    @property
    def count(self) -> int:
        return int(self.a is not None) + int(self.c is not None)


def stage_inputs(
    backend: DeviceBackend, elem: ElementType, params: ProblemParameters, host: HostMatrices
) -> DeviceBuffers:
    """Create the A (read-only) and C (read-write) device buffers at their element offsets.

    C is staged from the backup copy. On failure every buffer created so far is
    released before :class:`AllocationError` propagates.
    """
    buffers = DeviceBuffers()
    try:
        buffers.a = backend.create_buffer(host.a, offset_bytes=params.off_a * elem.itemsize, access="read_only")
        buffers.c = backend.create_buffer(
            host.backup_c, offset_bytes=params.off_c * elem.itemsize, access="read_write"
        )
    except AllocationError as e:
        logger.error("%s: device buffer allocation failed (%s)", elem.function_name, e)
        release_buffers(backend, buffers)
        raise
    return buffers


def release_buffers(backend: DeviceBackend, buffers: DeviceBuffers) -> None:
    # C first, mirroring creation order in reverse.
    for name in ("c", "a"):
        buf = getattr(buffers, name)
        if buf is None:
            continue
        setattr(buffers, name, None)
        backend.release_buffer(buf)
