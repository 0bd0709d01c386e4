from __future__ import annotations

import logging
import time
from typing import Any

from blas_perf.backends.base import DeviceBackend, DeviceError

from .config import BenchSettings, ElementType, ProblemParameters
from .matrices import HostMatrices
from .model import FAILED, TimingResult
from .staging import DeviceBuffers

logger = logging.getLogger(__name__)


def _timed_syrk(
    backend: DeviceBackend,
    queue: Any,
    elem: ElementType,
    params: ProblemParameters,
    host: HostMatrices,
    buffers: DeviceBuffers,
) -> int:
    # Re-seed C from the untouched backup and wait for the write to land.
    event = backend.write_buffer(
        queue, buffers.c, host.backup_c, offset_bytes=params.off_c * elem.itemsize, blocking=True
    )
    backend.wait_for_events([event])

    event = backend.syrk(
        order=params.order,
        uplo=params.uplo,
        trans_a=params.trans_a,
        n=params.n,
        k=params.k,
        alpha=host.alpha,
        a=buffers.a,
        off_a=params.off_a,
        lda=params.lda,
        beta=host.beta,
        c=buffers.c,
        off_c=params.off_c,
        ldc=params.ldc,
        queues=[queue],
    )
    backend.flush([queue])

    # The clock brackets [flush returned, completion signaled], never the enqueue.
    start = time.perf_counter_ns()
    backend.wait_for_finish([queue], event)
    return time.perf_counter_ns() - start


def run_device(
    backend: DeviceBackend,
    queue: Any,
    elem: ElementType,
    params: ProblemParameters,
    host: HostMatrices,
    buffers: DeviceBuffers,
    settings: BenchSettings,
) -> TimingResult:
    """Best-of-``repeats`` device time; any failed stage yields ``FAILED`` and drops earlier samples."""
    best: int | None = None
    for _ in range(settings.repeats):
        try:
            elapsed = _timed_syrk(backend, queue, elem, params, host, buffers)
        except DeviceError as e:
            logger.error("%s on %s: %s", elem.function_name, backend.name, e)
            return FAILED
        best = elapsed if best is None else min(best, elapsed)

    assert best is not None
    return TimingResult.of(best)
