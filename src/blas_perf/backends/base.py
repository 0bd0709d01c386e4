"""Device backend contract consumed by the SYRK benchmark.

A backend owns a device handle and exposes memory limits, command queues,
buffer management, event synchronization and the accelerated SYRK entry point.
One backend instance is created per process and handed to every benchmark case.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any, Literal, Protocol

import numpy as np

Access = Literal["read_only", "read_write"]


class DeviceError(RuntimeError):
    """A device request returned a non-success status."""

    def __init__(self, stage: str, status: int | None = None, message: str = "") -> None:
        self.stage = stage
        self.status = status
        detail = f"{stage} failed"
        if status is not None:
            detail += f", status = {status}"
        if message:
            detail += f": {message}"
        super().__init__(detail)


class AllocationError(DeviceError):
    """A device buffer or queue could not be obtained."""


class DeviceBackend(Protocol):
    name: str

    def device_name(self) -> str: ...

    def available_global_mem_size(self) -> int: ...

    def max_mem_alloc_size(self) -> int: ...

    def supports_double_precision(self) -> bool: ...

    def command_queues(self) -> Sequence[Any]: ...

    def create_buffer(self, host: np.ndarray, *, offset_bytes: int, access: Access) -> Any:
        """Allocate ``host.nbytes + offset_bytes`` and write ``host`` after the offset."""
        ...

    def release_buffer(self, buf: Any) -> None: ...

    def write_buffer(self, queue: Any, buf: Any, host: np.ndarray, *, offset_bytes: int, blocking: bool) -> Any:
        """Enqueue a host-to-device write and return its event."""
        ...

    def read_buffer(self, queue: Any, buf: Any, out: np.ndarray, *, offset_bytes: int) -> None: ...

    def wait_for_events(self, events: Sequence[Any]) -> None: ...

    def syrk(
        self,
        *,
        order: str,
        uplo: str,
        trans_a: str,
        n: int,
        k: int,
        alpha: Any,
        a: Any,
        off_a: int,
        lda: int,
        beta: Any,
        c: Any,
        off_c: int,
        ldc: int,
        queues: Sequence[Any],
        wait_for: Sequence[Any] = (),
    ) -> Any:
        """Enqueue the update and return the completion event."""
        ...

    def flush(self, queues: Sequence[Any]) -> None: ...

    def wait_for_finish(self, queues: Sequence[Any], event: Any) -> None:
        """Block until ``event`` completes; raise :class:`DeviceError` if it did not succeed."""
        ...
