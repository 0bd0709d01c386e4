from __future__ import annotations

import time
from collections.abc import Callable, Sequence
from typing import Any

import numpy as np
import pytest

from blas_perf.backends.base import Access, AllocationError, DeviceError
from blas_perf.backends.host import CL_MEM_OBJECT_ALLOCATION_FAILURE, HostBackend, HostBuffer, HostEvent, HostQueue

CL_OUT_OF_RESOURCES = -5


class FaultyHostBackend(HostBackend):
    """Host backend with injectable failures and a record of what the kernel saw."""

    def __init__(
        self,
        *,
        fail_stage: str | None = None,
        fail_on_call: int = 0,
        fail_alloc_on: int | None = None,
        finish_delay_s: float = 0.0,
        **kwargs: Any,
    ) -> None:
        super().__init__(**kwargs)
        self.fail_stage = fail_stage
        self.fail_on_call = fail_on_call
        self.fail_alloc_on = fail_alloc_on
        self.finish_delay_s = finish_delay_s
        self.create_calls = 0
        self.calls: dict[str, int] = {}
        self.c_at_syrk: list[np.ndarray] = []

    def _maybe_fail(self, stage: str) -> None:
        n = self.calls.get(stage, 0)
        self.calls[stage] = n + 1
        if stage == self.fail_stage and n >= self.fail_on_call:
            raise DeviceError(stage, CL_OUT_OF_RESOURCES)

    def create_buffer(self, host: np.ndarray, *, offset_bytes: int, access: Access) -> HostBuffer:
        idx = self.create_calls
        self.create_calls += 1
        if self.fail_alloc_on is not None and idx == self.fail_alloc_on:
            raise AllocationError("create_buffer", CL_MEM_OBJECT_ALLOCATION_FAILURE)
        return super().create_buffer(host, offset_bytes=offset_bytes, access=access)

    def write_buffer(
        self, queue: HostQueue, buf: HostBuffer, host: np.ndarray, *, offset_bytes: int, blocking: bool
    ) -> HostEvent:
        self._maybe_fail("write_buffer")
        if self.fail_stage == "write_event":
            super().write_buffer(queue, buf, host, offset_bytes=offset_bytes, blocking=blocking)
            return HostEvent(command="write_buffer", status=CL_OUT_OF_RESOURCES)
        return super().write_buffer(queue, buf, host, offset_bytes=offset_bytes, blocking=blocking)

    def syrk(self, **kwargs: Any) -> HostEvent:
        self._maybe_fail("syrk")
        c: HostBuffer = kwargs["c"]
        self.c_at_syrk.append(c.data[kwargs["off_c"] :].copy())
        return super().syrk(**kwargs)

    def flush(self, queues: Sequence[HostQueue]) -> None:
        self._maybe_fail("flush")
        super().flush(queues)

    def wait_for_finish(self, queues: Sequence[HostQueue], event: HostEvent) -> None:
        self._maybe_fail("wait_for_finish")
        if self.finish_delay_s:
            time.sleep(self.finish_delay_s)
        super().wait_for_finish(queues, event)


class SleepyReference:
    """Reference stand-in whose only cost is a fixed delay."""

    name = "sleepy"

    def __init__(self, delay_s: float) -> None:
        self.delay_s = delay_s
        self.calls = 0

    def syrk(self, **kwargs: Any) -> None:
        self.calls += 1
        time.sleep(self.delay_s)


@pytest.fixture
def host_backend() -> HostBackend:
    return HostBackend()


@pytest.fixture
def make_faulty_backend() -> Callable[..., FaultyHostBackend]:
    return FaultyHostBackend


@pytest.fixture
def make_sleepy_reference() -> Callable[[float], SleepyReference]:
    return SleepyReference
