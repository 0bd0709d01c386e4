from __future__ import annotations

import logging
from typing import Any

from blas_perf.backends.base import AllocationError, DeviceBackend

from .baseline import ReferenceBackend, run_baseline
from .config import BenchSettings, ElementType, ProblemParameters
from .device import run_device
from .gate import check_resources
from .matrices import HostMatrices, generate_inputs
from .model import FAILED, CaseResult, CaseState
from .staging import DeviceBuffers, release_buffers, stage_inputs

logger = logging.getLogger(__name__)


def _format_ms(ns: int | None) -> str:
    return "NA" if ns is None else f"{ns / 1e6:.3f} ms"


class BenchmarkCase:
    """One SYRK benchmark for a single element type and parameter set.

    Drives ``created -> gated -> staged -> executed -> verdicted`` with early
    exits to ``skipped`` and ``fatal``. Device buffers live no longer than the
    case: use it as a context manager, or call :meth:`close`.
    """

    def __init__(
        self,
        backend: DeviceBackend,
        elem: ElementType,
        params: ProblemParameters,
        *,
        settings: BenchSettings | None = None,
        reference: ReferenceBackend | None = None,
    ) -> None:
        self.backend = backend
        self.elem = elem
        self.params = params
        self.settings = BenchSettings() if settings is None else settings
        self.reference = reference
        self.state: CaseState = "created"
        self.host: HostMatrices | None = None
        self.buffers = DeviceBuffers()
        self.result: CaseResult | None = None

    def __enter__(self) -> "BenchmarkCase":
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()

    def close(self) -> None:
        release_buffers(self.backend, self.buffers)

    def _finish(self, state: CaseState, **fields: Any) -> CaseResult:
        self.state = state
        self.result = CaseResult(problem_size=self.params.problem_size, op_factor=self.elem.op_factor, **fields)
        return self.result

    def run(self) -> CaseResult:
        if self.state != "created":
            raise RuntimeError(f"Benchmark case already ran (state={self.state!r})")

        name = self.elem.function_name
        label = self.params.to_axis_value()

        if self.elem.is_double and not self.backend.supports_double_precision():
            logger.warning("%s %s: device has no native double precision support, skipped", name, label)
            return self._finish("skipped", verdict="skipped", skip_reason="no_double_precision")

        gate = check_resources(
            global_mem=self.backend.available_global_mem_size(),
            max_alloc=self.backend.max_mem_alloc_size(),
            elem=self.elem,
            params=self.params,
            buffer_divisor=self.settings.buffer_divisor,
        )
        if not gate.admissible:
            logger.warning(
                "%s %s: skipped due to insufficient resources (%d bytes needed, ceiling %d)",
                name,
                label,
                gate.required_bytes,
                gate.ceiling_bytes,
            )
            return self._finish("skipped", verdict="skipped", skip_reason="insufficient_resources", gate=gate)
        self.state = "gated"

        queues = list(self.backend.command_queues())
        if not queues:
            logger.error("%s %s: backend %s exposes no command queue", name, label, self.backend.name)
            return self._finish("fatal", verdict="fatal", fatal_kind="allocation", gate=gate)

        self.host = generate_inputs(self.elem, self.params, self.settings)
        logger.debug(
            "%s %s: alpha=%s beta=%s",
            name,
            label,
            self.elem.format_value(self.host.alpha),
            self.elem.format_value(self.host.beta),
        )
        try:
            self.buffers = stage_inputs(self.backend, self.elem, self.params, self.host)
        except AllocationError:
            return self._finish("fatal", verdict="fatal", fatal_kind="allocation", gate=gate)
        self.state = "staged"

        baseline = run_baseline(self.reference, self.elem, self.params, self.host, self.settings)
        device = run_device(self.backend, queues[0], self.elem, self.params, self.host, self.buffers, self.settings)
        if not device.is_valid:
            return self._finish("fatal", verdict="fatal", fatal_kind="execution", gate=gate, baseline=baseline, device=FAILED)
        self.state = "executed"

        verdict = "passed"
        if baseline.is_valid:
            assert baseline.ns is not None and device.ns is not None
            if device.ns >= baseline.ns:
                verdict = "regressed"
                logger.warning(
                    "%s %s: the %s version is slower (%s vs baseline %s)",
                    name,
                    label,
                    self.backend.name,
                    _format_ms(device.ns),
                    _format_ms(baseline.ns),
                )
        else:
            logger.info("%s %s: no baseline comparison available", name, label)

        result = self._finish("verdicted", verdict=verdict, gate=gate, baseline=baseline, device=device)
        logger.info(
            "%s %s: device %s, baseline %s, verdict=%s",
            name,
            label,
            _format_ms(device.ns),
            _format_ms(baseline.ns),
            verdict,
        )
        return result


def run_case(
    backend: DeviceBackend,
    elem: ElementType,
    params: ProblemParameters,
    *,
    settings: BenchSettings | None = None,
    reference: ReferenceBackend | None = None,
) -> CaseResult:
    with BenchmarkCase(backend, elem, params, settings=settings, reference=reference) as case:
        return case.run()
