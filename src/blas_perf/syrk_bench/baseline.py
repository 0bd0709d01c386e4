from __future__ import annotations

import logging
import time
from typing import Any, Protocol

from .config import BenchSettings, ElementType, ProblemParameters
from .matrices import HostMatrices
from .model import NOT_SUPPORTED, TimingResult
from .reference import syrk_reference

logger = logging.getLogger(__name__)


class ReferenceBackend(Protocol):
    name: str

    def syrk(self, **kwargs: Any) -> None: ...


class NumpyReference:
    name = "numpy"

    def syrk(self, **kwargs: Any) -> None:
        syrk_reference(**kwargs)


REFERENCES: tuple[str, ...] = ("numpy", "none")


def make_reference(name: str) -> ReferenceBackend | None:
    if name == "numpy":
        return NumpyReference()
    if name == "none":
        return None
    raise KeyError(f"Unknown reference backend {name!r}. Known: {list(REFERENCES)}")


def run_baseline(
    reference: ReferenceBackend | None,
    elem: ElementType,
    params: ProblemParameters,
    host: HostMatrices,
    settings: BenchSettings,
) -> TimingResult:
    """Best-of-``repeats`` host time, or ``NOT_SUPPORTED`` when no comparison is possible."""
    if reference is None:
        logger.info("%s: no reference backend configured, skipping baseline", elem.function_name)
        return NOT_SUPPORTED
    if params.order == "row" and not settings.allow_row_major:
        logger.warning("%s: Row major order is not allowed for the baseline", elem.function_name)
        return NOT_SUPPORTED

    best: int | None = None
    for _ in range(settings.repeats):
        host.restore_c()
        start = time.perf_counter_ns()
        reference.syrk(
            order=params.order,
            uplo=params.uplo,
            trans_a=params.trans_a,
            n=params.n,
            k=params.k,
            alpha=host.alpha,
            a=host.a,
            off_a=0,
            lda=params.lda,
            beta=host.beta,
            c=host.c,
            off_c=0,
            ldc=params.ldc,
        )
        elapsed = time.perf_counter_ns() - start
        best = elapsed if best is None else min(best, elapsed)

    assert best is not None
    return TimingResult.of(best)
