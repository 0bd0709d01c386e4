from __future__ import annotations

from .config import ElementType, ProblemParameters
from .model import GateDecision


def resource_ceiling(*, global_mem: int, max_alloc: int, buffer_divisor: int = 3) -> int:
    return min(global_mem // buffer_divisor, max_alloc)


def check_resources(
    *,
    global_mem: int,
    max_alloc: int,
    elem: ElementType,
    params: ProblemParameters,
    buffer_divisor: int = 3,
) -> GateDecision:
    """Admit the case iff ``N * K * itemsize`` stays strictly below the usable ceiling."""
    ceiling = resource_ceiling(global_mem=global_mem, max_alloc=max_alloc, buffer_divisor=buffer_divisor)
    required = params.n * params.k * elem.itemsize
    return GateDecision(admissible=required < ceiling, required_bytes=required, ceiling_bytes=ceiling)
