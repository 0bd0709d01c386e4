from __future__ import annotations

import math
from typing import Any

import attrs
import numpy as np

from .config import BenchSettings, ElementType, ProblemParameters

# Ceiling on generated element magnitudes; the overflow bound only tightens it.
MAX_ELEMENT = 100.0
MAX_MULTIPLIER = 100.0


@attrs.define(slots=True)
class HostMatrices:
    a: np.ndarray
    c: np.ndarray
    backup_c: np.ndarray
    alpha: Any
    beta: Any

    def restore_c(self) -> None:
        np.copyto(self.c, self.backup_c)


def element_bound(elem: ElementType, k: int, alpha: Any) -> float:
    """Largest magnitude for which ``|alpha| * k * x^2`` stays well inside the element range."""
    finfo = np.finfo(elem.np_dtype)
    scale = max(1.0, abs(complex(alpha)))
    return min(MAX_ELEMENT, math.sqrt(float(finfo.max) / (4.0 * k * scale)))


def random_values(rng: np.random.Generator, size: int, elem: ElementType, bound: float) -> np.ndarray:
    values = rng.uniform(-bound, bound, size)
    if elem.is_complex:
        values = values + 1j * rng.uniform(-bound, bound, size)
    return np.ascontiguousarray(values.astype(elem.np_dtype))


def random_multiplier(rng: np.random.Generator, elem: ElementType) -> Any:
    value = random_values(rng, 1, elem, MAX_MULTIPLIER)[0]
    if value == 0:
        return elem.identity()
    return value


def generate_inputs(elem: ElementType, params: ProblemParameters, settings: BenchSettings) -> HostMatrices:
    """Seeded A and C over their full storage; identical seeds give identical bits."""
    rng = np.random.default_rng(settings.seed)

    alpha = elem.convert_multiplier(params.alpha) if settings.use_alpha else random_multiplier(rng, elem)
    beta = elem.convert_multiplier(params.beta) if settings.use_beta else random_multiplier(rng, elem)

    bound = element_bound(elem, params.k, alpha)
    a_rows, a_cols = params.a_storage
    c_rows, c_cols = params.c_storage
    a = random_values(rng, a_rows * a_cols, elem, bound)
    c = random_values(rng, c_rows * c_cols, elem, bound)

    backup_c = c.copy()
    backup_c.flags.writeable = False
    return HostMatrices(a=a, c=c, backup_c=backup_c, alpha=alpha, beta=beta)
