from __future__ import annotations

import itertools
import os
from collections.abc import Iterable
from typing import Any, Literal

import attrs
import numpy as np

Order = Literal["row", "column"]
Uplo = Literal["upper", "lower"]
Transpose = Literal["n", "t"]

ORDERS: tuple[str, ...] = ("column", "row")
UPLOS: tuple[str, ...] = ("upper", "lower")
TRANSPOSES: tuple[str, ...] = ("n", "t")


@attrs.define(frozen=True, slots=True)
class ElementType:
    """Per-variant traits shared by the single generic benchmark case."""

    key: str
    name: str
    dtype: str
    is_complex: bool
    is_double: bool

    @property
    def np_dtype(self) -> np.dtype:
        return np.dtype(self.dtype)

    @property
    def itemsize(self) -> int:
        return self.np_dtype.itemsize

    @property
    def op_factor(self) -> int:
        # Multiply-adds per pair of elements: one for real, four for complex.
        return 4 if self.is_complex else 1

    @property
    def function_name(self) -> str:
        return f"{self.key}syrk"

    def convert_multiplier(self, value: complex) -> Any:
        if self.is_complex:
            return self.np_dtype.type(complex(value))
        return self.np_dtype.type(complex(value).real)

    def identity(self) -> Any:
        return self.np_dtype.type(1)

    def format_value(self, value: Any) -> str:
        v = complex(value)
        if self.is_complex:
            return f"({v.real:g},{v.imag:g})"
        return f"{v.real:g}"


ELEM_TYPES: dict[str, ElementType] = {
    "s": ElementType(key="s", name="real-single", dtype="float32", is_complex=False, is_double=False),
    "d": ElementType(key="d", name="real-double", dtype="float64", is_complex=False, is_double=True),
    "c": ElementType(key="c", name="complex-single", dtype="complex64", is_complex=True, is_double=False),
    "z": ElementType(key="z", name="complex-double", dtype="complex128", is_complex=True, is_double=True),
}


def _check_choice(choices: tuple[str, ...]):
    def _validate(_inst: Any, attribute: attrs.Attribute, value: str) -> None:
        if value not in choices:
            raise ValueError(f"Invalid {attribute.name}={value!r}. Expected one of {list(choices)}")

    return _validate


def _check_non_negative(_inst: Any, attribute: attrs.Attribute, value: int) -> None:
    if value < 0:
        raise ValueError(f"{attribute.name} must be >= 0, got {value}")


def _check_positive(_inst: Any, attribute: attrs.Attribute, value: int) -> None:
    if value < 1:
        raise ValueError(f"{attribute.name} must be >= 1, got {value}")


@attrs.define(frozen=True, slots=True)
class ProblemParameters:
    """One SYRK problem: ``C = alpha * op(A) * op(A)^T + beta * C`` on the ``uplo`` triangle.

    ``lda``/``ldc`` of 0 select the tightest legal leading dimension. Offsets are
    in elements and apply to the device buffers only.
    """

    n: int = attrs.field(validator=_check_positive)
    k: int = attrs.field(validator=_check_positive)
    order: Order = attrs.field(default="column", validator=_check_choice(ORDERS))
    uplo: Uplo = attrs.field(default="upper", validator=_check_choice(UPLOS))
    trans_a: Transpose = attrs.field(default="n", validator=_check_choice(TRANSPOSES))
    lda: int = attrs.field(default=0, validator=_check_non_negative)
    ldc: int = attrs.field(default=0, validator=_check_non_negative)
    off_a: int = attrs.field(default=0, validator=_check_non_negative)
    off_c: int = attrs.field(default=0, validator=_check_non_negative)
    alpha: complex = attrs.field(default=1.0, converter=complex)
    beta: complex = attrs.field(default=1.0, converter=complex)

    def __attrs_post_init__(self) -> None:
        min_lda = self.min_lda
        if self.lda == 0:
            object.__setattr__(self, "lda", min_lda)
        elif self.lda < min_lda:
            raise ValueError(f"lda={self.lda} is below the minimum {min_lda} for {self.to_axis_value()}")
        if self.ldc == 0:
            object.__setattr__(self, "ldc", self.n)
        elif self.ldc < self.n:
            raise ValueError(f"ldc={self.ldc} is below the minimum {self.n}")

    @property
    def a_shape(self) -> tuple[int, int]:
        """Logical (rows, cols) of A as stored."""
        return (self.n, self.k) if self.trans_a == "n" else (self.k, self.n)

    @property
    def min_lda(self) -> int:
        rows, cols = self.a_shape
        return rows if self.order == "column" else cols

    @property
    def a_storage(self) -> tuple[int, int]:
        """(rows, columns) of the host buffer backing A, leading dimension included."""
        rows, cols = self.a_shape
        return (self.lda, cols) if self.order == "column" else (rows, self.lda)

    @property
    def c_storage(self) -> tuple[int, int]:
        return (self.ldc, self.n) if self.order == "column" else (self.n, self.ldc)

    @property
    def problem_size(self) -> int:
        return self.n * self.n * self.k

    def to_axis_value(self) -> str:
        return (
            f"{self.order}/{self.uplo}/{self.trans_a}"
            f"/N{self.n}/K{self.k}/lda{self.lda}/ldc{self.ldc}/offA{self.off_a}/offC{self.off_c}"
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "order": self.order,
            "uplo": self.uplo,
            "trans_a": self.trans_a,
            "n": self.n,
            "k": self.k,
            "lda": self.lda,
            "ldc": self.ldc,
            "off_a": self.off_a,
            "off_c": self.off_c,
            "alpha": [self.alpha.real, self.alpha.imag],
            "beta": [self.beta.real, self.beta.imag],
        }


@attrs.define(frozen=True, slots=True)
class BenchSettings:
    # Number of equally sized buffers assumed to share global memory when gating.
    buffer_divisor: int = attrs.field(default=3, validator=_check_positive)
    repeats: int = attrs.field(default=1, validator=_check_positive)
    seed: int = 12345
    use_alpha: bool = True
    use_beta: bool = True
    allow_row_major: bool = False

    def to_dict(self) -> dict[str, Any]:
        return attrs.asdict(self)


def _layout_grid(n: int, k: int) -> list[ProblemParameters]:
    return [
        ProblemParameters(n=n, k=k, order=order, uplo=uplo, trans_a=trans)  # type: ignore[arg-type]
        for order, uplo, trans in itertools.product(ORDERS, UPLOS, TRANSPOSES)
    ]


# Named parameter sets; the CLI selects one (or "all") per invocation.
PARAM_SETS: dict[str, list[ProblemParameters]] = {
    "smoke": [
        ProblemParameters(n=64, k=32),
        ProblemParameters(n=64, k=32, order="row", uplo="lower", trans_a="t"),
    ],
    "square": [ProblemParameters(n=n, k=n, alpha=1.5, beta=0.5) for n in (512, 1024, 2048, 4096)],
    "rect": [
        ProblemParameters(n=512, k=256),
        ProblemParameters(n=1024, k=256),
        ProblemParameters(n=2048, k=512),
        ProblemParameters(n=4096, k=1024),
        ProblemParameters(n=256, k=2048, trans_a="t"),
    ],
    "layouts": _layout_grid(512, 256),
    "offsets": [
        ProblemParameters(n=500, k=300, lda=512, ldc=512, off_a=1, off_c=3),
        ProblemParameters(n=500, k=300, order="row", trans_a="t", lda=512, ldc=520, off_a=7, off_c=0),
        ProblemParameters(n=1000, k=500, uplo="lower", lda=1024, ldc=1024, off_a=13, off_c=17),
    ],
}


def iter_params(param_set: str) -> Iterable[ProblemParameters]:
    if param_set == "all":
        seen: set[ProblemParameters] = set()
        for named in PARAM_SETS.values():
            for p in named:
                if p not in seen:
                    seen.add(p)
                    yield p
        return

    if param_set not in PARAM_SETS:
        raise KeyError(f"Unknown param_set={param_set!r}. Known: {sorted(PARAM_SETS)}")
    yield from PARAM_SETS[param_set]


def iter_elem_types(elem: str) -> Iterable[ElementType]:
    if elem == "all":
        return ELEM_TYPES.values()
    if elem not in ELEM_TYPES:
        raise KeyError(f"Unknown element type {elem!r}. Known: {sorted(ELEM_TYPES)}")
    return (ELEM_TYPES[elem],)


def env_int(name: str) -> int | None:
    """Read an optional integer override from the environment."""
    raw = os.environ.get(name)
    if raw is None or raw.strip() == "":
        return None
    try:
        return int(raw)
    except ValueError as e:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from e
