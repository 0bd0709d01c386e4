from __future__ import annotations

from typing import Any

import numpy as np


def matrix_view(flat: np.ndarray, *, offset: int, order: str, rows: int, cols: int, ld: int) -> np.ndarray:
    """Return a writable ``rows x cols`` view of a strided matrix stored in ``flat``."""
    if order == "column":
        return flat[offset : offset + cols * ld].reshape(cols, ld)[:, :rows].T
    return flat[offset : offset + rows * ld].reshape(rows, ld)[:, :cols]


def to_row_major(order: str, uplo: str, trans_a: str) -> tuple[str, str]:
    """Row-major ``(uplo, trans_a)`` computing the same update as the given layout.

    A column-major matrix read as row-major is its transpose, which swaps the
    stored triangle of C and the transposition of A.
    """
    if order == "row":
        return uplo, trans_a
    return ("lower" if uplo == "upper" else "upper"), ("t" if trans_a == "n" else "n")


def triangle_mask(n: int, uplo: str) -> np.ndarray:
    ones = np.ones((n, n), dtype=bool)
    return np.triu(ones) if uplo == "upper" else np.tril(ones)


def syrk_reference(
    *,
    order: str,
    uplo: str,
    trans_a: str,
    n: int,
    k: int,
    alpha: Any,
    a: np.ndarray,
    off_a: int,
    lda: int,
    beta: Any,
    c: np.ndarray,
    off_c: int,
    ldc: int,
) -> None:
    """Host SYRK on flat buffers; updates the ``uplo`` triangle of C in place.

    Complex inputs use the symmetric product ``op(A) @ op(A).T`` (no conjugation).
    """
    a_rows, a_cols = (n, k) if trans_a == "n" else (k, n)
    a_mat = matrix_view(a, offset=off_a, order=order, rows=a_rows, cols=a_cols, ld=lda)
    c_mat = matrix_view(c, offset=off_c, order=order, rows=n, cols=n, ld=ldc)

    op_a = a_mat if trans_a == "n" else a_mat.T
    updated = alpha * (op_a @ op_a.T) + beta * c_mat
    np.copyto(c_mat, updated.astype(c.dtype, copy=False), where=triangle_mask(n, uplo))
