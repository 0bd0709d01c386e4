from __future__ import annotations

import itertools

import numpy as np
import pytest

from blas_perf.syrk_bench.reference import matrix_view, syrk_reference, to_row_major, triangle_mask


def _naive(a: np.ndarray, c: np.ndarray, alpha: complex, beta: complex, uplo: str) -> np.ndarray:
    n = c.shape[0]
    out = c.copy()
    for i in range(n):
        for j in range(n):
            if (uplo == "upper" and i <= j) or (uplo == "lower" and i >= j):
                out[i, j] = alpha * np.dot(a[i, :], a[j, :]) + beta * c[i, j]
    return out


def test_matrix_view_column_and_row_major() -> None:
    flat = np.arange(12, dtype=np.float64)
    col = matrix_view(flat, offset=1, order="column", rows=2, cols=3, ld=3)
    assert col.tolist() == [[1, 4, 7], [2, 5, 8]]
    row = matrix_view(flat, offset=1, order="row", rows=2, cols=3, ld=4)
    assert row.tolist() == [[1, 2, 3], [5, 6, 7]]
    row[0, 0] = -1
    assert flat[1] == -1


@pytest.mark.parametrize("order,uplo,trans_a", list(itertools.product(("column", "row"), ("upper", "lower"), ("n", "t"))))
@pytest.mark.parametrize("dtype", [np.float64, np.complex128])
def test_reference_matches_naive_update(order: str, uplo: str, trans_a: str, dtype: type) -> None:
    rng = np.random.default_rng(7)
    n, k, lda, ldc, off_a, off_c = 5, 3, 6, 7, 2, 1
    a_rows, a_cols = (n, k) if trans_a == "n" else (k, n)
    a_outer = a_cols if order == "column" else a_rows
    a = rng.standard_normal(off_a + a_outer * lda).astype(dtype)
    c = rng.standard_normal(off_c + n * ldc).astype(dtype)
    if np.iscomplexobj(a):
        a = a + 1j * rng.standard_normal(a.size)
    alpha, beta = dtype(1.5), dtype(-0.25)

    a_mat = matrix_view(a, offset=off_a, order=order, rows=a_rows, cols=a_cols, ld=lda)
    op_a = a_mat if trans_a == "n" else a_mat.T
    c_before = matrix_view(c.copy(), offset=off_c, order=order, rows=n, cols=n, ld=ldc).copy()
    padding_before = c[:off_c].copy()

    syrk_reference(
        order=order, uplo=uplo, trans_a=trans_a, n=n, k=k, alpha=alpha,
        a=a, off_a=off_a, lda=lda, beta=beta, c=c, off_c=off_c, ldc=ldc,
    )

    c_after = matrix_view(c, offset=off_c, order=order, rows=n, cols=n, ld=ldc)
    np.testing.assert_allclose(c_after, _naive(op_a, c_before, alpha, beta, uplo), rtol=1e-12, atol=1e-12)
    assert np.array_equal(c[:off_c], padding_before)


@pytest.mark.parametrize("uplo,trans_a", list(itertools.product(("upper", "lower"), ("n", "t"))))
def test_column_major_maps_onto_row_major(uplo: str, trans_a: str) -> None:
    rng = np.random.default_rng(3)
    n, k = 6, 4
    lda = n if trans_a == "n" else k
    a = rng.standard_normal(n * k)
    c_col = rng.standard_normal(n * n)
    c_row = c_col.copy()

    syrk_reference(
        order="column", uplo=uplo, trans_a=trans_a, n=n, k=k, alpha=2.0,
        a=a, off_a=0, lda=lda, beta=0.5, c=c_col, off_c=0, ldc=n,
    )
    row_uplo, row_trans = to_row_major("column", uplo, trans_a)
    syrk_reference(
        order="row", uplo=row_uplo, trans_a=row_trans, n=n, k=k, alpha=2.0,
        a=a, off_a=0, lda=lda, beta=0.5, c=c_row, off_c=0, ldc=n,
    )
    np.testing.assert_allclose(c_col, c_row, rtol=1e-12, atol=1e-12)


def test_to_row_major_is_identity_for_row_major() -> None:
    assert to_row_major("row", "lower", "t") == ("lower", "t")
    assert to_row_major("column", "upper", "n") == ("lower", "t")


def test_triangle_mask() -> None:
    assert triangle_mask(3, "upper").sum() == 6
    assert triangle_mask(3, "lower")[2, 0]
    assert not triangle_mask(3, "upper")[2, 0]
