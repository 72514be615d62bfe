# tests/test_matrix.py
"""Unit tests for op_algebra.matrix.

This module verifies:
- Wrapping dense and sparse matrices: apply, solve and to_matrix identity.
- In-place application with and without (alpha, beta) scaling.
- Update rules: mutation of the wrapped matrix and the constant trait.
- Adjoint / transpose involution and refresh of time-dependent adjoints.
- Matrix-like delegation (indexing, iteration, len, np.asarray, copy).
- diagonal_operator construction.
"""

from __future__ import annotations

from typing import Any

import numpy as np
import pytest
import scipy.linalg
from scipy.sparse import csr_matrix, issparse

from op_algebra import DEFAULT_UPDATE_FUNC, MatrixOperator, diagonal_operator

# -------------------------------------------------------------------
# Application
# -------------------------------------------------------------------


def test_apply_and_solve_match_dense_matrix(well_conditioned: Any) -> None:
    """apply(wrap(A), u) == A @ u and solve(wrap(A), u) == solve(A, u)."""
    a = well_conditioned
    u = np.arange(1.0, a.shape[0] + 1)
    op = MatrixOperator(a)

    np.testing.assert_allclose(op.apply(u), a @ u)
    np.testing.assert_allclose(op @ u, a @ u)
    np.testing.assert_allclose(op.solve(u), scipy.linalg.solve(a, u))


def test_to_matrix_returns_wrapped_matrix(well_conditioned: Any) -> None:
    """to_matrix returns the wrapped matrix itself, not a copy."""
    op = MatrixOperator(well_conditioned)
    assert op.to_matrix() is well_conditioned


def test_sparse_apply_and_solve(well_conditioned: Any) -> None:
    """Sparse storage goes through scipy.sparse paths with the same results."""
    a = csr_matrix(well_conditioned)
    u = np.ones(a.shape[0])
    op = MatrixOperator(a)

    assert issparse(op.to_matrix())
    np.testing.assert_allclose(op.apply(u), well_conditioned @ u)
    np.testing.assert_allclose(op.solve(u), np.linalg.solve(well_conditioned, u))


def test_apply_into_plain_and_scaled(well_conditioned: Any) -> None:
    """apply_into writes A u, or alpha A u + beta v when scaled."""
    a = well_conditioned
    u = np.linspace(-1.0, 1.0, a.shape[0])
    op = MatrixOperator(a)

    v = np.empty(a.shape[0])
    out = op.apply_into(v, u)
    assert out is v
    np.testing.assert_allclose(v, a @ u)

    v_old = np.full(a.shape[0], 3.0)
    v = v_old.copy()
    op.apply_into(v, u, 2.0, -0.5)
    np.testing.assert_allclose(v, 2.0 * (a @ u) - 0.5 * v_old)


def test_solve_into_and_inplace(well_conditioned: Any) -> None:
    """solve_into and solve_inplace agree with the out-of-place solve."""
    op = MatrixOperator(well_conditioned)
    u = np.arange(well_conditioned.shape[0], dtype=float)
    expected = op.solve(u)

    v = np.zeros_like(u)
    op.solve_into(v, u)
    np.testing.assert_allclose(v, expected)

    w = u.copy()
    op.solve_inplace(w)
    np.testing.assert_allclose(w, expected)


def test_non_square_solve_is_least_squares() -> None:
    """Left division by a tall matrix is the least-squares solution."""
    a = np.array([[1.0, 0.0], [0.0, 1.0], [1.0, 1.0]])
    u = np.array([1.0, 2.0, 3.0])
    op = MatrixOperator(a)
    np.testing.assert_allclose(op.solve(u), np.linalg.lstsq(a, u, rcond=None)[0])


def test_list_input_is_coerced_and_1d_rejected() -> None:
    """Nested lists become 2D arrays; 1D input is not a matrix."""
    op = MatrixOperator([[1, 2], [3, 4]])
    assert op.shape == (2, 2)
    with pytest.raises(ValueError, match="2D matrix"):
        _ = MatrixOperator(np.ones(3))


# -------------------------------------------------------------------
# Update rules
# -------------------------------------------------------------------


def _time_scaled(base: np.ndarray) -> Any:
    def update(a: Any, u: Any, p: Any, t: Any) -> Any:  # noqa: ARG001
        a[...] = t * base
        return a

    return update


def test_update_coefficients_mutates_and_returns_self() -> None:
    """The update rule rewrites A in place; the same operator is returned."""
    base = np.array([[1.0, 2.0], [0.0, 1.0]])
    op = MatrixOperator(base.copy(), update_func=_time_scaled(base))

    assert not op.is_constant
    same = op.update_coefficients(None, None, 3.0)
    assert same is op
    np.testing.assert_allclose(op.to_matrix(), 3.0 * base)

    # latest (p, t) only
    op.update_coefficients(None, None, 0.5)
    np.testing.assert_allclose(op.to_matrix(), 0.5 * base)


def test_default_update_is_constant(well_conditioned: Any) -> None:
    """Operators with the default update rule are constant and unchanged."""
    op = MatrixOperator(well_conditioned.copy())
    assert op.update_func is DEFAULT_UPDATE_FUNC
    assert op.is_constant
    op.update_coefficients(np.ones(4), {"k": 1}, 10.0)
    np.testing.assert_array_equal(op.to_matrix(), well_conditioned)


# -------------------------------------------------------------------
# Adjoint / transpose
# -------------------------------------------------------------------


@pytest.mark.adjoint
def test_adjoint_involution_and_shape() -> None:
    """adjoint(adjoint(L)) == L and adjoint reverses the shape."""
    a = np.arange(6.0).reshape(2, 3)
    op = MatrixOperator(a)

    adj = op.adjoint()
    assert adj.shape == (3, 2)
    np.testing.assert_array_equal(adj.to_matrix(), a.T)
    np.testing.assert_array_equal(adj.adjoint().to_matrix(), a)
    np.testing.assert_array_equal(op.H.to_matrix(), op.T.to_matrix())


@pytest.mark.adjoint
def test_complex_adjoint_conjugates_transpose_does_not() -> None:
    """For complex storage adjoint conjugates and transpose does not."""
    a = np.array([[1 + 1j, 2.0], [0.0, 3 - 2j]])
    op = MatrixOperator(a)
    np.testing.assert_array_equal(op.adjoint().to_matrix(), a.conj().T)
    np.testing.assert_array_equal(op.transpose().to_matrix(), a.T)


@pytest.mark.adjoint
@pytest.mark.parametrize("dtype", [np.float64, np.complex128])
def test_adjoint_follows_parent_update(dtype: Any) -> None:
    """Updating the adjoint runs the parent rule and refreshes A^H."""
    base = np.array([[1.0, 2.0], [3.0, 4.0]], dtype=dtype)
    if np.issubdtype(dtype, np.complexfloating):
        base = base * (1 + 1j)
    op = MatrixOperator(base.copy(), update_func=_time_scaled(base))

    adj = op.adjoint().update_coefficients(None, None, 2.0)
    np.testing.assert_allclose(adj.to_matrix(), (2.0 * base).conj().T)
    np.testing.assert_allclose(op.to_matrix(), 2.0 * base)


def test_sparse_adjoint_update() -> None:
    """Sparse adjoints refresh through the shared data array."""
    base = csr_matrix(np.array([[2.0, 1.0], [0.0, 3.0]]))

    def update(a: Any, u: Any, p: Any, t: Any) -> Any:  # noqa: ARG001
        a.data[:] = t * base.data
        return a

    op = MatrixOperator(base.copy(), update_func=update)
    adj = op.adjoint().update_coefficients(None, None, 4.0)
    np.testing.assert_allclose(adj.to_matrix().toarray(), 4.0 * base.toarray().T)


# -------------------------------------------------------------------
# Matrix-like delegation
# -------------------------------------------------------------------


def test_indexing_iteration_and_array_protocol() -> None:
    """Element access, iteration, len and np.asarray delegate to A."""
    a = np.array([[1.0, 2.0], [3.0, 4.0]])
    op = MatrixOperator(a.copy())

    assert op[0, 1] == pytest.approx(2.0)
    op[1, 0] = 7.0
    assert op.to_matrix()[1, 0] == pytest.approx(7.0)
    assert len(op) == 2
    assert op.ndim == 2
    rows = list(op)
    np.testing.assert_array_equal(rows[0], [1.0, 2.0])
    np.testing.assert_array_equal(np.asarray(op), [[1.0, 2.0], [7.0, 4.0]])


def test_copy_and_copyto() -> None:
    """copy() owns new storage; copyto() overwrites values in place."""
    a = np.eye(2)
    op = MatrixOperator(a)
    dup = op.copy()
    dup[0, 0] = 5.0
    assert op[0, 0] == pytest.approx(1.0)

    same = op.copyto(np.full((2, 2), 9.0))
    assert same is op
    assert op.to_matrix() is a
    np.testing.assert_array_equal(a, np.full((2, 2), 9.0))


def test_traits_forward_to_matrix() -> None:
    """Symmetry and definiteness queries read the wrapped matrix."""
    spd = MatrixOperator(np.array([[2.0, 1.0], [1.0, 2.0]]))
    assert spd.issymmetric
    assert spd.ishermitian
    assert spd.isposdef
    assert spd.has_adjoint
    assert spd.has_solve
    assert spd.has_in_place_multiply

    skew = MatrixOperator(np.array([[0.0, 1.0], [-1.0, 0.0]]))
    assert not skew.issymmetric
    assert not skew.isposdef
    assert MatrixOperator(np.zeros((2, 2))).iszero


def test_opnorm_matches_numpy(well_conditioned: Any) -> None:
    """opnorm is the induced matrix norm."""
    op = MatrixOperator(well_conditioned)
    assert op.opnorm() == pytest.approx(np.linalg.norm(well_conditioned, 2))
    assert op.opnorm(1) == pytest.approx(np.linalg.norm(well_conditioned, 1))


# -------------------------------------------------------------------
# diagonal_operator
# -------------------------------------------------------------------


def test_diagonal_operator() -> None:
    """diagonal_operator wraps a sparse diag(u)."""
    d = np.array([1.0, 2.0, 4.0])
    op = diagonal_operator(d)
    u = np.array([1.0, 1.0, 0.5])

    assert issparse(op.to_matrix())
    np.testing.assert_allclose(op.apply(u), d * u)
    np.testing.assert_allclose(op.solve(u), u / d)
    np.testing.assert_allclose(op.to_sparse().toarray(), np.diag(d))
