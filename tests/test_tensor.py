# tests/test_tensor.py
"""Unit tests for op_algebra.tensor.

This module verifies:
- The Kronecker identity to_matrix(A ⊗ B) == kron(A, B) and matching apply.
- The A = [[1, 2], [3, 4]], B = [[0, 1], [1, 0]] scenario.
- Rectangular factors, solves and the in-place entry points for vectors and blocks.
- Three-factor products cached with cache_internals.
- Cache requirements, cache_self vs. cache_internals with function children.
- Adjoint distribution and cache retention rules.
- tensor_product folding and the sparse conversion.
"""

from __future__ import annotations

from typing import Any

import numpy as np
import pytest
from scipy.sparse import issparse

from op_algebra import (
    CacheNotReadyError,
    DimensionMismatchError,
    FunctionOperator,
    MatrixOperator,
    TensorProductOperator,
    cache_internals,
    cache_operator,
    tensor_product,
    update_coefficients,
)

A = np.array([[1.0, 2.0], [3.0, 4.0]])
B = np.array([[0.0, 1.0], [1.0, 0.0]])

# -------------------------------------------------------------------
# Kronecker identity
# -------------------------------------------------------------------

def test_scenario_matches_kron() -> None:
    """tensor(A, B) materializes to kron(A, B) and applies like it."""
    op = tensor_product(A, B)
    u = np.array([1.0, 2.0, 3.0, 4.0])

    assert op.shape == (4, 4)
    np.testing.assert_allclose(op.to_matrix(), np.kron(A, B))
    np.testing.assert_allclose(op.apply(u), np.kron(A, B) @ u)
    np.testing.assert_allclose(op.apply(u), [10.0, 7.0, 22.0, 15.0])

def test_rectangular_factors(rng: np.random.Generator) -> None:
    """Shapes multiply and apply agrees with kron for rectangular factors."""
    outer = rng.standard_normal((3, 2))
    inner = rng.standard_normal((2, 4))
    op = TensorProductOperator(outer, inner)
    u = rng.standard_normal(8)

    assert op.shape == (6, 8)
    np.testing.assert_allclose(op.apply(u), np.kron(outer, inner) @ u)

def test_solve_matches_kron(rng: np.random.Generator) -> None:
    """solve agrees with a dense solve of kron(outer, inner)."""
    outer = rng.standard_normal((3, 3)) + 3 * np.eye(3)
    inner = rng.standard_normal((2, 2)) + 2 * np.eye(2)
    op = tensor_product(outer, inner)
    u = rng.standard_normal(6)

    np.testing.assert_allclose(
        op.solve(u), np.linalg.solve(np.kron(outer, inner), u)
    )

def test_operand_validation_and_blocks() -> None:
    """Vectors must have cols(L) entries; 2D blocks are applied per column."""
    op = tensor_product(A, B)
    with pytest.raises(DimensionMismatchError):
        _ = op.apply(np.ones(3))
    with pytest.raises(DimensionMismatchError, match="1D operand"):
        _ = op.apply(np.ones((4, 2, 2)))
    cached = cache_operator(op, np.ones((4, 2)))
    with pytest.raises(DimensionMismatchError, match="trailing shape"):
        cached.apply_into(np.empty((4, 3)), np.ones((4, 2)))

    block = np.arange(8.0).reshape(4, 2)
    np.testing.assert_allclose(op.apply(block), np.kron(A, B) @ block)

# -------------------------------------------------------------------
# In-place entry points and caching
# -------------------------------------------------------------------

def test_in_place_apply_requires_cache() -> None:
    """apply_into raises CacheNotReadyError until cached."""
    op = tensor_product(A, B)
    assert not op.is_cache_set
    with pytest.raises(CacheNotReadyError):
        op.apply_into(np.empty(4), np.ones(4))

def test_cached_apply_into_plain_and_scaled(rng: np.random.Generator) -> None:
    """apply_into matches kron @ u, and alpha/beta scaling."""
    outer = rng.standard_normal((3, 2))
    inner = rng.standard_normal((2, 4))
    u = rng.standard_normal(8)
    op = cache_operator(TensorProductOperator(outer, inner), u)
    k = np.kron(outer, inner)

    assert op.cache is not None
    assert op.cache.shape == (2, 2)
    v = np.empty(6)
    out = op.apply_into(v, u)
    assert out is v
    np.testing.assert_allclose(v, k @ u)

    v_old = rng.standard_normal(6)
    v = v_old.copy()
    op.apply_into(v, u, 0.5, 2.0)
    np.testing.assert_allclose(v, 0.5 * (k @ u) + 2.0 * v_old)

def test_cached_solves(rng: np.random.Generator) -> None:
    """solve_into and solve_inplace agree with the dense solve."""
    outer = rng.standard_normal((2, 2)) + 2 * np.eye(2)
    inner = rng.standard_normal((3, 3)) + 3 * np.eye(3)
    u = rng.standard_normal(6)
    op = cache_operator(tensor_product(outer, inner), u)
    expected = np.linalg.solve(np.kron(outer, inner), u)

    v = np.empty(6)
    op.solve_into(v, u)
    np.testing.assert_allclose(v, expected)

    w = u.copy()
    op.solve_inplace(w)
    np.testing.assert_allclose(w, expected)

def test_cache_internals_caches_function_children(
    iip_diagonal_op: FunctionOperator, oop_diagonal_op: FunctionOperator
) -> None:
    """cache_internals caches the product and its function-backed factors."""
    u = np.linspace(1.0, 2.0, 16)
    op = TensorProductOperator(oop_diagonal_op, iip_diagonal_op)

    shallow = cache_operator(op, u)
    assert shallow.cache is not None
    assert not shallow.is_cache_set

    deep = cache_internals(op, u)
    assert deep.is_cache_set
    assert deep.inner.cache.shape == (4, 4)
    assert deep.outer.cache.shape == (4, 4)

    k = np.kron(oop_diagonal_op.to_matrix(), iip_diagonal_op.to_matrix())
    v_old = np.ones(16)
    v = v_old.copy()
    deep.apply_into(v, u, 2.0, -1.0)
    np.testing.assert_allclose(v, 2.0 * (k @ u) - v_old)

def test_nested_tensor_product(rng: np.random.Generator) -> None:
    """Three-factor products fold left; the outer factor sees 2D blocks."""
    a = rng.standard_normal((2, 2)) + 2 * np.eye(2)
    b = rng.standard_normal((3, 3)) + 3 * np.eye(3)
    c = rng.standard_normal((2, 2)) + 2 * np.eye(2)
    u = rng.standard_normal(12)

    op = tensor_product(a, b, c)
    assert isinstance(op.outer, TensorProductOperator)
    k = np.kron(np.kron(a, b), c)
    np.testing.assert_allclose(op.apply(u), k @ u)
    np.testing.assert_allclose(op.solve(k @ u), u)

def test_cached_block_apply_and_solve(rng: np.random.Generator) -> None:
    """A 2D block gets one cache slice per column for the in-place calls."""
    outer = rng.standard_normal((2, 2)) + 2 * np.eye(2)
    inner = rng.standard_normal((3, 3)) + 3 * np.eye(3)
    block = rng.standard_normal((6, 4))
    op = cache_operator(tensor_product(outer, inner), block)
    k = np.kron(outer, inner)

    assert op.cache.shape == (4, 3, 2)
    v = np.empty((6, 4))
    op.apply_into(v, block)
    np.testing.assert_allclose(v, k @ block)

    v_old = rng.standard_normal((6, 4))
    v = v_old.copy()
    op.apply_into(v, block, -1.0, 0.5)
    np.testing.assert_allclose(v, -(k @ block) + 0.5 * v_old)

    expected = np.linalg.solve(k, block)
    x = np.empty((6, 4))
    op.solve_into(x, block)
    np.testing.assert_allclose(x, expected)

    w = block.copy()
    op.solve_inplace(w)
    np.testing.assert_allclose(w, expected)

    with pytest.raises(CacheNotReadyError):
        op.apply_into(np.empty(6), block[:, 0])

def test_three_factor_in_place_after_cache_internals(
    rng: np.random.Generator,
) -> None:
    """cache_internals readies every level of a three-factor product."""
    a = rng.standard_normal((2, 2)) + 2 * np.eye(2)
    b = rng.standard_normal((3, 3)) + 3 * np.eye(3)
    c = rng.standard_normal((2, 2)) + 2 * np.eye(2)
    u = rng.standard_normal(12)
    k = np.kron(np.kron(a, b), c)

    op = cache_internals(tensor_product(a, b, c), u)
    assert op.is_cache_set
    assert op.cache.shape == (2, 6)
    assert op.outer.cache.shape == (2, 3, 2)

    v = np.empty(12)
    assert op.apply_into(v, u) is v
    np.testing.assert_allclose(v, k @ u)

    v_old = rng.standard_normal(12)
    v = v_old.copy()
    op.apply_into(v, u, 2.0, 3.0)
    np.testing.assert_allclose(v, 2.0 * (k @ u) + 3.0 * v_old)

    rhs = k @ u
    x = np.empty(12)
    op.solve_into(x, rhs)
    np.testing.assert_allclose(x, u)

    w = rhs.copy()
    op.solve_inplace(w)
    np.testing.assert_allclose(w, u)

def test_three_factor_cache_operator_is_shallow() -> None:
    """cache_operator on a three-factor product leaves the nested product bare."""
    op = cache_operator(tensor_product(A, B, np.eye(2)), np.ones(8))
    assert op.cache is not None
    assert op.outer.cache is None
    assert not op.is_cache_set
    with pytest.raises(CacheNotReadyError):
        op.apply_into(np.empty(8), np.ones(8))

# -------------------------------------------------------------------
# Adjoint / transpose
# -------------------------------------------------------------------

@pytest.mark.adjoint
def test_adjoint_distributes_over_factors() -> None:
    """adjoint(A ⊗ B) == A^H ⊗ B^H and is an involution."""
    op = tensor_product(A, B)
    adj = op.adjoint()
    np.testing.assert_allclose(adj.to_matrix(), np.kron(A, B).T)
    np.testing.assert_allclose(adj.adjoint().to_matrix(), np.kron(A, B))

@pytest.mark.adjoint
def test_adjoint_cache_retention(rng: np.random.Generator) -> None:
    """The cache survives only for a square inner factor and a matching shape."""
    square = cache_operator(tensor_product(A, B), np.ones(4))
    assert square.adjoint().cache is square.cache

    outer = rng.standard_normal((3, 2))
    inner = rng.standard_normal((2, 2))
    rect = cache_operator(TensorProductOperator(outer, inner), np.ones(4))
    assert rect.adjoint().cache is None

    inner_rect = cache_operator(
        TensorProductOperator(np.eye(2), rng.standard_normal((3, 2))), np.ones(4)
    )
    assert inner_rect.adjoint().cache is None

# -------------------------------------------------------------------
# Construction and conversion
# -------------------------------------------------------------------

def test_single_operand_is_returned_or_wrapped() -> None:
    """tensor_product of one operand returns it (matrices are wrapped)."""
    m = MatrixOperator(A)
    assert tensor_product(m) is m
    assert isinstance(tensor_product(A), MatrixOperator)

def test_to_sparse_and_traits() -> None:
    """to_sparse is scipy.sparse.kron; traits combine both factors."""
    op = tensor_product(A, B)
    sparse = op.to_sparse()
    assert issparse(sparse)
    np.testing.assert_allclose(sparse.toarray(), np.kron(A, B))
    assert op.is_linear
    assert op.has_adjoint
    assert op.has_solve
    assert not op.iszero
    assert tensor_product(np.zeros((2, 2)), B).iszero
    assert op.opnorm(2) == pytest.approx(np.linalg.norm(np.kron(A, B), 2))

def test_update_propagates_to_factors() -> None:
    """update_coefficients reaches matrix update rules of both factors."""
    base = np.array([[1.0, 0.0], [0.0, 2.0]])

    def update(a: Any, u: Any, p: Any, t: Any) -> Any:  # noqa: ARG001
        a[...] = t * base
        return a

    op = TensorProductOperator(
        MatrixOperator(base.copy(), update_func=update), MatrixOperator(B)
    )
    assert not op.is_constant
    updated = update_coefficients(op, None, None, 3.0)
    assert updated.shape == op.shape
    np.testing.assert_allclose(updated.to_matrix(), np.kron(3.0 * base, B))
