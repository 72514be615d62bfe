"""
Capability traits.

Generic solver code asks an operator what it supports before choosing a code
path. Every query below answers for:

- operators (:class:`op_algebra.base.AbstractOperator`), by reading the
  operator's own trait property,
- bare NumPy / SciPy sparse matrices, which support everything,
- factorization-like objects, by duck typing on ``solve``, ``solve_into``,
  ``adjoint`` and ``@``.

Composite operators combine their children's answers with
:func:`all_children`.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

import numpy as np

from . import _linalg
from .base import AbstractOperator
from .factorizations import AdjointFactorization, CholeskyFactorization

if TYPE_CHECKING:
    from collections.abc import Callable


def is_constant(obj: Any) -> bool:
    """True if ``update_coefficients`` cannot change ``obj``."""
    if isinstance(obj, AbstractOperator):
        return obj.is_constant
    return True


def has_adjoint(obj: Any) -> bool:
    """True if ``obj`` has a usable adjoint."""
    if isinstance(obj, AbstractOperator):
        return obj.has_adjoint
    if _linalg.is_matrix(obj) or np.ndim(obj) == 1:
        return True
    return callable(getattr(obj, "adjoint", None))


def has_multiply(obj: Any) -> bool:
    """True if ``obj @ u`` is supported."""
    if isinstance(obj, AbstractOperator):
        return obj.has_multiply
    if _linalg.is_matrix(obj):
        return True
    return callable(getattr(type(obj), "__matmul__", None))


def has_in_place_multiply(obj: Any) -> bool:
    """True if ``v <- obj @ u`` can be written into a caller buffer."""
    if isinstance(obj, AbstractOperator):
        return obj.has_in_place_multiply
    return has_multiply(obj)


def has_solve(obj: Any) -> bool:
    """True if out-of-place left division is supported."""
    if isinstance(obj, AbstractOperator):
        return obj.has_solve
    if _linalg.is_matrix(obj):
        return True
    return callable(getattr(obj, "solve", None))


def has_in_place_solve(obj: Any) -> bool:
    """True if left division can write into a caller buffer."""
    if isinstance(obj, AbstractOperator):
        return obj.has_in_place_solve
    if _linalg.is_matrix(obj):
        return True
    return callable(getattr(obj, "solve_into", None))


def shape(obj: Any) -> tuple[int, int]:
    """Return ``(rows, cols)`` of an operator, matrix or factorization."""
    rows, cols = obj.shape
    return (int(rows), int(cols))


def is_square(obj: Any) -> bool:
    """True if rows == cols."""
    rows, cols = shape(obj)
    return rows == cols


def is_linear(obj: Any) -> bool:
    """True for linear maps; affine operators answer False."""
    if isinstance(obj, AbstractOperator):
        return obj.is_linear
    return True


def is_cache_set(obj: Any) -> bool:
    """True if ``obj`` needs no further cache allocation."""
    if isinstance(obj, AbstractOperator):
        return obj.is_cache_set
    return True


def _dense_equals_reflection(obj: Any, *, conjugate: bool) -> bool:
    if not is_square(obj):
        return False
    dense = _linalg.to_dense(obj)
    reflected = dense.conj().T if conjugate else dense.T
    return bool(np.array_equal(dense, reflected))


def _is_cholesky(obj: Any) -> bool:
    if isinstance(obj, AdjointFactorization):
        return _is_cholesky(obj.parent)
    return isinstance(obj, CholeskyFactorization)


def issymmetric(obj: Any) -> bool:
    """True if ``obj`` equals its transpose."""
    if isinstance(obj, AbstractOperator):
        return obj.issymmetric
    if _linalg.is_matrix(obj):
        return _dense_equals_reflection(obj, conjugate=False)
    return _is_cholesky(obj) and _linalg.is_real_dtype(obj.dtype)


def ishermitian(obj: Any) -> bool:
    """True if ``obj`` equals its conjugate transpose."""
    if isinstance(obj, AbstractOperator):
        return obj.ishermitian
    if _linalg.is_matrix(obj):
        return _dense_equals_reflection(obj, conjugate=True)
    return _is_cholesky(obj)


def isposdef(obj: Any) -> bool:
    """True if ``obj`` is Hermitian positive definite."""
    if isinstance(obj, AbstractOperator):
        return obj.isposdef
    if _linalg.is_matrix(obj):
        if not ishermitian(obj):
            return False
        try:
            np.linalg.cholesky(_linalg.to_dense(obj))
        except np.linalg.LinAlgError:
            return False
        return True
    return _is_cholesky(obj)


def all_children(op: AbstractOperator, query: Callable[[Any], bool]) -> bool:
    """Forward a trait query to every child of a composite operator."""
    return all(query(child) for child in op.children)
