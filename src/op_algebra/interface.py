"""
Function-style entry points.

Solver code written against the generic interface calls these instead of the
methods so that bare NumPy / SciPy sparse matrices and operators can be mixed
freely:

    v = apply(L, u)
    apply_into(v, L, u, alpha, beta)
    L = update_coefficients(L, u, p, t)
    L = cache_operator(L, u)

Operators are values: the update and cache entry points return the new
operator, and callers must rebind it.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

import numpy as np

from . import _linalg
from .base import AbstractOperator
from .basic import as_operator

if TYPE_CHECKING:
    from numpy.typing import NDArray


def apply(op: Any, u: NDArray[Any]) -> NDArray[Any]:
    """Return ``op @ u``."""
    if isinstance(op, AbstractOperator):
        return op.apply(u)
    return _linalg.matmul(op, u)


def apply_into(
    v: NDArray[Any],
    op: Any,
    u: NDArray[Any],
    alpha: Any = None,
    beta: Any = None,
) -> NDArray[Any]:
    """Compute ``v <- op @ u`` or ``v <- alpha * (op @ u) + beta * v``.

    Returns:
        ``v``.
    """
    if isinstance(op, AbstractOperator):
        return op.apply_into(v, u, alpha, beta)
    return _linalg.mul_into(v, op, u, alpha, beta)


def solve(op: Any, u: NDArray[Any]) -> NDArray[Any]:
    """Return ``op \\ u``."""
    if isinstance(op, AbstractOperator):
        return op.solve(u)
    return _linalg.ldiv(op, u)


def solve_into(v: NDArray[Any], op: Any, u: NDArray[Any]) -> NDArray[Any]:
    """Compute ``v <- op \\ u``."""
    if isinstance(op, AbstractOperator):
        return op.solve_into(v, u)
    return _linalg.ldiv_into(v, op, u)


def solve_inplace(op: Any, u: NDArray[Any]) -> NDArray[Any]:
    """Overwrite ``u`` with ``op \\ u``."""
    if isinstance(op, AbstractOperator):
        return op.solve_inplace(u)
    return _linalg.ldiv_inplace(op, u)


def update_coefficients(op: Any, u: Any, p: Any, t: Any) -> Any:
    """
    Refresh ``op`` at state ``u``, parameter ``p`` and time ``t``.

    Composite operators recurse into their children in order. Shape and
    capability traits never change.

    Args:
        op: Operator or bare matrix.
        u: Current state.
        p: Parameter.
        t: Time.

    Returns:
        The updated operator (bare matrices are returned unchanged).
    """
    if isinstance(op, AbstractOperator):
        return op.update_coefficients(u, p, t)
    return op


def cache_operator(op: Any, u: NDArray[Any]) -> AbstractOperator:
    """Allocate the scratch buffers ``op`` itself needs for operands like ``u``.

    Children are not visited; see :func:`cache_internals`.
    """
    return as_operator(op).cache_self(u)


def cache_internals(op: Any, u: NDArray[Any]) -> AbstractOperator:
    """Cache ``op`` (if not already cached) and every descendant operator."""
    return as_operator(op).cache_internals(u)


def to_matrix(op: Any) -> Any:
    """Materialize ``op`` as a dense or sparse matrix."""
    if isinstance(op, AbstractOperator):
        return op.to_matrix()
    return op


def to_sparse(op: Any) -> Any:
    """Materialize ``op`` as a CSR matrix."""
    if isinstance(op, AbstractOperator):
        return op.to_sparse()
    return _linalg.to_sparse(op)


def adjoint(op: Any) -> Any:
    """Return the conjugate transpose of an operator or matrix."""
    if isinstance(op, AbstractOperator):
        return op.adjoint()
    return _linalg.adjoint_matrix(op, conjugate=True)


def transpose(op: Any) -> Any:
    """Return the transpose of an operator or matrix."""
    if isinstance(op, AbstractOperator):
        return op.transpose()
    return _linalg.adjoint_matrix(op, conjugate=False)


def opnorm(op: Any, p: Any = 2) -> float:
    """Return the induced ``p``-norm."""
    if isinstance(op, AbstractOperator):
        return op.opnorm(p)
    return float(np.linalg.norm(_linalg.to_dense(op), p))
