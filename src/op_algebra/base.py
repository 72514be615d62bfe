"""
Abstract operator interface.

Every operator variant subclasses :class:`AbstractOperator` and overrides the
operations and capability traits it supports. The base class supplies:

- conservative trait defaults (nothing is supported unless declared),
- allocation-based fallbacks for the in-place entry points,
- the persistent-update / cache protocol defaults (no state, no scratch),
- Python operator overloads (``+``, ``-``, ``*``, ``@``, unary ``-``).

Operators are immutable values: update-coefficients and cache allocation
return a new operator (``dataclasses.replace``) instead of mutating shared
state. The one documented exception is a matrix update rule, which mutates
the wrapped matrix in place.

Call conventions:
    apply(u)                       -> L @ u
    apply_into(v, u)               v <- L @ u
    apply_into(v, u, alpha, beta)  v <- alpha * (L @ u) + beta * v
    solve(u)                       -> L \\ u
    solve_into(v, u)               v <- L \\ u
    solve_inplace(u)               u <- L \\ u
"""

from __future__ import annotations

import numbers
from typing import TYPE_CHECKING, Any

import numpy as np
from scipy.sparse import issparse

from . import _linalg
from .errors import raise_cache_not_ready, raise_dimension_mismatch, raise_unsupported

if TYPE_CHECKING:
    from numpy.typing import NDArray
    from scipy.sparse import csr_matrix


class AbstractOperator:
    """Base class for all linear and affine operators."""

    __slots__ = ()

    # NumPy arrays on the left of +, -, *, @ defer to the operator.
    __array_ufunc__ = None

    # ------------------------------------------------------------------
    # Structure
    # ------------------------------------------------------------------

    @property
    def shape(self) -> tuple[int, int]:
        """Return ``(rows, cols)``."""
        raise NotImplementedError

    @property
    def dtype(self) -> np.dtype:
        """Return the element type of the operator."""
        raise NotImplementedError

    @property
    def children(self) -> tuple[AbstractOperator, ...]:
        """Return the child operators of a composite (empty for leaves)."""
        return ()

    # ------------------------------------------------------------------
    # Capability traits
    # ------------------------------------------------------------------

    @property
    def is_constant(self) -> bool:
        """True if update_coefficients never changes the action."""
        return all(child.is_constant for child in self.children)

    @property
    def has_adjoint(self) -> bool:
        """True if adjoint() yields an applicable operator."""
        return False

    @property
    def has_multiply(self) -> bool:
        """True if apply(u) is a native capability."""
        return False

    @property
    def has_in_place_multiply(self) -> bool:
        """True if apply_into(v, u) is a native capability."""
        return False

    @property
    def has_solve(self) -> bool:
        """True if solve(u) is supported."""
        return False

    @property
    def has_in_place_solve(self) -> bool:
        """True if solve_into(v, u) / solve_inplace(u) are supported."""
        return False

    @property
    def is_square(self) -> bool:
        """True if rows == cols."""
        rows, cols = self.shape
        return rows == cols

    @property
    def is_linear(self) -> bool:
        """True for linear maps (False for affine ones)."""
        return True

    @property
    def is_cache_set(self) -> bool:
        """True if every scratch buffer this operator needs is allocated."""
        return all(child.is_cache_set for child in self.children)

    @property
    def iszero(self) -> bool:
        """True if the operator is known to be identically zero."""
        return False

    @property
    def issymmetric(self) -> bool:
        """True if the operator is declared or known to be symmetric."""
        return False

    @property
    def ishermitian(self) -> bool:
        """True if the operator is declared or known to be Hermitian."""
        return False

    @property
    def isposdef(self) -> bool:
        """True if the operator is declared or known to be positive definite."""
        return False

    # ------------------------------------------------------------------
    # Application
    # ------------------------------------------------------------------

    def apply(self, u: NDArray[Any]) -> NDArray[Any]:
        """Return ``L @ u``."""
        raise_unsupported(self, "apply")

    def apply_into(
        self,
        v: NDArray[Any],
        u: NDArray[Any],
        alpha: Any = None,
        beta: Any = None,
    ) -> NDArray[Any]:
        """Compute ``v <- L @ u`` or ``v <- alpha * (L @ u) + beta * v``.

        The base implementation allocates; variants with a native in-place
        path override it.

        Returns:
            ``v``.
        """
        if alpha is None and beta is None:
            np.copyto(v, self.apply(u))
            return v
        alpha, beta = _scaling(alpha, beta)
        return _linalg.scale_into(v, self.apply(u), alpha, beta)

    def solve(self, u: NDArray[Any]) -> NDArray[Any]:
        """Return ``L \\ u``."""
        raise_unsupported(self, "solve")

    def solve_into(self, v: NDArray[Any], u: NDArray[Any]) -> NDArray[Any]:
        """Compute ``v <- L \\ u``.

        Returns:
            ``v``.
        """
        np.copyto(v, self.solve(u))
        return v

    def solve_inplace(self, u: NDArray[Any]) -> NDArray[Any]:
        """Overwrite ``u`` with ``L \\ u``.

        Returns:
            ``u``.
        """
        np.copyto(u, self.solve(u))
        return u

    # ------------------------------------------------------------------
    # Adjoint / transpose
    # ------------------------------------------------------------------

    def adjoint(self) -> AbstractOperator:
        """Return the conjugate transpose operator."""
        raise_unsupported(self, "adjoint")

    def transpose(self) -> AbstractOperator:
        """Return the transpose operator (the adjoint for real operators)."""
        if _linalg.is_real_dtype(self.dtype):
            return self.adjoint()
        raise_unsupported(self, "transpose")

    @property
    def H(self) -> AbstractOperator:  # noqa: N802
        """Shorthand for adjoint()."""
        return self.adjoint()

    @property
    def T(self) -> AbstractOperator:  # noqa: N802
        """Shorthand for transpose()."""
        return self.transpose()

    # ------------------------------------------------------------------
    # State and cache protocol
    # ------------------------------------------------------------------

    def update_coefficients(self, u: Any, p: Any, t: Any) -> AbstractOperator:
        """Refresh the dependence on ``(p, t)``; leaves without state return self."""
        return self

    def cache_self(self, u: NDArray[Any]) -> AbstractOperator:
        """Allocate this operator's own scratch buffers sized for operand ``u``."""
        return self

    def cache_internals(self, u: NDArray[Any]) -> AbstractOperator:
        """Cache this operator (if unset) and, for composites, every descendant."""
        return self if self.is_cache_set else self.cache_self(u)

    # ------------------------------------------------------------------
    # Conversion
    # ------------------------------------------------------------------

    def to_matrix(self) -> Any:
        """Materialize a concrete dense (or sparse) matrix."""
        raise_unsupported(self, "conversion to a matrix")

    def to_sparse(self) -> csr_matrix:
        """Materialize a CSR matrix."""
        return _linalg.to_sparse(self.to_matrix())

    def opnorm(self, p: Any = 2) -> float:
        """Return the induced ``p``-norm of the materialized operator."""
        return float(np.linalg.norm(_linalg.to_dense(self.to_matrix()), p))

    # ------------------------------------------------------------------
    # Validation helpers
    # ------------------------------------------------------------------

    def _check_input(self, u: NDArray[Any], *, axis: int = 1) -> None:
        """Validate that ``u`` has ``shape[axis]`` rows.

        Raises:
            DimensionMismatchError: If the operand length is wrong.
        """
        n = self.shape[axis]
        if np.ndim(u) == 0 or np.shape(u)[0] != n:
            raise_dimension_mismatch(
                f"{type(self).__name__} application",
                expected=f"operand with {n} rows",
                got=np.shape(u),
            )

    def _require_cache(
        self,
        cache: NDArray[Any] | None,
        expected: tuple[int, ...],
    ) -> NDArray[Any]:
        """Return ``cache`` if it exists with shape ``expected``.

        Raises:
            CacheNotReadyError: If the cache is unset or sized for another operand.
        """
        if cache is None:
            raise_cache_not_ready(self)
        if cache.shape != tuple(expected):
            raise_cache_not_ready(self, expected=tuple(expected), got=cache.shape)
        return cache

    # ------------------------------------------------------------------
    # Python operator overloads
    # ------------------------------------------------------------------

    def __repr__(self) -> str:
        return f"{type(self).__name__}(shape={self.shape}, dtype={self.dtype})"

    def __neg__(self) -> AbstractOperator:
        from .basic import ScaledOperator  # noqa: PLC0415

        return ScaledOperator(-1, self)

    def __pos__(self) -> AbstractOperator:
        return self

    def __add__(self, other: Any) -> AbstractOperator:
        if not _is_operand(other):
            return NotImplemented
        from .basic import add  # noqa: PLC0415

        return add(self, other)

    def __radd__(self, other: Any) -> AbstractOperator:
        if not _is_operand(other):
            return NotImplemented
        from .basic import add  # noqa: PLC0415

        return add(other, self)

    def __sub__(self, other: Any) -> AbstractOperator:
        if not _is_operand(other):
            return NotImplemented
        from .basic import add, as_operator  # noqa: PLC0415

        return add(self, -as_operator(other))

    def __rsub__(self, other: Any) -> AbstractOperator:
        if not _is_operand(other):
            return NotImplemented
        from .basic import add  # noqa: PLC0415

        return add(other, -self)

    def __mul__(self, other: Any) -> AbstractOperator:
        from .basic import ScaledOperator, compose  # noqa: PLC0415

        if isinstance(other, numbers.Number):
            return ScaledOperator(other, self)
        if _is_operand(other):
            return compose(self, other)
        return NotImplemented

    def __rmul__(self, other: Any) -> AbstractOperator:
        from .basic import ScaledOperator, compose  # noqa: PLC0415

        if isinstance(other, numbers.Number):
            return ScaledOperator(other, self)
        if _is_operand(other):
            return compose(other, self)
        return NotImplemented

    def __matmul__(self, other: Any) -> Any:
        if isinstance(other, AbstractOperator) or issparse(other):
            from .basic import compose  # noqa: PLC0415

            return compose(self, other)
        return self.apply(np.asarray(other))

    def __rmatmul__(self, other: Any) -> Any:
        if not _is_operand(other):
            return NotImplemented
        from .basic import compose  # noqa: PLC0415

        return compose(other, self)


def _is_operand(obj: object) -> bool:
    """Return True for objects that combine with operators as operators."""
    return isinstance(obj, AbstractOperator) or _linalg.is_matrix(obj)


def _scaling(alpha: Any, beta: Any) -> tuple[Any, Any]:
    """Fill in BLAS defaults for a partially supplied ``(alpha, beta)`` pair."""
    return (1 if alpha is None else alpha), (0 if beta is None else beta)
