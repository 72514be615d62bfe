"""
Operator algebra: scaling, sums and compositions.

These nodes back the Python operator overloads on
:class:`op_algebra.base.AbstractOperator`:

    -L, 2 * L, L * 2      -> ScaledOperator
    A + B, A - B          -> SumOperator (flattened)
    A * B (matrix), A @ B -> ComposedOperator (flattened)

Bare NumPy / SciPy sparse matrices are wrapped in
:class:`op_algebra.matrix.MatrixOperator`, factorization objects in
:class:`op_algebra.invertible.InvertibleOperator`.
"""

from __future__ import annotations

import dataclasses
import functools
import operator
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

import numpy as np
from scipy.sparse import issparse

from . import _linalg, traits
from .base import AbstractOperator, _scaling
from .errors import raise_cache_not_ready, raise_dimension_mismatch, raise_unsupported
from .invertible import InvertibleOperator
from .matrix import MatrixOperator

if TYPE_CHECKING:
    from numpy.typing import NDArray

_NOT_AN_OPERATOR_ERROR = (
    "Cannot use {typ} as an operator; expected an operator, a 2D array, "
    "a SciPy sparse matrix or a factorization"
)
_EMPTY_ERROR = "{name} needs at least one operator"


def as_operator(obj: Any) -> AbstractOperator:
    """
    Wrap ``obj`` as an operator.

    Args:
        obj: Operator, dense 2D array, sparse matrix or factorization.

    Raises:
        TypeError: If ``obj`` has no operator interpretation.

    Returns:
        ``obj`` itself if already an operator, otherwise a wrapper.
    """
    if isinstance(obj, AbstractOperator):
        return obj
    if _linalg.is_matrix(obj):
        return MatrixOperator(obj)
    if _linalg.is_factorization(obj):
        return InvertibleOperator(obj)
    raise TypeError(_NOT_AN_OPERATOR_ERROR.format(typ=type(obj).__name__))


def _result_dtype(*dtypes: Any) -> np.dtype:
    return np.result_type(*dtypes)


def _can_multiply(op: AbstractOperator) -> bool:
    return op.has_multiply or op.has_in_place_multiply


# =============================================================================
# Scaling
# =============================================================================


@dataclass(frozen=True, slots=True, eq=False, repr=False)
class ScaledOperator(AbstractOperator):
    """``scale * op`` for a scalar ``scale``.

    Attributes:
        scale: Scalar factor.
        op: Scaled operator.
    """

    scale: Any
    op: AbstractOperator

    @property
    def shape(self) -> tuple[int, int]:
        return self.op.shape

    @property
    def dtype(self) -> np.dtype:
        return _result_dtype(self.op.dtype, np.min_scalar_type(self.scale))

    @property
    def children(self) -> tuple[AbstractOperator, ...]:
        return (self.op,)

    @property
    def has_adjoint(self) -> bool:
        return self.op.has_adjoint

    @property
    def has_multiply(self) -> bool:
        return self.op.has_multiply

    @property
    def has_in_place_multiply(self) -> bool:
        return self.op.has_in_place_multiply

    @property
    def has_solve(self) -> bool:
        return self.op.has_solve and self.scale != 0

    @property
    def has_in_place_solve(self) -> bool:
        return self.op.has_in_place_solve and self.scale != 0

    @property
    def is_linear(self) -> bool:
        return self.op.is_linear

    @property
    def iszero(self) -> bool:
        return self.scale == 0 or self.op.iszero

    @property
    def issymmetric(self) -> bool:
        return self.op.issymmetric

    @property
    def ishermitian(self) -> bool:
        return self.op.ishermitian and bool(np.isreal(self.scale))

    @property
    def isposdef(self) -> bool:
        return (
            self.op.isposdef
            and bool(np.isreal(self.scale))
            and np.real(self.scale) > 0
        )

    def apply(self, u: NDArray[Any]) -> NDArray[Any]:
        return self.scale * self.op.apply(u)

    def apply_into(
        self,
        v: NDArray[Any],
        u: NDArray[Any],
        alpha: Any = None,
        beta: Any = None,
    ) -> NDArray[Any]:
        if alpha is None and beta is None:
            self.op.apply_into(v, u)
            v *= self.scale
            return v
        alpha, beta = _scaling(alpha, beta)
        return self.op.apply_into(v, u, alpha * self.scale, beta)

    def _divisor(self) -> Any:
        if self.scale == 0:
            raise_unsupported(self, "solve (zero scale)")
        return self.scale

    def solve(self, u: NDArray[Any]) -> NDArray[Any]:
        """Return ``(s L) \\ u``.

        A linear child solves first and divides after; an affine child needs
        the right-hand side divided first, ``x = L \\ (u / s)``.
        """
        scale = self._divisor()
        if not self.op.is_linear:
            return self.op.solve(u / scale)
        return self.op.solve(u) / scale

    def solve_into(self, v: NDArray[Any], u: NDArray[Any]) -> NDArray[Any]:
        scale = self._divisor()
        if not self.op.is_linear:
            return self.op.solve_into(v, u / scale)
        self.op.solve_into(v, u)
        v /= scale
        return v

    def solve_inplace(self, u: NDArray[Any]) -> NDArray[Any]:
        scale = self._divisor()
        if not self.op.is_linear:
            u /= scale
            return self.op.solve_inplace(u)
        self.op.solve_inplace(u)
        u /= scale
        return u

    def adjoint(self) -> ScaledOperator:
        return ScaledOperator(np.conj(self.scale), self.op.adjoint())

    def transpose(self) -> ScaledOperator:
        return ScaledOperator(self.scale, self.op.transpose())

    def update_coefficients(self, u: Any, p: Any, t: Any) -> ScaledOperator:
        return dataclasses.replace(self, op=self.op.update_coefficients(u, p, t))

    def cache_self(self, u: NDArray[Any]) -> ScaledOperator:
        return dataclasses.replace(self, op=self.op.cache_self(u))

    def cache_internals(self, u: NDArray[Any]) -> ScaledOperator:
        return dataclasses.replace(self, op=self.op.cache_internals(u))

    def to_matrix(self) -> Any:
        return self.scale * self.op.to_matrix()

    def opnorm(self, p: Any = 2) -> float:
        return abs(self.scale) * self.op.opnorm(p)

    def __neg__(self) -> ScaledOperator:
        return ScaledOperator(-self.scale, self.op)


# =============================================================================
# Sums
# =============================================================================


@dataclass(frozen=True, slots=True, eq=False, repr=False)
class SumOperator(AbstractOperator):
    """``ops[0] + ops[1] + ...``; build with :func:`add`.

    Attributes:
        ops: Summands, all of the same shape.
    """

    ops: tuple[AbstractOperator, ...]

    @property
    def shape(self) -> tuple[int, int]:
        return self.ops[0].shape

    @property
    def dtype(self) -> np.dtype:
        return _result_dtype(*(op.dtype for op in self.ops))

    @property
    def children(self) -> tuple[AbstractOperator, ...]:
        return self.ops

    @property
    def has_adjoint(self) -> bool:
        return traits.all_children(self, traits.has_adjoint)

    @property
    def has_multiply(self) -> bool:
        return traits.all_children(self, _can_multiply)

    @property
    def has_in_place_multiply(self) -> bool:
        return traits.all_children(self, _can_multiply)

    @property
    def is_linear(self) -> bool:
        return traits.all_children(self, traits.is_linear)

    @property
    def iszero(self) -> bool:
        return all(op.iszero for op in self.ops)

    @property
    def issymmetric(self) -> bool:
        return traits.all_children(self, traits.issymmetric)

    @property
    def ishermitian(self) -> bool:
        return traits.all_children(self, traits.ishermitian)

    @property
    def isposdef(self) -> bool:
        return traits.all_children(self, traits.isposdef)

    def apply(self, u: NDArray[Any]) -> NDArray[Any]:
        return functools.reduce(operator.add, (op.apply(u) for op in self.ops))

    def apply_into(
        self,
        v: NDArray[Any],
        u: NDArray[Any],
        alpha: Any = None,
        beta: Any = None,
    ) -> NDArray[Any]:
        """Accumulate every summand into ``v``.

        The first summand overwrites (or scales) ``v``; the rest accumulate
        with ``beta=1``, so their caches must be set.
        """
        first, *rest = self.ops
        first.apply_into(v, u, alpha, beta)
        accumulate = 1 if alpha is None else alpha
        for op in rest:
            op.apply_into(v, u, accumulate, 1)
        return v

    def adjoint(self) -> SumOperator:
        return SumOperator(tuple(op.adjoint() for op in self.ops))

    def transpose(self) -> SumOperator:
        return SumOperator(tuple(op.transpose() for op in self.ops))

    def update_coefficients(self, u: Any, p: Any, t: Any) -> SumOperator:
        return SumOperator(tuple(op.update_coefficients(u, p, t) for op in self.ops))

    def cache_self(self, u: NDArray[Any]) -> SumOperator:
        return SumOperator(tuple(op.cache_self(u) for op in self.ops))

    def cache_internals(self, u: NDArray[Any]) -> SumOperator:
        return SumOperator(tuple(op.cache_internals(u) for op in self.ops))

    def to_matrix(self) -> Any:
        matrices = [op.to_matrix() for op in self.ops]
        if all(issparse(m) for m in matrices):
            return functools.reduce(operator.add, matrices)
        return functools.reduce(operator.add, map(_linalg.to_dense, matrices))


def add(*ops: Any) -> AbstractOperator:
    """
    Sum operators and matrices of equal shape.

    Args:
        *ops: Operators or matrices.

    Raises:
        DimensionMismatchError: If the shapes differ.

    Returns:
        A flattened SumOperator (or the operand itself for a single one).
    """
    if not ops:
        raise ValueError(_EMPTY_ERROR.format(name="add"))
    summands: list[AbstractOperator] = []
    for obj in ops:
        op = as_operator(obj)
        if summands and op.shape != summands[0].shape:
            raise_dimension_mismatch(
                "operator sum", expected=summands[0].shape, got=op.shape
            )
        summands.extend(op.ops if isinstance(op, SumOperator) else (op,))
    if len(summands) == 1:
        return summands[0]
    return SumOperator(tuple(summands))


# =============================================================================
# Composition
# =============================================================================


@dataclass(frozen=True, slots=True, eq=False, repr=False)
class ComposedOperator(AbstractOperator):
    """``ops[0] * ops[1] * ...``, applied right to left; build with :func:`compose`.

    Attributes:
        ops: Factors, with ``ops[i].shape[1] == ops[i + 1].shape[0]``.
        caches: One intermediate buffer per inner product; ``caches[i]``
            holds the output of ``ops[i + 1]``.
    """

    ops: tuple[AbstractOperator, ...]
    caches: tuple[NDArray[Any], ...] | None = None

    @property
    def shape(self) -> tuple[int, int]:
        return (self.ops[0].shape[0], self.ops[-1].shape[1])

    @property
    def dtype(self) -> np.dtype:
        return _result_dtype(*(op.dtype for op in self.ops))

    @property
    def children(self) -> tuple[AbstractOperator, ...]:
        return self.ops

    @property
    def has_adjoint(self) -> bool:
        return traits.all_children(self, traits.has_adjoint)

    @property
    def has_multiply(self) -> bool:
        return traits.all_children(self, _can_multiply)

    @property
    def has_in_place_multiply(self) -> bool:
        return traits.all_children(self, _can_multiply)

    @property
    def has_solve(self) -> bool:
        return traits.all_children(self, traits.has_solve)

    @property
    def has_in_place_solve(self) -> bool:
        return traits.all_children(self, traits.has_in_place_solve)

    @property
    def is_linear(self) -> bool:
        return traits.all_children(self, traits.is_linear)

    @property
    def is_cache_set(self) -> bool:
        return self.caches is not None and traits.all_children(
            self, traits.is_cache_set
        )

    @property
    def iszero(self) -> bool:
        return any(op.iszero for op in self.ops)

    def _buffer(self, i: int, u: NDArray[Any]) -> NDArray[Any]:
        if self.caches is None:
            raise_cache_not_ready(self)
        expected = (self.ops[i + 1].shape[0], *np.shape(u)[1:])
        return self._require_cache(self.caches[i], expected)

    def apply(self, u: NDArray[Any]) -> NDArray[Any]:
        for op in reversed(self.ops):
            u = op.apply(u)
        return u

    def apply_into(
        self,
        v: NDArray[Any],
        u: NDArray[Any],
        alpha: Any = None,
        beta: Any = None,
    ) -> NDArray[Any]:
        x = u
        for i in reversed(range(len(self.ops) - 1)):
            buf = self._buffer(i, u)
            self.ops[i + 1].apply_into(buf, x)
            x = buf
        return self.ops[0].apply_into(v, x, alpha, beta)

    def solve(self, u: NDArray[Any]) -> NDArray[Any]:
        for op in self.ops:
            u = op.solve(u)
        return u

    def solve_into(self, v: NDArray[Any], u: NDArray[Any]) -> NDArray[Any]:
        x = u
        for i in range(len(self.ops) - 1):
            buf = self._buffer(i, u)
            self.ops[i].solve_into(buf, x)
            x = buf
        return self.ops[-1].solve_into(v, x)

    def solve_inplace(self, u: NDArray[Any]) -> NDArray[Any]:
        for op in self.ops:
            op.solve_inplace(u)
        return u

    def adjoint(self) -> ComposedOperator:
        return ComposedOperator(tuple(op.adjoint() for op in reversed(self.ops)))

    def transpose(self) -> ComposedOperator:
        return ComposedOperator(tuple(op.transpose() for op in reversed(self.ops)))

    def update_coefficients(self, u: Any, p: Any, t: Any) -> ComposedOperator:
        ops = tuple(op.update_coefficients(u, p, t) for op in self.ops)
        return dataclasses.replace(self, ops=ops)

    def cache_self(self, u: NDArray[Any]) -> ComposedOperator:
        """Allocate one buffer per intermediate product for operands like ``u``."""
        self._check_input(u)
        dtype = np.result_type(self.dtype, u)
        caches = tuple(
            np.empty((op.shape[0], *np.shape(u)[1:]), dtype=dtype)
            for op in self.ops[1:]
        )
        return dataclasses.replace(self, caches=caches)

    def cache_internals(self, u: NDArray[Any]) -> ComposedOperator:
        """Cache self, then every factor with the operand it will receive."""
        composed = self if self.caches is not None else self.cache_self(u)
        operands = (*(composed.caches or ()), u)
        ops = tuple(
            op.cache_internals(x) for op, x in zip(composed.ops, operands, strict=True)
        )
        return dataclasses.replace(composed, ops=ops)

    def to_matrix(self) -> Any:
        return functools.reduce(operator.matmul, (op.to_matrix() for op in self.ops))


def compose(*ops: Any) -> AbstractOperator:
    """
    Compose operators and matrices, ``compose(A, B)(u) == A(B(u))``.

    Args:
        *ops: Operators or matrices, outermost first.

    Raises:
        DimensionMismatchError: If adjacent inner dimensions differ.

    Returns:
        A flattened ComposedOperator (or the operand itself for a single one).
    """
    if not ops:
        raise ValueError(_EMPTY_ERROR.format(name="compose"))
    factors: list[AbstractOperator] = []
    for obj in ops:
        op = as_operator(obj)
        if factors and factors[-1].shape[1] != op.shape[0]:
            raise_dimension_mismatch(
                "operator composition",
                expected=f"{factors[-1].shape[1]} rows",
                got=op.shape,
            )
        factors.extend(op.ops if isinstance(op, ComposedOperator) else (op,))
    if len(factors) == 1:
        return factors[0]
    return ComposedOperator(tuple(factors))
