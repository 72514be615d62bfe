"""
Lazy Kronecker (tensor) products.

:class:`TensorProductOperator` represents ``outer ⊗ inner`` without forming
the product. With column-major reshapes,

    kron(B, A) @ vec(U) == vec(A @ U @ B.T)

so applying the product costs one application of ``inner`` to a matrix and one
of ``outer`` to its transpose:

    U = reshape(u, (cols(inner), cols(outer)), order="F")
    C = inner @ U                       # cache, (rows(inner), cols(outer))
    V = (outer @ C.T).T                 # (rows(inner), rows(outer))
    v = vec(V)

The in-place entry points write through ``order="F"`` views of the caller's
buffers and use ``cache`` for ``C``. A 2D block is handled one column at a
time, with ``cache[j]`` as the scratch for column ``j``.
"""

from __future__ import annotations

import dataclasses
import functools
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

import numpy as np

from . import _linalg, traits
from .base import AbstractOperator
from .basic import as_operator
from .errors import raise_cache_not_ready, raise_dimension_mismatch

if TYPE_CHECKING:
    from numpy.typing import NDArray

_EMPTY_ERROR = "tensor_product needs at least one operator"

# Norms for which ||A ⊗ B|| == ||A|| * ||B||.
_MULTIPLICATIVE_NORMS = (1, 2, np.inf)


@dataclass(frozen=True, slots=True, eq=False, repr=False)
class TensorProductOperator(AbstractOperator):
    """Kronecker product ``outer ⊗ inner``.

    Attributes:
        outer: Left Kronecker factor (acts across blocks).
        inner: Right Kronecker factor (acts within each block).
        cache: Scratch of shape ``(rows(inner), cols(outer))`` for 1D operands
            or ``(k, rows(inner), cols(outer))`` for blocks of ``k`` columns,
            or None.
    """

    outer: AbstractOperator
    inner: AbstractOperator
    cache: NDArray[Any] | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "outer", as_operator(self.outer))
        object.__setattr__(self, "inner", as_operator(self.inner))

    # ------------------------------------------------------------------
    # Structure and traits
    # ------------------------------------------------------------------

    @property
    def shape(self) -> tuple[int, int]:
        rows_out, cols_out = self.outer.shape
        rows_in, cols_in = self.inner.shape
        return (rows_out * rows_in, cols_out * cols_in)

    @property
    def dtype(self) -> np.dtype:
        return np.result_type(self.outer.dtype, self.inner.dtype)

    @property
    def children(self) -> tuple[AbstractOperator, ...]:
        return (self.outer, self.inner)

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
        return traits.all_children(self, _can_solve)

    @property
    def has_in_place_solve(self) -> bool:
        return traits.all_children(self, _can_solve)

    @property
    def is_linear(self) -> bool:
        return traits.all_children(self, traits.is_linear)

    @property
    def is_cache_set(self) -> bool:
        return self.cache is not None and traits.all_children(
            self, traits.is_cache_set
        )

    @property
    def iszero(self) -> bool:
        return self.outer.iszero or self.inner.iszero

    @property
    def issymmetric(self) -> bool:
        return traits.all_children(self, traits.issymmetric)

    @property
    def ishermitian(self) -> bool:
        return traits.all_children(self, traits.ishermitian)

    # ------------------------------------------------------------------
    # Reshaping helpers
    # ------------------------------------------------------------------

    def _check_operand(self, u: NDArray[Any], *, axis: int) -> None:
        n = self.shape[axis]
        if np.ndim(u) not in (1, 2) or np.shape(u)[0] != n:
            raise_dimension_mismatch(
                "TensorProductOperator application",
                expected=f"1D operand of length {n} or a 2D block with {n} rows",
                got=np.shape(u),
            )

    def _check_pair(
        self,
        v: NDArray[Any],
        u: NDArray[Any],
        *,
        v_axis: int,
        u_axis: int,
    ) -> None:
        self._check_operand(u, axis=u_axis)
        self._check_operand(v, axis=v_axis)
        if np.shape(v)[1:] != np.shape(u)[1:]:
            raise_dimension_mismatch(
                "TensorProductOperator application",
                expected=f"output block with trailing shape {np.shape(u)[1:]}",
                got=np.shape(v),
            )

    def _input_shape(self) -> tuple[int, int]:
        return (self.inner.shape[1], self.outer.shape[1])

    def _output_shape(self) -> tuple[int, int]:
        return (self.inner.shape[0], self.outer.shape[0])

    def _cache_shape(self) -> tuple[int, int]:
        return (self.inner.shape[0], self.outer.shape[1])

    def _cache(self, u: NDArray[Any], shape: tuple[int, int]) -> NDArray[Any]:
        """Return the scratch for operands like ``u``, one ``shape`` per column."""
        return self._require_cache(self.cache, (*np.shape(u)[1:], *shape))

    # ------------------------------------------------------------------
    # Application
    # ------------------------------------------------------------------

    def apply(self, u: NDArray[Any]) -> NDArray[Any]:
        """Return ``L u``; a 2D block is applied column by column."""
        self._check_operand(u, axis=1)
        if np.ndim(u) == 2:  # noqa: PLR2004
            return np.stack([self.apply(col) for col in u.T], axis=1)
        U = np.reshape(u, self._input_shape(), order="F")  # noqa: N806
        C = self.inner.apply(U)  # noqa: N806
        V = self.outer.apply(C.T).T  # noqa: N806
        return np.reshape(V, -1, order="F")

    def apply_into(
        self,
        v: NDArray[Any],
        u: NDArray[Any],
        alpha: Any = None,
        beta: Any = None,
    ) -> NDArray[Any]:
        """Compute ``v <- L u`` or ``v <- alpha L u + beta v`` through the cache.

        A 2D block uses one cache slice per column.

        Raises:
            CacheNotReadyError: If the cache is unset or mis-sized.
        """
        self._check_pair(v, u, v_axis=0, u_axis=1)
        cache = self._cache(u, self._cache_shape())
        if np.ndim(u) == 1:
            self._apply_column(v, u, cache, alpha, beta)
            return v
        for v_col, u_col, scratch in zip(v.T, u.T, cache, strict=True):
            self._apply_column(v_col, u_col, scratch, alpha, beta)
        return v

    def _apply_column(
        self,
        v: NDArray[Any],
        u: NDArray[Any],
        cache: NDArray[Any],
        alpha: Any,
        beta: Any,
    ) -> None:
        U = np.reshape(u, self._input_shape(), order="F")  # noqa: N806
        V = np.reshape(v, self._output_shape(), order="F")  # noqa: N806
        self.inner.apply_into(cache, U)
        self.outer.apply_into(V.T, cache.T, alpha, beta)

    def solve(self, u: NDArray[Any]) -> NDArray[Any]:
        """Return ``L \\ u``; a 2D block is solved column by column."""
        self._check_operand(u, axis=0)
        if np.ndim(u) == 2:  # noqa: PLR2004
            return np.stack([self.solve(col) for col in u.T], axis=1)
        U = np.reshape(u, self._output_shape(), order="F")  # noqa: N806
        C = self.inner.solve(U)  # noqa: N806
        V = self.outer.solve(C.T).T  # noqa: N806
        return np.reshape(V, -1, order="F")

    def solve_into(self, v: NDArray[Any], u: NDArray[Any]) -> NDArray[Any]:
        """Compute ``v <- L \\ u`` through the cache.

        Raises:
            CacheNotReadyError: If the cache is unset or mis-sized.
        """
        self._check_pair(v, u, v_axis=1, u_axis=0)
        cache = self._cache(u, (self.inner.shape[1], self.outer.shape[0]))
        if np.ndim(u) == 1:
            self._solve_column(v, u, cache)
            return v
        for v_col, u_col, scratch in zip(v.T, u.T, cache, strict=True):
            self._solve_column(v_col, u_col, scratch)
        return v

    def _solve_column(
        self,
        v: NDArray[Any],
        u: NDArray[Any],
        cache: NDArray[Any],
    ) -> None:
        U = np.reshape(u, self._output_shape(), order="F")  # noqa: N806
        V = np.reshape(v, self._input_shape(), order="F")  # noqa: N806
        self.inner.solve_into(cache, U)
        self.outer.solve_into(V.T, cache.T)

    def solve_inplace(self, u: NDArray[Any]) -> NDArray[Any]:
        """Overwrite ``u`` with ``L \\ u`` (square factors).

        Raises:
            CacheNotReadyError: If the cache is unset.
        """
        self._check_operand(u, axis=0)
        if self.cache is None:
            raise_cache_not_ready(self)
        columns = (u,) if np.ndim(u) == 1 else tuple(u.T)
        for col in columns:
            U = np.reshape(col, self._output_shape(), order="F")  # noqa: N806
            self.inner.solve_inplace(U)
            self.outer.solve_inplace(U.T)
        return u

    # ------------------------------------------------------------------
    # Adjoint / transpose
    # ------------------------------------------------------------------

    def adjoint(self) -> TensorProductOperator:
        return self._reflected(self.outer.adjoint(), self.inner.adjoint())

    def transpose(self) -> TensorProductOperator:
        return self._reflected(self.outer.transpose(), self.inner.transpose())

    def _reflected(
        self,
        outer: AbstractOperator,
        inner: AbstractOperator,
    ) -> TensorProductOperator:
        reflected = TensorProductOperator(outer, inner)
        if (
            self.cache is not None
            and self.inner.is_square
            and self.cache.shape[-2:] == reflected._cache_shape()
        ):
            return dataclasses.replace(reflected, cache=self.cache)
        return reflected

    # ------------------------------------------------------------------
    # State and cache
    # ------------------------------------------------------------------

    def update_coefficients(self, u: Any, p: Any, t: Any) -> TensorProductOperator:
        return dataclasses.replace(
            self,
            outer=self.outer.update_coefficients(u, p, t),
            inner=self.inner.update_coefficients(u, p, t),
        )

    def cache_self(self, u: NDArray[Any]) -> TensorProductOperator:
        """Allocate a ``(rows(inner), cols(outer))`` scratch per column of ``u``."""
        self._check_operand(u, axis=1)
        cache = np.empty(
            (*np.shape(u)[1:], *self._cache_shape()),
            dtype=np.result_type(self.dtype, u),
        )
        return dataclasses.replace(self, cache=cache)

    def cache_internals(self, u: NDArray[Any]) -> TensorProductOperator:
        """Cache self, then ``inner`` for ``U`` and ``outer`` for ``cache.T``.

        The factors see one column at a time, so a 2D ``u`` caches them for
        its first column.
        """
        op = self if self.cache is not None else self.cache_self(u)
        column, scratch = (u, op.cache) if np.ndim(u) == 1 else (u[:, 0], op.cache[0])
        U = np.reshape(column, op._input_shape(), order="F")  # noqa: N806
        return dataclasses.replace(
            op,
            inner=op.inner.cache_internals(U),
            outer=op.outer.cache_internals(scratch.T),
        )

    # ------------------------------------------------------------------
    # Conversion
    # ------------------------------------------------------------------

    def to_matrix(self) -> Any:
        """Form ``kron(outer, inner)`` (debugging / inspection only)."""
        return _linalg.kron_prod(self.outer.to_matrix(), self.inner.to_matrix())

    def to_sparse(self) -> Any:
        return _linalg.kron_prod(self.outer.to_sparse(), self.inner.to_sparse())


    def opnorm(self, p: Any = 2) -> float:
        if p in _MULTIPLICATIVE_NORMS:
            return self.outer.opnorm(p) * self.inner.opnorm(p)
        return AbstractOperator.opnorm(self, p)


def _can_multiply(op: AbstractOperator) -> bool:
    return op.has_multiply or op.has_in_place_multiply


def _can_solve(op: AbstractOperator) -> bool:
    return op.has_solve or op.has_in_place_solve


def tensor_product(*ops: Any) -> AbstractOperator:
    """
    Lazy Kronecker product ``ops[0] ⊗ ops[1] ⊗ ...`` (left fold).

    Args:
        *ops: Operators or matrices.

    Raises:
        ValueError: If no operator is given.

    Returns:
        TensorProductOperator, or the single operand (wrapped if a matrix).
    """
    if not ops:
        raise ValueError(_EMPTY_ERROR)
    return functools.reduce(TensorProductOperator, map(as_operator, ops))
