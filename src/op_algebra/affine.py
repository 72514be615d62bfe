"""
Affine operators ``L(u) = A u + b``.

The linear part ``A`` is any operator (a bare matrix is wrapped in
:class:`op_algebra.matrix.MatrixOperator`); the shift ``b`` is a vector of
``rows(A)`` entries. For 2D operands (one column per right-hand side) ``b`` is
added to every column.
"""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

import numpy as np

from .base import AbstractOperator, _scaling
from .basic import as_operator
from .errors import raise_dimension_mismatch, raise_unsupported

if TYPE_CHECKING:
    from numpy.typing import NDArray


@dataclass(frozen=True, slots=True, eq=False, repr=False)
class AffineOperator(AbstractOperator):
    """Operator ``u -> A u + b``.

    Attributes:
        A: Linear part.
        b: Shift vector with ``A.shape[0]`` entries.

    Raises:
        DimensionMismatchError: If ``b`` does not match the rows of ``A``.
    """

    A: AbstractOperator
    b: NDArray[Any]

    def __post_init__(self) -> None:
        object.__setattr__(self, "A", as_operator(self.A))
        b = np.asarray(self.b)
        if b.ndim != 1 or b.shape[0] != self.A.shape[0]:
            raise_dimension_mismatch(
                "AffineOperator construction",
                expected=f"shift vector of length {self.A.shape[0]}",
                got=b.shape,
            )
        object.__setattr__(self, "b", b)

    @property
    def shape(self) -> tuple[int, int]:
        return self.A.shape

    @property
    def dtype(self) -> np.dtype:
        return np.result_type(self.A.dtype, self.b.dtype)

    @property
    def children(self) -> tuple[AbstractOperator, ...]:
        return (self.A,)

    @property
    def is_linear(self) -> bool:
        return False

    @property
    def iszero(self) -> bool:
        return self.A.iszero and not np.any(self.b)

    @property
    def has_adjoint(self) -> bool:
        return self.A.has_adjoint and self.A.is_square

    @property
    def has_multiply(self) -> bool:
        return self.A.has_multiply

    @property
    def has_in_place_multiply(self) -> bool:
        return self.A.has_in_place_multiply

    @property
    def has_solve(self) -> bool:
        return self.A.has_solve

    @property
    def has_in_place_solve(self) -> bool:
        return self.A.has_in_place_solve

    def _shift(self, ndim: int) -> NDArray[Any]:
        """Return ``b`` shaped to broadcast against an operand of ``ndim`` dims."""
        return self.b.reshape((-1,) + (1,) * (ndim - 1))

    def apply(self, u: NDArray[Any]) -> NDArray[Any]:
        return self.A.apply(u) + self._shift(np.ndim(u))

    def apply_into(
        self,
        v: NDArray[Any],
        u: NDArray[Any],
        alpha: Any = None,
        beta: Any = None,
    ) -> NDArray[Any]:
        """Compute ``v <- A u + b`` or ``v <- alpha A u + beta v + alpha b``."""
        if alpha is None and beta is None:
            self.A.apply_into(v, u)
            v += self._shift(v.ndim)
            return v
        alpha, beta = _scaling(alpha, beta)
        self.A.apply_into(v, u, alpha, beta)
        v += alpha * self._shift(v.ndim)
        return v

    def solve(self, u: NDArray[Any]) -> NDArray[Any]:
        return self.A.solve(u - self._shift(np.ndim(u)))

    def solve_into(self, v: NDArray[Any], u: NDArray[Any]) -> NDArray[Any]:
        np.copyto(v, u)
        return self.solve_inplace(v)

    def solve_inplace(self, u: NDArray[Any]) -> NDArray[Any]:
        u -= self._shift(u.ndim)
        return self.A.solve_inplace(u)

    def adjoint(self) -> AffineOperator:
        """Return ``u -> A^H u + b`` (square ``A`` only)."""
        if not self.has_adjoint:
            raise_unsupported(self, "adjoint")
        return AffineOperator(self.A.adjoint(), self.b)

    def transpose(self) -> AffineOperator:
        if not self.has_adjoint:
            raise_unsupported(self, "transpose")
        return AffineOperator(self.A.transpose(), self.b)

    def update_coefficients(self, u: Any, p: Any, t: Any) -> AffineOperator:
        return dataclasses.replace(self, A=self.A.update_coefficients(u, p, t))

    def cache_self(self, u: NDArray[Any]) -> AffineOperator:
        return dataclasses.replace(self, A=self.A.cache_self(u))

    def cache_internals(self, u: NDArray[Any]) -> AffineOperator:
        return dataclasses.replace(self, A=self.A.cache_internals(u))
