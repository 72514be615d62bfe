"""
Factorization-backed operators.

:class:`InvertibleOperator` stores a factorization instead of a matrix; its
primary capability is left division. Any object exposing ``solve(b)`` or
``solve_into(out, b)`` qualifies, including the SciPy adapters from
:mod:`op_algebra.factorizations` built by :func:`factorize`, :func:`lu`,
:func:`cholesky` and :func:`splu`.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

import numpy as np
from scipy.sparse import issparse

from . import _linalg, traits
from .base import AbstractOperator
from .errors import raise_not_invertible, raise_unsupported
from .factorizations import (
    AdjointFactorization,
    CholeskyFactorization,
    LUFactorization,
    SparseLUFactorization,
)

if TYPE_CHECKING:
    from numpy.typing import NDArray


@dataclass(frozen=True, slots=True, eq=False, repr=False)
class InvertibleOperator(AbstractOperator):
    """Linear operator backed by a factorization ``F`` of its matrix.

    Attributes:
        F: Factorization object (must expose ``solve`` or ``solve_into``).

    Raises:
        NotInvertibleError: If ``F`` exposes no solve capability.
    """

    F: Any

    def __post_init__(self) -> None:
        if not (traits.has_solve(self.F) or traits.has_in_place_solve(self.F)):
            raise_not_invertible(self.F)

    # ------------------------------------------------------------------
    # Structure and traits (forwarded to F)
    # ------------------------------------------------------------------

    @property
    def shape(self) -> tuple[int, int]:
        rows, cols = self.F.shape
        return (int(rows), int(cols))

    @property
    def dtype(self) -> np.dtype:
        return np.dtype(self.F.dtype)

    @property
    def is_constant(self) -> bool:
        return traits.is_constant(self.F)

    @property
    def has_adjoint(self) -> bool:
        return traits.has_adjoint(self.F)

    @property
    def has_multiply(self) -> bool:
        return traits.has_multiply(self.F)

    @property
    def has_in_place_multiply(self) -> bool:
        return traits.has_in_place_multiply(self.F)

    @property
    def has_solve(self) -> bool:
        return traits.has_solve(self.F)

    @property
    def has_in_place_solve(self) -> bool:
        return traits.has_in_place_solve(self.F)

    @property
    def issymmetric(self) -> bool:
        return traits.issymmetric(self.F)

    @property
    def ishermitian(self) -> bool:
        return traits.ishermitian(self.F)

    @property
    def isposdef(self) -> bool:
        return traits.isposdef(self.F)

    def is_success(self) -> bool:
        """Return True if the wrapped factorization is usable."""
        check = getattr(self.F, "is_success", None)
        return bool(check()) if callable(check) else True

    # ------------------------------------------------------------------
    # Application
    # ------------------------------------------------------------------

    def apply(self, u: NDArray[Any]) -> NDArray[Any]:
        if not self.has_multiply:
            raise_unsupported(self, "apply")
        return _linalg.matmul(self.F, u)

    def apply_into(
        self,
        v: NDArray[Any],
        u: NDArray[Any],
        alpha: Any = None,
        beta: Any = None,
    ) -> NDArray[Any]:
        if not self.has_multiply:
            raise_unsupported(self, "apply_into")
        return _linalg.mul_into(v, self.F, u, alpha, beta)

    def solve(self, u: NDArray[Any]) -> NDArray[Any]:
        return _linalg.ldiv(self.F, u)

    def solve_into(self, v: NDArray[Any], u: NDArray[Any]) -> NDArray[Any]:
        return _linalg.ldiv_into(v, self.F, u)

    def solve_inplace(self, u: NDArray[Any]) -> NDArray[Any]:
        return _linalg.ldiv_inplace(self.F, u)

    # ------------------------------------------------------------------
    # Adjoint / transpose
    # ------------------------------------------------------------------

    def adjoint(self) -> InvertibleOperator:
        if not self.has_adjoint:
            raise_unsupported(self, "adjoint")
        return InvertibleOperator(_reflect(self.F, conjugate=True))

    def transpose(self) -> InvertibleOperator:
        if not self.has_adjoint:
            raise_unsupported(self, "transpose")
        return InvertibleOperator(_reflect(self.F, conjugate=False))

    # ------------------------------------------------------------------
    # Conversion
    # ------------------------------------------------------------------

    def to_matrix(self) -> Any:
        """Materialize the factored matrix.

        An adjoint factorization is converted by materializing its parent first
        and then reflecting the resulting matrix.
        """
        if isinstance(self.F, AdjointFactorization):
            parent = InvertibleOperator(self.F.parent).to_matrix()
            return _linalg.adjoint_matrix(parent, conjugate=self.F.conjugate)
        if _linalg.is_matrix(self.F):
            return self.F
        to_matrix = getattr(self.F, "to_matrix", None)
        if not callable(to_matrix):
            raise_unsupported(self, "conversion to a matrix")
        return to_matrix()

    def opnorm(self, p: Any = 2) -> float:
        """Return ``1 / ||F||_p``.

        Approximation: this is not the norm of the inverse in general.
        """
        norm = getattr(self.F, "norm", None)
        if callable(norm):
            value = norm(p)
        else:
            value = np.linalg.norm(_linalg.to_dense(self.to_matrix()), p)
        return 1.0 / float(value)


def _reflect(f: Any, *, conjugate: bool) -> Any:
    if _linalg.is_matrix(f):
        return _linalg.adjoint_matrix(f, conjugate=conjugate)
    return f.adjoint() if conjugate else f.transpose()


# =============================================================================
# Constructors
# =============================================================================


def _matrix_of(obj: Any) -> Any:
    if isinstance(obj, AbstractOperator):
        return obj.to_matrix()
    return _linalg.as_matrix(obj)


def lu(obj: Any, *, check_finite: bool = True) -> InvertibleOperator:
    """
    Dense LU factorization of an operator or matrix.

    Args:
        obj: Operator (converted via ``to_matrix``) or matrix.
        check_finite: Forwarded to ``scipy.linalg.lu_factor``.

    Returns:
        InvertibleOperator over an :class:`LUFactorization`.
    """
    dense = _linalg.to_dense(_matrix_of(obj))
    return InvertibleOperator(LUFactorization(dense, check_finite=check_finite))


def cholesky(obj: Any, *, lower: bool = False) -> InvertibleOperator:
    """
    Dense Cholesky factorization of a Hermitian positive definite operator.

    Args:
        obj: Operator (converted via ``to_matrix``) or matrix.
        lower: Store the lower-triangular factor.

    Returns:
        InvertibleOperator over a :class:`CholeskyFactorization`.
    """
    dense = _linalg.to_dense(_matrix_of(obj))
    return InvertibleOperator(CholeskyFactorization(dense, lower=lower))


def splu(obj: Any) -> InvertibleOperator:
    """
    Sparse LU factorization of an operator or matrix.

    Args:
        obj: Operator (converted via ``to_sparse``) or matrix.

    Returns:
        InvertibleOperator over a :class:`SparseLUFactorization`.
    """
    matrix = obj.to_sparse() if isinstance(obj, AbstractOperator) else obj
    return InvertibleOperator(SparseLUFactorization(matrix))


def factorize(obj: Any) -> InvertibleOperator:
    """
    Pick a factorization from the storage of ``obj``.

    Sparse storage is factored with SuperLU, dense storage with LU.

    Args:
        obj: Operator or matrix.

    Returns:
        InvertibleOperator.
    """
    matrix = _matrix_of(obj)
    if issparse(matrix):
        return splu(matrix)
    return lu(matrix)
