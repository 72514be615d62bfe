"""
Thin adapters giving SciPy decompositions a uniform factorization surface.

SciPy returns decompositions in several shapes: ``lu_factor`` and
``cho_factor`` give tuples meant for ``lu_solve`` / ``cho_solve``, while
``splu`` gives a ``SuperLU`` object. The adapters below wrap them so that
:class:`op_algebra.invertible.InvertibleOperator` can treat every
factorization the same way:

    F.shape, F.dtype
    F.solve(b, trans="N")        -> x with op(A) x = b, op in {A, A^T, A^H}
    F.solve_into(out, b)         out <- A \\ b
    F @ x                        -> A x
    F.adjoint(), F.transpose()   -> AdjointFactorization views
    F.norm(ord)                  -> matrix norm of A
    F.to_matrix()                -> dense (or sparse) A

No decomposition algorithm is implemented here.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Literal, TypeAlias

import numpy as np
import scipy.linalg
from scipy.sparse import csc_matrix
from scipy.sparse.linalg import norm as sparse_norm
from scipy.sparse.linalg import splu

from . import _linalg

if TYPE_CHECKING:
    from numpy.typing import NDArray
    from scipy.sparse.linalg import SuperLU

Trans: TypeAlias = Literal["N", "T", "H"]

_LAPACK_TRANS: dict[str, int] = {"N": 0, "T": 1, "H": 2}

_TRANS_ERROR = "trans must be one of 'N', 'T', 'H'; got {trans!r}"
_SQUARE_ERROR = "Factorizations require a square matrix; got shape {shape}"
_MIXED_REFLECTION_ERROR = (
    "Mixing adjoint and transpose of a complex factorization is not supported"
)


def _check_trans(trans: str) -> str:
    if trans not in _LAPACK_TRANS:
        raise ValueError(_TRANS_ERROR.format(trans=trans))
    return trans


def _check_square(matrix: Any) -> None:
    if matrix.ndim != 2 or matrix.shape[0] != matrix.shape[1]:  # noqa: PLR2004
        raise ValueError(_SQUARE_ERROR.format(shape=matrix.shape))


class Factorization:
    """Shared behavior of the concrete factorization adapters."""

    __slots__ = ()

    @property
    def shape(self) -> tuple[int, int]:
        raise NotImplementedError

    @property
    def dtype(self) -> np.dtype:
        raise NotImplementedError

    def solve(self, b: NDArray[Any], trans: Trans = "N") -> NDArray[Any]:
        raise NotImplementedError

    def _apply(self, x: NDArray[Any], trans: Trans = "N") -> NDArray[Any]:
        raise NotImplementedError

    def to_matrix(self) -> Any:
        raise NotImplementedError

    def solve_into(self, out: NDArray[Any], b: NDArray[Any]) -> NDArray[Any]:
        """Write ``A \\ b`` into ``out`` (``out`` may alias ``b``).

        Returns:
            ``out``.
        """
        np.copyto(out, self.solve(b))
        return out

    def __matmul__(self, x: NDArray[Any]) -> NDArray[Any]:
        return self._apply(np.asarray(x))

    def adjoint(self) -> AdjointFactorization:
        """Return the conjugate-transpose view of this factorization."""
        return AdjointFactorization(self, conjugate=True)

    def transpose(self) -> AdjointFactorization:
        """Return the transpose view of this factorization."""
        return AdjointFactorization(self, conjugate=False)

    def norm(self, ord: Any = 2) -> float:  # noqa: A002
        """Return the ``ord`` matrix norm of the factored matrix."""
        return float(np.linalg.norm(_linalg.to_dense(self.to_matrix()), ord))

    def is_success(self) -> bool:
        """Return True if the factorization can be used to solve."""
        return True

    def __repr__(self) -> str:
        return f"{type(self).__name__}(shape={self.shape}, dtype={self.dtype})"


# =============================================================================
# Dense LU
# =============================================================================


class LUFactorization(Factorization):
    """Dense LU with partial pivoting (``scipy.linalg.lu_factor``)."""

    __slots__ = ("lu", "piv")

    def __init__(self, matrix: NDArray[Any], *, check_finite: bool = True) -> None:
        """
        Factor a dense square matrix.

        Args:
            matrix: Dense square matrix ``A``.
            check_finite: Forwarded to ``scipy.linalg.lu_factor``.
        """
        arr = np.asarray(matrix)
        _check_square(arr)
        self.lu, self.piv = scipy.linalg.lu_factor(arr, check_finite=check_finite)

    @property
    def shape(self) -> tuple[int, int]:
        n = self.lu.shape[0]
        return (n, n)

    @property
    def dtype(self) -> np.dtype:
        return self.lu.dtype

    def solve(self, b: NDArray[Any], trans: Trans = "N") -> NDArray[Any]:
        code = _LAPACK_TRANS[_check_trans(trans)]
        return scipy.linalg.lu_solve((self.lu, self.piv), b, trans=code)

    def solve_into(self, out: NDArray[Any], b: NDArray[Any]) -> NDArray[Any]:
        if out is not b:
            np.copyto(out, b)
        x = scipy.linalg.lu_solve((self.lu, self.piv), out, overwrite_b=True)
        if not np.may_share_memory(x, out):
            np.copyto(out, x)
        return out

    def _permute(self, x: NDArray[Any], *, forward: bool) -> NDArray[Any]:
        """Apply the LAPACK row interchanges (forward: P^T x, backward: P x)."""
        y = np.array(x, copy=True)
        order = range(len(self.piv)) if forward else reversed(range(len(self.piv)))
        for i in order:
            j = self.piv[i]
            if i != j:
                y[[i, j]] = y[[j, i]]
        return y

    def _apply(self, x: NDArray[Any], trans: Trans = "N") -> NDArray[Any]:
        lower = np.tril(self.lu, k=-1) + np.eye(self.shape[0], dtype=self.dtype)
        upper = np.triu(self.lu)
        if trans == "N":
            return self._permute(lower @ (upper @ x), forward=False)
        if trans == "H":
            lower, upper = lower.conj(), upper.conj()
        return upper.T @ (lower.T @ self._permute(x, forward=True))

    def to_matrix(self) -> NDArray[Any]:
        return self._apply(np.eye(self.shape[0], dtype=self.dtype))

    def is_success(self) -> bool:
        return bool(np.all(np.diag(self.lu) != 0))


# =============================================================================
# Dense Cholesky
# =============================================================================


class CholeskyFactorization(Factorization):
    """Dense Cholesky of a Hermitian positive definite matrix (``cho_factor``)."""

    __slots__ = ("c", "lower")

    def __init__(
        self,
        matrix: NDArray[Any],
        *,
        lower: bool = False,
        check_finite: bool = True,
    ) -> None:
        """
        Factor a dense Hermitian positive definite matrix.

        Args:
            matrix: Dense square matrix ``A``.
            lower: Store ``A = L L^H`` instead of ``A = R^H R``.
            check_finite: Forwarded to ``scipy.linalg.cho_factor``.
        """
        arr = np.asarray(matrix)
        _check_square(arr)
        self.c, self.lower = scipy.linalg.cho_factor(
            arr, lower=lower, check_finite=check_finite
        )

    @property
    def shape(self) -> tuple[int, int]:
        n = self.c.shape[0]
        return (n, n)

    @property
    def dtype(self) -> np.dtype:
        return self.c.dtype

    def solve(self, b: NDArray[Any], trans: Trans = "N") -> NDArray[Any]:
        # A is Hermitian: A^H = A and A^T = conj(A).
        if _check_trans(trans) == "T":
            return np.conj(scipy.linalg.cho_solve((self.c, self.lower), np.conj(b)))
        return scipy.linalg.cho_solve((self.c, self.lower), b)

    def _factor(self) -> NDArray[Any]:
        return np.tril(self.c) if self.lower else np.triu(self.c)

    def _apply(self, x: NDArray[Any], trans: Trans = "N") -> NDArray[Any]:
        if trans == "T":
            return np.conj(self._apply(np.conj(x)))
        factor = self._factor()
        if self.lower:
            return factor @ (factor.conj().T @ x)
        return factor.conj().T @ (factor @ x)

    def to_matrix(self) -> NDArray[Any]:
        return self._apply(np.eye(self.shape[0], dtype=self.dtype))


# =============================================================================
# Sparse LU
# =============================================================================


class SparseLUFactorization(Factorization):
    """Sparse LU (``scipy.sparse.linalg.splu``, SuperLU).

    Keeps a reference to the factored matrix for multiplication and
    conversion; SuperLU solves directly in the requested transposition.
    """

    __slots__ = ("matrix", "superlu")

    def __init__(self, matrix: Any) -> None:
        """
        Factor a sparse square matrix.

        Args:
            matrix: Sparse (or dense) square matrix ``A``.
        """
        self.matrix = csc_matrix(matrix)
        _check_square(self.matrix)
        self.superlu: SuperLU = splu(self.matrix)

    @property
    def shape(self) -> tuple[int, int]:
        rows, cols = self.matrix.shape
        return (int(rows), int(cols))

    @property
    def dtype(self) -> np.dtype:
        return self.matrix.dtype

    def solve(self, b: NDArray[Any], trans: Trans = "N") -> NDArray[Any]:
        rhs = np.asarray(b, dtype=np.result_type(self.dtype, b))
        return self.superlu.solve(rhs, trans=_check_trans(trans))

    def _apply(self, x: NDArray[Any], trans: Trans = "N") -> NDArray[Any]:
        matrix = self.matrix
        if trans != "N":
            matrix = _linalg.adjoint_matrix(matrix, conjugate=trans == "H")
        return np.asarray(matrix @ x)

    def to_matrix(self) -> csc_matrix:
        return self.matrix

    def norm(self, ord: Any = 2) -> float:  # noqa: A002
        if ord == 2:  # noqa: PLR2004
            return super().norm(ord)
        return float(sparse_norm(self.matrix, ord))


# =============================================================================
# Adjoint / transpose views
# =============================================================================


@dataclass(frozen=True, slots=True, eq=False)
class AdjointFactorization:
    """Adjoint (or transpose) view of a factorization.

    This is deliberately *not* a :class:`Factorization`: it has no
    ``to_matrix``. Converting it requires converting ``parent`` and reflecting
    the result, which :class:`op_algebra.invertible.InvertibleOperator` does.

    Attributes:
        parent: The factorization being reflected.
        conjugate: True for the adjoint, False for the plain transpose.
    """

    parent: Factorization
    conjugate: bool = True

    @property
    def trans(self) -> Trans:
        return "H" if self.conjugate else "T"

    @property
    def shape(self) -> tuple[int, int]:
        rows, cols = self.parent.shape
        return (cols, rows)

    @property
    def dtype(self) -> np.dtype:
        return self.parent.dtype

    def solve(self, b: NDArray[Any], trans: Trans = "N") -> NDArray[Any]:
        if _check_trans(trans) != "N":
            return self.adjoint().solve(b) if trans == self.trans else self._mixed()
        return self.parent.solve(b, trans=self.trans)

    def solve_into(self, out: NDArray[Any], b: NDArray[Any]) -> NDArray[Any]:
        np.copyto(out, self.solve(b))
        return out

    def __matmul__(self, x: NDArray[Any]) -> NDArray[Any]:
        return self.parent._apply(np.asarray(x), trans=self.trans)  # noqa: SLF001

    def adjoint(self) -> Factorization:
        if self.conjugate or _linalg.is_real_dtype(self.dtype):
            return self.parent
        return self._mixed()

    def transpose(self) -> Factorization:
        if not self.conjugate or _linalg.is_real_dtype(self.dtype):
            return self.parent
        return self._mixed()

    def norm(self, ord: Any = 2) -> float:  # noqa: A002
        # ||A^H||_1 = ||A||_inf and vice versa; 2 and Frobenius are invariant.
        swapped = {1: np.inf, np.inf: 1}.get(ord, ord)
        return self.parent.norm(swapped)

    def is_success(self) -> bool:
        return self.parent.is_success()

    def _mixed(self) -> Any:
        raise NotImplementedError(_MIXED_REFLECTION_ERROR)
