"""
Matrix-backed operators.

:class:`MatrixOperator` wraps a dense ``ndarray`` or a SciPy sparse matrix
together with an optional update rule::

    update_func(A, u, p, t) -> A   # mutates A in place

The operator is interchangeable with the bare matrix wherever solver code only
needs element access: indexing, item assignment, iteration, ``len`` and
``np.asarray`` all delegate to the wrapped matrix.
"""

from __future__ import annotations

from collections.abc import Callable, Iterator
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, TypeAlias

import numpy as np
from scipy.sparse import csr_matrix, diags, issparse
from scipy.sparse.linalg import norm as sparse_norm

from . import _linalg, traits
from .base import AbstractOperator

if TYPE_CHECKING:
    from numpy.typing import ArrayLike, NDArray

UpdateFunc: TypeAlias = Callable[[Any, Any, Any, Any], Any]


def _default_update(a: Any, u: Any, p: Any, t: Any) -> Any:  # noqa: ARG001
    return a


DEFAULT_UPDATE_FUNC: UpdateFunc = _default_update


@dataclass(frozen=True, slots=True, eq=False, repr=False)
class MatrixOperator(AbstractOperator):
    """Linear operator given by a (possibly time-dependent) matrix.

    Attributes:
        A: Wrapped dense or sparse matrix.
        update_func: Rule ``update_func(A, u, p, t)`` that mutates ``A`` in
            place; the default leaves ``A`` untouched.
    """

    A: Any
    update_func: UpdateFunc = DEFAULT_UPDATE_FUNC

    def __post_init__(self) -> None:
        object.__setattr__(self, "A", _linalg.as_matrix(self.A))

    # ------------------------------------------------------------------
    # Structure and traits
    # ------------------------------------------------------------------

    @property
    def shape(self) -> tuple[int, int]:
        """Return the matrix shape."""
        rows, cols = self.A.shape
        return (int(rows), int(cols))

    @property
    def dtype(self) -> np.dtype:
        """Return the matrix dtype."""
        return np.dtype(self.A.dtype)

    @property
    def ndim(self) -> int:
        """Matrices are always 2D."""
        return 2

    @property
    def is_constant(self) -> bool:
        """True iff the update rule is the no-op default."""
        return self.update_func is DEFAULT_UPDATE_FUNC

    @property
    def has_adjoint(self) -> bool:
        return True

    @property
    def has_multiply(self) -> bool:
        return True

    @property
    def has_in_place_multiply(self) -> bool:
        return True

    @property
    def has_solve(self) -> bool:
        return True

    @property
    def has_in_place_solve(self) -> bool:
        return True

    @property
    def iszero(self) -> bool:
        if issparse(self.A):
            return self.A.count_nonzero() == 0
        return not np.any(self.A)

    @property
    def issymmetric(self) -> bool:
        return traits.issymmetric(self.A)

    @property
    def ishermitian(self) -> bool:
        return traits.ishermitian(self.A)

    @property
    def isposdef(self) -> bool:
        return traits.isposdef(self.A)

    # ------------------------------------------------------------------
    # Application
    # ------------------------------------------------------------------

    def apply(self, u: NDArray[Any]) -> NDArray[Any]:
        return _linalg.matmul(self.A, u)

    def apply_into(
        self,
        v: NDArray[Any],
        u: NDArray[Any],
        alpha: Any = None,
        beta: Any = None,
    ) -> NDArray[Any]:
        return _linalg.mul_into(v, self.A, u, alpha, beta)

    def solve(self, u: NDArray[Any]) -> NDArray[Any]:
        return _linalg.ldiv(self.A, u)

    def solve_into(self, v: NDArray[Any], u: NDArray[Any]) -> NDArray[Any]:
        return _linalg.ldiv_into(v, self.A, u)

    def solve_inplace(self, u: NDArray[Any]) -> NDArray[Any]:
        return _linalg.ldiv_inplace(self.A, u)

    # ------------------------------------------------------------------
    # Adjoint / transpose
    # ------------------------------------------------------------------

    def adjoint(self) -> MatrixOperator:
        return self._reflected(conjugate=True)

    def transpose(self) -> MatrixOperator:
        return self._reflected(conjugate=False)

    def _reflected(self, *, conjugate: bool) -> MatrixOperator:
        """Wrap the (conjugate) transpose and chain the update rule onto it."""
        reflected = _linalg.adjoint_matrix(self.A, conjugate=conjugate)
        if self.is_constant:
            return MatrixOperator(reflected)

        parent_a = self.A
        parent_update = self.update_func

        def update_func(a: Any, u: Any, p: Any, t: Any) -> Any:
            parent_update(parent_a, u, p, t)
            _linalg.copy_matrix_into(
                a, _linalg.adjoint_matrix(parent_a, conjugate=conjugate)
            )
            return a

        return MatrixOperator(reflected, update_func=update_func)

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    def update_coefficients(self, u: Any, p: Any, t: Any) -> MatrixOperator:
        """Run the update rule on the wrapped matrix and return self."""
        self.update_func(self.A, u, p, t)
        return self

    # ------------------------------------------------------------------
    # Conversion
    # ------------------------------------------------------------------

    def to_matrix(self) -> Any:
        """Return the wrapped matrix itself (no copy)."""
        return self.A

    def to_sparse(self) -> csr_matrix:
        return csr_matrix(self.A)

    def opnorm(self, p: Any = 2) -> float:
        if issparse(self.A) and p != 2:  # noqa: PLR2004
            return float(sparse_norm(self.A, p))
        return float(np.linalg.norm(_linalg.to_dense(self.A), p))

    def copy(self) -> MatrixOperator:
        """Return an operator over a copy of the matrix, sharing the update rule."""
        return MatrixOperator(self.A.copy(), update_func=self.update_func)

    def copyto(self, src: Any) -> MatrixOperator:
        """Overwrite the wrapped matrix with the values of ``src``.

        Returns:
            self.
        """
        _linalg.copy_matrix_into(self.A, src)
        return self

    # ------------------------------------------------------------------
    # Matrix-like delegation
    # ------------------------------------------------------------------

    def __getitem__(self, key: Any) -> Any:
        return self.A[key]

    def __setitem__(self, key: Any, value: Any) -> None:
        self.A[key] = value

    def __iter__(self) -> Iterator[Any]:
        return iter(self.A)

    def __len__(self) -> int:
        return self.shape[0]

    def __array__(self, dtype: Any = None, copy: bool | None = None) -> NDArray[Any]:
        dense = _linalg.to_dense(self.A)
        if dtype is not None:
            dense = dense.astype(dtype, copy=False)
        return dense.copy() if copy else dense


def diagonal_operator(
    u: ArrayLike,
    *,
    update_func: UpdateFunc = DEFAULT_UPDATE_FUNC,
) -> MatrixOperator:
    """
    Build a sparse diagonal operator from the entries of ``u``.

    Args:
        u: Diagonal entries (flattened).
        update_func: Optional update rule acting on the CSR diagonal matrix.

    Returns:
        MatrixOperator wrapping ``diag(u)`` in CSR format.
    """
    values = np.ravel(np.asarray(u))
    return MatrixOperator(diags(values, format="csr"), update_func=update_func)
