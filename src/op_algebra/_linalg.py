"""
Dense/sparse linear-algebra primitives shared by the operator variants.

Operators never call NumPy/SciPy directly on their wrapped matrices; they go
through the helpers below, which dispatch on the storage:

- dense ``numpy.ndarray``: BLAS/LAPACK via NumPy and ``scipy.linalg``,
- SciPy sparse matrices/arrays: ``scipy.sparse.linalg``,
- factorization objects: anything exposing ``solve(b)`` (and optionally
  ``solve_into(out, b)`` and ``@``), e.g. :mod:`op_algebra.factorizations`.

In-place helpers write into caller-owned buffers with ``np.copyto`` or a
ufunc ``out=`` argument so that buffers handed out as reshaped views keep
their identity.
"""

from __future__ import annotations

import functools
from typing import TYPE_CHECKING, Any, TypeAlias, cast

import numpy as np
import scipy.linalg
from numpy.typing import NDArray
from scipy.sparse import csr_matrix, issparse
from scipy.sparse import kron as sparse_kron
from scipy.sparse.linalg import spsolve

if TYPE_CHECKING:
    from scipy.sparse import sparray, spmatrix

    SparseLike: TypeAlias = spmatrix | sparray

DenseMatrix: TypeAlias = NDArray[Any]
MatrixLike: TypeAlias = "DenseMatrix | SparseLike"


# =============================================================================
# Error message constants
# =============================================================================

_NOT_2D_ERROR = "Expected a 2D matrix; got ndim={ndim}"
_SPARSE_PATTERN_ERROR = (
    "Cannot copy into a {fmt} matrix in place: the sparsity pattern differs"
)
_EMPTY_KRON_ERROR = "kron_prod needs at least one factor"
_NO_SOLVE_ERROR = "{typ} exposes no solve(b) method"


# =============================================================================
# Type predicates
# =============================================================================


def is_matrix(obj: object) -> bool:
    """Return True for dense 2D ndarrays and SciPy sparse matrices."""
    if issparse(obj):
        return True
    return isinstance(obj, np.ndarray) and obj.ndim == 2


def is_factorization(obj: object) -> bool:
    """Return True for objects exposing a factorization-style solve."""
    return callable(getattr(obj, "solve", None)) or callable(
        getattr(obj, "solve_into", None)
    )


def is_real_dtype(dtype: object) -> bool:
    """Return True when ``dtype`` has no imaginary part."""
    return not np.issubdtype(np.dtype(dtype), np.complexfloating)


def as_matrix(obj: object) -> MatrixLike:
    """Coerce array-likes (lists, tuples) into a 2D ndarray; keep sparse as-is.

    Args:
        obj: Matrix-like input.

    Raises:
        ValueError: If the result is not 2D.

    Returns:
        Dense 2D ndarray or the original sparse matrix.
    """
    if issparse(obj):
        return cast("MatrixLike", obj)
    arr = np.asarray(obj)
    if arr.ndim != 2:
        raise ValueError(_NOT_2D_ERROR.format(ndim=arr.ndim))
    return arr


# =============================================================================
# Multiplication
# =============================================================================


def matmul(a: Any, u: NDArray[Any]) -> NDArray[Any]:
    """Out-of-place ``a @ u`` that always returns an ndarray."""
    return np.asarray(a @ u)


def scale_into(
    v: NDArray[Any],
    result: NDArray[Any],
    alpha: Any,
    beta: Any,
) -> NDArray[Any]:
    """Overwrite ``v`` with ``alpha * result + beta * v``.

    ``beta == 0`` discards the old contents of ``v`` (BLAS semantics), so NaNs
    in an uninitialized output buffer never leak into the result.

    Returns:
        ``v``.
    """
    if beta == 0:
        np.multiply(result, alpha, out=v)
        return v
    v *= beta
    v += alpha * result
    return v


def mul_into(
    v: NDArray[Any],
    a: Any,
    u: NDArray[Any],
    alpha: Any = None,
    beta: Any = None,
) -> NDArray[Any]:
    """In-place multiply ``v <- alpha * (a @ u) + beta * v``.

    With ``alpha`` and ``beta`` left as ``None`` this is a plain ``v <- a @ u``.

    Returns:
        ``v``.
    """
    if alpha is None and beta is None:
        if (
            isinstance(a, np.ndarray)
            and not np.may_share_memory(v, u)
            and np.can_cast(np.result_type(a, u), v.dtype, casting="same_kind")
        ):
            np.matmul(a, u, out=v)
            return v
        np.copyto(v, matmul(a, u))
        return v
    return scale_into(
        v,
        matmul(a, u),
        1 if alpha is None else alpha,
        0 if beta is None else beta,
    )


# =============================================================================
# Left division
# =============================================================================


def ldiv(a: Any, u: NDArray[Any]) -> NDArray[Any]:
    """
    Out-of-place left division ``a \\ u``.

    Args:
        a: Dense matrix, sparse matrix, or factorization object.
        u: 1D or 2D right-hand side.

    Raises:
        TypeError: If ``a`` cannot solve.

    Returns:
        Solution array.
    """
    if issparse(a):
        x = spsolve(a.tocsc(), u)
        x = np.asarray(x.toarray() if issparse(x) else x)
        return x.reshape((a.shape[1], *np.shape(u)[1:]))
    if isinstance(a, np.ndarray):
        if a.shape[0] == a.shape[1]:
            return scipy.linalg.solve(a, u)
        return scipy.linalg.lstsq(a, u)[0]
    solve = getattr(a, "solve", None)
    if callable(solve):
        return np.asarray(solve(u))
    solve_into = getattr(a, "solve_into", None)
    if callable(solve_into):
        out = np.empty(
            (a.shape[1], *np.shape(u)[1:]), dtype=np.result_type(a.dtype, u)
        )
        solve_into(out, u)
        return out
    raise TypeError(_NO_SOLVE_ERROR.format(typ=type(a).__name__))


def ldiv_into(v: NDArray[Any], a: Any, u: NDArray[Any]) -> NDArray[Any]:
    """In-place left division ``v <- a \\ u``.

    Returns:
        ``v``.
    """
    solve_into = getattr(a, "solve_into", None)
    if callable(solve_into):
        solve_into(v, u)
        return v
    np.copyto(v, ldiv(a, u))
    return v


def ldiv_inplace(a: Any, u: NDArray[Any]) -> NDArray[Any]:
    """Overwrite ``u`` with ``a \\ u``.

    Returns:
        ``u``.
    """
    return ldiv_into(u, a, u)


# =============================================================================
# Conversions
# =============================================================================


def to_dense(a: Any) -> DenseMatrix:
    """Materialize a dense ndarray from a dense, sparse or factorization input."""
    if issparse(a):
        return np.asarray(a.toarray())
    to_matrix = getattr(a, "to_matrix", None)
    if callable(to_matrix):
        return to_dense(to_matrix())
    return np.asarray(a)


def to_sparse(a: Any) -> csr_matrix:
    """Materialize a CSR matrix from a dense, sparse or factorization input."""
    if issparse(a):
        return csr_matrix(a)
    return csr_matrix(to_dense(a))


def adjoint_matrix(a: Any, *, conjugate: bool = True) -> Any:
    """Return the (conjugate) transpose of ``a``.

    For real storage the result is a transposed view sharing memory with ``a``
    (``.T`` of a CSR matrix is a CSC matrix over the same data arrays).
    """
    if conjugate and not is_real_dtype(a.dtype):
        return a.conj().T
    return a.T


def _same_pattern(dst: Any, src: Any) -> bool:
    """Return True if two sparse matrices of one format store the same entries."""
    if dst.shape != src.shape or dst.nnz != src.nnz:
        return False
    if dst.format in ("csr", "csc", "bsr"):
        return np.array_equal(dst.indptr, src.indptr) and np.array_equal(
            dst.indices, src.indices
        )
    if dst.format == "coo":
        return np.array_equal(dst.row, src.row) and np.array_equal(dst.col, src.col)
    if dst.format == "dia":
        return np.array_equal(dst.offsets, src.offsets)
    return False


def copy_matrix_into(dst: Any, src: Any) -> None:
    """Copy the values of ``src`` into ``dst`` without reallocating ``dst``.

    Nothing is copied when both already view the same memory. Sparse inputs
    must agree on shape and on the position of every stored entry.

    Raises:
        ValueError: If sparse inputs disagree on their sparsity pattern.
    """
    if issparse(dst):
        src_fmt = src.asformat(dst.format)
        if np.may_share_memory(dst.data, src_fmt.data):
            return
        if not _same_pattern(dst, src_fmt):
            raise ValueError(_SPARSE_PATTERN_ERROR.format(fmt=dst.format))
        dst.data[...] = src_fmt.data
        return
    src_arr = to_dense(src)
    if np.may_share_memory(dst, src_arr):
        return
    np.copyto(dst, src_arr)


def kron_prod(*factors: Any) -> Any:
    """
    Kronecker product ``factors[0] ⊗ factors[1] ⊗ ...``.

    Args:
        *factors: Dense or sparse matrices, outermost first.

    Raises:
        ValueError: If no factor is given.

    Returns:
        Dense ndarray, or a CSR matrix as soon as one factor is sparse.
    """
    if not factors:
        raise ValueError(_EMPTY_KRON_ERROR)
    if any(issparse(f) for f in factors):
        return functools.reduce(
            lambda acc, f: sparse_kron(acc, f, format="csr"), map(to_sparse, factors)
        )
    return functools.reduce(np.kron, map(np.asarray, factors))
