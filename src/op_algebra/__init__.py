"""op_algebra composable linear and affine operators for time-stepping solvers."""

from __future__ import annotations

from . import traits
from .adjoint import AdjointedOperator
from .affine import AffineOperator
from .base import AbstractOperator
from .basic import (
    ComposedOperator,
    ScaledOperator,
    SumOperator,
    add,
    as_operator,
    compose,
)
from .config import FunctionOperatorConfig, make_function_config
from .errors import (
    CacheNotReadyError,
    DimensionMismatchError,
    NotInvertibleError,
    OperatorConfigError,
    OperatorError,
    UnsupportedNormError,
    UnsupportedOperationError,
)
from .factorizations import (
    AdjointFactorization,
    CholeskyFactorization,
    Factorization,
    LUFactorization,
    SparseLUFactorization,
)
from .function import FunctionOperator, function_operator
from .interface import (
    adjoint,
    apply,
    apply_into,
    cache_internals,
    cache_operator,
    opnorm,
    solve,
    solve_inplace,
    solve_into,
    to_matrix,
    to_sparse,
    transpose,
    update_coefficients,
)
from .invertible import InvertibleOperator, cholesky, factorize, lu, splu
from .matrix import DEFAULT_UPDATE_FUNC, MatrixOperator, diagonal_operator
from .tensor import TensorProductOperator, tensor_product

__all__ = [
    "DEFAULT_UPDATE_FUNC",
    "AbstractOperator",
    "AdjointFactorization",
    "AdjointedOperator",
    "AffineOperator",
    "CacheNotReadyError",
    "CholeskyFactorization",
    "ComposedOperator",
    "DimensionMismatchError",
    "Factorization",
    "FunctionOperator",
    "FunctionOperatorConfig",
    "InvertibleOperator",
    "LUFactorization",
    "MatrixOperator",
    "NotInvertibleError",
    "OperatorConfigError",
    "OperatorError",
    "ScaledOperator",
    "SparseLUFactorization",
    "SumOperator",
    "TensorProductOperator",
    "UnsupportedNormError",
    "UnsupportedOperationError",
    "add",
    "adjoint",
    "apply",
    "apply_into",
    "as_operator",
    "cache_internals",
    "cache_operator",
    "cholesky",
    "compose",
    "diagonal_operator",
    "factorize",
    "function_operator",
    "lu",
    "make_function_config",
    "opnorm",
    "solve",
    "solve_inplace",
    "solve_into",
    "splu",
    "tensor_product",
    "to_matrix",
    "to_sparse",
    "traits",
    "transpose",
    "update_coefficients",
]

__version__ = "0.1.0"
