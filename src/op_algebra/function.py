"""
Matrix-free operators defined by callables.

A :class:`FunctionOperator` wraps up to four callables (action, adjoint
action, inverse, adjoint inverse) plus the external state ``(p, t)`` they are
evaluated at. The calling convention is fixed once by ``isinplace``:

    isinplace=False:  op(u, p, t) -> v
    isinplace=True:   op(v, u, p, t)         # writes into v

Build instances with :func:`function_operator`, which validates the metadata
and fills in the adjoint / adjoint-inverse defaults.

Cache semantics:
    ``apply_into(v, u, alpha, beta)`` and ``solve_inplace(u)`` need one scratch
    buffer shaped like the output. Allocate it with ``cache_self(u)`` (or
    :func:`op_algebra.cache_operator`); the buffer is carried over by
    ``update_coefficients`` and dropped by ``adjoint`` when the shape changes.
"""

from __future__ import annotations

import dataclasses
import numbers
from collections.abc import Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

import numpy as np

from .adjoint import AdjointedOperator
from .base import AbstractOperator
from .config import FunctionOperatorConfig, make_function_config
from .errors import UnsupportedNormError, raise_unsupported

if TYPE_CHECKING:
    from numpy.typing import DTypeLike, NDArray

_NO_OPNORM_ERROR = (
    "FunctionOperator has no norm estimator. Pass opnorm= as a number or as a "
    "callable opnorm(p) -> float, e.g. lambda p: 100.0 if p == np.inf else ..."
)


@dataclass(frozen=True, slots=True, eq=False, repr=False)
class FunctionOperator(AbstractOperator):
    """Linear operator whose action is given by callables.

    Attributes:
        op: Action.
        op_adjoint: Adjoint action, or None.
        op_inverse: Inverse action, or None.
        op_adjoint_inverse: Adjoint-inverse action, or None.
        config: Validated metadata (calling convention, dtype, shape, traits).
        p: External parameter forwarded to every callable.
        t: External time forwarded to every callable.
        cache: Scratch buffer shaped like the output, or None.
    """

    op: Callable[..., Any]
    op_adjoint: Callable[..., Any] | None
    op_inverse: Callable[..., Any] | None
    op_adjoint_inverse: Callable[..., Any] | None
    config: FunctionOperatorConfig
    p: Any = None
    t: Any = 0
    cache: NDArray[Any] | None = None

    # ------------------------------------------------------------------
    # Structure and traits
    # ------------------------------------------------------------------

    @property
    def shape(self) -> tuple[int, int]:
        return self.config.shape

    @property
    def dtype(self) -> np.dtype:
        return self.config.dtype

    @property
    def isinplace(self) -> bool:
        return self.config.isinplace

    @property
    def is_constant(self) -> bool:
        return self.config.isconstant

    @property
    def has_adjoint(self) -> bool:
        return self.op_adjoint is not None

    @property
    def has_multiply(self) -> bool:
        return not self.isinplace

    @property
    def has_in_place_multiply(self) -> bool:
        return self.isinplace

    @property
    def has_solve(self) -> bool:
        return not self.isinplace and self.op_inverse is not None

    @property
    def has_in_place_solve(self) -> bool:
        return self.isinplace and self.op_inverse is not None

    @property
    def is_cache_set(self) -> bool:
        return self.cache is not None

    @property
    def issymmetric(self) -> bool:
        return self.config.issymmetric

    @property
    def ishermitian(self) -> bool:
        return self.config.ishermitian

    @property
    def isposdef(self) -> bool:
        return self.config.isposdef

    # ------------------------------------------------------------------
    # Calling-convention adapters
    # ------------------------------------------------------------------

    def _output_shape(self, u: NDArray[Any], rows: int) -> tuple[int, ...]:
        return (rows, *np.shape(u)[1:])

    def _call(self, func: Callable[..., Any], u: NDArray[Any], rows: int) -> Any:
        if not self.isinplace:
            return np.asarray(func(u, self.p, self.t))
        v = np.empty(
            self._output_shape(u, rows), dtype=np.result_type(self.dtype, u)
        )
        func(v, u, self.p, self.t)
        return v

    def _call_into(
        self,
        func: Callable[..., Any],
        v: NDArray[Any],
        u: NDArray[Any],
    ) -> NDArray[Any]:
        if self.isinplace:
            func(v, u, self.p, self.t)
        else:
            np.copyto(v, func(u, self.p, self.t))
        return v

    def _inverse(self) -> Callable[..., Any]:
        if self.op_inverse is None:
            raise_unsupported(self, "solve (no op_inverse given)")
        return self.op_inverse

    # ------------------------------------------------------------------
    # Application
    # ------------------------------------------------------------------

    def apply(self, u: NDArray[Any]) -> NDArray[Any]:
        self._check_input(u)
        return self._call(self.op, u, self.shape[0])

    def apply_into(
        self,
        v: NDArray[Any],
        u: NDArray[Any],
        alpha: Any = None,
        beta: Any = None,
    ) -> NDArray[Any]:
        """Compute ``v <- L u`` or, using the cache, ``v <- alpha L u + beta v``.

        Raises:
            CacheNotReadyError: If scaling is requested without a cache of
                ``v``'s shape.
        """
        self._check_input(u)
        if alpha is None and beta is None:
            return self._call_into(self.op, v, u)

        cache = self._require_cache(self.cache, v.shape)
        alpha = 1 if alpha is None else alpha
        beta = 0 if beta is None else beta

        np.copyto(cache, v)
        self._call_into(self.op, v, u)
        v *= alpha
        if beta != 0:
            cache *= beta
            v += cache
        return v

    def solve(self, u: NDArray[Any]) -> NDArray[Any]:
        self._check_input(u, axis=0)
        return self._call(self._inverse(), u, self.shape[1])

    def solve_into(self, v: NDArray[Any], u: NDArray[Any]) -> NDArray[Any]:
        self._check_input(u, axis=0)
        return self._call_into(self._inverse(), v, u)

    def solve_inplace(self, u: NDArray[Any]) -> NDArray[Any]:
        """Overwrite ``u`` with ``L \\ u`` using the cache as the right-hand side.

        Raises:
            CacheNotReadyError: If the cache is unset or sized differently.
        """
        inverse = self._inverse()
        cache = self._require_cache(self.cache, u.shape)
        np.copyto(cache, u)
        return self._call_into(inverse, u, cache)

    # ------------------------------------------------------------------
    # Adjoint / transpose
    # ------------------------------------------------------------------

    def adjoint(self) -> AbstractOperator:
        if self.config.is_self_adjoint:
            return self
        if self.op_adjoint is None:
            return AdjointedOperator(self)
        # The cache holds outputs; it survives only if the output shape does.
        cache = self.cache if self.is_square else None
        return dataclasses.replace(
            self,
            op=self.op_adjoint,
            op_adjoint=self.op,
            op_inverse=self.op_adjoint_inverse,
            op_adjoint_inverse=self.op_inverse,
            config=self.config.reversed(),
            cache=cache,
        )

    def transpose(self) -> AbstractOperator:
        if self.config.is_real:
            return self.adjoint()
        if self.config.issymmetric:
            return self
        return AdjointedOperator(self, conjugate=False)

    # ------------------------------------------------------------------
    # State and cache
    # ------------------------------------------------------------------

    def update_coefficients(self, u: Any, p: Any, t: Any) -> FunctionOperator:
        """Return a copy evaluated at ``(p, t)``; callables and cache are shared."""
        return dataclasses.replace(self, p=p, t=t)

    def cache_self(self, u: NDArray[Any]) -> FunctionOperator:
        """Allocate an output-shaped scratch buffer for operands like ``u``."""
        self._check_input(u)
        cache = np.empty(
            self._output_shape(u, self.shape[0]),
            dtype=np.result_type(self.dtype, u),
        )
        return dataclasses.replace(self, cache=cache)

    # ------------------------------------------------------------------
    # Conversion
    # ------------------------------------------------------------------

    def to_matrix(self) -> NDArray[Any]:
        """Materialize the operator by applying it to each unit vector."""
        rows, cols = self.shape
        out = np.empty((rows, cols), dtype=self.dtype)
        unit = np.zeros(cols, dtype=self.dtype)
        for j in range(cols):
            unit[j] = 1
            out[:, j] = self._call(self.op, unit, rows)
            unit[j] = 0
        return out

    def opnorm(self, p: Any = 2) -> float:
        """Return the configured norm.

        Raises:
            UnsupportedNormError: If no norm estimator was configured.
        """
        estimator = self.config.opnorm
        if estimator is None:
            raise UnsupportedNormError(_NO_OPNORM_ERROR)
        if isinstance(estimator, numbers.Number):
            return float(estimator)
        return float(estimator(p))


def function_operator(
    op: Callable[..., Any],
    *,
    isinplace: bool | None = None,
    dtype: DTypeLike | None = None,
    shape: tuple[int, int] | None = None,
    op_adjoint: Callable[..., Any] | None = None,
    op_inverse: Callable[..., Any] | None = None,
    op_adjoint_inverse: Callable[..., Any] | None = None,
    p: Any = None,
    t: Any = None,
    cache: NDArray[Any] | None = None,
    opnorm: float | Callable[[Any], float] | None = None,
    issymmetric: bool = False,
    ishermitian: bool = False,
    isposdef: bool = False,
    isconstant: bool = False,
) -> FunctionOperator:
    """
    Build a matrix-free operator.

    Args:
        op: Action, ``op(u, p, t)`` or ``op(v, u, p, t)``.
        isinplace: Calling convention of every callable (required).
        dtype: Element type (required).
        shape: ``(rows, cols)`` (required).
        op_adjoint: Adjoint action; defaults to ``op`` for self-adjoint operators.
        op_inverse: Inverse action.
        op_adjoint_inverse: Adjoint inverse; defaults to ``op_inverse``.
        p: Initial parameter.
        t: Initial time; defaults to zero of ``dtype``.
        cache: Pre-allocated output-shaped scratch buffer.
        opnorm: Norm value or estimator ``opnorm(p)``.
        issymmetric: Declared symmetry.
        ishermitian: Declared Hermitian symmetry.
        isposdef: Declared positive definiteness.
        isconstant: Declare that the action ignores ``(p, t)``.

    Raises:
        OperatorConfigError: If ``isinplace``, ``dtype`` or ``shape`` is missing
            or invalid.

    Returns:
        FunctionOperator.
    """
    config = make_function_config(
        isinplace=isinplace,
        dtype=dtype,
        shape=shape,
        opnorm=opnorm,
        issymmetric=issymmetric,
        ishermitian=ishermitian,
        isposdef=isposdef,
        isconstant=isconstant,
    )

    if op_adjoint is None and config.is_self_adjoint:
        op_adjoint = op
    if op_inverse is not None and op_adjoint_inverse is None:
        op_adjoint_inverse = op_inverse

    return FunctionOperator(
        op=op,
        op_adjoint=op_adjoint,
        op_inverse=op_inverse,
        op_adjoint_inverse=op_adjoint_inverse,
        config=config,
        p=p,
        t=config.dtype.type(0) if t is None else t,
        cache=cache,
    )
