"""
Lazy adjoint / transpose view.

Used when an operator has no adjoint of its own (e.g. a function-backed
operator built without ``op_adjoint``). The view applies the reflected
action by materializing the parent with ``to_matrix``, which is exact but
costs one parent application per column.
"""

from __future__ import annotations

import warnings
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

import numpy as np

from . import _linalg
from .base import AbstractOperator

if TYPE_CHECKING:
    from numpy.typing import NDArray

_MATERIALIZE_WARNING = (
    "{parent} has no adjoint action; materializing a {rows}x{cols} matrix to "
    "apply its {kind}. Pass op_adjoint= to avoid this."
)


@dataclass(frozen=True, slots=True, eq=False, repr=False)
class AdjointedOperator(AbstractOperator):
    """Adjoint (or plain transpose) of ``parent``, evaluated lazily.

    Attributes:
        parent: Wrapped operator.
        conjugate: True for the conjugate transpose, False for the transpose.
    """

    parent: AbstractOperator
    conjugate: bool = True

    @property
    def shape(self) -> tuple[int, int]:
        rows, cols = self.parent.shape
        return (cols, rows)

    @property
    def dtype(self) -> np.dtype:
        return self.parent.dtype

    @property
    def children(self) -> tuple[AbstractOperator, ...]:
        return (self.parent,)

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
        return self.is_square

    @property
    def has_in_place_solve(self) -> bool:
        return self.is_square

    @property
    def is_cache_set(self) -> bool:
        return True

    def _matrix(self) -> NDArray[Any]:
        rows, cols = self.shape
        warnings.warn(
            _MATERIALIZE_WARNING.format(
                parent=type(self.parent).__name__,
                rows=rows,
                cols=cols,
                kind="adjoint" if self.conjugate else "transpose",
            ),
            RuntimeWarning,
            stacklevel=3,
        )
        return self.to_matrix()

    def apply(self, u: NDArray[Any]) -> NDArray[Any]:
        self._check_input(u)
        return _linalg.matmul(self._matrix(), u)

    def solve(self, u: NDArray[Any]) -> NDArray[Any]:
        self._check_input(u, axis=0)
        return _linalg.ldiv(self._matrix(), u)

    def adjoint(self) -> AbstractOperator:
        if self.conjugate:
            return self.parent
        return AdjointedOperator(self, conjugate=True)

    def transpose(self) -> AbstractOperator:
        if not self.conjugate:
            return self.parent
        return AdjointedOperator(self, conjugate=False)

    def update_coefficients(self, u: Any, p: Any, t: Any) -> AdjointedOperator:
        return AdjointedOperator(
            self.parent.update_coefficients(u, p, t), conjugate=self.conjugate
        )

    def to_matrix(self) -> Any:
        return _linalg.adjoint_matrix(
            _linalg.to_dense(self.parent.to_matrix()), conjugate=self.conjugate
        )
