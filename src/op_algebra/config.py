# src/op_algebra/config.py
"""Configuration models for matrix-free operators.

A :class:`op_algebra.function.FunctionOperator` carries a metadata record
describing what the wrapped callables are: calling convention, element type,
shape, declared symmetry, and an optional norm estimator. The record is a
frozen pydantic model so that invalid metadata is rejected once, at
construction, with a single :class:`op_algebra.errors.OperatorConfigError`.

Notes:
    - ``isinplace``, ``dtype`` and ``shape`` are required; there is no sensible
      default for any of them.
    - Unknown fields are rejected (``extra="forbid"``) to catch typos such as
      ``is_inplace``.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

import numpy as np
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from .errors import raise_config_error

_DTYPE_ERROR = "dtype must be a NumPy dtype-like; got {value!r}"
_SHAPE_ERROR = "shape must be a pair of non-negative integers; got {value!r}"


class FunctionOperatorConfig(BaseModel):
    """Metadata of a function-backed operator.

    Attributes:
        isinplace: True if callables have signature ``op(du, u, p, t)`` and
            write into ``du``; False for ``op(u, p, t) -> du``.
        dtype: Element type of the operator.
        shape: ``(rows, cols)``.
        opnorm: Optional norm: a number, or a callable ``opnorm(p) -> float``.
        issymmetric: Declared symmetry.
        ishermitian: Declared Hermitian symmetry.
        isposdef: Declared positive definiteness.
        isconstant: Declare that the action ignores ``(p, t)``.
    """

    model_config = ConfigDict(
        frozen=True,
        arbitrary_types_allowed=True,
        extra="forbid",
    )

    isinplace: bool = Field(description="Callables write into a supplied output")
    dtype: Any = Field(description="Element type of the operator")
    shape: tuple[int, int] = Field(description="Operator shape (rows, cols)")

    opnorm: float | Callable[[Any], float] | None = Field(
        default=None,
        description="Operator norm value or estimator opnorm(p)",
    )
    issymmetric: bool = False
    ishermitian: bool = False
    isposdef: bool = False
    isconstant: bool = False

    @field_validator("dtype")
    @classmethod
    def _coerce_dtype(cls, value: Any) -> np.dtype:
        try:
            return np.dtype(value)
        except TypeError as exc:
            raise ValueError(_DTYPE_ERROR.format(value=value)) from exc

    @field_validator("shape", mode="before")
    @classmethod
    def _coerce_shape(cls, value: Any) -> tuple[int, int]:
        try:
            rows, cols = (int(n) for n in value)
        except (TypeError, ValueError) as exc:
            raise ValueError(_SHAPE_ERROR.format(value=value)) from exc
        if rows < 0 or cols < 0:
            raise ValueError(_SHAPE_ERROR.format(value=value))
        return (rows, cols)

    @property
    def is_real(self) -> bool:
        """True if the element type has no imaginary part."""
        return not np.issubdtype(self.dtype, np.complexfloating)

    @property
    def is_self_adjoint(self) -> bool:
        """True if the declared traits make the operator its own adjoint."""
        return self.ishermitian or (self.is_real and self.issymmetric)

    def reversed(self) -> FunctionOperatorConfig:
        """Return a copy with the shape reversed (for the adjoint)."""
        rows, cols = self.shape
        return self.model_copy(update={"shape": (cols, rows)})


def make_function_config(**fields: Any) -> FunctionOperatorConfig:
    """Validate function-operator metadata.

    Fields passed as ``None`` count as missing.

    Args:
        **fields: FunctionOperatorConfig fields.

    Raises:
        OperatorConfigError: If required fields are missing or invalid.

    Returns:
        Validated FunctionOperatorConfig.
    """
    supplied = {name: value for name, value in fields.items() if value is not None}
    try:
        return FunctionOperatorConfig(**supplied)
    except ValidationError as exc:
        missing = [
            str(err["loc"][0]) for err in exc.errors() if err["type"] == "missing"
        ]
        invalid = [
            f"{err['loc'][0] if err['loc'] else '?'}: {err['msg']}"
            for err in exc.errors()
            if err["type"] != "missing"
        ]
        raise_config_error(
            missing=missing or None,
            detail="; ".join(invalid) or None,
        )
