# src/op_algebra/errors.py
"""Error types and standardized raise helpers for op_algebra.

This module centralizes:
- explicit error classes with actionable messages, and
- small helpers that build those messages consistently.

Every error derives from :class:`OperatorError` and from the builtin exception
a caller would naturally catch (``ValueError`` for bad inputs, ``RuntimeError``
for lifecycle problems, ``NotImplementedError`` for missing capabilities).
Nothing here is retried; the host solver owns any fallback policy.
"""

from __future__ import annotations

from typing import Final, NoReturn

_CACHE_HINT: Final[str] = (
    "Allocate scratch buffers first with:\n"
    "  L = op_algebra.cache_operator(L, u)\n"
    "or, to also cache every child operator:\n"
    "  L = op_algebra.cache_internals(L, u)"
)

_FUNCTION_OPERATOR_HINT: Final[str] = (
    "If isinplace=False the callable signature is op(u, p, t); if "
    "isinplace=True it is op(du, u, p, t) and must write into du."
)


class OperatorError(Exception):
    """Base exception for op_algebra errors."""


class OperatorConfigError(OperatorError, ValueError):
    """Raised when an operator is constructed from incomplete or invalid metadata."""


class NotInvertibleError(OperatorError, ValueError):
    """Raised when wrapping an object that exposes no solve capability."""


class DimensionMismatchError(OperatorError, ValueError):
    """Raised when operator or operand shapes are incompatible."""


class CacheNotReadyError(OperatorError, RuntimeError):
    """Raised when an in-place call needs a cache that is unset or mis-sized."""


class UnsupportedNormError(OperatorError, NotImplementedError):
    """Raised when an operator norm is requested but cannot be computed."""


class UnsupportedOperationError(OperatorError, NotImplementedError):
    """Raised when an operator lacks the capability an operation needs."""


def raise_config_error(
    *,
    missing: list[str] | None = None,
    detail: str | None = None,
) -> NoReturn:
    """Raise a standardized OperatorConfigError.

    Args:
        missing: Required fields that were not supplied.
        detail: Optional additional context.

    Raises:
        OperatorConfigError: Always.
    """
    parts: list[str] = ["Invalid FunctionOperator configuration."]
    if missing:
        parts.append(f"Missing required field(s): {sorted(set(missing))}.")
    if detail:
        parts.append(f"Detail: {detail}")
    if missing and "isinplace" in missing:
        parts.append(_FUNCTION_OPERATOR_HINT)
    raise OperatorConfigError(" ".join(parts))


def raise_not_invertible(obj: object) -> NoReturn:
    """Raise a standardized NotInvertibleError.

    Args:
        obj: The object that was supposed to be invertible.

    Raises:
        NotInvertibleError: Always.
    """
    msg = (
        f"{type(obj).__name__} is not invertible: it exposes neither solve(b) "
        "nor solve_into(out, b)."
    )
    raise NotInvertibleError(msg)


def raise_dimension_mismatch(
    operation: str,
    *,
    expected: object,
    got: object,
) -> NoReturn:
    """Raise a standardized DimensionMismatchError.

    Args:
        operation: Human-readable name of the failing operation.
        expected: Expected shape description.
        got: Actual observed shape.

    Raises:
        DimensionMismatchError: Always.
    """
    msg = f"Dimension mismatch in {operation}: expected {expected}, got {got}."
    raise DimensionMismatchError(msg)


def raise_cache_not_ready(
    operator: object,
    *,
    expected: tuple[int, ...] | None = None,
    got: tuple[int, ...] | None = None,
) -> NoReturn:
    """Raise a standardized CacheNotReadyError.

    Args:
        operator: Operator whose cache was required.
        expected: Buffer shape the call needs, when the cache exists but is stale.
        got: Buffer shape actually allocated.

    Raises:
        CacheNotReadyError: Always.
    """
    name = type(operator).__name__
    if expected is None:
        msg = f"{name} cache is not set up.\n\n{_CACHE_HINT}"
    else:
        msg = (
            f"{name} cache has shape {got} but this call needs {expected}; "
            f"re-cache for the new operand shape.\n\n{_CACHE_HINT}"
        )
    raise CacheNotReadyError(msg)


def raise_unsupported(operator: object, operation: str) -> NoReturn:
    """Raise a standardized UnsupportedOperationError.

    Args:
        operator: Operator lacking the capability.
        operation: Name of the operation that was requested.

    Raises:
        UnsupportedOperationError: Always.
    """
    msg = f"{type(operator).__name__} does not support {operation}."
    raise UnsupportedOperationError(msg)
