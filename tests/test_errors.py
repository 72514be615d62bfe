"""Unit tests for op_algebra.errors."""

from __future__ import annotations

import pytest

from op_algebra import errors


@pytest.mark.parametrize(
    ("error", "builtin"),
    [
        (errors.OperatorConfigError, ValueError),
        (errors.NotInvertibleError, ValueError),
        (errors.DimensionMismatchError, ValueError),
        (errors.CacheNotReadyError, RuntimeError),
        (errors.UnsupportedNormError, NotImplementedError),
        (errors.UnsupportedOperationError, NotImplementedError),
    ],
)
def test_errors_derive_from_base_and_builtin(
    error: type[Exception], builtin: type[Exception]
) -> None:
    """Every error is an OperatorError and the matching builtin."""
    assert issubclass(error, errors.OperatorError)
    assert issubclass(error, builtin)


def test_raise_config_error_lists_missing_fields_and_hint() -> None:
    """raise_config_error names missing fields and explains the signatures."""
    with pytest.raises(errors.OperatorConfigError) as excinfo:
        errors.raise_config_error(missing=["shape", "isinplace", "shape"])
    message = str(excinfo.value)
    assert "['isinplace', 'shape']" in message
    assert "op(du, u, p, t)" in message


def test_raise_config_error_with_detail_only() -> None:
    """Detail text is included; no signature hint without isinplace missing."""
    with pytest.raises(errors.OperatorConfigError, match="Detail: bad dtype") as exc:
        errors.raise_config_error(detail="bad dtype")
    assert "op(du, u, p, t)" not in str(exc.value)


def test_raise_not_invertible_names_type() -> None:
    """raise_not_invertible names the offending type."""
    with pytest.raises(errors.NotInvertibleError, match="int is not invertible"):
        errors.raise_not_invertible(3)


def test_raise_dimension_mismatch_message() -> None:
    """raise_dimension_mismatch reports operation, expected and actual shapes."""
    with pytest.raises(
        errors.DimensionMismatchError,
        match=r"operator sum: expected \(2, 2\), got \(3, 3\)",
    ):
        errors.raise_dimension_mismatch("operator sum", expected=(2, 2), got=(3, 3))


def test_raise_cache_not_ready_unset_and_stale() -> None:
    """Unset and mis-sized caches produce distinct messages with the fix."""
    with pytest.raises(errors.CacheNotReadyError, match="not set up") as unset:
        errors.raise_cache_not_ready(object())
    assert "cache_operator(L, u)" in str(unset.value)

    with pytest.raises(errors.CacheNotReadyError, match=r"shape \(4,\)") as stale:
        errors.raise_cache_not_ready(object(), expected=(4, 2), got=(4,))
    assert "cache_internals(L, u)" in str(stale.value)


def test_raise_unsupported_message() -> None:
    """raise_unsupported names operator type and operation."""
    with pytest.raises(
        errors.UnsupportedOperationError, match="object does not support solve"
    ):
        errors.raise_unsupported(object(), "solve")
