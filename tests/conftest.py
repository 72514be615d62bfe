"""Global pytest configuration and shared fixtures for op_algebra."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Final

import numpy as np
import pytest

from op_algebra import FunctionOperator, function_operator

if TYPE_CHECKING:
    from numpy.typing import NDArray

# -----------------------------------------------------------------------------
# Constants
# -----------------------------------------------------------------------------

SEED: Final[int] = 20240611
N: Final[int] = 4


# -----------------------------------------------------------------------------
# Markers
# -----------------------------------------------------------------------------


def pytest_configure(config: pytest.Config) -> None:
    """Register custom markers used by the test suite."""
    config.addinivalue_line(
        "markers",
        "adjoint: checks adjoint/transpose involution for an operator variant",
    )


# -----------------------------------------------------------------------------
# Fixtures
# -----------------------------------------------------------------------------


@pytest.fixture
def rng() -> np.random.Generator:
    """Deterministic random generator."""
    return np.random.default_rng(SEED)


@pytest.fixture
def well_conditioned(rng: np.random.Generator) -> NDArray[np.float64]:
    """Random N x N matrix shifted to be diagonally dominant."""
    return rng.standard_normal((N, N)) + N * np.eye(N)


@pytest.fixture
def scaling_diagonal(rng: np.random.Generator) -> NDArray[np.float64]:
    """Positive diagonal used by the function-operator fixtures."""
    return rng.uniform(1.0, 2.0, size=N)


@pytest.fixture
def oop_diagonal_op(scaling_diagonal: NDArray[np.float64]) -> FunctionOperator:
    """Out-of-place function operator u -> p * d * u with inverse."""
    d = scaling_diagonal

    def op(u: Any, p: Any, t: Any) -> Any:  # noqa: ARG001
        return (p * d).reshape((-1,) + (1,) * (np.ndim(u) - 1)) * u

    def op_inverse(u: Any, p: Any, t: Any) -> Any:  # noqa: ARG001
        return u / (p * d).reshape((-1,) + (1,) * (np.ndim(u) - 1))

    return function_operator(
        op,
        op_inverse=op_inverse,
        isinplace=False,
        dtype=np.float64,
        shape=(N, N),
        p=1.0,
        issymmetric=True,
    )


@pytest.fixture
def iip_diagonal_op(scaling_diagonal: NDArray[np.float64]) -> FunctionOperator:
    """In-place function operator du <- p * d * u with inverse."""
    d = scaling_diagonal

    def op(du: Any, u: Any, p: Any, t: Any) -> None:  # noqa: ARG001
        np.multiply((p * d).reshape((-1,) + (1,) * (np.ndim(u) - 1)), u, out=du)

    def op_inverse(du: Any, u: Any, p: Any, t: Any) -> None:  # noqa: ARG001
        np.divide(u, (p * d).reshape((-1,) + (1,) * (np.ndim(u) - 1)), out=du)

    return function_operator(
        op,
        op_inverse=op_inverse,
        isinplace=True,
        dtype=np.float64,
        shape=(N, N),
        p=1.0,
        issymmetric=True,
    )
