"""Correlation injection: matrix validation, Cholesky factorisation, and
synthesis of correlated standard normals.

Given independent shocks z and L with L·Lᵀ = C, the vector L·z has
correlation matrix C. Singular (semi-definite) matrices are allowed, so
perfectly correlated instruments (ρ = ±1) factor with a zero column.
"""

import logging

import numpy as np

from pathwise.errors import InvalidCorrelation, NonPositiveSemiDefinite, ShapeMismatch

logger = logging.getLogger(__name__)

PIVOT_TOLERANCE = 1e-12
RESIDUAL_TOLERANCE = 1e-10


def validate_correlation(
    matrix,
    size: int | None = None,
    tolerance: float = 1e-6,
) -> np.ndarray:
    """Validate a correlation matrix and return it as a float array.

    Checks, in order: square, expected size, finite entries, entries in
    [-1, 1], unit diagonal, symmetry within ``tolerance``, and positive
    semi-definiteness via an attempted factorisation.

    Args:
        matrix: Nested sequence or array.
        size: Expected dimension (instrument count), if known.
        tolerance: Symmetry and unit-diagonal tolerance.

    Raises:
        InvalidCorrelation: with ``property`` naming the violated check.
        ShapeMismatch: square matrix of the wrong dimension.
        NonPositiveSemiDefinite: factorisation failed.
    """
    try:
        m = np.array(matrix, dtype=float)
    except (TypeError, ValueError) as e:
        raise InvalidCorrelation(f"Correlation matrix is not numeric: {e}", "square") from e

    if m.ndim != 2 or m.shape[0] != m.shape[1] or m.shape[0] == 0:
        raise InvalidCorrelation(f"Correlation matrix must be square, got shape {m.shape}", "square")

    if size is not None and m.shape[0] != size:
        raise ShapeMismatch(
            f"Correlation matrix is {m.shape[0]}x{m.shape[1]} but portfolio has {size} instruments"
        )

    if not np.all(np.isfinite(m)):
        raise InvalidCorrelation("Correlation matrix has non-finite entries", "finite")

    if np.any(np.abs(m) > 1.0):
        raise InvalidCorrelation("Correlation entries must lie in [-1, 1]", "range")

    if np.any(np.abs(np.diag(m) - 1.0) >= tolerance):
        raise InvalidCorrelation("Correlation matrix must have a unit diagonal", "unit_diagonal")

    if np.any(np.abs(m - m.T) >= tolerance):
        raise InvalidCorrelation("Correlation matrix must be symmetric", "symmetric")

    cholesky_factor(m)
    return m


def cholesky_factor(matrix) -> np.ndarray:
    """Lower-triangular L with L·Lᵀ = matrix (Cholesky-Banachiewicz).

    The sweep runs row by row over the lower triangle of a working copy,
    overwriting each entry with the factor. A pivot within PIVOT_TOLERANCE
    of zero produces a zero column, provided every later entry in that
    column has also been fully explained by earlier columns.

    Raises:
        NonPositiveSemiDefinite: a pivot goes negative, or a zero pivot
            leaves an unexplained off-diagonal residual.
    """
    L = np.tril(np.array(matrix, dtype=float))
    n = L.shape[0]

    for i in range(n):
        for j in range(i + 1):
            residual = L[i, j] - np.dot(L[i, :j], L[j, :j])
            if i == j:
                if residual < -PIVOT_TOLERANCE:
                    raise NonPositiveSemiDefinite(
                        f"Correlation matrix is not positive semi-definite "
                        f"(pivot {residual:.3e} at row {i})"
                    )
                L[i, i] = np.sqrt(residual) if residual > PIVOT_TOLERANCE else 0.0
                if L[i, i] == 0.0:
                    logger.debug("Correlation matrix is singular: zero pivot at row %d", i)
            elif L[j, j] > 0.0:
                L[i, j] = residual / L[j, j]
            elif abs(residual) > RESIDUAL_TOLERANCE:
                raise NonPositiveSemiDefinite(
                    f"Correlation matrix is not positive semi-definite "
                    f"(residual {residual:.3e} at ({i}, {j}) against a zero pivot)"
                )
            else:
                L[i, j] = 0.0

    return L


def correlate(factor: np.ndarray | None, independent_shocks) -> np.ndarray:
    """Turn independent standard normals into correlated ones.

    Args:
        factor: Cholesky factor L, or None for independent simulation.
        independent_shocks: Array whose last axis has one entry per
            instrument; leading axes (e.g. steps) are broadcast.

    Returns:
        L·z for every vector along the last axis; ``z`` itself when
        ``factor`` is None.
    """
    z = np.asarray(independent_shocks, dtype=float)
    if factor is None:
        return z
    if z.shape[-1] != factor.shape[0]:
        raise ShapeMismatch(
            f"Expected {factor.shape[0]} shocks per vector, got shape {z.shape}"
        )
    return z @ factor.T
