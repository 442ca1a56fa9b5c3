"""Sliding-window local correlation (corrpockets).

For every spectral column, the Pearson correlation across samples against
each column within +-half_window. Row `c` of the returned array is the
corrpocket of driver `c`; index `k` holds offset `k - half_window`.
"""

from __future__ import annotations

import numpy as np
from numba import jit

from ..correlation.methods import VARIANCE_RTOL
from ..errors import InputValidationError


def validate_spectral_inputs(matrix, ppm=None, half_window=None) -> np.ndarray:
    """Check the matrix/axis/window contract and return the matrix as float64.

    Raises:
        InputValidationError: Malformed matrix, mismatched or non-monotonic
            ppm axis, or a window that does not fit the matrix.
    """
    matrix = np.asarray(matrix, dtype=np.float64)
    if matrix.ndim != 2:
        raise InputValidationError(f"Spectral matrix must be 2-D, got {matrix.ndim} dimension(s)")
    n_samples, n_cols = matrix.shape
    if n_samples < 2 or n_cols < 2:
        raise InputValidationError(
            f"Spectral matrix needs at least 2 samples and 2 positions, got shape {matrix.shape}"
        )
    if np.isinf(matrix).any():
        raise InputValidationError("Spectral matrix contains infinite values")

    if ppm is not None:
        ppm = np.asarray(ppm, dtype=np.float64)
        if ppm.ndim != 1 or ppm.shape[0] != n_cols:
            raise InputValidationError(
                f"ppm axis length {ppm.size} does not match {n_cols} matrix columns"
            )
        if not np.isfinite(ppm).all():
            raise InputValidationError("ppm axis contains missing or infinite values")
        steps = np.diff(ppm)
        if not ((steps > 0).all() or (steps < 0).all()):
            raise InputValidationError("ppm axis must be strictly monotonic")

    if half_window is not None:
        if isinstance(half_window, bool) or not isinstance(half_window, (int, np.integer)) or half_window < 1:
            raise InputValidationError(f"half_window must be an integer >= 1, got {half_window!r}")
        if half_window >= n_cols:
            raise InputValidationError(
                f"half_window {half_window} does not fit a matrix with {n_cols} columns"
            )
    return matrix


@jit(nopython=True)
def _pairwise_pearson(x, y, rtol):
    n = 0
    sx = 0.0
    sy = 0.0
    for i in range(x.shape[0]):
        if np.isfinite(x[i]) and np.isfinite(y[i]):
            n += 1
            sx += x[i]
            sy += y[i]
    if n < 2:
        return np.nan
    mx = sx / n
    my = sy / n
    sxx = 0.0
    syy = 0.0
    sxy = 0.0
    qx = 0.0
    qy = 0.0
    for i in range(x.shape[0]):
        if np.isfinite(x[i]) and np.isfinite(y[i]):
            dx = x[i] - mx
            dy = y[i] - my
            sxx += dx * dx
            syy += dy * dy
            sxy += dx * dy
            qx += x[i] * x[i]
            qy += y[i] * y[i]
    if sxx <= rtol * qx or syy <= rtol * qy:
        return np.nan
    r = sxy / np.sqrt(sxx * syy)
    if r > 1.0:
        return 1.0
    if r < -1.0:
        return -1.0
    return r


@jit(nopython=True)
def _corr_pockets_kernel(X, half_window, rtol):
    n_cols = X.shape[1]
    width = 2 * half_window + 1
    pockets = np.full((n_cols, width), np.nan)
    for c in range(n_cols):
        xc = X[:, c]
        self_r = _pairwise_pearson(xc, xc, rtol)
        if np.isfinite(self_r):
            pockets[c, half_window] = 1.0
        for k in range(half_window + 1, width):
            j = c + k - half_window
            if j >= n_cols:
                break
            r = _pairwise_pearson(xc, X[:, j], rtol)
            pockets[c, k] = r
            # symmetric entry in the partner's pocket
            pockets[j, width - 1 - k] = r
    return pockets


def compute_corr_pockets(matrix, half_window: int, ppm=None) -> np.ndarray:
    """Compute the corrpocket of every column.

    Parameters
    ----------
    matrix : array-like
        Spectral matrix, samples x positions; NaN marks missing values.
    half_window : int
        Number of columns on each side of the driver.
    ppm : array-like, optional
        Axis to validate against the matrix.

    Returns
    -------
    np.ndarray
        Array of shape (n_columns, 2*half_window + 1). Offsets that fall
        outside the matrix, and undefined correlations, are NaN.
    """
    X = validate_spectral_inputs(matrix, ppm=ppm, half_window=half_window)
    return _corr_pockets_kernel(np.ascontiguousarray(X), int(half_window), VARIANCE_RTOL)


def window_offsets(half_window: int) -> np.ndarray:
    """Relative offsets matching the columns of a corrpocket array."""
    return np.arange(-half_window, half_window + 1)
