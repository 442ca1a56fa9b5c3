"""Pairwise-complete Pearson statistics over spectral data.

Missing values are NaN. A correlation is undefined (NaN) when fewer than two
pairs are usable or when either side has no variance over the usable pairs.
"""

from __future__ import annotations

import numpy as np
from scipy import stats

# Relative sum-of-squares floor below which a vector counts as constant
VARIANCE_RTOL = 1e-20


def correlate_rows(matrix: np.ndarray, reference: np.ndarray) -> tuple[np.ndarray, np.ndarray, np.ndarray]:
    """Correlate every row of `matrix` with `reference`.

    Each row uses only the positions where both the row and the reference
    are finite.

    Parameters
    ----------
    matrix : np.ndarray
        2-D array (rows x positions).
    reference : np.ndarray
        1-D array with one value per position.

    Returns
    -------
    r : np.ndarray
        Pearson correlation per row, NaN where undefined.
    cov : np.ndarray
        Sample covariance per row (ddof=1), NaN where fewer than 2 pairs.
    n : np.ndarray
        Number of usable pairs per row.
    """
    matrix = np.atleast_2d(np.asarray(matrix, dtype=np.float64))
    reference = np.asarray(reference, dtype=np.float64)
    if matrix.shape[1] != reference.shape[0]:
        raise ValueError(
            f"Reference length {reference.shape[0]} does not match row length {matrix.shape[1]}"
        )

    valid = np.isfinite(matrix) & np.isfinite(reference)[None, :]
    n = valid.sum(axis=1)
    x = np.where(valid, matrix, 0.0)
    y = np.where(valid, reference[None, :], 0.0)

    with np.errstate(invalid="ignore", divide="ignore"):
        mean_x = x.sum(axis=1) / n
        mean_y = y.sum(axis=1) / n
        dx = np.where(valid, x - mean_x[:, None], 0.0)
        dy = np.where(valid, y - mean_y[:, None], 0.0)
        sxy = (dx * dy).sum(axis=1)
        sxx = (dx * dx).sum(axis=1)
        syy = (dy * dy).sum(axis=1)
        r = sxy / np.sqrt(sxx * syy)
        cov = sxy / (n - 1)

    flat_x = sxx <= VARIANCE_RTOL * (x * x).sum(axis=1)
    flat_y = syy <= VARIANCE_RTOL * (y * y).sum(axis=1)
    r[(n < 2) | flat_x | flat_y] = np.nan
    cov[n < 2] = np.nan
    return np.clip(r, -1.0, 1.0), cov, n


def correlate_columns(matrix: np.ndarray, reference: np.ndarray) -> tuple[np.ndarray, np.ndarray, np.ndarray]:
    """Correlate every column of `matrix` with `reference` (one value per row).

    This is the STOCSY direction: each spectral position against a driver
    intensity vector across samples.
    """
    return correlate_rows(np.asarray(matrix, dtype=np.float64).T, reference)


def correlation_pvalues(r: np.ndarray, n: np.ndarray) -> np.ndarray:
    """Two-sided p-values for Pearson correlations (t distribution, n-2 dof).

    NaN correlations and n < 3 give NaN p-values; |r| == 1 gives 0.
    """
    r = np.asarray(r, dtype=np.float64)
    df = np.asarray(n, dtype=np.float64) - 2.0
    with np.errstate(invalid="ignore", divide="ignore"):
        t = np.abs(r) * np.sqrt(df / (1.0 - r * r))
        p = 2.0 * stats.t.sf(t, df)
    p = np.where(np.abs(r) >= 1.0, 0.0, p)
    p[~np.isfinite(r) | (df < 1)] = np.nan
    return p


def run_lengths(mask: np.ndarray) -> list[tuple[int, int]]:
    """Return (start, stop) pairs (stop exclusive) for each run of True in `mask`."""
    mask = np.asarray(mask, dtype=bool)
    if mask.size == 0:
        return []
    padded = np.concatenate(([False], mask, [False])).astype(np.int8)
    edges = np.flatnonzero(np.diff(padded))
    return [(int(start), int(stop)) for start, stop in zip(edges[::2], edges[1::2])]
