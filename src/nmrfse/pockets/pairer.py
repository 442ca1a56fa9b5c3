"""Corrpocket pairing: protofeatures and noise-width estimation.

Each driver's corrpocket has a central peak (the correlation falloff around
offset 0). The strongest correlation outside that peak proposes a partner
resonance. A pair is kept only when the partner also points back at the
driver, which makes it a protofeature: a rough two-peak hypothesis for STORM
to refine.

The noise width comes from the same central peaks: for each window offset,
the fraction of drivers whose central peak reaches it. Offsets reached by at
least `noise_percentile` of all drivers form the noise width.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass

import numpy as np

from ..correlation.methods import correlate_columns, correlate_rows
from ..errors import InputValidationError
from ..features.types import Protofeature
from .profiler import validate_spectral_inputs, window_offsets

logger = logging.getLogger(__name__)

NO_PARTNER = -1


@dataclass(frozen=True)
class PocketPairs:
    """Everything the pairer derives from one set of corrpockets.

    Per-column arrays are indexed by driver column. Spans are inclusive
    absolute column ranges, (-1, -1) where undefined.
    """

    protofeatures: list[Protofeature]
    central_spans: np.ndarray
    partner_spans: np.ndarray
    best_partner: np.ndarray
    best_correlation: np.ndarray
    noise_distribution: np.ndarray
    noise_width: int
    rcutoff: float

    def top_partner_set(self, column: int) -> range:
        """Columns of `column`'s best secondary peak (before any filtering)."""
        lo, hi = self.partner_spans[column]
        if lo < 0:
            return range(0)
        return range(int(lo), int(hi) + 1)


def _extend(pocket: np.ndarray, start: int, step: int, rcutoff: float, blocked: tuple[int, int] | None) -> int:
    """Walk from `start` in direction `step` until the correlation falloff ends.

    The first neighbour is always taken. After that the walk stops at a
    missing value, the window edge, a blocked span, or a local minimum whose
    value is below `rcutoff` (the minimum itself is kept).
    """
    width = pocket.shape[0]
    k = start
    first = True
    while True:
        nxt = k + step
        if nxt < 0 or nxt >= width or not np.isfinite(pocket[nxt]):
            return k
        if blocked is not None and blocked[0] <= nxt <= blocked[1]:
            return k
        if not first and pocket[nxt] > pocket[k] and pocket[k] < rcutoff:
            return k
        k = nxt
        first = False


def central_peak(pocket: np.ndarray, rcutoff: float) -> tuple[int, int] | None:
    """Inclusive pocket-index span of the peak around offset 0, None if undefined."""
    center = pocket.shape[0] // 2
    if not np.isfinite(pocket[center]):
        return None
    return (_extend(pocket, center, -1, rcutoff, None), _extend(pocket, center, 1, rcutoff, None))


def best_secondary(pocket: np.ndarray, central: tuple[int, int]) -> int | None:
    """Pocket index of the strongest correlation outside the central peak.

    Strength is correlation magnitude; ties go to the smaller absolute offset,
    then to the negative offset.
    """
    half_window = pocket.shape[0] // 2
    offsets = window_offsets(half_window)
    candidates = np.isfinite(pocket)
    candidates[central[0] : central[1] + 1] = False
    idx = np.flatnonzero(candidates)
    if idx.size == 0:
        return None
    order = np.lexsort((offsets[idx], np.abs(offsets[idx]), -np.abs(pocket[idx])))
    return int(idx[order[0]])


def _column_peaks(pockets: np.ndarray, rcutoff: float):
    n_cols, width = pockets.shape
    half_window = width // 2
    central_spans = np.full((n_cols, 2), NO_PARTNER, dtype=np.int64)
    partner_spans = np.full((n_cols, 2), NO_PARTNER, dtype=np.int64)
    best_partner = np.full(n_cols, NO_PARTNER, dtype=np.int64)
    best_correlation = np.full(n_cols, np.nan)

    for c in range(n_cols):
        pocket = pockets[c]
        central = central_peak(pocket, rcutoff)
        if central is None:
            continue
        central_spans[c] = (c + central[0] - half_window, c + central[1] - half_window)
        k = best_secondary(pocket, central)
        if k is None:
            continue
        lo = _extend(pocket, k, -1, rcutoff, central)
        hi = _extend(pocket, k, 1, rcutoff, central)
        best_partner[c] = c + k - half_window
        best_correlation[c] = pocket[k]
        partner_spans[c] = (c + lo - half_window, c + hi - half_window)
    return central_spans, partner_spans, best_partner, best_correlation


def estimate_noise_distribution(pockets: np.ndarray, central_spans: np.ndarray) -> np.ndarray:
    """Fraction of drivers whose central peak covers each window offset.

    Only drivers with a defined corrpocket, and for which the offset lies
    inside the matrix, count toward each fraction.
    """
    n_cols, width = pockets.shape
    half_window = width // 2
    offsets = window_offsets(half_window)
    covered = np.zeros(width)
    present = np.zeros(width)
    for c in range(n_cols):
        lo, hi = central_spans[c]
        if lo == NO_PARTNER:
            continue
        cols = c + offsets
        present += (cols >= 0) & (cols < n_cols)
        covered += (cols >= lo) & (cols <= hi)
    with np.errstate(invalid="ignore", divide="ignore"):
        distribution = covered / present
    return np.nan_to_num(distribution, nan=0.0)


def noise_width_from_distribution(distribution: np.ndarray, noise_percentile: float) -> int:
    """Number of window offsets covered by at least `noise_percentile` of central peaks."""
    return int(np.count_nonzero(distribution >= noise_percentile))


def _seed_protofeature(
    X: np.ndarray,
    driver: int,
    partner: int,
    region: tuple[int, int],
    correlation: float,
    peak_width: int,
    rcutoff: float,
) -> Protofeature | None:
    idx = np.arange(region[0], region[1] + 1)
    # STOCSY covariance of the driver against the region is the shape template
    _, cov_profile, _ = correlate_columns(X[:, idx], X[:, driver])
    r_samples, _, _ = correlate_rows(X[:, idx], cov_profile)
    if not np.isfinite(r_samples).any():
        return None
    best_sample = int(np.nanargmax(r_samples))
    seed_shape = X[best_sample, idx].copy()
    seed_shape.setflags(write=False)
    return Protofeature(
        driver=driver,
        partner=partner,
        region=region,
        seed_shape=seed_shape,
        correlation=float(correlation),
        peak_width=peak_width,
        best_sample=best_sample,
        rcutoff=rcutoff,
    )


def pair_corr_pockets(
    matrix,
    pockets: np.ndarray,
    *,
    rcutoff: float,
    noise_percentile: float,
) -> PocketPairs:
    """Pair corrpockets into bidirectional protofeatures and estimate the noise width.

    Parameters
    ----------
    matrix : array-like
        Spectral matrix the pockets were computed from.
    pockets : np.ndarray
        Output of `compute_corr_pockets`.
    rcutoff : float
        Minimum signed correlation for the partner peak.
    noise_percentile : float
        Coverage fraction that defines the noise width (0 < v < 1).

    Returns
    -------
    PocketPairs
        Protofeatures ordered by driver, plus per-column peak data and the
        noise distribution/width.
    """
    X = validate_spectral_inputs(matrix)
    pockets = np.asarray(pockets, dtype=np.float64)
    if pockets.ndim != 2 or pockets.shape[0] != X.shape[1] or pockets.shape[1] % 2 != 1:
        raise InputValidationError(
            f"Corrpockets of shape {pockets.shape} do not match a matrix with {X.shape[1]} columns"
        )
    if not 0.0 < noise_percentile < 1.0:
        raise InputValidationError("noise_percentile must lie strictly between 0 and 1")

    central_spans, partner_spans, best_partner, best_correlation = _column_peaks(pockets, rcutoff)
    distribution = estimate_noise_distribution(pockets, central_spans)
    noise_width = noise_width_from_distribution(distribution, noise_percentile)

    protofeatures: list[Protofeature] = []
    below_cutoff = 0
    one_way = 0
    for driver in range(X.shape[1]):
        partner = int(best_partner[driver])
        if partner == NO_PARTNER:
            continue
        if not best_correlation[driver] >= rcutoff:
            below_cutoff += 1
            continue
        back_lo, back_hi = partner_spans[partner]
        if back_lo == NO_PARTNER or not back_lo <= driver <= back_hi:
            one_way += 1
            continue

        c_lo, c_hi = central_spans[driver]
        p_lo, p_hi = partner_spans[driver]
        region = (int(min(c_lo, p_lo)), int(max(c_hi, p_hi)))
        peak_width = math.ceil(((c_hi - c_lo + 1) + (p_hi - p_lo + 1)) / 2)
        proto = _seed_protofeature(
            X, driver, partner, region, best_correlation[driver], peak_width, rcutoff
        )
        if proto is not None:
            protofeatures.append(proto)

    logger.info(
        "Got %d corrpocket pairs (%d below rcutoff %.2f, %d not bidirectional); noise width %d",
        len(protofeatures),
        below_cutoff,
        rcutoff,
        one_way,
        noise_width,
    )
    return PocketPairs(
        protofeatures=protofeatures,
        central_spans=central_spans,
        partner_spans=partner_spans,
        best_partner=best_partner,
        best_correlation=best_correlation,
        noise_distribution=distribution,
        noise_width=noise_width,
        rcutoff=float(rcutoff),
    )
