"""Post-filtering of assembled features.

A feature passes when it is:
- not null (some defined reference values)
- inside the ppm range
- carrying at least one run of defined values >= min_runlength
- derived from >= min_subset spectra
- not a baseline effect (a real peak stands out of the shape, and the
  valley does not simply track the peak across the subset)
"""

from __future__ import annotations

import logging

import numpy as np
from scipy.signal import find_peaks

from ..correlation import correlate_rows, run_lengths
from .assemble import NO_POSITION, FeatureSet
from .types import Feature

logger = logging.getLogger(__name__)

BASELINE_R = 0.99


def _trim_sides(values: np.ndarray) -> tuple[np.ndarray, int]:
    """Drop leading/trailing NaN; return the trimmed values and the offset removed."""
    defined = np.flatnonzero(np.isfinite(values))
    if defined.size == 0:
        return values[:0], 0
    return values[defined[0] : defined[-1] + 1], int(defined[0])


def _null_rows(feature_set: FeatureSet) -> np.ndarray:
    return ~np.isfinite(feature_set.stack).any(axis=1)


def _in_bounds(feature_set: FeatureSet, ppm_range) -> np.ndarray:
    if ppm_range is None:
        return np.ones(len(feature_set), dtype=bool)
    lo, hi = sorted(float(v) for v in ppm_range)
    passed = np.zeros(len(feature_set), dtype=bool)
    for row, positions in enumerate(feature_set.position):
        cols = positions[positions != NO_POSITION]
        if cols.size == 0:
            continue
        shifts = feature_set.ppm[cols]
        passed[row] = lo < shifts.min() and shifts.max() < hi
    return passed


def _has_long_run(feature_set: FeatureSet, min_runlength: int) -> np.ndarray:
    return np.array(
        [any(stop - start >= min_runlength for start, stop in run_lengths(np.isfinite(row))) for row in feature_set.stack],
        dtype=bool,
    )


def detect_baseline_effect(feature: Feature, shape: np.ndarray, prom_ratio: float) -> tuple[bool, bool]:
    """Return (passes_prominence, passes_valley_fit) for one feature shape.

    The prominence check requires the most prominent interior peak to reach
    `prom_ratio` of the shape's intensity range. The valley check requires
    the intensities at the apex and at the lowest point not to be collinear
    (r < 0.99) across the subset spectra.
    """
    trimmed, offset = _trim_sides(shape)
    if trimmed.size < 3:
        return False, False
    filled = np.where(np.isfinite(trimmed), trimmed, np.nanmin(trimmed))
    span = float(filled.max() - filled.min())
    peaks, props = find_peaks(filled, prominence=0)
    if span <= 0 or peaks.size == 0:
        return False, False
    best = int(np.argmax(props["prominences"]))
    passes_prominence = bool(props["prominences"][best] >= prom_ratio * span)

    apex = offset + int(peaks[best])
    valley = offset + int(np.argmin(filled))
    if feature.stack.size == 0 or feature.subset.size < 2:
        return passes_prominence, True
    rows = feature.stack[feature.subset]
    r, _, _ = correlate_rows(rows[:, apex][None, :], rows[:, valley])
    passes_fit = not (np.isfinite(r[0]) and r[0] >= BASELINE_R)
    return passes_prominence, passes_fit


def filter_features(
    feature_set: FeatureSet,
    *,
    ppm_range=None,
    min_runlength: int = 3,
    min_subset: int = 5,
    prom_ratio: float = 0.3,
) -> np.ndarray:
    """Boolean mask of features that pass every filter."""
    n = len(feature_set)
    not_null = ~_null_rows(feature_set)
    logger.info("Filtering out null features")

    logger.info("Filtering out features outside of %s ppm", ppm_range if ppm_range is not None else "the full axis")
    in_bounds = _in_bounds(feature_set, ppm_range)

    logger.info("Filtering out features with no runs >= %d points", min_runlength)
    long_run = _has_long_run(feature_set, min_runlength)

    logger.info("Filtering out features derived from < %d spectra", min_subset)
    big_subset = feature_set.subset_sizes >= min_subset

    logger.info("Filtering out features with strong baseline effect (prominence < %.2f * range)", prom_ratio)
    not_baseline = np.zeros(n, dtype=bool)
    for row, feature in enumerate(feature_set.features):
        passes_prominence, passes_fit = detect_baseline_effect(feature, feature_set.stack[row], prom_ratio)
        not_baseline[row] = passes_prominence and passes_fit

    mask = not_null & in_bounds & long_run & big_subset & not_baseline
    logger.info("Filtering complete. %d/%d features passed filters.", int(mask.sum()), n)
    return mask


def apply_feature_filter(feature_set: FeatureSet, **kwargs) -> FeatureSet:
    """Return a FeatureSet holding only the features that pass `filter_features`."""
    return feature_set.select(filter_features(feature_set, **kwargs))
