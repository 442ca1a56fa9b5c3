"""Fit a feature shape to a spectrum (min-max scaling or least squares)."""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np

FIT_METHODS = frozenset({"minmax", "least_squares"})


@dataclass(frozen=True)
class FeatureFit:
    """Fitted feature, its scale ratio and the residual against the spectrum.

    `ratio` is sum(feature) / sum(fit). `overfit` is the total magnitude of
    negative residuals, i.e. how far the fit rises above the spectrum.
    """

    fit: np.ndarray
    position: np.ndarray | None
    ratio: float
    residuals: np.ndarray
    overfit: float


def _overlap(feature: np.ndarray, spectrum: np.ndarray) -> np.ndarray:
    return np.isfinite(feature) & np.isfinite(spectrum)


def fit_minmax(feature: np.ndarray, spectrum: np.ndarray) -> np.ndarray:
    """Scale the feature onto the spectrum's min/max where both are defined."""
    both = _overlap(feature, spectrum)
    f_min, f_max = feature[both].min(), feature[both].max()
    s_min, s_max = spectrum[both].min(), spectrum[both].max()
    if f_max == f_min:
        return np.where(np.isfinite(feature), s_min, np.nan)
    return (feature - f_min) / (f_max - f_min) * (s_max - s_min) + s_min


def fit_least_squares(feature: np.ndarray, spectrum: np.ndarray) -> np.ndarray:
    """Non-negative scalar multiple of the feature minimising squared residuals."""
    both = _overlap(feature, spectrum)
    denom = float(np.dot(feature[both], feature[both]))
    scale = max(float(np.dot(feature[both], spectrum[both])) / denom, 0.0) if denom > 0 else 0.0
    return feature * scale


def fit_feature(feature, spectrum, spectrum_position=None, method: str = "minmax") -> FeatureFit:
    """Fit `feature` to `spectrum` (same length, NaN where missing).

    Raises:
        ValueError: Unknown method or mismatched lengths.
    """
    if method not in FIT_METHODS:
        raise ValueError(f"Unknown fit method: {method}. Use one of: {sorted(FIT_METHODS)}")
    feature = np.asarray(feature, dtype=np.float64)
    spectrum = np.asarray(spectrum, dtype=np.float64)
    if feature.shape != spectrum.shape:
        raise ValueError(f"Feature shape {feature.shape} does not match spectrum shape {spectrum.shape}")
    position = None if spectrum_position is None else np.asarray(spectrum_position)

    if not _overlap(feature, spectrum).any():
        return FeatureFit(
            fit=np.full(feature.shape, np.nan),
            position=position,
            ratio=float("nan"),
            residuals=np.full(feature.shape, np.nan),
            overfit=float("nan"),
        )

    fitted = fit_minmax(feature, spectrum) if method == "minmax" else fit_least_squares(feature, spectrum)
    fit_total = np.nansum(fitted)
    ratio = float(np.nansum(feature) / fit_total) if fit_total != 0 else float("nan")
    residuals = spectrum - fitted
    overfit = float(-np.nansum(residuals[residuals < 0]))
    return FeatureFit(fit=fitted, position=position, ratio=ratio, residuals=residuals, overfit=overfit)


def fit_feature_to_spectra(feature, matrix, method: str = "minmax") -> list[FeatureFit]:
    """Fit one succeeded Feature's reference shape to every spectrum over its region."""
    matrix = np.asarray(matrix, dtype=np.float64)
    idx = feature.indices
    return [
        fit_feature(feature.reference_shape, matrix[row, idx], spectrum_position=idx, method=method)
        for row in range(matrix.shape[0])
    ]
