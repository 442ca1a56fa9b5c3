"""Multiple-testing corrections for p-value vectors.

Every correction treats NaN p-values as "not tested": they are excluded from
the family size and stay NaN in the output.
"""

from __future__ import annotations

from collections.abc import Callable

import numpy as np
from scipy import stats

Correction = Callable[[np.ndarray], np.ndarray]


def _apply_to_tested(p: np.ndarray, adjust: Correction) -> np.ndarray:
    p = np.asarray(p, dtype=np.float64)
    out = np.full(p.shape, np.nan)
    tested = np.isfinite(p)
    if tested.any():
        out[tested] = np.clip(adjust(p[tested]), 0.0, 1.0)
    return out


def _bonferroni(p: np.ndarray) -> np.ndarray:
    return p * p.size


def _holm(p: np.ndarray) -> np.ndarray:
    m = p.size
    order = np.argsort(p, kind="stable")
    stepped = np.maximum.accumulate(p[order] * (m - np.arange(m)))
    adjusted = np.empty(m)
    adjusted[order] = stepped
    return adjusted


def correct_none(p: np.ndarray) -> np.ndarray:
    return _apply_to_tested(p, lambda v: v)


def correct_bonferroni(p: np.ndarray) -> np.ndarray:
    """Bonferroni family-wise correction."""
    return _apply_to_tested(p, _bonferroni)


def correct_holm(p: np.ndarray) -> np.ndarray:
    """Holm step-down family-wise correction."""
    return _apply_to_tested(p, _holm)


def correct_bh(p: np.ndarray) -> np.ndarray:
    """Benjamini-Hochberg false discovery rate."""
    return _apply_to_tested(p, lambda v: stats.false_discovery_control(v, method="bh"))


def correct_by(p: np.ndarray) -> np.ndarray:
    """Benjamini-Yekutieli false discovery rate (arbitrary dependence)."""
    return _apply_to_tested(p, lambda v: stats.false_discovery_control(v, method="by"))


CORRECTIONS: dict[str, Correction] = {
    "none": correct_none,
    "bonferroni": correct_bonferroni,
    "holm": correct_holm,
    "bh": correct_bh,
    "by": correct_by,
}


def get_correction(name: str) -> Correction:
    """Look up a correction by name; raise ValueError for unknown names."""
    try:
        return CORRECTIONS[name]
    except KeyError:
        raise ValueError(f"Unknown correction: {name}. Use one of: {sorted(CORRECTIONS)}") from None
