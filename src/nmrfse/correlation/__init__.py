"""NaN-aware correlation statistics and multiple-testing corrections."""

from .corrections import CORRECTIONS, get_correction
from .methods import correlate_columns, correlate_rows, correlation_pvalues, run_lengths

__all__ = [
    "CORRECTIONS",
    "correlate_columns",
    "correlate_rows",
    "correlation_pvalues",
    "get_correction",
    "run_lengths",
]
