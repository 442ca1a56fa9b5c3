"""Exception types for contract violations.

Data-driven refinement outcomes (empty or degenerate subsets, degenerate
references, non-convergence) are not exceptions; they are reported through
`nmrfse.features.FeatureStatus`.
"""

from __future__ import annotations


class FSEError(Exception):
    """Base exception for feature shape extraction errors."""


class InputValidationError(FSEError):
    """Raised when the spectral matrix, ppm axis or window violate the input contract."""


class ConfigError(FSEError):
    """Raised when configuration values are out of range."""
