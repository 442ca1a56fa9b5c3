"""Sliding local correlation (corrpockets) and protofeature pairing."""

from .pairer import PocketPairs, central_peak, estimate_noise_distribution, pair_corr_pockets
from .profiler import compute_corr_pockets, validate_spectral_inputs, window_offsets

__all__ = [
    "PocketPairs",
    "central_peak",
    "compute_corr_pockets",
    "estimate_noise_distribution",
    "pair_corr_pockets",
    "validate_spectral_inputs",
    "window_offsets",
]
