"""Feature records, assembly, post-filtering and fitting."""

from .assemble import FeatureSet, assemble_features, count_statuses
from .filter import apply_feature_filter, detect_baseline_effect, filter_features
from .fit import FeatureFit, fit_feature, fit_feature_to_spectra
from .types import Feature, FeatureStatus, Protofeature

__all__ = [
    "Feature",
    "FeatureFit",
    "FeatureSet",
    "FeatureStatus",
    "Protofeature",
    "apply_feature_filter",
    "assemble_features",
    "count_statuses",
    "detect_baseline_effect",
    "filter_features",
    "fit_feature",
    "fit_feature_to_spectra",
]
