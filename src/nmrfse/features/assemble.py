"""Assemble succeeded refinements into the dataset-level feature set."""

from __future__ import annotations

import logging
from collections import Counter
from dataclasses import dataclass, field

import numpy as np

from .types import Feature, FeatureStatus

logger = logging.getLogger(__name__)

NO_POSITION = -1


@dataclass(frozen=True)
class FeatureSet:
    """Succeeded features on a shared ppm axis.

    Row `i` of `position`, `stack` and `subset_membership` describes
    `features[i]`. `position` holds column indices padded with -1, `stack`
    holds the reference shape padded with NaN.
    """

    ppm: np.ndarray
    noise_width: int
    features: list[Feature]
    position: np.ndarray
    stack: np.ndarray
    subset_membership: np.ndarray
    status_counts: dict[str, int] = field(default_factory=dict)

    def __len__(self) -> int:
        return len(self.features)

    @property
    def subset_sizes(self) -> np.ndarray:
        return self.subset_membership.sum(axis=1)

    @property
    def n_samples(self) -> int:
        return self.subset_membership.shape[1]

    def select(self, mask) -> FeatureSet:
        """Return a new FeatureSet with only the rows where `mask` is True."""
        mask = np.asarray(mask, dtype=bool)
        if mask.shape != (len(self.features),):
            raise ValueError(f"Mask of shape {mask.shape} does not match {len(self.features)} features")
        return FeatureSet(
            ppm=self.ppm,
            noise_width=self.noise_width,
            features=[f for f, keep in zip(self.features, mask) if keep],
            position=self.position[mask],
            stack=self.stack[mask],
            subset_membership=self.subset_membership[mask],
            status_counts=dict(self.status_counts),
        )


def count_statuses(features: list[Feature]) -> dict[str, int]:
    """Tally features by terminal status; every status appears, zero included."""
    counts = Counter(f.status for f in features)
    return {status.value: counts.get(status, 0) for status in FeatureStatus}


def assemble_features(features: list[Feature], ppm, noise_width: int, n_samples: int) -> FeatureSet:
    """Keep succeeded features (ordered by driver) and build the position/stack tables."""
    succeeded = sorted((f for f in features if f.succeeded), key=lambda f: f.driver)
    counts = count_statuses(features)
    failed = len(features) - len(succeeded)
    logger.info(
        "Assembled %d feature(s); %d refinement(s) failed %s",
        len(succeeded),
        failed,
        {k: v for k, v in counts.items() if k != FeatureStatus.SUCCEEDED.value and v},
    )

    max_width = max((f.width for f in succeeded), default=0)
    position = np.full((len(succeeded), max_width), NO_POSITION, dtype=np.int64)
    stack = np.full((len(succeeded), max_width), np.nan)
    membership = np.zeros((len(succeeded), n_samples), dtype=bool)
    for row, feature in enumerate(succeeded):
        position[row, : feature.width] = feature.indices
        stack[row, : feature.width] = feature.reference_shape
        membership[row, feature.subset] = True

    ppm = np.asarray(ppm, dtype=np.float64).view()
    ppm.setflags(write=False)
    return FeatureSet(
        ppm=ppm,
        noise_width=int(noise_width),
        features=succeeded,
        position=position,
        stack=stack,
        subset_membership=membership,
        status_counts=counts,
    )
