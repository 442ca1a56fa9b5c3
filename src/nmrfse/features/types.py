"""Result records shared by pairing, refinement and assembly."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

import numpy as np


class FeatureStatus(str, Enum):
    """Terminal status of one STORM refinement."""

    SUCCEEDED = "succeeded"
    EMPTY_SUBSET = "empty_subset"
    SUBSET_DEGENERATE = "subset_degenerate"
    REFERENCE_DEGENERATE = "reference_degenerate"
    DID_NOT_CONVERGE = "did_not_converge"


@dataclass(frozen=True)
class Protofeature:
    """Two-peak hypothesis seeded from one driver's corrpocket.

    `region` is an inclusive (start, end) column range covering the driver's
    central peak and the partner peak.
    """

    driver: int
    partner: int
    region: tuple[int, int]
    seed_shape: np.ndarray
    correlation: float
    peak_width: int
    best_sample: int
    rcutoff: float

    @property
    def indices(self) -> np.ndarray:
        return np.arange(self.region[0], self.region[1] + 1)


@dataclass(frozen=True)
class Feature:
    """Tagged outcome of one refinement.

    Non-succeeded features keep the last region/subset reached for diagnostics
    and carry an empty stack.
    """

    status: FeatureStatus
    driver: int
    region: tuple[int, int]
    subset: np.ndarray
    reference_shape: np.ndarray
    stack: np.ndarray = field(default_factory=lambda: np.empty((0, 0)))
    iterations: int = 0

    @property
    def succeeded(self) -> bool:
        return self.status is FeatureStatus.SUCCEEDED

    @property
    def indices(self) -> np.ndarray:
        return np.arange(self.region[0], self.region[1] + 1)

    @property
    def width(self) -> int:
        return self.region[1] - self.region[0] + 1
