"""STORM refinement: grow a protofeature into a converged feature.

Each run alternates two steps over one protofeature:

1. Subset selection: keep the samples whose intensities over the current
   region correlate with the reference shape (r > r_cutoff and corrected
   p <= q).
2. Reference update (STOCSY): correlate every region position, across the
   subset, with the subset-mean driver; keep significant positions, drop
   runs shorter than the noise width, trim, expand by b peak widths and
   rebuild the reference as the subset mean over the new region. The driver
   is each subset sample's mean intensity over the whole region, not its
   intensity at the reference maximum, so broad baseline counts toward it.

The run succeeds when region and subset both stop changing. Every other exit
is a tagged status:

- empty_subset: no sample matches the reference
- subset_degenerate: fewer than `min_subset` samples match
- reference_degenerate: fewer than `minpeak` significant positions, or a span < 3
- did_not_converge: region/subset still changing after `max_iterations`
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, replace

import numpy as np

from ..config import FSEConfig
from ..correlation import correlate_columns, correlate_rows, correlation_pvalues, get_correction, run_lengths
from ..features.types import Feature, FeatureStatus, Protofeature

logger = logging.getLogger(__name__)

MIN_REFERENCE_POINTS = 3


@dataclass(frozen=True)
class RefinementState:
    """Private state of one refinement run. `region` is an inclusive column range."""

    region: tuple[int, int]
    subset: np.ndarray
    reference_shape: np.ndarray
    iteration: int = 0

    @property
    def indices(self) -> np.ndarray:
        return np.arange(self.region[0], self.region[1] + 1)

    def same_fixed_point(self, other: RefinementState) -> bool:
        return self.region == other.region and np.array_equal(self.subset, other.subset)


def _column_means(values: np.ndarray) -> np.ndarray:
    """NaN-aware column means; all-missing columns stay NaN."""
    finite = np.isfinite(values)
    counts = finite.sum(axis=0)
    with np.errstate(invalid="ignore", divide="ignore"):
        return np.where(finite, values, 0.0).sum(axis=0) / counts


class StormRefiner:
    """Runs STORM on protofeatures against one read-only spectral matrix."""

    def __init__(
        self,
        matrix,
        *,
        noise_width: int,
        r_cutoff: float,
        q: float,
        b: float,
        max_iterations: int = 24,
        min_subset: int = 4,
        correction: str = "bonferroni",
    ) -> None:
        X = np.asarray(matrix, dtype=np.float64).view()
        X.setflags(write=False)
        self.matrix = X
        self.minpeak = int(noise_width)
        self.r_cutoff = float(r_cutoff)
        self.q = float(q)
        self.b = float(b)
        self.max_iterations = int(max_iterations)
        self.min_subset = int(min_subset)
        self.correct = get_correction(correction)

    @classmethod
    def from_config(cls, matrix, noise_width: int, config: FSEConfig) -> StormRefiner:
        return cls(
            matrix,
            noise_width=noise_width,
            r_cutoff=config.r_cutoff,
            q=config.q,
            b=config.b,
            max_iterations=config.max_iterations,
            min_subset=config.min_subset,
            correction=config.correction,
        )

    @property
    def n_samples(self) -> int:
        return self.matrix.shape[0]

    @property
    def n_columns(self) -> int:
        return self.matrix.shape[1]

    def initial_state(self, proto: Protofeature) -> RefinementState:
        return RefinementState(
            region=proto.region,
            subset=np.arange(self.n_samples),
            reference_shape=np.asarray(proto.seed_shape, dtype=np.float64),
        )

    def _significant(self, r: np.ndarray, n: np.ndarray) -> np.ndarray:
        p_adjusted = self.correct(correlation_pvalues(r, n))
        with np.errstate(invalid="ignore"):
            return (r > self.r_cutoff) & (p_adjusted <= self.q)

    def select_subset(self, region: tuple[int, int], reference: np.ndarray) -> tuple[np.ndarray, FeatureStatus | None]:
        """Samples whose region intensities match the reference shape."""
        idx = np.arange(region[0], region[1] + 1)
        r, _, n = correlate_rows(self.matrix[:, idx], reference)
        subset = np.flatnonzero(self._significant(r, n))
        if subset.size == 0:
            return subset, FeatureStatus.EMPTY_SUBSET
        if subset.size < self.min_subset:
            return subset, FeatureStatus.SUBSET_DEGENERATE
        return subset, None

    def update_reference(
        self, region: tuple[int, int], subset: np.ndarray, peak_width: int
    ) -> tuple[tuple[int, int], np.ndarray, FeatureStatus | None]:
        """STOCSY the region over the subset and rebuild region and reference."""
        idx = np.arange(region[0], region[1] + 1)
        block = self.matrix[np.ix_(subset, idx)]
        finite = np.isfinite(block)
        with np.errstate(invalid="ignore", divide="ignore"):
            driver = np.where(finite, block, 0.0).sum(axis=1) / finite.sum(axis=1)

        r, _, n = correlate_columns(block, driver)
        keep = self._significant(r, n)
        for start, stop in run_lengths(keep):
            if stop - start < self.minpeak:
                keep[start:stop] = False

        survivors = np.flatnonzero(keep)
        if survivors.size < max(self.minpeak, 1):
            return region, np.empty(0), FeatureStatus.REFERENCE_DEGENERATE
        if survivors[-1] - survivors[0] + 1 < MIN_REFERENCE_POINTS:
            return region, np.empty(0), FeatureStatus.REFERENCE_DEGENERATE

        expand = math.ceil(self.b * peak_width)
        lo = max(0, region[0] + int(survivors[0]) - expand)
        hi = min(self.n_columns - 1, region[0] + int(survivors[-1]) + expand)
        new_region = (lo, hi)
        reference = _column_means(self.matrix[np.ix_(subset, np.arange(lo, hi + 1))])
        return new_region, reference, None

    def step(self, state: RefinementState, peak_width: int) -> tuple[RefinementState, FeatureStatus | None]:
        """Run one subset-selection + reference-update iteration.

        Returns the new state and a failure status, or None when the
        iteration completed. The iteration counter is left unchanged.
        """
        subset, failure = self.select_subset(state.region, state.reference_shape)
        if failure is not None:
            return replace(state, subset=subset), failure
        region, reference, failure = self.update_reference(state.region, subset, peak_width)
        if failure is not None:
            return replace(state, subset=subset), failure
        return replace(state, region=region, subset=subset, reference_shape=reference), None

    def refine(self, proto: Protofeature) -> Feature:
        """Refine one protofeature to a terminal Feature."""
        state = self.initial_state(proto)
        while True:
            new_state, failure = self.step(state, proto.peak_width)
            if failure is not None:
                return self._feature(failure, proto, new_state, state.iteration + 1)
            if new_state.same_fixed_point(state):
                return self._feature(FeatureStatus.SUCCEEDED, proto, new_state, state.iteration + 1)
            new_state = replace(new_state, iteration=state.iteration + 1)
            if new_state.iteration >= self.max_iterations:
                return self._feature(FeatureStatus.DID_NOT_CONVERGE, proto, new_state, new_state.iteration)
            state = new_state

    def _feature(self, status: FeatureStatus, proto: Protofeature, state: RefinementState, iterations: int) -> Feature:
        logger.debug("Driver %d: %s after %d iteration(s)", proto.driver, status.value, iterations)
        if status is FeatureStatus.SUCCEEDED:
            stack = np.full((self.n_samples, state.region[1] - state.region[0] + 1), np.nan)
            stack[state.subset] = self.matrix[np.ix_(state.subset, state.indices)]
        else:
            stack = np.empty((0, 0))
        return Feature(
            status=status,
            driver=proto.driver,
            region=state.region,
            subset=state.subset,
            reference_shape=state.reference_shape,
            stack=stack,
            iterations=iterations,
        )


def refine_protofeature(matrix, proto: Protofeature, noise_width: int, config: FSEConfig | None = None) -> Feature:
    """Refine a single protofeature with settings from `config` (defaults if None)."""
    config = config or FSEConfig()
    return StormRefiner.from_config(matrix, noise_width, config).refine(proto)
