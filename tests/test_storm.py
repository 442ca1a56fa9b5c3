"""Tests for STORM refinement."""

from __future__ import annotations

import numpy as np
import pytest

from nmrfse.config import FSEConfig
from nmrfse.features import FeatureStatus, Protofeature
from nmrfse.pockets import compute_corr_pockets, pair_corr_pockets
from nmrfse.storm import RefinementState, StormRefiner, refine_protofeature


def _peak(center: float, n: int, sigma: float = 2.0) -> np.ndarray:
    x = np.arange(n, dtype=np.float64)
    return np.exp(-((x - center) ** 2) / (2 * sigma**2))


def _manual_proto(matrix: np.ndarray, region: tuple[int, int], seed_row: int = 0, seed=None) -> Protofeature:
    idx = np.arange(region[0], region[1] + 1)
    return Protofeature(
        driver=(region[0] + region[1]) // 2,
        partner=region[1],
        region=region,
        seed_shape=matrix[seed_row, idx].copy() if seed is None else seed,
        correlation=0.9,
        peak_width=3,
        best_sample=seed_row,
        rcutoff=0.75,
    )


@pytest.fixture
def two_peak_setup(two_peak_data, two_peak_config):
    matrix, ppm = two_peak_data
    pockets = compute_corr_pockets(matrix, two_peak_config.half_window, ppm=ppm)
    pairs = pair_corr_pockets(
        matrix,
        pockets,
        rcutoff=two_peak_config.pocket_rcutoff,
        noise_percentile=two_peak_config.noise_percentile,
    )
    proto = next(p for p in pairs.protofeatures if p.driver == 10)
    refiner = StormRefiner.from_config(matrix, pairs.noise_width, two_peak_config)
    return matrix, proto, refiner


class TestTwoPeakRefinement:
    def test_converges_on_peak_samples(self, two_peak_setup) -> None:
        matrix, proto, refiner = two_peak_setup
        feature = refiner.refine(proto)

        assert feature.status is FeatureStatus.SUCCEEDED
        assert feature.subset.tolist() == list(range(8))
        lo, hi = feature.region
        assert lo <= 6 and hi >= 44
        assert feature.reference_shape.shape == (feature.width,)
        assert 1 <= feature.iterations <= refiner.max_iterations

    def test_stack_holds_subset_rows_only(self, two_peak_setup) -> None:
        matrix, proto, refiner = two_peak_setup
        feature = refiner.refine(proto)

        assert feature.stack.shape == (matrix.shape[0], feature.width)
        np.testing.assert_array_equal(feature.stack[:8], matrix[:8, feature.indices])
        assert np.isnan(feature.stack[8:]).all()

    def test_deterministic(self, two_peak_setup) -> None:
        _, proto, refiner = two_peak_setup
        first = refiner.refine(proto)
        second = refiner.refine(proto)
        assert first.status is second.status
        assert first.region == second.region
        np.testing.assert_array_equal(first.subset, second.subset)
        np.testing.assert_array_equal(first.reference_shape, second.reference_shape)

    def test_converged_state_is_a_fixed_point(self, two_peak_setup) -> None:
        _, proto, refiner = two_peak_setup
        feature = refiner.refine(proto)
        state = RefinementState(
            region=feature.region,
            subset=feature.subset,
            reference_shape=feature.reference_shape,
        )

        again, failure = refiner.step(state, proto.peak_width)
        assert failure is None
        assert again.same_fixed_point(state)
        np.testing.assert_array_equal(again.reference_shape, feature.reference_shape)

    def test_iteration_cap(self, two_peak_data, two_peak_setup) -> None:
        matrix, proto, refiner = two_peak_setup
        capped = StormRefiner(
            matrix,
            noise_width=refiner.minpeak,
            r_cutoff=refiner.r_cutoff,
            q=refiner.q,
            b=refiner.b,
            max_iterations=1,
        )
        feature = capped.refine(proto)
        assert feature.status is FeatureStatus.DID_NOT_CONVERGE
        assert feature.iterations == 1
        assert feature.stack.size == 0

    def test_refine_protofeature_uses_config(self, two_peak_data, two_peak_setup, two_peak_config) -> None:
        matrix, proto, refiner = two_peak_setup
        feature = refine_protofeature(matrix, proto, refiner.minpeak, two_peak_config)
        assert feature.succeeded
        assert feature.region == refiner.refine(proto).region

    def test_matrix_is_read_only(self, two_peak_setup) -> None:
        _, _, refiner = two_peak_setup
        with pytest.raises(ValueError):
            refiner.matrix[0, 0] = 1.0


class TestRefinementFailures:
    def test_two_samples_is_subset_degenerate(self) -> None:
        rng = np.random.default_rng(1)
        matrix = np.vstack([_peak(10, 20), 2 * _peak(10, 20)]) + rng.normal(0, 0.001, size=(2, 20))
        refiner = StormRefiner(matrix, noise_width=3, r_cutoff=0.8, q=0.05, b=1.0)

        feature = refiner.refine(_manual_proto(matrix, (5, 15)))
        assert feature.status is FeatureStatus.SUBSET_DEGENERATE
        assert feature.subset.size == 2
        assert not feature.succeeded

    def test_anticorrelated_seed_is_empty_subset(self) -> None:
        rng = np.random.default_rng(2)
        amplitudes = np.linspace(1.0, 2.0, 6)
        matrix = amplitudes[:, None] * _peak(10, 20)[None, :] + rng.normal(0, 0.001, size=(6, 20))
        seed = -_peak(10, 20)[5:16]
        refiner = StormRefiner(matrix, noise_width=3, r_cutoff=0.8, q=0.05, b=1.0)

        feature = refiner.refine(_manual_proto(matrix, (5, 15), seed=seed))
        assert feature.status is FeatureStatus.EMPTY_SUBSET
        assert feature.subset.size == 0
        assert feature.iterations == 1

    def test_noise_reference_is_degenerate(self, noise_data) -> None:
        matrix, _ = noise_data
        refiner = StormRefiner(matrix, noise_width=3, r_cutoff=0.8, q=0.01, b=1.0, min_subset=1)

        feature = refiner.refine(_manual_proto(matrix, (10, 40)))
        assert feature.status is FeatureStatus.REFERENCE_DEGENERATE
        assert 0 in feature.subset

    def test_noise_never_succeeds_with_default_subset(self, noise_data) -> None:
        matrix, _ = noise_data
        refiner = StormRefiner.from_config(matrix, 3, FSEConfig(q=0.01))

        feature = refiner.refine(_manual_proto(matrix, (10, 40)))
        assert not feature.succeeded
        assert feature.stack.size == 0

    def test_unknown_correction(self) -> None:
        with pytest.raises(ValueError, match="Unknown correction"):
            StormRefiner(np.zeros((3, 5)), noise_width=3, r_cutoff=0.8, q=0.05, b=1.0, correction="sidak")
