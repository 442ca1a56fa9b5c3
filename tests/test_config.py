"""Tests for FSEConfig validation and mapping round-trips."""

from __future__ import annotations

import dataclasses

import pytest

from nmrfse.config import CORRECTION_METHODS, FSEConfig
from nmrfse.errors import ConfigError, FSEError


class TestFSEConfig:
    def test_defaults_are_valid(self) -> None:
        config = FSEConfig()
        config.validate()
        assert config.half_window == 100
        assert config.noise_percentile == 0.99
        assert config.pocket_rcutoff == 0.75
        assert config.r_cutoff == 0.8
        assert config.q == 0.01
        assert config.b == 1.0
        assert config.max_iterations == 24
        assert config.min_subset == 4
        assert config.correction == "bonferroni"
        assert config.region_of_interest is None
        assert config.workers == 1

    def test_is_frozen(self) -> None:
        with pytest.raises(dataclasses.FrozenInstanceError):
            FSEConfig().q = 0.5  # type: ignore[misc]

    @pytest.mark.parametrize(
        "overrides",
        [
            {"half_window": 0},
            {"noise_percentile": 1.0},
            {"noise_percentile": 0.0},
            {"pocket_rcutoff": 1.5},
            {"r_cutoff": -0.1},
            {"q": 2.0},
            {"b": -1.0},
            {"max_iterations": 0},
            {"min_subset": 0},
            {"correction": "sidak"},
            {"region_of_interest": (1.0,)},
            {"region_of_interest": ("low", 2.0)},
            {"region_of_interest": (1.0, float("nan"))},
            {"region_of_interest": (True, 2.0)},
            {"half_window": True},
            {"min_subset": False},
            {"workers": 0},
        ],
    )
    def test_invalid_values(self, overrides: dict) -> None:
        with pytest.raises(ConfigError):
            FSEConfig(**overrides).validate()

    def test_config_error_is_fse_error(self) -> None:
        with pytest.raises(FSEError):
            FSEConfig(q=-1.0).validate()

    def test_from_dict_round_trip(self) -> None:
        config = FSEConfig(half_window=35, q=0.05, region_of_interest=(0.5, 4.5), correction="holm")
        assert FSEConfig.from_dict(config.to_dict()) == config

    def test_from_dict_converts_region_to_tuple(self) -> None:
        config = FSEConfig.from_dict({"region_of_interest": [1, 2]})
        assert config.region_of_interest == (1.0, 2.0)
        assert config.half_window == 100

    def test_from_dict_rejects_unknown_keys(self) -> None:
        with pytest.raises(ConfigError, match="rcutof"):
            FSEConfig.from_dict({"rcutof": 0.8})

    def test_from_dict_validates(self) -> None:
        with pytest.raises(ConfigError, match="correction"):
            FSEConfig.from_dict({"correction": "fdr"})

    def test_every_correction_is_accepted(self) -> None:
        for name in CORRECTION_METHODS:
            FSEConfig(correction=name).validate()

    def test_from_dict_rejects_non_numeric_region(self) -> None:
        with pytest.raises(ConfigError, match="region_of_interest"):
            FSEConfig.from_dict({"region_of_interest": ["a", "b"]})
        with pytest.raises(ConfigError, match="region_of_interest"):
            FSEConfig.from_dict({"region_of_interest": 3.0})
