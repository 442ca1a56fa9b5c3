from __future__ import annotations

from pathlib import Path

import numpy as np
import pytest

from nmrfse.config import FSEConfig

N_POINTS = 50
PEAK_CENTERS = (10, 40)
PEAK_SIGMA = 2.0


@pytest.fixture(autouse=True)
def app_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """
    Forces test mode. Automatically applied to all tests.
    """
    monkeypatch.setenv("APP_ENV", "test")


@pytest.fixture
def project_root(tmp_path: Path) -> Path:
    """
    A dedicated temp root directory for each test.
    All filesystem writes in tests should be under this root (or tmp_path directly).
    """
    root = tmp_path / "proj"
    (root / "data" / "spectra").mkdir(parents=True)
    (root / "data" / "derived").mkdir(parents=True)
    return root


@pytest.fixture(autouse=True)
def chdir_to_project_root(project_root: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    """
    Automatically change working directory to project_root for all tests.
    This ensures relative-path operations go into the temp directory by default.
    """
    monkeypatch.chdir(project_root)


def gaussian(center: float, sigma: float = PEAK_SIGMA, n: int = N_POINTS) -> np.ndarray:
    x = np.arange(n, dtype=np.float64)
    return np.exp(-((x - center) ** 2) / (2 * sigma**2))


def make_two_peak_matrix(seed: int = 0) -> tuple[np.ndarray, np.ndarray]:
    """10 spectra x 50 points: peaks at 10 and 40 in samples 0-7, flat noise in 8-9."""
    rng = np.random.default_rng(seed)
    matrix = rng.normal(0.0, 0.01, size=(10, N_POINTS))
    amplitudes = np.linspace(1.0, 3.0, 8)
    shape = gaussian(PEAK_CENTERS[0]) + gaussian(PEAK_CENTERS[1])
    matrix[:8] += amplitudes[:, None] * shape[None, :]
    ppm = np.linspace(10.0, 0.0, N_POINTS)
    return matrix, ppm


@pytest.fixture
def two_peak_data() -> tuple[np.ndarray, np.ndarray]:
    return make_two_peak_matrix()


@pytest.fixture
def two_peak_config() -> FSEConfig:
    return FSEConfig(
        half_window=35,
        noise_percentile=0.99,
        pocket_rcutoff=0.75,
        r_cutoff=0.8,
        q=0.05,
        b=1.0,
    )


@pytest.fixture
def noise_data() -> tuple[np.ndarray, np.ndarray]:
    """20 spectra x 60 points of uniform noise."""
    rng = np.random.default_rng(7)
    matrix = rng.uniform(0.0, 1.0, size=(20, 60))
    ppm = np.linspace(0.5, 9.5, 60)
    return matrix, ppm
