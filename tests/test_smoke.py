from __future__ import annotations

import importlib
from pathlib import Path

import numpy as np
import pytest
from typer.testing import CliRunner

from conftest import make_two_peak_matrix


@pytest.mark.unit
def test_import_package() -> None:
    importlib.import_module("nmrfse")


@pytest.mark.unit
def test_import_cli_main() -> None:
    importlib.import_module("nmrfse.cli.main")


@pytest.mark.unit
def test_cli_help() -> None:
    from nmrfse.cli.main import app

    result = CliRunner().invoke(app, ["fse", "--help"])
    assert result.exit_code == 0
    assert "--half-window" in result.output


@pytest.mark.integration
def test_cli_fse_dry_run(tmp_path: Path) -> None:
    from nmrfse.cli.main import app

    matrix, ppm = make_two_peak_matrix()
    path = tmp_path / "smoke.npy"
    np.save(path, np.vstack([ppm, matrix]))

    result = CliRunner().invoke(
        app,
        ["fse", str(path), "--half-window", "35", "--q", "0.05", "--dry-run", "--no-log"],
    )
    assert result.exit_code == 0, result.output
    assert "smoke.npy: success" in result.output
    assert "succeeded" in result.output


@pytest.mark.integration
def test_cli_fse_bad_config_exits_nonzero(tmp_path: Path) -> None:
    from nmrfse.cli.main import app

    matrix, ppm = make_two_peak_matrix()
    path = tmp_path / "smoke.npy"
    np.save(path, np.vstack([ppm, matrix]))

    result = CliRunner().invoke(app, ["fse", str(path), "--correction", "sidak", "--no-log"])
    assert result.exit_code == 1


@pytest.mark.integration
def test_cli_options_after_and_before_files(tmp_path: Path) -> None:
    from nmrfse.cli.main import app

    matrix, ppm = make_two_peak_matrix()
    path = tmp_path / "smoke.npy"
    np.save(path, np.vstack([ppm, matrix]))

    for args in (
        ["fse", str(path), "-w", "35", "--q", "0.05", "--no-log", "--dry-run"],
        ["fse", "-w", "35", str(path), "--q", "0.05", "--no-log", "--dry-run"],
    ):
        result = CliRunner().invoke(app, args)
        assert result.exit_code == 0, result.output
        assert "File not found" not in result.output
        assert "elapsed:" in result.output


@pytest.mark.integration
def test_cli_filter_dry_run(tmp_path: Path) -> None:
    from nmrfse.cli.main import app
    from nmrfse.config import FSEConfig
    from nmrfse.pipeline.fse import run_fse

    matrix, ppm = make_two_peak_matrix()
    path = tmp_path / "smoke.npy"
    np.save(path, np.vstack([ppm, matrix]))
    out_dir = tmp_path / "fse"
    run_fse(input_files=[path], output_dir=out_dir, config=FSEConfig(half_window=35, q=0.05))
    feature_file = next(out_dir.glob("*_fse_*.npz"))

    result = CliRunner().invoke(
        app,
        ["filter", str(feature_file), "--min-subset", "5", "--ppm-range", "0", "10", "--dry-run", "--no-log"],
    )
    assert result.exit_code == 0, result.output
    assert f"{feature_file.name}: success" in result.output
    assert "features passed" in result.output
    assert not list(out_dir.glob("*_filtered.npz"))
