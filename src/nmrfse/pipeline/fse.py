"""Feature shape extraction pipeline: spectral matrix -> assembled features.

Input files are .npy arrays whose first row is the ppm axis and whose
remaining rows are the spectra. Results are written as .npz next to the
run's parameters in the filename.
"""

from __future__ import annotations

import logging
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from pathlib import Path

import numpy as np

from ..config import FSEConfig
from ..errors import InputValidationError
from ..features import (
    Feature,
    FeatureSet,
    FeatureStatus,
    Protofeature,
    assemble_features,
    filter_features,
)
from ..global_config import FSE_OUTPUT_DIR, SPECTRA_DIR
from ..pockets import PocketPairs, compute_corr_pockets, pair_corr_pockets, validate_spectral_inputs
from ..storm import StormRefiner

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FSEResult:
    """Everything one extraction run produced.

    `features` holds every tagged refinement outcome in driver order;
    `feature_set` holds only the succeeded ones.
    """

    feature_set: FeatureSet
    protofeatures: list[Protofeature]
    features: list[Feature]
    pocket_pairs: PocketPairs
    config: FSEConfig

    @property
    def noise_width(self) -> int:
        return self.pocket_pairs.noise_width

    @property
    def noise_distribution(self) -> np.ndarray:
        return self.pocket_pairs.noise_distribution

    @property
    def status_counts(self) -> dict[str, int]:
        return self.feature_set.status_counts


def _read_only(values: np.ndarray) -> np.ndarray:
    view = values.view()
    view.setflags(write=False)
    return view


def driver_mask(ppm: np.ndarray, region_of_interest) -> np.ndarray:
    """True for columns whose ppm lies inside region_of_interest (inclusive); all True if None."""
    if region_of_interest is None:
        return np.ones(ppm.shape[0], dtype=bool)
    lo, hi = sorted(float(v) for v in region_of_interest)
    return (ppm >= lo) & (ppm <= hi)


def _refine_all(refiner: StormRefiner, protofeatures: list[Protofeature], workers: int) -> list[Feature]:
    if workers <= 1 or len(protofeatures) < 2:
        return [refiner.refine(p) for p in protofeatures]
    # map() yields in submission order, so output order does not depend on scheduling
    with ThreadPoolExecutor(max_workers=workers) as executor:
        return list(executor.map(refiner.refine, protofeatures))


def extract_features(matrix, ppm, config: FSEConfig | None = None) -> FSEResult:
    """Run corrpocket pairing and STORM over a spectral matrix.

    Parameters
    ----------
    matrix : array-like
        Spectra as rows, NaN for missing values. Never modified.
    ppm : array-like
        Strictly monotonic axis, one value per column.
    config : FSEConfig, optional
        Settings; defaults are used when None.

    Raises:
        ConfigError: Invalid settings.
        InputValidationError: Malformed matrix, axis or window.
    """
    config = config or FSEConfig()
    config.validate()
    X = _read_only(validate_spectral_inputs(matrix, ppm=ppm, half_window=config.half_window))
    ppm = _read_only(np.asarray(ppm, dtype=np.float64))

    logger.info(
        "Computing corrpockets for %d spectra x %d points (half window %d)",
        X.shape[0],
        X.shape[1],
        config.half_window,
    )
    pockets = compute_corr_pockets(X, config.half_window, ppm=ppm)
    pairs = pair_corr_pockets(
        X, pockets, rcutoff=config.pocket_rcutoff, noise_percentile=config.noise_percentile
    )

    in_region = driver_mask(ppm, config.region_of_interest)
    protofeatures = [p for p in pairs.protofeatures if in_region[p.driver]]
    logger.info("Running STORM on %d protofeature(s)", len(protofeatures))

    refiner = StormRefiner.from_config(X, pairs.noise_width, config)
    features = _refine_all(refiner, protofeatures, config.workers)
    feature_set = assemble_features(features, ppm, pairs.noise_width, X.shape[0])

    total = len(features)
    n_ok = feature_set.status_counts[FeatureStatus.SUCCEEDED.value]
    if total:
        logger.info("Succeeded iterations: %d (%d %%)", n_ok, round(100 * n_ok / total))
        logger.info("Failed iterations: %d (%d %%)", total - n_ok, round(100 * (total - n_ok) / total))
    return FSEResult(
        feature_set=feature_set,
        protofeatures=protofeatures,
        features=features,
        pocket_pairs=pairs,
        config=config,
    )


def load_spectral_matrix(path: Path) -> tuple[np.ndarray, np.ndarray]:
    """Load (matrix, ppm) from a .npy whose first row is the ppm axis."""
    data = np.load(path, allow_pickle=False)
    if data.ndim != 2 or data.shape[0] < 3:
        raise InputValidationError(
            f"Expected a 2-D array with a ppm row and at least 2 spectra, got shape {data.shape}"
        )
    return data[1:].astype(np.float64), data[0].astype(np.float64)


def save_feature_set(feature_set: FeatureSet, path: Path) -> None:
    """Write a FeatureSet to .npz (numpy arrays only, no pickling)."""
    n = len(feature_set)
    width = feature_set.position.shape[1] if n else 0
    cubes = np.full((n, feature_set.n_samples, width), np.nan)
    for row, feature in enumerate(feature_set.features):
        cubes[row, :, : feature.width] = feature.stack
    np.savez_compressed(
        path,
        ppm=feature_set.ppm,
        noise_width=np.array(feature_set.noise_width),
        position=feature_set.position,
        stack=feature_set.stack,
        subset_membership=feature_set.subset_membership,
        drivers=np.array([f.driver for f in feature_set.features], dtype=np.int64),
        regions=np.array([f.region for f in feature_set.features], dtype=np.int64).reshape(n, 2),
        iterations=np.array([f.iterations for f in feature_set.features], dtype=np.int64),
        feature_stacks=cubes,
        status_names=np.array(list(feature_set.status_counts), dtype=str),
        status_values=np.array(list(feature_set.status_counts.values()), dtype=np.int64),
    )


def load_feature_set(path: Path) -> FeatureSet:
    """Read a FeatureSet written by `save_feature_set`."""
    with np.load(path, allow_pickle=False) as data:
        arrays = {key: data[key] for key in data.files}

    stack = arrays["stack"]
    membership = arrays["subset_membership"]
    features = []
    for row, (driver, region) in enumerate(zip(arrays["drivers"], arrays["regions"])):
        lo, hi = int(region[0]), int(region[1])
        width = hi - lo + 1
        features.append(
            Feature(
                status=FeatureStatus.SUCCEEDED,
                driver=int(driver),
                region=(lo, hi),
                subset=np.flatnonzero(membership[row]),
                reference_shape=stack[row, :width].copy(),
                stack=arrays["feature_stacks"][row, :, :width].copy(),
                iterations=int(arrays["iterations"][row]),
            )
        )
    return FeatureSet(
        ppm=arrays["ppm"],
        noise_width=int(arrays["noise_width"]),
        features=features,
        position=arrays["position"],
        stack=stack,
        subset_membership=membership,
        status_counts={str(k): int(v) for k, v in zip(arrays["status_names"], arrays["status_values"])},
    )


def _resolve_input_files(files: list[Path] | None, input_dir: Path, pattern: str) -> list[Path]:
    """Return list of input paths: explicit files if given, else all matches in input_dir."""
    if files:
        return [Path(p).resolve() for p in files]
    if not input_dir.exists():
        return []
    return sorted(input_dir.glob(pattern))


def _output_filename(stem: str, config: FSEConfig) -> str:
    """Build filename: <stem>_fse_np<noise_percentile>_r<r_cutoff>_b<b>.npz."""
    return f"{stem}_fse_np{config.noise_percentile}_r{config.r_cutoff}_b{config.b}.npz"


def _empty_result(message: str, *, success: bool = True) -> dict:
    return {
        "success": success,
        "total": 0,
        "succeeded": 0,
        "failed": 0,
        "skipped": 0,
        "message": message,
        "items": [],
        "failures": [],
    }


def run_fse(
    *,
    input_files: list[Path] | None = None,
    output_dir: Path = FSE_OUTPUT_DIR,
    spectra_dir: Path = SPECTRA_DIR,
    config: FSEConfig | None = None,
    dry_run: bool = False,
) -> dict:
    """Extract features from spectral matrix file(s) and write .npz to output_dir.

    If input_files is None or empty, uses all .npy files in spectra_dir.
    Output filename: <stem>_fse_np<noise_percentile>_r<r_cutoff>_b<b>.npz.

    Returns:
        Dict with success, total, succeeded, failed, skipped, message, items,
        failures, elapsed_s and the summed status_counts over all files.
    """
    config = config or FSEConfig()
    config.validate()
    started = time.perf_counter()

    paths = _resolve_input_files(input_files, spectra_dir, "*.npy")
    if not paths:
        return _empty_result("No spectral matrices to process.")

    output_dir = Path(output_dir)
    if not dry_run:
        output_dir.mkdir(parents=True, exist_ok=True)

    succeeded = 0
    failed = 0
    items: list[dict] = []
    failures: list[dict] = []
    status_totals = {status.value: 0 for status in FeatureStatus}

    for path in paths:
        out_name = _output_filename(path.stem, config)
        if not path.exists():
            failed += 1
            failures.append({"item": str(path), "reason": "File not found"})
            items.append({"file": str(path), "status": "failed", "detail": "File not found"})
            continue

        try:
            matrix, ppm = load_spectral_matrix(path)
            result = extract_features(matrix, ppm, config)
            if not dry_run:
                save_feature_set(result.feature_set, output_dir / out_name)
            for name, count in result.status_counts.items():
                status_totals[name] += count
            succeeded += 1
            items.append({
                "file": path.name,
                "output": out_name,
                "status": "success",
                "num_spectra": int(matrix.shape[0]),
                "num_points": int(matrix.shape[1]),
                "num_protofeatures": len(result.protofeatures),
                "num_features": len(result.feature_set),
                "noise_width": result.noise_width,
            })
        except Exception as e:
            logger.exception("Feature extraction failed for %s", path)
            failed += 1
            failures.append({"item": str(path), "reason": str(e)})
            items.append({"file": path.name, "status": "failed", "detail": str(e)})

    return {
        "success": failed == 0,
        "total": len(paths),
        "succeeded": succeeded,
        "failed": failed,
        "skipped": 0,
        "message": f"Processed {len(paths)} file(s). Succeeded: {succeeded}, failed: {failed}."
        + (" [DRY RUN]" if dry_run else ""),
        "items": items,
        "failures": failures,
        "status_counts": status_totals,
        "elapsed_s": time.perf_counter() - started,
    }


def run_filter(
    *,
    feature_files: list[Path] | None = None,
    output_dir: Path = FSE_OUTPUT_DIR,
    ppm_range: tuple[float, float] | None = None,
    min_runlength: int = 3,
    min_subset: int = 5,
    prom_ratio: float = 0.3,
    dry_run: bool = False,
) -> dict:
    """Filter saved feature sets and write <stem>_filtered.npz to output_dir.

    If feature_files is None or empty, uses all *_fse_*.npz files in output_dir.
    """
    started = time.perf_counter()
    paths = _resolve_input_files(feature_files, Path(output_dir), "*_fse_*.npz")
    if not feature_files:
        paths = [p for p in paths if not p.stem.endswith("_filtered")]
    if not paths:
        return _empty_result("No feature sets to filter.")

    output_dir = Path(output_dir)
    if not dry_run:
        output_dir.mkdir(parents=True, exist_ok=True)

    succeeded = 0
    failed = 0
    items: list[dict] = []
    failures: list[dict] = []

    for path in paths:
        out_name = f"{path.stem}_filtered.npz"
        try:
            feature_set = load_feature_set(path)
            mask = filter_features(
                feature_set,
                ppm_range=ppm_range,
                min_runlength=min_runlength,
                min_subset=min_subset,
                prom_ratio=prom_ratio,
            )
            if not dry_run:
                save_feature_set(feature_set.select(mask), output_dir / out_name)
            succeeded += 1
            items.append({
                "file": path.name,
                "output": out_name,
                "status": "success",
                "detail": f"{int(mask.sum())}/{mask.size} features passed",
            })
        except Exception as e:
            logger.exception("Feature filtering failed for %s", path)
            failed += 1
            failures.append({"item": str(path), "reason": str(e)})
            items.append({"file": path.name, "status": "failed", "detail": str(e)})

    return {
        "success": failed == 0,
        "total": len(paths),
        "succeeded": succeeded,
        "failed": failed,
        "skipped": 0,
        "message": f"Filtered {len(paths)} file(s). Succeeded: {succeeded}, failed: {failed}."
        + (" [DRY RUN]" if dry_run else ""),
        "items": items,
        "failures": failures,
        "elapsed_s": time.perf_counter() - started,
    }
