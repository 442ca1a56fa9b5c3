"""CLI command for feature post-filtering."""

from __future__ import annotations

from pathlib import Path
from typing import Annotated

import typer

from ...global_config import FSE_OUTPUT_DIR
from ...pipeline.fse import run_filter
from ..base import BaseCLI

app = typer.Typer(
    name="filter",
    help="Filter extracted feature sets (.npz) by range, run length, subset size and baseline effect",
    context_settings={"allow_interspersed_args": True},
)


@app.callback(invoke_without_command=True)
def filter_cmd(
    files: Annotated[
        list[Path],
        typer.Argument(help="Feature set .npz file(s). If omitted, all *_fse_*.npz in data/derived/fse are used."),
    ] = [],
    ppm_range: Annotated[
        tuple[float, float],
        typer.Option("--ppm-range", help="Keep features strictly inside these two ppm values."),
    ] = (None, None),
    min_runlength: Annotated[
        int,
        typer.Option("--min-runlength", help="Minimum run of defined points."),
    ] = 3,
    min_subset: Annotated[
        int,
        typer.Option("--min-subset", help="Minimum number of spectra in the subset."),
    ] = 5,
    prom_ratio: Annotated[
        float,
        typer.Option("--prom-ratio", help="Minimum peak prominence as a fraction of intensity range."),
    ] = 0.3,
    dry_run: Annotated[
        bool,
        typer.Option("--dry-run", help="Filter without writing files."),
    ] = False,
    no_log: Annotated[
        bool,
        typer.Option("--no-log", help="Do not write a log file to data/logs/derived."),
    ] = False,
) -> None:
    """Filter feature sets and write <stem>_filtered.npz to data/derived/fse."""
    cli = BaseCLI("filter")
    feature_list = list(files) if files else None

    def _run() -> dict:
        return run_filter(
            feature_files=feature_list,
            output_dir=FSE_OUTPUT_DIR,
            ppm_range=None if None in ppm_range else ppm_range,
            min_runlength=min_runlength,
            min_subset=min_subset,
            prom_ratio=prom_ratio,
            dry_run=dry_run,
        )

    cli.handle_cli_operation(
        operation="filter",
        op_callable=_run,
        pre_message="Filtering feature sets" + (" (dry-run; no files will be written)..." if dry_run else "..."),
        log_module="filter",
        log_dry_run=dry_run,
        enable_log=not no_log,
        log_context={"output_dir": str(FSE_OUTPUT_DIR)},
    )
