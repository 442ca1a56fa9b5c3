"""CLI command for feature shape extraction."""

from __future__ import annotations

from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console
from rich.table import Table

from ...config import FSEConfig
from ...global_config import FSE_OUTPUT_DIR, SPECTRA_DIR
from ...pipeline.fse import run_fse
from ..base import BaseCLI

app = typer.Typer(
    name="fse",
    help="Extract feature shapes from spectral matrices (.npy) and write .npz to data/derived/fse",
    # options may follow the file arguments
    context_settings={"allow_interspersed_args": True},
)


def render_status_counts(status_counts: dict[str, int], console: Console | None = None) -> None:
    """Print refinement outcomes as a table."""
    total = sum(status_counts.values())
    table = Table(title="STORM outcomes")
    table.add_column("status")
    table.add_column("count", justify="right")
    table.add_column("%", justify="right")
    for name, count in status_counts.items():
        share = f"{100 * count / total:.0f}" if total else "-"
        table.add_row(name, str(count), share)
    (console or Console()).print(table)


@app.callback(invoke_without_command=True)
def fse(
    files: Annotated[
        list[Path],
        typer.Argument(
            help="Spectral matrix .npy file(s), ppm axis as first row. If omitted, all .npy in data/spectra are used.",
        ),
    ] = [],
    half_window: Annotated[
        int,
        typer.Option("--half-window", "-w", help="Sliding correlation half window (points)."),
    ] = 100,
    noise_percentile: Annotated[
        float,
        typer.Option("--noise-percentile", help="Central-peak coverage that defines the noise width."),
    ] = 0.99,
    pocket_rcutoff: Annotated[
        float,
        typer.Option("--pocket-rcutoff", help="Minimum correlation of the partner peak."),
    ] = 0.75,
    r_cutoff: Annotated[
        float,
        typer.Option("--r-cutoff", "-r", help="STORM correlation cutoff (subset and reference)."),
    ] = 0.8,
    q: Annotated[
        float,
        typer.Option("--q", "-q", help="STORM p-value cutoff after correction."),
    ] = 0.01,
    b: Annotated[
        float,
        typer.Option("--b", "-b", help="Peak widths to expand the reference by on each side."),
    ] = 1.0,
    max_iterations: Annotated[
        int,
        typer.Option("--max-iterations", help="STORM iteration cap."),
    ] = 24,
    min_subset: Annotated[
        int,
        typer.Option("--min-subset", help="Smallest subset STORM will refine."),
    ] = 4,
    correction: Annotated[
        str,
        typer.Option("--correction", "-c", help="Multiple-testing correction: bonferroni, holm, bh, by, none."),
    ] = "bonferroni",
    roi: Annotated[
        tuple[float, float],
        typer.Option("--roi", help="Only refine drivers between these two ppm values."),
    ] = (None, None),
    workers: Annotated[
        int,
        typer.Option("--workers", "-j", help="Refinement threads."),
    ] = 1,
    dry_run: Annotated[
        bool,
        typer.Option("--dry-run", help="Run extraction without writing files."),
    ] = False,
    no_log: Annotated[
        bool,
        typer.Option("--no-log", help="Do not write a log file to data/logs/derived."),
    ] = False,
) -> None:
    """Extract features from spectral matrices and write to data/derived/fse.

    Output filenames: <stem>_fse_np<noise_percentile>_r<r_cutoff>_b<b>.npz
    """
    cli = BaseCLI("fse")
    input_list = list(files) if files else None
    config = FSEConfig(
        half_window=half_window,
        noise_percentile=noise_percentile,
        pocket_rcutoff=pocket_rcutoff,
        r_cutoff=r_cutoff,
        q=q,
        b=b,
        max_iterations=max_iterations,
        min_subset=min_subset,
        correction=correction.lower(),
        region_of_interest=None if None in roi else roi,
        workers=workers,
    )

    def _run() -> dict:
        return run_fse(
            input_files=input_list,
            output_dir=FSE_OUTPUT_DIR,
            spectra_dir=SPECTRA_DIR,
            config=config,
            dry_run=dry_run,
        )

    pre_message = (
        "Extracting features (dry-run; no files will be written)..."
        if dry_run
        else "Extracting features for "
        + (f"{len(input_list)} file(s)..." if input_list else "all spectra in spectra folder...")
    )
    result = cli.handle_cli_operation(
        operation="fse",
        op_callable=_run,
        pre_message=pre_message,
        log_module="fse",
        log_dry_run=dry_run,
        enable_log=not no_log,
        log_context={
            "inputs": str([str(p) for p in input_list]) if input_list else f"all .npy in {SPECTRA_DIR}",
            "output_dir": str(FSE_OUTPUT_DIR),
            "config": config.to_dict(),
        },
    )
    if isinstance(result, dict) and result.get("status_counts"):
        render_status_counts(result["status_counts"])
    if isinstance(result, dict) and not result.get("success", True):
        raise typer.Exit(1)
