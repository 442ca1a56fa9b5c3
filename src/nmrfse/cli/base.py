from __future__ import annotations

import logging
import os
import sys
import traceback
from collections.abc import Callable, Generator
from contextlib import contextmanager
from datetime import datetime, timezone
from importlib.metadata import version
from typing import Any, TextIO

import typer

from ..global_config import DERIVED_LOGS_DIR

_LOGGING_CONFIGURED = False


def _get_nmrfse_version() -> str:
    try:
        return version("nmrfse")
    except Exception:  # noqa: BLE001
        return "unknown"


def configure_logging(level: int = logging.INFO) -> None:
    """Configure CLI-wide logging once.

    Safe to call multiple times; only configures on first call.

    Args:
        level: Logging level (defaults to INFO).
    """
    global _LOGGING_CONFIGURED
    if _LOGGING_CONFIGURED:
        return

    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    _LOGGING_CONFIGURED = True


def get_logger(name: str | None = None) -> logging.Logger:
    """Return a logger hooked into the shared CLI configuration."""
    return logging.getLogger(name)


@contextmanager
def handle_errors(
    operation: str,
    *,
    logger: logging.Logger | None = None,
    log_file: TextIO | None = None,
) -> Generator[None, None, None]:
    """Turn any exception into a logged traceback, a red message and exit code 1.

    typer.Exit passes through untouched. When `log_file` is given the error
    and traceback are appended to it.
    """
    logger = logger or get_logger(__name__)
    try:
        yield
    except typer.Exit:
        raise
    except Exception as exc:  # noqa: BLE001
        logger.exception("Error during %s", operation)
        typer.secho(f"✗ {operation} failed: {exc}", fg=typer.colors.RED)
        if log_file:
            log_file.write(f"\n✗ {operation} failed: {exc}\n")
            log_file.write(f"exception_type: {type(exc).__name__}\n")
            log_file.write(f"exception_message: {exc}\n")
            log_file.write("traceback:\n")
            log_file.write(traceback.format_exc())
            log_file.flush()
        raise typer.Exit(1) from exc


def format_result(result: Any, *, operation: str | None = None) -> str:
    """Render a run_* result dict (or None) as CLI text."""
    op_label = operation or "Result"
    if result is None:
        return f"✓ {op_label}"
    if isinstance(result, dict):
        return _format_result_dict(result, op_label)
    return f"{op_label}: {result!r}"


class BaseCLI:
    """Utility base class for CLI command groups."""

    def __init__(self, domain: str) -> None:
        self.domain = domain
        self.logger = get_logger(__name__)

    def handle_cli_operation(
        self,
        *,
        operation: str,
        op_callable: Callable[[], Any],
        pre_message: str | None = None,
        log_module: str | None = None,
        log_dry_run: bool = False,
        enable_log: bool = True,
        log_context: dict[str, Any] | None = None,
    ) -> Any:
        """Run an operation with consistent logging, formatting, and errors.

        Args:
            operation: Human-readable operation name for error handling.
            op_callable: Callable that performs the operation and returns
                a result.
            pre_message: Optional message to display before operation starts.
            log_module: Module name for the log filename (e.g. fse, filter).
            log_dry_run: Whether this run is a dry run (for filename).
            enable_log: Whether to write to a log file (default True).
            log_context: Extra key-value pairs for the metadata header.

        Returns:
            Result from op_callable.
        """
        log_file: TextIO | None = None
        use_log = enable_log and log_module is not None

        def _out(msg: str) -> None:
            typer.echo(msg)
            if log_file:
                log_file.write(msg + "\n")
                log_file.flush()

        if use_log:
            DERIVED_LOGS_DIR.mkdir(parents=True, exist_ok=True)
            ts = datetime.now(timezone.utc).strftime("%Y%m%d-%H%M%S")
            parts = [ts, log_module]
            if log_dry_run:
                parts.append("dryrun")
            log_path = DERIVED_LOGS_DIR / f"{'_'.join(parts)}.log"
            log_file = open(log_path, "w", encoding="utf-8")  # noqa: SIM115
            header_lines = [
                "--- metadata ---",
                f"timestamp: {datetime.now(timezone.utc).isoformat()}",
                f"command: {log_module}",
                f"argv: {sys.argv}",
                f"cwd: {os.getcwd()}",
                f"nmrfse_version: {_get_nmrfse_version()}",
                f"python_version: {sys.version}",
            ]
            ctx = log_context or {}
            for k, v in ctx.items():
                header_lines.append(f"{k}: {v}")
            header_lines.append("---")
            log_file.write("\n".join(header_lines) + "\n")
            log_file.flush()

        try:
            if pre_message:
                _out(pre_message)

            with handle_errors(operation, logger=self.logger, log_file=log_file):
                result = op_callable()

            _out(format_result(result, operation=operation))
            return result
        finally:
            if log_file:
                log_file.close()


def _format_result_dict(result: dict[str, Any], op_label: str) -> str:
    """Format a dictionary result into CLI-friendly text.

    Args:
        result: Result dictionary with optional keys: success, total,
            succeeded, failed, skipped, elapsed_s, message, failures, items.
        op_label: Operation label to display.
    """
    icon = "✓" if result.get("success", True) else "✗"
    lines = [f"{icon} {op_label}"]

    stats_order = [
        ("total", "total"),
        ("succeeded", "succeeded"),
        ("failed", "failed"),
        ("skipped", "skipped"),
    ]
    stats = [
        f"{label}: {result[key]}"
        for key, label in stats_order
        if key in result and result[key] is not None
    ]
    if "elapsed_s" in result:
        stats.append(f"elapsed: {result['elapsed_s']:.2f}s")
    if stats:
        lines.append("  " + " | ".join(stats))

    message = result.get("message")
    if message:
        lines.append(f"  ℹ {message}")

    failures = result.get("failures") or []
    if failures:
        lines.append("  Failures:")
        for failure in failures:
            item = failure.get("item", "item")
            reason = failure.get("reason") or failure.get("error") or "Unknown error"
            lines.append(f"    • {item}: {reason}")

    items = result.get("items") or []
    if items:
        lines.append("  Items:")
        for item in items:
            if not isinstance(item, dict):
                lines.append(f"    • {item}")
                continue
            name = item.get("item") or item.get("file") or item.get("id", "item")
            status = item.get("status") or ("success" if item.get("success", True) else "failed")
            detail = item.get("detail") or item.get("error") or ""
            extra = f" ({detail})" if detail else ""
            output_name = item.get("output")
            if output_name:
                lines.append(f"    • {name}: {status} -> {output_name}{extra}")
            else:
                lines.append(f"    • {name}: {status}{extra}")
            fse_details = _format_fse_item_details(item)
            if fse_details:
                lines.append(f"      {fse_details}")

    return "\n".join(lines)


def _format_fse_item_details(item: dict[str, Any]) -> str | None:
    """Format optional extraction item details as one compact line for CLI display."""
    num_spectra = item.get("num_spectra")
    num_points = item.get("num_points")
    num_protofeatures = item.get("num_protofeatures")
    num_features = item.get("num_features")
    noise_width = item.get("noise_width")

    if (
        num_spectra is None
        or num_points is None
        or num_protofeatures is None
        or num_features is None
        or noise_width is None
    ):
        return None

    return (
        f"matrix: {num_spectra} x {num_points} | "
        f"protofeatures: {num_protofeatures} | "
        f"features: {num_features} | "
        f"noise width: {noise_width}"
    )
