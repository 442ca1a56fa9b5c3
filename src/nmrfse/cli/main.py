from __future__ import annotations

import typer

from .base import configure_logging
from .commands.filter import app as filter_app
from .commands.fse import app as fse_app

configure_logging()
app = typer.Typer(
    help="Feature shape extraction CLI",
    context_settings={"help_option_names": ["-h", "--help"]},
)

app.add_typer(fse_app, name="fse")
app.add_typer(filter_app, name="filter")


def main() -> None:
    """Main entry point for package CLI.

    Invokes the Typer application, which handles command parsing and
    execution.
    """
    app()


if __name__ == "__main__":
    main()
