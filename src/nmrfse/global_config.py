"""Global, project-wide configuration constants.

This module intentionally contains **no business logic** – only simple,
shared filesystem anchors that many modules can import. Algorithm settings
live in `nmrfse.config`.
"""

from pathlib import Path

# Core roots
PACKAGE_ROOT: Path = Path(__file__).resolve().parent
# PROJECT_ROOT is the repo root (where pyproject.toml and data/ live)
# From src/nmrfse/global_config.py, go up two levels: src/nmrfse -> src -> repo root
PROJECT_ROOT: Path = PACKAGE_ROOT.parent.parent

# Core Names
PROJECT_NAME = "nmrfse"
PACKAGE_NAME = "nmrfse"

# Data directories
DATA_DIR: Path = PROJECT_ROOT / "data"
SPECTRA_DIR: Path = DATA_DIR / "spectra"
DERIVED_DIR: Path = DATA_DIR / "derived"
FSE_OUTPUT_DIR: Path = DERIVED_DIR / "fse"

# Logs directories
LOGS_DIR: Path = DATA_DIR / "logs"
DERIVED_LOGS_DIR: Path = LOGS_DIR / "derived"
