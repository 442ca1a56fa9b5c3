"""
nmrfse core package.

Feature Shape Extraction (FSE) for matrices of aligned 1-D spectra:
- Sliding local correlation and corrpocket pairing (`nmrfse.pockets`)
- STORM subset/shape refinement (`nmrfse.storm`)
- Feature assembly, filtering and fitting (`nmrfse.features`)
- In-memory and file-based pipelines (`nmrfse.pipeline`) and a Typer CLI (`nmrfse.cli`)

Configuration:
- Shared filesystem anchors live in `nmrfse.global_config`.
- Algorithm settings live in `nmrfse.config`.
"""
