"""Pipeline orchestration layer.

- `pipeline/fse.py` - in-memory `extract_features` plus the file-based
  `run_fse` / `run_filter` verbs used by the CLI.

Import policy:
- CLI runs work only through `pipeline.*` (it may build `FSEConfig` itself).
- `pipeline.*` calls the algorithm packages (`pockets`, `storm`, `features`).
- Algorithm packages must not call `pipeline.*`.
"""
