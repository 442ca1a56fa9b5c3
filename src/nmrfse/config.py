"""Typed settings for feature shape extraction.

Plain dataclasses with a `validate()` method; no parameter-file parsing
happens here. Callers build an `FSEConfig` directly or from a mapping.
"""

from __future__ import annotations

import math
import numbers
from dataclasses import asdict, dataclass, fields
from typing import Any

from .errors import ConfigError

CORRECTION_METHODS = frozenset({"bonferroni", "holm", "bh", "by", "none"})


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _is_finite_number(value: Any) -> bool:
    return isinstance(value, numbers.Real) and not isinstance(value, bool) and math.isfinite(value)


@dataclass(frozen=True)
class FSEConfig:
    # Corrpocket pairing
    half_window: int = 100
    noise_percentile: float = 0.99
    pocket_rcutoff: float = 0.75

    # STORM
    r_cutoff: float = 0.8
    q: float = 0.01
    b: float = 1.0
    max_iterations: int = 24
    min_subset: int = 4
    correction: str = "bonferroni"

    # Which drivers to refine, as a (low, high) ppm pair; None means the whole axis
    region_of_interest: tuple[float, float] | None = None

    # Refinement thread pool size
    workers: int = 1

    def validate(self) -> None:
        if not _is_int(self.half_window) or self.half_window < 1:
            raise ConfigError("half_window must be an integer >= 1")
        if not 0.0 < self.noise_percentile < 1.0:
            raise ConfigError("noise_percentile must lie strictly between 0 and 1")
        for name in ("pocket_rcutoff", "r_cutoff", "q"):
            value = getattr(self, name)
            if not isinstance(value, (int, float)) or not 0.0 <= value <= 1.0:
                raise ConfigError(f"{name} must lie in [0, 1]")
        if not isinstance(self.b, (int, float)) or self.b < 0:
            raise ConfigError("b must be a non-negative number")
        if not _is_int(self.max_iterations) or self.max_iterations < 1:
            raise ConfigError("max_iterations must be an integer >= 1")
        if not _is_int(self.min_subset) or self.min_subset < 1:
            raise ConfigError("min_subset must be an integer >= 1")
        if self.correction not in CORRECTION_METHODS:
            raise ConfigError(
                f"Unknown correction: {self.correction}. Use one of: {sorted(CORRECTION_METHODS)}"
            )
        roi = self.region_of_interest
        if roi is not None and (
            not isinstance(roi, (tuple, list)) or len(roi) != 2 or not all(_is_finite_number(v) for v in roi)
        ):
            raise ConfigError("region_of_interest must be a (low, high) pair of finite ppm values")
        if not _is_int(self.workers) or self.workers < 1:
            raise ConfigError("workers must be an integer >= 1")

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> FSEConfig:
        """Build a config from a mapping, keeping defaults for missing keys.

        Unknown keys are rejected so typos do not silently fall back to defaults.
        """
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            raise ConfigError(f"Unknown FSE settings: {unknown}")
        values = dict(data)
        roi = values.get("region_of_interest")
        if roi is not None:
            try:
                values["region_of_interest"] = tuple(float(v) for v in roi)
            except (TypeError, ValueError) as exc:
                raise ConfigError(f"region_of_interest must be a (low, high) ppm pair, got {roi!r}") from exc
        config = cls(**values)
        config.validate()
        return config
