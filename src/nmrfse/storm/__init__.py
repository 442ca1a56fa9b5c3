"""STORM subset/shape refinement of protofeatures."""

from .refiner import RefinementState, StormRefiner, refine_protofeature

__all__ = [
    "RefinementState",
    "StormRefiner",
    "refine_protofeature",
]
