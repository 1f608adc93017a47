"""
Wire schemas for the lo-fi converter.
"""

from .effects_schema import (
    EffectsSchema,
    UpdateEffectsSchema,
    parse_effects,
    effects_to_wire,
)

__all__ = [
    "EffectsSchema",
    "UpdateEffectsSchema",
    "parse_effects",
    "effects_to_wire",
]
