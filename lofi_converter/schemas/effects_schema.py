"""
Pydantic schemas for the effects wire format.

The browser sends effects as a JSON object with six camelCase integer
fields. Values outside 0-100 are clamped rather than rejected, so a skewed
slider never fails a request.
"""
from typing import Any, Dict

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ..effects import Effects, clamp_slider
from ..utils import (
    DEFAULT_VINYL_CRACKLE,
    DEFAULT_REVERB,
    DEFAULT_BEAT_SLOWDOWN,
    DEFAULT_BASS_BOOST,
    DEFAULT_BIT_CRUSHING,
    DEFAULT_BACKGROUND_NOISE,
)


class EffectsSchema(BaseModel):
    """Validated effects payload.

    Field names match the JSON keys used by the upload UI.
    """

    model_config = ConfigDict(extra="forbid")

    vinylCrackle: int = Field(default=DEFAULT_VINYL_CRACKLE, ge=0, le=100)
    reverb: int = Field(default=DEFAULT_REVERB, ge=0, le=100)
    beatSlowdown: int = Field(default=DEFAULT_BEAT_SLOWDOWN, ge=0, le=100)
    bassBoost: int = Field(default=DEFAULT_BASS_BOOST, ge=0, le=100)
    bitCrushing: int = Field(default=DEFAULT_BIT_CRUSHING, ge=0, le=100)
    backgroundNoise: int = Field(default=DEFAULT_BACKGROUND_NOISE, ge=0, le=100)

    @field_validator(
        "vinylCrackle",
        "reverb",
        "beatSlowdown",
        "bassBoost",
        "bitCrushing",
        "backgroundNoise",
        mode="before",
    )
    @classmethod
    def clamp_to_slider_range(cls, v: Any) -> int:
        """Clamp numeric input into 0-100 before the bounds check runs."""
        if isinstance(v, bool) or not isinstance(v, (int, float)):
            raise ValueError("effect values must be numbers")
        return clamp_slider(v)

    def to_effects(self) -> Effects:
        """Convert to the engine's immutable value object."""
        return Effects.from_dict(self.model_dump())


class UpdateEffectsSchema(BaseModel):
    """Request to replace a track's effects and re-render it."""

    trackId: int = Field(..., ge=1)
    effects: EffectsSchema


def parse_effects(data: Any) -> Effects:
    """Validate a raw payload (``None`` means defaults) into Effects."""
    if data is None:
        return Effects()
    return EffectsSchema.model_validate(data).to_effects()


def effects_to_wire(effects: Effects) -> Dict[str, int]:
    """Serialize Effects through the schema so the output is validated."""
    return EffectsSchema(**effects.to_dict()).model_dump()
