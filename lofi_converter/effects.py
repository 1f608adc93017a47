"""
Effects Module

The six lo-fi sliders a user controls, and their conversion into
engine-ready values.

Sliders (0-100 each):
- vinylCrackle     -> crackle bed level (0-1)
- reverb           -> reverb amount (0-1)
- beatSlowdown     -> tempo ratio (1.0 down to ~0.667)
- bassBoost        -> low shelf gain (0-12 dB)
- bitCrushing      -> bit depth (16 down to 8)
- backgroundNoise  -> brown noise bed level (0-1)
"""

import math
from dataclasses import dataclass, fields, replace
from typing import Any, Dict, Mapping, Optional

from .utils import (
    SLIDER_MIN,
    SLIDER_MAX,
    DEFAULT_VINYL_CRACKLE,
    DEFAULT_REVERB,
    DEFAULT_BEAT_SLOWDOWN,
    DEFAULT_BASS_BOOST,
    DEFAULT_BIT_CRUSHING,
    DEFAULT_BACKGROUND_NOISE,
    BEAT_SLOWDOWN_DIVISOR,
    MAX_BASS_BOOST_DB,
    MAX_BIT_DEPTH,
    MIN_BIT_DEPTH,
    TEMPO_SKIP_TOLERANCE,
    BASS_BOOST_SKIP_DB,
    REVERB_SKIP_LEVEL,
    VINYL_CRACKLE_SKIP_LEVEL,
    BACKGROUND_NOISE_SKIP_LEVEL,
    clamp,
    round_half_up,
)


# Wire name (camelCase JSON) -> attribute name
WIRE_FIELDS: Dict[str, str] = {
    "vinylCrackle": "vinyl_crackle",
    "reverb": "reverb",
    "beatSlowdown": "beat_slowdown",
    "bassBoost": "bass_boost",
    "bitCrushing": "bit_crushing",
    "backgroundNoise": "background_noise",
}


def clamp_slider(value: Any, default: Optional[int] = None) -> int:
    """
    Coerce a raw slider value into an int within [0, 100].

    Clamps before rounding, so infinities land on the range ends.

    Raises:
        ValueError: If the value is NaN and no default is given
    """
    number = float(value)
    if math.isnan(number):
        if default is None:
            raise ValueError("effect values must not be NaN")
        return default
    return round_half_up(clamp(number, SLIDER_MIN, SLIDER_MAX))


# =============================================================================
# EFFECTS
# =============================================================================

@dataclass(frozen=True)
class Effects:
    """Raw slider values for one track. Replace as a whole, never mutate."""
    vinyl_crackle: int = DEFAULT_VINYL_CRACKLE
    reverb: int = DEFAULT_REVERB
    beat_slowdown: int = DEFAULT_BEAT_SLOWDOWN
    bass_boost: int = DEFAULT_BASS_BOOST
    bit_crushing: int = DEFAULT_BIT_CRUSHING
    background_noise: int = DEFAULT_BACKGROUND_NOISE

    def __post_init__(self):
        # Frozen dataclass: clamp through object.__setattr__
        for f in fields(self):
            object.__setattr__(self, f.name, clamp_slider(getattr(self, f.name), f.default))

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Effects":
        """
        Build from the camelCase wire shape.

        Snake_case keys are accepted too. Missing keys keep their defaults.
        """
        kwargs = {}
        for wire_name, attr in WIRE_FIELDS.items():
            if wire_name in data:
                kwargs[attr] = data[wire_name]
            elif attr in data:
                kwargs[attr] = data[attr]
        return cls(**kwargs)

    def to_dict(self) -> Dict[str, int]:
        """Serialize to the camelCase wire shape."""
        return {wire_name: getattr(self, attr) for wire_name, attr in WIRE_FIELDS.items()}

    def with_values(self, **changes: int) -> "Effects":
        """Return a copy with some sliders changed."""
        return replace(self, **changes)

    @classmethod
    def bypass(cls) -> "Effects":
        """All sliders at their no-effect position."""
        return cls(0, 0, 0, 0, 0, 0)


# =============================================================================
# NORMALIZED EFFECTS
# =============================================================================

@dataclass(frozen=True)
class NormalizedEffects:
    """Engine-ready parameters derived from Effects."""
    vinyl_crackle: float
    reverb: float
    beat_slowdown_ratio: float
    bass_boost_db: float
    bit_depth: int
    background_noise: float

    @property
    def tempo_active(self) -> bool:
        return abs(1.0 - self.beat_slowdown_ratio) >= TEMPO_SKIP_TOLERANCE

    @property
    def bass_boost_active(self) -> bool:
        return self.bass_boost_db >= BASS_BOOST_SKIP_DB

    @property
    def bit_crush_active(self) -> bool:
        return self.bit_depth < MAX_BIT_DEPTH

    @property
    def reverb_active(self) -> bool:
        return self.reverb >= REVERB_SKIP_LEVEL

    @property
    def vinyl_crackle_active(self) -> bool:
        return self.vinyl_crackle >= VINYL_CRACKLE_SKIP_LEVEL

    @property
    def background_noise_active(self) -> bool:
        return self.background_noise >= BACKGROUND_NOISE_SKIP_LEVEL

    @property
    def any_active(self) -> bool:
        """True when at least one stage would alter the audio."""
        return any((
            self.tempo_active,
            self.bass_boost_active,
            self.bit_crush_active,
            self.reverb_active,
            self.vinyl_crackle_active,
            self.background_noise_active,
        ))

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for logging."""
        return {
            "vinyl_crackle": self.vinyl_crackle,
            "reverb": self.reverb,
            "beat_slowdown_ratio": round(self.beat_slowdown_ratio, 4),
            "bass_boost_db": round(self.bass_boost_db, 2),
            "bit_depth": self.bit_depth,
            "background_noise": self.background_noise,
        }


def normalize_effects(effects: Effects) -> NormalizedEffects:
    """
    Map raw 0-100 sliders onto engine ranges.

    Pure function of its input. Out-of-range sliders are clamped first,
    so a skewed caller cannot push the engine outside its domain.

    Args:
        effects: Raw slider values

    Returns:
        NormalizedEffects for the effect chain
    """
    vinyl = clamp_slider(effects.vinyl_crackle)
    reverb = clamp_slider(effects.reverb)
    slowdown = clamp_slider(effects.beat_slowdown)
    bass = clamp_slider(effects.bass_boost)
    crush = clamp_slider(effects.bit_crushing)
    noise = clamp_slider(effects.background_noise)

    bit_depth = round_half_up((1.0 - crush / 100.0) * MAX_BIT_DEPTH)

    return NormalizedEffects(
        vinyl_crackle=vinyl / 100.0,
        reverb=reverb / 100.0,
        beat_slowdown_ratio=1.0 - slowdown / BEAT_SLOWDOWN_DIVISOR,
        bass_boost_db=bass / 100.0 * MAX_BASS_BOOST_DB,
        bit_depth=max(MIN_BIT_DEPTH, bit_depth),
        background_noise=noise / 100.0,
    )
