"""Tests for the effects wire schemas."""
import json

import pytest
from pydantic import ValidationError

from lofi_converter.effects import Effects
from lofi_converter.schemas import (
    EffectsSchema,
    UpdateEffectsSchema,
    parse_effects,
    effects_to_wire,
)


class TestEffectsSchema:
    """Tests for EffectsSchema validation."""

    def test_defaults(self):
        assert EffectsSchema().to_effects() == Effects()

    def test_values_are_clamped(self):
        schema = EffectsSchema(vinylCrackle=150, reverb=-20)
        assert schema.vinylCrackle == 100
        assert schema.reverb == 0

    def test_float_values_are_rounded(self):
        assert EffectsSchema(bassBoost=33.5).bassBoost == 34

    def test_huge_json_numbers_are_clamped(self):
        schema = EffectsSchema.model_validate(json.loads('{"reverb": 1e400, "bassBoost": -1e400}'))
        assert schema.reverb == 100
        assert schema.bassBoost == 0

    def test_nan_rejected(self):
        with pytest.raises(ValidationError):
            EffectsSchema(reverb=float("nan"))

    def test_non_numeric_rejected(self):
        with pytest.raises(ValidationError):
            EffectsSchema(reverb="loud")

    def test_bool_rejected(self):
        with pytest.raises(ValidationError):
            EffectsSchema(reverb=True)

    def test_unknown_key_rejected(self):
        with pytest.raises(ValidationError):
            EffectsSchema.model_validate({"wowFlutter": 10})


class TestHelpers:
    """Tests for parse_effects / effects_to_wire."""

    def test_parse_none_gives_defaults(self):
        assert parse_effects(None) == Effects()

    def test_parse_partial_payload(self):
        fx = parse_effects({"beatSlowdown": 80})
        assert fx.beat_slowdown == 80
        assert fx.vinyl_crackle == 65

    def test_effects_to_wire(self):
        wire = effects_to_wire(Effects(reverb=12))
        assert wire["reverb"] == 12
        assert set(wire) == {
            "vinylCrackle", "reverb", "beatSlowdown",
            "bassBoost", "bitCrushing", "backgroundNoise",
        }


class TestUpdateEffectsSchema:
    """Tests for effect update requests."""

    def test_valid_request(self):
        req = UpdateEffectsSchema.model_validate({"trackId": 3, "effects": {"reverb": 70}})
        assert req.trackId == 3
        assert req.effects.to_effects().reverb == 70

    def test_track_id_must_be_positive(self):
        with pytest.raises(ValidationError):
            UpdateEffectsSchema.model_validate({"trackId": 0, "effects": {}})

    def test_effects_required(self):
        with pytest.raises(ValidationError):
            UpdateEffectsSchema.model_validate({"trackId": 1})
