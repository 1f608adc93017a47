"""
Effect preset loader.

Presets are named slider settings stored in YAML or JSON files. The
bundled ``configs/presets.yaml`` is used unless another file is given.
"""

import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import yaml
from pydantic import ValidationError

from .effects import Effects
from .errors import PresetLoadError
from .schemas import parse_effects

logger = logging.getLogger(__name__)

DEFAULT_PRESETS_PATH = Path(__file__).parent / "configs" / "presets.yaml"


class PresetLoader:
    """
    Loads effect presets from a YAML/JSON file with caching.

    Attributes:
        path: Preset file location
    """

    def __init__(self, path: Optional[Union[str, Path]] = None):
        self.path = Path(path) if path else DEFAULT_PRESETS_PATH
        self._cache: Optional[Dict[str, Effects]] = None

    def _load_file(self) -> Dict[str, Any]:
        """
        Parse the preset file.

        Raises:
            PresetLoadError: If the file is missing or malformed
        """
        if not self.path.exists():
            raise PresetLoadError(f"Preset file not found: {self.path}")

        try:
            with open(self.path, "r", encoding="utf-8") as f:
                if self.path.suffix.lower() == ".json":
                    data = json.load(f)
                else:
                    data = yaml.safe_load(f)
        except (yaml.YAMLError, json.JSONDecodeError) as e:
            raise PresetLoadError(f"Failed to parse preset file {self.path}: {e}")
        except OSError as e:
            raise PresetLoadError(f"Failed to read preset file {self.path}: {e}")

        if data is None:
            return {}
        if not isinstance(data, dict):
            raise PresetLoadError(f"Preset file {self.path} must contain a mapping of names")
        return data

    def load_all(self) -> Dict[str, Effects]:
        """
        Load every preset in the file.

        Returns:
            Mapping of preset name to Effects

        Raises:
            PresetLoadError: If the file or any preset is invalid
        """
        if self._cache is not None:
            return self._cache

        presets: Dict[str, Effects] = {}
        for name, values in self._load_file().items():
            try:
                presets[str(name)] = parse_effects(values)
            except ValidationError as e:
                raise PresetLoadError(f"Invalid preset '{name}' in {self.path}: {e}")

        self._cache = presets
        logger.debug("Loaded %d presets from %s", len(presets), self.path)
        return presets

    def get(self, name: str) -> Effects:
        """
        Look up one preset.

        Raises:
            PresetLoadError: If the preset does not exist
        """
        presets = self.load_all()
        if name not in presets:
            raise PresetLoadError(f"Unknown preset: {name}. Available: {sorted(presets)}")
        return presets[name]

    def names(self) -> List[str]:
        return sorted(self.load_all())

    def clear_cache(self) -> None:
        """Forget loaded presets so the next call re-reads the file."""
        self._cache = None
