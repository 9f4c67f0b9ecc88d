import os
import yaml

from settings_schema import EngineSettings, DEFAULT_SETTINGS, validate_settings

APP_VERSION = "1.0.0"


class YamlConfig:
    """Load and save engine tuning overrides to a YAML file."""

    def __init__(self, path: str = "engine.yaml") -> None:
        self.path = path

    def load(self) -> dict:
        if not os.path.exists(self.path):
            return {}
        with open(self.path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
        if not isinstance(data, dict):
            raise ValueError(f"{self.path} must contain a mapping")
        return data

    def save(self, data: dict) -> None:
        with open(self.path, "w", encoding="utf-8") as f:
            yaml.safe_dump(dict(data), f, sort_keys=True)


def load_engine_settings(path: str | None = None) -> EngineSettings:
    """Return validated settings, applying overrides from ``path`` if given."""
    if path is None:
        return DEFAULT_SETTINGS
    overrides = YamlConfig(path).load()
    if not overrides:
        return DEFAULT_SETTINGS
    merged = DEFAULT_SETTINGS.model_dump()
    for key, value in overrides.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = {**merged[key], **value}
        else:
            merged[key] = value
    return validate_settings(merged)
