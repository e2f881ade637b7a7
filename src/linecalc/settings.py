"""Display settings for the calculator engine.

Settings can be loaded from a YAML mapping:

    fraction_digits: 4
    use_grouping: false
"""

from pathlib import Path

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError


class SettingsError(Exception):
    pass


class EngineSettings(BaseModel):
    """How results are rendered as display strings."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    fraction_digits: int = Field(default=10, ge=0, le=28)
    use_grouping: bool = True  # thousands separators, e.g. 1,234.5


DEFAULT_SETTINGS = EngineSettings()


def load_settings(path: str | Path) -> EngineSettings:
    """Load settings from a YAML file. An empty file yields the defaults."""
    path = Path(path)
    try:
        data = yaml.safe_load(path.read_text())
    except OSError as e:
        raise SettingsError(f"cannot read settings file {path}: {e}") from e
    except yaml.YAMLError as e:
        raise SettingsError(f"invalid YAML in {path}: {e}") from e

    if data is None:
        return EngineSettings()
    if not isinstance(data, dict):
        raise SettingsError(f"settings file {path} must contain a mapping")

    try:
        return EngineSettings(**data)
    except ValidationError as e:
        raise SettingsError(f"invalid settings in {path}: {e}") from e
