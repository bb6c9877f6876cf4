"""JSON configuration file and settings loading.

The config file holds connection details and export defaults:

    {
      "connection": {"url": "https://splunk:8089", "token": "...", "insecure": false},
      "defaults": {"timeRange": "-1d", "maxResults": 10000, "batchSize": 10000, "format": "csv"}
    }

Settings resolve as: constructor arguments > environment > .env > config file > defaults.
"""
import json
from pathlib import Path
from typing import Any, Dict, Optional, Type, TypeVar

import structlog
from pydantic import BaseModel, ConfigDict, Field, ValidationError
from pydantic.alias_generators import to_camel
from pydantic_settings import BaseSettings, JsonConfigSettingsSource, PydanticBaseSettingsSource

from shared.exceptions import ConfigurationError

logger = structlog.get_logger()

DEFAULT_CONFIG_PATH = "~/.splunk-export.json"

SettingsT = TypeVar("SettingsT", bound=BaseSettings)

class ConfigSection(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

class ConnectionSection(ConfigSection):
    url: Optional[str] = None
    token: Optional[str] = None
    insecure: bool = False

class DefaultsSection(ConfigSection):
    time_range: str = "-1d"
    max_results: int = 10_000
    batch_size: int = 10_000
    format: str = "csv"

class ConfigFile(ConfigSection):
    """Contents of the JSON config file. Unknown keys are kept when the file is rewritten."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="allow")

    connection: ConnectionSection = Field(default_factory=ConnectionSection)
    defaults: DefaultsSection = Field(default_factory=DefaultsSection)

def resolve_config_path(path: Optional[str] = None) -> Path:
    return Path(path or DEFAULT_CONFIG_PATH).expanduser()

def load_config_file(path: Optional[str] = None) -> ConfigFile:
    """Load the config file; a missing file yields an empty configuration."""
    config_path = resolve_config_path(path)
    if not config_path.is_file():
        return ConfigFile()

    try:
        with config_path.open("r", encoding="utf-8") as f:
            data = json.load(f)
        return ConfigFile.model_validate(data)
    except (ValueError, ValidationError) as e:
        raise ConfigurationError(f"Invalid config file at {config_path}: {e}") from e

def save_config_file(config: ConfigFile, path: Optional[str] = None) -> Path:
    config_path = resolve_config_path(path)
    config_path.parent.mkdir(parents=True, exist_ok=True)
    with config_path.open("w", encoding="utf-8") as f:
        json.dump(config.model_dump(mode="json", by_alias=True, exclude_none=True), f, indent=2)
        f.write("\n")
    logger.debug("Saved config file", path=str(config_path))
    return config_path

class ConfigFileSettingsSource(JsonConfigSettingsSource):
    """Settings values from one section of the JSON config file.

    ``field_map`` renames section keys to settings field names.
    """

    def __init__(
        self,
        settings_cls: Type[BaseSettings],
        config_file: Optional[str],
        section: str,
        field_map: Optional[Dict[str, str]] = None,
    ):
        self.section = section
        self.field_map = field_map or {}
        super().__init__(settings_cls, json_file=resolve_config_path(config_file))

    @classmethod
    def from_init(
        cls,
        settings_cls: Type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        section: str,
        field_map: Optional[Dict[str, str]] = None,
    ) -> "ConfigFileSettingsSource":
        """Build the source for the file named by the ``config_file`` constructor argument."""
        init_kwargs = getattr(init_settings, "init_kwargs", {}) or {}
        return cls(settings_cls, init_kwargs.get("config_file"), section, field_map)

    def _read_file(self, file_path: Path) -> Dict[str, Any]:
        # Only keys present in the file; absent ones fall through to the defaults
        return load_config_file(str(file_path)).model_dump(exclude_unset=True)

    def __call__(self) -> Dict[str, Any]:
        section = self.json_data.get(self.section) or {}
        values = {self.field_map.get(key, key): value for key, value in section.items() if value is not None}
        return {key: value for key, value in values.items() if key in self.settings_cls.model_fields}

def load_settings(settings_cls: Type[SettingsT], **kwargs: Any) -> SettingsT:
    """Instantiate a settings class, reporting bad values as ConfigurationError."""
    try:
        return settings_cls(**kwargs)
    except ValidationError as e:
        error = e.errors()[0]
        field = ".".join(str(part) for part in error.get("loc", ())) or settings_cls.__name__
        raise ConfigurationError(
            f"Invalid value for {field}: {error.get('msg')} (got {error.get('input')!r})"
        ) from None
