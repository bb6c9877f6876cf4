"""Export defaults configuration."""
from pydantic_settings import BaseSettings, PydanticBaseSettingsSource, SettingsConfigDict
from typing import Optional, Tuple, Type

from shared.settings import ConfigFileSettingsSource

class ExportConfig(BaseSettings):
    """Export defaults, overridable with SPLUNK_EXPORT_* variables.

    The ``defaults`` section of the config file sits below the environment.
    """
    max_results: int = 10_000
    batch_size: int = 10_000
    format: str = "csv"
    earliest_time: str = "-1d"
    latest_time: str = "now"
    poll_interval: float = 0.5
    log_level: str = "WARNING"
    config_file: Optional[str] = None

    model_config = SettingsConfigDict(env_file=".env", env_prefix="SPLUNK_EXPORT_", extra="ignore")

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: Type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> Tuple[PydanticBaseSettingsSource, ...]:
        config_file = ConfigFileSettingsSource.from_init(
            settings_cls, init_settings, "defaults", field_map={"time_range": "earliest_time"}
        )
        return init_settings, env_settings, dotenv_settings, config_file, file_secret_settings
