"""Splunk connection configuration."""
from pydantic_settings import BaseSettings, PydanticBaseSettingsSource, SettingsConfigDict
from typing import Optional, Tuple, Type

import httpx

from shared.exceptions import ConfigurationError
from shared.settings import ConfigFileSettingsSource

class SplunkConfig(BaseSettings):
    """Splunk connection configuration (SPLUNK_URL, SPLUNK_TOKEN, SPLUNK_INSECURE).

    Values missing from the environment come from the ``connection``
    section of the config file named by ``config_file``.
    """
    url: Optional[str] = None
    token: Optional[str] = None
    insecure: bool = False
    timeout: float = 30.0
    config_file: Optional[str] = None

    model_config = SettingsConfigDict(env_file=".env", env_prefix="SPLUNK_", extra="ignore")

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: Type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> Tuple[PydanticBaseSettingsSource, ...]:
        config_file = ConfigFileSettingsSource.from_init(settings_cls, init_settings, "connection")
        return init_settings, env_settings, dotenv_settings, config_file, file_secret_settings

    def is_configured(self) -> bool:
        """Check if Splunk is properly configured."""
        return all([self.url, self.token])

    def normalized_url(self) -> str:
        """Return the management URL without trailing slashes."""
        return normalize_url(self.url)

def normalize_url(url: Optional[str]) -> str:
    """Validate a management URL and strip trailing slashes.

    Raises:
        ConfigurationError: when the URL is missing, has no http(s) scheme or
            does not parse (bad port, no host).
    """
    if not url or not url.strip():
        raise ConfigurationError("Splunk URL is required. Use --url, SPLUNK_URL, or the config file.")
    url = url.strip()
    if not url.lower().startswith(("http://", "https://")):
        raise ConfigurationError(f"URL must include scheme (https://): {url}")

    try:
        parsed = httpx.URL(url)
    except httpx.InvalidURL as e:
        raise ConfigurationError(f"Invalid Splunk URL {url}: {e}") from None
    if not parsed.host:
        raise ConfigurationError(f"Invalid Splunk URL {url}: missing host")
    return url.rstrip("/")
