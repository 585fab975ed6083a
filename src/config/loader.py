"""Configuration loader."""

from functools import lru_cache

from pydantic import ValidationError

from src.config.base import Settings
from src.core.exceptions import ConfigurationError


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance.

    Raises:
        ConfigurationError: If the environment holds invalid settings
    """
    try:
        return Settings()
    except ValidationError as e:
        raise ConfigurationError(f"Invalid HL7 settings: {e}") from e
