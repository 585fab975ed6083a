"""Configuration module for the HL7 message toolkit."""

from src.config.base import AcknowledgmentCode, Settings
from src.config.loader import get_settings

# Create the settings instance that can be imported directly
settings = get_settings()

__all__ = ["AcknowledgmentCode", "Settings", "get_settings", "settings"]
