"""Base configuration settings."""

from enum import Enum

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

LOG_FORMATS = ("console", "json")


class AcknowledgmentCode(str, Enum):
    """HL7 acknowledgment codes."""

    AA = "AA"  # Application Accept
    AE = "AE"  # Application Error
    AR = "AR"  # Application Reject
    CA = "CA"  # Commit Accept
    CE = "CE"  # Commit Error
    CR = "CR"  # Commit Reject


class Settings(BaseSettings):
    """Application settings.

    Every value can be overridden through an ``HL7_`` prefixed environment
    variable or a ``.env`` file, e.g. ``HL7_LOG_LEVEL=DEBUG``.
    """

    model_config = SettingsConfigDict(
        env_prefix="HL7_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Logging
    log_level: str = "INFO"
    log_format: str = "console"

    # Wire format
    segment_terminator: str = "\r"

    # Acknowledgments
    ack_code: AcknowledgmentCode = AcknowledgmentCode.AA
    ack_processing_id: str = "P"
    ack_timestamp_format: str = "%Y%m%d%H%M%S"

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Normalize the log level name."""
        level = v.upper()
        if level not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ValueError(f"Unknown log level: {v}")
        return level

    @field_validator("log_format")
    @classmethod
    def validate_log_format(cls, v: str) -> str:
        """Validate the log renderer name."""
        if v not in LOG_FORMATS:
            raise ValueError(f"log_format must be one of {', '.join(LOG_FORMATS)}")
        return v

    @field_validator("segment_terminator")
    @classmethod
    def validate_segment_terminator(cls, v: str) -> str:
        """Segments are separated by exactly one character."""
        if len(v) != 1:
            raise ValueError("segment_terminator must be a single character")
        return v
