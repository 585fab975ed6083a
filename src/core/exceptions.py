"""Core Exceptions Module.

This module defines the exceptions raised by the HL7 message toolkit.
"""


class HL7Error(Exception):
    """Base exception for all HL7 message toolkit errors."""


class FormatError(HL7Error):
    """Raised when raw message text is malformed.

    Covers a missing or wrong header tag, a truncated encoding header and
    input that is not text at all.
    """


class PathError(HL7Error):
    """Raised when a path is invalid or addresses an impossible segment occurrence."""


class HL7ValueError(HL7Error, ValueError):
    """Raised when a value cannot be stored in the message tree."""


class ConfigurationError(HL7Error):
    """Raised when configuration is invalid or missing."""
