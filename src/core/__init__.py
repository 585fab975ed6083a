"""Core Module.

This module provides the error taxonomy shared by the HL7 message toolkit.
"""

from .exceptions import (
    ConfigurationError,
    FormatError,
    HL7Error,
    HL7ValueError,
    PathError,
)

__all__ = [
    "HL7Error",
    "FormatError",
    "PathError",
    "HL7ValueError",
    "ConfigurationError",
]
