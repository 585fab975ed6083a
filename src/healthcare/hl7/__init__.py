"""HL7 Module.

This module provides HL7 v2 message handling: parsing pipe-delimited
messages into an addressable tree, editing and serializing them, comparing
messages, validating them against rules and acknowledging them.
"""

from src.config import AcknowledgmentCode
from src.core.exceptions import HL7Error

from .hl7_ack import create_ack
from .hl7_diff import diff_messages
from .hl7_message import HL7Message
from .hl7_message_types import (
    HEADER_SEGMENT,
    HL7EncodingCharacters,
    HL7Segment,
    SparseMap,
)
from .hl7_path import HL7PathKey, HL7PathLevel, format_path
from .hl7_rules import HL7ValidationMixin, enum_rule, matches_rule, required_rule

__all__ = [
    # Core classes
    "HL7Message",
    "HL7Segment",
    "SparseMap",
    "HL7EncodingCharacters",
    "HL7PathKey",
    # Types and enums
    "HL7PathLevel",
    "AcknowledgmentCode",
    "HEADER_SEGMENT",
    # Operations
    "create_ack",
    "diff_messages",
    "format_path",
    # Validation
    "HL7ValidationMixin",
    "required_rule",
    "matches_rule",
    "enum_rule",
    "validate_hl7_message",
]


def validate_hl7_message(message: str) -> bool:
    """Check that text can be parsed as an HL7 message.

    Args:
        message: HL7 message string

    Returns:
        True if the header declares usable encoding characters
    """
    try:
        HL7EncodingCharacters.detect(message)
    except HL7Error:
        return False
    return True
