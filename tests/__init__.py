"""HL7 Message Tree Test Suite.

Unit tests for parsing, path addressing, editing, serialization, comparison,
validation and acknowledgment of HL7 v2 messages.
"""

__version__ = "1.0.0"
