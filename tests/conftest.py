"""Test configuration for the HL7 message toolkit.

This module registers the custom markers and provides sample messages
shared by the test suite.
"""

import os

import pytest

# Set test log level BEFORE any settings are read
os.environ.setdefault("HL7_LOG_LEVEL", "DEBUG")

from src.config import get_settings  # noqa: E402
from src.utils.logging import setup_logging  # noqa: E402
from src.healthcare.hl7 import HL7Message  # noqa: E402

ADT_A01 = "MSH|^~\\&|APP1|FAC1|APP2|FAC2|20230101000000||ADT^A01|MSG001|P|2.3"

ORU_R01 = "\r".join(
    [
        "MSH|^~\\&|LAB|HOSP|EHR|CLINIC|20230102120000||ORU^R01|LAB0001|P|2.5.1",
        "PID|1||12345^^^HOSP^MR~67890^^^STATE^SS||DOE^JOHN^Q||19800101|M",
        "OBR|1|ORD1|FIL1|CBC^Complete Blood Count",
        "OBX|1|NM|HGB^Hemoglobin||13.5|g/dL|12-16|N",
        "OBX|2|NM|WBC^White Blood Cells||7.2|10*3/uL|4-11|N",
        "OBX|3|ST|NOTE^Comment||Sample hemolyzed&repeat requested",
    ]
)


def pytest_configure(config):
    """Register custom markers for HL7 tests."""
    config.addinivalue_line(
        "markers", "round_trip: mark test as checking parse/serialize round trips"
    )
    config.addinivalue_line(
        "markers", "scenario: mark test as an end-to-end usage scenario"
    )

    # Structured logging is configured once per test session
    setup_logging()


@pytest.fixture(autouse=True)
def reset_settings():
    """Re-read settings from the environment for every test."""
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def adt_text() -> str:
    """Raw ADT^A01 message with a header segment only."""
    return ADT_A01


@pytest.fixture
def oru_text() -> str:
    """Raw ORU^R01 lab result message."""
    return ORU_R01


@pytest.fixture
def adt_message(adt_text) -> HL7Message:
    """Parsed ADT^A01 message."""
    return HL7Message(adt_text)


@pytest.fixture
def oru_message(oru_text) -> HL7Message:
    """Parsed ORU^R01 message."""
    return HL7Message(oru_text)
