"""HL7 Acknowledgment Messages.

Builds the ACK reply for a received message: the header echoes the source
message with sender and receiver swapped and an MSA segment acknowledges the
source control ID.
"""

from datetime import datetime
from typing import Optional, Union

from src.config import AcknowledgmentCode, get_settings
from src.core.exceptions import HL7ValueError
from src.utils.logging import get_logger

from .hl7_message import HL7Message
from .hl7_message_types import HEADER_SEGMENT

logger = get_logger(__name__)

# Source header field -> ACK header field
SWAPPED_HEADER_FIELDS = {5: 3, 6: 4, 3: 5, 4: 6}


def _ack_code_value(ack_code: Union[str, AcknowledgmentCode]) -> str:
    if isinstance(ack_code, AcknowledgmentCode):
        return ack_code.value
    try:
        return AcknowledgmentCode(ack_code).value
    except ValueError as e:
        raise HL7ValueError(
            f"Invalid acknowledgment code {ack_code!r}, expected one of "
            f"{[code.value for code in AcknowledgmentCode]}"
        ) from e


def create_ack(
    message: HL7Message,
    ack_code: Optional[Union[str, AcknowledgmentCode]] = None,
    text_message: Optional[str] = None,
    timestamp: Optional[str] = None,
    control_id: Optional[str] = None,
) -> HL7Message:
    """Create an acknowledgment message for an HL7 message.

    Args:
        message: Message being acknowledged
        ack_code: Acknowledgment code (configured default, normally AA)
        text_message: Optional text for MSA-3
        timestamp: MSH-7 date/time, the current time when omitted
        control_id: MSH-10 control ID, the timestamp when omitted

    Returns:
        ACK message using the encoding characters of the source message
    """
    settings = get_settings()
    code = _ack_code_value(ack_code if ack_code is not None else settings.ack_code)
    timestamp = timestamp or datetime.now().strftime(settings.ack_timestamp_format)

    encoding = message.encoding
    ack = HL7Message(
        f"{HEADER_SEGMENT}{encoding}",
        segment_terminator=encoding.segment_terminator,
    )

    for source, target in SWAPPED_HEADER_FIELDS.items():
        ack.set(f"MSH.{target}", message.get(f"MSH.{source}", auto_resolve=False))
    ack.set("MSH.7.1", timestamp)
    ack.set("MSH.9.1", "ACK")
    ack.set("MSH.10.1", control_id or timestamp)
    ack.set("MSH.11.1", settings.ack_processing_id)
    ack.set("MSH.12", message.get("MSH.12", auto_resolve=False))

    ack.set("MSA.1.1", code)
    ack.set("MSA.2.1", message.get("MSH.10.1"))
    if text_message:
        ack.set("MSA.3.1", text_message)

    logger.info(
        "hl7_ack_created",
        ack_code=code,
        acknowledged_control_id=message.control_id,
        message_type=message.message_type,
    )
    return ack
