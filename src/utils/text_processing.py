"""Text Processing Utilities.

Helpers for preparing free text that travels inside HL7 messages and for
repairing raw messages damaged by line-break conversion in transit.
"""

import re
from typing import Iterable, List


def repair_line_breaks(
    text: str, segment_terminator: str = "\r", field_separator: str = "|"
) -> str:
    """Repair a message whose text contains unescaped line breaks.

    Line breaks other than the terminator are dropped, then every piece
    between segment terminators that does not start like a segment (three
    letters or digits followed by the field separator) is glued back onto the
    previous segment.

    Args:
        text: Raw HL7 message text
        segment_terminator: Segment terminator used by the message
        field_separator: Field separator used by the message

    Returns:
        The repaired message text
    """
    segment_start = re.compile(r"^\w{3}" + re.escape(field_separator))
    stray = "\r" if segment_terminator == "\n" else "\n"
    pieces = text.replace(stray, "").split(segment_terminator)

    repaired = pieces[0]
    for piece in pieces[1:]:
        if segment_start.match(piece):
            repaired += segment_terminator + piece
        else:
            repaired += piece
    return repaired


def split_on_space_and_length(
    text: str, length: int, keep_whitespace: bool = False
) -> List[str]:
    """Split text into chunks of at most ``length`` characters.

    Chunks break on whitespace and on natural line breaks; a word longer
    than ``length`` is cut into ``length`` sized pieces.

    Args:
        text: Text to split
        length: Maximum chunk length
        keep_whitespace: Keep surrounding whitespace on every chunk

    Returns:
        List of chunks, ``[""]`` for empty text
    """
    if length < 1:
        raise ValueError("length must be a positive integer")

    pattern = re.compile(r"(?:.{1,%d}(?:\s|$)|.{%d})\s*" % (length, length))
    chunks = [match.group(0) for match in pattern.finditer(str(text))]
    if not chunks:
        return [""]
    if keep_whitespace:
        return chunks
    return [chunk.strip() for chunk in chunks]


def limit_element_length(lines: Iterable[str], length: int) -> List[str]:
    """Trim every line and split the ones longer than ``length``."""
    limited: List[str] = []
    for line in lines:
        trimmed = line.strip()
        if len(trimmed) > length:
            limited.extend(split_on_space_and_length(trimmed, length))
        else:
            limited.append(trimmed)
    return limited
