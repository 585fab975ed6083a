"""HL7 Message Comparison.

Structural diff of two messages, reported as one line per differing
subcomponent and one line per segment occurrence present on one side only.
"""

from collections.abc import Mapping
from typing import TYPE_CHECKING, Any, Dict, List

from .hl7_message_types import HL7Segment
from .hl7_path import format_path

if TYPE_CHECKING:
    from .hl7_message import HL7Message


def _group_segments(segments: List[HL7Segment]) -> Dict[str, List[HL7Segment]]:
    grouped: Dict[str, List[HL7Segment]] = {}
    for segment in segments:
        grouped.setdefault(segment.name, []).append(segment)
    return grouped


def _child(node: Any, index: int) -> Any:
    return node.get(index) if isinstance(node, Mapping) else None


def _keys(first: Any, second: Any) -> List[int]:
    keys = set()
    for node in (first, second):
        if isinstance(node, Mapping):
            keys.update(node.keys())
    return sorted(keys)


def _compare_segments(
    first: HL7Segment,
    second: HL7Segment,
    segment_index: int,
    ignore_case: bool,
    differences: List[str],
) -> None:
    for field in _keys(first, second):
        field1, field2 = _child(first, field), _child(second, field)
        for repetition in _keys(field1, field2):
            rep1, rep2 = _child(field1, repetition), _child(field2, repetition)
            for component in _keys(rep1, rep2):
                comp1, comp2 = _child(rep1, component), _child(rep2, component)
                for subcomponent in _keys(comp1, comp2):
                    value1 = _child(comp1, subcomponent) or ""
                    value2 = _child(comp2, subcomponent) or ""
                    if ignore_case:
                        different = value1.lower() != value2.lower()
                    else:
                        different = value1 != value2
                    if different:
                        path = format_path(
                            first.name, segment_index, field, repetition, component, subcomponent
                        )
                        differences.append(f"{path}: {value1} != {value2}")


def diff_messages(
    message: "HL7Message", other: "HL7Message", ignore_case: bool = False
) -> List[str]:
    """Compare two HL7 messages.

    Segments are paired by type and occurrence. Values missing on one side
    compare as empty strings.

    Args:
        message: Message to compare
        other: Message to compare with
        ignore_case: Compare values case-insensitively

    Returns:
        List of differences, e.g. ``PID[1].5[1].1.1: DOE != SMITH`` or
        ``OBX[2]: missing in other``
    """
    differences: List[str] = []
    ours = _group_segments(message.segments)
    theirs = _group_segments(other.segments)

    for name, segments in ours.items():
        counterparts = theirs.get(name, [])
        for position, segment in enumerate(segments):
            segment_index = position + 1
            if position >= len(counterparts):
                differences.append(f"{format_path(name, segment_index)}: missing in other")
            else:
                _compare_segments(
                    segment, counterparts[position], segment_index, ignore_case, differences
                )

    for name, segments in theirs.items():
        present = len(ours.get(name, []))
        for position in range(present, len(segments)):
            differences.append(f"{format_path(name, position + 1)}: missing in this")

    return differences
