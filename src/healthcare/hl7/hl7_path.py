"""HL7 Path Addressing.

Paths address any node of a message tree with the grammar

    SEG[segIdx].field[fieldIdx].component.subcomponent

where ``SEG`` is a three character segment tag and every part after it is
optional, e.g. ``PID``, ``OBX[2]``, ``PID.5``, ``PID.3[2].1``, ``MSH.9.1.1``.
All indices are 1-based. Bracketed indices select an occurrence: the Nth
segment with that tag, or the Nth repetition of a field.

Path strings are embedded as literals by callers, so the grammar is part of
the public interface and must stay backwards compatible.
"""

import re
from dataclasses import dataclass, replace
from enum import Enum
from typing import Any, Optional

from src.core.exceptions import PathError

PATH_REGEX = re.compile(
    r"([A-Z\d]{3})(?:\[(\d+)\])?(?:\.(\d+)(?:\[(\d+)\])?(?:\.(\d+)(?:\.(\d+))?)?)?"
)


class HL7PathLevel(Enum):
    """Deepest level a resolved path addresses."""

    SEGMENTS = "segments"  # every occurrence of a segment
    SEGMENT = "segment"
    FIELD = "field"  # every repetition of a field
    REPETITION = "repetition"
    COMPONENT = "component"
    SUBCOMPONENT = "subcomponent"


def format_path(
    segment: str,
    segment_index: Optional[Any] = None,
    field: Optional[Any] = None,
    field_index: Optional[Any] = None,
    component: Optional[Any] = None,
    subcomponent: Optional[Any] = None,
) -> str:
    """Render path parts as a path string.

    Args:
        segment: Segment tag
        segment_index: Segment occurrence
        field: Field number
        field_index: Field repetition
        component: Component number
        subcomponent: Subcomponent number

    Returns:
        Path string, e.g. ``OBX[2].5[1].1.1``
    """
    if not segment:
        raise PathError("A path must have a segment")

    path = segment
    if segment_index:
        path += f"[{segment_index}]"
    if not field:
        return path
    path += f".{field}"
    if field_index:
        path += f"[{field_index}]"
    if not component:
        return path
    path += f".{component}"
    if not subcomponent:
        return path
    return path + f".{subcomponent}"


@dataclass(frozen=True)
class HL7PathKey:
    """Structured locator parsed from a path string."""

    segment: str
    segment_index: Optional[int] = None
    field: Optional[int] = None
    field_index: Optional[int] = None
    component: Optional[int] = None
    subcomponent: Optional[int] = None
    auto_resolve: bool = True

    @classmethod
    def parse(cls, path: str, auto_resolve: bool = True) -> "HL7PathKey":
        """Parse a path string.

        A field without a segment index always selects the first segment
        occurrence, and a component without a field index always selects the
        first repetition. With ``auto_resolve`` the remaining occurrence
        indices default to 1 as well and a component resolves down to its
        first subcomponent, so ``PID.5`` addresses the components of the
        first repetition and ``PID.5.1`` a single value.

        Args:
            path: Path string
            auto_resolve: Fill missing indices with 1

        Returns:
            HL7PathKey

        Raises:
            PathError: If the path does not match the grammar
        """
        if not isinstance(path, str) or not path.strip():
            raise PathError("Path must be a non-empty string!")

        match = PATH_REGEX.fullmatch(path.strip())
        if not match:
            raise PathError(f"Invalid HL7 Path! Path: {path}")

        segment = match.group(1)
        segment_index, field, field_index, component, subcomponent = (
            int(group) if group is not None else None for group in match.groups()[1:]
        )
        for index in (segment_index, field, field_index, component, subcomponent):
            if index == 0:
                raise PathError(f"Invalid HL7 Path! Indices start at 1. Path: {path}")

        if field and not segment_index:
            segment_index = 1
        if component and not field_index:
            field_index = 1

        if auto_resolve:
            segment_index = segment_index or 1
            if field:
                field_index = field_index or 1
            if component:
                subcomponent = subcomponent or 1

        return cls(
            segment,
            segment_index,
            field,
            field_index,
            component,
            subcomponent,
            auto_resolve,
        )

    @property
    def level(self) -> HL7PathLevel:
        """Get the deepest level this key addresses."""
        if self.subcomponent:
            return HL7PathLevel.SUBCOMPONENT
        if self.component:
            return HL7PathLevel.COMPONENT
        if self.field_index:
            return HL7PathLevel.REPETITION
        if self.field:
            return HL7PathLevel.FIELD
        if self.segment_index:
            return HL7PathLevel.SEGMENT
        return HL7PathLevel.SEGMENTS

    def leaf(self) -> "HL7PathKey":
        """Get the key with every level down to the subcomponent filled."""
        return replace(
            self,
            segment_index=self.segment_index or 1,
            field=self.field or 1,
            field_index=self.field_index or 1,
            component=self.component or 1,
            subcomponent=self.subcomponent or 1,
        )

    def to_path(self) -> str:
        """Render the key as a path string."""
        return format_path(
            self.segment,
            self.segment_index,
            self.field,
            self.field_index,
            self.component,
            self.subcomponent,
        )

    def __str__(self) -> str:
        """Get the path string."""
        return self.to_path()
