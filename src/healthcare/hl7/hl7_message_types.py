"""HL7 v2 Message Types.

Building blocks of the HL7 message tree: the encoding characters declared by
the header segment, the sparse 1-based maps that hold segments, fields,
repetitions, components and subcomponents.
"""

import re
from collections.abc import MutableMapping
from dataclasses import dataclass, replace
from typing import Any, Dict, Iterator, List, Mapping, Optional, Sequence

from src.core.exceptions import FormatError, HL7ValueError

HEADER_SEGMENT = "MSH"


@dataclass(frozen=True)
class HL7EncodingCharacters:
    """HL7 encoding characters.

    The five delimiters are declared by the header segment right after its
    ``MSH`` tag; the segment terminator is not part of the wire header and
    defaults to a carriage return.
    """

    field: str = "|"
    component: str = "^"
    repetition: str = "~"
    escape: str = "\\"
    subcomponent: str = "&"
    segment_terminator: str = "\r"

    def __post_init__(self) -> None:
        """Validate that every delimiter is a distinct single character."""
        characters = self.to_json()
        if any(not isinstance(c, str) or len(c) != 1 for c in characters):
            raise HL7ValueError(
                f"Encoding characters must be single characters, got {characters!r}"
            )
        if len(set(characters)) != len(characters):
            raise HL7ValueError(
                f"Encoding characters must be distinct, got {characters!r}"
            )

    @classmethod
    def detect(
        cls, message: str, segment_terminator: str = "\r"
    ) -> "HL7EncodingCharacters":
        """Read the encoding characters from a message header.

        Args:
            message: Raw HL7 message starting with the MSH segment
            segment_terminator: Segment terminator to attach to the result

        Returns:
            HL7EncodingCharacters declared by the message

        Raises:
            FormatError: If the header is missing, truncated or ambiguous
        """
        if not isinstance(message, str):
            raise FormatError("Invalid Message! Message must be a string")
        if not message.startswith(HEADER_SEGMENT):
            raise FormatError(f'Invalid Message! Message must start with "{HEADER_SEGMENT}"')
        if len(message) < 8:
            raise FormatError(
                "Invalid Message! Header is too short to declare encoding characters"
            )

        field, component, repetition, escape, subcomponent = message[3:8]
        try:
            return cls(field, component, repetition, escape, subcomponent, segment_terminator)
        except HL7ValueError as e:
            raise FormatError(f"Invalid Message! {e}") from e

    @classmethod
    def from_json(cls, json: Sequence[str]) -> "HL7EncodingCharacters":
        """Build encoding characters from their array form.

        Args:
            json: ``[field, component, repetition, escape, subcomponent, segment_terminator]``;
                the terminator may be omitted

        Returns:
            HL7EncodingCharacters
        """
        values = list(json)
        if len(values) == 5:
            values.append("\r")
        if len(values) != 6:
            raise HL7ValueError(f"Expected 5 or 6 encoding characters, got {values!r}")
        return cls(*values)

    def to_json(self) -> List[str]:
        """Get the array form of the encoding characters."""
        return [
            self.field,
            self.component,
            self.repetition,
            self.escape,
            self.subcomponent,
            self.segment_terminator,
        ]

    def with_segment_terminator(self, segment_terminator: str) -> "HL7EncodingCharacters":
        """Return a copy using another segment terminator."""
        return replace(self, segment_terminator=segment_terminator)

    @property
    def encoding_characters(self) -> str:
        """Get the encoding characters string for MSH-2."""
        return f"{self.component}{self.repetition}{self.escape}{self.subcomponent}"

    def __str__(self) -> str:
        """Get the delimiters as they appear after the MSH tag."""
        return f"{self.field}{self.encoding_characters}"

    def _escape_tokens(self) -> Dict[str, str]:
        # Insertion order is the replacement order used by escape_text().
        esc = self.escape
        return {
            self.escape: f"{esc}E{esc}",
            self.field: f"{esc}F{esc}",
            self.component: f"{esc}S{esc}",
            self.subcomponent: f"{esc}T{esc}",
            self.repetition: f"{esc}R{esc}",
            "\r": f"{esc}X0D{esc}",
            "\n": f"{esc}X0A{esc}",
        }

    def escape_text(self, text: str) -> str:
        """Escape delimiter characters in text destined for a single value.

        The escape character is replaced first so later tokens are not
        escaped twice. Control characters without a token become a space.

        Args:
            text: Unescaped text

        Returns:
            Text safe to store as a subcomponent value
        """
        for character, token in self._escape_tokens().items():
            text = text.replace(character, token)
        return re.sub(r"[\x00-\x1f\x7f]", " ", text)

    def unescape_text(self, text: str) -> str:
        """Replace escape sequences with the characters they stand for.

        Unknown sequences are left untouched.

        Args:
            text: Escaped text

        Returns:
            Unescaped text
        """
        esc = re.escape(self.escape)
        characters = {
            token[1:-1]: character for character, token in self._escape_tokens().items()
        }

        def _replace(match: "re.Match[str]") -> str:
            code = match.group(1)
            if code in characters:
                return characters[code]
            if re.fullmatch(r"X(?:[0-9A-Fa-f]{2})+", code):
                return bytes.fromhex(code[1:]).decode("latin-1")
            return match.group(0)

        return re.sub(f"{esc}([^{esc}]*){esc}", _replace, text)


class SparseMap(MutableMapping):
    """Mutable mapping keyed by positive integers.

    Keys may be given as ``int`` or as decimal strings such as ``"3"``; they
    are stored as ``int`` and iterated in ascending order. Absent keys are
    legal gaps and serialize as empty values.
    """

    def __init__(self, items: Optional[Mapping[Any, Any]] = None):
        """Initialize sparse map.

        Args:
            items: Optional initial mapping
        """
        self._data: Dict[int, Any] = {}
        if items:
            self.update(items)

    @staticmethod
    def to_index(key: Any) -> Optional[int]:
        """Coerce a key to a positive integer or return None."""
        if isinstance(key, bool):
            return None
        if isinstance(key, int):
            return key if key > 0 else None
        if isinstance(key, str) and key.isascii() and key.isdecimal() and str(int(key)) == key:
            index = int(key)
            return index if index > 0 else None
        return None

    def __getitem__(self, key: Any) -> Any:
        """Get the value stored at a positive index."""
        index = self.to_index(key)
        if index is None:
            raise KeyError(key)
        return self._data[index]

    def __setitem__(self, key: Any, value: Any) -> None:
        """Store a value at a positive index."""
        index = self.to_index(key)
        if index is None:
            raise HL7ValueError(f"Index {key!r} is not a positive integer")
        self._data[index] = value

    def __delitem__(self, key: Any) -> None:
        """Remove the value stored at a positive index."""
        index = self.to_index(key)
        if index is None:
            raise KeyError(key)
        del self._data[index]

    def __iter__(self) -> Iterator[int]:
        """Iterate over indices in ascending order."""
        return iter(sorted(self._data))

    def __len__(self) -> int:
        """Get the number of populated indices."""
        return len(self._data)

    def __repr__(self) -> str:
        """Get the debug representation."""
        return f"{type(self).__name__}({dict(self.items())!r})"

    @property
    def max_index(self) -> int:
        """Get the highest populated index, 0 when empty."""
        return max(self._data, default=0)

    def to_dict(self) -> Dict[int, Any]:
        """Convert to nested plain dictionaries."""
        return {
            index: value.to_dict() if isinstance(value, SparseMap) else value
            for index, value in self.items()
        }


class HL7Segment(SparseMap):
    """Represents an HL7 segment: a named sparse map of fields."""

    def __init__(self, name: str, fields: Optional[Mapping[Any, Any]] = None):
        """Initialize HL7 segment.

        Args:
            name: Segment tag (e.g., "PID")
            fields: Optional initial fields keyed by field number
        """
        super().__init__(fields)
        self.name = name

    def __eq__(self, other: object) -> bool:
        """Segments are equal when names and fields are equal."""
        if isinstance(other, HL7Segment) and other.name != self.name:
            return False
        return super().__eq__(other)

    __hash__ = None  # type: ignore[assignment]

    def __repr__(self) -> str:
        """Get the debug representation."""
        return f"HL7Segment({self.name!r}, {dict(self.items())!r})"

    @property
    def is_header(self) -> bool:
        """Check if this is a message header segment."""
        return self.name == HEADER_SEGMENT

    def to_dict(self) -> Dict[int, Any]:
        """Convert to nested plain dictionaries with the name at index 0."""
        converted: Dict[int, Any] = {0: self.name}
        converted.update(super().to_dict())
        return converted
