"""HL7 Message Implementation.

This module implements the HL7 v2 message tree: parsing raw pipe-delimited
text into sparse 1-based maps, reading and writing any node by path, and
serializing the tree back to the exact wire text.

Layout of a parsed message::

    HL7Message.segments -> [HL7Segment, ...]
    HL7Segment          -> {field: Field}            (name kept on the segment)
    Field               -> {repetition: Repetition}
    Repetition          -> {component: Component}
    Component           -> {subcomponent: str}

The header segment keeps the field separator as field 1 and the encoding
characters as field 2, so the values after them are numbered from 3 exactly
as in the HL7 standard (MSH-3 is the sending application).
"""

import json
import re
from collections.abc import Mapping, MutableMapping
from dataclasses import replace
from typing import Any, Callable, List, Optional, Sequence, Union

from src.config import get_settings
from src.core.exceptions import HL7Error, HL7ValueError, PathError
from src.utils.logging import get_logger

from .hl7_diff import diff_messages
from .hl7_message_types import HEADER_SEGMENT, HL7EncodingCharacters, HL7Segment, SparseMap
from .hl7_path import HL7PathKey, HL7PathLevel, format_path
from .hl7_rules import HL7ValidationMixin, Rule

logger = get_logger(__name__)

# Raw header fields after the segment name start at MSH-3.
HEADER_FIELD_OFFSET = 2


class HL7Message(HL7ValidationMixin):
    """Represents a complete HL7 message."""

    def __init__(
        self,
        message: Optional[Union[str, "HL7Message"]] = None,
        rules: Optional[Sequence[Rule]] = None,
        segment_terminator: Optional[str] = None,
    ):
        """Initialize HL7 message.

        Args:
            message: Raw HL7 message; a header-only message when omitted or empty
            rules: Validation rules to register
            segment_terminator: Segment terminator (configured default is CR)
        """
        self._segment_terminator = segment_terminator or get_settings().segment_terminator
        self._encoding = HL7EncodingCharacters(segment_terminator=self._segment_terminator)
        self._segments: List[HL7Segment] = []
        self._raw: Optional[str] = None
        self._rules: List[Rule] = []
        self._validation_issues: List[str] = []

        if rules:
            self.add_rules(rules)

        if not message:
            message = f"{HEADER_SEGMENT}{self._encoding}"
        self.parse(message)

    @property
    def encoding(self) -> HL7EncodingCharacters:
        """Get the encoding characters of the message."""
        return self._encoding

    @property
    def segments(self) -> List[HL7Segment]:
        """Get the ordered segments of the message."""
        return self._segments

    @property
    def raw(self) -> Optional[str]:
        """Get the text of the last successful parse."""
        return self._raw

    @property
    def message_type(self) -> Optional[str]:
        """Get the message type from MSH-9, e.g. ``ADT^A01``."""
        msh = self.get_segment(HEADER_SEGMENT)
        if msh is None or 9 not in msh:
            return None
        return self._encode_repetition(msh[9].get(1, SparseMap())) or None

    @property
    def control_id(self) -> Optional[str]:
        """Get the message control ID from MSH-10."""
        return self.get("MSH.10.1") or None

    # Parsing

    def parse(self, message: Union[str, "HL7Message"]) -> None:
        """Parse an HL7 message string, replacing the current tree.

        The current tree is left untouched when parsing fails.

        Args:
            message: Raw HL7 message, or another message to copy

        Raises:
            FormatError: If the message is not text or lacks the MSH header
        """
        terminator = self._segment_terminator
        if isinstance(message, HL7Message):
            terminator = message.encoding.segment_terminator
            message = message.to_string()

        encoding = HL7EncodingCharacters.detect(message, terminator)
        segments = [
            self._parse_segment(text, encoding)
            for text in message.split(encoding.segment_terminator)
        ]

        self._encoding = encoding
        self._segments = segments
        self._raw = message
        logger.debug(
            "hl7_message_parsed",
            segment_count=len(segments),
            message_type=self.message_type,
        )

    @staticmethod
    def _parse_segment(text: str, encoding: HL7EncodingCharacters) -> HL7Segment:
        pieces = text.split(encoding.field)
        segment = HL7Segment(pieces[0])

        if segment.is_header:
            # pieces[1] holds the encoding characters, synthesized below
            _fill(segment, pieces[2:], lambda f: _parse_field(f, encoding), HEADER_FIELD_OFFSET)
            if len(pieces) > 1:
                _stamp_header(segment, encoding, (1, 2) if pieces[1] else (1,))
        else:
            _fill(segment, pieces[1:], lambda f: _parse_field(f, encoding))
        return segment

    # Serialization

    def to_string(self) -> str:
        """Convert message to HL7 string format."""
        return self._encoding.segment_terminator.join(
            self._encode_segment(segment) for segment in self._segments
        )

    def __str__(self) -> str:
        """Get the HL7 string format of the message."""
        return self.to_string()

    def __repr__(self) -> str:
        """Get the debug representation."""
        names = [segment.name for segment in self._segments]
        return f"HL7Message(segments={names!r})"

    def _encode_segment(self, segment: HL7Segment) -> str:
        # MSH-1 is the field separator itself and MSH-n is written at n-1.
        offset = 1 if segment.is_header else 0
        pieces = [segment.name]
        for index, field in segment.items():
            if segment.is_header and index <= 2:
                # MSH-2 always declares the encoding the message is written with.
                pieces.extend([""] * (2 - len(pieces)))
                if index == 2:
                    pieces[1] = self._encoding.encoding_characters
                continue
            position = index - offset
            pieces.extend([""] * (position + 1 - len(pieces)))
            pieces[position] = self._encode_field(field)
        return self._encoding.field.join(pieces)

    def _encode_field(self, field: Any) -> str:
        return _join(field, self._encoding.repetition, self._encode_repetition)

    def _encode_repetition(self, repetition: Any) -> str:
        return _join(repetition, self._encoding.component, self._encode_component)

    def _encode_component(self, component: Any) -> str:
        return _join(component, self._encoding.subcomponent, str)

    def _render(self, value: Any, level: HL7PathLevel) -> str:
        if isinstance(value, str):
            return value
        if level is HL7PathLevel.SEGMENTS:
            return self._encoding.segment_terminator.join(
                self._encode_segment(segment) for segment in value
            )
        encoders = {
            HL7PathLevel.SEGMENT: self._encode_segment,
            HL7PathLevel.FIELD: self._encode_field,
            HL7PathLevel.REPETITION: self._encode_repetition,
            HL7PathLevel.COMPONENT: self._encode_component,
        }
        return encoders[level](value)

    def to_list(self) -> List[dict]:
        """Get the segments as nested plain dictionaries."""
        return [segment.to_dict() for segment in self._segments]

    def formatted_json(self) -> str:
        """Get a JSON array with one segment per line."""
        lines = [
            "  " + json.dumps(segment, separators=(",", ":"), ensure_ascii=False)
            for segment in self.to_list()
        ]
        body = ",\n".join(lines)
        return "[\n" + (body + "\n" if body else "") + "]"

    def set_encoding(self, encoding: HL7EncodingCharacters) -> None:
        """Replace the encoding characters used to serialize the message.

        Header fields 1 and 2 are rewritten to declare the new characters.

        Args:
            encoding: New encoding characters
        """
        if not isinstance(encoding, HL7EncodingCharacters):
            raise HL7ValueError("encoding must be HL7EncodingCharacters")
        self._encoding = encoding
        self._segment_terminator = encoding.segment_terminator
        for segment in self._segments:
            if segment.is_header:
                declared = [index for index in (1, 2) if index in segment]
                _stamp_header(segment, encoding, declared)

    # Reading

    def get(self, path: str, auto_resolve: bool = True) -> Any:
        """Get the value or subtree at a path.

        Containers are returned by reference: changing a returned map changes
        the message. A leaf that does not exist reads as ``""`` and a missing
        container as a new, detached empty map.

        Args:
            path: HL7 path, e.g. ``PID.5.1``
            auto_resolve: Fill missing occurrence indices with 1

        Returns:
            str, SparseMap, HL7Segment, or a list of segments for a bare
            segment name read without auto_resolve
        """
        key = HL7PathKey.parse(path, auto_resolve)
        value = self._lookup(key)
        if value is None:
            return "" if key.level is HL7PathLevel.SUBCOMPONENT else SparseMap()
        return value

    def get_text(self, path: str, auto_resolve: bool = True) -> str:
        """Get the wire text of the value or subtree at a path."""
        key = HL7PathKey.parse(path, auto_resolve)
        value = self._lookup(key)
        if value is None:
            return ""
        return self._render(value, key.level)

    def get_range(
        self, path: str, start: int, stop: int, auto_resolve: bool = True
    ) -> List[str]:
        """Get the values of a path over a range of indices.

        The path holds one ``%`` that is replaced by every integer from
        ``start`` to ``stop`` inclusive.

        Example:
            ``message.get_range("MSH.%.1", 3, 6)`` returns MSH-3.1 to MSH-6.1

        Args:
            path: HL7 path with a single ``%`` wildcard
            start: First index
            stop: Last index
            auto_resolve: Fill missing occurrence indices with 1

        Returns:
            List of values, ``""`` where a substituted path is missing or invalid
        """
        if not isinstance(path, str) or path.count("%") != 1:
            raise PathError(f"Range path must contain exactly one '%'. Path: {path}")

        values = []
        for index in range(start, stop + 1):
            try:
                values.append(self.get_text(path.replace("%", str(index)), auto_resolve))
            except PathError:
                values.append("")
        return values

    def get_segments(self, name: str) -> List[HL7Segment]:
        """Get all segments of a type.

        Args:
            name: Segment type (e.g., "OBX")

        Returns:
            List of segments in message order
        """
        if not isinstance(name, str):
            raise PathError("Segment name must be a string")
        return [segment for segment in self._segments if segment.name == name]

    def get_segment(self, name: str, index: int = 1) -> Optional[HL7Segment]:
        """Get a segment by type and occurrence.

        Args:
            name: Segment type (e.g., "OBX")
            index: Occurrence among segments of that type (1-based)

        Returns:
            HL7Segment or None
        """
        if isinstance(index, bool) or not isinstance(index, int) or index < 1:
            raise PathError(f"Segment index must be a positive integer, got {index!r}")
        segments = self.get_segments(name)
        return segments[index - 1] if index <= len(segments) else None

    def _lookup(self, key: HL7PathKey) -> Any:
        if key.segment_index is None:
            return self.get_segments(key.segment)

        node: Any = self.get_segment(key.segment, key.segment_index)
        for index in (key.field, key.field_index, key.component, key.subcomponent):
            if node is None or index is None:
                break
            node = node.get(index) if isinstance(node, Mapping) else None
        return node

    def find_segment(
        self, search_path: str, pattern: Union[str, "re.Pattern[str]"]
    ) -> Optional[HL7Segment]:
        """Find the first segment whose value at a path matches a pattern.

        Args:
            search_path: Path of the value to test (e.g., ``OBX.3.1``)
            pattern: Regular expression searched for in the value

        Returns:
            HL7Segment or None
        """
        key = HL7PathKey.parse(search_path).leaf()
        regex = re.compile(pattern)
        for segment in self.get_segments(key.segment):
            if regex.search(_leaf_value(segment, key)):
                return segment
        return None

    def find_in_segment(
        self,
        search_path: str,
        pattern: Union[str, "re.Pattern[str]"],
        return_path: str,
        extractor: Optional[Union[str, "re.Pattern[str]"]] = None,
    ) -> List[str]:
        """Collect values from segments whose value at a path matches a pattern.

        Args:
            search_path: Path of the value to test (e.g., ``OBX.3.1``)
            pattern: Regular expression searched for in the tested value
            return_path: Path of the value to return from matching segments
            extractor: Optional regular expression applied to each returned
                value; its first group (or the whole match) is returned and
                values it does not match are skipped

        Returns:
            List of values
        """
        search = HL7PathKey.parse(search_path).leaf()
        target = HL7PathKey.parse(return_path).leaf()
        regex = re.compile(pattern)
        extract = re.compile(extractor) if extractor is not None else None

        values = []
        for segment in self.get_segments(search.segment):
            if not regex.search(_leaf_value(segment, search)):
                continue
            value = _leaf_value(segment, target)
            if extract is None:
                values.append(value)
                continue
            match = extract.search(value)
            if match:
                values.append((match.group(1) if extract.groups else None) or match.group(0))
        return values

    # Writing

    def set(self, path: str, value: Any, auto_resolve: bool = False) -> None:
        """Set the value at a path, creating missing containers.

        Numbers are stored as strings, lists as 1-based maps, and a string
        set on a container level goes to its first child. Mappings fan out
        over the levels below the path.

        Args:
            path: HL7 path, e.g. ``PID.5.1``
            value: String, number, list or mapping
            auto_resolve: Fill missing occurrence indices with 1

        Raises:
            PathError: If the path is invalid or the segment occurrence
                cannot be created
            HL7ValueError: If the value does not fit the addressed level
        """
        original = value
        try:
            key = HL7PathKey.parse(path, auto_resolve)
            segment_index = key.segment_index or 1
            level = key.level

            if level is HL7PathLevel.SUBCOMPONENT:
                self._set_subcomponent(
                    key.segment, segment_index, key.field, key.field_index,
                    key.component, key.subcomponent, value,
                )
            elif level is HL7PathLevel.COMPONENT:
                self._set_component(
                    key.segment, segment_index, key.field, key.field_index,
                    key.component, value,
                )
            elif level is HL7PathLevel.REPETITION:
                self._set_repetition(
                    key.segment, segment_index, key.field, key.field_index, value
                )
            elif level is HL7PathLevel.FIELD:
                self._set_field(key.segment, segment_index, key.field, value)
            else:
                self._set_segment(key.segment, segment_index, value)
        except HL7Error as e:
            rendered = _render_value(original)
            logger.warning("hl7_set_failed", path=path, error=str(e))
            raise type(e)(f"Failed to set {path} to {rendered} - {e}") from e

    def _set_segment(self, name: str, segment_index: int, value: Any) -> None:
        for field, item in _as_element(value, format_path(name, segment_index)).items():
            self._set_field(name, segment_index, field, item)

    def _set_field(self, name: str, segment_index: int, field: int, value: Any) -> None:
        # Strings are components of the first repetition, maps are repetitions.
        element = _as_element(value, format_path(name, segment_index, field))
        for key, item in element.items():
            item = _normalize(item)
            if isinstance(item, str):
                self._set_component(name, segment_index, field, 1, key, item)
            else:
                self._set_repetition(name, segment_index, field, key, item)

    def _set_repetition(
        self, name: str, segment_index: int, field: int, field_index: int, value: Any
    ) -> None:
        path = format_path(name, segment_index, field, field_index)
        for component, item in _as_element(value, path).items():
            self._set_component(name, segment_index, field, field_index, component, item)

    def _set_component(
        self,
        name: str,
        segment_index: int,
        field: int,
        field_index: int,
        component: int,
        value: Any,
    ) -> None:
        path = format_path(name, segment_index, field, field_index, component)
        for subcomponent, item in _as_element(value, path).items():
            self._set_subcomponent(
                name, segment_index, field, field_index, component, subcomponent, item
            )

    def _set_subcomponent(
        self,
        name: str,
        segment_index: int,
        field: int,
        field_index: int,
        component: int,
        subcomponent: int,
        value: Any,
    ) -> None:
        value = _normalize(value)
        if not isinstance(value, str):
            raise HL7ValueError(
                f"value({value!r}) expected string or number but got "
                f"{type(value).__name__} for subcomponent "
                f"{format_path(name, segment_index, field, field_index, component, subcomponent)}"
            )

        segment = self._ensure_segment(name, segment_index)
        container: MutableMapping = segment
        for index in (field, field_index, component):
            container = _child(container, index)
        container[subcomponent] = value

    def _ensure_segment(self, name: str, segment_index: int) -> HL7Segment:
        segments = self.get_segments(name)
        if segment_index <= len(segments):
            return segments[segment_index - 1]
        if segment_index > len(segments) + 1:
            raise PathError(
                f"Cannot create {name}[{segment_index}], the message has "
                f"{len(segments)} {name} segment(s)"
            )

        segment = HL7Segment(name)
        self._segments.append(segment)
        logger.debug("hl7_segment_created", segment=name, index=segment_index)
        return segment

    def delete(self, path: str) -> None:
        """Remove the node at a path.

        A segment path removes that occurrence from the message; other
        segments keep their positions. Missing nodes are ignored.

        Args:
            path: HL7 path, e.g. ``OBX[2]`` or ``PID.5.2``
        """
        key = HL7PathKey.parse(path, auto_resolve=False)
        level = key.level

        if level in (HL7PathLevel.SEGMENTS, HL7PathLevel.SEGMENT):
            segment = self.get_segment(key.segment, key.segment_index or 1)
            if segment is not None:
                position = next(i for i, s in enumerate(self._segments) if s is segment)
                del self._segments[position]
                logger.debug("hl7_segment_deleted", path=path)
            return

        if level is HL7PathLevel.SUBCOMPONENT:
            parent, index = replace(key, subcomponent=None), key.subcomponent
        elif level is HL7PathLevel.COMPONENT:
            parent, index = replace(key, component=None), key.component
        elif level is HL7PathLevel.REPETITION:
            parent, index = replace(key, field_index=None), key.field_index
        else:
            parent, index = replace(key, field=None), key.field

        container = self._lookup(parent)
        if isinstance(container, MutableMapping) and index in container:
            del container[index]

    def delete_all_segments(self, name: str) -> None:
        """Remove every segment of a type."""
        self._segments = [segment for segment in self._segments if segment.name != name]

    # Comparison and acknowledgment

    def diff(self, other: "HL7Message", ignore_case: bool = False) -> List[str]:
        """Compare this message with another one.

        Args:
            other: Message to compare with
            ignore_case: Compare values case-insensitively

        Returns:
            List of differences formatted as ``path: value1 != value2``
        """
        return diff_messages(self, other, ignore_case=ignore_case)

    def create_ack_message(self, **kwargs: Any) -> "HL7Message":
        """Create an acknowledgment of this message.

        Keyword arguments are passed to
        :func:`src.healthcare.hl7.hl7_ack.create_ack`.
        """
        from .hl7_ack import create_ack

        return create_ack(self, **kwargs)


def _fill(
    element: SparseMap,
    pieces: List[str],
    parse_piece: Callable[[str], Any],
    offset: int = 0,
) -> SparseMap:
    # Empty pieces become gaps, except the last one which keeps trailing
    # delimiters in the serialized text.
    last = len(pieces)
    for index, piece in enumerate(pieces, start=1):
        if piece or index == last:
            element[index + offset] = parse_piece(piece)
    return element


def _parse_field(text: str, encoding: HL7EncodingCharacters) -> SparseMap:
    return _fill(
        SparseMap(),
        text.split(encoding.repetition),
        lambda repetition: _fill(
            SparseMap(),
            repetition.split(encoding.component),
            lambda component: _fill(SparseMap(), component.split(encoding.subcomponent), str),
        ),
    )


def _value_field(value: str) -> SparseMap:
    return SparseMap({1: SparseMap({1: SparseMap({1: value})})})


def _stamp_header(
    segment: HL7Segment, encoding: HL7EncodingCharacters, fields: Sequence[int]
) -> None:
    values = {1: encoding.field, 2: encoding.encoding_characters}
    for index in fields:
        segment[index] = _value_field(values[index])


def _join(element: Any, delimiter: str, encode: Callable[[Any], str]) -> str:
    if isinstance(element, str):
        return element
    pieces: List[str] = []
    for key, item in element.items():
        index = SparseMap.to_index(key)
        if index is None:
            raise HL7ValueError(f"Index {key!r} is not a positive integer")
        pieces.extend([""] * (index - len(pieces)))
        pieces[index - 1] = encode(item)
    return delimiter.join(pieces)


def _leaf_value(segment: HL7Segment, key: HL7PathKey) -> str:
    node: Any = segment
    for index in (key.field, key.field_index, key.component, key.subcomponent):
        if not isinstance(node, Mapping):
            return ""
        node = node.get(index)
    return "" if node is None else str(node)


def _child(container: MutableMapping, index: int) -> MutableMapping:
    child = container.get(index)
    if not isinstance(child, MutableMapping):
        child = SparseMap()
        container[index] = child
    return child


def _normalize(value: Any) -> Any:
    if value is None:
        return ""
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return str(value)
    if isinstance(value, (list, tuple)):
        return {index: item for index, item in enumerate(value, start=1)}
    return value


def _as_element(value: Any, path: str) -> Mapping:
    value = _normalize(value)
    if isinstance(value, str):
        return {1: value}
    if not isinstance(value, Mapping) or any(
        SparseMap.to_index(key) is None for key in value
    ):
        raise HL7ValueError(f"{path} expected an element got {_render_value(value)}")
    return value


def _render_value(value: Any) -> str:
    try:
        return json.dumps(
            value,
            default=lambda o: o.to_dict() if isinstance(o, SparseMap) else str(o),
        )
    except (TypeError, ValueError):
        return repr(value)
