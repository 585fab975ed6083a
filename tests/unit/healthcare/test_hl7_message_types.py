"""Test the sparse maps that hold HL7 message trees."""

import pytest

from src.core.exceptions import HL7ValueError
from src.healthcare.hl7 import HL7Segment, SparseMap


class TestSparseMap:
    """Test positive-integer keyed maps."""

    def test_keys_are_coerced(self):
        """Test that decimal string keys are stored as integers."""
        element = SparseMap({"3": "c", 1: "a"})

        assert list(element) == [1, 3]
        assert element[3] == element["3"] == "c"

    def test_iteration_is_sorted(self):
        """Test ascending iteration whatever the insertion order."""
        element = SparseMap()
        element[10] = "j"
        element[2] = "b"

        assert list(element.items()) == [(2, "b"), (10, "j")]
        assert element.max_index == 10
        assert SparseMap().max_index == 0

    @pytest.mark.parametrize("key", [0, -1, "0", "01", "x", "1.5", 1.0, None, True, "²"])
    def test_invalid_keys(self, key):
        """Test that only positive integers are accepted."""
        element = SparseMap({1: "a"})

        with pytest.raises(HL7ValueError):
            element[key] = "value"
        assert element.get(key) is None
        assert key not in element

    def test_delete(self):
        """Test removing keys."""
        element = SparseMap({1: "a", 2: "b"})
        del element["2"]

        assert element.to_dict() == {1: "a"}
        with pytest.raises(KeyError):
            del element[5]

    def test_to_dict_is_nested(self):
        """Test conversion to plain dictionaries."""
        element = SparseMap({1: SparseMap({2: "x"})})

        assert element.to_dict() == {1: {2: "x"}}
        assert type(element.to_dict()[1]) is dict


class TestHL7Segment:
    """Test named segments."""

    def test_equality_includes_name(self):
        """Test that segments with other names differ."""
        fields = {1: SparseMap({1: SparseMap({1: "1"})})}

        assert HL7Segment("OBX", fields) == HL7Segment("OBX", fields)
        assert HL7Segment("OBX", fields) != HL7Segment("NTE", fields)

    def test_header_flag(self):
        """Test recognizing the header segment."""
        assert HL7Segment("MSH").is_header
        assert not HL7Segment("PID").is_header

    def test_to_dict_has_name(self):
        """Test that the name is rendered at index 0."""
        segment = HL7Segment("PID", {1: SparseMap({1: SparseMap({1: "1"})})})

        assert segment.to_dict() == {0: "PID", 1: {1: {1: "1"}}}
