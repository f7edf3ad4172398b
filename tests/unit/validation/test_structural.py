"""Unit tests — structural validation over value trees.

Tests cover:
  - type matching against allow-lists
  - size semantics per variant and inclusive bounds
  - depth auto-tracking through nested checks
  - numeric range without cross-family coercion
  - text length / allow-list / preset ordering
  - shape checks (required, undeclared, depth) in fail-fast order
  - collection checks and nested rule paths
"""

from __future__ import annotations

import pytest

from callgate.exceptions import ValidationFailedError
from callgate.validation import (
    ArrayItemType,
    HasShape,
    HasSize,
    HasType,
    InRange,
    IssueKind,
    MatchesText,
    MaxDepth,
    Nested,
    Predicate,
    PropertyExists,
    PropertySize,
    PropertyType,
    Shape,
    TextConstraints,
    ValidationContext,
    ensure_valid,
    get_property,
    validate_array_item_type,
    validate_array_length,
    validate_depth,
    validate_map_key_exists,
    validate_map_size,
    validate_range,
    validate_size,
    validate_structure,
    validate_text_pattern,
    validate_type,
    validate_value_rules,
    value_depth,
    value_size,
)
from callgate.values import (
    Array,
    Blob,
    Bool,
    Class,
    Float,
    IntKind,
    Integer,
    Map,
    Option,
    Property,
    Text,
    ValueMap,
    from_python,
)

pytestmark = pytest.mark.unit


def _class_with(n: int) -> Class:
    return Class(tuple(Property(f"p{i}", Integer(i, IntKind.NAT)) for i in range(n)))


class TestValidateType:
    def test_accepts_listed_tag(self) -> None:
        assert validate_type(Text("x"), ["Text", "Blob"]) is None

    def test_rejects_unlisted_tag(self) -> None:
        issue = validate_type(Integer(1, IntKind.NAT8), ["Nat", "Int"], path="count")
        assert issue is not None
        assert issue.kind == IssueKind.INVALID_TYPE
        assert issue.path == "count"
        assert issue.found == "Nat8"


class TestSize:
    def test_size_by_variant(self) -> None:
        assert value_size(Text("héllo")) == 5
        assert value_size(Blob(b"\x00\x01\x02")) == 3
        assert value_size(Array((Bool(True), Bool(False)))) == 2
        assert value_size(_class_with(4)) == 4
        assert value_size(Option()) == 0
        assert value_size(Option(Text("x"))) == 1
        assert value_size(Integer(99)) == 0

    def test_bounds_are_inclusive(self) -> None:
        assert validate_size(Text("a"), 1, 3) is None
        assert validate_size(Text("abc"), 1, 3) is None

    def test_one_beyond_either_bound_fails(self) -> None:
        low = validate_size(Text(""), 1, 3)
        high = validate_size(Text("abcd"), 1, 3)
        assert low is not None and low.message == "size min 1 violated, got 0"
        assert high is not None and high.message == "size max 3 violated, got 4"
        assert high.kind == IssueKind.INVALID_SIZE

    def test_class_with_one_to_ten_properties(self) -> None:
        for n in (1, 5, 10):
            assert validate_size(_class_with(n), 1, 10) is None
        assert validate_size(_class_with(0), 1, 10) is not None
        assert validate_size(_class_with(11), 1, 10) is not None


class TestDepth:
    def test_depth_of_scalars_and_composites(self) -> None:
        assert value_depth(Text("x")) == 0
        assert value_depth(Array(())) == 1
        assert value_depth(from_python({"a": {"b": [1]}})) == 3

    def test_depth_adds_context_depth(self) -> None:
        value = from_python({"a": 1})
        assert validate_depth(value, 1) is None
        issue = validate_depth(value, 1, ValidationContext("outer", depth=1))
        assert issue is not None
        assert issue.message == "depth max 1 violated, got 2"

    def test_nested_checks_track_depth_automatically(self) -> None:
        value = from_python({"meta": {"inner": {"deep": 1}}})
        checks = [Nested((MaxDepth(2),), name="meta")]
        issue = validate_value_rules(value, checks)
        assert issue is not None
        assert issue.path == "meta"
        assert "got 3" in issue.message


class TestRange:
    def test_integer_variants_compare_exactly(self) -> None:
        value = Integer(200, IntKind.NAT8)
        assert validate_range(value, Integer(0, IntKind.NAT64), Integer(255, IntKind.INT)) is None
        assert validate_range(value, 0, 200) is None

    def test_out_of_range(self) -> None:
        issue = validate_range(Integer(-5), min_value=0)
        assert issue is not None
        assert issue.kind == IssueKind.OUT_OF_RANGE
        assert issue.message == "min 0 violated, got -5"

    def test_float_bound_on_integer_is_type_error(self) -> None:
        issue = validate_range(Integer(5), max_value=10.0)
        assert issue is not None
        assert issue.kind == IssueKind.INVALID_TYPE

    def test_floats_compare_with_floats(self) -> None:
        assert validate_range(Float(0.5), 0.0, 1.0) is None
        assert validate_range(Float(1.5), Float(0.0), Float(1.0)) is not None

    def test_non_numeric_value(self) -> None:
        issue = validate_range(Text("5"), 0, 10)
        assert issue is not None and issue.kind == IssueKind.INVALID_TYPE

    def test_bool_is_not_numeric(self) -> None:
        issue = validate_range(Integer(1), min_value=True)
        assert issue is not None and issue.kind == IssueKind.INVALID_TYPE


class TestTextPattern:
    def test_length_checked_first(self) -> None:
        constraints = TextConstraints(max_length=3, allowed_values=("abcd",))
        issue = validate_text_pattern("abcd", constraints)
        assert issue is not None
        assert issue.kind == IssueKind.INVALID_SIZE

    def test_allow_list_before_pattern(self) -> None:
        constraints = TextConstraints(pattern="numeric", allowed_values=("red", "green"))
        issue = validate_text_pattern("blue", constraints)
        assert issue is not None
        assert issue.kind == IssueKind.INVALID_PATTERN
        assert "not one of" in issue.message

    def test_named_pattern(self) -> None:
        constraints = TextConstraints(min_length=3, pattern="email")
        assert validate_text_pattern(Text("a@b.io"), constraints) is None
        issue = validate_text_pattern("not-an-email", constraints, path="contact")
        assert issue is not None
        assert issue.path == "contact"
        assert "email" in issue.message

    def test_unknown_pattern_rejected_at_construction(self) -> None:
        with pytest.raises(ValueError, match="Unknown text pattern"):
            TextConstraints(pattern="[a-z]+")

    def test_non_text_value(self) -> None:
        issue = validate_text_pattern(Integer(1), TextConstraints())
        assert issue is not None and issue.kind == IssueKind.INVALID_TYPE


class TestStructure:
    def test_required_and_optional(self) -> None:
        value = from_python({"name": "x", "colour": "red"})
        shape = Shape(required=("name",), optional=("colour",), allow_additional=False)
        assert validate_structure(value, shape) is None

    def test_missing_required_reported_in_declared_order(self) -> None:
        value = from_python({"other": 1})
        issue = validate_structure(value, Shape(required=("b", "a")))
        assert issue is not None
        assert issue.kind == IssueKind.MISSING_PROPERTY
        assert issue.expected == "b"

    def test_undeclared_property_rejected_when_closed(self) -> None:
        value = from_python({"name": "x", "extra": 1})
        issue = validate_structure(value, Shape(required=("name",), allow_additional=False))
        assert issue is not None
        assert issue.kind == IssueKind.CUSTOM
        assert issue.path == "extra"

    def test_undeclared_property_allowed_by_default(self) -> None:
        value = from_python({"name": "x", "extra": 1})
        assert validate_structure(value, Shape(required=("name",))) is None

    def test_depth_checked_before_presence(self) -> None:
        value = from_python({"a": {"b": {}}})
        issue = validate_structure(value, Shape(required=("zzz",), max_depth=1))
        assert issue is not None
        assert issue.kind == IssueKind.INVALID_SIZE

    def test_accepts_plain_property_sequence(self) -> None:
        props = [Property("id", Text("1"), immutable=True)]
        assert validate_structure(props, Shape(required=("id",))) is None

    def test_get_property_returns_first_match(self) -> None:
        props = (Property("k", Text("first")), Property("k", Text("second")))
        assert get_property(props, "k") == Text("first")
        assert get_property(Class(props), "missing") is None


class TestCollections:
    def test_array_length(self) -> None:
        arr = from_python([1, 2, 3])
        assert validate_array_length(arr, 1, 3) is None
        assert validate_array_length(arr, max_length=2) is not None
        assert validate_array_length(Text("abc"), 1, 3).kind == IssueKind.INVALID_TYPE

    def test_array_item_type_reports_index(self) -> None:
        arr = Array((Text("a"), Integer(1), Text("b")))
        issue = validate_array_item_type(arr, ["Text"], path="tags")
        assert issue is not None
        assert issue.path == "tags.[1]"

    def test_map_key_exists(self) -> None:
        mapping = Map((("k", Text("v")),))
        assert validate_map_key_exists(mapping, "k") is None
        issue = validate_map_key_exists(mapping, "missing")
        assert issue is not None and issue.kind == IssueKind.MISSING_PROPERTY

    def test_map_size(self) -> None:
        mapping = ValueMap(((Integer(1), Text("a")), (Integer(2), Text("b"))))
        assert validate_map_size(mapping, 1, 2) is None
        assert validate_map_size(mapping, max_size=1) is not None
        assert validate_map_size(_class_with(2), 1, 2) is None
        assert validate_map_size(_class_with(3), max_size=2).kind == IssueKind.INVALID_SIZE
        assert validate_map_size(Text("abc"), 1, 2).kind == IssueKind.INVALID_TYPE


class TestValueChecks:
    def test_checks_run_in_order_and_stop_at_first_issue(self) -> None:
        calls: list[str] = []

        def record(value):
            calls.append("ran")
            return True

        checks = [HasType(("Text",)), Predicate(record)]
        issue = validate_value_rules(Integer(1), checks)
        assert issue is not None
        assert calls == []

    def test_property_checks(self) -> None:
        value = from_python({"name": "candy", "count": 3})
        checks = [
            PropertyExists("name"),
            PropertyType("count", ("Nat", "Int")),
            PropertySize("name", 1, 10),
        ]
        assert validate_value_rules(value, checks) is None

        issue = PropertySize("name", 1, 3).apply(value, ValidationContext())
        assert issue is not None
        assert issue.path == "name"

    def test_nested_over_array_items(self) -> None:
        value = from_python({"tags": ["ok", "this-one-is-too-long"]})
        checks = [Nested((Nested((MatchesText(TextConstraints(max_length=5)),)),), name="tags")]
        issue = validate_value_rules(value, checks)
        assert issue is not None
        assert issue.path == "tags.[1]"

    def test_nested_optional_child(self) -> None:
        value = from_python({"name": "x"})
        assert Nested((HasSize(1),), name="bio", optional=True).apply(value, ValidationContext()) is None
        issue = Nested((HasSize(1),), name="bio").apply(value, ValidationContext())
        assert issue is not None and issue.kind == IssueKind.MISSING_PROPERTY

    def test_shape_check_requires_class(self) -> None:
        issue = HasShape(Shape()).apply(Text("x"), ValidationContext())
        assert issue is not None and issue.kind == IssueKind.INVALID_TYPE

    def test_predicate_message(self) -> None:
        check = Predicate(lambda v: "too spicy")
        issue = check.apply(Text("x"), ValidationContext("flavour"))
        assert issue is not None
        assert str(issue) == "custom at flavour: too spicy"

    def test_in_range_and_item_type(self) -> None:
        assert InRange(0, 10).apply(Integer(10), ValidationContext()) is None
        assert ArrayItemType(("Nat",)).apply(from_python([1, 2]), ValidationContext()) is None


class TestEnsureValid:
    def test_none_passes(self) -> None:
        ensure_valid(None)

    def test_issue_raises(self) -> None:
        issue = validate_size(Text(""), 1)
        with pytest.raises(ValidationFailedError) as exc_info:
            ensure_valid(issue)
        assert exc_info.value.issue is issue
