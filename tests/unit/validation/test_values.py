"""Unit tests — value tree model and from_python conversion."""

from __future__ import annotations

import pytest

from callgate.values import (
    ALL_TAGS,
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
    ValueSet,
    children,
    from_python,
    is_composite,
)

pytestmark = pytest.mark.unit


class TestIntegerKinds:
    def test_bounds_of_fixed_width_kinds(self) -> None:
        assert IntKind.NAT8.bounds() == (0, 255)
        assert IntKind.INT8.bounds() == (-128, 127)
        assert IntKind.INT64.bounds() == (-(2**63), 2**63 - 1)

    def test_unbounded_kinds(self) -> None:
        assert IntKind.INT.bounds() == (None, None)
        assert IntKind.NAT.bounds() == (0, None)

    def test_overflow_rejected_at_construction(self) -> None:
        with pytest.raises(ValueError, match="does not fit in Nat8"):
            Integer(256, IntKind.NAT8)
        with pytest.raises(ValueError):
            Integer(-1, IntKind.NAT)

    def test_tag_follows_kind(self) -> None:
        assert Integer(5, IntKind.NAT32).tag == "Nat32"
        assert Integer(-5).tag == "Int"

    def test_all_tags_covers_every_variant(self) -> None:
        assert {"Int", "Nat64", "Float", "Text", "Set", "ValueMap", "Class"} <= ALL_TAGS


class TestChildren:
    def test_array_children_are_indexed(self) -> None:
        arr = Array((Text("a"), Text("b")))
        assert children(arr) == [("[0]", Text("a")), ("[1]", Text("b"))]

    def test_class_children_use_property_names(self) -> None:
        cls = Class((Property("x", Integer(1)), Property("y", Bool(True))))
        assert [name for name, _ in children(cls)] == ["x", "y"]

    def test_option_children(self) -> None:
        assert children(Option()) == []
        assert children(Option(Text("v"))) == [("?", Text("v"))]

    def test_scalars_have_no_children(self) -> None:
        assert children(Text("abc")) == []
        assert not is_composite(Float(1.0))
        assert is_composite(Map())


class TestFromPython:
    def test_scalars(self) -> None:
        assert from_python(True) == Bool(True)
        assert from_python(3) == Integer(3, IntKind.NAT)
        assert from_python(-3) == Integer(-3, IntKind.INT)
        assert from_python(1.5) == Float(1.5)
        assert from_python("hi") == Text("hi")
        assert from_python(b"\x00") == Blob(b"\x00")
        assert from_python(None) == Option(None)

    def test_str_keyed_dict_becomes_class(self) -> None:
        value = from_python({"name": "candy", "tags": ["a", "b"]})
        assert isinstance(value, Class)
        assert value.names() == ["name", "tags"]
        assert value.properties[1].value == Array((Text("a"), Text("b")))

    def test_other_dict_becomes_value_map(self) -> None:
        value = from_python({1: "one"})
        assert value == ValueMap(((Integer(1, IntKind.NAT), Text("one")),))

    def test_set_becomes_value_set(self) -> None:
        value = from_python({"only"})
        assert value == ValueSet((Text("only"),))

    def test_existing_values_pass_through(self) -> None:
        text = Text("already")
        assert from_python(text) is text

    def test_unsupported_object_raises(self) -> None:
        with pytest.raises(TypeError, match="object"):
            from_python(object())
