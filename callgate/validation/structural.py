"""Structural validation — checks over nested value trees.

Two layers:

* Plain functions (``validate_type``, ``validate_size``, ``validate_range``,
  ``validate_text_pattern``, ``validate_structure``, ...) that check one
  value and return ``ValidationIssue | None``.
* :class:`ValueCheck` objects that bundle a function with its parameters so
  that check lists can be declared once and run many times with
  :func:`validate_value_rules`.  :class:`Nested` descends into a property or
  into every item, extending the path and depth of the
  :class:`ValidationContext` on the way down.

Depth is tracked by the validator itself: every descent goes through
``ValidationContext.child()``, and depth-sensitive checks measure
``context.depth`` plus the nesting of the value under inspection.

Evaluation is fail-fast everywhere: the first issue found is returned.

Numeric comparisons never coerce across families.  All integer variants
compare with each other exactly; ``Float`` compares only with ``Float``.
A family mismatch is reported as ``INVALID_TYPE``.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass
from typing import ClassVar, Union

from callgate.exceptions import ValidationFailedError
from callgate.validation import errors
from callgate.validation import patterns as _patterns
from callgate.validation.errors import ValidationIssue, join_path
from callgate.values import (
    Array,
    Blob,
    Class,
    Float,
    Integer,
    Map,
    Option,
    Property,
    Text,
    Value,
    ValueMap,
    ValueSet,
    children,
    is_composite,
)

Number = Union[int, float]


# ---------------------------------------------------------------------------
# Context
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ValidationContext:
    """Position of the value being checked inside the root value."""

    path: str = ""
    depth: int = 0

    def child(self, segment: str) -> ValidationContext:
        return ValidationContext(join_path(self.path, segment), self.depth + 1)


_ROOT = ValidationContext()


# ---------------------------------------------------------------------------
# Measurements
# ---------------------------------------------------------------------------


def type_name(value: Value) -> str:
    return value.tag


def value_size(value: Value) -> int:
    """Element count for composites, characters for text, bytes for blobs, else 0."""
    if isinstance(value, Text):
        return len(value.value)
    if isinstance(value, Blob):
        return len(value.value)
    if isinstance(value, (Array, ValueSet)):
        return len(value.items)
    if isinstance(value, (Map, ValueMap)):
        return len(value.entries)
    if isinstance(value, Class):
        return len(value.properties)
    if isinstance(value, Option):
        return 0 if value.value is None else 1
    return 0


def value_depth(value: Value) -> int:
    """Nesting depth: 0 for scalars, 1 + deepest child for composites."""
    if not is_composite(value):
        return 0
    nested = [value_depth(child) for _, child in children(value)]
    return 1 + max(nested, default=0)


def get_property(properties: Class | Sequence[Property], name: str) -> Value | None:
    """Return the value of the first property called *name*, or None."""
    props = properties.properties if isinstance(properties, Class) else properties
    for prop in props:
        if prop.name == name:
            return prop.value
    return None


def _lookup(value: Value, name: str) -> Value | None:
    if isinstance(value, Class):
        return get_property(value, name)
    if isinstance(value, Map):
        return value.get(name)
    return None


def _numeric(value: Value | Number) -> tuple[str, Number] | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, Integer):
        return "integer", value.value
    if isinstance(value, Float):
        return "float", value.value
    if isinstance(value, int):
        return "integer", value
    if isinstance(value, float):
        return "float", value
    return None


# ---------------------------------------------------------------------------
# Primitive checks
# ---------------------------------------------------------------------------


def validate_type(
    value: Value, expected: Iterable[str], path: str = ""
) -> ValidationIssue | None:
    allowed = list(expected)
    if value.tag in allowed:
        return None
    return errors.invalid_type(path, allowed, value.tag)


def _check_bounds(
    path: str,
    what: str,
    measured: int,
    min_size: int | None,
    max_size: int | None,
) -> ValidationIssue | None:
    if min_size is not None and measured < min_size:
        return errors.invalid_size(
            path, f"{what} min {min_size} violated, got {measured}", min_size, measured
        )
    if max_size is not None and measured > max_size:
        return errors.invalid_size(
            path, f"{what} max {max_size} violated, got {measured}", max_size, measured
        )
    return None


def validate_size(
    value: Value,
    min_size: int | None = None,
    max_size: int | None = None,
    path: str = "",
) -> ValidationIssue | None:
    """Inclusive size bounds; see :func:`value_size` for what size means."""
    return _check_bounds(path, "size", value_size(value), min_size, max_size)


def validate_depth(
    value: Value, max_depth: int, context: ValidationContext = _ROOT
) -> ValidationIssue | None:
    depth = context.depth + value_depth(value)
    if depth > max_depth:
        return errors.invalid_size(
            context.path, f"depth max {max_depth} violated, got {depth}", max_depth, depth
        )
    return None


def validate_range(
    value: Value,
    min_value: Value | Number | None = None,
    max_value: Value | Number | None = None,
    path: str = "",
) -> ValidationIssue | None:
    """Inclusive numeric bounds within one numeric family."""
    measured = _numeric(value)
    if measured is None:
        return errors.invalid_type(path, "numeric value", value.tag)
    family, number = measured

    for label, bound in (("min", min_value), ("max", max_value)):
        if bound is None:
            continue
        limit = _numeric(bound)
        if limit is None or limit[0] != family:
            found = limit[0] if limit else type(bound).__name__
            return errors.invalid_type(
                path, f"{family} bound for {label}", f"{found} bound"
            )
        if label == "min" and number < limit[1]:
            return errors.out_of_range(
                path, f"min {limit[1]} violated, got {number}", limit[1], number
            )
        if label == "max" and number > limit[1]:
            return errors.out_of_range(
                path, f"max {limit[1]} violated, got {number}", limit[1], number
            )
    return None


@dataclass(frozen=True)
class TextConstraints:
    """Length bounds, an optional allow-list, and an optional named preset."""

    min_length: int | None = None
    max_length: int | None = None
    pattern: str | None = None
    allowed_values: tuple[str, ...] | None = None

    def __post_init__(self) -> None:
        if self.pattern is not None and not _patterns.is_known(self.pattern):
            raise ValueError(
                f"Unknown text pattern '{self.pattern}'. "
                f"Known presets: {sorted(_patterns.PATTERNS)}"
            )


def validate_text_pattern(
    text: str | Value, constraints: TextConstraints, path: str = ""
) -> ValidationIssue | None:
    """Length check, then allow-list membership, then the named preset."""
    if not isinstance(text, str):
        if not isinstance(text, Text):
            return errors.invalid_type(path, ["Text"], text.tag)
        text = text.value

    issue = _check_bounds(
        path, "length", len(text), constraints.min_length, constraints.max_length
    )
    if issue is not None:
        return issue

    if constraints.allowed_values is not None and text not in constraints.allowed_values:
        return errors.invalid_pattern(
            path,
            f"value {text!r} is not one of {list(constraints.allowed_values)}",
            list(constraints.allowed_values),
            text,
        )

    if constraints.pattern is not None and not _patterns.matches(constraints.pattern, text):
        return errors.invalid_pattern(
            path,
            f"value {text!r} does not match pattern '{constraints.pattern}'",
            constraints.pattern,
            text,
        )
    return None


# ---------------------------------------------------------------------------
# Shape
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Shape:
    """Expected property layout of a ``Class`` value."""

    required: tuple[str, ...] = ()
    optional: tuple[str, ...] = ()
    allow_additional: bool = True
    max_depth: int | None = None


def validate_structure(
    properties: Class | Sequence[Property],
    shape: Shape,
    context: ValidationContext = _ROOT,
) -> ValidationIssue | None:
    """Check depth, required presence, then undeclared properties.

    Depth counts ``context.depth`` plus the nesting of the properties
    themselves, so a shape applied inside :class:`Nested` sees the depth it
    actually sits at.
    """
    cls = properties if isinstance(properties, Class) else Class(tuple(properties))

    if shape.max_depth is not None:
        issue = validate_depth(cls, shape.max_depth, context)
        if issue is not None:
            return issue

    present = set(cls.names())
    for name in shape.required:
        if name not in present:
            return errors.missing_property(context.path, name)

    if not shape.allow_additional:
        declared = set(shape.required) | set(shape.optional)
        for name in cls.names():
            if name not in declared:
                return errors.custom(
                    join_path(context.path, name), f"undeclared property '{name}'"
                )
    return None


# ---------------------------------------------------------------------------
# Collections
# ---------------------------------------------------------------------------


def validate_array_length(
    value: Value,
    min_length: int | None = None,
    max_length: int | None = None,
    path: str = "",
) -> ValidationIssue | None:
    if not isinstance(value, (Array, ValueSet)):
        return errors.invalid_type(path, ["Array", "Set"], value.tag)
    return _check_bounds(path, "length", len(value.items), min_length, max_length)


def validate_array_item_type(
    value: Value, expected: Iterable[str], path: str = ""
) -> ValidationIssue | None:
    if not isinstance(value, (Array, ValueSet)):
        return errors.invalid_type(path, ["Array", "Set"], value.tag)
    allowed = list(expected)
    for i, item in enumerate(value.items):
        issue = validate_type(item, allowed, join_path(path, f"[{i}]"))
        if issue is not None:
            return issue
    return None


def validate_map_key_exists(value: Value, key: str, path: str = "") -> ValidationIssue | None:
    if not isinstance(value, (Map, Class)):
        return errors.invalid_type(path, ["Map", "Class"], value.tag)
    if _lookup(value, key) is None:
        return errors.missing_property(path, key)
    return None


def validate_map_size(
    value: Value,
    min_size: int | None = None,
    max_size: int | None = None,
    path: str = "",
) -> ValidationIssue | None:
    # Converted dicts arrive as Class, so a record counts its properties.
    if isinstance(value, Class):
        size = len(value.properties)
    elif isinstance(value, (Map, ValueMap)):
        size = len(value.entries)
    else:
        return errors.invalid_type(path, ["Map", "ValueMap", "Class"], value.tag)
    return _check_bounds(path, "size", size, min_size, max_size)


def ensure_valid(issue: ValidationIssue | None) -> None:
    """Raise :class:`ValidationFailedError` if *issue* is not None."""
    if issue is not None:
        raise ValidationFailedError(issue)


# ---------------------------------------------------------------------------
# Declarative checks
# ---------------------------------------------------------------------------


class ValueCheck(ABC):
    """A parameterised structural check.  ``kind`` names it in diagnostics."""

    kind: ClassVar[str] = ""

    @abstractmethod
    def apply(self, value: Value, context: ValidationContext) -> ValidationIssue | None:
        ...


@dataclass(frozen=True)
class HasType(ValueCheck):
    kind: ClassVar[str] = "value_type"
    types: tuple[str, ...]

    def apply(self, value: Value, context: ValidationContext) -> ValidationIssue | None:
        return validate_type(value, self.types, context.path)


@dataclass(frozen=True)
class HasSize(ValueCheck):
    kind: ClassVar[str] = "value_size"
    min_size: int | None = None
    max_size: int | None = None

    def apply(self, value: Value, context: ValidationContext) -> ValidationIssue | None:
        return validate_size(value, self.min_size, self.max_size, context.path)


@dataclass(frozen=True)
class MaxDepth(ValueCheck):
    kind: ClassVar[str] = "value_depth"
    max_depth: int

    def apply(self, value: Value, context: ValidationContext) -> ValidationIssue | None:
        return validate_depth(value, self.max_depth, context)


@dataclass(frozen=True)
class MatchesText(ValueCheck):
    kind: ClassVar[str] = "value_pattern"
    constraints: TextConstraints

    def apply(self, value: Value, context: ValidationContext) -> ValidationIssue | None:
        return validate_text_pattern(value, self.constraints, context.path)


@dataclass(frozen=True)
class InRange(ValueCheck):
    kind: ClassVar[str] = "value_range"
    min_value: Value | Number | None = None
    max_value: Value | Number | None = None

    def apply(self, value: Value, context: ValidationContext) -> ValidationIssue | None:
        return validate_range(value, self.min_value, self.max_value, context.path)


@dataclass(frozen=True)
class HasShape(ValueCheck):
    kind: ClassVar[str] = "value_shape"
    shape: Shape

    def apply(self, value: Value, context: ValidationContext) -> ValidationIssue | None:
        if not isinstance(value, Class):
            return errors.invalid_type(context.path, ["Class"], value.tag)
        return validate_structure(value, self.shape, context)


@dataclass(frozen=True)
class PropertyExists(ValueCheck):
    kind: ClassVar[str] = "property_exists"
    name: str

    def apply(self, value: Value, context: ValidationContext) -> ValidationIssue | None:
        if not isinstance(value, Class):
            return errors.invalid_type(context.path, ["Class"], value.tag)
        if get_property(value, self.name) is None:
            return errors.missing_property(context.path, self.name)
        return None


@dataclass(frozen=True)
class PropertyType(ValueCheck):
    kind: ClassVar[str] = "property_type"
    name: str
    types: tuple[str, ...]

    def apply(self, value: Value, context: ValidationContext) -> ValidationIssue | None:
        if not isinstance(value, Class):
            return errors.invalid_type(context.path, ["Class"], value.tag)
        prop = get_property(value, self.name)
        if prop is None:
            return errors.missing_property(context.path, self.name)
        return validate_type(prop, self.types, join_path(context.path, self.name))


@dataclass(frozen=True)
class PropertySize(ValueCheck):
    kind: ClassVar[str] = "property_size"
    name: str
    min_size: int | None = None
    max_size: int | None = None

    def apply(self, value: Value, context: ValidationContext) -> ValidationIssue | None:
        if not isinstance(value, Class):
            return errors.invalid_type(context.path, ["Class"], value.tag)
        prop = get_property(value, self.name)
        if prop is None:
            return errors.missing_property(context.path, self.name)
        return validate_size(
            prop, self.min_size, self.max_size, join_path(context.path, self.name)
        )


@dataclass(frozen=True)
class ArrayLength(ValueCheck):
    kind: ClassVar[str] = "array_length"
    min_length: int | None = None
    max_length: int | None = None

    def apply(self, value: Value, context: ValidationContext) -> ValidationIssue | None:
        return validate_array_length(value, self.min_length, self.max_length, context.path)


@dataclass(frozen=True)
class ArrayItemType(ValueCheck):
    kind: ClassVar[str] = "array_item_type"
    types: tuple[str, ...]

    def apply(self, value: Value, context: ValidationContext) -> ValidationIssue | None:
        return validate_array_item_type(value, self.types, context.path)


@dataclass(frozen=True)
class MapKeyExists(ValueCheck):
    kind: ClassVar[str] = "map_key_exists"
    key: str

    def apply(self, value: Value, context: ValidationContext) -> ValidationIssue | None:
        return validate_map_key_exists(value, self.key, context.path)


@dataclass(frozen=True)
class MapSize(ValueCheck):
    kind: ClassVar[str] = "map_size"
    min_size: int | None = None
    max_size: int | None = None

    def apply(self, value: Value, context: ValidationContext) -> ValidationIssue | None:
        return validate_map_size(value, self.min_size, self.max_size, context.path)


@dataclass(frozen=True)
class Predicate(ValueCheck):
    """Run an integrator-supplied test.

    *predicate* returns True to accept.  Returning a string rejects with
    that string as the message; returning False rejects with *message*.
    """

    kind: ClassVar[str] = "custom_value_check"
    predicate: Callable[[Value], bool | str]
    message: str = "custom check failed"

    def apply(self, value: Value, context: ValidationContext) -> ValidationIssue | None:
        outcome = self.predicate(value)
        if outcome is True:
            return None
        message = outcome if isinstance(outcome, str) else self.message
        return errors.custom(context.path, message)


@dataclass(frozen=True)
class Nested(ValueCheck):
    """Apply *checks* to a named child, or to every item of an array/set.

    With ``name`` set, the child is looked up in a ``Class`` or ``Map``;
    a missing child is a ``MISSING_PROPERTY`` issue unless ``optional``.
    Without ``name``, every element of an ``Array``/``ValueSet`` is
    checked.
    """

    kind: ClassVar[str] = "nested_rules"
    checks: tuple[ValueCheck, ...]
    name: str | None = None
    optional: bool = False

    def apply(self, value: Value, context: ValidationContext) -> ValidationIssue | None:
        if self.name is not None:
            if not isinstance(value, (Class, Map)):
                return errors.invalid_type(context.path, ["Class", "Map"], value.tag)
            child = _lookup(value, self.name)
            if child is None:
                if self.optional:
                    return None
                return errors.missing_property(context.path, self.name)
            return validate_value_rules(child, self.checks, context.child(self.name))

        if not isinstance(value, (Array, ValueSet)):
            return errors.invalid_type(context.path, ["Array", "Set"], value.tag)
        for i, item in enumerate(value.items):
            issue = validate_value_rules(item, self.checks, context.child(f"[{i}]"))
            if issue is not None:
                return issue
        return None


def validate_value_rules(
    value: Value,
    checks: Iterable[ValueCheck],
    context: ValidationContext = _ROOT,
) -> ValidationIssue | None:
    """Run *checks* in order and return the first issue."""
    for check in checks:
        issue = check.apply(value, context)
        if issue is not None:
            return issue
    return None
