"""Structured values — the recursively-nested tagged value tree.

Hosts hand the Structural Validator payloads whose shape is not known ahead
of time (metadata blobs, user-defined attributes, nested configuration).
They are modelled as a closed set of frozen dataclasses, each carrying a
``tag`` used for type matching:

    Scalars     Int / Int8..Int64 / Nat / Nat8..Nat64 (``Integer``),
                ``Float``, ``Text``, ``Bool``, ``Blob``, ``Principal``
    Composites  ``Array``, ``ValueSet``, ``Map`` (text keys),
                ``ValueMap`` (value keys), ``Option``, ``Class``

A ``Class`` holds an ordered tuple of :class:`Property` records, each with a
name, a value, and an ``immutable`` flag.  Property names are not required to
be unique; lookups return the first match.

``from_python()`` converts plain decoded data (dicts, lists, str, int, ...)
into a value tree.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, ClassVar, Union


class IntKind(str, Enum):
    """Integer variants.  ``bits=None`` means unbounded."""

    INT = "Int"
    INT8 = "Int8"
    INT16 = "Int16"
    INT32 = "Int32"
    INT64 = "Int64"
    NAT = "Nat"
    NAT8 = "Nat8"
    NAT16 = "Nat16"
    NAT32 = "Nat32"
    NAT64 = "Nat64"

    @property
    def signed(self) -> bool:
        return self.value.startswith("Int")

    @property
    def bits(self) -> int | None:
        digits = self.value[3:]
        return int(digits) if digits else None

    def bounds(self) -> tuple[int | None, int | None]:
        """Inclusive (min, max) for this kind; ``None`` means unbounded."""
        bits = self.bits
        if self.signed:
            if bits is None:
                return None, None
            return -(1 << (bits - 1)), (1 << (bits - 1)) - 1
        if bits is None:
            return 0, None
        return 0, (1 << bits) - 1


# ---------------------------------------------------------------------------
# Scalars
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Integer:
    value: int
    kind: IntKind = IntKind.INT

    def __post_init__(self) -> None:
        lo, hi = self.kind.bounds()
        if (lo is not None and self.value < lo) or (hi is not None and self.value > hi):
            raise ValueError(f"{self.value} does not fit in {self.kind.value}")

    @property
    def tag(self) -> str:
        return self.kind.value


@dataclass(frozen=True)
class Float:
    tag: ClassVar[str] = "Float"
    value: float


@dataclass(frozen=True)
class Text:
    tag: ClassVar[str] = "Text"
    value: str


@dataclass(frozen=True)
class Bool:
    tag: ClassVar[str] = "Bool"
    value: bool


@dataclass(frozen=True)
class Blob:
    tag: ClassVar[str] = "Blob"
    value: bytes


@dataclass(frozen=True)
class Principal:
    """An opaque caller / entity identifier embedded in a payload."""

    tag: ClassVar[str] = "Principal"
    value: str


# ---------------------------------------------------------------------------
# Composites
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Array:
    tag: ClassVar[str] = "Array"
    items: tuple[Value, ...] = ()


@dataclass(frozen=True)
class ValueSet:
    tag: ClassVar[str] = "Set"
    items: tuple[Value, ...] = ()


@dataclass(frozen=True)
class Map:
    """Text-keyed map, in insertion order."""

    tag: ClassVar[str] = "Map"
    entries: tuple[tuple[str, Value], ...] = ()

    def get(self, key: str) -> Value | None:
        for k, v in self.entries:
            if k == key:
                return v
        return None

    def keys(self) -> list[str]:
        return [k for k, _ in self.entries]


@dataclass(frozen=True)
class ValueMap:
    """Map keyed by arbitrary values."""

    tag: ClassVar[str] = "ValueMap"
    entries: tuple[tuple[Value, Value], ...] = ()


@dataclass(frozen=True)
class Option:
    tag: ClassVar[str] = "Option"
    value: Value | None = None


@dataclass(frozen=True)
class Property:
    name: str
    value: Value
    immutable: bool = False


@dataclass(frozen=True)
class Class:
    tag: ClassVar[str] = "Class"
    properties: tuple[Property, ...] = field(default_factory=tuple)

    def names(self) -> list[str]:
        return [p.name for p in self.properties]


Value = Union[
    Integer, Float, Text, Bool, Blob, Principal,
    Array, ValueSet, Map, ValueMap, Option, Class,
]

SCALAR_TYPES: tuple[type, ...] = (Integer, Float, Text, Bool, Blob, Principal)
COMPOSITE_TYPES: tuple[type, ...] = (Array, ValueSet, Map, ValueMap, Option, Class)

ALL_TAGS: frozenset[str] = frozenset(
    [k.value for k in IntKind]
    + ["Float", "Text", "Bool", "Blob", "Principal"]
    + ["Array", "Set", "Map", "ValueMap", "Option", "Class"]
)


def is_composite(value: Value) -> bool:
    return isinstance(value, COMPOSITE_TYPES)


def children(value: Value) -> list[tuple[str, Value]]:
    """Return ``(path segment, child)`` pairs for one level of *value*."""
    if isinstance(value, (Array, ValueSet)):
        return [(f"[{i}]", item) for i, item in enumerate(value.items)]
    if isinstance(value, Map):
        return [(k, v) for k, v in value.entries]
    if isinstance(value, ValueMap):
        pairs: list[tuple[str, Value]] = []
        for i, (k, v) in enumerate(value.entries):
            pairs.append((f"<key {i}>", k))
            pairs.append((f"<value {i}>", v))
        return pairs
    if isinstance(value, Option):
        return [] if value.value is None else [("?", value.value)]
    if isinstance(value, Class):
        return [(p.name, p.value) for p in value.properties]
    return []


def from_python(data: Any) -> Value:
    """Convert plain Python data into a value tree.

    ``dict`` becomes a ``Class`` (string keys) or ``ValueMap`` (other keys),
    ``list``/``tuple`` an ``Array``, ``set``/``frozenset`` a ``ValueSet``,
    ``None`` an empty ``Option``.  Values that already are tree nodes pass
    through unchanged.

    Raises:
        TypeError: *data* contains an object with no value-tree equivalent.
    """
    if isinstance(data, (*SCALAR_TYPES, *COMPOSITE_TYPES)):
        return data
    # bool before int: bool is an int subclass.
    if isinstance(data, bool):
        return Bool(data)
    if isinstance(data, int):
        return Integer(data, IntKind.NAT if data >= 0 else IntKind.INT)
    if isinstance(data, float):
        return Float(data)
    if isinstance(data, str):
        return Text(data)
    if isinstance(data, (bytes, bytearray)):
        return Blob(bytes(data))
    if data is None:
        return Option(None)
    if isinstance(data, dict):
        if all(isinstance(k, str) for k in data):
            return Class(tuple(Property(k, from_python(v)) for k, v in data.items()))
        return ValueMap(tuple((from_python(k), from_python(v)) for k, v in data.items()))
    if isinstance(data, (list, tuple)):
        return Array(tuple(from_python(item) for item in data))
    if isinstance(data, (set, frozenset)):
        return ValueSet(tuple(from_python(item) for item in data))
    raise TypeError(f"Cannot convert {type(data).__name__} to a structured value")
