"""Structural validation — type, size, range, pattern and shape checks over value trees."""

from callgate.validation.errors import IssueKind, ValidationIssue
from callgate.validation.structural import (
    ArrayItemType,
    ArrayLength,
    HasShape,
    HasSize,
    HasType,
    InRange,
    MapKeyExists,
    MapSize,
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
    ValueCheck,
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

__all__ = [
    "IssueKind",
    "ValidationIssue",
    "ValidationContext",
    "TextConstraints",
    "Shape",
    # Functions
    "validate_type",
    "validate_size",
    "validate_depth",
    "validate_range",
    "validate_text_pattern",
    "validate_structure",
    "validate_array_length",
    "validate_array_item_type",
    "validate_map_key_exists",
    "validate_map_size",
    "validate_value_rules",
    "get_property",
    "value_size",
    "value_depth",
    "ensure_valid",
    # Declarative checks
    "ValueCheck",
    "HasType",
    "HasSize",
    "MaxDepth",
    "MatchesText",
    "InRange",
    "HasShape",
    "PropertyExists",
    "PropertyType",
    "PropertySize",
    "ArrayLength",
    "ArrayItemType",
    "MapKeyExists",
    "MapSize",
    "Predicate",
    "Nested",
]
