"""Checked conversions between raw script values and attribute values.

Scripts exchange loosely-typed data with the connector: strings, numbers,
booleans, ``None``, lists and dicts.  Nothing in the connector assumes the
type of such a value without going through one of the functions here.
"""

import datetime
from decimal import Decimal
from typing import Any, Mapping, Sequence, Tuple

from .security import GuardedString

# Value types the framework can carry in an attribute or a sync token
FRAMEWORK_TYPES: Tuple[type, ...] = (
    str,
    int,
    float,
    bool,
    bytes,
    Decimal,
    datetime.datetime,
    datetime.date,
    dict,
    GuardedString,
)

# Raw values treated as "many values" rather than one
_MULTI_VALUE_TYPES = (list, tuple, set, frozenset)


def is_framework_type(value: Any) -> bool:
    """Return True if ``value`` is of a type the framework recognizes."""
    return isinstance(value, FRAMEWORK_TYPES)


def check_attribute_type(value: Any) -> None:
    """Raise ``TypeError`` unless ``value`` is of a framework-recognized type."""
    if not is_framework_type(value):
        raise TypeError(f"Type {type(value).__name__} is not supported by the framework")


def to_value_list(raw: Any) -> Tuple[Any, ...]:
    """Convert one raw script value into an attribute value tuple.

    ``None`` becomes an empty tuple, a list/tuple/set keeps its elements
    (sets in iteration order), anything else becomes a one-element tuple.
    """
    if raw is None:
        return ()
    if isinstance(raw, _MULTI_VALUE_TYPES):
        return tuple(raw)
    return (raw,)


def is_row(value: Any) -> bool:
    """Return True if ``value`` can be read as a result row (a string-keyed mapping)."""
    return isinstance(value, Mapping)


def as_rows(value: Any) -> Sequence[Mapping[str, Any]]:
    """Check that a search/sync script result is a sequence of mappings.

    Raises ``TypeError`` describing the first offending element otherwise.
    """
    if isinstance(value, (str, bytes)) or not isinstance(value, (list, tuple)):
        raise TypeError(f"expected a list of mappings, got {type(value).__name__}")
    for idx, row in enumerate(value):
        if not is_row(row):
            raise TypeError(f"row {idx} is {type(row).__name__}, expected a mapping")
    return value


def as_text(value: Any) -> str:
    """Render a scalar raw value as text (identifier and cookie fields)."""
    if isinstance(value, str):
        return value
    if isinstance(value, bytes):
        return value.decode("utf-8")
    return str(value)
