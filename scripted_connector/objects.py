"""Framework value types produced and consumed by the connector.

These mirror the identity framework's object model: object classes,
``__UID__``/``__NAME__`` identifiers, multi-valued attributes, connector
objects, operation options, and the sync/search result types.
"""

import enum
from dataclasses import dataclass
from typing import Any, Dict, FrozenSet, Iterable, Iterator, Mapping, Optional, Tuple

from .values import check_attribute_type, to_value_list


@dataclass(frozen=True)
class ObjectClass:
    """Object class tag (e.g. ``__ACCOUNT__``)."""

    value: str

    def __str__(self):
        return self.value


ObjectClass.ACCOUNT = ObjectClass("__ACCOUNT__")
ObjectClass.GROUP = ObjectClass("__GROUP__")


@dataclass(frozen=True)
class Attribute:
    """A named attribute with an ordered tuple of values.

    An empty ``values`` tuple means the attribute is present with no value,
    which is distinct from the attribute being absent.
    """

    name: str
    values: Tuple[Any, ...] = ()

    @classmethod
    def build(cls, name: str, raw: Any = None) -> "Attribute":
        """Build an attribute from a raw script value (see ``to_value_list``)."""
        return cls(name, to_value_list(raw))

    @property
    def single_value(self) -> Any:
        """Return the only value, ``None`` when empty; raise if multi-valued."""
        if not self.values:
            return None
        if len(self.values) > 1:
            raise ValueError(f"Attribute '{self.name}' has {len(self.values)} values")
        return self.values[0]


class Uid(Attribute):
    """The ``__UID__`` attribute: the backend's unique identifier."""

    NAME = "__UID__"

    def __init__(self, value: str):
        super().__init__(Uid.NAME, (value,))

    @property
    def value(self) -> str:
        return self.values[0]


class Name(Attribute):
    """The ``__NAME__`` attribute: the user-facing identifier."""

    NAME = "__NAME__"

    def __init__(self, value: str):
        super().__init__(Name.NAME, (value,))

    @property
    def value(self) -> str:
        return self.values[0]


class OperationalAttributes:
    """Names of the framework's operational (non-domain) attributes."""

    ENABLE = "__ENABLE__"
    ENABLE_DATE = "__ENABLE_DATE__"
    DISABLE_DATE = "__DISABLE_DATE__"
    LOCK_OUT = "__LOCK_OUT__"
    PASSWORD = "__PASSWORD__"
    CURRENT_PASSWORD = "__CURRENT_PASSWORD__"
    PASSWORD_EXPIRATION_DATE = "__PASSWORD_EXPIRATION_DATE__"
    PASSWORD_EXPIRED = "__PASSWORD_EXPIRED__"

    NAMES: FrozenSet[str] = frozenset({
        ENABLE, ENABLE_DATE, DISABLE_DATE, LOCK_OUT, PASSWORD,
        CURRENT_PASSWORD, PASSWORD_EXPIRATION_DATE, PASSWORD_EXPIRED,
    })


def is_operational_attribute(attr: Attribute) -> bool:
    """Return True if ``attr`` is one of the operational attributes."""
    return attr.name.upper() in OperationalAttributes.NAMES


def find_attribute(attrs: Iterable[Attribute], name: str) -> Optional[Attribute]:
    """Return the attribute named ``name`` (case-insensitive) from ``attrs``."""
    lower = name.lower()
    for attr in attrs:
        if attr.name.lower() == lower:
            return attr
    return None


class ConnectorObject:
    """An identity object: object class, uid, name and attributes.

    Attributes are keyed by name; ``__UID__`` and ``__NAME__`` are always
    present.  Instances are built by the result translators and handed to
    result handlers.

    Args:
        object_class: The object's class.
        uid:          Unique identifier (required, non-empty).
        name:         Display name (required, non-empty).
        attributes:   Additional attributes; later duplicates replace earlier ones.
    """

    def __init__(
        self,
        object_class: ObjectClass,
        uid: str,
        name: str,
        attributes: Iterable[Attribute] = (),
    ):
        if not uid:
            raise ValueError("The object must contain a Uid")
        if not name:
            raise ValueError("The object must contain a Name")
        self.object_class = object_class
        self._attributes: Dict[str, Attribute] = {}
        for attr in attributes:
            self._attributes[attr.name] = attr
        self._attributes[Uid.NAME] = Uid(uid)
        self._attributes[Name.NAME] = Name(name)

    @property
    def uid(self) -> Uid:
        return self._attributes[Uid.NAME]

    @property
    def name(self) -> Name:
        return self._attributes[Name.NAME]

    @property
    def attributes(self) -> Tuple[Attribute, ...]:
        return tuple(self._attributes.values())

    def get_attribute(self, name: str) -> Optional[Attribute]:
        """Case-insensitive attribute lookup."""
        return find_attribute(self._attributes.values(), name)

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to a plain dict (single values unwrapped) for output."""
        d: Dict[str, Any] = {"objectClass": self.object_class.value}
        for attr in self._attributes.values():
            values = [repr(v) if not _is_plain(v) else v for v in attr.values]
            d[attr.name] = values[0] if attr.name in (Uid.NAME, Name.NAME) else values
        return d

    def __eq__(self, other):
        if not isinstance(other, ConnectorObject):
            return NotImplemented
        return (self.object_class == other.object_class
                and self._attributes == other._attributes)

    def __repr__(self):
        return (f"ConnectorObject({self.object_class.value!r}, uid={self.uid.value!r}, "
                f"name={self.name.value!r}, attributes={len(self._attributes) - 2})")


def _is_plain(value: Any) -> bool:
    return value is None or isinstance(value, (str, int, float, bool, dict, list))


class OperationOptions(Mapping[str, Any]):
    """Read-only bag of per-call options passed by the framework."""

    PAGED_RESULTS_COOKIE = "PAGED_RESULTS_COOKIE"
    PAGED_RESULTS_OFFSET = "PAGED_RESULTS_OFFSET"
    PAGE_SIZE = "PAGE_SIZE"
    ATTRIBUTES_TO_GET = "ATTRS_TO_GET"

    def __init__(self, options: Optional[Mapping[str, Any]] = None):
        self._options: Dict[str, Any] = dict(options or {})

    @property
    def options(self) -> Dict[str, Any]:
        """Return a copy of the underlying options mapping."""
        return dict(self._options)

    def __getitem__(self, key: str) -> Any:
        return self._options[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._options)

    def __len__(self) -> int:
        return len(self._options)

    def __repr__(self):
        return f"OperationOptions({self._options!r})"


class SyncToken:
    """Opaque restart point for sync, wrapping a framework-typed value."""

    def __init__(self, value: Any):
        check_attribute_type(value)
        self.value = value

    def __eq__(self, other):
        if not isinstance(other, SyncToken):
            return NotImplemented
        return type(self.value) is type(other.value) and self.value == other.value

    def __hash__(self):
        return hash((type(self.value), repr(self.value)))

    def __repr__(self):
        return f"SyncToken({self.value!r})"


class SyncDeltaType(str, enum.Enum):
    """Kinds of sync change events."""

    CREATE_OR_UPDATE = "CREATE_OR_UPDATE"
    DELETE = "DELETE"


@dataclass(frozen=True)
class SyncDelta:
    """One sync change event.

    ``object`` is set for CREATE_OR_UPDATE deltas and ``None`` for DELETE.
    ``previous_uid`` marks a rename.
    """

    uid: Uid
    token: SyncToken
    delta_type: SyncDeltaType
    object: Optional[ConnectorObject] = None
    previous_uid: Optional[Uid] = None
    object_class: Optional[ObjectClass] = None

    def __post_init__(self):
        if self.delta_type is SyncDeltaType.DELETE and self.object is not None:
            raise ValueError("DELETE deltas do not carry an object")
        if self.delta_type is not SyncDeltaType.DELETE and self.object is None:
            raise ValueError(f"{self.delta_type.value} deltas require an object")


@dataclass(frozen=True)
class SearchResult:
    """Trailing summary of a search: paging cookie and remaining count (-1 = unknown)."""

    paged_results_cookie: Optional[str] = None
    remaining_paged_results: int = -1
