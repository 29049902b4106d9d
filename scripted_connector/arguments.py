"""Builds the argument mapping a script receives for one operation call.

Every context starts from the connector's base arguments and carries an
``action`` tag and a ``log`` logger.  The remaining entries depend on the
operation:

==========================  ==================================================
Operation                   Entries
==========================  ==================================================
CREATE                      objectClass, options, id, attributes
UPDATE / ADD / REMOVE       objectClass, uid, options, id, attributes
DELETE                      objectClass, uid, options
AUTHENTICATE                objectClass, username, password, options
RESOLVE_USERNAME            objectClass, username, options
SCHEMA                      builder
SEARCH                      objectClass, options, query
SYNC                        objectClass, options, token
GET_LATEST_SYNC_TOKEN       objectClass
TEST                        (envelope only)
==========================  ==================================================

``attributes`` is a plain ``{name: [values]}`` dict.  ``__NAME__`` never
appears in it; its value is passed as ``id`` instead.
"""

import logging
from typing import Any, Dict, Iterable, List, Mapping, Optional

from .objects import (
    Attribute,
    Name,
    ObjectClass,
    OperationOptions,
    Uid,
    find_attribute,
    is_operational_attribute,
)
from .operations import OperationKind
from .schema import SchemaBuilder
from .security import GuardedString

# Logger exposed to scripts as ``log``
SCRIPT_LOG = logging.getLogger("scripted_connector.script")


def _envelope(kind: OperationKind, base: Optional[Mapping[str, Any]]) -> Dict[str, Any]:
    arguments: Dict[str, Any] = dict(base or {})
    arguments["action"] = kind.action
    arguments["log"] = SCRIPT_LOG
    return arguments


def _options(options: Optional[OperationOptions]) -> Dict[str, Any]:
    return options.options if options is not None else {}


def _attribute_map(attrs: Iterable[Attribute], include_operational: bool = True) -> Dict[str, List[Any]]:
    """Flatten attributes to ``{name: [values]}``, dropping ``__NAME__``."""
    attr_map: Dict[str, List[Any]] = {}
    for attr in attrs:
        if attr.name.upper() == Name.NAME:
            continue
        if not include_operational and is_operational_attribute(attr):
            continue
        attr_map[attr.name] = list(attr.values)
    return attr_map


def _identifier(attrs: Iterable[Attribute]) -> Optional[str]:
    """Return the ``__NAME__`` value, falling back to ``__UID__``."""
    attrs = list(attrs)
    for name in (Name.NAME, Uid.NAME):
        attr = find_attribute(attrs, name)
        if attr is not None and attr.values and attr.values[0] is not None:
            return str(attr.values[0])
    return None


def create_arguments(
    object_class: ObjectClass,
    attrs: Iterable[Attribute],
    options: Optional[OperationOptions],
    base: Optional[Mapping[str, Any]] = None,
) -> Dict[str, Any]:
    attrs = list(attrs)
    arguments = _envelope(OperationKind.CREATE, base)
    arguments["objectClass"] = object_class.value
    arguments["options"] = _options(options)
    arguments["id"] = _identifier(attrs)
    arguments["attributes"] = _attribute_map(attrs)
    return arguments


def update_arguments(
    kind: OperationKind,
    object_class: ObjectClass,
    uid: Uid,
    attrs: Iterable[Attribute],
    options: Optional[OperationOptions],
    base: Optional[Mapping[str, Any]] = None,
) -> Dict[str, Any]:
    """Arguments for UPDATE, ADD_ATTRIBUTE_VALUES and REMOVE_ATTRIBUTE_VALUES.

    Operational attributes (``__ENABLE__``, ``__PASSWORD__``...) only reach
    the script for a plain UPDATE.  A ``__NAME__`` in the set (a rename) is
    passed as ``id``, which is ``None`` otherwise.
    """
    attrs = list(attrs)
    arguments = _envelope(kind, base)
    arguments["objectClass"] = object_class.value
    arguments["uid"] = uid.value
    arguments["options"] = _options(options)
    name = find_attribute(attrs, Name.NAME)
    arguments["id"] = name.values[0] if name is not None and name.values else None
    arguments["attributes"] = _attribute_map(
        attrs, include_operational=kind is OperationKind.UPDATE
    )
    return arguments


def delete_arguments(
    object_class: ObjectClass,
    uid: Uid,
    options: Optional[OperationOptions],
    base: Optional[Mapping[str, Any]] = None,
) -> Dict[str, Any]:
    arguments = _envelope(OperationKind.DELETE, base)
    arguments["objectClass"] = object_class.value
    arguments["uid"] = uid.value
    arguments["options"] = _options(options)
    return arguments


def authenticate_arguments(
    object_class: ObjectClass,
    username: str,
    password: Optional[GuardedString],
    options: Optional[OperationOptions],
    base: Optional[Mapping[str, Any]] = None,
) -> Dict[str, Any]:
    """Arguments for AUTHENTICATE; the password is revealed exactly once here."""
    arguments = _envelope(OperationKind.AUTHENTICATE, base)
    arguments["objectClass"] = object_class.value
    arguments["username"] = username
    arguments["password"] = password.reveal() if password is not None else None
    arguments["options"] = _options(options)
    return arguments


def resolve_username_arguments(
    object_class: ObjectClass,
    username: str,
    options: Optional[OperationOptions],
    base: Optional[Mapping[str, Any]] = None,
) -> Dict[str, Any]:
    arguments = _envelope(OperationKind.RESOLVE_USERNAME, base)
    arguments["objectClass"] = object_class.value
    arguments["username"] = username
    arguments["options"] = _options(options)
    return arguments


def schema_arguments(builder: SchemaBuilder, base: Optional[Mapping[str, Any]] = None) -> Dict[str, Any]:
    arguments = _envelope(OperationKind.SCHEMA, base)
    arguments["builder"] = builder
    return arguments


def search_arguments(
    object_class: ObjectClass,
    query: Any,
    options: Optional[OperationOptions],
    base: Optional[Mapping[str, Any]] = None,
) -> Dict[str, Any]:
    arguments = _envelope(OperationKind.SEARCH, base)
    arguments["objectClass"] = object_class.value
    arguments["options"] = _options(options)
    arguments["query"] = query
    return arguments


def sync_arguments(
    object_class: ObjectClass,
    token_value: Any,
    options: Optional[OperationOptions],
    base: Optional[Mapping[str, Any]] = None,
) -> Dict[str, Any]:
    """Arguments for SYNC; ``token_value`` is ``None`` for a full resync."""
    arguments = _envelope(OperationKind.SYNC, base)
    arguments["objectClass"] = object_class.value
    arguments["options"] = _options(options)
    arguments["token"] = token_value
    return arguments


def latest_sync_token_arguments(object_class: ObjectClass, base: Optional[Mapping[str, Any]] = None) -> Dict[str, Any]:
    arguments = _envelope(OperationKind.GET_LATEST_SYNC_TOKEN, base)
    arguments["objectClass"] = object_class.value
    return arguments


def connection_test_arguments(base: Optional[Mapping[str, Any]] = None) -> Dict[str, Any]:
    return _envelope(OperationKind.TEST, base)
