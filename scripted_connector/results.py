"""Translate rows returned by search and sync scripts into framework results.

Search rows
-----------
A search script returns a list of dicts.  A dict with a single
``PAGED_RESULTS_COOKIE`` key (any case) is not an object: its value is the
paging cookie reported in the trailing ``SearchResult``.  Every other dict is
one object::

    {"__UID__": "42", "__NAME__": "alice", "mail": ["a@example.com"], "title": None}

``__UID__`` and ``__NAME__`` (any case) set the identifiers, ``password`` is
dropped, and every other key becomes an attribute.

Sync rows
---------
A sync script returns a list of dicts shaped like::

    {
        "token": 17,                      # defaults to 0
        "operation": "CREATE_OR_UPDATE",  # or "DELETE"
        "uid": "42",
        "previousUid": "41",              # rename marker
        "password": "secret",
        "attributes": {"mail": ["a@example.com"]},
    }

Rows with a blank ``uid`` are skipped.

Early termination differs between the two: once a search handler declines
more objects the remaining rows are still scanned for the cookie (it may
come last), while a sync handler returning False stops translation at once.
"""

import logging
from dataclasses import dataclass
from typing import Any, Callable, Iterable, Mapping, Optional

from .objects import (
    Attribute,
    ConnectorObject,
    Name,
    ObjectClass,
    OperationalAttributes,
    OperationOptions,
    SearchResult,
    SyncDelta,
    SyncDeltaType,
    SyncToken,
    Uid,
)
from .security import GuardedString
from .values import as_text

LOG = logging.getLogger(__name__)

# Token used when a sync row carries none
DEFAULT_SYNC_TOKEN = 0

_COOKIE_KEY = OperationOptions.PAGED_RESULTS_COOKIE.lower()
_UID_KEY = Uid.NAME.lower()
_NAME_KEY = Name.NAME.lower()
_PASSWORD_KEY = "password"


def is_result_handler(handler: Any) -> bool:
    """Return True if ``handler`` has a callable ``handle`` or is itself callable."""
    return callable(getattr(handler, "handle", None)) or callable(handler)


def _deliver_fn(handler: Any) -> Callable[[Any], Any]:
    """Return the per-item delivery callable of a handler object or plain callable."""
    handle = getattr(handler, "handle", None)
    if callable(handle):
        return handle
    if callable(handler):
        return handler
    raise TypeError(f"{type(handler).__name__} is not a result handler")


def _cookie_row(row: Mapping[str, Any]) -> bool:
    if len(row) != 1:
        return False
    key = next(iter(row))
    return isinstance(key, str) and key.lower() == _COOKIE_KEY


def build_object(object_class: ObjectClass, row: Mapping[str, Any]) -> ConnectorObject:
    """Build one ``ConnectorObject`` from a search row."""
    uid: Optional[str] = None
    name: Optional[str] = None
    attributes = []
    for key, value in row.items():
        lower = str(key).lower()
        if lower == _UID_KEY:
            if value is None:
                raise ValueError("Uid cannot be null")
            uid = as_text(value)
        elif lower == _NAME_KEY:
            if value is None:
                raise ValueError("Name cannot be null")
            name = as_text(value)
        elif lower == _PASSWORD_KEY:
            continue
        else:
            attributes.append(Attribute.build(str(key), value))
    return ConnectorObject(object_class, uid, name, attributes)


def process_results(
    object_class: ObjectClass,
    rows: Iterable[Mapping[str, Any]],
    handler: Any,
) -> Optional[str]:
    """Deliver search rows as objects to ``handler`` and return the paging cookie.

    ``handler`` is either a callable or an object with ``handle(obj) -> bool``;
    if it also has ``handle_result(SearchResult)`` that is called last with the
    cookie (``None`` if none was found) and an unknown remaining count.  A
    ``False`` from the handler stops object delivery, but the remaining rows
    are still scanned for the cookie.  When several cookie rows appear the
    last non-null one wins.
    """
    deliver = _deliver_fn(handler)
    cookie: Optional[str] = None
    accepting = True
    delivered = 0

    for row in rows:
        if _cookie_row(row):
            value = next(iter(row.values()))
            if value is not None:
                cookie = as_text(value)
            continue
        if not accepting:
            continue
        obj = build_object(object_class, row)
        delivered += 1
        if not deliver(obj):
            LOG.debug("Handler declined further objects after %d", delivered)
            accepting = False

    handle_result = getattr(handler, "handle_result", None)
    if callable(handle_result):
        handle_result(SearchResult(cookie, -1))
    elif cookie is not None:
        LOG.warning("Not expected, but found %s: %s",
                    OperationOptions.PAGED_RESULTS_COOKIE, cookie)
    return cookie


@dataclass
class DeltaStats:
    """Outcome of one ``process_deltas`` call."""

    delivered: int = 0
    skipped: int = 0
    stopped: bool = False


def build_delta(object_class: ObjectClass, row: Mapping[str, Any]) -> Optional[SyncDelta]:
    """Build one ``SyncDelta`` from a sync row, or ``None`` if its uid is blank."""
    raw_uid = row.get("uid")
    if raw_uid is None or not as_text(raw_uid).strip():
        return None
    uid = as_text(raw_uid)

    token = row.get("token")
    if token is None:
        LOG.debug("token value is null, replacing with %r", DEFAULT_SYNC_TOKEN)
        token = DEFAULT_SYNC_TOKEN

    operation = row.get("operation")
    if isinstance(operation, str) and operation.upper() == SyncDeltaType.DELETE.value:
        return SyncDelta(
            uid=Uid(uid),
            token=SyncToken(token),
            delta_type=SyncDeltaType.DELETE,
            object_class=object_class,
        )

    attributes = []
    password = row.get("password")
    if password is not None:
        attributes.append(Attribute(
            OperationalAttributes.CURRENT_PASSWORD, (GuardedString(as_text(password)),)
        ))

    raw_attributes = row.get("attributes")
    if raw_attributes is None:
        raw_attributes = {}
    if not isinstance(raw_attributes, Mapping):
        raise ValueError(
            f"'attributes' of sync row {uid} must be a mapping, got {type(raw_attributes).__name__}"
        )
    for attr_name, attr_value in raw_attributes.items():
        attributes.append(Attribute.build(str(attr_name), attr_value))

    previous = row.get("previousUid")
    previous_uid = Uid(as_text(previous)) if previous is not None and as_text(previous).strip() else None

    return SyncDelta(
        uid=Uid(uid),
        token=SyncToken(token),
        delta_type=SyncDeltaType.CREATE_OR_UPDATE,
        object=ConnectorObject(object_class, uid, uid, attributes),
        previous_uid=previous_uid,
        object_class=object_class,
    )


def process_deltas(
    object_class: ObjectClass,
    rows: Iterable[Mapping[str, Any]],
    handler: Any,
) -> DeltaStats:
    """Deliver sync rows as ``SyncDelta`` events to ``handler`` in row order.

    Translation stops as soon as the handler returns a falsy value.  Rows
    with a blank ``uid`` produce no event; they are counted in the returned
    stats and reported in one warning.
    """
    deliver = _deliver_fn(handler)
    stats = DeltaStats()

    for row in rows:
        delta = build_delta(object_class, row)
        if delta is None:
            stats.skipped += 1
            continue
        stats.delivered += 1
        if not deliver(delta):
            LOG.debug("Stop processing of the sync result set")
            stats.stopped = True
            break

    if stats.skipped:
        LOG.warning("Skipped %d sync row(s) without a uid", stats.skipped)
    return stats
