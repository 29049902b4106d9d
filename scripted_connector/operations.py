"""Operation kinds and the script slot each one runs."""

import enum


class OperationKind(enum.Enum):
    """The lifecycle operations a scripted connector dispatches.

    ``value`` is the ``action`` tag scripts receive; ``slot`` names the
    script that runs the operation (the three update methods share the
    update script, GET_LATEST_SYNC_TOKEN shares the sync script).
    """

    CREATE = ("CREATE", "create")
    UPDATE = ("UPDATE", "update")
    ADD_ATTRIBUTE_VALUES = ("ADD_ATTRIBUTE_VALUES", "update")
    REMOVE_ATTRIBUTE_VALUES = ("REMOVE_ATTRIBUTE_VALUES", "update")
    DELETE = ("DELETE", "delete")
    AUTHENTICATE = ("AUTHENTICATE", "authenticate")
    RESOLVE_USERNAME = ("RESOLVE USERNAME", "resolve_username")
    SCHEMA = ("SCHEMA", "schema")
    SEARCH = ("SEARCH", "search")
    SYNC = ("SYNC", "sync")
    GET_LATEST_SYNC_TOKEN = ("GET_LATEST_SYNC_TOKEN", "sync")
    TEST = ("TEST", "test")

    def __init__(self, action: str, slot: str):
        self.action = action
        self.slot = slot

    @property
    def label(self) -> str:
        """Human-readable operation name used in log and error messages."""
        if self.slot == "update":
            return f"Update({self.action})"
        if self is OperationKind.GET_LATEST_SYNC_TOKEN:
            return "Sync (GetLatestSyncToken)"
        return "".join(part.capitalize() for part in self.slot.split("_"))
