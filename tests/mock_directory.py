"""In-memory identity directory and scripts for exercising the connector.

``MockDirectory`` stores accounts keyed by uid and keeps a change log
with an increasing token for every create/update/delete, so sync scripts
have something real to read.  It is handed to scripts through
``script_arguments`` as ``directory``, and every script records the
arguments it received in ``directory.calls`` so tests can inspect them.

``SCRIPTS`` holds one inline Python script per slot; ``make_config()``
builds a ``ScriptedConfiguration`` wired to a directory.

Usage::

    directory = MockDirectory()
    connector = ScriptedConnector(make_config(directory))
    uid = connector.create(ObjectClass.ACCOUNT, [Name("alice")])
    assert directory.accounts[uid.value]["login"] == "alice"
"""

import itertools
from typing import Any, Dict, List, Optional, Tuple

from scripted_connector.config import ScriptedConfiguration
from scripted_connector.security import GuardedString


class MockDirectory:
    """Accounts keyed by uid, plus a token-ordered change log.

    Each account is ``{"login": str, <attr>: [values]}``.  Passwords are kept
    apart in ``passwords`` and never returned by ``search()``.
    """

    def __init__(self):
        self.accounts: Dict[str, Dict[str, Any]] = {}
        self.passwords: Dict[str, str] = {}
        self.changes: List[Dict[str, Any]] = []
        self.calls: List[Tuple[str, Dict[str, Any]]] = []
        self._ids = itertools.count(1)
        self._token = 0

    # -- Call recording -------------------------------------------------------

    def record(self, action: str, arguments: Dict[str, Any]) -> None:
        """Remember the arguments a script saw (minus the shared handles)."""
        snapshot = {k: v for k, v in arguments.items() if k not in ("directory", "log", "builder")}
        self.calls.append((action, snapshot))

    @property
    def last_call(self) -> Tuple[str, Dict[str, Any]]:
        return self.calls[-1]

    # -- Writes ----------------------------------------------------------------

    def _log_change(self, uid: str, operation: str, previous_uid: Optional[str] = None) -> None:
        self._token += 1
        change: Dict[str, Any] = {"token": self._token, "operation": operation, "uid": uid}
        if previous_uid is not None:
            change["previousUid"] = previous_uid
        self.changes.append(change)

    def _take_password(self, uid: str, attributes: Dict[str, List[Any]]) -> None:
        values = attributes.pop("__PASSWORD__", None)
        if values:
            secret = values[0]
            self.passwords[uid] = secret.reveal() if isinstance(secret, GuardedString) else str(secret)

    def add(self, login: str, attributes: Dict[str, List[Any]]) -> str:
        if login is None:
            raise ValueError("login is required")
        if self.find(login) is not None:
            raise ValueError(f"login {login} already exists")
        uid = f"u-{next(self._ids)}"
        attributes = dict(attributes)
        self._take_password(uid, attributes)
        self.accounts[uid] = {"login": login, **{k: list(v) for k, v in attributes.items()}}
        self._log_change(uid, "CREATE_OR_UPDATE")
        return uid

    def replace(self, uid: str, attributes: Dict[str, List[Any]], login: Optional[str] = None) -> str:
        account = self._get(uid)
        attributes = dict(attributes)
        self._take_password(uid, attributes)
        for key, values in attributes.items():
            account[key] = list(values)
        if login is not None:
            account["login"] = login
        self._log_change(uid, "CREATE_OR_UPDATE")
        return uid

    def add_values(self, uid: str, attributes: Dict[str, List[Any]]) -> str:
        account = self._get(uid)
        for key, values in attributes.items():
            current = account.setdefault(key, [])
            current.extend(v for v in values if v not in current)
        self._log_change(uid, "CREATE_OR_UPDATE")
        return uid

    def remove_values(self, uid: str, attributes: Dict[str, List[Any]]) -> str:
        account = self._get(uid)
        for key, values in attributes.items():
            account[key] = [v for v in account.get(key, []) if v not in values]
        self._log_change(uid, "CREATE_OR_UPDATE")
        return uid

    def rename(self, uid: str, new_uid: str) -> str:
        """Move an account to a new uid (logged as a rename)."""
        self.accounts[new_uid] = self.accounts.pop(uid)
        if uid in self.passwords:
            self.passwords[new_uid] = self.passwords.pop(uid)
        self._log_change(new_uid, "CREATE_OR_UPDATE", previous_uid=uid)
        return new_uid

    def delete(self, uid: str) -> None:
        self._get(uid)
        del self.accounts[uid]
        self.passwords.pop(uid, None)
        self._log_change(uid, "DELETE")

    # -- Reads -----------------------------------------------------------------

    def _get(self, uid: str) -> Dict[str, Any]:
        if uid not in self.accounts:
            raise KeyError(f"no account {uid}")
        return self.accounts[uid]

    def find(self, login: str) -> Optional[str]:
        for uid, account in self.accounts.items():
            if account["login"] == login:
                return uid
        return None

    def search(self, query: Optional[Dict[str, Any]] = None) -> List[Dict[str, Any]]:
        """Return search rows for accounts matching every ``query`` item."""
        rows = []
        for uid, account in sorted(self.accounts.items()):
            if query and any(account.get(k) != v and [v] != account.get(k) for k, v in query.items()):
                continue
            row = {"__UID__": uid, "__NAME__": account["login"]}
            row.update({k: v for k, v in account.items() if k != "login"})
            rows.append(row)
        return rows

    def changes_since(self, token: Optional[int]) -> List[Dict[str, Any]]:
        """Return sync rows for changes after ``token`` (all changes if None)."""
        rows = []
        for change in self.changes:
            if token is not None and change["token"] <= token:
                continue
            row = dict(change)
            account = self.accounts.get(change["uid"])
            if change["operation"] != "DELETE" and account is not None:
                row["attributes"] = {k: v for k, v in account.items()}
            rows.append(row)
        return rows

    @property
    def latest_token(self) -> int:
        return self._token

    def check_password(self, login: str, password: str) -> str:
        uid = self.find(login)
        if uid is None or self.passwords.get(uid) != password:
            raise PermissionError(f"invalid credentials for {login}")
        return uid


SCRIPTS: Dict[str, str] = {
    "create": """\
directory.record(action, {"objectClass": objectClass, "id": id, "attributes": attributes, "options": options})
return directory.add(id, attributes)
""",
    "update": """\
directory.record(action, {"objectClass": objectClass, "uid": uid, "id": id, "attributes": attributes, "options": options})
if action == "ADD_ATTRIBUTE_VALUES":
    return directory.add_values(uid, attributes)
if action == "REMOVE_ATTRIBUTE_VALUES":
    return directory.remove_values(uid, attributes)
return directory.replace(uid, attributes, id)
""",
    "delete": """\
directory.record(action, {"objectClass": objectClass, "uid": uid, "options": options})
directory.delete(uid)
""",
    "search": """\
directory.record(action, {"objectClass": objectClass, "query": query, "options": options})
directory.search(query)
""",
    "authenticate": """\
directory.record(action, {"objectClass": objectClass, "username": username})
directory.check_password(username, password)
""",
    "resolve_username": """\
directory.record(action, {"objectClass": objectClass, "username": username})
uid = directory.find(username)
if uid is None:
    raise LookupError(username)
uid
""",
    "sync": """\
directory.record(action, {"objectClass": objectClass})
if action == "GET_LATEST_SYNC_TOKEN":
    return directory.latest_token
directory.changes_since(token)
""",
    "schema": """\
builder.define_object_class("__ACCOUNT__", [
    builder.attribute("__NAME__", required=True),
    builder.attribute("mail", multi_valued=True),
    builder.attribute("title"),
    builder.attribute("__PASSWORD__", type="guardedString", mutability="writeOnly", returned="never"),
], description="Account")
""",
    "test": """\
directory.record(action, {})
""",
}


def make_config(directory: MockDirectory, **overrides: Any) -> ScriptedConfiguration:
    """Return a configuration running ``SCRIPTS`` against ``directory``."""
    values: Dict[str, Any] = {f"{slot}_script": source for slot, source in SCRIPTS.items()}
    values["script_arguments"] = {"directory": directory}
    values.update(overrides)
    return ScriptedConfiguration(**values)
