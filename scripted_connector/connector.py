"""Connector that delegates every lifecycle operation to a script.

``ScriptedConnector`` compiles one script per operation at construction
(failing fast on bad scripts) and, for each call:

1. validates the caller's input (``PreconditionError``);
2. recompiles the script when ``reload_script_on_execution`` is set;
3. raises ``UnsupportedOperationError`` when no script is configured;
4. builds the script arguments (see ``arguments``);
5. runs the script, wrapping any failure in ``ScriptExecutionError``;
6. checks the returned value or hands rows to the search/sync translators.

Scripts that create, update, authenticate or resolve must return the
object's uid as a string.  Delete and test scripts return nothing.  Search
and sync scripts return lists of dicts (see ``results``).
"""

import logging
from typing import Any, Dict, Iterable, Optional

from . import arguments as args
from .cache import ScriptCache
from .config import (
    MSG_BLANK_RESULT_HANDLER,
    MSG_BLANK_UID,
    MSG_INVALID_ATTRIBUTE_SET,
    MSG_INVALID_RESULT_HANDLER,
    MSG_OBJECT_CLASS_REQUIRED,
    ScriptedConfiguration,
)
from .engine import ScriptExecutor
from .errors import (
    PreconditionError,
    ScriptExecutionError,
    UnknownTokenTypeError,
    UnsupportedOperationError,
)
from .objects import Attribute, ObjectClass, OperationOptions, SyncToken, Uid
from .operations import OperationKind
from .results import DeltaStats, is_result_handler, process_deltas, process_results
from .schema import Schema, SchemaBuilder
from .security import GuardedString
from .values import as_rows, check_attribute_type

LOG = logging.getLogger(__name__)


class ScriptedConnector:
    """Runs create/update/delete/authenticate/resolve/schema/search/sync/test scripts.

    Args:
        config: Connector configuration.  Scripts are compiled immediately;
                a script that cannot be read or compiled raises
                ``ConfigurationError``.

    Subclasses can override ``build_arguments()`` to seed every script call
    with connection handles or other shared state.
    """

    def __init__(self, config: ScriptedConfiguration):
        self.config = config
        self.scripts = ScriptCache(config)
        self.scripts.load_all()
        self._schema: Optional[Schema] = None
        LOG.info("Connector %s successfully initialized", type(self).__name__)

    def dispose(self) -> None:
        """Release compiled scripts."""
        self.scripts.clear()
        self._schema = None

    def build_arguments(self) -> Dict[str, Any]:
        """Return the base arguments every script call starts from."""
        return dict(self.config.script_arguments)

    # -- Public API ----------------------------------------------------------

    def create(
        self,
        object_class: ObjectClass,
        attrs: Iterable[Attribute],
        options: Optional[OperationOptions] = None,
    ) -> Uid:
        """Create an object; the create script returns the new uid."""
        kind = OperationKind.CREATE
        attrs = self._require_attributes(attrs)
        self._require_object_class(object_class)
        executor = self._executor(kind)

        arguments = args.create_arguments(object_class, attrs, options, self.build_arguments())
        uid = self._execute_for_uid(kind, executor, arguments)
        LOG.info("%s created", uid.value)
        return uid

    def update(
        self,
        object_class: ObjectClass,
        uid: Uid,
        attrs: Iterable[Attribute],
        options: Optional[OperationOptions] = None,
    ) -> Uid:
        """Replace attribute values; the update script returns the (possibly new) uid."""
        return self._generic_update(OperationKind.UPDATE, object_class, uid, attrs, options)

    def add_attribute_values(
        self,
        object_class: ObjectClass,
        uid: Uid,
        attrs: Iterable[Attribute],
        options: Optional[OperationOptions] = None,
    ) -> Uid:
        """Add values to multi-valued attributes via the update script."""
        return self._generic_update(OperationKind.ADD_ATTRIBUTE_VALUES, object_class, uid, attrs, options)

    def remove_attribute_values(
        self,
        object_class: ObjectClass,
        uid: Uid,
        attrs: Iterable[Attribute],
        options: Optional[OperationOptions] = None,
    ) -> Uid:
        """Remove values from multi-valued attributes via the update script."""
        return self._generic_update(OperationKind.REMOVE_ATTRIBUTE_VALUES, object_class, uid, attrs, options)

    def delete(
        self,
        object_class: ObjectClass,
        uid: Uid,
        options: Optional[OperationOptions] = None,
    ) -> None:
        kind = OperationKind.DELETE
        self._require_object_class(object_class)
        self._require_uid(uid)
        executor = self._executor(kind)

        arguments = args.delete_arguments(object_class, uid, options, self.build_arguments())
        self._execute(kind, executor, arguments)
        LOG.info("%s deleted", uid.value)

    def authenticate(
        self,
        object_class: ObjectClass,
        username: str,
        password: GuardedString,
        options: Optional[OperationOptions] = None,
    ) -> Uid:
        """Check credentials; the authenticate script returns the account's uid."""
        kind = OperationKind.AUTHENTICATE
        self._require_object_class(object_class)
        executor = self._executor(kind)

        arguments = args.authenticate_arguments(
            object_class, username, password, options, self.build_arguments()
        )
        try:
            uid = self._execute_for_uid(kind, executor, arguments)
        finally:
            arguments["password"] = None
        LOG.info("%s authenticated", uid.value)
        return uid

    def resolve_username(
        self,
        object_class: ObjectClass,
        username: str,
        options: Optional[OperationOptions] = None,
    ) -> Uid:
        kind = OperationKind.RESOLVE_USERNAME
        self._require_object_class(object_class)
        executor = self._executor(kind)

        arguments = args.resolve_username_arguments(object_class, username, options, self.build_arguments())
        uid = self._execute_for_uid(kind, executor, arguments)
        LOG.info("%s resolved", uid.value)
        return uid

    def schema(self) -> Schema:
        """Run the schema script against a fresh ``SchemaBuilder`` and return the result."""
        kind = OperationKind.SCHEMA
        executor = self.scripts.ensure(kind.slot, self.config.reload_script_on_execution)
        if executor is None:
            raise UnsupportedOperationError(
                kind.label, "SCHEMA script executor is null. Problem loading Schema script"
            )

        builder = SchemaBuilder(type(self).__name__)
        self._execute(kind, executor, args.schema_arguments(builder, self.build_arguments()))
        try:
            self._schema = builder.build()
        except ValueError as exc:
            raise ScriptExecutionError(kind.label, "Schema script error", exc) from exc
        return self._schema

    def execute_query(
        self,
        object_class: ObjectClass,
        query: Any,
        handler: Any,
        options: Optional[OperationOptions] = None,
    ) -> Optional[str]:
        """Run the search script and stream its rows to ``handler``.

        Returns the paging cookie the script reported, if any.
        """
        kind = OperationKind.SEARCH
        self._require_object_class(object_class)
        self._require_handler(handler)
        executor = self._executor(kind)

        arguments = args.search_arguments(object_class, query, options, self.build_arguments())
        try:
            rows = as_rows(executor.execute(arguments))
            LOG.debug("Search ok: %d row(s)", len(rows))
            return process_results(object_class, rows, handler)
        except Exception as exc:
            raise ScriptExecutionError(kind.label, "Search script error", exc) from exc

    def sync(
        self,
        object_class: ObjectClass,
        token: Optional[SyncToken],
        handler: Any,
        options: Optional[OperationOptions] = None,
    ) -> DeltaStats:
        """Run the sync script from ``token`` (``None`` = full resync) and stream deltas."""
        kind = OperationKind.SYNC
        self._require_object_class(object_class)
        self._require_handler(handler)
        executor = self._executor(kind)

        token_value = token.value if token is not None else None
        arguments = args.sync_arguments(object_class, token_value, options, self.build_arguments())
        try:
            rows = as_rows(executor.execute(arguments))
            LOG.debug("Sync ok: %d row(s)", len(rows))
            return process_deltas(object_class, rows, handler)
        except Exception as exc:
            raise ScriptExecutionError(kind.label, "Sync script error", exc) from exc

    def get_latest_sync_token(self, object_class: ObjectClass) -> SyncToken:
        """Ask the sync script for the current token."""
        kind = OperationKind.GET_LATEST_SYNC_TOKEN
        self._require_object_class(object_class)
        executor = self._executor(kind)

        arguments = args.latest_sync_token_arguments(object_class, self.build_arguments())
        result = self._execute(kind, executor, arguments)
        if result is None:
            raise ScriptExecutionError(kind.label, "Sync (GetLatestSyncToken) script returned no token")
        try:
            check_attribute_type(result)
        except TypeError as exc:
            raise UnknownTokenTypeError(kind.label, "Unknown Token type", exc) from exc
        LOG.debug("GetLatestSyncToken ok: %r", result)
        return SyncToken(result)

    def test(self) -> None:
        """Validate the configuration, then run the test script if one is configured."""
        kind = OperationKind.TEST
        self.config.validate_configuration()
        executor = self.scripts.ensure(kind.slot, self.config.reload_script_on_execution)
        if executor is None:
            LOG.debug("No test script configured")
            return
        self._execute(kind, executor, args.connection_test_arguments(self.build_arguments()))
        LOG.info("Test ok")

    @property
    def last_schema(self) -> Optional[Schema]:
        """The schema built by the most recent ``schema()`` call."""
        return self._schema

    # -- Internals -----------------------------------------------------------

    def _generic_update(
        self,
        kind: OperationKind,
        object_class: ObjectClass,
        uid: Uid,
        attrs: Iterable[Attribute],
        options: Optional[OperationOptions],
    ) -> Uid:
        self._require_object_class(object_class)
        attrs = self._require_attributes(attrs)
        self._require_uid(uid)
        executor = self._executor(kind)

        arguments = args.update_arguments(kind, object_class, uid, attrs, options, self.build_arguments())
        result = self._execute_for_uid(kind, executor, arguments)
        LOG.info("%s updated (%s)", result.value, kind.action)
        return result

    def _executor(self, kind: OperationKind) -> ScriptExecutor:
        """Return the slot's executor (reloading if configured) or raise unsupported."""
        executor = self.scripts.ensure(kind.slot, self.config.reload_script_on_execution)
        if executor is None:
            raise UnsupportedOperationError(kind.label)
        return executor

    def _execute(self, kind: OperationKind, executor: ScriptExecutor, arguments: Dict[str, Any]) -> Any:
        """Run a script, wrapping anything it raises in ``ScriptExecutionError``."""
        LOG.debug("Running %s script", kind.label)
        try:
            return executor.execute(arguments)
        except Exception as exc:
            raise ScriptExecutionError(kind.label, f"{kind.label} script error", exc) from exc

    def _execute_for_uid(self, kind: OperationKind, executor: ScriptExecutor, arguments: Dict[str, Any]) -> Uid:
        result = self._execute(kind, executor, arguments)
        if not isinstance(result, str):
            raise ScriptExecutionError(
                kind.label,
                f"{kind.label} script didn't return with the {Uid.NAME} value "
                f"(got {type(result).__name__})",
            )
        return Uid(result)

    def _require_object_class(self, object_class: Optional[ObjectClass]) -> None:
        if object_class is None:
            raise PreconditionError(self.config.get_message(MSG_OBJECT_CLASS_REQUIRED))
        LOG.debug("Object class: %s", object_class.value)

    def _require_attributes(self, attrs: Optional[Iterable[Attribute]]) -> list:
        attrs = list(attrs) if attrs is not None else []
        if not attrs:
            raise PreconditionError(self.config.get_message(MSG_INVALID_ATTRIBUTE_SET))
        return attrs

    def _require_uid(self, uid: Optional[Uid]) -> None:
        if uid is None or uid.value is None or not str(uid.value).strip():
            raise PreconditionError(self.config.get_message(MSG_BLANK_UID))

    def _require_handler(self, handler: Any) -> None:
        if handler is None:
            raise PreconditionError(self.config.get_message(MSG_BLANK_RESULT_HANDLER))
        if not is_result_handler(handler):
            raise PreconditionError(self.config.get_message(MSG_INVALID_RESULT_HANDLER))
