"""CLI interface for scripted-connector using Click.

Every subcommand loads a configuration file, builds a ``ScriptedConnector``
and runs one operation against it::

    scripted-connector -c connector.yaml test
    scripted-connector -c connector.yaml search --query '{"login": "alice"}'
    scripted-connector -c connector.yaml create --name alice --attr mail=a@example.com
    scripted-connector -c connector.yaml sync --token 17

Results are printed as JSON on stdout; connector failures are printed in red
and exit with status 1.
"""

import json
import logging
import os
import sys
from typing import Any, Dict, List, Optional, Tuple

import click

from . import __version__
from .config import load_configuration
from .connector import ScriptedConnector
from .errors import ConnectorError
from .objects import Attribute, Name, ObjectClass, OperationOptions, SyncDelta, SyncToken, Uid
from .security import GuardedString


def _colorize(text: str, color: str, err: bool = False) -> str:
    """Style ``text`` in a bright ``color`` when the target stream is a terminal."""
    stream = sys.stderr if err else sys.stdout
    if not stream.isatty():
        return text
    return click.style(text, fg=f"bright_{color}")


def _print_error(message: str, operation: str = ""):
    """Print a connector error with color."""
    where = f" [{operation}]" if operation else ""
    click.echo(_colorize(f"❌ {message}{where}", "red", err=True), err=True)


def _print_success(message: str):
    """Print a success message with color."""
    click.echo(_colorize(f"✅ {message}", "green"))


def _print_json(data: Any):
    click.echo(json.dumps(data, indent=2, default=str))


def _parse_json_value(text: Optional[str]) -> Any:
    """Parse a JSON literal, keeping bare words as strings (``17`` -> 17, ``abc`` -> "abc")."""
    if text is None:
        return None
    try:
        return json.loads(text)
    except json.JSONDecodeError:
        return text


def _parse_attrs(pairs: Tuple[str, ...], name: Optional[str] = None) -> List[Attribute]:
    """Turn repeated ``NAME=VALUE`` options into attributes; repeating a name adds values."""
    values: Dict[str, List[Any]] = {}
    for pair in pairs:
        key, sep, value = pair.partition("=")
        if not sep or not key:
            raise click.BadParameter(f"expected NAME=VALUE, got '{pair}'", param_hint="--attr")
        values.setdefault(key, []).append(_parse_json_value(value))
    attrs = [Attribute(key, tuple(vals)) for key, vals in values.items()]
    if name is not None:
        attrs.append(Name(name))
    return attrs


def _delta_dict(delta: SyncDelta) -> Dict[str, Any]:
    d: Dict[str, Any] = {
        "token": delta.token.value,
        "type": delta.delta_type.value,
        "uid": delta.uid.value,
    }
    if delta.previous_uid is not None:
        d["previousUid"] = delta.previous_uid.value
    if delta.object is not None:
        d["object"] = delta.object.to_dict()
    return d


class _Collector:
    """Result handler that keeps everything it is given."""

    def __init__(self):
        self.items: List[Any] = []
        self.search_result = None

    def handle(self, item: Any) -> bool:
        self.items.append(item)
        return True

    def handle_result(self, result) -> None:
        self.search_result = result


def _connector(ctx: click.Context) -> ScriptedConnector:
    """Load the configuration named on the command line and build the connector."""
    settings = ctx.obj
    for define in settings["defines"]:
        key, sep, value = define.partition("=")
        if not sep or not key:
            raise click.BadParameter(f"expected NAME=VALUE, got '{define}'", param_hint="--define")
        os.environ[key] = value
    config = load_configuration(settings["config"])
    return ScriptedConnector(config)


def _run(ctx: click.Context, operation: str, fn):
    """Run ``fn(connector)``; report ``ConnectorError`` and exit 1."""
    try:
        connector = _connector(ctx)
        try:
            return fn(connector)
        finally:
            connector.dispose()
    except ConnectorError as e:
        _print_error(str(e), getattr(e, "operation", operation))
        sys.exit(1)


@click.group()
@click.option("--config", "-c", "config_path", required=True,
              type=click.Path(exists=True, dir_okay=False),
              help="Connector configuration file (YAML or JSON)")
@click.option("--define", "-D", "defines", multiple=True, metavar="NAME=VALUE",
              help="Set a ${NAME} placeholder value (repeatable)")
@click.option("--verbose", "-v", count=True, help="Log connector activity (-vv for debug)")
@click.version_option(version=__version__)
@click.pass_context
def main(ctx: click.Context, config_path: str, defines: Tuple[str, ...], verbose: int):
    """Run identity lifecycle operations through a scripted connector.

    Every operation (create, update, delete, search, sync...) is carried out
    by the script configured for it.

    Examples:

    \b
      scripted-connector -c connector.yaml test
      scripted-connector -c connector.yaml search --query '{"login": "alice"}'
      scripted-connector -c connector.yaml sync --token 17
    """
    if verbose:
        logging.basicConfig(
            level=logging.DEBUG if verbose > 1 else logging.INFO,
            format="%(asctime)s %(levelname)s %(name)s: %(message)s",
            stream=sys.stderr,
        )
    ctx.obj = {"config": config_path, "defines": defines}


object_class_option = click.option(
    "--object-class", "-o", default=ObjectClass.ACCOUNT.value, show_default=True,
    help="Object class to operate on",
)


@main.command()
@click.pass_context
def test(ctx: click.Context):
    """Validate the configuration and run the test script."""
    _run(ctx, "Test", lambda c: c.test())
    _print_success("Connector test passed")


@main.command()
@click.pass_context
def schema(ctx: click.Context):
    """Print the schema declared by the schema script."""
    result = _run(ctx, "Schema", lambda c: c.schema())
    _print_json(result.to_dict())


@main.command()
@object_class_option
@click.option("--query", "-q", default=None, help="Query passed to the script (JSON or plain text)")
@click.option("--page-size", type=int, default=None, help="Requested page size")
@click.option("--cookie", default=None, help="Paging cookie from a previous search")
@click.option("--attrs-to-get", default=None, help="Comma-separated attributes to return")
@click.pass_context
def search(ctx: click.Context, object_class: str, query: Optional[str], page_size: Optional[int],
           cookie: Optional[str], attrs_to_get: Optional[str]):
    """Run the search script and print the objects it returns."""
    options: Dict[str, Any] = {}
    if page_size is not None:
        options[OperationOptions.PAGE_SIZE] = page_size
    if cookie is not None:
        options[OperationOptions.PAGED_RESULTS_COOKIE] = cookie
    if attrs_to_get:
        options[OperationOptions.ATTRIBUTES_TO_GET] = [a.strip() for a in attrs_to_get.split(",") if a.strip()]

    collector = _Collector()
    found_cookie = _run(ctx, "Search", lambda c: c.execute_query(
        ObjectClass(object_class), _parse_json_value(query), collector, OperationOptions(options)))
    _print_json({
        "objects": [obj.to_dict() for obj in collector.items],
        "pagedResultsCookie": found_cookie,
    })


@main.command()
@object_class_option
@click.option("--token", "-t", default=None, help="Sync token to resume from (omit for a full sync)")
@click.pass_context
def sync(ctx: click.Context, object_class: str, token: Optional[str]):
    """Run the sync script and print the change events it returns."""
    sync_token = None
    if token is not None:
        try:
            sync_token = SyncToken(_parse_json_value(token))
        except TypeError as e:
            raise click.BadParameter(str(e), param_hint="--token") from e
    collector = _Collector()
    stats = _run(ctx, "Sync", lambda c: c.sync(ObjectClass(object_class), sync_token, collector))
    _print_json({
        "deltas": [_delta_dict(d) for d in collector.items],
        "skipped": stats.skipped,
    })


@main.command("latest-token")
@object_class_option
@click.pass_context
def latest_token(ctx: click.Context, object_class: str):
    """Print the latest sync token."""
    token = _run(ctx, "Sync (GetLatestSyncToken)",
                 lambda c: c.get_latest_sync_token(ObjectClass(object_class)))
    _print_json({"token": token.value})


@main.command()
@object_class_option
@click.option("--name", "-n", default=None, help="Value of __NAME__")
@click.option("--attr", "-a", "attrs", multiple=True, metavar="NAME=VALUE",
              help="Attribute value (repeatable; repeating a name adds values)")
@click.pass_context
def create(ctx: click.Context, object_class: str, name: Optional[str], attrs: Tuple[str, ...]):
    """Create an object and print its uid."""
    attributes = _parse_attrs(attrs, name)
    uid = _run(ctx, "Create", lambda c: c.create(ObjectClass(object_class), attributes))
    _print_json({Uid.NAME: uid.value})


_UPDATE_MODES = ("replace", "add", "remove")


@main.command()
@click.argument("uid")
@object_class_option
@click.option("--name", "-n", default=None, help="New __NAME__ (rename)")
@click.option("--attr", "-a", "attrs", multiple=True, metavar="NAME=VALUE",
              help="Attribute value (repeatable; repeating a name adds values)")
@click.option("--mode", type=click.Choice(_UPDATE_MODES), default="replace", show_default=True,
              help="Replace values, or add/remove values of multi-valued attributes")
@click.pass_context
def update(ctx: click.Context, uid: str, object_class: str, name: Optional[str],
           attrs: Tuple[str, ...], mode: str):
    """Update an object and print its (possibly new) uid."""
    attributes = _parse_attrs(attrs, name)

    def _update(connector: ScriptedConnector):
        method = {
            "replace": connector.update,
            "add": connector.add_attribute_values,
            "remove": connector.remove_attribute_values,
        }[mode]
        return method(ObjectClass(object_class), Uid(uid), attributes)

    new_uid = _run(ctx, "Update", _update)
    _print_json({Uid.NAME: new_uid.value})


@main.command()
@click.argument("uid")
@object_class_option
@click.pass_context
def delete(ctx: click.Context, uid: str, object_class: str):
    """Delete an object."""
    _run(ctx, "Delete", lambda c: c.delete(ObjectClass(object_class), Uid(uid)))
    _print_success(f"Deleted {uid}")


@main.command()
@click.argument("username")
@object_class_option
@click.password_option("--password", "-p", confirmation_prompt=False, help="Password to check")
@click.pass_context
def authenticate(ctx: click.Context, username: str, object_class: str, password: str):
    """Check a username/password pair and print the account's uid."""
    guarded = GuardedString(password)
    try:
        uid = _run(ctx, "Authenticate",
                   lambda c: c.authenticate(ObjectClass(object_class), username, guarded))
    finally:
        guarded.dispose()
    _print_json({Uid.NAME: uid.value})


@main.command()
@click.argument("username")
@object_class_option
@click.pass_context
def resolve(ctx: click.Context, username: str, object_class: str):
    """Resolve a username to the account's uid."""
    uid = _run(ctx, "ResolveUsername",
               lambda c: c.resolve_username(ObjectClass(object_class), username))
    _print_json({Uid.NAME: uid.value})


if __name__ == "__main__":
    main()
