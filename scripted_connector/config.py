"""Connector configuration.

A ``ScriptedConfiguration`` names the scripting language, the script for
each operation (inline source or a file path, the file winning when both are
set), whether scripts are reloaded before every call, the base arguments
handed to every script, and overrides for the precondition messages.

Keys may be written in snake_case or camelCase, so configuration written
for other scripted connectors (``createScriptFileName``,
``reloadScriptOnExecution``) loads unchanged::

    scripting_language: python
    reload_script_on_execution: false
    create_script_file_name: ${SCRIPTS}/create.py
    search_script: |
        directory.search(objectClass, query)
    script_arguments:
        base_dn: dc=example,dc=com
"""

import json
import os
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import yaml
from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from .engine import is_supported_language, ScriptExecutorFactory
from .errors import ConfigurationError
from .variables import resolve_variables

# Precondition message keys
MSG_OBJECT_CLASS_REQUIRED = "object_class.required"
MSG_INVALID_ATTRIBUTE_SET = "attribute_set.invalid"
MSG_BLANK_UID = "uid.blank"
MSG_BLANK_RESULT_HANDLER = "result_handler.null"
MSG_INVALID_RESULT_HANDLER = "result_handler.invalid"
MSG_LANGUAGE_BLANK = "scripting_language.blank"
MSG_LANGUAGE_UNSUPPORTED = "scripting_language.unsupported"
MSG_SCRIPT_FILE_MISSING = "script_file.missing"

DEFAULT_MESSAGES: Dict[str, str] = {
    MSG_OBJECT_CLASS_REQUIRED: "Object class required",
    MSG_INVALID_ATTRIBUTE_SET: "Invalid attribute set: at least one attribute is required",
    MSG_BLANK_UID: "Uid cannot be blank",
    MSG_BLANK_RESULT_HANDLER: "Result handler cannot be null",
    MSG_INVALID_RESULT_HANDLER: "Result handler must be callable or have a handle() method",
    MSG_LANGUAGE_BLANK: "Scripting language cannot be blank",
    MSG_LANGUAGE_UNSUPPORTED: "Unsupported scripting language: {0}",
    MSG_SCRIPT_FILE_MISSING: "Script file not found for {0}: {1}",
}

# Script slots, in the order they are loaded at initialisation
SCRIPT_SLOTS: Tuple[str, ...] = (
    "create",
    "update",
    "delete",
    "search",
    "authenticate",
    "resolve_username",
    "sync",
    "schema",
    "test",
)


class ScriptedConfiguration(BaseModel):
    """Configuration for a ``ScriptedConnector``."""

    model_config = ConfigDict(extra="forbid", alias_generator=to_camel, populate_by_name=True)

    scripting_language: str = "python"
    reload_script_on_execution: bool = False

    create_script: str = ""
    create_script_file_name: Optional[str] = None
    update_script: str = ""
    update_script_file_name: Optional[str] = None
    delete_script: str = ""
    delete_script_file_name: Optional[str] = None
    search_script: str = ""
    search_script_file_name: Optional[str] = None
    authenticate_script: str = ""
    authenticate_script_file_name: Optional[str] = None
    resolve_username_script: str = ""
    resolve_username_script_file_name: Optional[str] = None
    sync_script: str = ""
    sync_script_file_name: Optional[str] = None
    schema_script: str = ""
    schema_script_file_name: Optional[str] = None
    test_script: str = ""
    test_script_file_name: Optional[str] = None

    script_arguments: Dict[str, Any] = Field(default_factory=dict)
    messages: Dict[str, str] = Field(default_factory=dict)

    @field_validator("scripting_language")
    @classmethod
    def _strip_language(cls, value: str) -> str:
        return value.strip()

    @field_validator(
        "create_script_file_name", "update_script_file_name", "delete_script_file_name",
        "search_script_file_name", "authenticate_script_file_name",
        "resolve_username_script_file_name", "sync_script_file_name",
        "schema_script_file_name", "test_script_file_name",
    )
    @classmethod
    def _blank_file_is_none(cls, value: Optional[str]) -> Optional[str]:
        if value is not None and not value.strip():
            return None
        return value

    def script_source(self, slot: str) -> Tuple[str, Optional[str]]:
        """Return ``(inline_source, file_name)`` configured for a script slot."""
        if slot not in SCRIPT_SLOTS:
            raise KeyError(slot)
        return getattr(self, f"{slot}_script") or "", getattr(self, f"{slot}_script_file_name")

    def get_message(self, key: str, *args: Any) -> str:
        """Look up a message (configured override first) and format ``{0}``-style args."""
        template = self.messages.get(key) or DEFAULT_MESSAGES.get(key, key)
        return template.format(*args) if args else template

    def validate_configuration(self) -> None:
        """Check the language is registered and every configured script file exists.

        Raises ``ConfigurationError`` listing every problem found.
        """
        problems: List[str] = []
        if not self.scripting_language:
            problems.append(self.get_message(MSG_LANGUAGE_BLANK))
        elif not is_supported_language(self.scripting_language):
            problems.append(self.get_message(MSG_LANGUAGE_UNSUPPORTED, self.scripting_language))

        for slot in SCRIPT_SLOTS:
            _, file_name = self.script_source(slot)
            if file_name is None:
                continue
            path = resolve_variables(file_name)
            if not os.path.isfile(path):
                problems.append(self.get_message(MSG_SCRIPT_FILE_MISSING, slot, path))

        if problems:
            raise ConfigurationError("; ".join(problems))

    def new_factory(self) -> ScriptExecutorFactory:
        """Return the script engine factory for the configured language."""
        return ScriptExecutorFactory.new_instance(self.scripting_language)


def load_configuration(path: str) -> ScriptedConfiguration:
    """Load a configuration from a YAML or JSON file.

    Relative script file names are resolved against the configuration
    file's directory.
    """
    config_path = Path(path)
    try:
        text = config_path.read_text(encoding="utf-8")
    except OSError as exc:
        raise ConfigurationError(f"Cannot read configuration {path}: {exc}") from exc

    try:
        if config_path.suffix.lower() == ".json":
            data = json.loads(text)
        else:
            data = yaml.safe_load(text) or {}
    except (json.JSONDecodeError, yaml.YAMLError) as exc:
        raise ConfigurationError(f"Invalid configuration {path}: {exc}") from exc

    if not isinstance(data, dict):
        raise ConfigurationError(f"Configuration file must contain a mapping: {path}")

    try:
        config = ScriptedConfiguration.model_validate(data)
    except ValueError as exc:
        raise ConfigurationError(f"Invalid configuration {path}: {exc}") from exc

    base_dir = config_path.resolve().parent
    updates: Dict[str, Any] = {}
    for slot in SCRIPT_SLOTS:
        _, file_name = config.script_source(slot)
        if file_name and not file_name.startswith("${") and not os.path.isabs(file_name):
            updates[f"{slot}_script_file_name"] = str(base_dir / file_name)
    return config.model_copy(update=updates) if updates else config
