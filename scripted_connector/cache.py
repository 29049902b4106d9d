"""Per-slot cache of compiled script executors.

Each of the nine script slots holds at most one compiled ``ScriptExecutor``.
A slot is loaded from its file (path resolved through ``resolve_variables``)
when a file name is configured, otherwise from the inline source; an empty
source leaves the slot empty and the operation unsupported.

Reloading replaces the slot's executor with one assignment into the slot
table.  Callers keep the executor reference ``ensure()`` returned, so a
concurrent reload never hands anyone a half-built executor; concurrent
reloads of the same slot are last-writer-wins.
"""

import logging
from typing import Dict, Optional

from .config import SCRIPT_SLOTS, ScriptedConfiguration
from .engine import ScriptExecutor, ScriptExecutorFactory
from .errors import ConfigurationError
from .variables import resolve_variables

LOG = logging.getLogger(__name__)


class ScriptCache:
    """Holds the compiled executor for every script slot.

    Args:
        config:  Connector configuration supplying sources and language.
        factory: Script engine factory; defaults to the configured language's.
    """

    def __init__(self, config: ScriptedConfiguration, factory: Optional[ScriptExecutorFactory] = None):
        self.config = config
        self.factory = factory or config.new_factory()
        self._slots: Dict[str, Optional[ScriptExecutor]] = {slot: None for slot in SCRIPT_SLOTS}

    def load_all(self) -> None:
        """Compile every slot.  Raises ``ConfigurationError`` on the first bad script."""
        for slot in SCRIPT_SLOTS:
            executor = self.load(slot)
            LOG.debug("%s script %s", slot, "loaded" if executor else "not configured")

    def load(self, slot: str) -> Optional[ScriptExecutor]:
        """(Re)compile one slot from the configuration and store the result."""
        executor = self._compile(slot)
        self._slots[slot] = executor
        return executor

    def ensure(self, slot: str, force_reload: bool = False) -> Optional[ScriptExecutor]:
        """Return the slot's executor, recompiling first when ``force_reload`` is set."""
        if slot not in self._slots:
            raise KeyError(slot)
        if force_reload:
            return self.load(slot)
        return self._slots[slot]

    def clear(self) -> None:
        """Drop every compiled executor."""
        self._slots = {slot: None for slot in SCRIPT_SLOTS}

    def _compile(self, slot: str) -> Optional[ScriptExecutor]:
        source, file_name = self.config.script_source(slot)
        name = f"<{slot} script>"
        if file_name is not None:
            path = resolve_variables(file_name)
            try:
                with open(path, "r", encoding="utf-8") as f:
                    source = f.read()
            except OSError as exc:
                raise ConfigurationError(f"Cannot read {slot} script {path}: {exc}") from exc
            name = path

        if not source or not source.strip():
            return None
        return self.factory.new_script_executor(source, name)
