"""Exception hierarchy raised by the scripted connector.

Every failure the connector surfaces derives from ``ConnectorError``:

- ``ConfigurationError``: bad or unreadable script source, compile failure,
  unknown scripting language, invalid configuration.  Raised at load time.
- ``PreconditionError``: the caller passed invalid input (missing object
  class, empty attribute set, blank uid, missing result handler).  Raised
  before any script runs.
- ``ScriptExecutionError``: the script raised, or returned a value of the
  wrong shape.  ``UnknownTokenTypeError`` is the narrower case of a sync
  token of a type the framework cannot carry.
- ``UnsupportedOperationError``: no script is configured for the operation.
"""

from typing import Optional


class ConnectorError(Exception):
    """Base class for all connector failures."""


class ConfigurationError(ConnectorError):
    """A script source or configuration value cannot be used."""


class PreconditionError(ConnectorError, ValueError):
    """Invalid input supplied to an operation."""


class ScriptExecutionError(ConnectorError):
    """A script failed or returned something the connector cannot use.

    Attributes:
        operation: Operation label (e.g. ``Create``, ``Update(ADD_ATTRIBUTE_VALUES)``).
        cause:     The underlying exception, if any.
    """

    def __init__(self, operation: str, message: str, cause: Optional[BaseException] = None):
        super().__init__(message)
        self.operation = operation
        self.cause = cause

    def __str__(self):
        base = super().__str__()
        if self.cause is not None:
            return f"{base}: {self.cause}"
        return base


class UnknownTokenTypeError(ScriptExecutionError):
    """The sync script returned a token of an unsupported type."""


class UnsupportedOperationError(ConnectorError, NotImplementedError):
    """No script is configured for the requested operation."""

    def __init__(self, operation: str, message: str = ""):
        super().__init__(message or f"{operation} is not supported: no script configured")
        self.operation = operation
