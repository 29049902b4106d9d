"""scripted-connector: Identity-management connector whose operations are scripts.

Create, update, delete, authenticate, resolve-username, schema, search, sync
and test are each carried out by a configurable script (Python by default).
The connector compiles the scripts, builds their arguments, checks what they
return, and translates search and sync rows into framework objects.
"""

__version__ = "0.1.0"

from .config import ScriptedConfiguration, load_configuration
from .connector import ScriptedConnector
from .errors import (
    ConfigurationError,
    ConnectorError,
    PreconditionError,
    ScriptExecutionError,
    UnknownTokenTypeError,
    UnsupportedOperationError,
)
from .objects import (
    Attribute,
    ConnectorObject,
    Name,
    ObjectClass,
    OperationOptions,
    SearchResult,
    SyncDelta,
    SyncDeltaType,
    SyncToken,
    Uid,
)
from .security import GuardedString
