__version__ = "1.0.0"

# Export the resolution and dispatch entry points
from .statements import split
from .resolver import resolve
from .dispatcher import CancelToken, QueryDispatcher

# Export shell exceptions
from .exceptions import (
    ShellError,
    SQLSyntaxError,
    UnresolvedDatabaseError,
    AuthError,
    TransportError,
    RequestCancelledError,
    DecodeError,
    RemoteError,
)

__all__ = [
    "__version__",
    "split",
    "resolve",
    "CancelToken",
    "QueryDispatcher",
    "ShellError",
    "SQLSyntaxError",
    "UnresolvedDatabaseError",
    "AuthError",
    "TransportError",
    "RequestCancelledError",
    "DecodeError",
    "RemoteError",
]
