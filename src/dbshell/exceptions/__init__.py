from ._base_exceptions import ShellError
from ._statement_exceptions import SQLSyntaxError
from ._resolution_exceptions import UnresolvedDatabaseError
from ._remote_exceptions import (
    AuthError,
    DecodeError,
    RemoteError,
    RequestCancelledError,
    TransportError,
)
