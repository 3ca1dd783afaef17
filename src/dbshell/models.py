"""
Value types shared by the resolver, the credential broker and the dispatcher.
"""

from dataclasses import dataclass, field
from datetime import timedelta
from typing import Any, List, Optional, Union

from .db_utils import SecureDatabaseURL
from .exceptions import RemoteError

Row = List[Any]


@dataclass(frozen=True)
class DatabaseRef:
    """A managed database as returned by the directory listing."""

    name: str
    hostname: str
    id: str = ""

    @classmethod
    def from_api(cls, payload: dict) -> "DatabaseRef":
        return cls(
            name=payload["Name"],
            hostname=payload["Hostname"],
            id=payload.get("DbId", ""),
        )


@dataclass(frozen=True)
class Credential:
    """Short-lived bearer token scoped to a single database."""

    token: str = field(repr=False)
    ttl: timedelta
    read_only: bool = False
    database: Optional[DatabaseRef] = None


@dataclass(frozen=True)
class KnownEndpoint:
    """Endpoint of a database found in the directory listing.

    `url` already carries the token as its `jwt` query parameter.
    """

    database: DatabaseRef
    credential: Credential
    secure_url: SecureDatabaseURL

    @property
    def url(self) -> str:
        return self.secure_url.get_connection_url()

    @property
    def token(self) -> Optional[str]:
        return self.credential.token


@dataclass(frozen=True)
class ExternalEndpoint:
    """Caller-supplied URL with no matching known database; used as-is."""

    raw_url: str

    @property
    def url(self) -> str:
        return self.raw_url

    @property
    def token(self) -> Optional[str]:
        return None


ResolvedEndpoint = Union[KnownEndpoint, ExternalEndpoint]


@dataclass
class ResultSet:
    """Columns and rows returned for a statement batch."""

    columns: List[str] = field(default_factory=list)
    rows: List[Row] = field(default_factory=list)

    @property
    def row_count(self) -> int:
        return len(self.rows)


QueryOutcome = Union[ResultSet, RemoteError]
