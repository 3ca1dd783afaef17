"""
Turn a user-supplied database reference into a concrete endpoint.

A reference is either a logical database name or a connection URL.
Names are looked up exactly in the directory listing. URLs are matched
against the listing by hostname suffix, so a per-instance hostname such
as ``e784400f26d083-my-db-replica.example.io`` maps back to the database
whose canonical hostname is ``my-db-replica.example.io``. A URL that
matches nothing is used as-is.
"""

from typing import Callable, Optional, Sequence
from urllib.parse import urlsplit

from .context import get_logger
from .db_utils import SecureDatabaseURL, add_token_as_query_parameter, mask_url_credentials
from .exceptions import UnresolvedDatabaseError
from .models import Credential, DatabaseRef, ExternalEndpoint, KnownEndpoint, ResolvedEndpoint

logger = get_logger("resolver")

TokenIssuer = Callable[[DatabaseRef], Credential]


def is_url(ref: str) -> bool:
    """Return True when `ref` is an absolute URL (scheme and host present)."""
    try:
        parsed = urlsplit(ref)
    except ValueError:
        return False
    return bool(parsed.scheme) and bool(parsed.hostname)


def find_by_name(name: str, known_databases: Sequence[DatabaseRef]) -> DatabaseRef:
    for db in known_databases:
        if db.name == name:
            return db
    raise UnresolvedDatabaseError(name)


def find_by_url(url: str, known_databases: Sequence[DatabaseRef]) -> Optional[DatabaseRef]:
    """Return the first database whose hostname is a suffix of the URL host.

    Listing order decides between several matching entries.
    """
    host = urlsplit(url).hostname or ""
    for db in known_databases:
        if db.hostname and host.endswith(db.hostname.lower()):
            return db
    return None


def database_from_ref(ref: str, known_databases: Sequence[DatabaseRef]) -> Optional[DatabaseRef]:
    """Find the known database a reference points to.

    Returns None for a URL that matches no known database.

    Raises:
        UnresolvedDatabaseError: If `ref` is a name missing from the listing.
    """
    if is_url(ref):
        return find_by_url(ref, known_databases)
    return find_by_name(ref, known_databases)


def database_http_url(db: DatabaseRef, scheme: str = "https") -> str:
    return f"{scheme}://{db.hostname}"


def resolve(
    ref: str,
    known_databases: Sequence[DatabaseRef],
    issue_token: TokenIssuer,
    scheme: str = "https",
) -> ResolvedEndpoint:
    """Resolve a reference into an endpoint ready for dispatch.

    Args:
        ref: Database name or connection URL.
        known_databases: Directory listing of the current account.
        issue_token: Called with the matched database to obtain its
            credential. Never called for external URLs.
        scheme: URL scheme used for known databases.

    Returns:
        A KnownEndpoint whose URL embeds the token as ``?jwt=``, or an
        ExternalEndpoint wrapping `ref` unchanged.

    Raises:
        UnresolvedDatabaseError: If `ref` is a name missing from the listing.
    """
    db = database_from_ref(ref, known_databases)
    if db is None:
        logger.debug(
            f"No known database matches {mask_url_credentials(ref)}; using it as an external endpoint"
        )
        return ExternalEndpoint(ref)

    credential = issue_token(db)
    url = add_token_as_query_parameter(database_http_url(db, scheme), credential.token)
    endpoint = KnownEndpoint(database=db, credential=credential, secure_url=SecureDatabaseURL(url))
    logger.debug(f"Resolved {mask_url_credentials(ref)} to {endpoint.secure_url}")
    return endpoint
