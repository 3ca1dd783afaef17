import re
from datetime import timedelta
from typing import List, Optional

import requests

from .context import config as default_config
from .context import get_logger
from .db_utils import sanitize_error_message, with_sanitized_exceptions
from .exceptions import AuthError, DecodeError, TransportError
from .models import Credential, DatabaseRef

logger = get_logger("request")

DEFAULT_TOKEN_EXPIRATION = "1d"
_EXPIRATION_PATTERN = re.compile(r"^(\d+)([smhdw])$")
_EXPIRATION_UNITS = {"s": "seconds", "m": "minutes", "h": "hours", "d": "days", "w": "weeks"}


def parse_expiration(expiration: str) -> timedelta:
    """Convert an expiration string such as ``1d`` or ``12h`` into a timedelta."""
    match = _EXPIRATION_PATTERN.match(str(expiration).strip())
    if not match:
        raise ValueError(
            f"Invalid token expiration '{expiration}'. Use a number followed by s, m, h, d or w."
        )
    amount, unit = match.groups()
    return timedelta(**{_EXPIRATION_UNITS[unit]: int(amount)})


def _raise_for_status(response: requests.Response, action: str) -> None:
    if response.status_code in (401, 403):
        raise AuthError(
            f"could not {action}: access denied ({response.status_code}). "
            "Your platform token may have expired."
        )
    if response.status_code >= 400:
        raise TransportError(
            sanitize_error_message(
                f"could not {action}: {response.status_code} {response.text[:200]}"
            )
        )


class PlatformClient:
    """Client for the platform API that owns the database directory.

    The HTTP session is passed in so callers control connection reuse,
    timeouts and, in tests, the transport itself.
    """

    def __init__(
        self,
        base_url: str,
        access_token: Optional[str],
        session: Optional[requests.Session] = None,
        timeout: float = 30,
    ):
        self.base_url = base_url.rstrip("/")
        self.access_token = access_token or None
        self.session = session if session is not None else requests.Session()
        self.timeout = timeout

    @classmethod
    def from_config(cls, config=None, session: Optional[requests.Session] = None) -> "PlatformClient":
        config = config or default_config
        return cls(
            base_url=config.api.base_url,
            access_token=config.api.get("token") or None,
            session=session,
            timeout=config.api.get("timeout", 30),
        )

    @property
    def is_authenticated(self) -> bool:
        return self.access_token is not None

    def _headers(self) -> dict:
        if not self.is_authenticated:
            raise AuthError(
                "no platform access token configured. "
                "Set api.token in ~/.dbshell/config.toml or DBSHELL__API__TOKEN."
            )
        return {"Authorization": f"Bearer {self.access_token}"}

    @with_sanitized_exceptions()
    def list_databases(self) -> List[DatabaseRef]:
        """Fetch every database of the current account, in listing order."""
        response = self.session.get(
            f"{self.base_url}/v1/databases",
            headers=self._headers(),
            timeout=self.timeout,
        )
        _raise_for_status(response, "list databases")
        try:
            databases = [DatabaseRef.from_api(item) for item in response.json()["databases"]]
        except (ValueError, KeyError, TypeError) as e:
            raise DecodeError(f"unexpected database listing: {e}") from None

        logger.debug(f"Directory listing returned {len(databases)} database(s)")
        return databases

    def issue_token(
        self,
        db: DatabaseRef,
        ttl: str = DEFAULT_TOKEN_EXPIRATION,
        read_only: bool = False,
    ) -> Credential:
        """Request a short-lived bearer token for one database.

        Args:
            db: Database the token is scoped to.
            ttl: Token lifetime, e.g. ``1d``.
            read_only: Request a read-only token instead of full access.

        Raises:
            TypeError: If `db` is not a DatabaseRef.
            AuthError: If the platform rejects the request or cannot be reached.
        """
        if not isinstance(db, DatabaseRef):
            raise TypeError(f"issue_token requires a DatabaseRef, got {type(db).__name__}")

        lifetime = parse_expiration(ttl)
        authorization = "read-only" if read_only else "full-access"
        try:
            response = self.session.post(
                f"{self.base_url}/v1/databases/{db.name}/auth/tokens",
                params={"expiration": ttl, "authorization": authorization},
                headers=self._headers(),
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            raise AuthError(
                sanitize_error_message(f"could not get token for database {db.name}: {e}")
            ) from None

        if response.status_code >= 400:
            raise AuthError(
                sanitize_error_message(
                    f"could not get token for database {db.name}: "
                    f"{response.status_code} {response.text[:200]}"
                )
            )
        try:
            token = response.json()["jwt"]
        except (ValueError, KeyError, TypeError):
            raise AuthError(f"could not get token for database {db.name}: malformed response") from None

        logger.debug(f"Issued {authorization} token for {db.name} valid for {ttl}")
        return Credential(token=token, ttl=lifetime, read_only=read_only, database=db)
