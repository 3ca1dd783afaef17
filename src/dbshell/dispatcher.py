"""
Send statement batches to a database endpoint over HTTP.

The whole batch travels in one ``POST`` whose JSON body is
``{"statements": [...]}``. The response carries either a result set or
an error object, never both.
"""

import threading
from typing import Callable, List, Optional, Sequence, Tuple
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

import requests

from .context import get_logger
from .db_utils import mask_url_credentials, sanitize_error_message
from .exceptions import AuthError, DecodeError, RemoteError, RequestCancelledError, TransportError
from .models import QueryOutcome, ResolvedEndpoint, ResultSet

logger = get_logger("dispatcher")

# Schemes that address the same server over plain HTTP
HTTP_SCHEMES = {"libsql": "https", "wss": "https", "ws": "http", "https": "https", "http": "http"}


class CancelToken:
    """Cancellation signal shared between the caller and an in-flight request.

    `cancel()` may be called from any thread; registered callbacks run once,
    on the first call.
    """

    def __init__(self):
        self._event = threading.Event()
        self._lock = threading.Lock()
        self._callbacks: List[Callable[[], None]] = []

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self) -> None:
        with self._lock:
            if self._event.is_set():
                return
            self._event.set()
            callbacks = list(self._callbacks)
        for callback in callbacks:
            callback()

    def register(self, callback: Callable[[], None]) -> Callable[[], None]:
        """Run `callback` on cancellation. Returns a function that unregisters it."""
        with self._lock:
            self._callbacks.append(callback)

        def unregister() -> None:
            with self._lock:
                if callback in self._callbacks:
                    self._callbacks.remove(callback)

        return unregister


def request_target(endpoint: ResolvedEndpoint) -> Tuple[str, Optional[str]]:
    """Return the HTTP URL to post to and the bearer token, if any.

    A ``jwt`` query parameter embedded at resolution time is lifted out of
    the URL and sent as the bearer token instead.
    """
    parts = urlsplit(endpoint.url)
    scheme = HTTP_SCHEMES.get(parts.scheme.lower())
    if scheme is None:
        raise TransportError(f"unsupported URL scheme '{parts.scheme}' for {mask_url_credentials(endpoint.url)}")

    token = endpoint.token
    query = []
    for key, value in parse_qsl(parts.query, keep_blank_values=True):
        if key == "jwt":
            token = token or value
        else:
            query.append((key, value))

    url = urlunsplit((scheme, parts.netloc, parts.path, urlencode(query), parts.fragment))
    return url, token or None


def decode_outcome(payload) -> QueryOutcome:
    """Decode a response body into a ResultSet or a RemoteError.

    Raises:
        DecodeError: Unless exactly one of ``results`` and ``error`` is populated
            with the expected shape.
    """
    if not isinstance(payload, dict):
        raise DecodeError("response is not a JSON object")

    results = payload.get("results")
    error = payload.get("error")
    if results is None and error is None:
        raise DecodeError("response carries neither results nor error")
    if results is not None and error is not None:
        raise DecodeError("response carries both results and error")

    if error is not None:
        if isinstance(error, str):
            return RemoteError(error)
        if not isinstance(error, dict) or not isinstance(error.get("message"), str):
            raise DecodeError("error object has no message")
        return RemoteError(error["message"])

    if not isinstance(results, dict):
        raise DecodeError("results is not an object")
    columns = results.get("columns")
    rows = results.get("rows")
    if not isinstance(columns, list) or not all(isinstance(c, str) for c in columns):
        raise DecodeError("results.columns must be a list of strings")
    if not isinstance(rows, list) or not all(isinstance(r, list) for r in rows):
        raise DecodeError("results.rows must be a list of rows")
    return ResultSet(columns=columns, rows=rows)


class QueryDispatcher:
    """Executes statement batches against resolved endpoints.

    Args:
        session: HTTP session used for every request. A new one is created
            when omitted.
        timeout: Per-request timeout in seconds.
    """

    def __init__(self, session: Optional[requests.Session] = None, timeout: float = 60):
        self.session = session if session is not None else requests.Session()
        self.timeout = timeout

    def _abort(self) -> None:
        # closing the pooled connections interrupts a blocked send/receive
        self.session.close()

    def execute(
        self,
        endpoint: ResolvedEndpoint,
        statements: Sequence[str],
        cancel: Optional[CancelToken] = None,
    ) -> QueryOutcome:
        """Send one statement batch and decode the outcome.

        Args:
            endpoint: Where to send the batch.
            statements: Statements in execution order.
            cancel: Optional token that aborts the request when cancelled.

        Returns:
            A ResultSet, or a RemoteError reported by the database engine.

        Raises:
            RequestCancelledError: If `cancel` fires before or during the request.
            TransportError: On network failures and timeouts.
            AuthError: If the bearer token is rejected.
            DecodeError: If the body does not have the expected shape.
        """
        if cancel is not None and cancel.cancelled:
            raise RequestCancelledError("request cancelled")

        url, token = request_target(endpoint)
        headers = {"Content-Type": "application/json"}
        if token:
            headers["Authorization"] = f"Bearer {token}"

        logger.debug(f"POST {url} with {len(statements)} statement(s)")
        unregister = cancel.register(self._abort) if cancel is not None else None
        try:
            response = self.session.post(
                url,
                json={"statements": list(statements)},
                headers=headers,
                timeout=self.timeout,
            )
        except KeyboardInterrupt:
            if cancel is not None:
                cancel.cancel()
            raise RequestCancelledError("request cancelled") from None
        except requests.Timeout:
            raise TransportError(f"request to {mask_url_credentials(url)} timed out") from None
        except requests.RequestException as e:
            if cancel is not None and cancel.cancelled:
                raise RequestCancelledError("request cancelled") from None
            raise TransportError(sanitize_error_message(str(e))) from None
        finally:
            if unregister is not None:
                unregister()

        if cancel is not None and cancel.cancelled:
            raise RequestCancelledError("request cancelled")

        return self._decode_response(response)

    def _decode_response(self, response: requests.Response) -> QueryOutcome:
        if response.status_code in (401, 403):
            raise AuthError(
                f"the database rejected the access token ({response.status_code})"
            )

        try:
            payload = response.json()
        except ValueError:
            if response.status_code >= 500:
                raise TransportError(f"server error {response.status_code}") from None
            raise DecodeError(
                f"response body is not valid JSON (status {response.status_code})"
            ) from None

        if response.status_code >= 400:
            # error responses use {"error": "<message>"}
            if isinstance(payload, dict) and isinstance(payload.get("error"), str):
                return RemoteError(payload["error"])
            if response.status_code >= 500:
                raise TransportError(f"server error {response.status_code}")

        return decode_outcome(payload)
