"""
Utilities for handling database URLs that carry credentials.

Known-database endpoints embed their bearer token as a `jwt` query
parameter. This module builds such URLs and makes sure the token never
shows up in logs, error messages or welcome banners.
"""

import re
from contextlib import contextmanager
from functools import wraps
from typing import Callable, Optional, Tuple, Type, TypeVar

import requests

from .context import get_logger
from .exceptions import TransportError

logger = get_logger("db_utils")

# Credential parameters that must never be displayed
CREDENTIAL_PARAMS = frozenset(["jwt", "authToken", "auth_token", "password", "token"])

_BEARER_PATTERN = re.compile(r"(Bearer\s+)([^\s'\"]+)")


class SecureDatabaseURL:
    """
    A wrapper for endpoint URLs that masks credentials in string representations.

    The full URL is kept for sending requests; `str()` and `repr()` return a
    masked version.

    Example:
        >>> url = SecureDatabaseURL("https://my-db-org.example.io?jwt=secret123")
        >>> str(url)
        'https://my-db-org.example.io?jwt=****'
        >>> url.get_connection_url()
        'https://my-db-org.example.io?jwt=secret123'
    """

    def __init__(self, url: str):
        self._url = url

    def __str__(self) -> str:
        return mask_url_credentials(self._url)

    def __repr__(self) -> str:
        return f"SecureDatabaseURL({mask_url_credentials(self._url)!r})"

    def get_connection_url(self) -> str:
        """
        Get the full URL for actual request usage.

        Returns:
            The URL with all credentials intact.
        """
        return self._url

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, SecureDatabaseURL):
            return NotImplemented
        return self._url == other._url

    def __hash__(self) -> int:
        return hash(self._url)


def add_token_as_query_parameter(db_url: str, token: str) -> str:
    """
    Append a bearer token to an endpoint URL as the `jwt` query parameter.

    Example:
        >>> add_token_as_query_parameter("https://my-db-org.example.io", "abc")
        'https://my-db-org.example.io?jwt=abc'
    """
    return f"{db_url}?jwt={token}"


def mask_url_credentials(url: str) -> str:
    """
    Mask all credential parameters in a URL.

    Example:
        >>> mask_url_credentials("https://host?jwt=secret")
        'https://host?jwt=****'
    """
    result = url
    for param in CREDENTIAL_PARAMS:
        pattern = re.compile(rf"((?<![\w]){re.escape(param)}=)([^&]*)")
        result = pattern.sub(r"\1****", result)
    return result


def sanitize_error_message(message: str) -> str:
    """
    Sanitize an error message by masking credential patterns.

    Masks values of known credential parameters and `Bearer` tokens.

    Example:
        >>> sanitize_error_message("Failed to connect: https://h?jwt=secret123")
        'Failed to connect: https://h?jwt=****'
        >>> sanitize_error_message("Authorization: Bearer abc.def")
        'Authorization: Bearer ****'
    """
    if not isinstance(message, str):
        message = str(message)

    result = message
    for param in CREDENTIAL_PARAMS:
        pattern = re.compile(rf"((?<![\w]){re.escape(param)}=)([^&\s'\"]*)")
        result = pattern.sub(r"\1****", result)

    return _BEARER_PATTERN.sub(r"\1****", result)


F = TypeVar("F", bound=Callable)


@contextmanager
def sanitize_transport_exceptions(
    exception_types: Optional[Tuple[Type[Exception], ...]] = None
):
    """
    Re-raise HTTP client failures as `TransportError` with sanitized messages.

    Args:
        exception_types: Tuple of exception types to catch. Defaults to
            `requests.RequestException`.

    Raises:
        TransportError: with every credential in the message masked.
    """
    if exception_types is None:
        exception_types = (requests.RequestException,)

    try:
        yield
    except exception_types as e:
        message = sanitize_error_message(str(e))
        logger.debug(f"Transport error caught: {message}")
        raise TransportError(message) from None


def with_sanitized_exceptions(
    exception_types: Optional[Tuple[Type[Exception], ...]] = None
) -> Callable[[F], F]:
    """
    Decorator form of `sanitize_transport_exceptions`.

    Example:
        >>> @with_sanitized_exceptions()
        ... def fetch(url):
        ...     raise requests.ConnectionError(f"Cannot connect to {url}")
        ...
        >>> fetch("https://host?jwt=secret")
        Traceback (most recent call last):
            ...
        TransportError: Cannot connect to https://host?jwt=****
    """

    def decorator(func: F) -> F:
        @wraps(func)
        def wrapper(*args, **kwargs):
            with sanitize_transport_exceptions(exception_types):
                return func(*args, **kwargs)

        return wrapper  # type: ignore

    return decorator
