from ._base_exceptions import ShellError


class AuthError(ShellError):
    """
    Exception raised when a credential request or a bearer token is rejected.
    """

    pass


class TransportError(ShellError):
    """
    Exception raised on network failures and timeouts.
    """

    pass


class RequestCancelledError(TransportError):
    """
    Exception raised when an in-flight request is aborted by the caller.
    """

    pass


class DecodeError(ShellError):
    """
    Exception raised when a response body does not have the expected shape.
    """

    pass


class RemoteError(ShellError):
    """Statement-level failure reported by the remote engine.

    Returned by the dispatcher as a query outcome; it is only raised by
    callers that choose to treat it as fatal.
    """

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, RemoteError):
            return NotImplemented
        return self.message == other.message

    def __hash__(self) -> int:
        return hash(self.message)
