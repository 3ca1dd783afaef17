from ._base_exceptions import ShellError


class SQLSyntaxError(ShellError):
    """
    Exception raised when SQL text contains an unterminated quote or block comment.
    """

    pass
