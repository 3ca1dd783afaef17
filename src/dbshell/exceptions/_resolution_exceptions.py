from ._base_exceptions import ShellError


class UnresolvedDatabaseError(ShellError):
    """Raised when a database name has no entry in the directory listing"""

    def __init__(self, name: str):
        self.name = name
        super().__init__(f"database {name} not found. List known databases using dbshell list")
