class ShellError(Exception):
    """
    Base class for every error the shell reports to the user.
    """

    pass
