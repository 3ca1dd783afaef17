"""dbshell CLI - Command-line interface for remote database shells.

Commands:
- dbshell shell: Open an interactive SQL shell, or run one SQL string
- dbshell list: List the databases of the current account
- dbshell version: Show version information
"""

from .main import app

__all__ = ["app"]
