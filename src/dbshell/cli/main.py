"""
dbshell CLI - Main entry point

Usage:
    dbshell shell <database_name | replica_url> [sql]   Start a SQL shell
    dbshell list                                        List databases
    dbshell version                                     Show version information
"""

import json
import sys
from enum import Enum
from typing import List, Optional

import typer

app = typer.Typer(
    name="dbshell",
    help="SQL shell for managed remote databases",
    add_completion=True,
)


class OutputFormat(str, Enum):
    """Output format options."""
    TABLE = "table"
    JSON = "json"


def _get_version() -> str:
    """Get package version."""
    from dbshell import __version__
    return __version__


def _echo_error(message: str):
    """Print error message in red."""
    typer.echo(typer.style(f"✗ {message}", fg=typer.colors.RED), err=True)


def complete_database_names(incomplete: str) -> List[str]:
    """Shell completion for database names, from the directory listing."""
    from dbshell.exceptions import ShellError
    from dbshell.request import PlatformClient

    try:
        databases = PlatformClient.from_config().list_databases()
    except ShellError:
        return []
    return [db.name for db in databases if db.name.startswith(incomplete)]


@app.command()
def version():
    """Show version information."""
    import requests
    import sqlparse

    typer.echo(f"dbshell version: {_get_version()}")
    typer.echo(f"Python version: {sys.version.split()[0]}")
    typer.echo(f"requests version: {requests.__version__}")
    typer.echo(f"sqlparse version: {sqlparse.__version__}")


@app.command()
def shell(
    name_or_url: str = typer.Argument(
        ...,
        metavar="{database_name | replica_url}",
        help="Database name, or URL of a particular replica",
        autocompletion=complete_database_names,
    ),
    sql: Optional[str] = typer.Argument(
        None, help="SQL to execute instead of starting an interactive shell"
    ),
):
    """Start a SQL shell.

    When a database name is provided, the shell connects to that database.
    When the URL of a particular replica is provided, the shell connects to
    that replica directly.

    \b
    Examples:
      dbshell shell name-of-my-amazing-db
      dbshell shell libsql://e784400f26d083-my-amazing-db-replica-url.example.io
      dbshell shell name-of-my-amazing-db "select * from users;"
    """
    from dbshell.db_utils import sanitize_error_message
    from dbshell.exceptions import RemoteError, ShellError
    from dbshell.request import PlatformClient
    from dbshell.session import SessionController

    if not name_or_url:
        raise typer.BadParameter("please specify a database name", param_hint="database_name")
    if sql is not None and not sql:
        raise typer.BadParameter("no SQL command to execute", param_hint="sql")

    controller = SessionController(client=PlatformClient.from_config())
    try:
        outcome = controller.run(name_or_url, sql)
    except ShellError as e:
        _echo_error(sanitize_error_message(str(e)))
        raise typer.Exit(1)
    except KeyboardInterrupt:
        raise typer.Exit(130)

    if isinstance(outcome, RemoteError):
        raise typer.Exit(0)


@app.command("list")
def list_databases(
    format: OutputFormat = typer.Option(
        OutputFormat.TABLE, "--format", "-f",
        help="Output format"
    ),
):
    """List databases of the current account."""
    from tabulate import tabulate

    from dbshell.exceptions import ShellError
    from dbshell.request import PlatformClient

    try:
        databases = PlatformClient.from_config().list_databases()
    except ShellError as e:
        _echo_error(f"Error listing databases: {e}")
        raise typer.Exit(1)

    if format == OutputFormat.JSON:
        data = [{"name": db.name, "hostname": db.hostname, "id": db.id} for db in databases]
        typer.echo(json.dumps(data, indent=2))
        return

    if not databases:
        typer.echo("No databases found.")
        return
    headers = ["Name", "Hostname", "ID"]
    data = [[db.name, db.hostname, db.id] for db in databases]
    typer.echo(tabulate(data, headers=headers, tablefmt="simple"))


def main():
    """Main entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
