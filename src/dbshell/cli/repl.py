"""Interactive SQL shell for a remote database endpoint.

Statements are split locally and sent to the endpoint as one batch per
submitted input. Statements can span several lines; input is sent once it
ends with ``;``.
"""
from __future__ import annotations

import re
import readline
import sys
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Callable, Optional, TextIO

from tabulate import tabulate

from dbshell.context import config as default_config
from dbshell.context import get_logger
from dbshell.db_utils import sanitize_error_message
from dbshell.dispatcher import CancelToken, QueryDispatcher
from dbshell.exceptions import RemoteError, ShellError
from dbshell.models import ExternalEndpoint, QueryOutcome, ResolvedEndpoint
from dbshell.statements import is_complete, split

logger = get_logger("repl")

PROMPT = "→  "
CONTINUATION_PROMPT = "... "
# Batch sent once on startup to confirm the endpoint answers
CONNECTIVITY_CHECK = ("SELECT 1",)


class HistoryMode(str, Enum):
    """Where readline history is kept."""
    PER_DATABASE = "per_database"
    SHARED = "shared"
    DISABLED = "disabled"


@dataclass
class ShellConfig:
    """Everything the shell needs to talk to one endpoint.

    Attributes:
        db_path: Endpoint URL; a ``jwt`` query parameter is sent as the bearer token.
        history_key: Identity used for per-database history files. Defaults
            to the host of `db_path`.
        after_db_connection_callback: Called once, after connectivity is confirmed.
    """
    db_path: str
    in_f: TextIO = field(default_factory=lambda: sys.stdin)
    out_f: TextIO = field(default_factory=lambda: sys.stdout)
    err_f: TextIO = field(default_factory=lambda: sys.stderr)
    history_mode: HistoryMode = HistoryMode.PER_DATABASE
    history_name: str = "dbshell"
    history_key: Optional[str] = None
    welcome_message: Optional[str] = None
    after_db_connection_callback: Optional[Callable[[], None]] = None
    dispatcher: Optional[QueryDispatcher] = None
    endpoint: Optional[ResolvedEndpoint] = None
    max_display_rows: int = 100


class Shell:
    """SQL shell bound to a single endpoint."""

    def __init__(self, config: ShellConfig) -> None:
        self.config = config
        self.endpoint = config.endpoint or ExternalEndpoint(config.db_path)
        self.dispatcher = config.dispatcher or QueryDispatcher(
            timeout=default_config.shell.get("http_timeout", 60)
        )
        self._history_path: Optional[Path] = None
        self._connected = False

    # -- output ---------------------------------------------------------------

    def _print(self, message: str = "") -> None:
        self.config.out_f.write(message + "\n")
        self.config.out_f.flush()

    def _print_error(self, message: str) -> None:
        self.config.err_f.write(f"Error: {sanitize_error_message(message)}\n")
        self.config.err_f.flush()

    # -- connection -------------------------------------------------------------

    def _mark_connected(self) -> None:
        if self._connected:
            return
        self._connected = True
        if self.config.after_db_connection_callback is not None:
            self.config.after_db_connection_callback()

    def connect(self) -> None:
        """Confirm the endpoint answers, then signal the connection."""
        outcome = self.dispatcher.execute(self.endpoint, CONNECTIVITY_CHECK)
        if isinstance(outcome, RemoteError):
            raise outcome
        self._mark_connected()

    # -- history ----------------------------------------------------------------

    def _history_file(self) -> Optional[Path]:
        mode = self.config.history_mode
        if mode == HistoryMode.DISABLED:
            return None
        history_dir = Path(str(default_config.shell.history_dir)).expanduser()
        if mode == HistoryMode.SHARED:
            return history_dir / f"{self.config.history_name}.history"
        key = self.config.history_key or self.endpoint.url.split("?", 1)[0]
        safe_key = re.sub(r"[^A-Za-z0-9_.-]+", "_", key).strip("_") or "default"
        return history_dir / self.config.history_name / f"{safe_key}.history"

    def _setup_history(self) -> None:
        """Configure readline history."""
        self._history_path = self._history_file()
        if self._history_path is None:
            return
        try:
            self._history_path.parent.mkdir(parents=True, exist_ok=True)
            readline.clear_history()
            if self._history_path.exists():
                readline.read_history_file(str(self._history_path))
            readline.set_history_length(default_config.shell.get("history_length", 1000))
        except OSError as e:
            logger.warning(f"Could not load shell history: {e}")

    def _save_history(self) -> None:
        """Save readline history."""
        if self._history_path is None:
            return
        try:
            readline.write_history_file(str(self._history_path))
        except OSError as e:
            logger.warning(f"Could not save shell history: {e}")

    # -- input ------------------------------------------------------------------

    def _is_terminal(self) -> bool:
        isatty = getattr(self.config.in_f, "isatty", None)
        return self.config.in_f is sys.stdin and bool(isatty and isatty())

    def _read_line(self, prompt: str) -> str:
        """Read one line of input; raises EOFError at end of input."""
        if self._is_terminal():
            return input(prompt)
        line = self.config.in_f.readline()
        if not line:
            raise EOFError
        return line.rstrip("\n")

    # -- execution --------------------------------------------------------------

    def execute(self, sql: str) -> Optional[QueryOutcome]:
        """Split and dispatch SQL text, then print the outcome.

        Returns None when the text holds no statement.
        """
        statements = split(sql)
        if not statements:
            return None
        outcome = self.dispatcher.execute(self.endpoint, statements, cancel=CancelToken())
        self._mark_connected()
        self._render(outcome)
        return outcome

    def _render(self, outcome: QueryOutcome) -> None:
        if isinstance(outcome, RemoteError):
            self._print_error(outcome.message)
            return

        if not outcome.columns:
            self._print("Query executed successfully.")
            return

        max_rows = self.config.max_display_rows
        display_rows = outcome.rows[:max_rows]
        self._print(tabulate(display_rows, headers=outcome.columns, tablefmt="simple", missingval="NULL"))

        if outcome.row_count > max_rows:
            self._print(
                f"\n({max_rows} of {outcome.row_count} rows displayed. Use LIMIT for more control.)"
            )
        else:
            self._print(f"\n({outcome.row_count} rows)")

    def run_line(self, line: str) -> Optional[QueryOutcome]:
        """Execute a single line; the connection counts as established up front."""
        self._mark_connected()
        return self.execute(line)

    def run(self) -> None:
        """Main REPL loop."""
        self.connect()
        if self.config.welcome_message:
            self.config.out_f.write(self.config.welcome_message)
            self.config.out_f.flush()

        interactive = self._is_terminal()
        if interactive:
            self._setup_history()

        buffer: list[str] = []
        try:
            while True:
                try:
                    line = self._read_line(CONTINUATION_PROMPT if buffer else PROMPT)
                    stripped = line.strip()
                    if not buffer:
                        if not stripped:
                            continue
                        if stripped.startswith("."):
                            if self._run_command(stripped):
                                break
                            continue

                    buffer.append(line)
                    text = "\n".join(buffer)
                    if not is_complete(text):
                        continue
                    buffer = []
                    try:
                        self.execute(text)
                    except ShellError as e:
                        # keep the session alive after a failed statement
                        self._print_error(str(e))

                except KeyboardInterrupt:
                    buffer = []
                    self._print()
                    continue

        except EOFError:
            if buffer:
                try:
                    self.execute("\n".join(buffer))
                except ShellError as e:
                    self._print_error(str(e))
        finally:
            if interactive:
                self._save_history()

    def _run_command(self, command: str) -> bool:
        """Run a dot command. Returns True when the shell should exit."""
        name = command.split()[0]
        if name in (".quit", ".exit"):
            return True
        elif name == ".help":
            self._show_help()
        else:
            self._print(f"Unknown command: {name}. Type .help")
        return False

    def _show_help(self) -> None:
        """Show available commands."""
        self._print(
            """
Commands:
  .help             Show this message
  .quit             Exit the shell
  .exit             Exit the shell

End a statement with ; to run it. Several statements separated by ;
are sent together and run in order.
"""
        )


def run_shell_line(config: ShellConfig, line: str) -> Optional[QueryOutcome]:
    """Execute one SQL string against the configured endpoint."""
    return Shell(config).run_line(line)


def run_shell(config: ShellConfig) -> None:
    """Entry point for the interactive shell."""
    Shell(config).run()
