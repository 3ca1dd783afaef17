"""
Session orchestration for ``dbshell shell``.

The controller resolves the reference, obtains a credential when the
target is a known database, and hands the endpoint to the shell front end
in single-shot or interactive mode. It also owns the connection progress
indicator and makes sure it stops exactly once per invocation.
"""

import sys
from enum import Enum
from typing import List, Optional, Sequence, TextIO

import typer

from .cli.repl import HistoryMode, ShellConfig, run_shell, run_shell_line
from .cli.spinner import ConnectionNotifier, Spinner
from .context import config as default_config
from .context import get_logger
from .db_utils import mask_url_credentials
from .dispatcher import CancelToken, QueryDispatcher
from .exceptions import RemoteError
from .models import Credential, DatabaseRef, KnownEndpoint, QueryOutcome, ResolvedEndpoint
from .request import PlatformClient
from .resolver import database_http_url, is_url, resolve
from .statements import split

logger = get_logger("session")


class SessionState(str, Enum):
    IDLE = "idle"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    EXECUTING = "executing"
    CLOSED = "closed"


def _emph(text: str, stream: TextIO) -> str:
    isatty = getattr(stream, "isatty", None)
    if isatty and isatty():
        return typer.style(text, fg=typer.colors.BLUE, bold=True)
    return text


def connection_info(ref: str, endpoint: ResolvedEndpoint, scheme: str = "https", stream: Optional[TextIO] = None) -> str:
    """Build the welcome banner printed when the interactive shell starts."""
    stream = stream or sys.stdout
    if isinstance(endpoint, KnownEndpoint):
        db = endpoint.database
        msg = f"Connected to {_emph(db.name, stream)} at {database_http_url(db, scheme)}"
    else:
        msg = f"Connected to {mask_url_credentials(ref)}"

    msg += "\n\n"
    msg += "Welcome to the dbshell SQL shell!\n\n"
    msg += 'Type ".quit" to exit the shell and ".help" to list all available commands.\n\n'
    return msg


class SessionController:
    """Drives one ``shell`` invocation from reference to closed session.

    Args:
        client: Platform API client used for the directory listing and
            credential issuance.
        dispatcher: Sends statement batches to the resolved endpoint.
        config: Loaded configuration; defaults to the global one.
        spinner: Progress indicator; created on stderr when omitted.
    """

    def __init__(
        self,
        client: PlatformClient,
        dispatcher: Optional[QueryDispatcher] = None,
        config=None,
        in_f: Optional[TextIO] = None,
        out_f: Optional[TextIO] = None,
        err_f: Optional[TextIO] = None,
        spinner: Optional[Spinner] = None,
    ):
        self.client = client
        self.config = config or default_config
        self.dispatcher = dispatcher or QueryDispatcher(
            timeout=self.config.shell.get("http_timeout", 60)
        )
        self.in_f = in_f or sys.stdin
        self.out_f = out_f or sys.stdout
        self.err_f = err_f or sys.stderr
        self.spinner = spinner or Spinner("Connecting to database", stream=self.err_f)
        self.notifier = ConnectionNotifier(self._on_connected)
        self.state = SessionState.IDLE
        self.endpoint: Optional[ResolvedEndpoint] = None

    # -- state --------------------------------------------------------------------

    def _transition(self, state: SessionState) -> None:
        logger.debug(f"Session state {self.state.value} -> {state.value}")
        self.state = state

    def _on_connected(self) -> None:
        self.spinner.stop()
        self._transition(SessionState.CONNECTED)

    # -- resolution -----------------------------------------------------------------

    def _known_databases(self, ref: str) -> List[DatabaseRef]:
        # an external URL is usable without a platform login
        if is_url(ref) and not self.client.is_authenticated:
            logger.debug("No platform token; skipping directory lookup for URL reference")
            return []
        return self.client.list_databases()

    def _issue_token(self, db: DatabaseRef) -> Credential:
        return self.client.issue_token(
            db,
            ttl=self.config.shell.get("token_expiration", "1d"),
            read_only=bool(self.config.shell.get("read_only", False)),
        )

    def resolve_endpoint(self, ref: str) -> ResolvedEndpoint:
        """Resolve `ref` against the directory listing and issue a token if needed."""
        return resolve(
            ref,
            self._known_databases(ref),
            self._issue_token,
            scheme=self.config.shell.get("scheme", "https"),
        )

    # -- dispatch -------------------------------------------------------------------

    def execute(
        self,
        endpoint: ResolvedEndpoint,
        statements: Sequence[str],
        cancel: Optional[CancelToken] = None,
    ) -> QueryOutcome:
        """Dispatch a batch, tracking the executing state around the call."""
        previous = self.state
        self._transition(SessionState.EXECUTING)
        try:
            outcome = self.dispatcher.execute(endpoint, statements, cancel=cancel)
        except Exception:
            self._transition(previous)
            raise
        self._transition(previous)
        # any answer from the server proves connectivity
        self.notifier.fire()
        return outcome

    def _shell_config(self, ref: str, endpoint: ResolvedEndpoint) -> ShellConfig:
        if isinstance(endpoint, KnownEndpoint):
            history_key = endpoint.database.name
        else:
            history_key = endpoint.url.split("?", 1)[0]
        return ShellConfig(
            db_path=endpoint.url,
            endpoint=endpoint,
            in_f=self.in_f,
            out_f=self.out_f,
            err_f=self.err_f,
            history_mode=HistoryMode.PER_DATABASE,
            history_name="dbshell",
            history_key=history_key,
            welcome_message=connection_info(
                ref, endpoint, self.config.shell.get("scheme", "https"), self.out_f
            ),
            after_db_connection_callback=self.notifier.fire,
            dispatcher=self,
            max_display_rows=self.config.shell.get("max_display_rows", 100),
        )

    # -- entry points ---------------------------------------------------------------

    def run(self, ref: str, sql: Optional[str] = None) -> Optional[QueryOutcome]:
        """Run a single-shot statement (`sql` given) or an interactive session.

        Returns the outcome of a single-shot run, None for interactive runs.

        Raises:
            SQLSyntaxError: If `sql` has an open quote or comment; raised
                before any network call.
            ShellError: On any failure that ends the invocation.
        """
        single_shot = sql is not None
        if single_shot and not sql:
            raise ValueError("no SQL command to execute")
        if single_shot:
            # malformed SQL fails before any directory lookup or token request
            split(sql)

        self._transition(SessionState.CONNECTING)
        if not single_shot:
            self.spinner.start()
        try:
            self.endpoint = self.resolve_endpoint(ref)
            shell_config = self._shell_config(ref, self.endpoint)
            if single_shot:
                outcome = run_shell_line(shell_config, sql)
                if isinstance(outcome, RemoteError):
                    logger.info(f"Statement failed: {outcome.message}")
                return outcome
            run_shell(shell_config)
            return None
        finally:
            if not self.notifier.fired:
                self.spinner.stop()
            self._transition(SessionState.CLOSED)
