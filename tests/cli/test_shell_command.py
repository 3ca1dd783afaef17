"""Tests for dbshell CLI commands."""

import json
from unittest import mock

import pytest
from typer.testing import CliRunner

from dbshell.cli.main import OutputFormat, _get_version, app, complete_database_names
from dbshell.exceptions import (
    AuthError,
    RemoteError,
    SQLSyntaxError,
    TransportError,
    UnresolvedDatabaseError,
)
from dbshell.models import DatabaseRef, ResultSet

runner = CliRunner()


@pytest.fixture
def platform_client(known_databases):
    client = mock.MagicMock()
    client.list_databases.return_value = known_databases
    with mock.patch("dbshell.request.PlatformClient.from_config", return_value=client):
        yield client


@pytest.fixture
def controller(platform_client):
    with mock.patch("dbshell.session.SessionController") as controller_cls:
        yield controller_cls.return_value


class TestVersionCommand:
    """Tests for the version command."""

    def test_version_displays_dbshell_version(self):
        result = runner.invoke(app, ["version"])
        assert result.exit_code == 0
        assert f"dbshell version: {_get_version()}" in result.stdout

    def test_version_displays_library_versions(self):
        result = runner.invoke(app, ["version"])
        assert "requests version:" in result.stdout
        assert "sqlparse version:" in result.stdout


class TestShellCommand:
    """Tests for the shell command."""

    def test_single_shot(self, controller):
        controller.run.return_value = ResultSet(columns=["x"], rows=[[1]])

        result = runner.invoke(app, ["shell", "my-db", "select 1"])

        assert result.exit_code == 0
        controller.run.assert_called_once_with("my-db", "select 1")

    def test_interactive(self, controller):
        controller.run.return_value = None

        result = runner.invoke(app, ["shell", "my-db"])

        assert result.exit_code == 0
        controller.run.assert_called_once_with("my-db", None)

    def test_remote_error_exits_cleanly(self, controller):
        controller.run.return_value = RemoteError("no such table: t")

        result = runner.invoke(app, ["shell", "my-db", "select * from t"])

        assert result.exit_code == 0

    @pytest.mark.parametrize(
        "error",
        [
            UnresolvedDatabaseError("missing-db"),
            AuthError("token rejected"),
            TransportError("connection refused"),
            SQLSyntaxError("unterminated string literal: missing closing '"),
        ],
    )
    def test_shell_errors_exit_with_failure(self, controller, error):
        controller.run.side_effect = error

        result = runner.invoke(app, ["shell", "missing-db", "select 1"])

        assert result.exit_code == 1
        assert str(error) in result.output

    def test_error_output_is_sanitized(self, controller):
        controller.run.side_effect = TransportError("cannot reach https://h?jwt=secret")

        result = runner.invoke(app, ["shell", "my-db", "select 1"])

        assert result.exit_code == 1
        assert "secret" not in result.output
        assert "jwt=****" in result.output

    def test_empty_sql_is_usage_error(self, controller):
        result = runner.invoke(app, ["shell", "my-db", ""])

        assert result.exit_code == 2
        controller.run.assert_not_called()

    def test_missing_reference(self, controller):
        result = runner.invoke(app, ["shell"])
        assert result.exit_code == 2

    def test_keyboard_interrupt(self, controller):
        controller.run.side_effect = KeyboardInterrupt

        result = runner.invoke(app, ["shell", "my-db"])

        assert result.exit_code == 130


class TestListCommand:
    """Tests for the list command."""

    def test_table_output(self, platform_client):
        result = runner.invoke(app, ["list"])

        assert result.exit_code == 0
        assert "my-db" in result.stdout
        assert "other-db-org.example.io" in result.stdout

    def test_json_output(self, platform_client):
        result = runner.invoke(app, ["list", "--format", OutputFormat.JSON.value])

        assert result.exit_code == 0
        data = json.loads(result.stdout)
        assert data[0] == {"name": "my-db", "hostname": "my-db-org.example.io", "id": "db-1"}

    def test_no_databases(self, platform_client):
        platform_client.list_databases.return_value = []

        result = runner.invoke(app, ["list"])

        assert "No databases found." in result.stdout

    def test_listing_failure(self, platform_client):
        platform_client.list_databases.side_effect = AuthError("no platform access token configured")

        result = runner.invoke(app, ["list"])

        assert result.exit_code == 1
        assert "no platform access token" in result.output


class TestCompletion:
    """Tests for database name completion."""

    def test_completes_by_prefix(self, platform_client):
        assert complete_database_names("my") == ["my-db"]
        assert complete_database_names("") == ["my-db", "other-db"]

    def test_failure_yields_no_candidates(self, platform_client):
        platform_client.list_databases.side_effect = TransportError("offline")
        assert complete_database_names("my") == []

    def test_listing_order_is_kept(self, platform_client):
        platform_client.list_databases.return_value = [
            DatabaseRef(name="b", hostname="b.example.io"),
            DatabaseRef(name="a", hostname="a.example.io"),
        ]
        assert complete_database_names("") == ["b", "a"]
