"""Tests for the platform API client."""

from datetime import timedelta
from unittest.mock import MagicMock

import pytest
import requests
from box import Box

from dbshell.exceptions import AuthError, DecodeError, TransportError
from dbshell.models import DatabaseRef
from dbshell.request import PlatformClient, parse_expiration


@pytest.fixture
def session():
    return MagicMock(spec=requests.Session)


@pytest.fixture
def client(session):
    return PlatformClient("https://api.example.io/", "platform-token", session=session, timeout=7)


class TestParseExpiration:
    """Tests for token expiration strings."""

    @pytest.mark.parametrize(
        "value, expected",
        [
            ("30s", timedelta(seconds=30)),
            ("15m", timedelta(minutes=15)),
            ("12h", timedelta(hours=12)),
            ("1d", timedelta(days=1)),
            ("2w", timedelta(weeks=2)),
        ],
    )
    def test_units(self, value, expected):
        assert parse_expiration(value) == expected

    @pytest.mark.parametrize("value", ["", "1", "d", "1y", "-1d"])
    def test_invalid(self, value):
        with pytest.raises(ValueError, match="Invalid token expiration"):
            parse_expiration(value)


class TestListDatabases:
    """Tests for the directory listing."""

    def test_returns_databases_in_listing_order(self, client, session, make_response):
        session.get.return_value = make_response(
            payload={
                "databases": [
                    {"Name": "b-db", "Hostname": "b-db-org.example.io", "DbId": "2"},
                    {"Name": "a-db", "Hostname": "a-db-org.example.io", "DbId": "1"},
                ]
            }
        )

        databases = client.list_databases()

        assert [db.name for db in databases] == ["b-db", "a-db"]
        assert databases[0] == DatabaseRef(name="b-db", hostname="b-db-org.example.io", id="2")
        args, kwargs = session.get.call_args
        assert args[0] == "https://api.example.io/v1/databases"
        assert kwargs["headers"] == {"Authorization": "Bearer platform-token"}
        assert kwargs["timeout"] == 7

    def test_access_denied(self, client, session, make_response):
        session.get.return_value = make_response(status_code=401, payload={})

        with pytest.raises(AuthError, match="access denied"):
            client.list_databases()

    def test_server_error(self, client, session, make_response):
        session.get.return_value = make_response(status_code=500, text="oops")

        with pytest.raises(TransportError, match="500"):
            client.list_databases()

    def test_malformed_listing(self, client, session, make_response):
        session.get.return_value = make_response(payload={"items": []})

        with pytest.raises(DecodeError):
            client.list_databases()

    def test_network_failure_is_transport_error(self, client, session):
        session.get.side_effect = requests.ConnectionError("refused")

        with pytest.raises(TransportError, match="refused"):
            client.list_databases()

    def test_requires_platform_token(self, session):
        client = PlatformClient("https://api.example.io", None, session=session)

        assert not client.is_authenticated
        with pytest.raises(AuthError, match="no platform access token"):
            client.list_databases()
        session.get.assert_not_called()


class TestIssueToken:
    """Tests for per-database credential issuance."""

    def test_issues_full_access_token(self, client, session, make_response):
        session.post.return_value = make_response(payload={"jwt": "db-token"})
        db = DatabaseRef(name="my-db", hostname="my-db-org.example.io")

        credential = client.issue_token(db)

        assert credential.token == "db-token"
        assert credential.ttl == timedelta(days=1)
        assert credential.read_only is False
        assert credential.database == db
        args, kwargs = session.post.call_args
        assert args[0] == "https://api.example.io/v1/databases/my-db/auth/tokens"
        assert kwargs["params"] == {"expiration": "1d", "authorization": "full-access"}

    def test_issues_read_only_token(self, client, session, make_response):
        session.post.return_value = make_response(payload={"jwt": "ro-token"})
        db = DatabaseRef(name="my-db", hostname="my-db-org.example.io")

        credential = client.issue_token(db, ttl="2h", read_only=True)

        assert credential.read_only is True
        assert credential.ttl == timedelta(hours=2)
        assert session.post.call_args.kwargs["params"]["authorization"] == "read-only"

    def test_token_not_in_repr(self, client, session, make_response):
        session.post.return_value = make_response(payload={"jwt": "db-token"})
        credential = client.issue_token(DatabaseRef(name="my-db", hostname="h.example.io"))
        assert "db-token" not in repr(credential)

    def test_rejects_non_database_argument(self, client):
        with pytest.raises(TypeError):
            client.issue_token("my-db")

    def test_rejected_request(self, client, session, make_response):
        session.post.return_value = make_response(status_code=403, text="forbidden")

        with pytest.raises(AuthError, match="could not get token for database my-db"):
            client.issue_token(DatabaseRef(name="my-db", hostname="h.example.io"))

    def test_network_failure_is_auth_error(self, client, session):
        session.post.side_effect = requests.ConnectionError("refused")

        with pytest.raises(AuthError):
            client.issue_token(DatabaseRef(name="my-db", hostname="h.example.io"))

    def test_malformed_response(self, client, session, make_response):
        session.post.return_value = make_response(payload={"token": "x"})

        with pytest.raises(AuthError, match="malformed response"):
            client.issue_token(DatabaseRef(name="my-db", hostname="h.example.io"))


def test_from_config(session):
    config = Box({"api": {"base_url": "https://api.example.io", "token": "", "timeout": 12}})

    client = PlatformClient.from_config(config, session=session)

    assert client.base_url == "https://api.example.io"
    assert client.access_token is None
    assert client.timeout == 12
    assert client.session is session
