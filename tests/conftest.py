import logging
from datetime import timedelta
from unittest.mock import MagicMock

import pytest

from dbshell.models import Credential, DatabaseRef


@pytest.fixture(autouse=True)
def enable_dbshell_logger_propagation():
    """
    Enable log propagation for the dbshell logger during tests.

    The dbshell logger has propagate=False by default (set in context.py),
    which prevents pytest's caplog fixture from capturing log messages.
    """
    dbshell_logger = logging.getLogger("dbshell")
    original_propagate = dbshell_logger.propagate
    dbshell_logger.propagate = True
    yield
    dbshell_logger.propagate = original_propagate


@pytest.fixture
def known_databases():
    return [
        DatabaseRef(name="my-db", hostname="my-db-org.example.io", id="db-1"),
        DatabaseRef(name="other-db", hostname="other-db-org.example.io", id="db-2"),
    ]


@pytest.fixture
def issue_token():
    """Token issuer that records its calls."""

    def _issue(db):
        return Credential(token=f"token-for-{db.name}", ttl=timedelta(days=1), database=db)

    return MagicMock(side_effect=_issue)


@pytest.fixture
def make_response():
    """Factory for MagicMocks shaped like a requests.Response."""

    def _make(status_code=200, payload=None, text=None):
        response = MagicMock()
        response.status_code = status_code
        if payload is None and text is not None:
            response.json.side_effect = ValueError("not json")
            response.text = text
        else:
            response.json.return_value = payload
            response.text = text if text is not None else str(payload)
        return response

    return _make
