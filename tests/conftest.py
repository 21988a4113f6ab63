"""
Shared fixtures for the playermap test suite.
"""

from __future__ import annotations

from typing import Any, Optional

import pytest

from playermap.db.init_db import PlayerMappingDB
from playermap.errors import AuthorizationError, SourceFetchError
from playermap.identity.candidate_index import SourceRecord
from playermap.lib.auth import Principal

VALID_TOKEN = "reviewer-token"


def rec(id: str, name: str, position: Optional[str] = None, team: Optional[str] = None) -> SourceRecord:
    return SourceRecord(id=id, display_name=name, position=position, team=team)


class FakeSource:
    """Record source returning a fixed list, or raising on demand."""

    def __init__(self, records=None, name: str = "fake", error: Optional[str] = None):
        self.name = name
        self.records = list(records or [])
        self.error = error
        self.calls = 0

    def fetch_records(self):
        self.calls += 1
        if self.error:
            raise SourceFetchError(self.name, self.error)
        return list(self.records)


class FakeVerifier:
    """Accepts VALID_TOKEN (with or without a Bearer prefix)."""

    def __init__(self):
        self.calls = 0

    def verify(self, token):
        self.calls += 1
        if token and token.replace("Bearer ", "") == VALID_TOKEN:
            return Principal(user_id="reviewer-1", email="reviewer@example.com")
        raise AuthorizationError("Invalid or expired token")


class FakeResponse:
    def __init__(self, status_code: int = 200, payload: Any = None, json_error: bool = False):
        self.status_code = status_code
        self._payload = payload
        self._json_error = json_error

    def json(self):
        if self._json_error:
            raise ValueError("Expecting value")
        return self._payload

    def raise_for_status(self):
        import requests

        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} Error")


class FakeSession:
    """Stands in for requests.Session; records calls and replays a response."""

    def __init__(self, response: Optional[FakeResponse] = None, error: Optional[Exception] = None):
        self.response = response or FakeResponse()
        self.error = error
        self.calls: list[dict[str, Any]] = []

    def _record(self, method, url, headers, timeout):
        self.calls.append({
            "method": method, "url": url, "headers": headers or {}, "timeout": timeout,
        })
        if self.error:
            raise self.error
        return self.response

    def get(self, url, headers=None, timeout=None):
        return self._record("GET", url, headers, timeout)

    def head(self, url, headers=None, timeout=None, allow_redirects=False):
        return self._record("HEAD", url, headers, timeout)


@pytest.fixture
def store(tmp_path):
    """Initialized mapping database in a temp directory."""
    db = PlayerMappingDB(tmp_path / "mapping.sqlite")
    db.initialize()
    return db


@pytest.fixture
def verifier():
    return FakeVerifier()


@pytest.fixture
def sleeper_records():
    return [
        rec("4046", "Pat Mahomes", "QB", "KC"),
        rec("4983", "DJ Moore", "WR", "CHI"),
        rec("5848", "Marquise Browne", "WR", "ARI"),
        rec("7001", "Kenny Smith", "RB", "NYJ"),
        rec("7002", "Kenny Lee", "LB", "HOU"),
    ]


@pytest.fixture
def nflverse_records():
    return [
        rec("00-0033873", "Patrick Mahomes", "QB", "KC"),
        rec("00-0035704", "D.J. Moore", "WR", "CHI"),
        rec("00-0035662", "Marquise Brown", "WR", "ARI"),
        rec("00-0099001", "John Smith", "RB", "NYJ"),
        rec("00-0099002", "Zeke Unknownperson", "TE", "DAL"),
    ]
