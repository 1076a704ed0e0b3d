"""Shared fakes for the zaros-checkin tests."""

import sys
from datetime import datetime, timezone
from pathlib import Path

import pytest
import requests

sys.path.insert(0, str(Path(__file__).parent.parent))

from zaros_checkin.config import CheckinConfig


class FakeResponse:
    def __init__(
        self, status_code=200, json_body=None, text=None, reason="", headers=None
    ):
        self.status_code = status_code
        self.headers = dict(headers or {})
        self._json_body = json_body
        self.text = text if text is not None else ""
        self.reason = reason

    @property
    def ok(self):
        return 200 <= self.status_code < 400

    def json(self):
        if self._json_body is None:
            raise ValueError("No JSON object could be decoded")
        return self._json_body


class FakeSession:
    """Records requests and answers from a {(METHOD, path): response} map.

    A value may be a FakeResponse or an exception instance to raise.
    """

    def __init__(self, routes=None):
        self.headers = {}
        self.routes = dict(routes or {})
        self.calls = []

    def request(self, method, url, **kwargs):
        self.calls.append((method, url, kwargs))
        path = "/" + url.split("://", 1)[-1].split("/", 1)[-1]
        answer = self.routes.get((method, path))
        if answer is None:
            return FakeResponse(404, text="not found")
        if isinstance(answer, Exception):
            raise answer
        return answer

    def paths(self, method=None):
        return [
            "/" + url.split("://", 1)[-1].split("/", 1)[-1]
            for m, url, _ in self.calls
            if method is None or m == method
        ]


class FixedClock:
    def __init__(self, now):
        self.now = now

    def __call__(self):
        return self.now


@pytest.fixture
def now():
    return datetime(2025, 3, 1, 8, 0, 0, tzinfo=timezone.utc)


@pytest.fixture
def clock(now):
    return FixedClock(now)


@pytest.fixture
def config(tmp_path):
    return CheckinConfig(
        base_url="https://api.example.test",
        session_token="token-123",
        wallet_address="0x1234567890abcdef1234567890abcdef12345678",
        account_id="42",
        state_file=str(tmp_path / "last-claim.json"),
        log_file=str(tmp_path / "checkin-log.txt"),
    )


@pytest.fixture
def network_error():
    return requests.ConnectionError("connection refused")
