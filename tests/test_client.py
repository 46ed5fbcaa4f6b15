"""Tests for the API client's token handling."""

import os
import sys
from pathlib import Path

import pytest
import requests

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

os.environ.setdefault("DATA_DIR", str(ROOT / "data"))

from savings_tracker.client import ApiError, AuthenticationRequired, SavingsClient, StaticTokenProvider


def _response(status_code, body=b""):
    response = requests.Response()
    response.status_code = status_code
    response._content = body
    return response


class RecordingSession:
    """Stands in for ``requests.Session`` and replays canned responses."""

    def __init__(self, responses):
        self.responses = list(responses)
        self.calls = []

    def request(self, method, url, headers=None, timeout=None, **kwargs):
        self.calls.append({"method": method, "url": url, "headers": dict(headers or {}), **kwargs})
        return self.responses.pop(0)


def test_retries_once_with_refreshed_token():
    session = RecordingSession([_response(401, b'{"error": "Unauthorized"}'), _response(200, b"[]")])
    tokens = StaticTokenProvider("stale", refresh=lambda: "fresh")
    client = SavingsClient("https://savings.test/", tokens, session=session)

    assert client.list_shares("tracker-1") == []

    assert [c["headers"]["Authorization"] for c in session.calls] == ["Bearer stale", "Bearer fresh"]
    assert session.calls[0]["url"] == "https://savings.test/api/tracker-shares"
    assert session.calls[0]["params"] == {"trackerId": "tracker-1"}


def test_second_401_raises_authentication_required():
    session = RecordingSession([_response(401, b'{"error": "Unauthorized"}')] * 2)
    client = SavingsClient("https://savings.test", StaticTokenProvider("stale", refresh=lambda: "still-bad"), session=session)

    with pytest.raises(AuthenticationRequired):
        client.list_trackers()
    assert len(session.calls) == 2


def test_no_refresh_callback_does_not_retry():
    session = RecordingSession([_response(401, b'{"error": "Unauthorized"}')])
    client = SavingsClient("https://savings.test", StaticTokenProvider("stale"), session=session)

    with pytest.raises(AuthenticationRequired):
        client.list_trackers()
    assert len(session.calls) == 1


def test_error_body_is_surfaced():
    session = RecordingSession([_response(409, b'{"error": "Tracker already shared with this user"}')])
    client = SavingsClient("https://savings.test", StaticTokenProvider("token"), session=session)

    with pytest.raises(ApiError) as exc_info:
        client.share_tracker("tracker-1", email="bob@example.com")

    assert exc_info.value.status_code == 409
    assert exc_info.value.message == "Tracker already shared with this user"
    assert session.calls[0]["json"]["sharedWithEmail"] == "bob@example.com"
    assert session.calls[0]["json"]["permission"] == "read"
