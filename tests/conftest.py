import json

import pytest

from jamf_update_lib import api_request, convergence, pkg_upload

JAMF_URL = "https://example.jamfcloud.com"
TOKEN = "test-token"


class FakeResponse(object):
    def __init__(self, status_code=200, json_data=None, text=None):
        self.status_code = status_code
        self._json = json_data
        if text is None:
            text = json.dumps(json_data) if json_data is not None else ""
        self.text = text

    def json(self):
        if self._json is None:
            raise ValueError("No JSON object could be decoded")
        return self._json


class FakeJamf(object):
    """Stands in for api_request.request. Responses are queued per method and URL
    path suffix; the last queued response of a route repeats once the others are
    used up."""

    def __init__(self):
        self.routes = []
        self.calls = []

    def add(self, method, path, *responses):
        self.routes.append((method, path, list(responses)))

    def __call__(self, method, url, **kwargs):
        self.calls.append((method, url, kwargs))
        url_path = url.split("?")[0]
        for route_method, path, responses in self.routes:
            if route_method == method and url_path.endswith(path):
                response = responses.pop(0) if len(responses) > 1 else responses[0]
                if isinstance(response, Exception):
                    raise response
                return response
        raise AssertionError(f"unexpected request: {method} {url}")

    def calls_to(self, method, path):
        return [
            call
            for call in self.calls
            if call[0] == method and call[1].split("?")[0].endswith(path)
        ]


@pytest.fixture
def fake_jamf(monkeypatch):
    fake = FakeJamf()
    monkeypatch.setattr(api_request, "request", fake)
    return fake


@pytest.fixture
def sleeps(monkeypatch):
    """records every sleep in the upload and polling loops instead of waiting"""
    recorded = []
    monkeypatch.setattr(pkg_upload, "sleep", recorded.append)
    monkeypatch.setattr(convergence, "sleep", recorded.append)
    return recorded


@pytest.fixture
def pkg_file(tmp_path):
    path = tmp_path / "Firefox.pkg"
    path.write_bytes(b"new installer payload")
    return path
