import pytest
import requests

import image_search
from config import Settings
from image_search import placeholder_image, search_photo


class FakeResponse:
    def __init__(self, status_code=200, payload=None, text=""):
        self.status_code = status_code
        self._payload = payload
        self.text = text

    def json(self):
        if self._payload is None:
            raise ValueError("no json")
        return self._payload


@pytest.fixture
def with_key(monkeypatch):
    monkeypatch.setattr(image_search, "get_settings", lambda: Settings(PEXELS_API_KEY="test-key"))


@pytest.fixture
def calls(monkeypatch):
    recorded = []

    def install(response):
        def fake_get(url, params=None, headers=None, timeout=None):
            recorded.append({"url": url, "params": params, "headers": headers})
            if isinstance(response, Exception):
                raise response
            return response

        monkeypatch.setattr(image_search.requests, "get", fake_get)
        return recorded

    return install


def test_placeholder_image_encodes_text():
    assert placeholder_image("10k Steps / Day") == (
        "https://placehold.co/600x400.png?text=10k%20Steps%20%2F%20Day"
    )
    assert placeholder_image("") == "https://placehold.co/600x400.png?text=Challenge"


def test_no_api_key_returns_none(monkeypatch, calls):
    monkeypatch.setattr(image_search, "get_settings", lambda: Settings(PEXELS_API_KEY=None))
    recorded = calls(FakeResponse())
    assert search_photo("running") is None
    assert recorded == []


def test_blank_query_returns_none(with_key, calls):
    recorded = calls(FakeResponse())
    assert search_photo("   ") is None
    assert recorded == []


def test_prefers_large_photo(with_key, calls):
    recorded = calls(
        FakeResponse(payload={"photos": [{"src": {"large": "L", "medium": "M", "original": "O"}}]})
    )
    assert search_photo("morning run") == "L"
    assert recorded[0]["params"] == {"query": "morning run", "per_page": 1, "orientation": "landscape"}
    assert recorded[0]["headers"] == {"Authorization": "test-key"}


def test_falls_back_to_medium_then_original(with_key, calls):
    calls(FakeResponse(payload={"photos": [{"src": {"original": "O"}}]}))
    assert search_photo("yoga") == "O"


def test_empty_result_returns_none(with_key, calls):
    calls(FakeResponse(payload={"photos": []}))
    assert search_photo("nothing matches") is None


def test_http_error_returns_none(with_key, calls):
    calls(FakeResponse(status_code=401, text="unauthorized"))
    assert search_photo("running") is None


def test_network_error_returns_none(with_key, calls):
    calls(requests.ConnectionError("offline"))
    assert search_photo("running") is None


def test_non_json_body_returns_none(with_key, calls):
    calls(FakeResponse(payload=None))
    assert search_photo("running") is None
