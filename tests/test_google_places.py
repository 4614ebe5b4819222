import pytest

from leadintel.core.retry import RetryPolicy
from leadintel.vendors import google_places


class DummyResponse:
    def __init__(self, status_code=200, payload=None, headers=None, text=""):
        self.status_code = status_code
        self._payload = payload or {}
        self.headers = headers or {}
        self.text = text

    def json(self):
        return self._payload


class DummySession:
    def __init__(self):
        self.calls = []
        self.responses = []

    def post(self, url, json=None, headers=None, timeout=None):
        self.calls.append((url, json, headers, timeout))
        return self.responses.pop(0)


@pytest.fixture(autouse=True)
def patch_session(monkeypatch):
    session = DummySession()
    monkeypatch.setattr(google_places, "_SESSION", session)
    return session


def page(*names, token=None):
    payload = {"places": [{"id": name, "displayName": {"text": name}} for name in names]}
    if token:
        payload["nextPageToken"] = token
    return DummyResponse(payload=payload)


def test_text_search_success(patch_session):
    patch_session.responses.append(page("Joe's Pizza"))

    payload = google_places.text_search("pizza in Miami", "key")

    assert payload["places"][0]["id"] == "Joe's Pizza"
    url, body, headers, timeout = patch_session.calls[0]
    assert url.endswith("/places:searchText")
    assert body == {"textQuery": "pizza in Miami", "pageSize": 20}
    assert headers["X-Goog-Api-Key"] == "key"
    assert "nextPageToken" in headers["X-Goog-FieldMask"]
    assert timeout == 10


def test_text_search_sends_page_token(patch_session):
    patch_session.responses.append(page())

    google_places.text_search("pizza in Miami", "key", page_token="tok")

    assert patch_session.calls[0][1]["pageToken"] == "tok"


def test_text_search_error_status(patch_session):
    patch_session.responses.append(DummyResponse(status_code=403, payload={"error": {"message": "API key invalid"}}))

    with pytest.raises(google_places.GooglePlacesError, match="403 - API key invalid"):
        google_places.text_search("pizza", "key")


def test_text_search_rate_limit_carries_retry_after(patch_session):
    patch_session.responses.append(DummyResponse(status_code=429, headers={"Retry-After": "7"}))

    with pytest.raises(google_places.GooglePlacesRateLimitError) as excinfo:
        google_places.text_search("pizza", "key")

    assert excinfo.value.retry_after == 7.0


def test_search_businesses_follows_pages(patch_session):
    patch_session.responses.extend([page("A", "B", token="t1"), page("C", token="t2"), page("D")])
    sleeps = []

    places = google_places.search_businesses("Miami, FL", "pizza", "key", sleep=sleeps.append)

    assert [place["id"] for place in places] == ["A", "B", "C", "D"]
    assert patch_session.calls[0][1]["textQuery"] == "pizza in Miami, FL"
    assert patch_session.calls[2][1]["pageToken"] == "t2"
    assert sleeps == [1.0, 1.0]


def test_search_businesses_stops_at_max_pages(patch_session):
    patch_session.responses.extend([page("A", token="t1"), page("B", token="t2")])
    sleeps = []

    places = google_places.search_businesses("Miami", "pizza", "key", max_pages=2, sleep=sleeps.append)

    assert len(places) == 2
    assert len(patch_session.calls) == 2
    assert sleeps == [1.0]


def test_search_businesses_keeps_earlier_pages_on_later_failure(patch_session):
    patch_session.responses.extend([page("A", token="t1"), DummyResponse(status_code=500, text="boom")])

    places = google_places.search_businesses("Miami", "pizza", "key", sleep=lambda _: None)

    assert [place["id"] for place in places] == ["A"]


def test_search_businesses_raises_on_first_page_failure(patch_session):
    patch_session.responses.append(DummyResponse(status_code=500, text="boom"))

    with pytest.raises(google_places.GooglePlacesError):
        google_places.search_businesses("Miami", "pizza", "key", sleep=lambda _: None)


def test_search_businesses_retries_rate_limit(patch_session):
    patch_session.responses.extend([DummyResponse(status_code=429), page("A")])
    waits = []
    policy = RetryPolicy(max_attempts=3, backoff=lambda attempt: 2.0 * attempt, sleep=waits.append)

    places = google_places.search_businesses("Miami", "pizza", "key", retry_policy=policy)

    assert [place["id"] for place in places] == ["A"]
    assert waits == [2.0]


def test_search_businesses_requires_api_key():
    with pytest.raises(google_places.GooglePlacesError):
        google_places.search_businesses("Miami", "pizza", "")
