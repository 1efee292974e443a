import pytest
import requests

from glow_hunter.core.errors import UpstreamSearchError
from glow_hunter.core.models import PlaceDetail
from glow_hunter.vendors import google_places


class DummyResponse:
    def __init__(self, status_code=200, payload=None):
        self.status_code = status_code
        self._payload = payload or {}

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"http error {self.status_code}")

    def json(self):
        return self._payload


class DummySession:
    def __init__(self):
        self.calls = []
        self.responses = []

    def get(self, url, params=None, timeout=None):
        self.calls.append((url, dict(params or {}), timeout))
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response


@pytest.fixture(autouse=True)
def patch_session(monkeypatch):
    session = DummySession()
    monkeypatch.setattr(google_places, "_SESSION", session)
    return session


@pytest.fixture
def sleeps(monkeypatch):
    recorded = []
    monkeypatch.setattr(google_places.time, "sleep", recorded.append)
    return recorded


def _page(ids, token=None, status="OK"):
    payload = {
        "status": status,
        "results": [
            {
                "place_id": pid,
                "name": f"Place {pid}",
                "formatted_address": f"Calle {pid}",
                "geometry": {"location": {"lat": 4.6, "lng": -74.1}},
            }
            for pid in ids
        ],
    }
    if token:
        payload["next_page_token"] = token
    return DummyResponse(payload=payload)


def test_text_search_first_page_params(patch_session):
    patch_session.responses = [DummyResponse(payload={"status": "OK", "results": []})]
    payload = google_places.text_search("barberías Bogotá Colombia", "key", language="es")
    assert payload["status"] == "OK"
    url, params, timeout = patch_session.calls[0]
    assert "textsearch" in url
    assert params == {"query": "barberías Bogotá Colombia", "key": "key", "language": "es"}
    assert timeout == 10


def test_text_search_follow_up_page_uses_token_only(patch_session):
    patch_session.responses = [DummyResponse(payload={"status": "OK", "results": []})]
    google_places.text_search("pizza", "key", pagetoken="tok", language="es")
    _, params, _ = patch_session.calls[0]
    assert params == {"pagetoken": "tok", "key": "key"}


def test_text_search_transport_error(patch_session):
    patch_session.responses = [DummyResponse(status_code=503)]
    with pytest.raises(UpstreamSearchError) as excinfo:
        google_places.text_search("pizza", "key")
    assert excinfo.value.status == "HTTP_ERROR"


def test_search_all_concatenates_pages_with_delay(patch_session, sleeps):
    patch_session.responses = [
        _page(["A", "B"], token="t1"),
        _page(["C"], token="t2"),
        _page(["D"]),
    ]

    records = google_places.search_all("q", "key", max_pages=5, page_delay=2.5)

    assert [r.place_id for r in records] == ["A", "B", "C", "D"]
    assert len(patch_session.calls) == 3
    assert [c[1].get("pagetoken") for c in patch_session.calls] == [None, "t1", "t2"]
    assert sleeps == [2.5, 2.5]


def test_search_all_respects_page_cap(patch_session, sleeps):
    patch_session.responses = [_page(["A"], token="t1"), _page(["B"], token="t2"), _page(["C"], token="t3")]

    records = google_places.search_all("q", "key", max_pages=2, page_delay=2.0)

    assert [r.place_id for r in records] == ["A", "B"]
    assert len(patch_session.calls) == 2
    assert sleeps == [2.0]


def test_search_all_never_waits_less_than_minimum(patch_session, sleeps):
    patch_session.responses = [_page(["A"], token="t1"), _page(["B"])]

    google_places.search_all("q", "key", page_delay=0.1)

    assert sleeps == [2.0]


def test_search_all_zero_results(patch_session, sleeps):
    patch_session.responses = [DummyResponse(payload={"status": "ZERO_RESULTS", "results": []})]

    assert google_places.search_all("q", "key") == []
    assert sleeps == []


def test_search_all_fatal_status(patch_session, sleeps):
    patch_session.responses = [DummyResponse(payload={"status": "REQUEST_DENIED", "error_message": "bad key"})]

    with pytest.raises(UpstreamSearchError) as excinfo:
        google_places.search_all("q", "key")

    assert excinfo.value.status == "REQUEST_DENIED"
    assert excinfo.value.message == "bad key"


def test_search_all_rate_limited_first_page_is_fatal(patch_session, sleeps):
    patch_session.responses = [DummyResponse(payload={"status": "OVER_QUERY_LIMIT"})]

    with pytest.raises(UpstreamSearchError):
        google_places.search_all("q", "key")


def test_search_all_rate_limited_later_page_keeps_results(patch_session, sleeps):
    patch_session.responses = [_page(["A"], token="t1"), DummyResponse(payload={"status": "OVER_QUERY_LIMIT"})]

    records = google_places.search_all("q", "key")

    assert [r.place_id for r in records] == ["A"]


def test_search_all_maps_missing_fields_defensively(patch_session, sleeps):
    patch_session.responses = [DummyResponse(payload={"status": "OK", "results": [{"place_id": "X"}, "junk"]})]

    records = google_places.search_all("q", "key")

    assert len(records) == 1
    assert records[0].name == ""
    assert records[0].address == ""
    assert records[0].latitude is None and records[0].longitude is None


def test_fetch_details_success(patch_session):
    patch_session.responses = [
        DummyResponse(
            payload={
                "status": "OK",
                "result": {
                    "place_id": "pid",
                    "name": "Acme",
                    "formatted_address": "Main St",
                    "international_phone_number": "+57 1 234 5678",
                    "formatted_phone_number": "(1) 234 5678",
                    "website": "https://acme.co",
                    "geometry": {"location": {"lat": 4.6, "lng": -74.1}},
                },
            }
        )
    ]

    detail = google_places.fetch_details("pid", "key")

    assert detail.phone == "+57 1 234 5678"
    assert detail.website == "https://acme.co"
    assert (detail.latitude, detail.longitude) == (4.6, -74.1)
    _, params, _ = patch_session.calls[0]
    assert "international_phone_number" in params["fields"]


@pytest.mark.parametrize(
    "response",
    [
        DummyResponse(payload={"status": "NOT_FOUND"}),
        DummyResponse(status_code=500),
        requests.Timeout("slow"),
    ],
)
def test_fetch_details_degrades_to_empty(patch_session, response):
    patch_session.responses = [response]

    detail = google_places.fetch_details("pid", "key")

    assert detail == PlaceDetail.empty("pid")
