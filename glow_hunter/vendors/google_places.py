"""Client utilities for the Google Places API."""

import logging
import time
from typing import Any, Dict, List, Optional

import requests

from glow_hunter.core.config import MIN_PAGE_DELAY_SECONDS
from glow_hunter.core.errors import UpstreamDetailError, UpstreamSearchError
from glow_hunter.core.models import PlaceDetail, RawPlaceRecord
from glow_hunter.etl.transform import to_place_detail, to_raw_record

logger = logging.getLogger(__name__)
_SESSION = requests.Session()
_BASE_URL = "https://maps.googleapis.com/maps/api/place"

REQUEST_TIMEOUT = 10
DETAIL_FIELDS = ",".join(
    [
        "place_id",
        "name",
        "formatted_address",
        "international_phone_number",
        "formatted_phone_number",
        "website",
        "geometry/location",
    ]
)

_SEARCH_OK = {"OK", "ZERO_RESULTS"}
_RATE_LIMITED = "OVER_QUERY_LIMIT"


def text_search(
    query: str,
    api_key: str,
    pagetoken: Optional[str] = None,
    language: Optional[str] = None,
) -> Dict[str, Any]:
    """Fetch one Text Search page and return the raw payload, whatever its status."""
    if pagetoken:
        # Follow-up pages are addressed by the token alone.
        params = {"pagetoken": pagetoken, "key": api_key}
    else:
        params = {"query": query, "key": api_key}
        if language:
            params["language"] = language
    try:
        response = _SESSION.get(f"{_BASE_URL}/textsearch/json", params=params, timeout=REQUEST_TIMEOUT)
        response.raise_for_status()
        payload = response.json()
    except (requests.RequestException, ValueError) as exc:
        logger.error("text_search transport failure for query=%s: %s", query, exc)
        raise UpstreamSearchError("HTTP_ERROR", str(exc)) from exc
    if not isinstance(payload, dict):
        raise UpstreamSearchError("INVALID_PAYLOAD", "Text Search returned a non-object payload")
    return payload


def search_all(
    query: str,
    api_key: str,
    *,
    language: Optional[str] = None,
    max_pages: int = 5,
    page_delay: float = 2.2,
) -> List[RawPlaceRecord]:
    """Walk every Text Search page for ``query`` and return the flattened results.

    A rate-limited status on a follow-up page ends pagination with what was already
    collected; on the first page it is fatal like any other non-success status.
    """
    records: List[RawPlaceRecord] = []
    page_token: Optional[str] = None
    pages = 0

    while pages < max_pages:
        payload = text_search(query, api_key, pagetoken=page_token, language=language)
        pages += 1
        status = payload.get("status")

        if status not in _SEARCH_OK:
            if status == _RATE_LIMITED and page_token:
                logger.warning("text_search rate limited on page %d for query=%s; stopping early", pages, query)
                break
            logger.error("text_search failed: status=%s, error_message=%s", status, payload.get("error_message"))
            raise UpstreamSearchError(status or "UNKNOWN", payload.get("error_message"))

        results = payload.get("results") or []
        for result in results:
            if isinstance(result, dict):
                records.append(to_raw_record(result))
        logger.info("Fetched %d results on page %d for query=%s", len(results), pages, query)

        page_token = payload.get("next_page_token")
        if not page_token:
            break
        if pages >= max_pages:
            logger.info("Reached page cap (%d) for query=%s", max_pages, query)
            break
        # Tokens are not valid until a short while after they are issued.
        time.sleep(max(page_delay, MIN_PAGE_DELAY_SECONDS))

    return records


def place_details(place_id: str, api_key: str, language: Optional[str] = None) -> Dict[str, Any]:
    params = {"place_id": place_id, "key": api_key, "fields": DETAIL_FIELDS}
    if language:
        params["language"] = language
    try:
        response = _SESSION.get(f"{_BASE_URL}/details/json", params=params, timeout=REQUEST_TIMEOUT)
        response.raise_for_status()
        payload = response.json()
    except (requests.RequestException, ValueError) as exc:
        raise UpstreamDetailError(place_id, "HTTP_ERROR", str(exc)) from exc
    if not isinstance(payload, dict):
        raise UpstreamDetailError(place_id, "INVALID_PAYLOAD")
    status = payload.get("status")
    if status != "OK":
        raise UpstreamDetailError(place_id, status or "UNKNOWN", payload.get("error_message"))
    return payload.get("result") or {}


def fetch_details(place_id: str, api_key: str, language: Optional[str] = None) -> PlaceDetail:
    """Best-effort enrichment: any failure degrades to an empty detail."""
    try:
        result = place_details(place_id, api_key, language=language)
    except UpstreamDetailError as exc:
        logger.warning("Failed to fetch details for %s: %s", place_id, exc)
        return PlaceDetail.empty(place_id)
    return to_place_detail(place_id, result)
