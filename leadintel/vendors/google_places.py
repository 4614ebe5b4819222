"""Client utilities for the Google Places API (New)."""

import logging
import time
from typing import Any, Callable, Dict, List, Optional

import requests

from leadintel.core.errors import RateLimitError
from leadintel.core.retry import RetryPolicy

logger = logging.getLogger(__name__)
_SESSION = requests.Session()
_BASE_URL = "https://places.googleapis.com/v1/places"

PAGE_SIZE = 20
MAX_PAGES = 3
FIELD_MASK = ",".join(
    [
        "places.id",
        "places.displayName",
        "places.formattedAddress",
        "places.websiteUri",
        "places.nationalPhoneNumber",
        "places.rating",
        "places.userRatingCount",
        "places.primaryTypeDisplayName",
        "places.googleMapsUri",
        "places.businessStatus",
        "nextPageToken",
    ]
)


class GooglePlacesError(RuntimeError):
    """Raised when the Places API returns a non-successful response."""


class GooglePlacesRateLimitError(GooglePlacesError, RateLimitError):
    """Raised on HTTP 429 from the Places API."""


def _error_message(response: requests.Response) -> str:
    try:
        payload = response.json()
    except ValueError:
        return response.text[:200] or "Unknown error"
    return (payload.get("error") or {}).get("message") or "Unknown error"


def text_search(query: str, api_key: str, page_token: Optional[str] = None) -> Dict[str, Any]:
    body: Dict[str, Any] = {"textQuery": query, "pageSize": PAGE_SIZE}
    if page_token:
        body["pageToken"] = page_token
    headers = {
        "Content-Type": "application/json",
        "X-Goog-Api-Key": api_key,
        "X-Goog-FieldMask": FIELD_MASK,
    }
    response = _SESSION.post(f"{_BASE_URL}:searchText", json=body, headers=headers, timeout=10)
    if response.status_code == 429:
        retry_after = response.headers.get("Retry-After")
        raise GooglePlacesRateLimitError(
            "Places API rate limited the request",
            retry_after=float(retry_after) if retry_after and retry_after.isdigit() else None,
        )
    if response.status_code >= 400:
        message = _error_message(response)
        logger.error("text_search failed: status=%s, error_message=%s", response.status_code, message)
        raise GooglePlacesError(f"Places API: {response.status_code} - {message}")
    return response.json()


def search_businesses(
    location: str,
    category: str,
    api_key: str,
    *,
    max_pages: int = MAX_PAGES,
    page_delay: float = 1.0,
    retry_policy: Optional[RetryPolicy] = None,
    sleep: Callable[[float], None] = time.sleep,
) -> List[Dict[str, Any]]:
    """Run a paginated text search for ``category in location``.

    A failure on the first page is raised; a failure on a later page keeps the
    places already collected.
    """
    if not api_key:
        raise GooglePlacesError("GOOGLE_PLACES_API_KEY is required")

    query = f"{category} in {location}"
    policy = retry_policy or RetryPolicy(max_attempts=1)
    places: List[Dict[str, Any]] = []
    page_token = None
    page_count = 0

    while page_count < max_pages:
        try:
            payload = policy.run(text_search, query, api_key, page_token)
        except GooglePlacesError:
            if page_count == 0:
                raise
            logger.warning("Stopping pagination for query=%s after page %d", query, page_count)
            break

        page = payload.get("places") or []
        places.extend(page)
        page_count += 1
        logger.info("Page %d: got %d results (total: %d)", page_count, len(page), len(places))

        page_token = payload.get("nextPageToken")
        if not page_token or page_count >= max_pages:
            break
        sleep(page_delay)

    return places
