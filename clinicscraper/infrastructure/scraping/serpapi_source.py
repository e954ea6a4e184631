"""Google Maps listing source backed by SerpApi.

Queries SerpApi's ``google_maps`` engine for places matching a search query
and maps each local result to a RawPlace.
"""

import logging
from typing import Any, Dict, List, Optional

import httpx

from clinicscraper.domain.interfaces.listing_source import ListingSource
from clinicscraper.domain.models.common import DEFAULT_RETRY_POLICY, RetryPolicy, SearchQuery
from clinicscraper.domain.models.listing import RawPlace
from clinicscraper.infrastructure.contact.phone import has_phone_number
from clinicscraper.infrastructure.resilience.api_retry import ApiRetryService

logger = logging.getLogger(__name__)

SERPAPI_SEARCH_URL = "https://serpapi.com/search.json"
SERPAPI_TIMEOUT_S = 30.0


class ListingSourceError(RuntimeError):
    """Raised when SerpApi reports an error or answers with an HTTP error status.

    Messages never include the request URL, which carries the API key.
    """

    def __init__(self, message: str, status_code: Optional[int] = None, response: Optional[httpx.Response] = None):
        super().__init__(message)
        self.status_code = status_code
        self.response = response


def is_retryable_listing_error(error: BaseException) -> bool:
    """Transport failures, 429 and 5xx are transient; other HTTP errors are not."""
    if isinstance(error, httpx.TransportError):
        return True
    status = getattr(error, "status_code", None)
    return isinstance(status, int) and (status == 429 or status >= 500)


def _error_from_response(response: httpx.Response) -> Optional[ListingSourceError]:
    """Builds a key-free ListingSourceError for an error body or an HTTP error status."""
    try:
        body = response.json()
    except ValueError:
        body = None

    if isinstance(body, dict) and body.get("error"):
        return ListingSourceError(
            f"SerpApi returned error: {body['error']}",
            status_code=response.status_code, response=response,
        )
    if response.is_error:
        return ListingSourceError(
            f"SerpApi request failed: HTTP {response.status_code} {response.reason_phrase}",
            status_code=response.status_code, response=response,
        )
    if not isinstance(body, dict):
        return ListingSourceError(
            f"SerpApi returned an unexpected response body (HTTP {response.status_code})",
            status_code=response.status_code, response=response,
        )
    return None


def build_maps_link(result: Dict[str, Any]) -> str:
    """Builds a Google Maps link from a data_id, place_id or coordinates."""
    place_ref = result.get("data_id") or result.get("place_id")
    if place_ref:
        return f"https://www.google.com/maps/place/?q=place_id:{place_ref}"
    coords = result.get("gps_coordinates")
    if coords:
        return (
            "https://www.google.com/maps/search/?api=1"
            f"&query={coords['latitude']},{coords['longitude']}"
        )
    return ""


class SerpApiListingSource(ListingSource):
    """ListingSource implementation for SerpApi Google Maps search."""

    def __init__(
        self,
        api_key: str,
        retry_service: Optional[ApiRetryService] = None,
        retry_policy: RetryPolicy = DEFAULT_RETRY_POLICY,
        language: str = "en",
        country: str = "eg",
        timeout_s: float = SERPAPI_TIMEOUT_S,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """Initializes the listing source.

        Args:
            api_key: SerpApi API key.
            retry_service: Retry executor for the search call.
            retry_policy: Retry budget for the search call.
            language: ``hl`` parameter sent to Google.
            country: ``gl`` parameter sent to Google.
            timeout_s: HTTP timeout for one request.
            transport: Optional httpx transport (used by tests).
        """
        if not api_key:
            raise ValueError("SerpApi API key must not be empty.")
        self.api_key = api_key
        self.retry_service = retry_service or ApiRetryService()
        self.retry_policy = retry_policy
        self.language = language
        self.country = country
        self.timeout_s = timeout_s
        self._transport = transport

    async def _fetch(self, query: SearchQuery) -> Dict[str, Any]:
        params = {
            "engine": "google_maps",
            "q": query,
            "hl": self.language,
            "gl": self.country,
            "type": "search",
            "api_key": self.api_key,
        }
        async with httpx.AsyncClient(timeout=self.timeout_s, transport=self._transport) as client:
            response = await client.get(SERPAPI_SEARCH_URL, params=params)
        error = _error_from_response(response)
        if error is not None:
            raise error
        return response.json()

    async def search(self, query: SearchQuery) -> List[RawPlace]:
        """Scrapes Google Maps for places matching the given query.

        Raises:
            ListingSourceError: If SerpApi returns an ``error`` field or an HTTP
                error status. Only 429 and 5xx are retried.
            httpx.TransportError: If the connection still fails after retries.
        """
        logger.info(f'Starting Google Maps scrape for: "{query}"')

        data = await self.retry_service.execute_with_retry(
            lambda: self._fetch(query),
            "SerpApi Google Maps",
            self.retry_policy,
            retry_if=is_retryable_listing_error,
        )

        local_results = data.get("local_results") or []
        if not local_results:
            logger.warning(f'No results found for query: "{query}"')
            return []

        logger.info(f"Found {len(local_results)} raw results from Google Maps")

        places: List[RawPlace] = []
        for result in local_results:
            place = RawPlace(
                name=result.get("title") or "Unknown",
                address=result.get("address"),
                phone=result.get("phone"),
                maps_link=build_maps_link(result),
            )
            if not has_phone_number(place.phone):
                logger.warning(f"No phone number found for: {place.name}")
            places.append(place)
        return places
