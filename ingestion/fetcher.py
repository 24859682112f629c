"""
Paginated retrieval of one time window from the NVD CVE API
"""

import logging
from typing import Any, AsyncIterator, Dict, Optional

from pydantic import ValidationError

from core.config import settings
from core.exceptions import MalformedResponseError
from ingestion.http_client import NVDClient
from ingestion.json_query import extract_array, extract_field
from schemas.sync import Page, TimeWindow

logger = logging.getLogger(__name__)


class PageFetcher:
    """
    Walk ``startIndex`` through a window until the API reports it exhausted.

    Termination:
    - ``totalResults == 0`` on any page
    - ``startIndex + pageSize >= totalResults`` (last page)
    - an empty page with a nonzero total, once re-requesting it has not
      helped (logged as an ambiguous empty window)

    Requests are paced by the client, so the spacing carries over from the
    last request of one window to the first request of the next.
    """

    def __init__(
        self,
        client: NVDClient,
        empty_page_retries: Optional[int] = None
    ):
        self.client = client
        self.empty_page_retries = (
            empty_page_retries if empty_page_retries is not None else settings.EMPTY_PAGE_RETRIES
        )

    async def fetch(self, window: TimeWindow, page_size: int) -> AsyncIterator[Page]:
        """
        Yield the pages of ``window`` in increasing ``startIndex`` order.

        Args:
            window: Time range and filter to query
            page_size: resultsPerPage for every request

        Raises:
            FetchError: Transport or HTTP failure (from the client)
            MalformedResponseError: Body missing totalResults/vulnerabilities
        """
        if page_size < 1:
            raise ValueError("page_size must be positive")

        start_index = 0
        empty_retries = 0

        while True:
            page = await self._fetch_page(window, start_index, page_size)

            if page.total_results == 0:
                logger.info(f"[{window.label}] No CVE data found for this range")
                return

            if not page.records:
                if page.start_index < page.total_results and empty_retries < self.empty_page_retries:
                    empty_retries += 1
                    logger.warning(
                        f"[{window.label}] Empty page at startIndex={start_index} "
                        f"with totalResults={page.total_results}; "
                        f"re-requesting ({empty_retries}/{self.empty_page_retries})"
                    )
                    continue
                logger.warning(
                    f"[{window.label}] Empty page at startIndex={start_index} "
                    f"with totalResults={page.total_results}; treating window as exhausted"
                )
                return

            empty_retries = 0
            logger.info(
                f"[{window.label}] Fetched {len(page.records)} records "
                f"(startIndex={start_index}, totalResults={page.total_results})"
            )
            yield page

            if page.is_last:
                return
            start_index += page_size

    async def _fetch_page(self, window: TimeWindow, start_index: int, page_size: int) -> Page:
        params = {
            "resultsPerPage": page_size,
            "startIndex": start_index,
            **window.query_params(),
        }

        response = await self.client.request(params)

        try:
            body = response.json()
        except ValueError as e:
            raise MalformedResponseError(
                "Failed to parse JSON response",
                context={
                    "window": window.label,
                    "start_index": start_index,
                    "response_body": response.text[:500]
                },
                original_exception=e
            )

        return self._parse_page(body, window, start_index, page_size)

    def _parse_page(
        self,
        body: Dict[str, Any],
        window: TimeWindow,
        start_index: int,
        page_size: int
    ) -> Page:
        context = {"window": window.label, "start_index": start_index}

        total_results = extract_field(body, "totalResults")
        if not isinstance(total_results, int) or isinstance(total_results, bool) or total_results < 0:
            raise MalformedResponseError(
                "Response is missing a valid totalResults",
                context={**context, "field": "totalResults", "value": repr(total_results)}
            )

        try:
            records = extract_array(body, "vulnerabilities")
        except KeyError as e:
            if total_results != 0:
                raise MalformedResponseError(
                    "Response is missing the vulnerabilities array",
                    context={**context, "field": "vulnerabilities"},
                    original_exception=e
                )
            records = []
        except TypeError as e:
            raise MalformedResponseError(
                "vulnerabilities is not an array",
                context={**context, "field": "vulnerabilities"},
                original_exception=e
            )

        try:
            return Page(
                records=records,
                total_results=total_results,
                start_index=start_index,
                page_size=page_size,
            )
        except ValidationError as e:
            raise MalformedResponseError(
                "vulnerabilities contains non-object entries",
                context={**context, "field": "vulnerabilities"},
                original_exception=e
            )
