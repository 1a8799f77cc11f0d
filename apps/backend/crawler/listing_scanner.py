"""
Listing scanner - walks the paginated job search results one page at a time.

Pages are fetched strictly in order and never concurrently. Records are
yielded as soon as they are parsed so detail fetching can start before the
page (or the scan) is finished.
"""
import logging
from typing import AsyncIterator, Dict, List, Optional

from bs4 import Tag

from core.cancellation import CancellationToken
from core.errors import FetchError, ScanError
from core.net import HTTPClient

from .models import ListingRecord, SearchQuery
from .parsing import clean_text, extract_job_id, make_soup

logger = logging.getLogger(__name__)

SEARCH_URL = "https://www.linkedin.com/jobs-guest/jobs/api/seeMoreJobPostings/search"
PAGE_SIZE = 25

# Selectors for the guest search result cards
CARD_SELECTOR = "li > div.base-card"
TITLE_SELECTOR = "[class*=_title]"
COMPANY_SELECTOR = ".hidden-nested-link"
LOCATION_SELECTOR = ".job-search-card__location"
JOB_LINK_SELECTOR = "a.base-card__full-link"


def build_search_params(query: SearchQuery, page: int, page_size: int = PAGE_SIZE) -> Dict[str, str]:
    """Query string for one listing page; `start` is the offset of its first card."""
    params = {
        "keywords": query.keywords,
        "location": query.location,
    }
    if query.work_type:
        params["f_WT"] = query.work_type
    if query.geo_id:
        params["geoId"] = query.geo_id
    if query.timespan:
        params["f_TPR"] = query.timespan
    params["start"] = str(page_size * page)
    return params


def _select_text(card: Tag, selector: str) -> str:
    node = card.select_one(selector)
    return clean_text(node.get_text()) if node else ""


def _select_href(card: Tag, selector: str) -> str:
    node = card.select_one(selector)
    return clean_text(node.get("href")) if node else ""


def parse_listing_card(card: Tag) -> Optional[ListingRecord]:
    """
    Extract one record from a result card.

    Returns:
        The record, or None when a required field or the job id is missing
    """
    title = _select_text(card, TITLE_SELECTOR)
    company = _select_text(card, COMPANY_SELECTOR)
    company_link = _select_href(card, COMPANY_SELECTOR)
    location = _select_text(card, LOCATION_SELECTOR)
    job_link = _select_href(card, JOB_LINK_SELECTOR)

    missing = [
        name for name, value in (
            ("title", title), ("company", company), ("location", location), ("job_link", job_link)
        ) if not value
    ]
    if missing:
        logger.warning(f"[scanner] Dropping card missing {', '.join(missing)} (title={title!r})")
        return None

    job_id = extract_job_id(job_link)
    if job_id is None:
        logger.warning(f"[scanner] Dropping card, job ID not found in URL path: {job_link}")
        return None

    return ListingRecord(
        job_id=job_id,
        title=title,
        company=company,
        company_link=company_link,
        location=location,
        job_link=job_link,
    )


def iter_listing_cards(html: str) -> List[Tag]:
    return make_soup(html).select(CARD_SELECTOR)


def parse_listing_page(html: str) -> List[ListingRecord]:
    """Parse every valid record on a listing page, in document order."""
    records = []
    for card in iter_listing_cards(html):
        record = parse_listing_card(card)
        if record is not None:
            records.append(record)
    return records


class ListingScanner:
    """Sequential scanner over the listing endpoint"""

    def __init__(self, client: HTTPClient, search_url: str = SEARCH_URL, page_size: int = PAGE_SIZE):
        self.client = client
        self.search_url = search_url
        self.page_size = page_size

    async def fetch_page(self, page: int, query: SearchQuery, token: CancellationToken) -> str:
        params = build_search_params(query, page, self.page_size)
        response = await self.client.get(self.search_url, params=params, token=token)
        return response.text

    async def scan(
        self,
        page_count: int,
        query: SearchQuery,
        token: Optional[CancellationToken] = None,
    ) -> AsyncIterator[ListingRecord]:
        """
        Yield listing records from pages 0..page_count-1.

        Args:
            page_count: Number of pages to fetch
            query: Search parameters
            token: Cancellation token, checked before each page and each yield

        Raises:
            ScanError: a page could not be fetched (wraps the transport error)
            OperationCancelled: the token fired
        """
        token = token or CancellationToken()
        emitted = 0

        for page in range(page_count):
            token.raise_if_cancelled()
            try:
                html = await self.fetch_page(page, query, token)
            except FetchError as e:
                logger.error(f"[scanner] Error fetching page {page}: {e}")
                raise ScanError(page, e) from e

            page_emitted = 0
            for card in iter_listing_cards(html):
                record = parse_listing_card(card)
                if record is None:
                    continue
                token.raise_if_cancelled()
                yield record
                page_emitted += 1

            emitted += page_emitted
            logger.info(f"[scanner] Page {page}: {page_emitted} jobs ({emitted} total)")

        logger.info(f"[scanner] Scan complete: {page_count} pages, {emitted} jobs")
