"""
Detail fetcher - downloads a job's detail page and extracts description and criteria.
"""
import re
import logging
from typing import Dict, Optional, Tuple
from urllib.parse import urlsplit, urlunsplit

from bs4 import BeautifulSoup

from core.cancellation import CancellationToken
from core.errors import ParseError
from core.net import HTTPClient

from .models import DetailRecord, ListingRecord
from .parsing import clean_text, html_to_text, make_soup

logger = logging.getLogger(__name__)

CANONICAL_HOST = "www.linkedin.com"
# Country subdomains such as jp.linkedin.com or uk.linkedin.com
REGIONAL_HOST = re.compile(r"^(?:[a-z]{2}|[a-z]{2}-[a-z]{2})\.linkedin\.com$", re.IGNORECASE)

DESCRIPTION_SECTION_SELECTORS = (
    "section.core-section-container.description .core-section-container__content",
    "section.description .core-section-container__content",
)
DESCRIPTION_MARKUP_SELECTOR = "section.show-more-less-html .show-more-less-html__markup"
CRITERIA_LIST_SELECTOR = "ul.description__job-criteria-list"
CRITERIA_ITEM_SELECTOR = "li.description__job-criteria-item"
CRITERIA_HEADER_SELECTOR = "h3.description__job-criteria-subheader"
CRITERIA_VALUE_SELECTOR = "span.description__job-criteria-text"


def build_detail_url(job_link: str) -> str:
    """Rewrite a regional job link (jp.linkedin.com/...) to the canonical host."""
    parts = urlsplit(job_link)
    if parts.hostname and REGIONAL_HOST.match(parts.hostname):
        return urlunsplit((parts.scheme or "https", CANONICAL_HOST, parts.path, parts.query, parts.fragment))
    return job_link


def parse_criteria(section) -> Dict[str, str]:
    criteria: Dict[str, str] = {}
    criteria_list = section.select_one(CRITERIA_LIST_SELECTOR)
    if criteria_list is None:
        return criteria

    for item in criteria_list.select(CRITERIA_ITEM_SELECTOR):
        header = item.select_one(CRITERIA_HEADER_SELECTOR)
        value = item.select_one(CRITERIA_VALUE_SELECTOR)
        header_text = clean_text(header.get_text()) if header else ""
        value_text = clean_text(value.get_text()) if value else ""
        if header_text and value_text:
            criteria[header_text] = value_text
    return criteria


def parse_job_description(html: str) -> Tuple[str, Dict[str, str]]:
    """
    Extract the description text and the criteria list from a detail page.

    Returns:
        (description, criteria)

    Raises:
        ParseError: the page has no description text
    """
    soup: BeautifulSoup = make_soup(html)

    section = None
    for selector in DESCRIPTION_SECTION_SELECTORS:
        section = soup.select_one(selector)
        if section is not None:
            break

    if section is None:
        raise ParseError("job description section not found")

    description = ""
    markup = section.select_one(DESCRIPTION_MARKUP_SELECTOR)
    if markup is not None:
        description = html_to_text(markup).strip()

    criteria = parse_criteria(section)

    if not description:
        raise ParseError("job description not found")

    return description, criteria


class DetailFetcher:
    """Fetches and parses job detail pages"""

    def __init__(self, client: HTTPClient):
        self.client = client

    async def fetch(self, record: ListingRecord, token: Optional[CancellationToken] = None) -> DetailRecord:
        """
        Fetch the detail page for `record`.

        Raises:
            FetchError: transport failure (after retries)
            ParseError: empty or malformed description
            OperationCancelled: the token fired
        """
        url = build_detail_url(record.job_link)
        response = await self.client.get(url, token=token)

        try:
            description, criteria = parse_job_description(response.text)
        except ParseError as e:
            raise ParseError(f"job {record.job_id}: {e}") from e

        logger.debug(f"[detail] Parsed job {record.job_id}: {len(description)} chars, {len(criteria)} criteria")
        return DetailRecord(job_id=record.job_id, description=description, criteria=criteria)
