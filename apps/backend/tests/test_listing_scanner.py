"""
Tests for the sequential listing scanner.
"""
from unittest.mock import AsyncMock

import httpx
import pytest

from core.cancellation import CancellationToken
from core.errors import OperationCancelled, ScanError, TerminalHTTPError
from core.net import HTTPClient, RetryConfig
from crawler.listing_scanner import (
    PAGE_SIZE,
    ListingScanner,
    build_search_params,
    parse_listing_page,
)
from crawler.models import SearchQuery

from conftest import listing_card, listing_page


def paged_transport(pages, seen):
    """Serve listing pages keyed by the `start` offset; unknown offsets get 500."""
    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        start = int(request.url.params["start"])
        html = pages.get(start // PAGE_SIZE)
        if html is None:
            return httpx.Response(500)
        return httpx.Response(200, text=html)

    return httpx.MockTransport(handler)


async def collect(scanner, page_count, query, token=None):
    return [record async for record in scanner.scan(page_count, query, token)]


def test_build_search_params(search_query):
    params = build_search_params(search_query, 2)
    assert params == {
        "keywords": "Frontend Developer",
        "location": "Japan",
        "f_WT": "2,3",
        "start": "50",
    }


def test_build_search_params_optional_filters():
    query = SearchQuery(keywords="Go", location="Berlin", geo_id="101282230", timespan="r86400")
    params = build_search_params(query, 0)
    assert params["geoId"] == "101282230"
    assert params["f_TPR"] == "r86400"
    assert "f_WT" not in params
    assert params["start"] == "0"


def test_parse_listing_page_trims_fields():
    records = parse_listing_page(listing_page([listing_card(12345)]))

    assert len(records) == 1
    record = records[0]
    assert record.job_id == 12345
    assert record.title == "Frontend Developer"
    assert record.company == "Acme KK"
    assert record.company_link == "https://jp.linkedin.com/company/acme"
    assert record.location == "Tokyo, Japan"
    assert record.job_link.startswith("https://jp.linkedin.com/jobs/view/frontend-developer-12345")


def test_parse_listing_page_drops_invalid_cards():
    html = listing_page([
        listing_card(1),
        listing_card(None),
        listing_card(2, location=" "),
        listing_card(3, company=""),
        listing_card(4),
    ])

    records = parse_listing_page(html)

    assert [r.job_id for r in records] == [1, 4]


@pytest.mark.asyncio
async def test_scan_fetches_each_page_in_order(search_query):
    pages = {
        0: listing_page([listing_card(1), listing_card(2)]),
        1: listing_page([listing_card(3)]),
        2: listing_page([listing_card(4), listing_card(5)]),
    }
    seen = []
    scanner = ListingScanner(HTTPClient(transport=paged_transport(pages, seen)))

    records = await collect(scanner, 3, search_query)

    assert [int(r.url.params["start"]) for r in seen] == [0, 25, 50]
    assert [r.job_id for r in records] == [1, 2, 3, 4, 5]
    assert all(r.url.params["keywords"] == "Frontend Developer" for r in seen)


@pytest.mark.asyncio
async def test_scan_yields_before_next_page(search_query):
    pages = {0: listing_page([listing_card(1)]), 1: listing_page([listing_card(2)])}
    seen = []
    scanner = ListingScanner(HTTPClient(transport=paged_transport(pages, seen)))

    records = scanner.scan(2, search_query)
    first = await records.__anext__()

    assert first.job_id == 1
    assert len(seen) == 1
    await records.aclose()


@pytest.mark.asyncio
async def test_page_failure_aborts_scan(search_query):
    pages = {0: listing_page([listing_card(1)])}
    seen = []
    scanner = ListingScanner(HTTPClient(
        retry_config=RetryConfig(max_attempts=1),
        transport=paged_transport(pages, seen),
    ))

    received = []
    with pytest.raises(ScanError) as exc_info:
        async for record in scanner.scan(3, search_query):
            received.append(record)

    assert [r.job_id for r in received] == [1]
    assert exc_info.value.page == 1
    assert isinstance(exc_info.value.cause, TerminalHTTPError)
    assert len(seen) == 2


@pytest.mark.asyncio
async def test_cancel_stops_scan(search_query):
    pages = {i: listing_page([listing_card(i * 10 + 1), listing_card(i * 10 + 2)]) for i in range(3)}
    seen = []
    scanner = ListingScanner(HTTPClient(transport=paged_transport(pages, seen)))
    token = CancellationToken()

    received = []
    with pytest.raises(OperationCancelled):
        async for record in scanner.scan(3, search_query, token):
            received.append(record)
            token.cancel()

    assert [r.job_id for r in received] == [1]
    assert len(seen) == 1


@pytest.mark.asyncio
async def test_zero_pages_makes_no_requests(search_query):
    client = HTTPClient()
    client.get = AsyncMock()
    scanner = ListingScanner(client)

    assert await collect(scanner, 0, search_query) == []
    client.get.assert_not_awaited()


def test_listing_record_to_dict():
    record = parse_listing_page(listing_page([listing_card(7)]))[0]

    data = record.to_dict()
    assert data["job_link"].startswith("https://jp.linkedin.com/jobs/view/frontend-developer-7")
    data.pop("job_link")
    assert data == {
        "job_id": 7,
        "title": "Frontend Developer",
        "company": "Acme KK",
        "company_link": "https://jp.linkedin.com/company/acme",
        "location": "Tokyo, Japan",
    }
