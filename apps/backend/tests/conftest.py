"""
Shared fixtures and HTML builders for scraper tests.
"""
from typing import Iterable, Optional

import pytest

from crawler.models import ListingRecord, SearchQuery


def listing_card(
    job_id: Optional[int],
    title: str = "Frontend Developer",
    company: str = "Acme KK",
    location: str = "Tokyo, Japan",
    host: str = "jp.linkedin.com",
) -> str:
    """One search result card as served by the guest listing endpoint."""
    slug = f"frontend-developer-{job_id}" if job_id is not None else "frontend-developer"
    return f"""
    <li>
      <div class="base-card relative job-search-card">
        <a class="base-card__full-link" href="https://{host}/jobs/view/{slug}?refId=abc&trackingId=xyz">
          <span class="sr-only">{title}</span>
        </a>
        <div class="base-search-card__info">
          <h3 class="base-search-card__title">
            {title}
          </h3>
          <h4 class="base-search-card__subtitle">
            <a class="hidden-nested-link" href="https://jp.linkedin.com/company/acme">
              {company}
            </a>
          </h4>
          <div class="base-search-card__metadata">
            <span class="job-search-card__location">
              {location}
            </span>
          </div>
        </div>
      </div>
    </li>
    """


def listing_page(cards: Iterable[str]) -> str:
    return "<html><body><ul>" + "".join(cards) + "</ul></body></html>"


def detail_page(description_html: str, criteria: Optional[dict] = None) -> str:
    items = ""
    for header, value in (criteria or {}).items():
        items += f"""
        <li class="description__job-criteria-item">
          <h3 class="description__job-criteria-subheader">
            {header}
          </h3>
          <span class="description__job-criteria-text description__job-criteria-text--criteria">
            {value}
          </span>
        </li>
        """
    return f"""
    <html><body>
      <section class="core-section-container my-3 description">
        <div class="core-section-container__content break-words">
          <div class="description__text description__text--rich">
            <section class="show-more-less-html" data-max-lines="5">
              <div class="show-more-less-html__markup relative overflow-hidden">
                {description_html}
              </div>
            </section>
          </div>
          <ul class="description__job-criteria-list">
            {items}
          </ul>
        </div>
      </section>
    </body></html>
    """


def make_listing(job_id: int, title: str = "Frontend Developer") -> ListingRecord:
    return ListingRecord(
        job_id=job_id,
        title=title,
        company="Acme KK",
        company_link="https://jp.linkedin.com/company/acme",
        location="Tokyo, Japan",
        job_link=f"https://jp.linkedin.com/jobs/view/frontend-developer-{job_id}",
    )


@pytest.fixture
def search_query():
    return SearchQuery(keywords="Frontend Developer", location="Japan", work_type="2,3")
