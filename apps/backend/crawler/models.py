"""
Records passed between the scraper stages.
"""
from dataclasses import dataclass, field, asdict
from typing import Dict, Optional, Any


@dataclass(frozen=True)
class SearchQuery:
    """Job search parameters for the listing endpoint."""
    keywords: str
    location: str
    work_type: Optional[str] = None  # f_WT: 1=onsite, 2=remote, 3=hybrid, comma separated
    geo_id: Optional[str] = None
    timespan: Optional[str] = None  # f_TPR, e.g. r604800 for last week


@dataclass(frozen=True)
class ListingRecord:
    """One job card from a listing page. Read-only once scanned."""
    job_id: int
    title: str
    company: str
    company_link: str
    location: str
    job_link: str

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class DetailRecord:
    """Parsed detail page for one listing."""
    job_id: int
    description: str
    criteria: Dict[str, str] = field(default_factory=dict)


@dataclass
class PipelineResult:
    """Outcome of fetching one listing's detail page: a detail or an error."""
    listing: ListingRecord
    detail: Optional[DetailRecord] = None
    error: Optional[BaseException] = None

    @property
    def ok(self) -> bool:
        return self.error is None and self.detail is not None
