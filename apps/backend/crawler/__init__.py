"""
Job board crawling: listing scanner, detail fetcher and the records they produce.
"""
from .models import SearchQuery, ListingRecord, DetailRecord, PipelineResult
from .listing_scanner import ListingScanner
from .detail_fetcher import DetailFetcher

__all__ = [
    'SearchQuery',
    'ListingRecord',
    'DetailRecord',
    'PipelineResult',
    'ListingScanner',
    'DetailFetcher',
]
