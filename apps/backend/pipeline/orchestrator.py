"""
Job pipeline orchestrator.

Wires the listing scanner into the detail worker pool, collects the results
and saves everything in one batch per table at the end of the run:

    scanner --(jobs channel)--> N detail workers --(results channel)--> run()
"""
import time
import asyncio
import logging
from dataclasses import dataclass, asdict
from typing import AsyncIterator, Callable, Dict, List, Optional, Any

from core.cancellation import CancellationToken
from core.config import ScraperConfig
from core.errors import OperationCancelled, PersistenceError, PipelineError
from core.net import HTTPClient
from crawler.detail_fetcher import DetailFetcher
from crawler.listing_scanner import ListingScanner
from crawler.models import DetailRecord, ListingRecord, SearchQuery

from .channel import Channel, ChannelClosed
from .db_insert import (
    JobDescriptionRepository,
    JobDescriptionSink,
    JobRepository,
    JobSink,
    dedupe_jobs,
)
from .worker_pool import DetailWorkerPool

logger = logging.getLogger(__name__)


@dataclass
class PipelineSummary:
    """Counters for one pipeline run."""
    pages: int = 0
    scanned: int = 0
    succeeded: int = 0
    failed: int = 0
    jobs_saved: int = 0
    descriptions_saved: int = 0
    scan_error: Optional[str] = None
    duration_ms: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


class JobPipeline:
    """
    Runs one scrape: scan listings, fetch details concurrently, persist once.

    Results are buffered in memory until the stream is drained, then written
    with exactly one call per sink.
    """

    def __init__(
        self,
        scanner: ListingScanner,
        fetcher: DetailFetcher,
        job_sink: JobSink,
        description_sink: JobDescriptionSink,
        num_workers: int = 3,
        rate_interval: float = 2.0,
        queue_size: int = 100,
        pool_factory: Optional[Callable[[], DetailWorkerPool]] = None,
    ):
        """
        Args:
            scanner: Listing scanner
            fetcher: Detail fetcher used by the workers
            job_sink: Target for listing records
            description_sink: Target for detail records
            num_workers: Concurrent detail workers
            rate_interval: Seconds between requests of one worker
            queue_size: Capacity of the jobs and results channels
            pool_factory: Optional callable returning a DetailWorkerPool (tests)
        """
        self.scanner = scanner
        self.fetcher = fetcher
        self.job_sink = job_sink
        self.description_sink = description_sink
        self.num_workers = num_workers
        self.rate_interval = rate_interval
        self.queue_size = queue_size
        self.pool_factory = pool_factory or self._default_pool

    @classmethod
    def from_config(cls, config: ScraperConfig) -> "JobPipeline":
        """Build the pipeline with PostgreSQL sinks from settings."""
        if not config.database_url:
            raise ValueError("DATABASE_URL is required to build the pipeline")
        client = HTTPClient(retry_config=config.retry_config())
        return cls(
            scanner=ListingScanner(client),
            fetcher=DetailFetcher(client),
            job_sink=JobRepository(config.database_url),
            description_sink=JobDescriptionRepository(config.database_url),
            num_workers=config.workers,
            rate_interval=config.rate_interval,
            queue_size=config.queue_size,
        )

    def _default_pool(self) -> DetailWorkerPool:
        return DetailWorkerPool(
            self.fetcher,
            num_workers=self.num_workers,
            rate_interval=self.rate_interval,
            result_buffer=self.queue_size,
        )

    async def _produce(
        self,
        records: AsyncIterator[ListingRecord],
        jobs: Channel,
        token: CancellationToken,
        summary: PipelineSummary,
    ):
        """Feed scanned records into the jobs channel; always closes it."""
        try:
            async for record in records:
                await jobs.send(record, token)
                summary.scanned += 1
        except OperationCancelled:
            logger.info(f"[pipeline] Scan cancelled after {summary.scanned} jobs")
        except PipelineError as e:
            summary.scan_error = str(e)
            logger.error(f"[pipeline] Error scraping jobs: {e}")
        finally:
            jobs.close()
            await records.aclose()

    async def run(
        self,
        page_count: int,
        query: SearchQuery,
        token: Optional[CancellationToken] = None,
    ) -> PipelineSummary:
        """
        Scrape `page_count` listing pages and persist jobs with their descriptions.

        Returns:
            PipelineSummary for the run

        Raises:
            OperationCancelled: the token fired; nothing is persisted
            PersistenceError: a batch save failed
        """
        token = token or CancellationToken()
        summary = PipelineSummary(pages=page_count)
        start_time = time.time()

        all_jobs: List[ListingRecord] = []
        all_descriptions: List[DetailRecord] = []
        lock = asyncio.Lock()

        jobs = Channel(maxsize=self.queue_size)
        pool = self.pool_factory()
        producer = asyncio.create_task(
            self._produce(self.scanner.scan(page_count, query, token), jobs, token, summary),
            name="listing-scanner",
        )
        results = pool.start(jobs, token)

        try:
            while True:
                try:
                    result = await results.receive()
                except ChannelClosed:
                    break

                if not result.ok:
                    summary.failed += 1
                    logger.warning(f"[pipeline] Skipping job {result.listing.job_id}: {result.error}")
                    continue

                logger.info(f"[pipeline] Received job description for job {result.listing.job_id}")
                async with lock:
                    all_jobs.append(result.listing)
                    all_descriptions.append(result.detail)
                summary.succeeded += 1
        except BaseException:
            token.cancel("pipeline aborted")
            raise
        finally:
            if not producer.done():
                producer.cancel()
            await asyncio.gather(producer, return_exceptions=True)
            await pool.join()

        token.raise_if_cancelled()

        unique_jobs = dedupe_jobs(all_jobs)
        try:
            summary.jobs_saved = self.job_sink.save_jobs(unique_jobs)
        except Exception as e:
            raise PersistenceError("failed to save jobs to database", e) from e

        try:
            summary.descriptions_saved = self.description_sink.save_job_descriptions(all_descriptions)
        except Exception as e:
            raise PersistenceError("failed to save job descriptions", e) from e

        summary.duration_ms = int((time.time() - start_time) * 1000)
        logger.info(
            f"[pipeline] Done: scanned={summary.scanned} ok={summary.succeeded} "
            f"failed={summary.failed} saved={summary.jobs_saved}/{summary.descriptions_saved} "
            f"({summary.duration_ms}ms)"
        )
        return summary
