"""
Detail worker pool.

A fixed number of workers read listing records from one channel, fetch each
record's detail page and send a PipelineResult to a shared results channel.
Every worker has its own rate limiter, so the pool as a whole makes at most
num_workers requests per rate_interval.
"""
import asyncio
import logging
from typing import Callable, List, Optional

from core.cancellation import CancellationToken
from core.errors import OperationCancelled
from core.rate_limiter import TokenBucket
from crawler.detail_fetcher import DetailFetcher
from crawler.models import ListingRecord, PipelineResult

from .channel import Channel, ChannelClosed

logger = logging.getLogger(__name__)

DEFAULT_WORKERS = 3
DEFAULT_RATE_INTERVAL = 2.0


class DetailWorkerPool:
    """Fan-out over detail fetches, fan-in into one results channel"""

    def __init__(
        self,
        fetcher: DetailFetcher,
        num_workers: int = DEFAULT_WORKERS,
        rate_interval: float = DEFAULT_RATE_INTERVAL,
        limiter_factory: Optional[Callable[[], TokenBucket]] = None,
        result_buffer: int = 100,
    ):
        """
        Args:
            fetcher: Detail fetcher shared by the workers (it holds no per-call state)
            num_workers: Number of concurrent workers
            rate_interval: Seconds between requests of one worker
            limiter_factory: Builds one limiter per worker (default: TokenBucket(rate_interval))
            result_buffer: Capacity of the results channel
        """
        if num_workers < 1:
            raise ValueError("num_workers must be at least 1")
        self.fetcher = fetcher
        self.num_workers = num_workers
        self.rate_interval = rate_interval
        self.limiter_factory = limiter_factory or (lambda: TokenBucket(rate_interval))
        self.result_buffer = result_buffer
        self.limiters: List[TokenBucket] = []
        self._tasks: List[asyncio.Task] = []
        self._active = 0

    def start(self, jobs: Channel, token: Optional[CancellationToken] = None) -> Channel:
        """
        Spawn the workers.

        Args:
            jobs: Input channel of ListingRecord; the producer must close it
            token: Cancellation token shared with the rest of the run

        Returns:
            Results channel, closed after the last worker exits
        """
        if self._tasks:
            raise RuntimeError("worker pool already started")

        token = token or CancellationToken()
        results = Channel(maxsize=self.result_buffer)
        self._active = self.num_workers

        for worker_id in range(self.num_workers):
            limiter = self.limiter_factory()
            self.limiters.append(limiter)
            task = asyncio.create_task(
                self._worker(worker_id, jobs, results, limiter, token),
                name=f"detail-worker-{worker_id}",
            )
            self._tasks.append(task)

        logger.info(f"[pool] Started {self.num_workers} workers (interval {self.rate_interval}s)")
        return results

    async def join(self):
        """Wait for every worker task to finish."""
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)

    async def _worker(
        self,
        worker_id: int,
        jobs: Channel,
        results: Channel,
        limiter: TokenBucket,
        token: CancellationToken,
    ):
        processed = 0
        try:
            while True:
                try:
                    record = await jobs.receive(token)
                except ChannelClosed:
                    break

                await limiter.acquire(token)
                result = await self._process(worker_id, record, token)
                await results.send(result, token)
                processed += 1
        except OperationCancelled:
            logger.info(f"[pool] Worker {worker_id} cancelled after {processed} jobs")
        finally:
            self._active -= 1
            logger.debug(f"[pool] Worker {worker_id} exiting ({processed} jobs, {self._active} still running)")
            if self._active == 0:
                results.close()
                logger.info("[pool] All workers finished, results closed")

    async def _process(self, worker_id: int, record: ListingRecord, token: CancellationToken) -> PipelineResult:
        """Fetch one detail page; per-record failures become failed results."""
        logger.info(f"[pool] Worker {worker_id} processing job {record.job_id}: {record.title}")
        try:
            detail = await self.fetcher.fetch(record, token)
        except OperationCancelled:
            raise
        except Exception as e:
            logger.warning(f"[pool] Job {record.job_id} failed: {e}")
            return PipelineResult(listing=record, error=e)
        return PipelineResult(listing=record, detail=detail)
