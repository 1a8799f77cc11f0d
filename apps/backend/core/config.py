"""
Scraper configuration.

Values come from environment variables (a local .env file is loaded first).
Every setting has a default so a bare environment gives a working scraper,
except DATABASE_URL which is only needed for persistence.
"""
import os
import logging
from dataclasses import dataclass, field
from typing import Optional, Tuple

from dotenv import load_dotenv

from crawler.models import SearchQuery

from .net import RetryConfig, DEFAULT_TIMEOUT

logger = logging.getLogger(__name__)

DEFAULT_PAGES = 10
DEFAULT_WORKERS = 3
DEFAULT_RATE_INTERVAL = 2.0
DEFAULT_QUEUE_SIZE = 100


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}")


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError:
        raise ValueError(f"{name} must be a number, got {raw!r}")


def _env_str(name: str, default: Optional[str] = None) -> Optional[str]:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return raw.strip()


@dataclass
class ScraperConfig:
    """Settings for one scraping run"""
    database_url: Optional[str] = None
    pages: int = DEFAULT_PAGES
    workers: int = DEFAULT_WORKERS
    rate_interval: float = DEFAULT_RATE_INTERVAL
    queue_size: int = DEFAULT_QUEUE_SIZE
    max_attempts: int = 4
    base_delay: float = 1.0
    backoff_factor: float = 2.0
    max_delay: float = 30.0
    timeout: float = DEFAULT_TIMEOUT
    retryable_statuses: Tuple[int, ...] = field(default_factory=lambda: (429,))
    keywords: str = "Frontend Developer"
    location: str = "Japan"
    work_type: Optional[str] = None
    geo_id: Optional[str] = None
    timespan: Optional[str] = None
    log_level: str = "INFO"

    @classmethod
    def from_env(cls, dotenv: bool = True) -> "ScraperConfig":
        """
        Build settings from the environment.

        Args:
            dotenv: Load a .env file before reading variables

        Raises:
            ValueError: if a numeric variable cannot be parsed
        """
        if dotenv:
            load_dotenv()

        statuses_raw = _env_str("SCRAPER_RETRYABLE_STATUSES", "429")
        try:
            statuses = tuple(int(s) for s in statuses_raw.split(",") if s.strip())
        except ValueError:
            raise ValueError(f"SCRAPER_RETRYABLE_STATUSES must be comma separated integers, got {statuses_raw!r}")

        config = cls(
            database_url=_env_str("DATABASE_URL"),
            pages=_env_int("SCRAPER_PAGES", DEFAULT_PAGES),
            workers=_env_int("SCRAPER_WORKERS", DEFAULT_WORKERS),
            rate_interval=_env_float("SCRAPER_RATE_INTERVAL", DEFAULT_RATE_INTERVAL),
            queue_size=_env_int("SCRAPER_QUEUE_SIZE", DEFAULT_QUEUE_SIZE),
            max_attempts=_env_int("SCRAPER_MAX_ATTEMPTS", 4),
            base_delay=_env_float("SCRAPER_BASE_DELAY", 1.0),
            backoff_factor=_env_float("SCRAPER_BACKOFF_FACTOR", 2.0),
            max_delay=_env_float("SCRAPER_MAX_DELAY", 30.0),
            timeout=_env_float("SCRAPER_TIMEOUT", DEFAULT_TIMEOUT),
            retryable_statuses=statuses,
            keywords=_env_str("SCRAPER_KEYWORDS", "Frontend Developer"),
            location=_env_str("SCRAPER_LOCATION", "Japan"),
            work_type=_env_str("SCRAPER_WORK_TYPE"),
            geo_id=_env_str("SCRAPER_GEO_ID"),
            timespan=_env_str("SCRAPER_TIMESPAN"),
            log_level=_env_str("LOG_LEVEL", "INFO").upper(),
        )

        if config.workers < 1:
            raise ValueError(f"SCRAPER_WORKERS must be at least 1, got {config.workers}")
        if not config.database_url:
            logger.warning("[config] DATABASE_URL not set - results cannot be persisted")
        return config

    def retry_config(self) -> RetryConfig:
        return RetryConfig(
            max_attempts=self.max_attempts,
            base_delay=self.base_delay,
            backoff_factor=self.backoff_factor,
            max_delay=self.max_delay,
            timeout=self.timeout,
            retryable_statuses=frozenset(self.retryable_statuses),
        )

    def search_query(self) -> SearchQuery:
        return SearchQuery(
            keywords=self.keywords,
            location=self.location,
            work_type=self.work_type,
            geo_id=self.geo_id,
            timespan=self.timespan,
        )


def configure_logging(level: str = "INFO"):
    """Set up root logging the way the backend entrypoints do."""
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
