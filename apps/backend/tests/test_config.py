"""
Tests for environment based scraper settings.
"""
import logging
import os
from unittest.mock import patch

import pytest

from core.config import ScraperConfig, configure_logging
from core.net import RetryConfig


def test_defaults_from_empty_environment():
    with patch.dict(os.environ, {}, clear=True):
        config = ScraperConfig.from_env(dotenv=False)

    assert config.database_url is None
    assert config.pages == 10
    assert config.workers == 3
    assert config.rate_interval == 2.0
    assert config.queue_size == 100
    assert config.retryable_statuses == (429,)
    assert config.log_level == "INFO"


def test_reads_environment():
    env = {
        "DATABASE_URL": "postgresql://scraper@localhost/jobs",
        "SCRAPER_PAGES": "3",
        "SCRAPER_WORKERS": "5",
        "SCRAPER_RATE_INTERVAL": "0.5",
        "SCRAPER_MAX_ATTEMPTS": "6",
        "SCRAPER_RETRYABLE_STATUSES": "429, 503",
        "SCRAPER_KEYWORDS": "Backend Engineer",
        "SCRAPER_LOCATION": "Berlin",
        "SCRAPER_WORK_TYPE": "2",
        "LOG_LEVEL": "debug",
    }
    with patch.dict(os.environ, env, clear=True):
        config = ScraperConfig.from_env(dotenv=False)

    assert config.database_url == "postgresql://scraper@localhost/jobs"
    assert config.pages == 3
    assert config.workers == 5
    assert config.rate_interval == 0.5
    assert config.max_attempts == 6
    assert config.retryable_statuses == (429, 503)
    assert config.log_level == "DEBUG"

    query = config.search_query()
    assert query.keywords == "Backend Engineer"
    assert query.location == "Berlin"
    assert query.work_type == "2"
    assert query.geo_id is None


@pytest.mark.parametrize("name,value", [
    ("SCRAPER_PAGES", "ten"),
    ("SCRAPER_RATE_INTERVAL", "fast"),
    ("SCRAPER_RETRYABLE_STATUSES", "429,oops"),
])
def test_invalid_values_name_the_variable(name, value):
    with patch.dict(os.environ, {name: value}, clear=True):
        with pytest.raises(ValueError, match=name):
            ScraperConfig.from_env(dotenv=False)


def test_rejects_zero_workers():
    with patch.dict(os.environ, {"SCRAPER_WORKERS": "0"}, clear=True):
        with pytest.raises(ValueError, match="SCRAPER_WORKERS"):
            ScraperConfig.from_env(dotenv=False)


def test_retry_config():
    config = ScraperConfig(max_attempts=2, base_delay=0.1, max_delay=5.0, retryable_statuses=(429, 502))

    retry = config.retry_config()

    assert isinstance(retry, RetryConfig)
    assert retry.max_attempts == 2
    assert retry.base_delay == 0.1
    assert retry.max_delay == 5.0
    assert retry.retryable_statuses == frozenset({429, 502})


def test_configure_logging_sets_root_level():
    with patch("core.config.logging.basicConfig") as mock_basic_config:
        configure_logging("debug")

    assert mock_basic_config.call_args.kwargs["level"] == logging.DEBUG
