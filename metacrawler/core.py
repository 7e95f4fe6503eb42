import logging
from typing import Optional
from urllib.parse import urlparse

from .collector import ResultCollector
from .fetcher import Fetcher, make_fetcher
from .frontier import Frontier
from .models import CrawlConfig
from .scheduler import FetchScheduler

logger = logging.getLogger(__name__)


async def crawl(config: CrawlConfig, fetcher: Optional[Fetcher] = None) -> ResultCollector:
    """
    Top-level entry point. Crawls config.domain from config.start_url and
    returns the collected records, skips and errors.

    Raises ValueError only when the start URL cannot be parsed; every per-URL
    failure is captured in the collector instead.
    """
    try:
        hostname = urlparse(config.start_url).hostname
    except ValueError as exc:
        raise ValueError(f"Invalid start URL: {config.start_url}") from exc
    if not hostname:
        raise ValueError(f"Invalid start URL: {config.start_url}")

    logger.info("Starting crawler for: %s", config.start_url)
    logger.info(
        "Settings: max_depth=%d, concurrency=%d, interval=%dms, timeout=%dms, robots=%s",
        config.max_depth, config.concurrency, config.interval_ms, config.timeout_ms, config.respect_robots,
    )
    logger.info("Domain: %s", config.domain)

    frontier = Frontier(config)
    collector = ResultCollector()
    frontier.seed()

    scheduler = FetchScheduler(config, frontier, collector, fetcher or make_fetcher(config))
    await scheduler.run()

    counts = collector.counts()
    logger.info(
        "Crawl completed: %d urls seen, %d records, %d skipped, %d errors",
        frontier.seen_count, counts["results"], counts["skipped"], counts["errors"],
    )
    return collector
