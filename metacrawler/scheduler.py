import asyncio
import logging
from typing import Optional

from .collector import ResultCollector
from .extractor import extract
from .fetcher import Fetcher, FetchError, RobotsDisallowed
from .frontier import Frontier
from .models import CrawlConfig, ErrorEntry, FetchResponse, FrontierEntry, MetadataRecord
from .parser import extract_links

logger = logging.getLogger(__name__)


class FetchScheduler:
    """
    Fixed-size pool of workers pulling from a shared frontier.

    Each worker waits at least `interval_ms` between its own successive
    dispatches and each fetch is bounded by `timeout_ms`. The run ends once
    the frontier is empty and no fetch is in flight.
    """

    def __init__(self, config: CrawlConfig, frontier: Frontier, collector: ResultCollector, fetcher: Fetcher):
        self.config = config
        self.frontier = frontier
        self.collector = collector
        self.fetcher = fetcher
        self.processed = 0
        self._in_flight = 0
        self._idle: Optional[asyncio.Condition] = None

    async def run(self) -> None:
        self._idle = asyncio.Condition()
        workers = [asyncio.create_task(self._worker(n)) for n in range(self.config.concurrency)]
        await asyncio.gather(*workers)

    async def _take(self) -> Optional[FrontierEntry]:
        """Next entry for a worker, or None once the crawl has drained."""
        async with self._idle:
            while True:
                entry = self.frontier.next()
                if entry is not None:
                    self._in_flight += 1
                    return entry
                if self._in_flight == 0:
                    # wake everyone else so they can exit too
                    self._idle.notify_all()
                    return None
                await self._idle.wait()

    async def _release(self) -> None:
        async with self._idle:
            self._in_flight -= 1
            self._idle.notify_all()

    async def _worker(self, worker_id: int) -> None:
        loop = asyncio.get_event_loop()
        interval = self.config.interval_ms / 1000
        last_dispatch: Optional[float] = None

        while True:
            entry = await self._take()
            if entry is None:
                return

            try:
                if last_dispatch is not None:
                    delay = interval - (loop.time() - last_dispatch)
                    if delay > 0:
                        await asyncio.sleep(delay)
                last_dispatch = loop.time()
                logger.debug("worker %d dispatching %s (depth %d)", worker_id, entry.url, entry.depth)
                await self._process(entry)
            finally:
                await self._release()

    async def _process(self, entry: FrontierEntry) -> None:
        try:
            response = await asyncio.wait_for(self.fetcher(entry.url), timeout=self.config.timeout_ms / 1000)
        except asyncio.TimeoutError:
            self._fail(ErrorEntry(url=entry.url, code="timeout"))
            return
        except FetchError as exc:
            self._fail(exc.to_entry())
            return
        except RobotsDisallowed:
            logger.info("robots.txt disallows %s", entry.url)
            return
        except Exception as exc:
            logger.error("Unexpected fetch failure for %s: %s", entry.url, exc, exc_info=True)
            self._fail(ErrorEntry(url=entry.url, code="fetcherror"))
            return

        try:
            self._handle_response(entry, response)
        except Exception as exc:
            logger.error("Processing failed for %s: %s", entry.url, exc, exc_info=True)
            self._fail(ErrorEntry(url=entry.url, code="fetcherror", status=response.status_code))

    def _handle_response(self, entry: FrontierEntry, response: FetchResponse) -> None:
        if 300 <= response.status_code < 400:
            if response.location:
                admitted = self.frontier.report_discovered([response.location], entry.depth, entry.url)
                logger.info("redirect %d %s -> %s (+%d)", response.status_code, entry.url, response.location, admitted)
            else:
                logger.info("redirect %d %s without location, nothing to follow", response.status_code, entry.url)
            return

        outcome = extract(entry.url, response.body, response.content_type)
        self.processed += 1

        if not isinstance(outcome, MetadataRecord):
            self.collector.skip(outcome)
            logger.info("[%d] skip %s (%s)", self.processed, entry.url, outcome.reason)
            return

        self.collector.record(outcome)
        admitted = self.frontier.report_discovered(extract_links(response.body), entry.depth, entry.url)
        logger.info("[%d] ok %s (+%d links, %d queued)", self.processed, entry.url, admitted, self.frontier.pending)

    def _fail(self, error: ErrorEntry) -> None:
        self.processed += 1
        self.collector.error(error)
        status = error.status if error.status is not None else "-"
        logger.info("[%d] error %s (%s, status %s)", self.processed, error.url, error.code, status)
