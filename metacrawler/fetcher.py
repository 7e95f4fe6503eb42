import asyncio
import errno
import functools
import logging
from threading import Lock
from typing import Awaitable, Callable, Optional
from urllib.parse import urlparse
from urllib.robotparser import RobotFileParser

import requests
from bs4.dammit import UnicodeDammit
from requests.utils import get_encoding_from_headers

from .extractor import is_html
from .models import CrawlConfig, ErrorEntry, FetchResponse

logger = logging.getLogger(__name__)

USER_AGENT = "MetaSitemapCrawler/1.0 (+https://example.local)"
DEFAULT_TIMEOUT = 20  # seconds
MAX_CONTENT_BYTES = 5 * 1024 * 1024  # 5 MB ceiling to avoid runaway pages
CHUNK_SIZE = 64 * 1024

Fetcher = Callable[[str], Awaitable[FetchResponse]]


class FetchError(Exception):
    """A fetch that produced no usable response. Each subclass maps to one error code."""

    code = "fetcherror"

    def __init__(self, url: str, status: Optional[int] = None, message: str = ""):
        super().__init__(message or f"{self.code}: {url}")
        self.url = url
        self.status = status

    def to_entry(self) -> ErrorEntry:
        return ErrorEntry(url=self.url, code=self.code, status=self.status)


class FetchHTTPError(FetchError):
    """Server answered with an error status other than 404."""

    def __init__(self, url: str, status: int):
        super().__init__(url, status, f"HTTP {status}: {url}")


class FetchNotFound(FetchError):
    code = "404"

    def __init__(self, url: str):
        super().__init__(url, 404, f"not found: {url}")


class FetchTimeout(FetchError):
    code = "timeout"

    def __init__(self, url: str):
        super().__init__(url, None, f"timed out: {url}")


class FetchClientError(FetchError):
    """Connection-level failure (DNS, refused, reset, TLS...)."""

    def __init__(self, url: str, reason: str = "unknown"):
        super().__init__(url, None, f"client error {reason}: {url}")
        self.reason = reason
        self.code = f"client:{reason}"


class RobotsDisallowed(PermissionError):
    pass


def _robots_url(url: str) -> str:
    parsed = urlparse(url)
    return f"{parsed.scheme}://{parsed.netloc}/robots.txt"


class RobotsCache:
    """
    robots.txt rules for one crawl, fetched once per origin.

    robots.txt is requested with the crawl's own User-Agent and timeout. Any
    4xx answer (401 and 403 included) means no rules apply. A transport
    failure or a 5xx also leaves the origin unrestricted.
    """

    def __init__(self, user_agent: str = USER_AGENT, timeout: float = DEFAULT_TIMEOUT):
        self.user_agent = user_agent
        self.timeout = timeout
        self._parsers: dict[str, Optional[RobotFileParser]] = {}
        self._origin_locks: dict[str, Lock] = {}
        self._lock = Lock()

    def allowed(self, url: str) -> bool:
        """Check robots.txt for the given URL. Returns True if crawling is allowed."""
        rp = self.parser_for(_robots_url(url))
        if rp is None:
            return True
        return rp.can_fetch(self.user_agent, url)

    def parser_for(self, robots_url: str) -> Optional[RobotFileParser]:
        with self._lock:
            origin_lock = self._origin_locks.setdefault(robots_url, Lock())
        # one download per origin even when several workers ask at once
        with origin_lock:
            if robots_url not in self._parsers:
                self._parsers[robots_url] = self._load(robots_url)
            return self._parsers[robots_url]

    def _load(self, robots_url: str) -> Optional[RobotFileParser]:
        try:
            response = requests.get(robots_url, headers={"User-Agent": self.user_agent}, timeout=self.timeout)
        except requests.RequestException as exc:
            logger.warning("robots.txt unreachable at %s, crawling unrestricted: %s", robots_url, exc)
            return None

        status = response.status_code
        if status >= 500:
            logger.warning("robots.txt at %s answered %d, crawling unrestricted", robots_url, status)
            return None

        rp = RobotFileParser(robots_url)
        if status >= 400:
            if status in (401, 403):
                logger.warning(
                    "robots.txt at %s answered %d to %s, treating it as absent", robots_url, status, self.user_agent,
                )
            rp.allow_all = True
            return rp

        rp.parse(response.content.decode("utf-8", errors="replace").splitlines())
        logger.debug("robots.txt loaded from %s", robots_url)
        return rp


def _error_code(exc: BaseException) -> str:
    """Symbolic errno (ECONNREFUSED, ...) buried somewhere in a requests exception chain."""
    pending = [exc]
    visited = set()
    while pending:
        current = pending.pop(0)
        if id(current) in visited:
            continue
        visited.add(id(current))

        if isinstance(current, OSError) and current.errno in errno.errorcode:
            return errno.errorcode[current.errno]

        # urllib3 wraps the socket error in MaxRetryError.reason / exception args
        nested = [current.__cause__, current.__context__, getattr(current, "reason", None), *current.args]
        pending.extend(e for e in nested if isinstance(e, BaseException))
    return "unknown"


def _read_body(response: requests.Response) -> str:
    """
    Download at most MAX_CONTENT_BYTES of the body and decode it.

    A charset in the Content-Type header wins. Without one the bytes go
    through UnicodeDammit, which honors a BOM or a <meta charset> declaration
    before guessing.
    """
    raw = bytearray()
    for chunk in response.iter_content(chunk_size=CHUNK_SIZE):
        raw.extend(chunk)
        if len(raw) >= MAX_CONTENT_BYTES:
            break
    raw = bytes(raw[:MAX_CONTENT_BYTES])

    content_type = response.headers.get("content-type") or ""
    declared = get_encoding_from_headers(response.headers) if "charset" in content_type.lower() else None
    dammit = UnicodeDammit(raw, known_definite_encodings=[declared] if declared else [], is_html=True)
    if dammit.unicode_markup is None:
        return raw.decode("utf-8", errors="replace")
    return dammit.unicode_markup


def _sync_fetch(url: str, user_agent: str, timeout: float) -> FetchResponse:
    """Synchronous fetch using requests. Runs inside a thread executor."""
    headers = {
        "User-Agent": user_agent,
        "Accept": "text/html,application/xhtml+xml;q=0.9,*/*;q=0.8",
    }
    try:
        # redirects are not followed: the target goes back through the frontier
        with requests.get(url, headers=headers, timeout=timeout, allow_redirects=False, stream=True) as response:
            status = response.status_code
            if status == 404:
                raise FetchNotFound(url)
            if status >= 400:
                raise FetchHTTPError(url, status)

            content_type = response.headers.get("content-type")
            location = response.headers.get("location") if response.is_redirect else None

            body = ""
            # skip downloading bodies the extractor would discard anyway
            if 200 <= status < 300 and is_html(content_type):
                body = _read_body(response)
    except requests.Timeout as exc:
        raise FetchTimeout(url) from exc
    except requests.RequestException as exc:
        raise FetchClientError(url, _error_code(exc)) from exc

    return FetchResponse(url=url, status_code=status, content_type=content_type, body=body, location=location)


async def fetch_page(
    url: str,
    user_agent: str = USER_AGENT,
    timeout: float = DEFAULT_TIMEOUT,
    respect_robots: bool = True,
    robots: Optional[RobotsCache] = None,
) -> FetchResponse:
    """
    Fetch a URL without blocking the event loop.

    Uses requests in a thread executor. Raises a FetchError subclass on any
    failure and RobotsDisallowed when robots.txt forbids the URL. Pass the
    crawl's RobotsCache to reuse robots.txt rules across calls.
    """
    loop = asyncio.get_event_loop()
    if respect_robots:
        if robots is None:
            robots = RobotsCache(user_agent, timeout)
        allowed = await loop.run_in_executor(None, robots.allowed, url)
        if not allowed:
            raise RobotsDisallowed(f"robots.txt disallows crawling {url}")

    return await loop.run_in_executor(None, _sync_fetch, url, user_agent, timeout)


def make_fetcher(config: CrawlConfig) -> Fetcher:
    """Bind fetch_page to the run's user agent, timeout and robots policy, with a fresh robots cache."""
    timeout = config.timeout_ms / 1000
    return functools.partial(
        fetch_page,
        user_agent=config.user_agent,
        timeout=timeout,
        respect_robots=config.respect_robots,
        robots=RobotsCache(config.user_agent, timeout) if config.respect_robots else None,
    )
