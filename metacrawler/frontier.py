import logging
from collections import deque
from threading import Lock
from typing import Iterable, Optional
from urllib.parse import urljoin

from .filters import is_eligible, normalize_url
from .models import CrawlConfig, FrontierEntry

logger = logging.getLogger(__name__)

SEED_DEPTH = 1  # the seed counts as the first level, so max_depth=1 fetches only the seed


class Frontier:
    """
    Deduplicated, depth-bounded FIFO of URLs waiting to be fetched.

    The seen-set check and the insert happen under one lock, so two workers
    reporting the same link can never both enqueue it. The lock is never held
    across an await.
    """

    def __init__(self, config: CrawlConfig):
        self.config = config
        self._queue: deque[FrontierEntry] = deque()
        self._seen: set[str] = set()
        self._lock = Lock()

    def __len__(self) -> int:
        return self.pending

    @property
    def pending(self) -> int:
        """Entries queued but not yet handed to a worker."""
        with self._lock:
            return len(self._queue)

    @property
    def seen_count(self) -> int:
        return len(self._seen)

    def seed(self) -> bool:
        """Admit the configured start URL at the first depth level."""
        decision = is_eligible(self.config.start_url, self.config)
        if not decision:
            logger.warning("Start URL rejected by admission filter (%s): %s", decision.reason, self.config.start_url)
            return False
        return self.enqueue(self.config.start_url, SEED_DEPTH, None)

    def enqueue(self, url: str, depth: int, parent: Optional[str]) -> bool:
        """Queue a URL unless its normalized form was already seen. Returns True if queued."""
        key = normalize_url(url)
        if key is None:
            return False

        with self._lock:
            if key in self._seen:
                return False
            self._seen.add(key)
            self._queue.append(FrontierEntry(url=key, depth=depth, discovered_from=parent))
        return True

    def next(self) -> Optional[FrontierEntry]:
        with self._lock:
            return self._queue.popleft() if self._queue else None

    def report_discovered(self, links: Iterable[str], at_depth: int, parent: str) -> int:
        """
        Offer links found on `parent` (fetched at `at_depth`) to the queue.

        Links are resolved against the parent URL and must pass the admission
        filter. Links beyond max_depth are dropped without touching the seen-set.
        Returns the number of links newly queued.
        """
        depth = at_depth + 1
        if self.config.max_depth > 0 and depth > self.config.max_depth:
            return 0

        admitted = 0
        for href in links:
            if not href:
                continue
            try:
                candidate = urljoin(parent, href.strip())
            except ValueError:
                continue
            decision = is_eligible(candidate, self.config)
            if not decision:
                logger.debug("Rejected %s (%s)", candidate, decision.reason)
                continue
            if self.enqueue(candidate, depth, parent):
                admitted += 1
        return admitted
