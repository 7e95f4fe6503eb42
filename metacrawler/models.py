from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional


# CSV column -> MetadataRecord attribute; results.json uses the same key order
RECORD_FIELDS = {
    "url": "url",
    "title": "title",
    "description": "description",
    "ogType": "og_type",
    "canonical": "canonical",
    "ogUrl": "og_url",
    "image": "image",
    "twitterCard": "twitter_card",
    "keywords": "keywords",
    "robots": "robots",
}
RECORD_COLUMNS = tuple(RECORD_FIELDS)
SKIP_COLUMNS = ("url", "reason")
ERROR_COLUMNS = ("url", "code", "status")


@dataclass(frozen=True)
class CrawlConfig:
    start_url: str
    domain: str
    max_depth: int = 0                  # 0 = unbounded
    concurrency: int = 2
    interval_ms: int = 500              # politeness interval per worker
    timeout_ms: int = 20000
    user_agent: str = "MetaSitemapCrawler/1.0 (+https://example.local)"
    respect_robots: bool = True


@dataclass(frozen=True)
class FrontierEntry:
    url: str
    depth: int
    discovered_from: Optional[str] = None


@dataclass(frozen=True)
class FilterDecision:
    eligible: bool
    reason: str = "ok"

    def __bool__(self) -> bool:
        return self.eligible


@dataclass(frozen=True)
class MetadataRecord:
    url: str

    # page basics
    title: str = ""
    description: str = ""

    # open graph / twitter card
    og_type: str = ""
    canonical: str = ""
    og_url: str = ""
    image: str = ""
    twitter_card: str = ""

    # standard meta
    keywords: str = ""
    robots: str = ""

    def to_dict(self) -> dict:
        # camelCase keys, in column order
        return {column: getattr(self, attr) for column, attr in RECORD_FIELDS.items()}


@dataclass(frozen=True)
class SkipEntry:
    url: str
    reason: str

    def to_dict(self) -> dict:
        return {"url": self.url, "reason": self.reason}


@dataclass(frozen=True)
class ErrorEntry:
    url: str
    code: str                           # fetcherror | client:<code> | 404 | timeout
    status: Optional[int] = None        # HTTP status, only when known

    def to_dict(self) -> dict:
        return {"url": self.url, "code": self.code, "status": self.status}


@dataclass(frozen=True)
class FetchResponse:
    url: str
    status_code: int
    content_type: Optional[str] = None
    body: str = ""
    location: Optional[str] = None      # set on 3xx responses


@dataclass
class ExportSummary:
    paths: dict[str, Path] = field(default_factory=dict)
    results: int = 0
    skipped: int = 0
    errors: int = 0
