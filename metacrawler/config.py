import os
from typing import Any, Optional
from urllib.parse import urlparse

from pydantic import BaseModel, Field, field_validator, model_validator

from .models import CrawlConfig

DEFAULT_OUTPUT_DIR = os.getenv("CRAWL_OUTPUT_DIR", "out")

# option -> environment variable consulted when the option is not given
ENV_DEFAULTS = {
    "max_depth": "CRAWL_MAX_DEPTH",
    "concurrency": "CRAWL_CONCURRENCY",
    "interval_ms": "CRAWL_INTERVAL_MS",
    "timeout_ms": "CRAWL_TIMEOUT_MS",
    "user_agent": "CRAWL_USER_AGENT",
}

# characters that cannot appear in a hostname used as a directory name
_UNSAFE_DOMAIN_CHARS = set("/\\?#@") | {" ", "\t", "\n", "\r", "\0"}


class CrawlSettings(BaseModel):
    """
    Raw crawl options as they arrive from the command line or an API request.

    Options left out fall back to the CRAWL_* environment variables, then to
    the built-in defaults. Environment values are validated like any other
    input, so a malformed CRAWL_CONCURRENCY is a ValidationError, not a crash.
    """

    start_url: str
    domain: Optional[str] = None        # defaults to the start URL's hostname
    max_depth: int = Field(0, ge=0)
    concurrency: int = Field(2, ge=1)
    interval_ms: int = Field(500, ge=0)
    timeout_ms: int = Field(20000, gt=0)
    user_agent: str = "MetaSitemapCrawler/1.0 (+https://example.local)"
    respect_robots: bool = True

    @model_validator(mode="before")
    @classmethod
    def fill_from_environment(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        data = dict(data)
        for field, var in ENV_DEFAULTS.items():
            if data.get(field) is not None:
                continue
            value = os.getenv(var)
            if value is not None:
                data[field] = value
            else:
                data.pop(field, None)
        return data

    @field_validator("start_url")
    @classmethod
    def start_url_must_be_http(cls, v: str) -> str:
        v = v.strip()
        if not v.startswith(("http://", "https://")):
            raise ValueError("start URL must start with http:// or https://")
        try:
            hostname = urlparse(v).hostname
        except ValueError as exc:
            raise ValueError(f"start URL cannot be parsed: {exc}") from exc
        if not hostname:
            raise ValueError("start URL has no hostname")
        return v

    @field_validator("domain")
    @classmethod
    def domain_is_lowercase(cls, v: Optional[str]) -> Optional[str]:
        if v is None or not v.strip():
            return None
        return v.strip().lower()

    @model_validator(mode="after")
    def default_domain(self) -> "CrawlSettings":
        if self.domain is None:
            self.domain = urlparse(self.start_url).hostname
        # the domain doubles as an output directory name for the API
        if self.domain in (".", "..") or _UNSAFE_DOMAIN_CHARS & set(self.domain):
            raise ValueError(f"domain must be a bare hostname, e.g. example.com (got {self.domain!r})")
        return self

    def to_config(self) -> CrawlConfig:
        return CrawlConfig(
            start_url=self.start_url,
            domain=self.domain,
            max_depth=self.max_depth,
            concurrency=self.concurrency,
            interval_ms=self.interval_ms,
            timeout_ms=self.timeout_ms,
            user_agent=self.user_agent,
            respect_robots=self.respect_robots,
        )
