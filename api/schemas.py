from pydantic import BaseModel

from metacrawler.config import CrawlSettings


class CrawlRequest(CrawlSettings):
    """Same fields and validation as the CLI options; omitted fields use the env defaults."""


class CrawlResponse(BaseModel):
    domain: str
    results: int
    skipped: int
    errors: int
    artifacts: dict[str, str]   # artifact name -> path on the server


class HealthResponse(BaseModel):
    status: str
    running: list[str] = []     # domains with a crawl in progress


class ErrorResponse(BaseModel):
    detail: str
    code: str
