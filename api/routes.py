import logging
from pathlib import Path

from fastapi import APIRouter, HTTPException

from metacrawler.config import DEFAULT_OUTPUT_DIR
from metacrawler.core import crawl
from metacrawler.exporter import export
from .schemas import CrawlRequest, CrawlResponse, ErrorResponse, HealthResponse

logger = logging.getLogger(__name__)

router = APIRouter()

# one crawl per domain at a time; artifacts for a domain share a directory
_running: set[str] = set()


def output_dir_for(domain: str) -> Path:
    return Path(DEFAULT_OUTPUT_DIR) / domain


@router.post(
    "/crawl",
    response_model=CrawlResponse,
    responses={409: {"model": ErrorResponse}},
    summary="Crawl a domain and export page metadata",
)
async def crawl_domain(request: CrawlRequest) -> CrawlResponse:
    """
    Crawls the domain of `start_url` (or `domain`) and writes results.json,
    results.csv, skipped.csv and errors.csv under CRAWL_OUTPUT_DIR/<domain>.

    - Returns 409 if a crawl for the same domain is still running.
    - Set `respect_robots: false` to bypass robots.txt (useful for testing).
    """
    config = request.to_config()
    if config.domain in _running:
        logger.warning("Crawl already running for %s", config.domain)
        raise HTTPException(status_code=409, detail=f"A crawl for {config.domain} is already running")

    _running.add(config.domain)
    try:
        collector = await crawl(config)
    finally:
        _running.discard(config.domain)

    summary = export(collector, output_dir_for(config.domain))
    return CrawlResponse(
        domain=config.domain,
        results=summary.results,
        skipped=summary.skipped,
        errors=summary.errors,
        artifacts={name: str(path) for name, path in summary.paths.items()},
    )


@router.get("/health", response_model=HealthResponse, summary="Service health check")
async def health_check() -> HealthResponse:
    return HealthResponse(status="ok", running=sorted(_running))
