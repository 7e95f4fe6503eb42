"""
Command-line interface: crawl one domain and write the artifacts to disk.
"""
import argparse
import asyncio
import logging
import sys
from typing import Optional, Sequence

from pydantic import ValidationError

from .config import DEFAULT_OUTPUT_DIR, CrawlSettings
from .core import crawl
from .exporter import export

logger = logging.getLogger("metacrawler")

EXIT_OK = 0
EXIT_CONFIG = 2


def build_parser() -> argparse.ArgumentParser:
    # numeric options default to None so CrawlSettings can fall back to CRAWL_* variables
    parser = argparse.ArgumentParser(
        prog="metacrawler",
        description="Crawl one domain and export page metadata (title, description, social cards) to JSON/CSV.",
    )
    parser.add_argument("start_url", help="Seed URL (e.g. https://example.com/)")
    parser.add_argument("--domain", help="Hostname to stay on (default: the seed's hostname)")
    parser.add_argument("--max-depth", type=int,
                        help="Link levels to follow; 1 = seed only, 0 = unbounded (default: $CRAWL_MAX_DEPTH or 0)")
    parser.add_argument("--concurrency", type=int,
                        help="Parallel fetch workers (default: $CRAWL_CONCURRENCY or 2)")
    parser.add_argument("--interval", type=int,
                        help="Milliseconds between dispatches of one worker (default: $CRAWL_INTERVAL_MS or 500)")
    parser.add_argument("--timeout", type=int,
                        help="Per-fetch timeout in milliseconds (default: $CRAWL_TIMEOUT_MS or 20000)")
    parser.add_argument("--user-agent", help="User-Agent header (default: $CRAWL_USER_AGENT)")
    parser.add_argument("--ignore-robots", action="store_true", help="Do not consult robots.txt")
    parser.add_argument("--out-dir", default=DEFAULT_OUTPUT_DIR, help="Output directory (default: %(default)s)")
    parser.add_argument("--verbose", action="store_true", help="Log admission decisions and worker activity")
    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )

    options = {
        "start_url": args.start_url,
        "domain": args.domain,
        "max_depth": args.max_depth,
        "concurrency": args.concurrency,
        "interval_ms": args.interval,
        "timeout_ms": args.timeout,
        "user_agent": args.user_agent,
        "respect_robots": not args.ignore_robots,
    }
    try:
        settings = CrawlSettings(**{key: value for key, value in options.items() if value is not None})
        collector = asyncio.run(crawl(settings.to_config()))
    except (ValidationError, ValueError) as exc:
        logger.error("Invalid crawl settings: %s", exc)
        return EXIT_CONFIG

    summary = export(collector, args.out_dir)

    logger.info("Done")
    for name, path in summary.paths.items():
        rows = {"results.csv": summary.results, "skipped.csv": summary.skipped, "errors.csv": summary.errors}.get(name)
        logger.info("- %s%s", path, f" ({rows} rows)" if rows is not None else "")
    return EXIT_OK


if __name__ == "__main__":
    sys.exit(main())
