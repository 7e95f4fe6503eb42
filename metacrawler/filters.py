"""
Admission filtering for discovered links.

Every candidate URL passes through is_eligible() before it may enter the
frontier. The checks run in a fixed order and stop at the first failure:

  1. entity sanitation  (markup artifacts such as a stray &quot;)
  2. tracking parameters (utm_*, fbclid, ...)
  3. non-document paths  (static assets, framework image endpoints)
  4. domain scoping      (exact hostname match)

The asset checks are path heuristics only; the authoritative content-type
check happens after the fetch, in the extractor.
"""
from typing import Optional
from urllib.parse import parse_qsl, urldefrag, urlparse, urlunparse

from .models import CrawlConfig, FilterDecision

# decoded in this order, so "&amp;quot;" ends up as a literal quote
_ENTITIES = (
    ("&quot;", '"'),
    ("&amp;", "&"),
    ("&lt;", "<"),
    ("&gt;", ">"),
)

NOISE_QUERY_KEYS: frozenset[str] = frozenset((
    "utm_source", "utm_medium", "utm_campaign", "utm_term", "utm_content",
    "fbclid", "gclid", "yclid", "mc_cid", "mc_eid",
))

# Next.js image optimizer and build output
NON_DOCUMENT_PREFIXES = ("/_next/image", "/_next/static")

NON_DOCUMENT_EXTENSIONS = (
    ".css", ".js", ".json", ".xml", ".txt", ".pdf",
    ".jpg", ".jpeg", ".png", ".gif", ".svg", ".webp", ".ico",
    ".mp4", ".mp3", ".wav", ".avi", ".mov",
    ".zip", ".rar", ".tar", ".gz",
    ".woff", ".woff2", ".ttf", ".eot",
    ".map", ".min.js", ".min.css",
)

# image URLs smuggled through query strings of proxy / redirect endpoints
IMAGE_MARKERS = (".jpg", ".jpeg", ".png", ".gif", ".webp", ".svg")

ACCEPT = FilterDecision(True, "ok")


def decode_entities(raw: str) -> str:
    for entity, char in _ENTITIES:
        raw = raw.replace(entity, char)
    return raw


def is_malformed(url: str) -> bool:
    return '"' in url or "&quot;" in url


def has_noise_query(url: str) -> bool:
    try:
        query = urlparse(url).query
    except ValueError:
        return False
    return any(key in NOISE_QUERY_KEYS for key, _ in parse_qsl(query, keep_blank_values=True))


def is_non_document(url: str) -> bool:
    try:
        path = urlparse(url).path.lower()
    except ValueError:
        return False

    if path.startswith(NON_DOCUMENT_PREFIXES):
        return True
    if path.endswith(NON_DOCUMENT_EXTENSIONS):
        return True

    full = url.lower()
    return any(marker in full for marker in IMAGE_MARKERS)


def is_eligible(candidate_url: str, config: CrawlConfig) -> FilterDecision:
    """Decide whether an absolute candidate URL may be queued for fetching."""
    url = decode_entities(candidate_url)
    if is_malformed(url):
        return FilterDecision(False, "malformed")

    if has_noise_query(url):
        return FilterDecision(False, "noise-query")

    if is_non_document(url):
        return FilterDecision(False, "non-document")

    try:
        parsed = urlparse(url)
        hostname = parsed.hostname
        parsed.port  # raises on a garbage port
    except ValueError:
        return FilterDecision(False, "unparseable")
    if not parsed.scheme or not hostname:
        return FilterDecision(False, "unparseable")
    if hostname != config.domain:
        return FilterDecision(False, "off-domain")

    return ACCEPT


def normalize_url(url: str) -> Optional[str]:
    """
    Canonical form used as the frontier's seen-set key.

    - drops the fragment
    - lower-cases scheme and host, removes default ports
    - an empty path becomes "/"
    - keeps the query string (it matters for uniqueness)

    Returns None for non-http(s) or hostless URLs.
    """
    if not url:
        return None

    defragged, _ = urldefrag(url)
    try:
        parsed = urlparse(defragged)
        port = parsed.port
    except ValueError:
        return None

    scheme = parsed.scheme.lower()
    if scheme not in ("http", "https") or not parsed.hostname:
        return None

    hostname = parsed.hostname.lower()
    if ":" in hostname:
        # IPv6 literal
        hostname = f"[{hostname}]"
    if port is None or (scheme, port) in (("http", 80), ("https", 443)):
        netloc = hostname
    else:
        netloc = f"{hostname}:{port}"

    return urlunparse((scheme, netloc, parsed.path or "/", parsed.params, parsed.query, ""))
