import re
from typing import Optional

from bs4 import BeautifulSoup, SoupStrainer

# elements whose href / src may point at another page
_LINK_ATTRS = {
    "a": "href",
    "area": "href",
    "link": "href",
    "iframe": "src",
    "frame": "src",
}
LINK_STRAINER = SoupStrainer(list(_LINK_ATTRS))


def clean_text(raw: Optional[str]) -> str:
    """Trim and collapse internal whitespace to single spaces. None becomes ""."""
    if not raw:
        return ""
    return re.sub(r"\s+", " ", raw.strip())


def _attr(soup: BeautifulSoup, selector: str, attr: str = "content") -> Optional[str]:
    """Attribute of the first element matching a CSS selector, like jQuery's .attr()."""
    tag = soup.select_one(selector)
    if tag is None:
        return None
    value = tag.get(attr)
    # multi-valued attributes (rel, class) come back as lists
    if isinstance(value, list):
        value = " ".join(value)
    return value


def parse_html(html: str) -> dict:
    """
    Parse raw HTML and return a flat dict of every metadata signal.
    Values are raw (uncleaned) strings or None; the extractor applies the
    fallback chains and whitespace normalization.
    """
    soup = BeautifulSoup(html, "lxml")

    # --- title ---
    title_tag = soup.select_one("title")
    title = title_tag.get_text() if title_tag else None

    return {
        "title": title,

        # --- standard meta ---
        "description": _attr(soup, 'meta[name="description"]'),
        "keywords": _attr(soup, 'meta[name="keywords"]'),
        "robots": _attr(soup, 'meta[name="robots"]'),

        # --- open graph ---
        "og_title": _attr(soup, 'meta[property="og:title"]'),
        "og_description": _attr(soup, 'meta[property="og:description"]'),
        "og_image": _attr(soup, 'meta[property="og:image"]'),
        "og_type": _attr(soup, 'meta[property="og:type"]'),
        "og_url": _attr(soup, 'meta[property="og:url"]'),

        # --- twitter card ---
        "twitter_title": _attr(soup, 'meta[name="twitter:title"]'),
        "twitter_description": _attr(soup, 'meta[name="twitter:description"]'),
        # either name, whichever comes first in the document
        "twitter_image": _attr(soup, 'meta[name="twitter:image"], meta[name="twitter:image:src"]'),
        "twitter_card": _attr(soup, 'meta[name="twitter:card"]'),

        # --- canonical ---
        "canonical": _attr(soup, 'link[rel="canonical"]', "href"),
    }


def extract_links(html: str) -> list[str]:
    """Return every href / src value that could lead to another page, in document order."""
    soup = BeautifulSoup(html, "lxml", parse_only=LINK_STRAINER)
    links = []
    for tag in soup.find_all(list(_LINK_ATTRS)):
        value = tag.get(_LINK_ATTRS[tag.name])
        if value:
            links.append(value)
    return links
