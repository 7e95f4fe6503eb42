from typing import Optional, Union

from .models import MetadataRecord, SkipEntry
from .parser import clean_text, parse_html

HTML_MEDIA_TYPES = ("text/html", "application/xhtml+xml")

# Ordered sources per field: the first non-empty value wins.
# Fields with a single source have no fallback.
FALLBACK_CHAINS: dict[str, tuple[str, ...]] = {
    "title":        ("title", "og_title", "twitter_title"),
    "description":  ("description", "og_description", "twitter_description"),
    "og_type":      ("og_type",),
    "canonical":    ("canonical",),
    "og_url":       ("og_url",),
    "image":        ("og_image", "twitter_image"),
    "twitter_card": ("twitter_card",),
    "keywords":     ("keywords",),
    "robots":       ("robots",),
}


def media_type(content_type: Optional[str]) -> str:
    """Primary media type with parameters (charset etc.) stripped."""
    if not content_type:
        return ""
    return content_type.split(";")[0].strip()


def is_html(content_type: Optional[str]) -> bool:
    primary = media_type(content_type).lower()
    return any(t in primary for t in HTML_MEDIA_TYPES)


def first_non_empty(parsed: dict, sources: tuple[str, ...]) -> str:
    for source in sources:
        value = clean_text(parsed.get(source))
        if value:
            return value
    return ""


def build_record(url: str, parsed: dict) -> MetadataRecord:
    values = {name: first_non_empty(parsed, chain) for name, chain in FALLBACK_CHAINS.items()}
    return MetadataRecord(url=url, **values)


def extract(page_url: str, html: str, content_type: Optional[str]) -> Union[MetadataRecord, SkipEntry]:
    """
    Turn a fetched document into a MetadataRecord.

    Non-HTML responses are not parsed; they come back as a SkipEntry with
    reason "non-html: <media type>" ("unknown" when no type was declared).
    """
    if not is_html(content_type):
        return SkipEntry(url=page_url, reason=f"non-html: {media_type(content_type) or 'unknown'}")

    return build_record(page_url, parse_html(html or ""))
