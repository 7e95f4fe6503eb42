from .core import crawl
from .collector import ResultCollector
from .config import CrawlSettings
from .exporter import export
from .extractor import extract
from .filters import is_eligible
from .models import CrawlConfig, ErrorEntry, MetadataRecord, SkipEntry

__version__ = "1.0.0"
__all__ = [
    "crawl", "export", "extract", "is_eligible",
    "ResultCollector", "CrawlSettings", "CrawlConfig",
    "MetadataRecord", "SkipEntry", "ErrorEntry",
]
