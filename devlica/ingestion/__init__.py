"""GitHub crawling: rate-aware client, fetchers and the concurrent crawler."""

from devlica.ingestion.crawler import CrawlError, Crawler
from devlica.ingestion.models import CrawlResult

__all__ = [
    "CrawlError",
    "CrawlResult",
    "Crawler",
]
