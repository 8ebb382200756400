"""Link preview and readable-article scrape engine."""

__version__ = "0.1.0"

from linkscrape.scraper import ScraperService, create_scraper_service
from linkscrape.config import ScraperConfig
from linkscrape.browser_config import BrowserConfig
from linkscrape.retry import RetryPolicy
from linkscrape.errors import (
    ScrapeError,
    QueueTimeoutError,
    ExtractionError,
    NavigationError,
)
from linkscrape.models import (
    StrategyKind,
    ScrapeStatus,
    ErrorKind,
    ScrapeTask,
    PreviewResult,
    ArticleResult,
    CacheEntry,
    DownloadLink,
    PageMetadata,
)

# Infrastructure
from linkscrape.infrastructure import (
    ScrapeRequestQueue,
    BrowserResourceManager,
    ContentCache,
    MemoryCacheStore,
    SQLiteCacheStore,
)
from linkscrape.utils import WafChallengeHandler

__all__ = [
    "ScraperService",
    "create_scraper_service",
    "ScraperConfig",
    "BrowserConfig",
    "RetryPolicy",
    "ScrapeError",
    "QueueTimeoutError",
    "ExtractionError",
    "NavigationError",
    "StrategyKind",
    "ScrapeStatus",
    "ErrorKind",
    "ScrapeTask",
    "PreviewResult",
    "ArticleResult",
    "CacheEntry",
    "DownloadLink",
    "PageMetadata",
    "ScrapeRequestQueue",
    "BrowserResourceManager",
    "ContentCache",
    "MemoryCacheStore",
    "SQLiteCacheStore",
    "WafChallengeHandler",
]
