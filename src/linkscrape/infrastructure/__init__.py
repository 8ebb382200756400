"""
Infrastructure Package.

Provides the bounded scrape queue, the shared browser lifecycle, stealth
init scripts and the URL-keyed content cache.
"""

from .scrape_queue import (
    ScrapeRequestQueue,
    QueueStatus,
)
from .browser_manager import (
    BrowserResourceManager,
    BrowserStatus,
)
from .content_cache import (
    CacheStore,
    ContentCache,
    MemoryCacheStore,
    SQLiteCacheStore,
    cache_key,
    normalize_url,
)
from .stealth import (
    STEALTH_SCRIPTS,
    COMBINED_STEALTH_SCRIPT,
    apply_stealth,
)

__all__ = [
    # Scrape queue
    "ScrapeRequestQueue",
    "QueueStatus",
    # Browser lifecycle
    "BrowserResourceManager",
    "BrowserStatus",
    # Content cache
    "CacheStore",
    "ContentCache",
    "MemoryCacheStore",
    "SQLiteCacheStore",
    "cache_key",
    "normalize_url",
    # Stealth
    "STEALTH_SCRIPTS",
    "COMBINED_STEALTH_SCRIPT",
    "apply_stealth",
]
