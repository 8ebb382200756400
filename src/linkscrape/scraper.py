"""
Scraper service: the two entry points and the fetch strategy behind them.

get_preview:        cache -> lightweight fetch -> rendered fetch (retried)
get_reader_content: cache -> rendered article fetch (retried)

Both entry points always return a typed result; no exception reaches the
caller.
"""

import asyncio
import logging
import re
from datetime import timedelta
from typing import Awaitable, Callable, Optional
from urllib.parse import urljoin, urlsplit

from linkscrape.browser_config import BrowserConfig
from linkscrape.config import ScraperConfig
from linkscrape.constants import ARTICLE_CACHE_NAMESPACE, PREVIEW_CACHE_NAMESPACE
from linkscrape.fetchers.lightweight import LightweightFetcher
from linkscrape.fetchers.rendered import RenderedFetcher
from linkscrape.infrastructure.browser_manager import BrowserResourceManager
from linkscrape.infrastructure.content_cache import ContentCache, MemoryCacheStore, SQLiteCacheStore
from linkscrape.infrastructure.scrape_queue import ScrapeRequestQueue
from linkscrape.models import (
    ArticleResult,
    ErrorKind,
    PreviewResult,
    ScrapeStatus,
    ScrapeTask,
    StrategyKind,
)
from linkscrape.retry import RetryPolicy

logger = logging.getLogger(__name__)

_ABSOLUTE_URL = re.compile(r"^https?://", re.IGNORECASE)


def domain_title(url: str) -> str:
    """Human-readable fallback title: the host without `www.`, capitalized."""
    host = urlsplit(url).hostname
    if not host:
        return url
    if host.startswith("www."):
        host = host[4:]
    return host[:1].upper() + host[1:]


def absolutize(value: str, base_url: str) -> str:
    """Make a relative or protocol-relative link absolute."""
    if not value or _ABSOLUTE_URL.match(value) or value.startswith("data:"):
        return value
    return urljoin(base_url, value)


def normalize_preview(result: PreviewResult, requested_url: str) -> PreviewResult:
    """
    Fill in what a preview is missing.

    An empty title becomes the capitalized domain, in which case an empty
    favicon becomes `<origin>/favicon.ico`. Image and favicon links are
    resolved against the page's final URL.
    """
    base_url = result.url or requested_url

    if not result.title:
        result.title = domain_title(requested_url)
        parts = urlsplit(requested_url)
        if not result.favicon and parts.scheme and parts.netloc:
            result.favicon = f"{parts.scheme}://{parts.netloc}/favicon.ico"

    result.image = absolutize(result.image, base_url)
    result.favicon = absolutize(result.favicon, base_url)
    if not result.url:
        result.url = requested_url
    return result


class ScraperService:
    """
    Link preview and reader content with caching, escalation and retries.

    Usage:
        async with create_scraper_service() as scraper:
            preview = await scraper.get_preview("https://example.com/post")
            article = await scraper.get_reader_content("https://example.com/post")
    """

    def __init__(
        self,
        config: Optional[ScraperConfig] = None,
        *,
        cache: Optional[ContentCache] = None,
        queue: Optional[ScrapeRequestQueue] = None,
        browser_manager: Optional[BrowserResourceManager] = None,
        lightweight: Optional[LightweightFetcher] = None,
        rendered: Optional[RenderedFetcher] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        """
        Initialize the service.

        Collaborators not given are built from `config`.

        Args:
            config: Tunables; defaults to ScraperConfig()
            cache: Result cache; defaults to an in-memory store
            queue: Admission queue for rendered tasks
            browser_manager: Shared browser owner
            lightweight: Browser-less preview fetcher
            rendered: Rendered task bodies
            sleep: Backoff sleep, replaceable in tests
        """
        self.config = config or ScraperConfig()

        self.queue = queue or ScrapeRequestQueue(
            concurrency=self.config.concurrency,
            default_timeout=self.config.queue_timeout_seconds,
        )

        if browser_manager is None:
            browser_manager = BrowserResourceManager(
                config=BrowserConfig(
                    headless=self.config.headless,
                    executable_path=self.config.executable_path,
                ),
                max_uses=self.config.max_browser_uses,
                idle_close_seconds=self.config.idle_close_seconds,
                queue=self.queue,
            )
        self.browser_manager = browser_manager

        self.cache = cache or ContentCache(
            MemoryCacheStore(), ttl=timedelta(days=self.config.cache_ttl_days)
        )
        self.lightweight = lightweight or LightweightFetcher(
            timeout=self.config.lightweight_timeout_seconds
        )
        self.rendered = rendered or RenderedFetcher(self.browser_manager, config=self.config)

        self.preview_retry = RetryPolicy(
            self.config.preview_max_retries,
            self.config.preview_backoff_seconds,
            sleep=sleep,
            label="Scraper:Preview",
        )
        self.article_retry = RetryPolicy(
            self.config.article_max_retries,
            self.config.article_backoff_seconds,
            sleep=sleep,
            label="Scraper:Reader",
        )

    # -------------------------------------------------------------------------
    # Entry points
    # -------------------------------------------------------------------------

    async def get_preview(self, url: str) -> PreviewResult:
        """
        Get link preview metadata for a URL.

        Returns:
            PreviewResult with status success, blocked or failed
        """
        try:
            return await self._get_preview(url)
        except Exception as e:
            logger.error(f"[Scraper] Error fetching link preview for {url}: {e}")
            return normalize_preview(PreviewResult.failed(str(e)), url)

    async def get_reader_content(self, url: str) -> ArticleResult:
        """
        Get the readable article content of a URL.

        Returns:
            ArticleResult with status success, blocked or failed
        """
        try:
            return await self._get_reader_content(url)
        except Exception as e:
            logger.error(f"[Scraper] Error fetching reader content for {url}: {e}")
            return ArticleResult.failed(str(e))

    # -------------------------------------------------------------------------
    # Strategy
    # -------------------------------------------------------------------------

    async def _get_preview(self, url: str) -> PreviewResult:
        cached = await self.cache.lookup(PREVIEW_CACHE_NAMESPACE, url)
        if cached is not None:
            return PreviewResult.from_dict(cached)

        logger.info(f"[Scraper] Starting Smart Scrape for: {url}")
        outcome = await self.lightweight.fetch(url)
        if outcome.ok:
            logger.info(f"[Scraper] Simple Scrape SUCCESS for: {url}")
            result = outcome.result
        else:
            logger.info(
                f"[Scraper] Simple Scrape SKIPPED for: {url}. Reason: {outcome.reason or 'Unknown'}. "
                f"Switching to rendered scrape."
            )
            result = await self.preview_retry.run(
                lambda attempt: self._submit(ScrapeTask(url, StrategyKind.PREVIEW, attempt)),
                on_timeout=lambda e: PreviewResult.failed(e.message, ErrorKind.QUEUE_TIMEOUT),
                on_error=lambda e: PreviewResult.failed(str(e)),
                url=url,
            )

        result = normalize_preview(result, url)
        if result.ok:
            self.cache.store(PREVIEW_CACHE_NAMESPACE, url, result.to_dict())
        return result

    async def _get_reader_content(self, url: str) -> ArticleResult:
        cached = await self.cache.lookup(ARTICLE_CACHE_NAMESPACE, url)
        if cached is not None:
            return ArticleResult.from_dict(cached)

        logger.info(f"[Scraper:Reader] Cache MISS - fetching fresh for {url}")
        result = await self.article_retry.run(
            lambda attempt: self._submit(ScrapeTask(url, StrategyKind.ARTICLE, attempt)),
            on_timeout=lambda e: ArticleResult.failed(e.message, ErrorKind.QUEUE_TIMEOUT),
            on_error=lambda e: ArticleResult.failed(str(e)),
            url=url,
        )

        if self._should_cache_article(result):
            self.cache.store(ARTICLE_CACHE_NAMESPACE, url, result.to_dict())
        return result

    def _should_cache_article(self, result: ArticleResult) -> bool:
        if result.ok:
            return True
        # Failures are cached to avoid repeating expensive attempts; blocks
        # and queue timeouts are transient and never cached
        return (
            self.config.cache_failed_articles
            and result.status == ScrapeStatus.FAILED
            and result.error_kind != ErrorKind.QUEUE_TIMEOUT
        )

    async def _submit(self, task: ScrapeTask):
        """Run one rendered attempt through the queue."""
        if task.strategy_kind == StrategyKind.PREVIEW:
            fetch = self.rendered.fetch_preview
        else:
            fetch = self.rendered.fetch_article

        logger.debug(
            f"[Scraper] Enqueueing {task.strategy_kind.value} task for {task.url} "
            f"(attempt {task.attempt}, pending {self.queue.pending_count})"
        )
        return await self.queue.enqueue(lambda: fetch(task.url))

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    async def close(self) -> None:
        """Flush pending cache writes and shut the browser down."""
        await self.cache.drain()
        await self.browser_manager.close()

    async def __aenter__(self) -> "ScraperService":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()


def create_scraper_service(config: Optional[ScraperConfig] = None) -> ScraperService:
    """
    Build a ScraperService with the default collaborators.

    Uses ScraperConfig.from_env() when no config is given, and a SQLite
    cache at `config.cache_path`.
    """
    config = config or ScraperConfig.from_env()
    cache = ContentCache(
        SQLiteCacheStore(config.cache_file),
        ttl=timedelta(days=config.cache_ttl_days),
    )
    return ScraperService(config, cache=cache)
