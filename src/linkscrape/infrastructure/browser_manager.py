"""
Browser Resource Management.

This module owns the single shared headless browser. The browser is launched
lazily on first demand, concurrent first-demand callers share one launch,
and the instance is closed after an idle period or recycled after a use
ceiling once the scrape queue has drained.

Every task works inside its own browser context, so cookies, storage and
navigation crashes never leak between concurrent tasks.
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Any, Awaitable, Callable, Optional

from linkscrape.browser_config import BrowserConfig
from linkscrape.constants import DEFAULT_IDLE_CLOSE_SECONDS, DEFAULT_MAX_BROWSER_USES
from linkscrape.infrastructure.scrape_queue import ScrapeRequestQueue
from linkscrape.infrastructure.stealth import apply_stealth
from linkscrape.models import BrowserSession

logger = logging.getLogger(__name__)


@dataclass
class BrowserStatus:
    """Current status of the shared browser."""
    running: bool
    launching: bool
    use_count: int
    recycle_pending: bool
    total_launches: int
    uptime_seconds: float


class BrowserResourceManager:
    """
    Owns the process-wide browser session.

    Features:
    - Lazy launch with single-flight deduplication
    - Reset on unexpected disconnect, relaunch on next demand
    - Idle shutdown when the queue has no work
    - Recycling after a use ceiling, deferred until the queue is idle
    - Isolated context + page per task with automatic cleanup
    """

    def __init__(
        self,
        config: Optional[BrowserConfig] = None,
        max_uses: int = DEFAULT_MAX_BROWSER_USES,
        idle_close_seconds: float = DEFAULT_IDLE_CLOSE_SECONDS,
        queue: Optional[ScrapeRequestQueue] = None,
        launcher: Optional[Callable[[], Awaitable[Any]]] = None,
    ):
        """
        Initialize the manager.

        Args:
            config: Launch and context settings
            max_uses: Uses before the session is recycled at the next idle point
            idle_close_seconds: Seconds without demand before shutdown
            queue: Scrape queue whose activity gates shutdown and recycling
            launcher: Coroutine factory returning a browser; defaults to Playwright
        """
        self.config = config or BrowserConfig()
        self.max_uses = max_uses
        self.idle_close_seconds = idle_close_seconds
        self._launcher = launcher or self._launch_playwright

        self._playwright = None
        self._session: Optional[BrowserSession] = None
        self._launch_future: Optional[asyncio.Future] = None
        self._idle_handle: Optional[asyncio.TimerHandle] = None
        self._background: set[asyncio.Task] = set()
        self._total_launches = 0

        self._queue: Optional[ScrapeRequestQueue] = None
        if queue is not None:
            self.attach_queue(queue)

    def attach_queue(self, queue: ScrapeRequestQueue) -> None:
        """Watch a queue for idleness."""
        if self._queue is not None:
            self._queue.remove_idle_listener(self._on_queue_idle)
        self._queue = queue
        queue.add_idle_listener(self._on_queue_idle)

    async def acquire(self) -> Any:
        """
        Get the shared browser, launching it if needed.

        Concurrent callers arriving while a launch is in flight all await
        the same launch.

        Returns:
            The browser handle
        """
        self._reset_idle_timer()

        session = self._session
        if session is None:
            if self._launch_future is None:
                self._launch_future = asyncio.ensure_future(self._launch())
            session = await asyncio.shield(self._launch_future)

        session.use_count += 1
        if session.use_count >= self.max_uses and not session.recycle_pending:
            session.recycle_pending = True
            logger.info(
                f"[Browser] Request limit ({self.max_uses}) reached. "
                f"Recycling once the queue is idle..."
            )
        return session.handle

    async def _launch(self) -> BrowserSession:
        logger.info("[Browser] Launching new browser instance...")
        try:
            handle = await self._launcher()
        except Exception as e:
            logger.error(f"[Browser] Launch failed: {e}")
            raise
        finally:
            self._launch_future = None

        session = BrowserSession(handle=handle)
        self._session = session
        self._total_launches += 1

        on = getattr(handle, "on", None)
        if callable(on):
            on("disconnected", lambda *_: self._on_disconnected(session))

        return session

    async def _launch_playwright(self) -> Any:
        """Start the Playwright driver (once) and launch Chromium."""
        try:
            from playwright.async_api import async_playwright
        except ImportError:
            raise ImportError(
                "playwright package not installed. "
                "Install with: pip install playwright && playwright install chromium"
            )

        if self._playwright is None:
            self._playwright = await async_playwright().start()

        options = self.config.launch_options()
        executable_path = options.get("executable_path")
        if executable_path and not Path(executable_path).exists():
            logger.warning(
                f"[Browser] Executable {executable_path} not found, using bundled Chromium"
            )
            options.pop("executable_path")

        return await self._playwright.chromium.launch(**options)

    def _on_disconnected(self, session: BrowserSession) -> None:
        if self._session is session:
            logger.info("[Browser] Browser disconnected.")
            self._session = None

    def _queue_is_idle(self) -> bool:
        return self._queue.is_idle if self._queue is not None else True

    def _reset_idle_timer(self) -> None:
        if self._idle_handle is not None:
            self._idle_handle.cancel()
        loop = asyncio.get_running_loop()
        self._idle_handle = loop.call_later(self.idle_close_seconds, self._on_idle_timeout)

    def _on_idle_timeout(self) -> None:
        self._idle_handle = None
        if self._session is None:
            return
        if self._queue_is_idle():
            logger.info("[Browser] Idle timeout reached, shutting down...")
            self._spawn(self.close_browser())
        else:
            self._reset_idle_timer()

    def _on_queue_idle(self) -> None:
        session = self._session
        if session is not None and session.recycle_pending:
            logger.info(
                f"[Browser] Recycling browser after {session.use_count} uses..."
            )
            self._spawn(self.close_browser())

    def _spawn(self, coro: Awaitable[Any]) -> None:
        task = asyncio.ensure_future(coro)
        self._background.add(task)
        task.add_done_callback(self._background.discard)

    async def close_browser(self) -> None:
        """Close the current browser; the next acquire() relaunches."""
        session = self._session
        if session is None:
            return
        self._session = None

        logger.info("[Browser] Closing browser instance...")
        try:
            await session.handle.close()
        except Exception as e:
            logger.error(f"[Browser] Error closing browser: {e}")

    async def close(self) -> None:
        """
        Shutdown gracefully.

        Cancels the idle timer, closes the browser and stops the driver.
        """
        if self._idle_handle is not None:
            self._idle_handle.cancel()
            self._idle_handle = None

        if self._launch_future is not None:
            try:
                await asyncio.shield(self._launch_future)
            except Exception:
                pass  # Launch failure was already logged

        await self.close_browser()

        if self._background:
            await asyncio.gather(*self._background, return_exceptions=True)

        if self._playwright is not None:
            try:
                await self._playwright.stop()
            except Exception as e:
                logger.warning(f"[Browser] Error stopping playwright: {e}")
            self._playwright = None

    @asynccontextmanager
    async def new_page(self, context_options: Optional[dict[str, Any]] = None):
        """
        Open an isolated context and page on the shared browser.

        Usage:
            async with manager.new_page(options) as (context, page):
                await page.goto(url)

        Args:
            context_options: Options for browser.new_context()

        Yields:
            Tuple of (BrowserContext, Page)
        """
        browser = await self.acquire()
        context = await browser.new_context(**(context_options or {}))
        try:
            if self.config.stealth_mode:
                await apply_stealth(context)
            page = await context.new_page()
            yield context, page
        finally:
            try:
                await context.close()
            except Exception as e:
                logger.warning(f"[Browser] Error closing context: {e}")

    def get_status(self) -> BrowserStatus:
        """Get current browser status."""
        session = self._session
        uptime = 0.0
        if session is not None:
            uptime = (datetime.now() - session.created_at).total_seconds()

        return BrowserStatus(
            running=session is not None,
            launching=self._launch_future is not None,
            use_count=session.use_count if session else 0,
            recycle_pending=session.recycle_pending if session else False,
            total_launches=self._total_launches,
            uptime_seconds=uptime,
        )

    @property
    def total_launches(self) -> int:
        return self._total_launches

    @property
    def is_running(self) -> bool:
        return self._session is not None

    async def __aenter__(self) -> "BrowserResourceManager":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()
