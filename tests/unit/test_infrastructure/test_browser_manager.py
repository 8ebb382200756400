"""Unit tests for BrowserResourceManager.

Uses an injected launcher so no real browser is started.
"""

import asyncio

import pytest

pytest_plugins = ('pytest_asyncio',)

from linkscrape.browser_config import BrowserConfig
from linkscrape.infrastructure.browser_manager import BrowserResourceManager
from linkscrape.infrastructure.scrape_queue import ScrapeRequestQueue


class TestAcquire:
    """Tests for lazy, single-flight launch."""

    @pytest.mark.asyncio
    async def test_concurrent_acquire_shares_one_launch(self, make_launcher):
        """Test that callers arriving before any session exist get the same handle."""
        launcher = make_launcher(delay=0.02)
        manager = BrowserResourceManager(launcher=launcher)

        handles = await asyncio.gather(*(manager.acquire() for _ in range(10)))

        assert launcher.launches == 1
        assert manager.total_launches == 1
        assert all(handle is handles[0] for handle in handles)
        assert manager.get_status().use_count == 10

        await manager.close()

    @pytest.mark.asyncio
    async def test_reuses_running_browser(self, make_launcher):
        """Test that later calls do not relaunch."""
        launcher = make_launcher()
        manager = BrowserResourceManager(launcher=launcher)

        first = await manager.acquire()
        second = await manager.acquire()

        assert first is second
        assert launcher.launches == 1
        assert manager.is_running

        await manager.close()

    @pytest.mark.asyncio
    async def test_failed_launch_is_retried_by_next_call(self, make_launcher):
        """Test that a launch failure does not poison later calls."""
        launcher = make_launcher(fail_times=1)
        manager = BrowserResourceManager(launcher=launcher)

        with pytest.raises(RuntimeError):
            await manager.acquire()

        assert not manager.get_status().launching

        handle = await manager.acquire()
        assert handle is launcher.browsers[0]
        assert launcher.launches == 1

        await manager.close()

    @pytest.mark.asyncio
    async def test_disconnect_triggers_relaunch(self, make_launcher):
        """Test that an unexpected disconnect resets state."""
        launcher = make_launcher()
        manager = BrowserResourceManager(launcher=launcher)

        first = await manager.acquire()
        first.disconnect()

        assert not manager.is_running

        second = await manager.acquire()
        assert second is not first
        assert launcher.launches == 2

        await manager.close()


class TestRecycling:
    """Tests for the use ceiling."""

    @pytest.mark.asyncio
    async def test_recycle_waits_for_idle_queue(self, make_launcher):
        """Test that a worn-out browser is closed only once the queue drains."""
        launcher = make_launcher()
        queue = ScrapeRequestQueue(concurrency=2, default_timeout=5)
        manager = BrowserResourceManager(max_uses=2, queue=queue, launcher=launcher)
        release = asyncio.Event()

        async def task():
            await manager.acquire()
            await release.wait()

        jobs = [asyncio.ensure_future(queue.enqueue(task)) for _ in range(2)]
        await asyncio.sleep(0.01)

        status = manager.get_status()
        assert status.recycle_pending
        assert not launcher.browsers[0].closed

        release.set()
        await asyncio.gather(*jobs)
        await asyncio.sleep(0.01)

        assert launcher.browsers[0].closed
        assert not manager.is_running

        await manager.acquire()
        assert launcher.launches == 2

        await manager.close()

    @pytest.mark.asyncio
    async def test_no_recycle_below_ceiling(self, make_launcher):
        """Test that an idle queue alone does not close a fresh browser."""
        launcher = make_launcher()
        queue = ScrapeRequestQueue(concurrency=1, default_timeout=5)
        manager = BrowserResourceManager(max_uses=5, queue=queue, launcher=launcher)

        async def task():
            await manager.acquire()

        await queue.enqueue(task)
        await asyncio.sleep(0.01)

        assert manager.is_running
        assert not launcher.browsers[0].closed

        await manager.close()


class TestIdleShutdown:
    """Tests for the idle timer."""

    @pytest.mark.asyncio
    async def test_closes_after_idle_period(self, make_launcher):
        """Test that the browser closes when nothing runs."""
        launcher = make_launcher()
        manager = BrowserResourceManager(idle_close_seconds=0.02, launcher=launcher)

        await manager.acquire()
        await asyncio.sleep(0.08)

        assert not manager.is_running
        assert launcher.browsers[0].closed

        await manager.acquire()
        assert launcher.launches == 2

        await manager.close()

    @pytest.mark.asyncio
    async def test_idle_timer_rearms_while_queue_busy(self, make_launcher):
        """Test that a busy queue keeps the browser alive."""
        launcher = make_launcher()
        queue = ScrapeRequestQueue(concurrency=1, default_timeout=5)
        manager = BrowserResourceManager(idle_close_seconds=0.02, queue=queue, launcher=launcher)
        release = asyncio.Event()

        async def long_task():
            await manager.acquire()
            await release.wait()

        job = asyncio.ensure_future(queue.enqueue(long_task))
        await asyncio.sleep(0.08)

        assert manager.is_running

        release.set()
        await job
        await asyncio.sleep(0.08)

        assert not manager.is_running

        await manager.close()


class TestPages:
    """Tests for per-task contexts."""

    @pytest.mark.asyncio
    async def test_new_page_isolates_and_closes_context(self, make_launcher):
        """Test that each page gets its own context, closed on exit."""
        launcher = make_launcher()
        manager = BrowserResourceManager(launcher=launcher)

        async with manager.new_page({"locale": "en-GB"}) as (context, page):
            assert page is not None
            assert context.options == {"locale": "en-GB"}
            assert context.init_scripts  # stealth installed

        assert context.closed

        await manager.close()

    @pytest.mark.asyncio
    async def test_context_closed_on_error(self, make_launcher):
        """Test cleanup when the task body raises."""
        launcher = make_launcher()
        manager = BrowserResourceManager(launcher=launcher)

        with pytest.raises(ValueError):
            async with manager.new_page() as (context, _):
                raise ValueError("navigation crashed")

        assert context.closed

        await manager.close()

    @pytest.mark.asyncio
    async def test_stealth_can_be_disabled(self, make_launcher):
        """Test that no init script is installed without stealth mode."""
        launcher = make_launcher()
        manager = BrowserResourceManager(
            config=BrowserConfig(stealth_mode=False), launcher=launcher
        )

        async with manager.new_page() as (context, _):
            assert context.init_scripts == []

        await manager.close()


class TestClose:
    """Tests for shutdown."""

    @pytest.mark.asyncio
    async def test_close_shuts_browser(self, make_launcher):
        """Test that close() closes the browser and is safe to repeat."""
        launcher = make_launcher()
        async with BrowserResourceManager(launcher=launcher) as manager:
            await manager.acquire()

        assert launcher.browsers[0].closed
        assert not manager.is_running

        await manager.close()
