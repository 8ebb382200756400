"""
Bounded-concurrency scrape queue.

Admits rendered scrape tasks in FIFO order once fewer than N are executing,
and gives each caller a deadline. The queue is the only place parallelism is
throttled.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional, TypeVar

from linkscrape.constants import DEFAULT_CONCURRENCY, DEFAULT_QUEUE_TIMEOUT_SECONDS
from linkscrape.errors import QueueTimeoutError

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class QueueStatus:
    """Current status of the scrape queue."""
    concurrency: int
    pending: int
    active: int
    total_enqueued: int
    total_completed: int
    total_timeouts: int


class _JobState:
    """Per-job flags shared between the caller and the running job."""

    __slots__ = ("started", "abandoned")

    def __init__(self) -> None:
        self.started = False
        self.abandoned = False


class ScrapeRequestQueue:
    """
    FIFO admission control with a per-task deadline.

    Features:
    - At most `concurrency` task bodies run at once
    - Waiting tasks are admitted in arrival order
    - A caller whose task misses the deadline gets QueueTimeoutError;
      a task still waiting is withdrawn, a running task keeps its slot
      until its own internal timeouts end it
    - Idle listeners fire whenever nothing is pending or executing
    """

    def __init__(
        self,
        concurrency: int = DEFAULT_CONCURRENCY,
        default_timeout: Optional[float] = DEFAULT_QUEUE_TIMEOUT_SECONDS,
    ):
        """
        Initialize the queue.

        Args:
            concurrency: Maximum number of task bodies executing at once
            default_timeout: Seconds per task (wait + run); None disables it
        """
        if concurrency < 1:
            raise ValueError("concurrency must be at least 1")

        self.concurrency = concurrency
        self.default_timeout = default_timeout

        self._semaphore = asyncio.Semaphore(concurrency)
        self._pending = 0
        self._active = 0
        self._idle_listeners: list[Callable[[], Any]] = []

        # Statistics
        self._total_enqueued = 0
        self._total_completed = 0
        self._total_timeouts = 0

    async def enqueue(
        self,
        fn: Callable[[], Awaitable[T]],
        timeout: Optional[float] = None,
    ) -> T:
        """
        Run a task body under the admission limit.

        Args:
            fn: Zero-argument coroutine factory (the task body)
            timeout: Deadline in seconds; defaults to `default_timeout`

        Returns:
            Whatever the task body returns

        Raises:
            QueueTimeoutError: If the task did not complete in time
            Exception: Any exception raised by the task body
        """
        if timeout is None:
            timeout = self.default_timeout

        state = _JobState()
        self._pending += 1
        self._total_enqueued += 1

        job = asyncio.ensure_future(self._run(fn, state))
        job.add_done_callback(lambda done: self._on_job_done(done, state))

        try:
            return await asyncio.wait_for(asyncio.shield(job), timeout)
        except asyncio.TimeoutError:
            self._total_timeouts += 1
            state.abandoned = True
            if not state.started:
                job.cancel()
            logger.warning(
                f"[ScrapeQueue] Task timed out after {timeout}s "
                f"(started={state.started}). Pending: {self._pending}, Active: {self._active}"
            )
            raise QueueTimeoutError(f"Queue timeout after {timeout}s")
        except asyncio.CancelledError:
            state.abandoned = True
            if not state.started:
                job.cancel()
            raise

    async def _run(self, fn: Callable[[], Awaitable[T]], state: _JobState) -> T:
        async with self._semaphore:
            state.started = True
            self._pending -= 1
            self._active += 1
            logger.debug(
                f"[ScrapeQueue] Task started. Pending: {self._pending}, Active: {self._active}"
            )
            try:
                return await fn()
            finally:
                self._active -= 1
                self._total_completed += 1

    def _on_job_done(self, job: asyncio.Future, state: _JobState) -> None:
        if not state.started:
            # Withdrawn before admission
            self._pending -= 1

        if not job.cancelled():
            error = job.exception()
            if error is not None and state.abandoned:
                logger.error(f"[ScrapeQueue] Task error after caller gave up: {error}")

        if self.is_idle:
            logger.debug("[ScrapeQueue] Queue is now idle.")
            for listener in list(self._idle_listeners):
                try:
                    listener()
                except Exception as e:
                    logger.warning(f"[ScrapeQueue] Idle listener failed: {e}")

    def add_idle_listener(self, listener: Callable[[], Any]) -> None:
        """Register a callback fired each time the queue becomes idle."""
        self._idle_listeners.append(listener)

    def remove_idle_listener(self, listener: Callable[[], Any]) -> None:
        if listener in self._idle_listeners:
            self._idle_listeners.remove(listener)

    @property
    def pending_count(self) -> int:
        """Tasks waiting for admission."""
        return self._pending

    @property
    def active_count(self) -> int:
        """Tasks currently executing."""
        return self._active

    @property
    def is_idle(self) -> bool:
        """Whether nothing is pending or executing."""
        return self._pending == 0 and self._active == 0

    def get_status(self) -> QueueStatus:
        """Get current queue status."""
        return QueueStatus(
            concurrency=self.concurrency,
            pending=self._pending,
            active=self._active,
            total_enqueued=self._total_enqueued,
            total_completed=self._total_completed,
            total_timeouts=self._total_timeouts,
        )
