"""
Retry with linear backoff for rendered scrapes.

Only transient outcomes are retried: a `blocked` result (the site may let a
fresh fingerprint through) and a queue timeout (the queue may drain). Failed
results, extraction failures included, are final.
"""

import asyncio
import logging
from typing import Awaitable, Callable, TypeVar

from linkscrape.errors import QueueTimeoutError
from linkscrape.models import ScrapeStatus

logger = logging.getLogger(__name__)

R = TypeVar("R")


class RetryPolicy:
    """
    Bounded retry loop.

    Attempt `i` that ends blocked or timed out is retried after
    `(i + 1) * base_delay` seconds while `i < max_retries`, so at most
    `max_retries + 1` attempts run and delays never decrease.
    """

    def __init__(
        self,
        max_retries: int,
        base_delay: float,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        label: str = "Scraper",
    ):
        if max_retries < 0:
            raise ValueError("max_retries must be non-negative")
        self.max_retries = max_retries
        self.base_delay = base_delay
        self._sleep = sleep
        self.label = label

    def delay_for(self, attempt: int) -> float:
        """Backoff before the retry that follows attempt `attempt` (0-based)."""
        return (attempt + 1) * self.base_delay

    async def run(
        self,
        operation: Callable[[int], Awaitable[R]],
        on_timeout: Callable[[QueueTimeoutError], R],
        on_error: Callable[[Exception], R],
        url: str = "",
    ) -> R:
        """
        Run an operation until it succeeds, fails terminally or runs out of retries.

        Args:
            operation: Called with the attempt index; returns a result with `status`
            on_timeout: Builds the final result when the last attempt timed out
            on_error: Builds the final result for any other exception
            url: For log messages

        Returns:
            The final result
        """
        attempt = 0
        while True:
            try:
                result = await operation(attempt)
            except QueueTimeoutError as e:
                if attempt < self.max_retries:
                    delay = self.delay_for(attempt)
                    logger.warning(
                        f"[{self.label}] TIMED OUT in queue for {url}. Retrying in {delay}s... "
                        f"(Attempt {attempt + 1}/{self.max_retries})"
                    )
                    await self._sleep(delay)
                    attempt += 1
                    continue
                logger.error(f"[{self.label}] TIMED OUT in queue for {url}")
                return on_timeout(e)
            except Exception as e:
                logger.error(f"[{self.label}] Queue error for {url}: {e}")
                return on_error(e)

            if getattr(result, "status", None) == ScrapeStatus.BLOCKED and attempt < self.max_retries:
                delay = self.delay_for(attempt)
                logger.warning(
                    f"[{self.label}] BLOCKED. Retrying in {delay}s... "
                    f"(Attempt {attempt + 1}/{self.max_retries}) for {url}"
                )
                await self._sleep(delay)
                attempt += 1
                continue

            return result
