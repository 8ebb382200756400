"""Browser-less preview fetch: one HTTP GET and a static parse."""

import logging
from dataclasses import dataclass
from typing import Optional

import httpx

from linkscrape.browser_config import get_random_user_agent
from linkscrape.constants import DEFAULT_LIGHTWEIGHT_TIMEOUT_SECONDS
from linkscrape.extraction.metadata import extract_preview_metadata, page_metadata_from_html
from linkscrape.models import PreviewResult

logger = logging.getLogger(__name__)

# Read at most this many bytes; head metadata sits near the top
MAX_BODY_BYTES = 2 * 1024 * 1024


@dataclass
class LightweightOutcome:
    """Result of a lightweight fetch, or why it was not good enough."""
    result: Optional[PreviewResult] = None
    reason: Optional[str] = None
    final_url: str = ""

    @property
    def ok(self) -> bool:
        return self.result is not None


class LightweightFetcher:
    """
    Fetch preview metadata without a browser.

    A result is accepted only with a non-empty title and at least one of
    image or description; anything else is reported with a reason so the
    caller can escalate.
    """

    def __init__(
        self,
        timeout: float = DEFAULT_LIGHTWEIGHT_TIMEOUT_SECONDS,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        user_agent: Optional[str] = None,
    ):
        self.timeout = timeout
        self.transport = transport
        self.user_agent = user_agent

    def _headers(self) -> dict[str, str]:
        return {
            "User-Agent": self.user_agent or get_random_user_agent(),
            "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
            "Accept-Language": "en-US,en;q=0.9",
        }

    async def _read_head(self, response: httpx.Response) -> str:
        """Read up to MAX_BODY_BYTES of the body and decode it."""
        chunks: list[bytes] = []
        size = 0
        async for chunk in response.aiter_bytes():
            chunks.append(chunk)
            size += len(chunk)
            if size >= MAX_BODY_BYTES:
                logger.debug(f"Body of {response.url} truncated at {MAX_BODY_BYTES} bytes")
                break
        body = b"".join(chunks)[:MAX_BODY_BYTES]
        return body.decode(response.encoding or "utf-8", errors="replace")

    async def fetch(self, url: str) -> LightweightOutcome:
        try:
            async with httpx.AsyncClient(
                timeout=self.timeout,
                follow_redirects=True,
                transport=self.transport,
            ) as client:
                async with client.stream("GET", url, headers=self._headers()) as response:
                    final_url = str(response.url)
                    if response.status_code >= 400:
                        return LightweightOutcome(
                            reason=f"HTTP {response.status_code}", final_url=final_url
                        )

                    content_type = response.headers.get("content-type", "")
                    if content_type and "html" not in content_type.lower():
                        return LightweightOutcome(
                            reason=f"Not HTML ({content_type})", final_url=final_url
                        )

                    html = await self._read_head(response)
        except httpx.TimeoutException:
            return LightweightOutcome(reason=f"Timeout after {self.timeout}s")
        except httpx.HTTPError as e:
            return LightweightOutcome(reason=f"HTTP error: {e}")

        metadata = extract_preview_metadata(page_metadata_from_html(html, final_url, parser="lxml"))

        if not metadata.title:
            return LightweightOutcome(reason="Missing title", final_url=final_url)
        if not metadata.image and not metadata.description:
            return LightweightOutcome(reason="Missing image AND description", final_url=final_url)

        return LightweightOutcome(
            result=PreviewResult(
                title=metadata.title,
                description=metadata.description,
                image=metadata.image,
                favicon=metadata.favicon,
                url=final_url,
            ),
            final_url=final_url,
        )
