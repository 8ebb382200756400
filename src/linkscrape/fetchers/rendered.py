"""
Rendered fetch: the task bodies that run inside the scrape queue.

Each task opens an isolated, randomized browser context on the shared
browser, blocks trackers and heavy resources, navigates, deals with any
anti-bot challenge and runs the in-page extraction script. Every failure is
turned into a typed result here; nothing raised inside a task escapes.
"""

import asyncio
import itertools
import logging
from typing import Optional
from urllib.parse import urlsplit

from linkscrape.browser_config import BrowserConfig
from linkscrape.config import ScraperConfig
from linkscrape.constants import CONTENT_READY_TIMEOUT_MS, POST_BYPASS_LOAD_TIMEOUT_MS
from linkscrape.errors import ExtractionError, NavigationError, ScrapeError
from linkscrape.extraction.article import NOISE_SELECTORS, ArticlePayload, build_article
from linkscrape.extraction.metadata import extract_preview_metadata
from linkscrape.extraction.runtime import ExtractionScript, evaluate_script, wait_for_script
from linkscrape.infrastructure.browser_manager import BrowserResourceManager
from linkscrape.models import ArticleResult, ErrorKind, PageMetadata, PreviewResult
from linkscrape.utils.challenge_handler import ChallengeOutcome, WafChallengeHandler

logger = logging.getLogger(__name__)


class RenderedFetcher:
    """Preview and article scrapes in a real browser."""

    def __init__(
        self,
        browser_manager: BrowserResourceManager,
        challenge_handler: Optional[WafChallengeHandler] = None,
        browser_config: Optional[BrowserConfig] = None,
        config: Optional[ScraperConfig] = None,
    ):
        self.browser_manager = browser_manager
        self.challenge_handler = challenge_handler or WafChallengeHandler()
        self.browser_config = browser_config or browser_manager.config
        self.config = config or ScraperConfig()

        self._preview_script = ExtractionScript.load("preview", 1)
        self._article_script = ExtractionScript.load("article", 1)
        self._content_ready_script = ExtractionScript.load("content_ready", 1)
        self._request_ids = itertools.count(1)

    # -------------------------------------------------------------------------
    # Shared steps
    # -------------------------------------------------------------------------

    async def _install_routes(self, page, target_url: str, block_external_images: bool) -> None:
        target_host = urlsplit(target_url).hostname or ""
        blocked_types = set(self.browser_config.block_resources)

        async def handle_route(route):
            request = route.request
            try:
                if (
                    request.resource_type in blocked_types
                    or self.browser_config.is_blocked_domain(request.url)
                ):
                    await route.abort()
                elif (
                    block_external_images
                    and request.resource_type == "image"
                    and target_host not in request.url
                ):
                    await route.abort()
                else:
                    await route.continue_()
            except Exception as e:
                # Page or context closed mid-request
                logger.debug(f"Route handling failed for {request.url}: {e}")

        await page.route("**/*", handle_route)

    async def _navigate(self, page, url: str, timeout_ms: int):
        try:
            return await page.goto(url, wait_until="domcontentloaded", timeout=timeout_ms)
        except Exception as e:
            raise NavigationError(f"Navigation failed: {e}", url=url) from e

    async def _blocked_reason(self, page, response, outcome: ChallengeOutcome, label: str, url: str) -> Optional[str]:
        if outcome.still_blocked:
            logger.info(f"[{label}] Challenge markers remain for {url}, checking response status")
        status = response.status if response is not None else None
        evidence = await self.challenge_handler.blocking_evidence(page, status)
        return f"Access blocked ({evidence})" if evidence else None

    # -------------------------------------------------------------------------
    # Preview
    # -------------------------------------------------------------------------

    async def fetch_preview(self, url: str) -> PreviewResult:
        """
        Render a page and extract preview metadata.

        Returns:
            PreviewResult; blocked or failed results carry error and error_kind
        """
        req_id = next(self._request_ids)
        logger.info(f"[Scraper:Preview] Starting scrape [Req #{req_id}] for {url}")

        try:
            async with self.browser_manager.new_page(self.browser_config.context_options()) as (_, page):
                await self._install_routes(page, url, block_external_images=True)
                response = await self._navigate(page, url, self.config.preview_nav_timeout_ms)

                outcome = await self.challenge_handler.handle(page)
                if outcome.bypassed:
                    logger.info(f"[Scraper:Preview] WAF challenge bypassed for {url}")

                blocked = await self._blocked_reason(page, response, outcome, "Scraper:Preview", url)
                if blocked:
                    logger.warning(f"[Scraper:Preview] {blocked} [Req #{req_id}] for {url}")
                    return PreviewResult.blocked(blocked)

                data = await evaluate_script(page, self._preview_script)
                if not data:
                    raise ExtractionError("Preview script returned nothing", url=url)

                metadata = extract_preview_metadata(PageMetadata.from_dict(data))
                logger.info(f"[Scraper:Preview] SUCCESS [Req #{req_id}] for {url}")
                return PreviewResult(
                    title=metadata.title,
                    description=metadata.description,
                    image=metadata.image,
                    favicon=metadata.favicon,
                    url=metadata.url or url,
                )
        except ScrapeError as e:
            logger.error(f"[Scraper:Preview] FAILED [Req #{req_id}] for {url}: {e.message}")
            return PreviewResult.failed(e.message, e.kind)
        except Exception as e:
            logger.error(f"[Scraper:Preview] FAILED [Req #{req_id}] for {url}: {e}")
            return PreviewResult.failed(str(e), ErrorKind.NETWORK_ERROR)

    # -------------------------------------------------------------------------
    # Article
    # -------------------------------------------------------------------------

    async def fetch_article(self, url: str) -> ArticleResult:
        """
        Render a page and extract its readable article.

        Returns:
            ArticleResult; blocked or failed results carry error and error_kind
        """
        req_id = next(self._request_ids)
        logger.info(f"[Scraper:Reader] Starting scrape [Req #{req_id}] for {url}")

        try:
            async with self.browser_manager.new_page(self.browser_config.context_options()) as (_, page):
                await self._install_routes(page, url, block_external_images=False)
                response = await self._navigate(page, url, self.config.article_nav_timeout_ms)

                outcome = await self.challenge_handler.handle(page)
                if outcome.bypassed:
                    logger.info(f"[Scraper:Reader] WAF challenge bypassed for {url}")
                    try:
                        await page.wait_for_load_state("load", timeout=POST_BYPASS_LOAD_TIMEOUT_MS)
                    except Exception as e:
                        logger.debug(f"[Scraper:Reader] Load wait after bypass ended: {e}")
                    if page.url != url:
                        # Redirected past the challenge; its status no longer applies
                        response = None

                blocked = await self._blocked_reason(page, response, outcome, "Scraper:Reader", url)
                if blocked:
                    logger.warning(f"[Scraper:Reader] {blocked} [Req #{req_id}] for {url}")
                    return ArticleResult.blocked(blocked)

                await wait_for_script(page, self._content_ready_script, CONTENT_READY_TIMEOUT_MS)

                data = await evaluate_script(
                    page, self._article_script, {"noiseSelectors": NOISE_SELECTORS}
                )
                if not data:
                    raise ExtractionError("No readable content", url=url)

                payload = ArticlePayload.from_dict(data, default_url=url)

            result = await asyncio.to_thread(build_article, payload)
            logger.info(f"[Scraper:Reader] SUCCESS [Req #{req_id}] for {url}")
            return result
        except ExtractionError as e:
            logger.warning(f"[Scraper:Reader] Extraction FAILED [Req #{req_id}] for {url}: {e.message}")
            return ArticleResult.failed(e.message, e.kind)
        except ScrapeError as e:
            logger.error(f"[Scraper:Reader] FAILED [Req #{req_id}] for {url}: {e.message}")
            return ArticleResult.failed(e.message, e.kind)
        except Exception as e:
            logger.error(f"[Scraper:Reader] FAILED [Req #{req_id}] for {url}: {e}")
            return ArticleResult.failed(str(e), ErrorKind.NETWORK_ERROR)
