from dotenv import load_dotenv
from dataclasses import dataclass
from pathlib import Path
from typing import Optional
import os

from linkscrape.constants import (
    DEFAULT_ARTICLE_BACKOFF_SECONDS,
    DEFAULT_ARTICLE_MAX_RETRIES,
    DEFAULT_ARTICLE_NAV_TIMEOUT_MS,
    DEFAULT_CACHE_TTL_DAYS,
    DEFAULT_CONCURRENCY,
    DEFAULT_IDLE_CLOSE_SECONDS,
    DEFAULT_LIGHTWEIGHT_TIMEOUT_SECONDS,
    DEFAULT_MAX_BROWSER_USES,
    DEFAULT_PREVIEW_BACKOFF_SECONDS,
    DEFAULT_PREVIEW_MAX_RETRIES,
    DEFAULT_PREVIEW_NAV_TIMEOUT_MS,
    DEFAULT_QUEUE_TIMEOUT_SECONDS,
)

load_dotenv()  # Loads variables from .env file

DEFAULT_CACHE_PATH = ".linkscrape/cache.db"


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None:
        return default
    try:
        return int(value)
    except ValueError:
        return default  # Keep default if conversion fails


def _env_float(name: str, default: float) -> float:
    value = os.getenv(name)
    if value is None:
        return default
    try:
        return float(value)
    except ValueError:
        return default


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


@dataclass
class ScraperConfig:
    """Tunables for the scrape engine."""
    # Queue admission
    concurrency: int = DEFAULT_CONCURRENCY
    queue_timeout_seconds: float = DEFAULT_QUEUE_TIMEOUT_SECONDS

    # Browser lifecycle
    max_browser_uses: int = DEFAULT_MAX_BROWSER_USES
    idle_close_seconds: float = DEFAULT_IDLE_CLOSE_SECONDS
    headless: bool = True
    executable_path: Optional[str] = None

    # Retry policy per strategy kind
    preview_max_retries: int = DEFAULT_PREVIEW_MAX_RETRIES
    preview_backoff_seconds: float = DEFAULT_PREVIEW_BACKOFF_SECONDS
    article_max_retries: int = DEFAULT_ARTICLE_MAX_RETRIES
    article_backoff_seconds: float = DEFAULT_ARTICLE_BACKOFF_SECONDS

    # Fetch timeouts
    lightweight_timeout_seconds: float = DEFAULT_LIGHTWEIGHT_TIMEOUT_SECONDS
    preview_nav_timeout_ms: int = DEFAULT_PREVIEW_NAV_TIMEOUT_MS
    article_nav_timeout_ms: int = DEFAULT_ARTICLE_NAV_TIMEOUT_MS

    # Cache
    cache_ttl_days: int = DEFAULT_CACHE_TTL_DAYS
    cache_failed_articles: bool = True
    cache_path: str = DEFAULT_CACHE_PATH

    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "ScraperConfig":
        """Load configuration from environment variables.

        Malformed numeric values fall back to their defaults.

        Returns:
            ScraperConfig: Configuration instance with values from environment
        """
        return cls(
            concurrency=_env_int("LINKSCRAPE_CONCURRENCY", DEFAULT_CONCURRENCY),
            queue_timeout_seconds=_env_float(
                "LINKSCRAPE_QUEUE_TIMEOUT_SECONDS", DEFAULT_QUEUE_TIMEOUT_SECONDS
            ),
            max_browser_uses=_env_int("LINKSCRAPE_MAX_BROWSER_USES", DEFAULT_MAX_BROWSER_USES),
            idle_close_seconds=_env_float(
                "LINKSCRAPE_IDLE_CLOSE_SECONDS", DEFAULT_IDLE_CLOSE_SECONDS
            ),
            headless=_env_bool("LINKSCRAPE_HEADLESS", True),
            executable_path=os.getenv("PLAYWRIGHT_EXECUTABLE_PATH") or None,
            preview_max_retries=_env_int(
                "LINKSCRAPE_PREVIEW_MAX_RETRIES", DEFAULT_PREVIEW_MAX_RETRIES
            ),
            preview_backoff_seconds=_env_float(
                "LINKSCRAPE_PREVIEW_BACKOFF_SECONDS", DEFAULT_PREVIEW_BACKOFF_SECONDS
            ),
            article_max_retries=_env_int(
                "LINKSCRAPE_ARTICLE_MAX_RETRIES", DEFAULT_ARTICLE_MAX_RETRIES
            ),
            article_backoff_seconds=_env_float(
                "LINKSCRAPE_ARTICLE_BACKOFF_SECONDS", DEFAULT_ARTICLE_BACKOFF_SECONDS
            ),
            lightweight_timeout_seconds=_env_float(
                "LINKSCRAPE_LIGHTWEIGHT_TIMEOUT_SECONDS", DEFAULT_LIGHTWEIGHT_TIMEOUT_SECONDS
            ),
            preview_nav_timeout_ms=_env_int(
                "LINKSCRAPE_PREVIEW_NAV_TIMEOUT_MS", DEFAULT_PREVIEW_NAV_TIMEOUT_MS
            ),
            article_nav_timeout_ms=_env_int(
                "LINKSCRAPE_ARTICLE_NAV_TIMEOUT_MS", DEFAULT_ARTICLE_NAV_TIMEOUT_MS
            ),
            cache_ttl_days=_env_int("LINKSCRAPE_CACHE_TTL_DAYS", DEFAULT_CACHE_TTL_DAYS),
            cache_failed_articles=_env_bool("LINKSCRAPE_CACHE_FAILED_ARTICLES", True),
            cache_path=os.getenv("LINKSCRAPE_CACHE_PATH", DEFAULT_CACHE_PATH),
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
        )

    @property
    def cache_file(self) -> Path:
        return Path(self.cache_path)

    def to_dict(self) -> dict:
        """Convert config to dictionary.

        Returns:
            Dictionary of all config values
        """
        return {
            field_name: getattr(self, field_name)
            for field_name in self.__dataclass_fields__
        }
