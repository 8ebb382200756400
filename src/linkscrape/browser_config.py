"""
Browser configuration for Playwright-based rendered scrapes.

This module provides a validated Pydantic configuration model for launch and
per-context settings, plus the enumerated fingerprint pools that each
isolated browsing context draws from.
"""
import random
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from linkscrape.constants import BLOCKED_DOMAIN_PATTERNS, BLOCKED_RESOURCE_TYPES


# User agent pool for rotation
USER_AGENTS = [
    # Chrome on Windows
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/121.0.0.0 Safari/537.36",
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36",
    # Chrome on Mac
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/121.0.0.0 Safari/537.36",
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36",
    # Chrome on Linux
    "Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/121.0.0.0 Safari/537.36",
    # Edge on Windows
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/121.0.0.0 Safari/537.36 Edg/121.0.0.0",
]

LOCALES = ["en-US", "en-GB", "en-CA", "fr-FR", "de-DE", "es-ES"]

TIMEZONES = [
    "America/New_York",
    "Europe/London",
    "Europe/Paris",
    "Europe/Berlin",
    "Asia/Tokyo",
]

VIEWPORT_WIDTHS = [1280, 1366, 1440, 1536, 1600, 1920]
VIEWPORT_HEIGHTS = [720, 768, 864, 900, 1024, 1080]

# Jitter added to each viewport dimension
VIEWPORT_JITTER_PX = 50


def get_random_user_agent() -> str:
    """Get a random user agent from the pool."""
    return random.choice(USER_AGENTS)


def get_random_viewport() -> Dict[str, int]:
    """Pick a common screen size and add a little jitter."""
    return {
        "width": random.choice(VIEWPORT_WIDTHS) + random.randrange(VIEWPORT_JITTER_PX),
        "height": random.choice(VIEWPORT_HEIGHTS) + random.randrange(VIEWPORT_JITTER_PX),
    }


class BrowserConfig(BaseModel):
    """
    Configuration for the shared headless browser and its contexts.

    All fields are validated by Pydantic to ensure type safety and valid values.
    """

    headless: bool = Field(
        default=True,
        description="Run browser in headless mode (no visible UI)"
    )

    executable_path: Optional[str] = Field(
        default=None,
        description="Chromium executable override; ignored if the file does not exist"
    )

    launch_args: List[str] = Field(
        default_factory=lambda: [
            "--no-sandbox",
            "--disable-setuid-sandbox",
            "--disable-dev-shm-usage",
            "--disable-gpu",
            "--disable-software-rasterizer",
            "--disable-extensions",
            "--no-zygote",
            "--js-flags=--max-old-space-size=512",
            "--disable-blink-features=AutomationControlled",
        ],
        description="Chromium launch arguments"
    )

    block_resources: List[str] = Field(
        default_factory=lambda: list(BLOCKED_RESOURCE_TYPES),
        description="Resource types to abort (e.g., 'font', 'stylesheet')"
    )

    blocked_domains: List[str] = Field(
        default_factory=lambda: list(BLOCKED_DOMAIN_PATTERNS),
        description="Tracker and ad host fragments to abort"
    )

    extra_http_headers: Dict[str, str] = Field(
        default_factory=lambda: {
            "Accept-Language": "en-US,en;q=0.9",
            "Sec-Ch-Ua": '"Not A(Brand";v="99", "Google Chrome";v="121", "Chromium";v="121"',
            "Sec-Ch-Ua-Mobile": "?0",
            "Sec-Ch-Ua-Platform": '"Windows"',
            "Upgrade-Insecure-Requests": "1",
        },
        description="Headers sent with every request from a context"
    )

    stealth_mode: bool = Field(
        default=True,
        description="Install anti-detection init scripts in every context"
    )

    user_agent: Optional[str] = Field(
        default=None,
        description="Custom user agent. If None, a random one is used per context."
    )

    class Config:
        """Pydantic model configuration."""
        frozen = False
        validate_assignment = True

    def get_user_agent(self) -> str:
        """Get the user agent to use for a new context."""
        if self.user_agent:
            return self.user_agent
        return get_random_user_agent()

    def launch_options(self) -> Dict[str, Any]:
        """Options for chromium.launch()."""
        options: Dict[str, Any] = {
            "headless": self.headless,
            "args": list(self.launch_args),
        }
        if self.executable_path:
            options["executable_path"] = self.executable_path
        return options

    def context_options(self) -> Dict[str, Any]:
        """Randomized options for browser.new_context().

        Each call draws a fresh viewport, user agent, locale and timezone so
        concurrent contexts do not share a fingerprint.
        """
        return {
            "viewport": get_random_viewport(),
            "user_agent": self.get_user_agent(),
            "locale": random.choice(LOCALES),
            "timezone_id": random.choice(TIMEZONES),
            "bypass_csp": True,
            "service_workers": "block",
            "permissions": [],
            "extra_http_headers": dict(self.extra_http_headers),
        }

    def is_blocked_domain(self, url: str) -> bool:
        """Whether a request URL hits the tracker/ad denylist."""
        return any(pattern in url for pattern in self.blocked_domains)
