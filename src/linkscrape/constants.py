# src/linkscrape/constants.py
"""Centralized constants for the scrape engine.

This module contains default tunables and fixed tables used across multiple
modules. For the environment-driven configuration, see config.py and
ScraperConfig.
"""

# =============================================================================
# Queue & Browser Lifecycle Defaults
# =============================================================================

# Maximum rendered tasks executing at once
DEFAULT_CONCURRENCY = 4

# Seconds a queued task may take (wait + run) before the caller gives up
DEFAULT_QUEUE_TIMEOUT_SECONDS = 60.0

# Browser uses before the session is recycled at the next idle point
DEFAULT_MAX_BROWSER_USES = 20

# Seconds without demand before the browser is shut down
DEFAULT_IDLE_CLOSE_SECONDS = 5 * 60.0


# =============================================================================
# Retry Defaults
# =============================================================================

DEFAULT_PREVIEW_MAX_RETRIES = 2
DEFAULT_PREVIEW_BACKOFF_SECONDS = 5.0

# Article scrapes are costlier, so they retry less
DEFAULT_ARTICLE_MAX_RETRIES = 1
DEFAULT_ARTICLE_BACKOFF_SECONDS = 3.0


# =============================================================================
# Fetch Timeouts
# =============================================================================

DEFAULT_LIGHTWEIGHT_TIMEOUT_SECONDS = 5.0
DEFAULT_PREVIEW_NAV_TIMEOUT_MS = 15000
DEFAULT_ARTICLE_NAV_TIMEOUT_MS = 45000

# Wait for the page to settle after a challenge was bypassed (article mode)
POST_BYPASS_LOAD_TIMEOUT_MS = 8000

# Bounded wait for the article body to render before extraction
CONTENT_READY_TIMEOUT_MS = 2000


# =============================================================================
# Cache
# =============================================================================

DEFAULT_CACHE_TTL_DAYS = 30

PREVIEW_CACHE_NAMESPACE = "preview"
ARTICLE_CACHE_NAMESPACE = "article"


# =============================================================================
# Request Blocking
# =============================================================================

# Resource types never needed for metadata or article text
BLOCKED_RESOURCE_TYPES = ("media", "font", "stylesheet")

# Tracker, ad and widget hosts aborted at the routing layer
BLOCKED_DOMAIN_PATTERNS = (
    "googletagmanager.com",
    "google-analytics.com",
    "facebook.net",
    "connect.facebook.net",
    "twitter.com",
    "platform.twitter.com",
    "linkedin.com",
    "bing.com",
    "yandex.ru",
    "doubleclick.net",
    "adnxs.com",
    "adsystem.com",
    "adrolling.com",
    "hotjar.com",
    "segment.io",
    "amplitude.com",
    "mixpanel.com",
    "sentry.io",
    "intercom.io",
    "disqus.com",
    "disquscdn.com",
    "gravatar.com",
    "fontawesome.com",
    "typekit.net",
    "googlesyndication.com",
    "taboola.com",
    "outbrain.com",
    "criteo.com",
    "amazon-adsystem.com",
    "scorecardresearch.com",
)


# =============================================================================
# Article Post-processing
# =============================================================================

PARAGRAPH_ID_PREFIX = "aegis-p-"

# Link targets dropped from reader content
SOCIAL_DOMAINS = (
    "facebook.com",
    "twitter.com",
    "x.com",
    "pinterest.com",
    "whatsapp.com",
    "linkedin.com",
    "reddit.com",
    "instagram.com",
    "t.me",
    "telegram.me",
    "discord.com",
)

MAX_DOWNLOAD_LINKS = 25
