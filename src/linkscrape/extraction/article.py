"""
Readable-article extraction.

The in-page article script strips noise from the live DOM and reports the
page's file-download links. This module isolates the main content from the
cleaned markup with readability-lxml, then post-processes it for the
reader view:

- every paragraph gets a stable id and a marker attribute
- links become absolute, open in a new tab, and lose social-network targets
- file-hosting links are tagged with their provider
- a download section (links plus an optional password) is appended
"""

import html
import logging
import re
from dataclasses import dataclass, field
from typing import Any, Iterable, Optional
from urllib.parse import urljoin, urlsplit

from bs4 import BeautifulSoup
from readability import Document

from linkscrape.constants import MAX_DOWNLOAD_LINKS, PARAGRAPH_ID_PREFIX, SOCIAL_DOMAINS
from linkscrape.errors import ExtractionError
from linkscrape.extraction.metadata import extract_preview_metadata
from linkscrape.models import ArticleResult, DownloadLink, PageMetadata

logger = logging.getLogger(__name__)


# Removed from the live DOM before content isolation
NOISE_SELECTORS = [
    ".related",
    "#recommended",
    ".read-more",
    ".js-related-posts",
    ".wp-block-related-posts",
    ".entry-related",
    ".post-navigation",
    ".social-share",
    ".author-box",
    ".newsletter-signup",
    ".comments-area",
    "aside",
    "nav",
    ".widget",
    ".ads",
    ".ad-unit",
]

DOWNLOAD_URL_PATTERNS = [
    re.compile(r"\.(zip|7z|rar|iso|exe|dmg|pkg|apk|pdf)$", re.IGNORECASE),
    re.compile(
        r"mega\.nz|mediafire\.com|terabox|drive\.google|pixeldrain|doodrive|gdrive|1drv\.ms|dropbox\.com",
        re.IGNORECASE,
    ),
    re.compile(r"zippyshare|krakenfiles|workupload|gofile\.io|anonfiles|bayfiles", re.IGNORECASE),
]

DOWNLOAD_TEXT_PATTERNS = [
    re.compile(pattern, re.IGNORECASE)
    for pattern in (
        r"download",
        r"get\s+(?:it|now|here)",
        r"mega",
        r"gdrive",
        r"google\s*drive",
        r"pixel",
        r"mirrored",
        r"zippyshare",
        r"doodrive",
        r"terabox",
    )
]

# (URL fragments, provider label), first match wins
PROVIDER_RULES = [
    (("mega.nz",), "mega"),
    (("mediafire.com",), "mediafire"),
    (("terabox",), "terabox"),
    (("google.com/drive", "drive.google"), "google-drive"),
    (("pixeldrain.com",), "pixeldrain"),
    (("doodrive.com",), "doodrive"),
    (("1drv.ms", "onedrive"), "onedrive"),
    (("zippyshare.com",), "zippyshare"),
]

LINK_TEXT_PREFIX = re.compile(r"^[|\s\-_/]+")
MAX_LINK_TEXT_LENGTH = 99

# readability-lxml returns this when the document has no <title>
_NO_TITLE = "[no-title]"


def is_download_link(href: str, text: str) -> bool:
    """Whether a link points at a file or a file-hosting service."""
    return (
        any(pattern.search(href or "") for pattern in DOWNLOAD_URL_PATTERNS)
        or any(pattern.search(text or "") for pattern in DOWNLOAD_TEXT_PATTERNS)
    )


def provider_for(href: str) -> str:
    """Provider label for a download link."""
    lowered = (href or "").lower()
    for fragments, provider in PROVIDER_RULES:
        if any(fragment in lowered for fragment in fragments):
            return provider
    return "direct"


def clean_link_text(text: str) -> str:
    return LINK_TEXT_PREFIX.sub("", (text or "").strip()).upper()


def select_download_links(
    raw_links: Iterable[dict[str, Any]],
    limit: int = MAX_DOWNLOAD_LINKS,
) -> list[DownloadLink]:
    """
    Turn raw anchors from the page scan into download links.

    Text is cleaned and uppercased; links whose text ends up empty or too
    long are dropped, as are repeated hrefs. At most `limit` are kept.
    """
    links: list[DownloadLink] = []
    seen: set[str] = set()

    for raw in raw_links:
        href = raw.get("href") or ""
        text = clean_link_text(raw.get("text") or "")
        if not href or not text or len(text) > MAX_LINK_TEXT_LENGTH:
            continue
        if not is_download_link(href, raw.get("text") or ""):
            continue
        if href in seen:
            continue
        seen.add(href)
        links.append(DownloadLink(href=href, text=text, provider=provider_for(href)))
        if len(links) >= limit:
            break

    return links


def _is_social(host: str) -> bool:
    return any(host == domain or host.endswith("." + domain) for domain in SOCIAL_DOMAINS)


@dataclass
class IsolatedArticle:
    """Main content isolated from a cleaned page."""
    title: str
    content: str


def isolate_article(page_html: str, url: str, fallback_title: str = "") -> IsolatedArticle:
    """
    Isolate the main content of a page.

    Args:
        page_html: Cleaned document markup
        url: Page URL
        fallback_title: Title to use when the document has none

    Raises:
        ExtractionError: If no title or no readable content is found
    """
    try:
        doc = Document(page_html, url=url)
        content = doc.summary(html_partial=True)
        title = doc.short_title()
    except Exception as e:
        raise ExtractionError(f"Readability failed: {e}", url=url) from e

    if not title or title == _NO_TITLE:
        title = fallback_title.strip()
    if not title:
        raise ExtractionError("No readable content", url=url)

    if not BeautifulSoup(content, "lxml").get_text(strip=True):
        raise ExtractionError("No readable content", url=url)

    return IsolatedArticle(title=title, content=content)


def postprocess_article(content_html: str, base_url: str) -> str:
    """Annotate paragraphs and rewrite links in isolated content."""
    soup = BeautifulSoup(content_html, "html.parser")

    for idx, paragraph in enumerate(soup.find_all("p")):
        if not paragraph.get("id"):
            paragraph["id"] = f"{PARAGRAPH_ID_PREFIX}{idx}"
        paragraph["data-aegis-paragraph"] = "true"

    for anchor in soup.find_all("a"):
        href = anchor.get("href")
        if href:
            absolute = urljoin(base_url, href)
            host = (urlsplit(absolute).hostname or "").lower()
            if _is_social(host):
                anchor.decompose()
                continue
            anchor["href"] = absolute
            if is_download_link(absolute, anchor.get_text()):
                anchor["data-aegis-download"] = "true"
        anchor["target"] = "_blank"
        anchor["rel"] = "noopener noreferrer"

    for image in soup.find_all("img", src=True):
        image["src"] = urljoin(base_url, image["src"])

    return str(soup)


def build_download_section(links: list[DownloadLink], password: Optional[str] = None) -> str:
    """Markup appended to the article when download links were found."""
    if not links:
        return ""

    items = "".join(
        f'<a href="{html.escape(link.href)}" target="_blank" rel="noopener noreferrer" '
        f'data-aegis-download="true" data-aegis-provider="{html.escape(link.provider)}">'
        f'<span class="provider-dot"></span>'
        f'<span class="link-label">{html.escape(link.text)}</span>'
        f'</a>'
        for link in links
    )

    password_html = ""
    if password:
        password_html = (
            '<div class="aegis-password-container">'
            '<span class="password-label">Password:</span>'
            f'<code class="password-value">{html.escape(password)}</code>'
            '</div>'
        )

    return (
        '<div class="aegis-download-section">'
        '<div class="aegis-download-header"><h3>Download Links</h3></div>'
        f'<div class="aegis-download-grid">{items}</div>'
        f'{password_html}'
        '</div>'
    )


@dataclass
class ArticlePayload:
    """What the in-page article script returns."""
    url: str
    html: str
    title: str = ""
    meta: list[tuple[str, str]] = field(default_factory=list)
    download_links: list[dict[str, Any]] = field(default_factory=list)
    password: Optional[str] = None

    @classmethod
    def from_dict(cls, data: dict[str, Any], default_url: str = "") -> "ArticlePayload":
        return cls(
            url=data.get("url") or default_url,
            html=data.get("html") or "",
            title=data.get("title") or "",
            meta=[(str(name), str(content)) for name, content in data.get("meta") or []],
            download_links=list(data.get("downloadLinks") or []),
            password=data.get("password"),
        )


def build_article(payload: ArticlePayload) -> ArticleResult:
    """
    Turn the article script's payload into a reader result.

    Raises:
        ExtractionError: If no title or readable content is found
    """
    metadata = extract_preview_metadata(
        PageMetadata(url=payload.url, title=payload.title, meta=payload.meta)
    )
    isolated = isolate_article(payload.html, payload.url, fallback_title=metadata.title)

    content = postprocess_article(isolated.content, payload.url)
    text_content = BeautifulSoup(content, "html.parser").get_text("\n", strip=True)

    links = select_download_links(payload.download_links)
    if links:
        logger.debug(f"Found {len(links)} download links on {payload.url}")
        content += build_download_section(links, payload.password)

    return ArticleResult(
        title=isolated.title,
        byline=metadata.author or None,
        content=content,
        text_content=text_content,
        site_name=metadata.site or None,
    )
