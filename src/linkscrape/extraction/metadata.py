"""
Preview metadata rules.

Both fetch paths reduce a page to a PageMetadata (document title, meta
name/content pairs, icon links). The rules below map that raw material onto
the canonical preview fields in priority order: the first rule that yields
a non-empty value wins.
"""

import logging
from dataclasses import dataclass

from bs4 import BeautifulSoup

from linkscrape.models import PageMetadata

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MetadataRule:
    """Where to look for one canonical field."""
    field: str
    source: str  # "meta", "document_title" or "icon"
    key: str = ""


def _meta(field: str, *keys: str) -> list[MetadataRule]:
    return [MetadataRule(field, "meta", key) for key in keys]


def _icons(field: str, *rels: str) -> list[MetadataRule]:
    return [MetadataRule(field, "icon", rel) for rel in rels]


METADATA_RULES: tuple[MetadataRule, ...] = tuple(
    _meta("title", "og:title", "twitter:title", "title", "dc.title", "headline")
    + [MetadataRule("title", "document_title")]
    + _meta(
        "description",
        "og:description", "twitter:description", "description", "dc.description",
    )
    + _meta(
        "image",
        "og:image", "og:image:url", "og:image:secure_url",
        "twitter:image", "twitter:image:src", "image", "thumbnailurl",
    )
    + _icons("favicon", "icon", "shortcut icon", "apple-touch-icon", "apple-touch-icon-precomposed")
    + _meta("favicon", "og:logo", "msapplication-tileimage")
    + _meta("author", "author", "article:author", "twitter:creator", "dc.creator", "byl")
    + _meta("site", "og:site_name", "application-name", "apple-mobile-web-app-title", "twitter:site")
)


@dataclass
class PreviewMetadata:
    """Canonical preview fields resolved from a PageMetadata."""
    url: str = ""
    title: str = ""
    description: str = ""
    image: str = ""
    favicon: str = ""
    author: str = ""
    site: str = ""


def _lookup(rule: MetadataRule, page: PageMetadata, meta_map: dict[str, str]) -> str:
    if rule.source == "meta":
        return meta_map.get(rule.key, "")
    if rule.source == "document_title":
        return page.title
    if rule.source == "icon":
        for icon in page.icons:
            if (icon.get("rel") or "").lower().strip() == rule.key and icon.get("href"):
                return icon["href"]
    return ""


def extract_preview_metadata(
    page: PageMetadata,
    rules: tuple[MetadataRule, ...] = METADATA_RULES,
) -> PreviewMetadata:
    """
    Resolve canonical preview fields from raw page metadata.

    Args:
        page: Raw metadata from either fetch path
        rules: Priority-ordered rules

    Returns:
        PreviewMetadata with empty strings for unresolved fields
    """
    meta_map: dict[str, str] = {}
    for name, content in page.meta:
        key = name.lower().strip()
        value = (content or "").strip()
        if value and key not in meta_map:
            meta_map[key] = value

    resolved = PreviewMetadata(url=page.url)
    for rule in rules:
        if getattr(resolved, rule.field):
            continue
        value = " ".join(_lookup(rule, page, meta_map).split())
        if value:
            setattr(resolved, rule.field, value)

    if not resolved.favicon:
        # Any icon link at all, for rel values no rule names
        resolved.favicon = next(
            (icon["href"] for icon in page.icons if icon.get("href")), ""
        )

    return resolved


def page_metadata_from_html(html: str, url: str, parser: str = "html.parser") -> PageMetadata:
    """Build a PageMetadata from raw HTML using BeautifulSoup."""
    soup = BeautifulSoup(html, parser)

    title = ""
    if soup.title and soup.title.string:
        title = soup.title.string.strip()

    meta: list[tuple[str, str]] = []
    for tag in soup.find_all("meta"):
        name = tag.get("name") or tag.get("property") or tag.get("itemprop")
        content = tag.get("content")
        if name and content:
            meta.append((name.lower(), content))

    icons: list[dict[str, str]] = []
    for link in soup.find_all("link", href=True):
        rel = link.get("rel") or []
        rel_value = " ".join(rel).lower() if isinstance(rel, list) else str(rel).lower()
        if "icon" in rel_value:
            icons.append({"rel": rel_value, "href": link["href"]})

    return PageMetadata(url=url, title=title, meta=meta, icons=icons)
