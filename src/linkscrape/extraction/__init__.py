"""In-page extraction: preview metadata and readable articles."""

from .article import (
    NOISE_SELECTORS,
    ArticlePayload,
    build_article,
    build_download_section,
    is_download_link,
    isolate_article,
    postprocess_article,
    provider_for,
    select_download_links,
)
from .metadata import (
    METADATA_RULES,
    MetadataRule,
    PreviewMetadata,
    extract_preview_metadata,
    page_metadata_from_html,
)
from .runtime import ExtractionScript, evaluate_script, wait_for_script

__all__ = [
    "NOISE_SELECTORS",
    "ArticlePayload",
    "build_article",
    "build_download_section",
    "is_download_link",
    "isolate_article",
    "postprocess_article",
    "provider_for",
    "select_download_links",
    "METADATA_RULES",
    "MetadataRule",
    "PreviewMetadata",
    "extract_preview_metadata",
    "page_metadata_from_html",
    "ExtractionScript",
    "evaluate_script",
    "wait_for_script",
]
