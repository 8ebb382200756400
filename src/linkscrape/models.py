"""Data models for the scrape engine."""

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from typing import Any, Optional


class StrategyKind(str, Enum):
    """Which kind of result a scrape task produces."""
    PREVIEW = "preview"
    ARTICLE = "article"


class ScrapeStatus(str, Enum):
    """Terminal status carried by every result."""
    SUCCESS = "success"
    BLOCKED = "blocked"
    FAILED = "failed"


class ErrorKind(str, Enum):
    """Failure taxonomy."""
    BLOCKED = "blocked"
    QUEUE_TIMEOUT = "queue_timeout"
    EXTRACTION_FAILURE = "extraction_failure"
    NETWORK_ERROR = "network_error"


@dataclass
class ScrapeTask:
    """A single request for a rendered scrape."""
    url: str
    strategy_kind: StrategyKind
    attempt: int = 0
    enqueued_at: datetime = field(default_factory=datetime.now)


@dataclass
class PreviewResult:
    """Link preview metadata."""
    title: str = ""
    description: str = ""
    image: str = ""
    favicon: str = ""
    status: ScrapeStatus = ScrapeStatus.SUCCESS
    error: Optional[str] = None
    error_kind: Optional[ErrorKind] = None
    # Resolved page URL, base for relative image/favicon links
    url: str = ""

    @property
    def ok(self) -> bool:
        return self.status == ScrapeStatus.SUCCESS

    @classmethod
    def failed(cls, error: str, kind: ErrorKind = ErrorKind.NETWORK_ERROR) -> "PreviewResult":
        return cls(status=ScrapeStatus.FAILED, error=error, error_kind=kind)

    @classmethod
    def blocked(cls, error: str = "Access blocked") -> "PreviewResult":
        return cls(status=ScrapeStatus.BLOCKED, error=error, error_kind=ErrorKind.BLOCKED)

    def to_dict(self) -> dict[str, Any]:
        """Serialize to dictionary."""
        return {
            "title": self.title,
            "description": self.description,
            "image": self.image,
            "favicon": self.favicon,
            "status": self.status.value,
            "error": self.error,
            "error_kind": self.error_kind.value if self.error_kind else None,
            "url": self.url,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "PreviewResult":
        """Deserialize from dictionary."""
        return cls(
            title=data.get("title") or "",
            description=data.get("description") or "",
            image=data.get("image") or "",
            favicon=data.get("favicon") or "",
            status=ScrapeStatus(data.get("status", ScrapeStatus.SUCCESS.value)),
            error=data.get("error"),
            error_kind=ErrorKind(data["error_kind"]) if data.get("error_kind") else None,
            url=data.get("url") or "",
        )


@dataclass
class ArticleResult:
    """Readable article content."""
    title: str = ""
    byline: Optional[str] = None
    content: str = ""
    text_content: str = ""
    site_name: Optional[str] = None
    status: ScrapeStatus = ScrapeStatus.SUCCESS
    error: Optional[str] = None
    error_kind: Optional[ErrorKind] = None

    @property
    def ok(self) -> bool:
        return self.status == ScrapeStatus.SUCCESS

    @classmethod
    def failed(cls, error: str, kind: ErrorKind = ErrorKind.NETWORK_ERROR) -> "ArticleResult":
        return cls(status=ScrapeStatus.FAILED, error=error, error_kind=kind)

    @classmethod
    def blocked(cls, error: str = "Access blocked") -> "ArticleResult":
        return cls(status=ScrapeStatus.BLOCKED, error=error, error_kind=ErrorKind.BLOCKED)

    def to_dict(self) -> dict[str, Any]:
        """Serialize to dictionary."""
        return {
            "title": self.title,
            "byline": self.byline,
            "content": self.content,
            "text_content": self.text_content,
            "site_name": self.site_name,
            "status": self.status.value,
            "error": self.error,
            "error_kind": self.error_kind.value if self.error_kind else None,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ArticleResult":
        """Deserialize from dictionary."""
        return cls(
            title=data.get("title") or "",
            byline=data.get("byline"),
            content=data.get("content") or "",
            text_content=data.get("text_content") or "",
            site_name=data.get("site_name"),
            status=ScrapeStatus(data.get("status", ScrapeStatus.SUCCESS.value)),
            error=data.get("error"),
            error_kind=ErrorKind(data["error_kind"]) if data.get("error_kind") else None,
        )


@dataclass
class CacheEntry:
    """A cached result keyed by normalized URL."""
    key: str
    payload: dict[str, Any]
    last_fetched: datetime
    ttl: timedelta

    @property
    def expires_at(self) -> datetime:
        return self.last_fetched + self.ttl

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        """Check if this entry is older than its TTL."""
        return (now or datetime.now()) > self.expires_at


@dataclass
class BrowserSession:
    """The process-wide browser handle and its bookkeeping."""
    handle: Any
    created_at: datetime = field(default_factory=datetime.now)
    use_count: int = 0
    recycle_pending: bool = False


@dataclass
class DownloadLink:
    """A file-hosting link found on an article page."""
    href: str
    text: str
    provider: str = "direct"


@dataclass
class PageMetadata:
    """Raw head metadata gathered from a page, before rule resolution."""
    url: str
    title: str = ""
    meta: list[tuple[str, str]] = field(default_factory=list)
    icons: list[dict[str, str]] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "PageMetadata":
        return cls(
            url=data.get("url", ""),
            title=data.get("title") or "",
            meta=[(str(name), str(content)) for name, content in data.get("meta", [])],
            icons=list(data.get("icons", [])),
        )
