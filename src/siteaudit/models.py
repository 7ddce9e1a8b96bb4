"""Data models for site audits."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import ClassVar, Dict, List, Optional, Union


def utc_now_iso() -> str:
    """Return current UTC time in ISO format."""
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


class RunPhase(str, Enum):
    """Phase of an audit session."""

    IDLE = "idle"
    DISCOVERING = "discovering"
    PREVIEW = "preview"
    CRAWLING = "crawling"


# Allowed phase transitions; any phase may return to IDLE
PHASE_TRANSITIONS: Dict[RunPhase, tuple] = {
    RunPhase.IDLE: (RunPhase.DISCOVERING, RunPhase.CRAWLING),
    RunPhase.DISCOVERING: (RunPhase.PREVIEW, RunPhase.IDLE),
    RunPhase.PREVIEW: (RunPhase.CRAWLING, RunPhase.DISCOVERING, RunPhase.IDLE),
    RunPhase.CRAWLING: (RunPhase.IDLE,),
}


# =============================================================================
# Findings
# =============================================================================

@dataclass
class BrokenLink:
    """A link target that answered with an error status."""

    kind: ClassVar[str] = "broken_link"

    url: str
    status_code: int
    found_on_page: str
    link_text: str
    element_context: str
    timestamp: str = field(default_factory=utc_now_iso)

    def to_dict(self) -> dict:
        return {
            "url": self.url,
            "statusCode": self.status_code,
            "foundOnPage": self.found_on_page,
            "linkText": self.link_text,
            "elementContext": self.element_context,
            "timestamp": self.timestamp,
        }


@dataclass
class BrokenImage:
    """An image that failed to load."""

    kind: ClassVar[str] = "broken_image"

    src: str
    found_on_page: str
    alt_text: str
    element_context: str
    reason: str
    timestamp: str = field(default_factory=utc_now_iso)

    def to_dict(self) -> dict:
        return {
            "src": self.src,
            "foundOnPage": self.found_on_page,
            "altText": self.alt_text,
            "elementContext": self.element_context,
            "reason": self.reason,
            "timestamp": self.timestamp,
        }


@dataclass
class ConsoleError:
    """A console error or uncaught script error (``type`` is error, warning or js_error)."""

    kind: ClassVar[str] = "console_error"

    message: str
    found_on_page: str
    type: str = "error"
    timestamp: str = field(default_factory=utc_now_iso)

    def to_dict(self) -> dict:
        return {
            "message": self.message,
            "foundOnPage": self.found_on_page,
            "type": self.type,
            "timestamp": self.timestamp,
        }


@dataclass
class NavigationIssue:
    """A page or link that could not be loaded at all (timeout, DNS, reset)."""

    kind: ClassVar[str] = "navigation_issue"

    url: str
    reason: str
    found_on_page: str
    link_text: str
    element_context: str
    timestamp: str = field(default_factory=utc_now_iso)

    def to_dict(self) -> dict:
        return {
            "url": self.url,
            "reason": self.reason,
            "foundOnPage": self.found_on_page,
            "linkText": self.link_text,
            "elementContext": self.element_context,
            "timestamp": self.timestamp,
        }


Finding = Union[BrokenLink, BrokenImage, ConsoleError, NavigationIssue]

FINDING_TYPES = {cls.kind: cls for cls in (BrokenLink, BrokenImage, ConsoleError, NavigationIssue)}


def finding_from_dict(kind: str, data: dict) -> Finding:
    """Rebuild a finding from its wire representation."""
    if kind == BrokenLink.kind:
        return BrokenLink(
            url=data["url"],
            status_code=int(data.get("statusCode", 0)),
            found_on_page=data.get("foundOnPage", ""),
            link_text=data.get("linkText", ""),
            element_context=data.get("elementContext", ""),
            timestamp=data.get("timestamp") or utc_now_iso(),
        )
    if kind == BrokenImage.kind:
        return BrokenImage(
            src=data["src"],
            found_on_page=data.get("foundOnPage", ""),
            alt_text=data.get("altText", ""),
            element_context=data.get("elementContext", ""),
            reason=data.get("reason", ""),
            timestamp=data.get("timestamp") or utc_now_iso(),
        )
    if kind == ConsoleError.kind:
        return ConsoleError(
            message=data["message"],
            found_on_page=data.get("foundOnPage", ""),
            type=data.get("type", "error"),
            timestamp=data.get("timestamp") or utc_now_iso(),
        )
    if kind == NavigationIssue.kind:
        return NavigationIssue(
            url=data["url"],
            reason=data.get("reason", ""),
            found_on_page=data.get("foundOnPage", ""),
            link_text=data.get("linkText", ""),
            element_context=data.get("elementContext", ""),
            timestamp=data.get("timestamp") or utc_now_iso(),
        )
    raise ValueError(f"Unknown finding kind: {kind}")


# =============================================================================
# Requests and Results
# =============================================================================

@dataclass
class DiscoveryRequest:
    """Input for a discovery run."""

    start_url: str
    sitemap_url: Optional[str] = None
    selector: Optional[str] = None

    @classmethod
    def from_dict(cls, data: dict) -> "DiscoveryRequest":
        return cls(
            start_url=data.get("startUrl") or data.get("start_url") or "",
            sitemap_url=data.get("sitemapUrl") or data.get("sitemap_url") or None,
            selector=data.get("cssSelector") or data.get("selector") or None,
        )


@dataclass
class CrawlRequest:
    """Input for a crawl run.

    ``selected_urls`` of None means full-site mode. ``all_discovered_urls``
    are treated as already validated in selective mode.
    """

    start_url: str
    sitemap_url: Optional[str] = None
    selector: Optional[str] = None
    selected_urls: Optional[List[str]] = None
    all_discovered_urls: Optional[List[str]] = None

    @property
    def selective(self) -> bool:
        return self.selected_urls is not None

    @classmethod
    def from_dict(cls, data: dict) -> "CrawlRequest":
        selected = data.get("selectedUrls", data.get("selected_urls"))
        discovered = data.get("allDiscoveredUrls", data.get("all_discovered_urls"))
        return cls(
            start_url=data.get("startUrl") or data.get("start_url") or "",
            sitemap_url=data.get("sitemapUrl") or data.get("sitemap_url") or None,
            selector=data.get("cssSelector") or data.get("selector") or None,
            selected_urls=list(selected) if isinstance(selected, list) else None,
            all_discovered_urls=list(discovered) if isinstance(discovered, list) else None,
        )


@dataclass
class DiscoveryResult:
    """Outcome of a discovery run."""

    links: List[str] = field(default_factory=list)
    from_sitemap: int = 0
    from_pages: int = 0
    pages_scanned: int = 0
    capped: bool = False

    @property
    def total(self) -> int:
        return len(self.links)


@dataclass
class CrawlCounters:
    """Running totals for a crawl run."""

    crawled: int = 0
    broken_links: int = 0
    broken_images: int = 0
    navigation_issues: int = 0
    console_errors: int = 0

    def record(self, finding: Finding) -> None:
        if isinstance(finding, BrokenLink):
            self.broken_links += 1
        elif isinstance(finding, BrokenImage):
            self.broken_images += 1
        elif isinstance(finding, NavigationIssue):
            self.navigation_issues += 1
        elif isinstance(finding, ConsoleError):
            self.console_errors += 1

    def to_dict(self) -> dict:
        return {
            "crawled": self.crawled,
            "brokenLinks": self.broken_links,
            "brokenImages": self.broken_images,
            "navigationIssues": self.navigation_issues,
            "consoleErrors": self.console_errors,
        }
