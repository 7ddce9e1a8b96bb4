"""Website health auditor: discover pages, then crawl them for broken links, images and script errors."""

__version__ = "0.1.0"

from siteaudit.config import AuditConfig, settings
from siteaudit.browser_config import BrowserConfig
from siteaudit.coordinator import AuditSession
from siteaudit.crawl_engine import CrawlEngine, RunContext
from siteaudit.discovery import DiscoveryEngine
from siteaudit.events import (
    CallbackTransport,
    EventEmitter,
    JsonLinesTransport,
    QueueTransport,
)
from siteaudit.exceptions import (
    SiteAuditError,
    FetchError,
    NavigationError,
    SitemapParseError,
    FatalError,
    InvalidStartURL,
    BrowserLaunchError,
    PhaseError,
    InvalidPhaseTransition,
)
from siteaudit.models import (
    BrokenLink,
    BrokenImage,
    ConsoleError,
    NavigationIssue,
    Finding,
    RunPhase,
    DiscoveryRequest,
    CrawlRequest,
    DiscoveryResult,
    CrawlCounters,
)
from siteaudit.registry import LinkRegistry, LinkReference
from siteaudit.sitemap_parser import SitemapParser

__all__ = [
    "AuditConfig",
    "settings",
    "BrowserConfig",
    "AuditSession",
    "CrawlEngine",
    "RunContext",
    "DiscoveryEngine",
    "CallbackTransport",
    "EventEmitter",
    "JsonLinesTransport",
    "QueueTransport",
    "SiteAuditError",
    "FetchError",
    "NavigationError",
    "SitemapParseError",
    "FatalError",
    "InvalidStartURL",
    "BrowserLaunchError",
    "PhaseError",
    "InvalidPhaseTransition",
    "BrokenLink",
    "BrokenImage",
    "ConsoleError",
    "NavigationIssue",
    "Finding",
    "RunPhase",
    "DiscoveryRequest",
    "CrawlRequest",
    "DiscoveryResult",
    "CrawlCounters",
    "LinkRegistry",
    "LinkReference",
    "SitemapParser",
]
