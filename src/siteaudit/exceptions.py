"""Exceptions raised by the site auditor."""

from typing import Optional


class SiteAuditError(Exception):
    """Base class for all site auditor errors."""


class FetchError(SiteAuditError):
    """Raised when a sitemap or probe request cannot be completed."""

    def __init__(self, message: str, url: Optional[str] = None):
        self.url = url
        super().__init__(message)


class NavigationError(SiteAuditError):
    """Raised by a browser session when a page fails to load."""

    def __init__(self, message: str, url: Optional[str] = None):
        self.url = url
        super().__init__(message)


class SitemapParseError(SiteAuditError):
    """Sitemap XML could not be parsed strictly."""


class FatalError(SiteAuditError):
    """Unrecoverable setup failure; aborts the run."""


class InvalidStartURL(FatalError):
    """The start URL is not an absolute http(s) URL."""


class BrowserLaunchError(FatalError):
    """The headless browser could not be started."""


class PhaseError(SiteAuditError):
    """An audit session operation is not allowed in the current phase."""


class InvalidPhaseTransition(PhaseError):
    """An audit session was asked to move to a phase it cannot reach."""

    def __init__(self, current: str, target: str):
        self.current = current
        self.target = target
        super().__init__(f"Cannot move from '{current}' to '{target}'")
