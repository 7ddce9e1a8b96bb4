"""Test doubles: a scripted browser session and a mocked HTTP endpoint."""

from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional

import httpx

from siteaudit.browser import (
    BrowserListeners,
    BrowserSession,
    ImageInfo,
    LinkInfo,
    NavigationResult,
)
from siteaudit.http_probe import ExistenceChecker

ORIGIN = "https://example.com"


def url(path: str) -> str:
    return f"{ORIGIN}{path}"


@dataclass
class FakePage:
    """What the fake browser renders for one URL."""

    status: int = 200
    error: Optional[str] = None
    links: List[LinkInfo] = field(default_factory=list)
    images: List[ImageInfo] = field(default_factory=list)
    # Fired against the session listeners while the page loads
    events: List[Callable[[BrowserListeners], None]] = field(default_factory=list)


class FakeSession(BrowserSession):
    """In-memory BrowserSession. Unknown URLs answer 404 with no content."""

    def __init__(self, pages: Optional[Dict[str, FakePage]] = None):
        self.pages = pages or {}
        self.listeners = BrowserListeners()
        self.navigated: List[str] = []
        self.selectors: List[Optional[str]] = []
        self.started = False
        self.closed = False
        self.current: Optional[str] = None
        self.before_navigate = None

    async def start(self) -> None:
        self.started = True

    async def close(self) -> None:
        self.closed = True

    async def navigate(self, url: str, timeout: float) -> NavigationResult:
        if self.before_navigate is not None:
            await self.before_navigate(url)
        self.navigated.append(url)
        self.current = url
        page = self.pages.get(url)
        if page is None:
            return NavigationResult(url=url, status=404)
        if page.error:
            return NavigationResult(url=url, error=page.error)
        for fire in page.events:
            fire(self.listeners)
        return NavigationResult(url=url, status=page.status, final_url=url)

    def _page(self) -> FakePage:
        return self.pages.get(self.current) or FakePage()

    async def extract_links(self, selector: Optional[str] = None) -> List[LinkInfo]:
        self.selectors.append(selector)
        return list(self._page().links)

    async def extract_images(self, selector: Optional[str] = None) -> List[ImageInfo]:
        self.selectors.append(selector)
        return list(self._page().images)

    def set_listeners(self, listeners: BrowserListeners) -> None:
        self.listeners = listeners

    async def settle(self, seconds: float) -> None:
        pass


def link(path_or_url: str, text: str = "link", is_header: bool = False) -> LinkInfo:
    href = path_or_url if path_or_url.startswith("http") else url(path_or_url)
    return LinkInfo(href=href, text=text, context="<main>", is_header=is_header)


class StatusServer:
    """httpx handler answering from a URL -> status map (default 200) and recording requests."""

    def __init__(self, statuses: Optional[Dict[str, int]] = None, default: int = 200):
        self.statuses = statuses or {}
        self.default = default
        self.requests: List[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        status = self.statuses.get(str(request.url), self.default)
        if status == 0:
            raise httpx.ConnectError("connection refused", request=request)
        return httpx.Response(status)

    @property
    def urls(self) -> List[str]:
        return [str(r.url) for r in self.requests]

    def checker_factory(self) -> Callable[[], ExistenceChecker]:
        return lambda: ExistenceChecker(transport=httpx.MockTransport(self))


def urlset(*urls: str) -> str:
    entries = "".join(f"<url><loc>{u}</loc></url>" for u in urls)
    return f'<urlset xmlns="http://www.sitemaps.org/schemas/sitemap/0.9">{entries}</urlset>'


def sitemapindex(*children: str) -> str:
    entries = "".join(f"<sitemap><loc>{c}</loc></sitemap>" for c in children)
    return f'<sitemapindex xmlns="http://www.sitemaps.org/schemas/sitemap/0.9">{entries}</sitemapindex>'
