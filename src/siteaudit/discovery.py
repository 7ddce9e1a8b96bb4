"""
Discovery Engine - enumerate the pages of a site before crawling them.

Two modes, selected by the presence of a sitemap URL:

- Sitemap mode reads the sitemap (flat or index) and never opens a browser.
- Browser mode walks the site breadth-first from the start URL, collecting
  same-origin page links, up to a hard page cap.

Either way the result is a canonical, sorted URL list that a caller can
narrow down before starting a crawl.
"""

import asyncio
import logging
from collections import deque
from typing import Callable, Deque, Dict, Optional, Set
from urllib.parse import urlsplit

from siteaudit.browser import BrowserSession, PlaywrightSession
from siteaudit.browser_config import BrowserConfig
from siteaudit.config import AuditConfig, settings
from siteaudit.events import (
    EventEmitter,
    discovery_done_event,
    error_event,
    status_event,
)
from siteaudit.exceptions import FatalError, FetchError, NavigationError
from siteaudit.models import DiscoveryRequest, DiscoveryResult
from siteaudit.sitemap_parser import SitemapParser
from siteaudit.urls import (
    canonicalize,
    is_non_page_resource,
    is_same_origin,
    origin_of,
    sort_discovered,
)

logger = logging.getLogger(__name__)

SessionFactory = Callable[[], BrowserSession]


def _display_path(url: str) -> str:
    try:
        return urlsplit(url).path or "/"
    except ValueError:
        return url


class DiscoveryEngine:
    """
    Runs a single discovery and reports progress through an EventEmitter.

    Usage:
        engine = DiscoveryEngine(emitter, config)
        result = await engine.run(DiscoveryRequest(start_url="https://example.com"))
    """

    def __init__(
        self,
        emitter: EventEmitter,
        config: Optional[AuditConfig] = None,
        session_factory: Optional[SessionFactory] = None,
        sitemap_parser: Optional[SitemapParser] = None,
        cancel_event: Optional[asyncio.Event] = None,
    ):
        """
        Initialize the engine.

        Args:
            emitter: Destination for status/done/error events
            config: Limits and timeouts (defaults to AuditConfig())
            session_factory: Builds the browser session for browser mode
            sitemap_parser: Sitemap reader for sitemap mode
            cancel_event: Set by the owner to stop the run between pages
        """
        self.emitter = emitter
        self.config = config or AuditConfig()
        self.session_factory = session_factory or self._default_session
        self.sitemap_parser = sitemap_parser or SitemapParser(
            batch_size=self.config.sitemap_batch_size,
            max_redirects=self.config.sitemap_max_redirects,
            timeout=self.config.sitemap_timeout,
            user_agent=self.config.user_agent,
        )
        self.cancel_event = cancel_event or asyncio.Event()

        self._discovered: Dict[str, None] = {}
        self._from_sitemap = 0
        self._from_pages = 0
        self._pages_scanned = 0

    def _default_session(self) -> BrowserSession:
        return PlaywrightSession(BrowserConfig(
            headless=settings.HEADLESS,
            user_agent=self.config.user_agent,
        ))

    @property
    def cancelled(self) -> bool:
        return self.emitter.closed or self.cancel_event.is_set()

    def _status(self, phase: str, message: str, current_url: Optional[str] = None) -> None:
        self.emitter.send(status_event(
            phase=phase,
            message=message,
            total=len(self._discovered),
            from_sitemap=self._from_sitemap,
            pages_scanned=self._pages_scanned,
            current_url=current_url,
        ))

    async def run(self, request: DiscoveryRequest) -> Optional[DiscoveryResult]:
        """Discover pages for ``request``.

        Returns:
            The result, or None if the run failed or was cancelled. A failure
            has already been reported as an ``error`` event.
        """
        try:
            origin = origin_of(request.start_url)
        except FatalError as e:
            logger.error(str(e))
            self.emitter.send(error_event(str(e)))
            return None

        has_sitemap = bool(request.sitemap_url)
        self._status(
            "starting",
            "📄 Starting sitemap-based discovery..." if has_sitemap
            else "🔍 Starting page crawl discovery...",
        )
        self._discovered[canonicalize(request.start_url)] = None

        try:
            if has_sitemap:
                result = await self._discover_from_sitemap(request.sitemap_url, origin)
            else:
                result = await self._discover_with_browser(request, origin)
        except FetchError as e:
            logger.error(f"Sitemap discovery failed: {e}")
            self.emitter.send(error_event(f"Failed to parse sitemap: {e}"))
            return None
        except FatalError as e:
            logger.error(f"Discovery failed: {e}")
            self.emitter.send(error_event(str(e)))
            return None

        if result is None:
            logger.info("Discovery cancelled")
        return result

    def _result(self, capped: bool = False) -> DiscoveryResult:
        return DiscoveryResult(
            links=sort_discovered(self._discovered),
            from_sitemap=self._from_sitemap,
            from_pages=self._from_pages,
            pages_scanned=self._pages_scanned,
            capped=capped,
        )

    # =========================================================================
    # Sitemap mode
    # =========================================================================

    async def _discover_from_sitemap(self, sitemap_url: str, origin: str) -> Optional[DiscoveryResult]:
        self._status("sitemap", f"📄 Fetching sitemap: {sitemap_url}")

        announced = []

        def on_progress(done: int, total: int, urls_read: int) -> None:
            if not announced:
                announced.append(True)
                self._status("sitemap", f"📑 Found sitemap index with {total} child sitemaps")
            self._status("sitemap", f"📄 Processing sitemaps... ({done}/{total}) - {urls_read} URLs read")

        read = await self.sitemap_parser.read(sitemap_url, on_progress=on_progress)
        if self.cancelled:
            return None

        if read.failed_sitemaps:
            logger.warning(f"{len(read.failed_sitemaps)} child sitemaps could not be read")

        sitemap_links = set()
        for url in read.page_urls:
            canonical = canonicalize(url)
            if is_same_origin(canonical, origin) and not is_non_page_resource(canonical):
                sitemap_links.add(canonical)
                self._discovered[canonical] = None
        self._from_sitemap = len(sitemap_links)

        self._status("sitemap_done", f"✅ Sitemap parsed: {self._from_sitemap} links found")

        result = self._result()
        self.emitter.send(discovery_done_event(
            result, f"🎉 Discovery complete! Found {self._from_sitemap} links from sitemap."
        ))
        return result

    # =========================================================================
    # Browser mode
    # =========================================================================

    async def _discover_with_browser(self, request: DiscoveryRequest, origin: str) -> Optional[DiscoveryResult]:
        self._status("browser", "🌐 Launching browser for page discovery...")

        start = canonicalize(request.start_url)
        frontier: Deque[str] = deque([start])
        visited: Set[str] = set()
        max_pages = self.config.max_discovery_pages
        capped = False

        async with self.session_factory() as session:
            while frontier:
                if self.cancelled:
                    return None
                if self._pages_scanned >= max_pages:
                    capped = True
                    break

                url = frontier.popleft()
                if url in visited:
                    continue
                visited.add(url)
                self._pages_scanned += 1

                self._status(
                    "scanning",
                    f"🔍 Scanning page {self._pages_scanned}: {_display_path(url)}",
                    current_url=url,
                )

                new_links = await self._scan_page(session, url, origin, request.selector)
                for link in new_links:
                    frontier.append(link)

                if new_links:
                    self._status(
                        "scanning",
                        f"✨ Found {len(new_links)} new links on {_display_path(url)} "
                        f"({len(self._discovered)} total)",
                    )

            if capped:
                logger.warning(f"Discovery stopped at the {max_pages} page limit")
                self._status("scanning", f"⚠️ Page limit reached ({self._pages_scanned} pages)")
            else:
                self._status("scanning", f"📋 All reachable pages scanned ({self._pages_scanned} pages)")

        result = self._result(capped=capped)
        self.emitter.send(discovery_done_event(
            result,
            f"🎉 Discovery complete! Scanned {self._pages_scanned} pages, found {result.total} links.",
        ))
        return result

    async def _scan_page(self, session: BrowserSession, url: str, origin: str, selector: Optional[str]) -> list:
        """Visit one page and return the links it adds to the discovered set."""
        nav = await session.navigate(url, timeout=self.config.discovery_timeout)
        if nav.failed:
            logger.info(f"Skipping {url}: {nav.error}")
            return []

        try:
            links = await session.extract_links(selector)
        except NavigationError as e:
            logger.info(f"Skipping {url}: {e}")
            return []

        new_links = []
        for link in links:
            canonical = canonicalize(link.href)
            if (
                is_same_origin(canonical, origin)
                and not is_non_page_resource(canonical)
                and canonical not in self._discovered
            ):
                self._discovered[canonical] = None
                self._from_pages += 1
                new_links.append(canonical)
        return new_links
