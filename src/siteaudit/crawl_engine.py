"""
Crawl Engine - visit pages with a headless browser and report what is broken.

A run walks its frontier sequentially against one browser session. For each
page it checks the page itself, the links and images on it, and collects
findings raised asynchronously by the page (failed sub-resources, console
and script errors). Every finding is streamed through the EventEmitter and
also returned in the terminal ``done`` event.
"""

import asyncio
import logging
from collections import deque
from dataclasses import dataclass, field
from typing import Callable, Deque, Dict, List, Optional, Set, Tuple

from siteaudit.browser import (
    BrowserListeners,
    BrowserSession,
    ConsoleMessage,
    ImageInfo,
    LinkInfo,
    PlaywrightSession,
    RequestFailure,
    ResponseInfo,
)
from siteaudit.browser_config import BrowserConfig
from siteaudit.config import AuditConfig, settings
from siteaudit.constants import (
    CONSOLE_CONTEXT,
    DETECTED_FROM_CONSOLE,
    DETECTED_FROM_NETWORK,
    IGNORED_RESOURCE_TYPES,
    SITEMAP_CONTEXT,
    SITEMAP_LINK_TEXT,
    START_URL_CONTEXT,
    START_URL_PAGE,
    START_URL_TEXT,
    UNKNOWN_CONTEXT,
    UNKNOWN_LINK_TEXT,
    UNKNOWN_SOURCE_PAGE,
)
from siteaudit.events import EventEmitter, crawl_done_event, error_event, finding_event, log_event
from siteaudit.exceptions import FatalError, FetchError, NavigationError
from siteaudit.failure_classifier import FailureClassifier, default_classifier
from siteaudit.http_probe import ExistenceChecker, ProbeResult
from siteaudit.models import (
    BrokenImage,
    BrokenLink,
    ConsoleError,
    CrawlCounters,
    CrawlRequest,
    Finding,
    NavigationIssue,
)
from siteaudit.registry import LinkRegistry
from siteaudit.sitemap_parser import SitemapParser
from siteaudit.urls import (
    canonicalize,
    is_anchor_only,
    is_http_url,
    is_non_page_resource,
    is_same_origin,
    is_skipped_external_host,
    is_svg,
    origin_of,
    resource_kind,
)

logger = logging.getLogger(__name__)

SessionFactory = Callable[[], BrowserSession]
CheckerFactory = Callable[[], ExistenceChecker]

# (finding or None for a plain log line, message)
PendingItem = Tuple[Optional[Finding], str]
# (resource URL, pushes its findings onto the inbox)
HeldItem = Tuple[str, Callable[[], None]]


@dataclass
class RunContext:
    """All mutable state of one crawl run."""

    origin: str
    start_url: str
    selector: Optional[str] = None
    sitemap_url: Optional[str] = None
    selective: bool = False
    selected: Dict[str, None] = field(default_factory=dict)
    discovered: Set[str] = field(default_factory=set)

    frontier: Deque[str] = field(default_factory=deque)
    queued: Set[str] = field(default_factory=set)
    visited: Set[str] = field(default_factory=set)
    checked_resources: Set[str] = field(default_factory=set)
    registry: LinkRegistry = field(default_factory=LinkRegistry)

    counters: CrawlCounters = field(default_factory=CrawlCounters)
    findings: List[Finding] = field(default_factory=list)
    # Written by browser listeners, drained by the crawl loop
    inbox: Deque[PendingItem] = field(default_factory=deque)
    # Listener link/image findings of a selector-scoped run, until the scope is known
    held: Deque[HeldItem] = field(default_factory=deque)
    page_images: Set[str] = field(default_factory=set)

    current_page: str = ""
    first_page: bool = True
    cancelled: bool = False

    @classmethod
    def from_request(cls, request: CrawlRequest) -> "RunContext":
        """
        Raises:
            InvalidStartURL: If the request's start URL is not http(s).
        """
        origin = origin_of(request.start_url)
        start = canonicalize(request.start_url)
        return cls(
            origin=origin,
            start_url=start,
            selector=request.selector,
            sitemap_url=request.sitemap_url,
            selective=request.selective,
            selected=dict.fromkeys(canonicalize(u) for u in request.selected_urls or ()),
            discovered={canonicalize(u) for u in request.all_discovered_urls or ()},
            current_page=start,
        )

    @property
    def has_sitemap(self) -> bool:
        return bool(self.sitemap_url)

    def enqueue(self, url: str) -> bool:
        """Add ``url`` to the frontier unless it was already visited or queued."""
        if url in self.visited or url in self.queued:
            return False
        self.frontier.append(url)
        self.queued.add(url)
        return True

    def next_url(self) -> str:
        url = self.frontier.popleft()
        self.queued.discard(url)
        return url


class CrawlEngine:
    """
    Runs a single crawl and reports findings through an EventEmitter.

    Usage:
        engine = CrawlEngine(emitter, config)
        context = await engine.run(CrawlRequest(start_url="https://example.com"))
        print(context.counters.broken_links)
    """

    def __init__(
        self,
        emitter: EventEmitter,
        config: Optional[AuditConfig] = None,
        session_factory: Optional[SessionFactory] = None,
        checker_factory: Optional[CheckerFactory] = None,
        sitemap_parser: Optional[SitemapParser] = None,
        classifier: Optional[FailureClassifier] = None,
        cancel_event: Optional[asyncio.Event] = None,
    ):
        self.emitter = emitter
        self.config = config or AuditConfig()
        self.session_factory = session_factory or self._default_session
        self.checker_factory = checker_factory or self._default_checker
        self.sitemap_parser = sitemap_parser or SitemapParser(
            batch_size=self.config.sitemap_batch_size,
            max_redirects=self.config.sitemap_max_redirects,
            timeout=self.config.sitemap_timeout,
            user_agent=self.config.user_agent,
        )
        self.classifier = classifier or default_classifier
        self.cancel_event = cancel_event or asyncio.Event()
        self.context: Optional[RunContext] = None

    def _default_session(self) -> BrowserSession:
        return PlaywrightSession(BrowserConfig(
            headless=settings.HEADLESS,
            user_agent=self.config.user_agent,
        ))

    def _default_checker(self) -> ExistenceChecker:
        return ExistenceChecker(
            timeout=self.config.probe_timeout,
            user_agent=self.config.user_agent,
            concurrency=self.config.probe_concurrency,
        )

    @property
    def cancelled(self) -> bool:
        return self.emitter.closed or self.cancel_event.is_set()

    # =========================================================================
    # Reporting
    # =========================================================================

    def _log(self, message: str, current_url: Optional[str] = None) -> None:
        self.emitter.send(log_event(message, current_url=current_url))

    def _report(self, ctx: RunContext, finding: Finding, message: str) -> None:
        ctx.counters.record(finding)
        ctx.findings.append(finding)
        self.emitter.send(finding_event(finding, message))

    def _flush(self, ctx: RunContext) -> None:
        """Emit everything the page listeners produced, in arrival order."""
        while ctx.inbox:
            finding, message = ctx.inbox.popleft()
            if finding is None:
                self._log(message)
            else:
                self._report(ctx, finding, message)

    def _report_per_referrer(self, ctx: RunContext, url: str, status: int, label: str) -> None:
        """One BrokenLink for every page known to link to ``url``."""
        references = ctx.registry.references(url)
        if not references:
            self._report(ctx, BrokenLink(
                url=url,
                status_code=status,
                found_on_page=UNKNOWN_SOURCE_PAGE,
                link_text=UNKNOWN_LINK_TEXT,
                element_context=UNKNOWN_CONTEXT,
            ), f"🔗❌ Broken {label} ({status}): {url}")
            return

        for ref in references:
            self._report(ctx, BrokenLink(
                url=url,
                status_code=status,
                found_on_page=ref.found_on_page,
                link_text=ref.link_text,
                element_context=ref.element_context,
            ), f"🔗❌ Broken {label} ({status}): {url} | Linked from: {ref.found_on_page}")

    # =========================================================================
    # Run
    # =========================================================================

    async def run(self, request: CrawlRequest) -> Optional[RunContext]:
        """Crawl according to ``request``.

        Returns:
            The finished (or cancelled) run context, or None if the run was
            aborted by a fatal error, which has already been reported as an
            ``error`` event.
        """
        try:
            ctx = RunContext.from_request(request)
        except FatalError as e:
            logger.error(str(e))
            self.emitter.send(error_event(str(e)))
            return None
        self.context = ctx

        self._log("🚀 Starting crawler...")
        if ctx.selector:
            self._log(f"🎯 CSS selector active: {ctx.selector}")

        try:
            async with self.session_factory() as session, self.checker_factory() as checker:
                session.set_listeners(self._listeners(ctx))
                await self._seed(ctx)
                await self._crawl_loop(ctx, session, checker)
        except FatalError as e:
            logger.error(f"Crawl aborted: {e}")
            self.emitter.send(error_event(str(e)))
            return None

        if ctx.cancelled:
            logger.info(f"Crawl cancelled after {ctx.counters.crawled} pages")
            return ctx

        self._release_held(ctx)
        self._flush(ctx)
        counters = ctx.counters
        message = (
            f"🏁 Crawl complete. Pages: {len(ctx.visited)} | Broken Links: {counters.broken_links} | "
            f"Broken Images: {counters.broken_images} | Nav Issues: {counters.navigation_issues}"
        )
        logger.info(message)
        self.emitter.send(crawl_done_event(message, counters, ctx.findings, pages_visited=len(ctx.visited)))
        return ctx

    async def _seed(self, ctx: RunContext) -> None:
        ctx.registry.register(ctx.start_url, START_URL_PAGE, START_URL_TEXT, START_URL_CONTEXT)

        if ctx.selective:
            for url in ctx.selected:
                ctx.enqueue(url)
            logger.info(f"Selective crawl of {len(ctx.frontier)} pages")
            return

        ctx.enqueue(ctx.start_url)
        if ctx.has_sitemap:
            await self._seed_from_sitemap(ctx)

    async def _seed_from_sitemap(self, ctx: RunContext) -> None:
        self._log(f"📄 Loading sitemap: {ctx.sitemap_url}")
        try:
            read = await self.sitemap_parser.read(ctx.sitemap_url)
        except FetchError as e:
            logger.warning(f"Failed to load sitemap {ctx.sitemap_url}: {e}")
            self._log(f"⚠️ Failed to load sitemap: {e}")
            return

        urls = [canonicalize(u) for u in read.page_urls]
        urls = [u for u in urls if is_same_origin(u, ctx.origin)]
        for url in urls:
            if not is_non_page_resource(url):
                ctx.enqueue(url)
            ctx.registry.register(url, ctx.sitemap_url, SITEMAP_LINK_TEXT, SITEMAP_CONTEXT)

        self._log(f"✅ Added {len(urls)} URLs from sitemap")

    async def _crawl_loop(self, ctx: RunContext, session: BrowserSession, checker: ExistenceChecker) -> None:
        batch_size = max(1, self.config.batch_size)

        while ctx.frontier:
            batch_count = 0

            while ctx.frontier and batch_count < batch_size:
                if self.cancelled:
                    ctx.cancelled = True
                    return

                url = ctx.next_url()
                if url in ctx.visited:
                    continue

                if is_non_page_resource(url):
                    await self._check_resource(ctx, checker, url)
                    ctx.visited.add(url)
                    continue

                ctx.visited.add(url)
                ctx.counters.crawled += 1
                batch_count += 1
                ctx.current_page = url

                self._log(f"🔍 Crawling ({ctx.counters.crawled}): {url}", current_url=url)
                await self._visit_page(ctx, session, checker, url)
                self._release_held(ctx)
                self._flush(ctx)

                if ctx.frontier:
                    self._log(f"📋 {len(ctx.frontier)} pages remaining in queue")

            if self.cancelled:
                ctx.cancelled = True
                return

            self._log(f"✅ Batch finished. Total pages crawled: {ctx.counters.crawled}")
            if ctx.frontier:
                self._log(f"📊 {len(ctx.frontier)} URLs remaining in queue")

    # =========================================================================
    # Per-page processing
    # =========================================================================

    async def _check_resource(self, ctx: RunContext, checker: ExistenceChecker, url: str) -> None:
        """Existence-check a linked file instead of navigating to it."""
        references = ctx.registry.references(url)
        if not references or url in ctx.checked_resources:
            return

        result = await checker.head_check(url)
        ctx.checked_resources.add(url)

        if result.status >= 400:
            self._report_per_referrer(ctx, url, result.status, "resource")
        elif result.unreachable:
            for ref in references:
                self._report(ctx, NavigationIssue(
                    url=url,
                    reason="Connection failed or timeout",
                    found_on_page=ref.found_on_page,
                    link_text=ref.link_text,
                    element_context=ref.element_context,
                ), f"⚠️ Navigation issue: {url} | Reason: Connection failed or timeout")
        else:
            self._log(f"📄 Resource OK: {url}")

    def _navigation_failed(self, ctx: RunContext, url: str, reason: str) -> None:
        self._log(f"⚠️ Navigation error: {reason} | Page: {url}")

        references = ctx.registry.references(url)
        if not references or url in ctx.checked_resources:
            return
        ctx.checked_resources.add(url)

        for ref in references:
            self._report(ctx, NavigationIssue(
                url=url,
                reason=reason or "Navigation failed",
                found_on_page=ref.found_on_page,
                link_text=ref.link_text,
                element_context=ref.element_context,
            ), f"⚠️ Navigation issue: {url} | Reason: {reason}")

    async def _visit_page(
        self,
        ctx: RunContext,
        session: BrowserSession,
        checker: ExistenceChecker,
        url: str,
    ) -> None:
        ctx.page_images = set()
        nav = await session.navigate(url, timeout=self.config.navigation_timeout)
        if nav.failed:
            self._navigation_failed(ctx, url, nav.error)
            return

        await session.settle(self.config.settle_delay)
        self._flush(ctx)

        if nav.status is not None and nav.status >= 400:
            self._log(f"⚠️ Page returned {nav.status}: {url}")
            if url not in ctx.checked_resources:
                ctx.checked_resources.add(url)
                self._report_per_referrer(ctx, url, nav.status, "page")
            return

        try:
            links = await session.extract_links(ctx.selector)
            await self._process_links(ctx, checker, url, links)
            self._flush(ctx)

            images = await session.extract_images(ctx.selector)
            ctx.page_images = {canonicalize(image.src) for image in images if is_http_url(image.src)}
            await self._process_images(ctx, checker, url, images)
        except NavigationError as e:
            self._navigation_failed(ctx, url, str(e))

    async def _process_links(
        self,
        ctx: RunContext,
        checker: ExistenceChecker,
        page_url: str,
        links: List[LinkInfo],
    ) -> None:
        internal: List[LinkInfo] = []
        external: List[LinkInfo] = []
        for link in links:
            if is_same_origin(canonicalize(link.href), ctx.origin):
                if not is_anchor_only(link.href):
                    internal.append(link)
            elif is_http_url(link.href):
                external.append(link)

        header_count = sum(1 for link in internal if link.is_header)
        self._log(
            f"🔗 Found {len(links)} links ({len(internal)} internal: {len(internal) - header_count} content, "
            f"{header_count} header/nav | {len(external)} external)"
        )

        to_validate: List[Tuple[str, LinkInfo]] = []
        skipped_header = skipped_checked = skipped_discovered = selected_pending = added = 0

        for link in internal:
            target = canonicalize(link.href)

            # Navigation is assumed stable: only followed from the first page of a sitemap-less run
            if link.is_header and (ctx.has_sitemap or not ctx.first_page):
                skipped_header += 1
                continue

            ctx.registry.register(target, page_url, link.text, link.context)

            if not ctx.selective:
                if ctx.enqueue(target):
                    added += 1
            elif target in ctx.visited or target in ctx.checked_resources:
                skipped_checked += 1
            elif target in ctx.selected:
                # Visited later as a selected page
                selected_pending += 1
            elif self.config.trust_discovered and target in ctx.discovered:
                skipped_discovered += 1
            elif target not in ctx.queued:
                to_validate.append((target, link))

        if ctx.selective:
            parts = []
            if to_validate:
                parts.append(f"{len(to_validate)} to validate")
            if selected_pending:
                parts.append(f"{selected_pending} selected (crawled separately)")
            if skipped_discovered:
                parts.append(f"{skipped_discovered} in sitemap (assumed valid)")
            if skipped_checked:
                parts.append(f"{skipped_checked} already checked")
            if skipped_header:
                parts.append(f"{skipped_header} header/nav skipped")
            if parts:
                self._log(f"   ↳ Internal links: {', '.join(parts)}")
        elif added:
            self._log(f"   ↳ Added {added} new internal links to crawl queue")

        ctx.first_page = False

        if to_validate:
            self._log(f"🔎 Validating {len(to_validate)} links not in crawl queue...")
            checked, broken, skipped = await self._check_links(
                ctx, checker, page_url, to_validate, "Connection failed or timeout"
            )
            summary = f"✅ Link validation complete: {checked} checked, {broken} broken"
            if skipped:
                summary += f", {skipped} skipped (already checked)"
            self._log(summary)

        external = [
            link for link in external
            if not link.is_header and not is_skipped_external_host(link.href, self.config.skip_domains)
        ]
        if external:
            self._log(f"🌐 Checking {len(external)} external links...")
            checked, broken, _ = await self._check_links(
                ctx, checker, page_url, [(link.href, link) for link in external],
                "Connection failed or timeout (external)",
            )
            self._log(f"✅ External links: {checked} checked, {broken} broken")

    async def _check_links(
        self,
        ctx: RunContext,
        checker: ExistenceChecker,
        page_url: str,
        targets: List[Tuple[str, LinkInfo]],
        unreachable_reason: str,
    ) -> Tuple[int, int, int]:
        """Existence-check link targets not checked before in this run.

        Returns:
            (checked, broken, skipped) counts
        """
        pending: List[Tuple[str, LinkInfo]] = []
        skipped = 0
        for url, link in targets:
            if url in ctx.checked_resources:
                skipped += 1
                continue
            ctx.checked_resources.add(url)
            pending.append((url, link))

        results = await checker.check_many(url for url, _ in pending)

        broken = 0
        for url, link in pending:
            result = results[url]
            if result.status >= 400:
                broken += 1
                self._report(ctx, BrokenLink(
                    url=url,
                    status_code=result.status,
                    found_on_page=page_url,
                    link_text=link.text,
                    element_context=link.context,
                ), f"   ↳ ❌ [{result.status}] {url}")
            elif result.unreachable:
                self._report(ctx, NavigationIssue(
                    url=url,
                    reason=unreachable_reason,
                    found_on_page=page_url,
                    link_text=link.text,
                    element_context=link.context,
                ), f"   ↳ ⚠️ [Timeout] {url}")
            else:
                self._log(f"   ↳ ✓ [{result.status}] OK {url}")

        return len(pending), broken, skipped

    async def _process_images(
        self,
        ctx: RunContext,
        checker: ExistenceChecker,
        page_url: str,
        images: List[ImageInfo],
    ) -> None:
        self._log(f"🖼️ Found {len(images)} images")

        candidates: List[Tuple[ImageInfo, str]] = []
        for image in images:
            src = image.src
            if not src or src in ctx.checked_resources:
                continue
            if src.endswith("#") or src.startswith(("data:", "blob:")) or not is_http_url(src):
                continue
            if canonicalize(src) == page_url:
                continue

            if not image.complete:
                candidates.append((image, "Image failed to load (incomplete)"))
            elif image.natural_width == 0 and not is_svg(src):
                candidates.append((image, "Image has zero width (failed to load)"))

        # Slow images look broken in the DOM; same-origin ones get a second opinion
        same_origin = [image.src for image, _ in candidates if is_same_origin(canonicalize(image.src), ctx.origin)]
        verified: Dict[str, ProbeResult] = await checker.check_many(same_origin) if same_origin else {}

        for image, reason in candidates:
            if image.src in ctx.checked_resources:
                continue
            probe = verified.get(image.src)
            if probe is not None and probe.ok:
                logger.debug(f"Image {image.src} exists despite DOM state: {reason}")
                continue

            ctx.checked_resources.add(image.src)
            self._report(ctx, BrokenImage(
                src=image.src,
                found_on_page=page_url,
                alt_text=image.alt,
                element_context=image.context,
                reason=reason,
            ), f"🖼️❌ Broken image: {image.src}")

    # =========================================================================
    # Page listeners
    # =========================================================================

    def _listeners(self, ctx: RunContext) -> BrowserListeners:
        return BrowserListeners(
            on_response=lambda response: self._on_response(ctx, response),
            on_request_failed=lambda failure: self._on_request_failed(ctx, failure),
            on_console=lambda message: self._on_console(ctx, message),
            on_page_error=lambda message: self._on_page_error(ctx, message),
        )

    def _hold(self, ctx: RunContext, url: str, push: Callable[[], None]) -> None:
        """Queue a listener link/image finding.

        With a selector the page may report resources from outside the scoped
        subtree, so the finding waits until the scoped links and images of the
        page are known (see ``_release_held``).
        """
        if ctx.selector:
            ctx.held.append((url, push))
        else:
            push()

    def _release_held(self, ctx: RunContext) -> None:
        """Report held findings the scoped extraction saw; log the others."""
        outside: Set[str] = set()
        while ctx.held:
            url, push = ctx.held.popleft()
            target = canonicalize(url)
            if target in ctx.registry or target in ctx.page_images:
                push()
            elif target not in outside:
                outside.add(target)
                # Still reportable from a page that links it inside the scope
                ctx.checked_resources.discard(url)
                ctx.inbox.append((None, f"↪️ Outside {ctx.selector}, not reported: {url} | Page: {ctx.current_page}"))

    def _push_referrer_links(self, ctx: RunContext, url: str, status: int, link_text: str, context: str) -> None:
        references = ctx.registry.references(url)
        if not references:
            ctx.inbox.append((BrokenLink(
                url=url,
                status_code=status,
                found_on_page=ctx.current_page,
                link_text=link_text,
                element_context=context,
            ), f"🔗❌ Broken resource ({status}): {url}"))
            return

        for ref in references:
            ctx.inbox.append((BrokenLink(
                url=url,
                status_code=status,
                found_on_page=ref.found_on_page,
                link_text=ref.link_text,
                element_context=ref.element_context,
            ), f"🔗❌ Broken resource ({status}): {url} | Linked from: {ref.found_on_page}"))

    def _on_response(self, ctx: RunContext, response: ResponseInfo) -> None:
        url = response.url
        rtype = response.resource_type
        if response.status < 400 or not is_same_origin(url, ctx.origin):
            return
        if url in ctx.checked_resources:
            return
        # Documents are reported by the crawl loop with proper referrers
        if rtype == "document" or rtype in IGNORED_RESOURCE_TYPES or is_svg(url):
            return

        ctx.checked_resources.add(url)
        kind = resource_kind(url, response.content_type)
        if kind == "document":
            return

        status = response.status
        if kind == "image" or rtype == "image":
            image = BrokenImage(
                src=url,
                found_on_page=ctx.current_page,
                alt_text=DETECTED_FROM_NETWORK,
                element_context=f"<{rtype}>",
                reason=f"HTTP {status} - Resource not found",
            )
            self._hold(ctx, url, lambda: ctx.inbox.append((image, f"🖼️❌ Broken image ({status}): {url}")))
        elif kind == "link" or rtype in ("fetch", "xhr"):
            self._hold(ctx, url, lambda: self._push_referrer_links(
                ctx, url, status, DETECTED_FROM_NETWORK, f"<{rtype}>"
            ))

    def _on_request_failed(self, ctx: RunContext, failure: RequestFailure) -> None:
        url = failure.url
        rtype = failure.resource_type
        if not is_same_origin(url, ctx.origin) or url in ctx.checked_resources:
            return
        if self.classifier.should_ignore_request_failure(failure.error_text):
            return
        if rtype == "document" or rtype in IGNORED_RESOURCE_TYPES or is_svg(url):
            return

        ctx.checked_resources.add(url)
        ctx.inbox.append((None, f"🚫 Request failed: {url} | Reason: {failure.error_text} | Page: {ctx.current_page}"))

        if rtype == "image" and "ERR_NAME_NOT_RESOLVED" in failure.error_text:
            image = BrokenImage(
                src=url,
                found_on_page=ctx.current_page,
                alt_text=DETECTED_FROM_NETWORK,
                element_context=f"<{rtype}>",
                reason=failure.error_text or "Request failed",
            )
            self._hold(ctx, url, lambda: ctx.inbox.append((image, f"🖼️❌ Broken image: {url}")))

    def _on_console(self, ctx: RunContext, message: ConsoleMessage) -> None:
        if message.type != "error":
            return
        text = message.text
        if self.classifier.should_ignore(text):
            return

        ctx.inbox.append((
            ConsoleError(message=text, found_on_page=ctx.current_page, type="error"),
            f"❌ Console error: {text} | Page: {ctx.current_page}",
        ))

        parsed = self.classifier.parse_status_from_console(text)
        if not parsed:
            return
        url, status = parsed
        if not is_same_origin(url, ctx.origin) or url in ctx.checked_resources or is_svg(url):
            return

        kind = resource_kind(url)
        # Other linked files are existence-checked by the crawl loop
        if kind != "image" and is_non_page_resource(url):
            return
        ctx.checked_resources.add(url)

        if kind == "image" and status == 404:
            image = BrokenImage(
                src=url,
                found_on_page=ctx.current_page,
                alt_text=DETECTED_FROM_CONSOLE,
                element_context=CONSOLE_CONTEXT,
                reason=f"HTTP {status} - From console error",
            )
            self._hold(ctx, url, lambda: ctx.inbox.append((image, f"🖼️❌ Broken image ({status}): {url}")))
        elif kind == "link":
            self._hold(ctx, url, lambda: self._push_referrer_links(
                ctx, url, status, DETECTED_FROM_CONSOLE, CONSOLE_CONTEXT
            ))

    def _on_page_error(self, ctx: RunContext, message: str) -> None:
        ctx.inbox.append((
            ConsoleError(message=message, found_on_page=ctx.current_page, type="js_error"),
            f"🔥 JS error: {message} | Page: {ctx.current_page}",
        ))
