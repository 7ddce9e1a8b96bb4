"""
Browser automation for discovery and crawl runs.

This module defines the small contract the engines need from a headless
browser (:class:`BrowserSession`) and its Playwright implementation. A run
owns exactly one session and drives it sequentially:

    async with PlaywrightSession(config) as session:
        result = await session.navigate("https://example.com", timeout=30)
        links = await session.extract_links(".main")
"""
import asyncio
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Callable, List, Optional

from playwright.async_api import Error as PlaywrightError
from playwright.async_api import TimeoutError as PlaywrightTimeoutError
from playwright.async_api import async_playwright

from siteaudit.browser_config import BrowserConfig, DEFAULT_CONFIG
from siteaudit.constants import NO_ALT_TEXT, NO_LINK_TEXT
from siteaudit.exceptions import BrowserLaunchError, NavigationError
from siteaudit.urls import build_scoped_selector

logger = logging.getLogger(__name__)


# =============================================================================
# Contract Types
# =============================================================================

@dataclass
class NavigationResult:
    """Outcome of a navigation. Exactly one of ``status``/``error`` is meaningful."""

    url: str
    status: Optional[int] = None
    error: Optional[str] = None
    final_url: Optional[str] = None

    @property
    def failed(self) -> bool:
        return self.error is not None


@dataclass
class LinkInfo:
    """An anchor in the rendered DOM."""

    href: str
    text: str = NO_LINK_TEXT
    context: str = "<body>"
    is_header: bool = False


@dataclass
class ImageInfo:
    """An image in the rendered DOM with its load signals."""

    src: str
    alt: str = NO_ALT_TEXT
    context: str = "<body>"
    natural_width: int = 0
    complete: bool = True


@dataclass
class ResponseInfo:
    """A sub-resource response observed by the page."""

    url: str
    status: int
    resource_type: str
    content_type: str = ""


@dataclass
class RequestFailure:
    """A sub-resource request that never got a response."""

    url: str
    error_text: str
    resource_type: str


@dataclass
class ConsoleMessage:
    type: str
    text: str


@dataclass
class BrowserListeners:
    """Callbacks for asynchronous page events. Any of them may be None."""

    on_response: Optional[Callable[[ResponseInfo], None]] = None
    on_request_failed: Optional[Callable[[RequestFailure], None]] = None
    on_console: Optional[Callable[[ConsoleMessage], None]] = None
    on_page_error: Optional[Callable[[str], None]] = None


class BrowserSession(ABC):
    """What discovery and crawl runs require from a browser."""

    async def __aenter__(self) -> "BrowserSession":
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    @abstractmethod
    async def start(self) -> None:
        """Launch the browser.

        Raises:
            BrowserLaunchError: If the browser cannot be started.
        """

    @abstractmethod
    async def close(self) -> None:
        """Tear the session down. Safe to call more than once."""

    @abstractmethod
    async def navigate(self, url: str, timeout: float) -> NavigationResult:
        """Load ``url`` and report its HTTP status, or the failure reason."""

    @abstractmethod
    async def extract_links(self, selector: Optional[str] = None) -> List[LinkInfo]:
        """All anchors, optionally only those inside ``selector``."""

    @abstractmethod
    async def extract_images(self, selector: Optional[str] = None) -> List[ImageInfo]:
        """All images, optionally only those inside ``selector``."""

    @abstractmethod
    def set_listeners(self, listeners: BrowserListeners) -> None:
        """Subscribe to sub-resource, console and script error events."""

    async def settle(self, seconds: float) -> None:
        """Give dynamic content time to render."""
        if seconds > 0:
            await asyncio.sleep(seconds)


# =============================================================================
# DOM Extraction Scripts
# =============================================================================

LINKS_SCRIPT = """
(anchors) => anchors.map((anchor) => {
    const parent = anchor.closest("nav, header, footer, article, section, aside, main");
    const parentTag = parent ? parent.tagName.toLowerCase() : "body";
    const parentClass = parent && typeof parent.className === "string" && parent.className
        ? "." + parent.className.split(" ").filter(Boolean).slice(0, 2).join(".")
        : "";
    const text = (anchor.textContent || "").trim();
    return {
        href: anchor.href,
        text: text || "%s",
        context: "<" + parentTag + parentClass + ">",
        isHeader: anchor.closest("header, nav") !== null,
    };
})
""" % NO_LINK_TEXT

IMAGES_SCRIPT = """
(images) => images.map((image) => {
    const parent = image.closest("figure, article, section, header, footer, aside, main, div");
    const parentTag = parent ? parent.tagName.toLowerCase() : "body";
    const parentClass = parent && typeof parent.className === "string" && parent.className
        ? "." + parent.className.split(" ").filter(Boolean).slice(0, 2).join(".")
        : "";
    return {
        src: image.src,
        alt: image.alt || "%s",
        context: "<" + parentTag + parentClass + ">",
        naturalWidth: image.naturalWidth,
        complete: image.complete,
    };
})
""" % NO_ALT_TEXT


# =============================================================================
# Playwright Implementation
# =============================================================================

class PlaywrightSession(BrowserSession):
    """
    Playwright-backed browser session.

    One browser, one context, one page for the lifetime of a run. Page
    events are converted into the contract types and forwarded to the
    listeners registered with :meth:`set_listeners`.
    """

    def __init__(self, config: Optional[BrowserConfig] = None):
        """
        Initialize the session.

        Args:
            config: BrowserConfig instance; DEFAULT_CONFIG when omitted
        """
        self._config = config or DEFAULT_CONFIG
        self._playwright = None
        self._browser = None
        self._context = None
        self._page = None
        self._listeners = BrowserListeners()

        logger.debug(f"PlaywrightSession initialized with config: {self._config}")

    async def start(self) -> None:
        logger.info(f"Launching {self._config.browser_type} browser (headless={self._config.headless})")
        try:
            self._playwright = await async_playwright().start()
            launcher = getattr(self._playwright, self._config.browser_type)
            self._browser = await launcher.launch(**self._config.launch_options())
            self._context = await self._browser.new_context(**self._config.context_options())
            self._page = await self._context.new_page()
        except PlaywrightError as e:
            await self.close()
            raise BrowserLaunchError(f"Browser launch failed: {e}") from e

        self._page.on("response", self._handle_response)
        self._page.on("requestfailed", self._handle_request_failed)
        self._page.on("console", self._handle_console)
        self._page.on("pageerror", self._handle_page_error)
        logger.info("Browser launched successfully")

    async def close(self) -> None:
        for name in ("_context", "_browser"):
            resource = getattr(self, name)
            if resource is None:
                continue
            setattr(self, name, None)
            try:
                await resource.close()
            except PlaywrightError as e:
                logger.debug(f"Ignoring error while closing {name.strip('_')}: {e}")
        self._page = None

        if self._playwright:
            playwright, self._playwright = self._playwright, None
            try:
                await playwright.stop()
            except PlaywrightError as e:
                logger.debug(f"Ignoring error while stopping playwright: {e}")
            logger.info("Browser closed")

    def _require_page(self):
        if self._page is None:
            raise RuntimeError(
                "Browser is not running. Use PlaywrightSession as an async context manager: "
                "async with PlaywrightSession(config) as session:"
            )
        return self._page

    async def navigate(self, url: str, timeout: float) -> NavigationResult:
        page = self._require_page()
        try:
            response = await page.goto(
                url,
                wait_until=self._config.wait_until,
                timeout=timeout * 1000,  # Playwright uses milliseconds
            )
        except PlaywrightTimeoutError as e:
            return NavigationResult(url=url, error=f"Navigation timeout after {timeout:g}s: {e.message}")
        except PlaywrightError as e:
            return NavigationResult(url=url, error=e.message or str(e))

        status = response.status if response else None
        return NavigationResult(url=url, status=status, final_url=page.url)

    async def _eval_all(self, selector: str, script: str) -> list:
        page = self._require_page()
        try:
            return await page.eval_on_selector_all(selector, script)
        except PlaywrightError as e:
            # An invalid scope selector matches nothing rather than failing the page
            if "selector" in (e.message or "").lower():
                logger.warning(f"Selector '{selector}' rejected by browser: {e.message}")
                return []
            raise NavigationError(f"DOM evaluation failed: {e.message}", url=page.url) from e

    async def extract_links(self, selector: Optional[str] = None) -> List[LinkInfo]:
        rows = await self._eval_all(build_scoped_selector(selector, "a[href]"), LINKS_SCRIPT)
        return [
            LinkInfo(
                href=row.get("href") or "",
                text=row.get("text") or NO_LINK_TEXT,
                context=row.get("context") or "<body>",
                is_header=bool(row.get("isHeader")),
            )
            for row in rows
        ]

    async def extract_images(self, selector: Optional[str] = None) -> List[ImageInfo]:
        rows = await self._eval_all(build_scoped_selector(selector, "img"), IMAGES_SCRIPT)
        return [
            ImageInfo(
                src=row.get("src") or "",
                alt=row.get("alt") or NO_ALT_TEXT,
                context=row.get("context") or "<body>",
                natural_width=int(row.get("naturalWidth") or 0),
                complete=bool(row.get("complete")),
            )
            for row in rows
        ]

    def set_listeners(self, listeners: BrowserListeners) -> None:
        self._listeners = listeners

    # --- Playwright event adapters ---

    def _handle_response(self, response) -> None:
        if not self._listeners.on_response:
            return
        self._listeners.on_response(ResponseInfo(
            url=response.url,
            status=response.status,
            resource_type=response.request.resource_type,
            content_type=response.headers.get("content-type", ""),
        ))

    def _handle_request_failed(self, request) -> None:
        if not self._listeners.on_request_failed:
            return
        self._listeners.on_request_failed(RequestFailure(
            url=request.url,
            error_text=request.failure or "",
            resource_type=request.resource_type,
        ))

    def _handle_console(self, message) -> None:
        if not self._listeners.on_console:
            return
        self._listeners.on_console(ConsoleMessage(type=message.type, text=message.text))

    def _handle_page_error(self, error) -> None:
        if not self._listeners.on_page_error:
            return
        self._listeners.on_page_error(getattr(error, "message", None) or str(error))
