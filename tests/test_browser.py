"""Tests for the Playwright session adapter (no browser is launched)."""

from unittest.mock import AsyncMock, MagicMock

import pytest
from playwright.async_api import Error as PlaywrightError
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

pytest_plugins = ('pytest_asyncio',)

from siteaudit.browser import BrowserListeners, PlaywrightSession
from siteaudit.browser_config import BrowserConfig
from siteaudit.constants import NO_ALT_TEXT, NO_LINK_TEXT
from siteaudit.exceptions import NavigationError


def session_with_page(**page_attrs):
    session = PlaywrightSession(BrowserConfig(wait_until="load"))
    page = MagicMock()
    page.url = "https://example.com/"
    for name, value in page_attrs.items():
        setattr(page, name, value)
    session._page = page
    return session, page


class TestNavigate:
    """Test cases for PlaywrightSession.navigate()."""

    @pytest.mark.asyncio
    async def test_status_returned(self):
        """The main response status is reported."""
        session, page = session_with_page(goto=AsyncMock(return_value=MagicMock(status=404)))

        result = await session.navigate("https://example.com/x", timeout=15)

        assert result.status == 404
        assert not result.failed
        page.goto.assert_awaited_once_with("https://example.com/x", wait_until="load", timeout=15000)

    @pytest.mark.asyncio
    async def test_timeout_is_a_failed_result(self):
        """Timeouts do not raise."""
        session, _ = session_with_page(goto=AsyncMock(side_effect=PlaywrightTimeoutError("Timeout 15000ms exceeded")))

        result = await session.navigate("https://example.com/slow", timeout=15)

        assert result.failed
        assert result.error.startswith("Navigation timeout after 15s")

    @pytest.mark.asyncio
    async def test_network_error_is_a_failed_result(self):
        """DNS and connection errors carry the browser's reason."""
        session, _ = session_with_page(goto=AsyncMock(side_effect=PlaywrightError("net::ERR_NAME_NOT_RESOLVED")))

        result = await session.navigate("https://nowhere.invalid/", timeout=15)

        assert result.error == "net::ERR_NAME_NOT_RESOLVED"

    @pytest.mark.asyncio
    async def test_not_started(self):
        """Navigating before start is a programming error."""
        with pytest.raises(RuntimeError):
            await PlaywrightSession().navigate("https://example.com/", timeout=1)


class TestExtraction:
    """DOM extraction through eval_on_selector_all."""

    @pytest.mark.asyncio
    async def test_links_are_scoped_and_mapped(self):
        """Rows become LinkInfo; the selector scopes the anchors."""
        rows = [
            {"href": "https://example.com/a", "text": "A", "context": "<nav>", "isHeader": True},
            {"href": "https://example.com/b", "text": "", "context": "", "isHeader": False},
        ]
        session, page = session_with_page(eval_on_selector_all=AsyncMock(return_value=rows))

        links = await session.extract_links("main, .content")

        assert page.eval_on_selector_all.await_args.args[0] == "main a[href], .content a[href]"
        assert links[0].is_header
        assert links[1].text == NO_LINK_TEXT
        assert links[1].context == "<body>"

    @pytest.mark.asyncio
    async def test_images_mapped(self):
        """Load signals are carried over."""
        rows = [{"src": "https://example.com/a.png", "alt": "", "context": "<figure>", "naturalWidth": 0, "complete": False}]
        session, page = session_with_page(eval_on_selector_all=AsyncMock(return_value=rows))

        images = await session.extract_images()

        assert page.eval_on_selector_all.await_args.args[0] == "img"
        assert images[0].alt == NO_ALT_TEXT
        assert images[0].natural_width == 0
        assert not images[0].complete

    @pytest.mark.asyncio
    async def test_bad_selector_matches_nothing(self):
        """An invalid user selector yields no elements."""
        error = PlaywrightError("SyntaxError: '##' is not a valid selector")
        session, _ = session_with_page(eval_on_selector_all=AsyncMock(side_effect=error))

        assert await session.extract_links("##") == []

    @pytest.mark.asyncio
    async def test_evaluation_failure_raises_navigation_error(self):
        """A page that went away mid-evaluation is a navigation failure."""
        error = PlaywrightError("Execution context was destroyed")
        session, _ = session_with_page(eval_on_selector_all=AsyncMock(side_effect=error))

        with pytest.raises(NavigationError):
            await session.extract_images()


class TestEventAdapters:
    """Playwright events are converted and forwarded."""

    def test_forwarding(self):
        """Each page event reaches its listener as a contract type."""
        session = PlaywrightSession()
        received = []
        session.set_listeners(BrowserListeners(
            on_response=received.append,
            on_request_failed=received.append,
            on_console=received.append,
            on_page_error=received.append,
        ))

        response = MagicMock(url="https://example.com/a.png", status=404, headers={"content-type": "image/png"})
        response.request.resource_type = "image"
        session._handle_response(response)
        session._handle_request_failed(MagicMock(
            url="https://example.com/x", failure="net::ERR_FAILED", resource_type="fetch"
        ))
        session._handle_console(MagicMock(type="error", text="boom"))
        session._handle_page_error(PlaywrightError("ReferenceError: y"))

        assert received[0].status == 404
        assert received[0].resource_type == "image"
        assert received[0].content_type == "image/png"
        assert received[1].error_text == "net::ERR_FAILED"
        assert received[2].text == "boom"
        assert received[3] == "ReferenceError: y"

    def test_missing_listener_is_ignored(self):
        """Events without a listener are dropped."""
        session = PlaywrightSession()
        session._handle_console(MagicMock(type="error", text="boom"))
