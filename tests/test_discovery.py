"""Tests for the discovery engine."""

from unittest.mock import MagicMock

import httpx
import pytest

pytest_plugins = ('pytest_asyncio',)

from fakes import FakePage, FakeSession, link, sitemapindex, url, urlset
from siteaudit.config import AuditConfig
from siteaudit.discovery import DiscoveryEngine
from siteaudit.events import EventEmitter
from siteaudit.models import DiscoveryRequest
from siteaudit.sitemap_parser import SitemapParser


def sitemap_parser(documents):
    def handler(request):
        body = documents.get(str(request.url))
        if body is None:
            return httpx.Response(404)
        return httpx.Response(200, text=body)

    return SitemapParser(transport=httpx.MockTransport(handler))


class TestSitemapDiscovery:
    """Discovery from a sitemap never opens a browser."""

    @pytest.mark.asyncio
    async def test_index_counts(self, transport):
        """An index of 2 children x 3 pages plus the start URL gives 7."""
        documents = {
            url("/sitemap.xml"): sitemapindex(url("/s1.xml"), url("/s2.xml")),
            url("/s1.xml"): urlset(url("/a/1"), url("/a/2"), url("/a/3")),
            url("/s2.xml"): urlset(url("/b/1"), url("/b/2"), url("/b/3")),
        }
        session_factory = MagicMock()
        engine = DiscoveryEngine(
            EventEmitter(transport),
            session_factory=session_factory,
            sitemap_parser=sitemap_parser(documents),
        )

        result = await engine.run(DiscoveryRequest(start_url=url("/"), sitemap_url=url("/sitemap.xml")))

        assert result.total == 7
        assert result.from_sitemap == 6
        assert result.pages_scanned == 0
        assert result.links[0] == url("/")
        session_factory.assert_not_called()

        events = transport.drain()
        done = events[-1]
        assert done["type"] == "done"
        assert done["total"] == 7
        assert done["fromSitemap"] == 6
        assert done["links"] == result.links
        phases = [e["phase"] for e in events if e["type"] == "status"]
        assert phases[0] == "starting"
        assert "sitemap_done" in phases

    @pytest.mark.asyncio
    async def test_filters_foreign_and_resources(self, transport):
        """Other origins and files are not pages of this site."""
        documents = {
            url("/sitemap.xml"): urlset(
                url("/page"),
                url("/page#section"),
                url("/brochure.pdf"),
                "https://other.example.org/page",
            ),
        }
        engine = DiscoveryEngine(EventEmitter(transport), sitemap_parser=sitemap_parser(documents))

        result = await engine.run(DiscoveryRequest(start_url=url("/"), sitemap_url=url("/sitemap.xml")))

        assert result.links == [url("/"), url("/page")]
        assert result.from_sitemap == 1

    @pytest.mark.asyncio
    async def test_unreadable_sitemap_is_error(self, transport):
        """A sitemap that cannot be fetched ends the run with an error event."""
        engine = DiscoveryEngine(EventEmitter(transport), sitemap_parser=sitemap_parser({}))

        result = await engine.run(DiscoveryRequest(start_url=url("/"), sitemap_url=url("/sitemap.xml")))

        assert result is None
        events = transport.drain()
        assert events[-1]["type"] == "error"
        assert events[-1]["message"].startswith("Failed to parse sitemap")


class TestBrowserDiscovery:
    """Discovery by walking the site."""

    @pytest.fixture
    def site(self):
        return {
            url("/"): FakePage(links=[
                link("/a"),
                link("/b"),
                link("/a#details"),
                link("/files/report.pdf"),
                link("https://other.example.org/"),
            ]),
            url("/a"): FakePage(links=[link("/"), link("/b"), link("/a/deep")]),
            url("/b"): FakePage(),
            url("/a/deep"): FakePage(links=[link("/a")]),
        }

    @pytest.mark.asyncio
    async def test_walks_breadth_first_once(self, transport, site):
        """Every reachable page is visited exactly once."""
        session = FakeSession(site)
        engine = DiscoveryEngine(EventEmitter(transport), session_factory=lambda: session)

        result = await engine.run(DiscoveryRequest(start_url="https://example.com"))

        assert session.navigated == [url("/"), url("/a"), url("/b"), url("/a/deep")]
        assert result.links == [url("/"), url("/a"), url("/b"), url("/a/deep")]
        assert result.pages_scanned == 4
        assert result.from_pages == 3
        assert result.from_sitemap == 0
        assert not result.capped
        assert session.started and session.closed

    @pytest.mark.asyncio
    async def test_status_carries_current_url(self, transport, site):
        """Scanning status events name the page being scanned."""
        engine = DiscoveryEngine(EventEmitter(transport), session_factory=lambda: FakeSession(site))
        await engine.run(DiscoveryRequest(start_url=url("/")))

        scanning = [e for e in transport.drain() if e.get("currentUrl")]
        assert [e["currentUrl"] for e in scanning] == [url("/"), url("/a"), url("/b"), url("/a/deep")]
        assert all(e["phase"] == "scanning" for e in scanning)

    @pytest.mark.asyncio
    async def test_page_cap(self, transport, site):
        """Discovery stops at the configured page limit."""
        session = FakeSession(site)
        engine = DiscoveryEngine(
            EventEmitter(transport),
            AuditConfig(max_discovery_pages=2),
            session_factory=lambda: session,
        )

        result = await engine.run(DiscoveryRequest(start_url=url("/")))

        assert result.pages_scanned == 2
        assert result.capped
        assert len(session.navigated) == 2
        # Links found on scanned pages are still reported
        assert url("/a/deep") in result.links

    @pytest.mark.asyncio
    async def test_selector_is_passed_through(self, transport, site):
        """Only links inside the selector are considered."""
        session = FakeSession(site)
        engine = DiscoveryEngine(EventEmitter(transport), session_factory=lambda: session)

        await engine.run(DiscoveryRequest(start_url=url("/"), selector="main"))

        assert set(session.selectors) == {"main"}

    @pytest.mark.asyncio
    async def test_failed_navigation_is_skipped(self, transport):
        """A page that does not load contributes no links but stays discovered."""
        site = {
            url("/"): FakePage(links=[link("/down"), link("/ok")]),
            url("/down"): FakePage(error="net::ERR_CONNECTION_REFUSED"),
            url("/ok"): FakePage(),
        }
        session = FakeSession(site)
        engine = DiscoveryEngine(EventEmitter(transport), session_factory=lambda: session)

        result = await engine.run(DiscoveryRequest(start_url=url("/")))

        assert result.links == [url("/"), url("/down"), url("/ok")]
        assert result.pages_scanned == 3

    @pytest.mark.asyncio
    async def test_invalid_start_url(self, transport):
        """A non-http start URL is reported as an error."""
        session_factory = MagicMock()
        engine = DiscoveryEngine(EventEmitter(transport), session_factory=session_factory)

        assert await engine.run(DiscoveryRequest(start_url="example.com")) is None
        assert transport.drain()[-1]["type"] == "error"
        session_factory.assert_not_called()

    @pytest.mark.asyncio
    async def test_stops_when_consumer_leaves(self, transport, site):
        """A closed emitter stops the walk before the next page."""
        session = FakeSession(site)
        emitter = EventEmitter(transport)

        async def leave(page_url):
            if page_url == url("/a"):
                transport.disconnect()

        session.before_navigate = leave
        engine = DiscoveryEngine(emitter, session_factory=lambda: session)

        result = await engine.run(DiscoveryRequest(start_url=url("/")))

        assert result is None
        assert session.navigated == [url("/"), url("/a")]
        assert session.closed
