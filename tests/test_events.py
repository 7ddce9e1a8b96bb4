"""Tests for event construction and delivery."""

import io
import json

import pytest

pytest_plugins = ('pytest_asyncio',)

from siteaudit.events import (
    CallbackTransport,
    EventEmitter,
    JsonLinesTransport,
    QueueTransport,
    crawl_done_event,
    finding_event,
    status_event,
)
from siteaudit.models import BrokenLink, ConsoleError, CrawlCounters


class TestEventConstructors:
    """Tests for the event shapes."""

    def test_status_event_current_url_optional(self):
        """currentUrl is only present while a page is being scanned."""
        event = status_event("sitemap", "Fetching", total=1, from_sitemap=0, pages_scanned=0)
        assert "currentUrl" not in event
        event = status_event("scanning", "Scanning", 3, 0, 2, current_url="https://example.com/a")
        assert event["currentUrl"] == "https://example.com/a"
        assert event["fromSitemap"] == 0
        assert event["pagesScanned"] == 2

    def test_finding_event_nests_data(self):
        """A console error's own type does not clobber the event type."""
        error = ConsoleError(message="boom", found_on_page="https://example.com/", type="js_error")
        event = finding_event(error, "🔥 JS error: boom")
        assert event["type"] == "console_error"
        assert event["message"] == "🔥 JS error: boom"
        assert event["data"]["type"] == "js_error"
        assert event["data"]["message"] == "boom"

    def test_crawl_done_event(self):
        """The terminal event carries counters and every finding."""
        counters = CrawlCounters(crawled=2, broken_links=1)
        finding = BrokenLink(
            url="https://example.com/x",
            status_code=404,
            found_on_page="https://example.com/",
            link_text="X",
            element_context="<main>",
        )
        event = crawl_done_event("done", counters, [finding], pages_visited=2)
        assert event["type"] == "done"
        assert event["crawled"] == 2
        assert event["brokenLinks"] == 1
        assert event["pagesVisited"] == 2
        assert event["findings"][0]["kind"] == "broken_link"
        assert event["findings"][0]["statusCode"] == 404
        json.dumps(event)


class TestEventEmitter:
    """Test cases for EventEmitter."""

    def test_send_delivers_in_order(self):
        """Events arrive in send order."""
        transport = QueueTransport()
        emitter = EventEmitter(transport)
        for i in range(3):
            assert emitter.send({"type": "log", "message": str(i)})
        assert [e["message"] for e in transport.drain()] == ["0", "1", "2"]
        assert emitter.sent == 3

    def test_send_after_close_dropped(self):
        """A closed emitter drops events without raising."""
        transport = QueueTransport()
        emitter = EventEmitter(transport)
        emitter.close()
        assert not emitter.send({"type": "log", "message": "late"})
        assert transport.drain() == []

    def test_close_is_idempotent(self):
        """The transport is closed once."""
        closes = []
        emitter = EventEmitter(CallbackTransport(lambda e: None, on_close=lambda: closes.append(1)))
        emitter.close()
        emitter.close()
        assert closes == [1]
        assert emitter.closed

    def test_disconnect_closes_emitter(self):
        """A consumer that went away stops further delivery."""
        transport = QueueTransport()
        emitter = EventEmitter(transport)
        emitter.send({"type": "log", "message": "first"})
        transport.disconnect()

        assert not emitter.send({"type": "log", "message": "second"})
        assert emitter.closed
        assert [e["message"] for e in transport.drain()] == ["first"]

    def test_callback_exception_is_disconnect(self):
        """A failing callback counts as the consumer going away."""
        def broken(event):
            raise RuntimeError("socket closed")

        emitter = EventEmitter(CallbackTransport(broken))
        assert not emitter.send({"type": "log", "message": "x"})
        assert emitter.closed

    @pytest.mark.asyncio
    async def test_queue_iteration_ends_on_close(self):
        """Async iteration stops at the close sentinel."""
        transport = QueueTransport()
        emitter = EventEmitter(transport)
        emitter.send({"type": "log", "message": "a"})
        emitter.send({"type": "done", "message": "b"})
        emitter.close()

        received = [event async for event in transport]
        assert [e["type"] for e in received] == ["log", "done"]


class TestJsonLinesTransport:
    """Tests for JsonLinesTransport."""

    def test_one_object_per_line(self):
        """Each event is a single JSON line, unicode kept as-is."""
        stream = io.StringIO()
        emitter = EventEmitter(JsonLinesTransport(stream))
        emitter.send({"type": "log", "message": "🚀 go"})
        emitter.send({"type": "done", "message": "end"})

        lines = stream.getvalue().splitlines()
        assert len(lines) == 2
        assert json.loads(lines[0])["message"] == "🚀 go"

    def test_closed_stream_is_disconnect(self):
        """Writing to a closed stream closes the emitter."""
        stream = io.StringIO()
        stream.close()
        emitter = EventEmitter(JsonLinesTransport(stream))
        assert not emitter.send({"type": "log", "message": "x"})
        assert emitter.closed
