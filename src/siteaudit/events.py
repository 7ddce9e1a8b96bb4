"""Structured progress/result events and the emitter that delivers them.

An :class:`EventEmitter` wraps exactly one outbound transport. Delivery is
ordered and best-effort: once the emitter is closed, or the transport reports
that the consumer went away, further events are dropped without retry.
"""

import asyncio
import json
import logging
from typing import Any, AsyncIterator, Callable, Dict, Iterable, Optional, TextIO

from siteaudit.models import CrawlCounters, DiscoveryResult, Finding

logger = logging.getLogger(__name__)

Event = Dict[str, Any]


# =============================================================================
# Event Constructors
# =============================================================================

def status_event(
    phase: str,
    message: str,
    total: int,
    from_sitemap: int,
    pages_scanned: int,
    current_url: Optional[str] = None,
) -> Event:
    """Discovery progress."""
    event = {
        "type": "status",
        "phase": phase,
        "message": message,
        "total": total,
        "fromSitemap": from_sitemap,
        "pagesScanned": pages_scanned,
    }
    if current_url:
        event["currentUrl"] = current_url
    return event


def discovery_done_event(result: DiscoveryResult, message: str) -> Event:
    return {
        "type": "done",
        "message": message,
        "links": list(result.links),
        "total": result.total,
        "fromSitemap": result.from_sitemap,
        "fromPages": result.from_pages,
        "pagesScanned": result.pages_scanned,
    }


def log_event(message: str, level: str = "info", current_url: Optional[str] = None) -> Event:
    """Free-text crawl progress. ``currentUrl`` is set when a page visit starts."""
    event = {"type": "log", "message": message, "level": level}
    if current_url:
        event["currentUrl"] = current_url
    return event


def finding_event(finding: Finding, message: Optional[str] = None) -> Event:
    """A finding as a typed event.

    The finding's own fields go under ``data``: a console error has its own
    ``type`` and ``message`` that would otherwise clash with the event's.
    """
    return {"type": finding.kind, "message": message or "", "data": finding.to_dict()}


def finding_record(finding: Finding) -> Dict[str, Any]:
    """Flat form used in the crawl summary, discriminated by ``kind``."""
    record = {"kind": finding.kind}
    record.update(finding.to_dict())
    return record


def crawl_done_event(
    message: str,
    counters: CrawlCounters,
    findings: Iterable[Finding] = (),
    pages_visited: int = 0,
) -> Event:
    event = {"type": "done", "message": message, "pagesVisited": pages_visited}
    event.update(counters.to_dict())
    event["findings"] = [finding_record(f) for f in findings]
    return event


def error_event(message: str) -> Event:
    return {"type": "error", "message": message}


# =============================================================================
# Transports
# =============================================================================

class TransportClosed(Exception):
    """Raised by a transport whose consumer has gone away."""


class Transport:
    """Outbound channel to a single consumer."""

    def write(self, event: Event) -> None:
        raise NotImplementedError

    def close(self) -> None:
        pass


class QueueTransport(Transport):
    """Delivers events through an unbounded ``asyncio.Queue``.

    Iterate with ``async for event in transport`` until the stream is closed.
    Calling :meth:`disconnect` simulates the consumer going away.
    """

    _SENTINEL = object()

    def __init__(self):
        self.queue: asyncio.Queue = asyncio.Queue()
        self._disconnected = False

    def write(self, event: Event) -> None:
        if self._disconnected:
            raise TransportClosed("consumer disconnected")
        self.queue.put_nowait(event)

    def close(self) -> None:
        self.queue.put_nowait(self._SENTINEL)

    def disconnect(self) -> None:
        self._disconnected = True

    def drain(self) -> list:
        """Return all events queued so far without waiting."""
        events = []
        while not self.queue.empty():
            item = self.queue.get_nowait()
            if item is not self._SENTINEL:
                events.append(item)
        return events

    async def __aiter__(self) -> AsyncIterator[Event]:
        while True:
            item = await self.queue.get()
            if item is self._SENTINEL:
                return
            yield item


class JsonLinesTransport(Transport):
    """Writes one JSON object per line to a text stream."""

    def __init__(self, stream: TextIO):
        self.stream = stream

    def write(self, event: Event) -> None:
        try:
            self.stream.write(json.dumps(event, ensure_ascii=False) + "\n")
            self.stream.flush()
        except (BrokenPipeError, ValueError) as e:
            raise TransportClosed(str(e)) from e


class CallbackTransport(Transport):
    """Hands each event to a callable; any exception from it counts as a disconnect."""

    def __init__(self, callback: Callable[[Event], None], on_close: Optional[Callable[[], None]] = None):
        self.callback = callback
        self.on_close = on_close

    def write(self, event: Event) -> None:
        try:
            self.callback(event)
        except Exception as e:
            raise TransportClosed(str(e)) from e

    def close(self) -> None:
        if self.on_close:
            self.on_close()


# =============================================================================
# Emitter
# =============================================================================

class EventEmitter:
    """Ordered, best-effort event delivery to one consumer."""

    def __init__(self, transport: Transport):
        self._transport = transport
        self._closed = False
        self.sent = 0

    @property
    def closed(self) -> bool:
        return self._closed

    def send(self, event: Event) -> bool:
        """Deliver an event.

        Returns:
            True if the transport accepted the event, False if it was dropped.
        """
        if self._closed:
            return False
        try:
            self._transport.write(event)
        except TransportClosed as e:
            logger.debug(f"Consumer disconnected, dropping further events: {e}")
            self._closed = True
            return False
        self.sent += 1
        return True

    def close(self) -> None:
        """Close the stream. Safe to call more than once."""
        if self._closed:
            return
        self._closed = True
        try:
            self._transport.close()
        except TransportClosed:
            pass
