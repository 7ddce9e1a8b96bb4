"""
Audit session coordinator.

:class:`AuditSession` owns the run phase state machine

    idle -> discovering -> preview -> crawling -> idle

and lets a caller narrow the discovered pages down before crawling them.
Each run streams its events through a fresh EventEmitter over the
session's transport; cancelling a run closes that emitter.
"""

import asyncio
import logging
import re
from typing import Awaitable, Dict, Iterable, List, Optional, Tuple, TypeVar

from siteaudit.config import AuditConfig
from siteaudit.crawl_engine import CheckerFactory, CrawlEngine, RunContext
from siteaudit.discovery import DiscoveryEngine, SessionFactory
from siteaudit.events import EventEmitter, Transport, error_event
from siteaudit.exceptions import InvalidPhaseTransition, PhaseError
from siteaudit.failure_classifier import FailureClassifier
from siteaudit.models import (
    PHASE_TRANSITIONS,
    CrawlRequest,
    DiscoveryRequest,
    DiscoveryResult,
    RunPhase,
)
from siteaudit.sitemap_parser import SitemapParser
from siteaudit.urls import canonicalize

logger = logging.getLogger(__name__)

T = TypeVar("T")


class AuditSession:
    """
    Discover, select, crawl.

    Usage:
        transport = QueueTransport()
        session = AuditSession(transport)
        await session.discover(DiscoveryRequest(start_url="https://example.com"))
        session.select_matching(exclude=r"/tag/")
        context = await session.crawl()
    """

    def __init__(
        self,
        transport: Transport,
        config: Optional[AuditConfig] = None,
        session_factory: Optional[SessionFactory] = None,
        checker_factory: Optional[CheckerFactory] = None,
        sitemap_parser: Optional[SitemapParser] = None,
        classifier: Optional[FailureClassifier] = None,
    ):
        self.transport = transport
        self.config = config or AuditConfig()
        self.session_factory = session_factory
        self.checker_factory = checker_factory
        self.sitemap_parser = sitemap_parser
        self.classifier = classifier

        self.phase = RunPhase.IDLE
        self.discovery_request: Optional[DiscoveryRequest] = None
        self.last_discovery: Optional[DiscoveryResult] = None
        self.last_crawl: Optional[RunContext] = None
        self.discovered: List[str] = []
        self._selected: Dict[str, None] = {}

        self._run_id = 0
        self._emitter: Optional[EventEmitter] = None
        self._cancel_event: Optional[asyncio.Event] = None
        self._task: Optional[asyncio.Future] = None

    # =========================================================================
    # Phase handling
    # =========================================================================

    def _transition(self, target: RunPhase) -> None:
        if target not in PHASE_TRANSITIONS[self.phase]:
            raise InvalidPhaseTransition(self.phase.value, target.value)
        logger.debug(f"Phase {self.phase.value} -> {target.value}")
        self.phase = target

    def _to_idle(self) -> None:
        if self.phase != RunPhase.IDLE:
            self._transition(RunPhase.IDLE)

    def _require_preview(self, action: str) -> None:
        if self.phase != RunPhase.PREVIEW:
            raise PhaseError(f"Cannot {action} while {self.phase.value}; discovery must finish first")

    @property
    def running(self) -> bool:
        return self.phase in (RunPhase.DISCOVERING, RunPhase.CRAWLING)

    def _begin_run(self) -> Tuple[int, EventEmitter, asyncio.Event]:
        self._run_id += 1
        self._emitter = EventEmitter(self.transport)
        self._cancel_event = asyncio.Event()
        return self._run_id, self._emitter, self._cancel_event

    async def _execute(self, run_id: int, emitter: EventEmitter, run: Awaitable[T]) -> T:
        self._task = asyncio.ensure_future(run)
        try:
            return await self._task
        except Exception as e:
            logger.exception("Run failed unexpectedly")
            emitter.send(error_event(f"Run failed: {e}"))
            if run_id == self._run_id:
                self._to_idle()
            raise
        except asyncio.CancelledError:
            # The awaiting task itself was cancelled
            if run_id == self._run_id:
                logger.info(f"Run interrupted while {self.phase.value}")
                self._to_idle()
            raise
        finally:
            emitter.close()
            if run_id == self._run_id:
                self._task = None

    # =========================================================================
    # Operations
    # =========================================================================

    async def discover(self, request: DiscoveryRequest) -> Optional[DiscoveryResult]:
        """Run discovery and move to preview with every discovered page selected.

        A discovery already in progress is cancelled first.

        Returns:
            The discovery result, or None if the run failed or was cancelled.
        """
        if self.phase == RunPhase.DISCOVERING:
            logger.info("New discovery requested; cancelling the one in progress")
            await self.cancel()
        self._transition(RunPhase.DISCOVERING)

        run_id, emitter, cancel_event = self._begin_run()
        engine = DiscoveryEngine(
            emitter,
            self.config,
            session_factory=self.session_factory,
            sitemap_parser=self.sitemap_parser,
            cancel_event=cancel_event,
        )
        result = await self._execute(run_id, emitter, engine.run(request))

        if run_id != self._run_id:
            return None
        if result is None:
            self._to_idle()
            return None

        self.discovery_request = request
        self.last_discovery = result
        self.discovered = list(result.links)
        self._selected = dict.fromkeys(self.discovered)
        self._transition(RunPhase.PREVIEW)
        logger.info(f"Discovery finished with {result.total} pages")
        return result

    @property
    def selected(self) -> List[str]:
        """Selected pages in discovery order."""
        return list(self._selected)

    def select(self, urls: Optional[Iterable[str]] = None) -> int:
        """Add pages to the selection; None selects everything discovered.

        URLs that were not discovered are ignored.

        Returns:
            Number of pages now selected.
        """
        self._require_preview("change the selection")
        if urls is None:
            self._selected = dict.fromkeys(self.discovered)
            return len(self._selected)

        wanted = {canonicalize(u) for u in urls}
        self._selected = dict.fromkeys(u for u in self.discovered if u in wanted or u in self._selected)
        return len(self._selected)

    def deselect(self, urls: Optional[Iterable[str]] = None) -> int:
        """Remove pages from the selection; None clears it."""
        self._require_preview("change the selection")
        if urls is None:
            self._selected = {}
            return 0

        unwanted = {canonicalize(u) for u in urls}
        for url in unwanted:
            self._selected.pop(url, None)
        return len(self._selected)

    def select_matching(self, include: Optional[str] = None, exclude: Optional[str] = None) -> List[str]:
        """Replace the selection with discovered pages matching ``include`` and not ``exclude``.

        Args:
            include: Regex a URL must match (searched anywhere in the URL)
            exclude: Regex that removes a URL

        Raises:
            re.error: If a pattern is not a valid regular expression.
        """
        self._require_preview("change the selection")
        include_re = re.compile(include) if include else None
        exclude_re = re.compile(exclude) if exclude else None

        self._selected = dict.fromkeys(
            url for url in self.discovered
            if (include_re is None or include_re.search(url))
            and not (exclude_re and exclude_re.search(url))
        )
        return self.selected

    async def crawl(self, request: Optional[CrawlRequest] = None) -> Optional[RunContext]:
        """Crawl the selection, or run ``request`` directly from idle.

        Without a request the session must be in preview: the selection is
        crawled in selective mode with every discovered page treated as
        already known.

        Returns:
            The run context (check ``cancelled``), or None on a fatal error.
        """
        if request is None:
            self._require_preview("crawl the selection")
            if not self._selected:
                raise PhaseError("No pages selected")
            discovery = self.discovery_request
            request = CrawlRequest(
                start_url=discovery.start_url,
                sitemap_url=discovery.sitemap_url,
                selector=discovery.selector,
                selected_urls=self.selected,
                all_discovered_urls=list(self.discovered),
            )
        self._transition(RunPhase.CRAWLING)

        run_id, emitter, cancel_event = self._begin_run()
        engine = CrawlEngine(
            emitter,
            self.config,
            session_factory=self.session_factory,
            checker_factory=self.checker_factory,
            sitemap_parser=self.sitemap_parser,
            classifier=self.classifier,
            cancel_event=cancel_event,
        )
        context = await self._execute(run_id, emitter, engine.run(request))

        if run_id == self._run_id:
            self.last_crawl = context
            self._to_idle()
        return context

    async def cancel(self) -> None:
        """Stop the active run, if any, and return to idle.

        The run notices before its next page; this waits until it has
        finished and its browser session is closed.
        """
        if self._cancel_event:
            self._cancel_event.set()
        if self._emitter:
            self._emitter.close()

        # Supersede the active run so it leaves the phase alone when it returns
        self._run_id += 1
        task, self._task = self._task, None
        if task is not None and not task.done():
            await asyncio.wait([task])

        if self.phase != RunPhase.IDLE:
            logger.info(f"Cancelled while {self.phase.value}")
        self._to_idle()
