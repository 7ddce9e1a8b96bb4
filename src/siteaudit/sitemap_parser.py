"""Sitemap reader: fetches XML sitemaps and sitemap indexes and flattens them."""

import asyncio
import html
import logging
import re
from dataclasses import dataclass, field
from typing import Callable, List, Optional, Union
from xml.etree import ElementTree as ET

import httpx

from siteaudit.constants import (
    DEFAULT_USER_AGENT,
    SITEMAP_FETCH_BATCH_SIZE,
    SITEMAP_FETCH_TIMEOUT_SECONDS,
    SITEMAP_MAX_REDIRECTS,
)
from siteaudit.exceptions import FetchError, SitemapParseError

logger = logging.getLogger(__name__)

XmlInput = Union[str, bytes]

# Called after each batch of child sitemaps: (children done, children total, page urls so far)
ProgressCallback = Callable[[int, int, int], None]

_SITEMAP_BLOCK = re.compile(r'<sitemap(?:\s[^>]*)?>(.*?)</sitemap>', re.DOTALL | re.IGNORECASE)
_URL_BLOCK = re.compile(r'<url(?:\s[^>]*)?>(.*?)</url>', re.DOTALL | re.IGNORECASE)
_LOC = re.compile(r'<loc>(.*?)</loc>', re.DOTALL | re.IGNORECASE)
_CDATA = re.compile(r'^<!\[CDATA\[(.*)\]\]>$', re.DOTALL)

# Nested sitemap indexes are followed this many levels below the root
MAX_INDEX_DEPTH = 3


def _to_text(xml: XmlInput) -> str:
    if isinstance(xml, bytes):
        return xml.decode("utf-8", errors="replace")
    return xml


def _local_name(tag: str) -> str:
    return tag.split('}')[-1] if '}' in tag else tag


def _clean_loc(raw: str) -> str:
    value = raw.strip()
    match = _CDATA.match(value)
    if match:
        value = match.group(1).strip()
    return html.unescape(value)


def _parse_root(xml: XmlInput) -> ET.Element:
    """Parse sitemap XML strictly.

    Raises:
        SitemapParseError: If the document is not well-formed XML.
    """
    content = _to_text(xml).lstrip("\ufeff")
    content = re.sub(r'<!DOCTYPE[^>]*>', '', content)
    # Text is already decoded; the declaration would only contradict it
    content = re.sub(r'^\s*<\?xml[^>]*\?>', '', content)
    try:
        return ET.fromstring(content)
    except ET.ParseError as e:
        raise SitemapParseError(str(e)) from e


def _child_loc(element: ET.Element) -> Optional[str]:
    for child in element:
        if _local_name(child.tag) == 'loc' and child.text and child.text.strip():
            return _clean_loc(child.text)
    return None


def is_index(xml: XmlInput) -> bool:
    """True if the document is a sitemap index (a sitemap of sitemaps)."""
    text = _to_text(xml)
    return "<sitemapindex" in text or "<sitemap>" in text


def extract_child_sitemaps(xml: XmlInput) -> List[str]:
    """Child sitemap locations listed by a sitemap index."""
    try:
        root = _parse_root(xml)
    except SitemapParseError as e:
        logger.warning(f"Malformed sitemap index, using loose extraction: {e}")
        locs = []
        for block in _SITEMAP_BLOCK.findall(_to_text(xml)):
            match = _LOC.search(block)
            if match:
                locs.append(_clean_loc(match.group(1)))
        return locs

    locs = []
    for element in root.iter():
        if _local_name(element.tag) == 'sitemap':
            loc = _child_loc(element)
            if loc:
                locs.append(loc)
    return locs


def _loose_page_locs(text: str) -> List[str]:
    """Any ``<loc>`` that does not look like another sitemap."""
    urls = []
    for raw in _LOC.findall(text):
        loc = _clean_loc(raw)
        if loc and not loc.lower().endswith(".xml") and "sitemap" not in loc.lower():
            urls.append(loc)
    return urls


def extract_page_urls(xml: XmlInput) -> List[str]:
    """Page locations from a urlset, deduplicated in document order.

    When no ``<url>`` entries are found, falls back to every ``<loc>`` that
    is not itself a sitemap file.
    """
    text = _to_text(xml)
    try:
        root = _parse_root(xml)
        urls = []
        for element in root.iter():
            if _local_name(element.tag) == 'url':
                loc = _child_loc(element)
                if loc:
                    urls.append(loc)
    except SitemapParseError as e:
        logger.warning(f"Malformed sitemap, using loose extraction: {e}")
        urls = []
        for block in _URL_BLOCK.findall(text):
            match = _LOC.search(block)
            if match:
                urls.append(_clean_loc(match.group(1)))

    if not urls:
        urls = _loose_page_locs(text)

    return list(dict.fromkeys(urls))


@dataclass
class SitemapReadResult:
    """Flattened contents of a sitemap or sitemap index."""

    sitemap_url: str
    page_urls: List[str] = field(default_factory=list)
    was_index: bool = False
    child_sitemaps: List[str] = field(default_factory=list)
    failed_sitemaps: List[str] = field(default_factory=list)


class SitemapParser:
    """
    Fetch and flatten XML sitemaps.

    Supports:
    - Standard sitemap.xml files
    - Sitemap index files, children fetched in small concurrent batches
    - Self-signed certificates and up to 5 redirects
    """

    def __init__(
        self,
        batch_size: int = SITEMAP_FETCH_BATCH_SIZE,
        max_redirects: int = SITEMAP_MAX_REDIRECTS,
        timeout: float = SITEMAP_FETCH_TIMEOUT_SECONDS,
        user_agent: str = DEFAULT_USER_AGENT,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize the sitemap parser.

        Args:
            batch_size: Child sitemaps fetched concurrently
            max_redirects: Redirects followed before a fetch fails
            timeout: Per-request timeout in seconds
            user_agent: User-Agent header
            transport: Optional httpx transport (tests use httpx.MockTransport)
        """
        self.batch_size = max(1, batch_size)
        self.max_redirects = max_redirects
        self.timeout = timeout
        self.user_agent = user_agent
        self._transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            verify=False,
            follow_redirects=True,
            max_redirects=self.max_redirects,
            timeout=self.timeout,
            headers={
                "User-Agent": self.user_agent,
                "Accept": "application/xml, text/xml, */*",
            },
            transport=self._transport,
        )

    async def fetch(self, url: str, client: Optional[httpx.AsyncClient] = None) -> bytes:
        """Fetch a sitemap body.

        Raises:
            FetchError: On too many redirects, connection failure, timeout or
                an error status.
        """
        if client is None:
            async with self._client() as own_client:
                return await self.fetch(url, own_client)

        try:
            response = await client.get(url)
        except httpx.TooManyRedirects as e:
            raise FetchError(f"Too many redirects fetching {url}", url=url) from e
        except httpx.TimeoutException as e:
            raise FetchError(f"Timed out fetching {url}", url=url) from e
        except (httpx.HTTPError, ValueError) as e:
            raise FetchError(f"Failed to fetch {url}: {e}", url=url) from e

        if response.status_code >= 400:
            raise FetchError(f"HTTP {response.status_code} fetching {url}", url=url)
        return response.content

    async def read(
        self,
        sitemap_url: str,
        on_progress: Optional[ProgressCallback] = None,
    ) -> SitemapReadResult:
        """Fetch a sitemap (flat or index) and return every page URL in it.

        Child sitemap failures are logged and skipped.

        Raises:
            FetchError: If the root sitemap itself cannot be fetched.
        """
        result = SitemapReadResult(sitemap_url=sitemap_url)

        async with self._client() as client:
            logger.info(f"Fetching sitemap: {sitemap_url}")
            xml = await self.fetch(sitemap_url, client)

            if not is_index(xml):
                result.page_urls = extract_page_urls(xml)
                logger.info(f"Extracted {len(result.page_urls)} URLs from sitemap")
                return result

            result.was_index = True
            result.child_sitemaps = extract_child_sitemaps(xml)
            logger.info(f"Found sitemap index with {len(result.child_sitemaps)} child sitemaps")

            seen = set()
            await self._read_children(
                client, result.child_sitemaps, result, seen, depth=1, on_progress=on_progress
            )

        logger.info(f"Extracted {len(result.page_urls)} URLs from sitemap index")
        return result

    async def _read_children(
        self,
        client: httpx.AsyncClient,
        child_urls: List[str],
        result: SitemapReadResult,
        seen: set,
        depth: int,
        on_progress: Optional[ProgressCallback] = None,
    ) -> None:
        """Fetch child sitemaps in batches and merge their page URLs into ``result``."""
        known_pages = set(result.page_urls)
        nested: List[str] = []

        for i in range(0, len(child_urls), self.batch_size):
            batch = [u for u in child_urls[i:i + self.batch_size] if u not in seen]
            seen.update(batch)

            bodies = await asyncio.gather(
                *(self.fetch(u, client) for u in batch),
                return_exceptions=True,
            )

            for child_url, body in zip(batch, bodies):
                if isinstance(body, asyncio.CancelledError):
                    raise body
                if isinstance(body, Exception):
                    logger.warning(f"Skipping child sitemap {child_url}: {body}")
                    result.failed_sitemaps.append(child_url)
                    continue

                if is_index(body):
                    nested.extend(extract_child_sitemaps(body))
                    continue

                for page_url in extract_page_urls(body):
                    if page_url not in known_pages:
                        known_pages.add(page_url)
                        result.page_urls.append(page_url)

            if on_progress:
                on_progress(min(i + self.batch_size, len(child_urls)), len(child_urls), len(result.page_urls))

        if nested:
            if depth >= MAX_INDEX_DEPTH:
                logger.warning(f"Ignoring {len(nested)} sitemaps nested deeper than {MAX_INDEX_DEPTH} levels")
                return
            await self._read_children(client, nested, result, seen, depth + 1)
