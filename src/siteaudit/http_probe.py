"""Lightweight existence checks for links and resources that are not rendered."""

import asyncio
import logging
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional

import httpx

from siteaudit.constants import (
    DEFAULT_PROBE_CONCURRENCY,
    DEFAULT_PROBE_TIMEOUT_SECONDS,
    DEFAULT_USER_AGENT,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ProbeResult:
    """Status of an existence check. ``status`` is 0 when no response arrived."""

    status: int
    ok: bool

    @property
    def unreachable(self) -> bool:
        return self.status == 0


class ExistenceChecker:
    """Issues HEAD requests with httpx, tolerating self-signed certificates.

    Use as an async context manager so the connection pool is closed:

        async with ExistenceChecker() as checker:
            result = await checker.head_check("https://example.com/file.pdf")
    """

    def __init__(
        self,
        timeout: float = DEFAULT_PROBE_TIMEOUT_SECONDS,
        user_agent: str = DEFAULT_USER_AGENT,
        concurrency: int = DEFAULT_PROBE_CONCURRENCY,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.timeout = timeout
        self.user_agent = user_agent
        self.concurrency = max(1, concurrency)
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    async def __aenter__(self) -> "ExistenceChecker":
        self._client = httpx.AsyncClient(
            verify=False,
            follow_redirects=False,
            headers={"User-Agent": self.user_agent},
            transport=self._transport,
        )
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.aclose()

    async def aclose(self) -> None:
        if self._client:
            await self._client.aclose()
            self._client = None

    async def head_check(self, url: str, timeout: Optional[float] = None) -> ProbeResult:
        """Check that ``url`` exists without downloading it.

        Redirects are not followed; a 3xx answer counts as existing. A server
        that rejects HEAD with 405 is asked again with a streamed GET. Never
        raises: connection failures and timeouts yield ``ProbeResult(0, False)``.
        """
        if self._client is None:
            raise RuntimeError(
                "ExistenceChecker is not open. Use it as an async context manager: "
                "async with ExistenceChecker() as checker:"
            )

        request_timeout = httpx.Timeout(timeout if timeout is not None else self.timeout)
        try:
            response = await self._client.head(url, timeout=request_timeout)
            status = response.status_code
            if status == 405:
                async with self._client.stream("GET", url, timeout=request_timeout) as streamed:
                    status = streamed.status_code
        except httpx.TimeoutException:
            logger.debug(f"Existence check timed out: {url}")
            return ProbeResult(status=0, ok=False)
        except (httpx.HTTPError, ValueError) as e:
            logger.debug(f"Existence check failed for {url}: {e}")
            return ProbeResult(status=0, ok=False)

        return ProbeResult(status=status, ok=status < 400)

    async def check_many(self, urls: Iterable[str]) -> Dict[str, ProbeResult]:
        """Check several URLs, at most ``concurrency`` at a time.

        Returns:
            Mapping of URL to result, in input order.
        """
        pending: List[str] = list(dict.fromkeys(urls))
        results: Dict[str, ProbeResult] = {}

        for i in range(0, len(pending), self.concurrency):
            batch = pending[i:i + self.concurrency]
            outcomes = await asyncio.gather(*(self.head_check(url) for url in batch))
            results.update(zip(batch, outcomes))

        return results
