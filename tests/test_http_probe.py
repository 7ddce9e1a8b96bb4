"""Tests for HEAD existence checks."""

import httpx
import pytest

pytest_plugins = ('pytest_asyncio',)

from siteaudit.http_probe import ExistenceChecker


def checker_with(handler, **kwargs):
    return ExistenceChecker(transport=httpx.MockTransport(handler), **kwargs)


class TestExistenceChecker:
    """Test cases for ExistenceChecker."""

    @pytest.mark.asyncio
    async def test_head_ok(self):
        """A 200 HEAD is ok."""
        methods = []

        def handler(request):
            methods.append(request.method)
            return httpx.Response(200)

        async with checker_with(handler) as checker:
            result = await checker.head_check("https://example.com/file.pdf")

        assert result.status == 200
        assert result.ok
        assert methods == ["HEAD"]

    @pytest.mark.asyncio
    async def test_error_status(self):
        """4xx is reported with its status."""
        async with checker_with(lambda request: httpx.Response(404)) as checker:
            result = await checker.head_check("https://example.com/missing.pdf")

        assert result.status == 404
        assert not result.ok
        assert not result.unreachable

    @pytest.mark.asyncio
    async def test_redirect_counts_as_existing(self):
        """Redirects are not followed."""
        handler = lambda request: httpx.Response(301, headers={"Location": "https://example.com/new"})
        async with checker_with(handler) as checker:
            result = await checker.head_check("https://example.com/old")

        assert result.status == 301
        assert result.ok

    @pytest.mark.asyncio
    async def test_head_not_allowed_falls_back_to_get(self):
        """A 405 HEAD is retried as GET."""
        def handler(request):
            if request.method == "HEAD":
                return httpx.Response(405)
            return httpx.Response(200, content=b"body")

        async with checker_with(handler) as checker:
            result = await checker.head_check("https://example.com/doc")

        assert result.status == 200
        assert result.ok

    @pytest.mark.asyncio
    async def test_connection_error_is_unreachable(self):
        """Network failures never raise."""
        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        async with checker_with(handler) as checker:
            result = await checker.head_check("https://example.com/")

        assert result.status == 0
        assert result.unreachable
        assert not result.ok

    @pytest.mark.asyncio
    async def test_timeout_is_unreachable(self):
        """Timeouts yield status 0."""
        def handler(request):
            raise httpx.ReadTimeout("slow", request=request)

        async with checker_with(handler) as checker:
            result = await checker.head_check("https://example.com/")

        assert result.unreachable

    @pytest.mark.asyncio
    async def test_check_many_dedups_and_keeps_order(self):
        """Each URL is checked once, at most ``concurrency`` at a time."""
        seen = []

        def handler(request):
            seen.append(str(request.url))
            return httpx.Response(404 if request.url.path == "/b" else 200)

        urls = ["https://example.com/a", "https://example.com/b", "https://example.com/a", "https://example.com/c"]
        async with checker_with(handler, concurrency=2) as checker:
            results = await checker.check_many(urls)

        assert list(results) == ["https://example.com/a", "https://example.com/b", "https://example.com/c"]
        assert results["https://example.com/b"].status == 404
        assert sorted(seen) == sorted(set(urls))

    @pytest.mark.asyncio
    async def test_requires_context_manager(self):
        """Using a closed checker is a programming error."""
        checker = ExistenceChecker()
        with pytest.raises(RuntimeError):
            await checker.head_check("https://example.com/")
