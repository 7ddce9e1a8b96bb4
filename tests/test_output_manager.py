"""Tests for report collection and output."""

import json
from datetime import datetime

import pytest

from siteaudit.events import crawl_done_event, discovery_done_event, error_event, finding_event
from siteaudit.models import (
    BrokenImage,
    BrokenLink,
    ConsoleError,
    CrawlCounters,
    DiscoveryResult,
)
from siteaudit.output_manager import OutputManager, ReportCollector


@pytest.fixture
def broken_link():
    return BrokenLink(
        url="https://example.com/missing",
        status_code=404,
        found_on_page="https://example.com/",
        link_text="Missing",
        element_context="<main>",
    )


@pytest.fixture
def collector(broken_link):
    collector = ReportCollector()
    collector(discovery_done_event(
        DiscoveryResult(links=["https://example.com/", "https://example.com/a"], from_pages=1, pages_scanned=2),
        "Discovery complete",
    ))
    collector(finding_event(broken_link))
    collector(crawl_done_event("Crawl complete", CrawlCounters(crawled=2, broken_links=1), [broken_link], 2))
    return collector


class TestReportCollector:
    """Test cases for ReportCollector."""

    def test_streamed_findings(self, broken_link):
        """Finding events are rebuilt into finding objects."""
        collector = ReportCollector()
        error = ConsoleError(message="boom", found_on_page="https://example.com/", type="js_error")
        collector(finding_event(broken_link, "broken"))
        collector(finding_event(error, "js"))

        assert collector.findings == [broken_link, error]
        assert collector.stats["brokenLinks"] == 1
        assert collector.stats["consoleErrors"] == 1

    def test_done_events(self, collector):
        """Discovery and crawl summaries are kept apart."""
        assert collector.discovered == ["https://example.com/", "https://example.com/a"]
        assert collector.discovery_stats["pagesScanned"] == 2
        assert collector.crawl_stats["crawled"] == 2
        # The terminal list replaces, not extends, the streamed findings
        assert len(collector.findings) == 1
        assert collector.stats == {
            "crawled": 2,
            "brokenLinks": 1,
            "brokenImages": 0,
            "consoleErrors": 0,
            "navigationIssues": 0,
            "discovered": 2,
        }
        assert not collector.failed

    def test_errors(self):
        """Error events mark the run as failed."""
        collector = ReportCollector()
        collector(error_event("Invalid start URL: nope"))
        assert collector.failed
        assert collector.errors == ["Invalid start URL: nope"]


class TestOutputManager:
    """Test cases for OutputManager."""

    def test_report_directory_layout(self, tmp_path):
        """Reports go under domain/timestamp."""
        manager = OutputManager(str(tmp_path))
        report_dir = manager.create_report_directory(
            "https://example.com:8443/page", timestamp=datetime(2026, 1, 12, 14, 30, 22)
        )

        assert report_dir == tmp_path / "example.com_8443" / "2026-01-12_143022"
        assert report_dir.is_dir()

    def test_save_report(self, tmp_path, collector):
        """Findings, discovered pages and a summary are written."""
        manager = OutputManager(str(tmp_path))
        report_dir = manager.create_report_directory("https://example.com/")

        manager.save_report(report_dir, "https://example.com/", collector)

        findings = json.loads((report_dir / "findings.json").read_text())
        assert findings["stats"]["brokenLinks"] == 1
        assert findings["findings"][0]["kind"] == "broken_link"
        assert findings["findings"][0]["statusCode"] == 404

        discovered = json.loads((report_dir / "discovered.json").read_text())
        assert discovered["links"] == collector.discovered

        summary = (report_dir / "summary.txt").read_text()
        assert "BROKEN LINKS" in summary
        assert "[404] https://example.com/missing" in summary
        assert "BROKEN IMAGES" not in summary

    def test_latest_report(self, tmp_path):
        """The newest report directory is found by name."""
        manager = OutputManager(str(tmp_path))
        manager.create_report_directory("https://example.com/", datetime(2026, 1, 1, 9, 0, 0))
        newest = manager.create_report_directory("https://example.com/", datetime(2026, 2, 1, 9, 0, 0))
        manager._create_latest_link(newest)

        assert manager.find_latest_report("example.com") == newest
        assert manager.find_latest_report("unknown.org") is None

    def test_summary_lists_images(self, tmp_path):
        """Each finding kind gets its own section."""
        collector = ReportCollector()
        collector(finding_event(BrokenImage(
            src="https://example.com/a.png",
            found_on_page="https://example.com/",
            alt_text="A",
            element_context="<img>",
            reason="Image failed to load (incomplete)",
        )))
        manager = OutputManager(str(tmp_path))
        report_dir = manager.create_report_directory("https://example.com/")
        manager.save_report(report_dir, "https://example.com/", collector)

        summary = (report_dir / "summary.txt").read_text()
        assert "BROKEN IMAGES" in summary
        assert "Image failed to load (incomplete)" in summary
        assert not (report_dir / "discovered.json").exists()
