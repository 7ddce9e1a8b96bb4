"""Report collection and output for audit runs."""

import json
import logging
from datetime import datetime
from pathlib import Path
from typing import Dict, List, Optional
from urllib.parse import urlparse

from siteaudit.events import Event, finding_record
from siteaudit.models import (
    FINDING_TYPES,
    BrokenImage,
    BrokenLink,
    ConsoleError,
    Finding,
    NavigationIssue,
    finding_from_dict,
)

logger = logging.getLogger(__name__)


class DateTimeEncoder(json.JSONEncoder):
    """JSON encoder that handles datetime objects."""

    def default(self, obj):
        if isinstance(obj, datetime):
            return obj.isoformat()
        return super().default(obj)


class ReportCollector:
    """Accumulates findings and statistics from a stream of events.

    Callable, so it can be handed straight to a CallbackTransport.
    """

    def __init__(self):
        self.findings: List[Finding] = []
        self.discovered: List[str] = []
        self.discovery_stats: Dict[str, int] = {}
        self.crawl_stats: Dict[str, int] = {}
        self.errors: List[str] = []
        self.messages: List[str] = []

    def __call__(self, event: Event) -> None:
        self.handle(event)

    def handle(self, event: Event) -> None:
        event_type = event.get("type")

        if event_type in FINDING_TYPES:
            self.findings.append(finding_from_dict(event_type, event.get("data") or {}))
        elif event_type == "done":
            self.messages.append(event.get("message", ""))
            if "links" in event:
                self.discovered = list(event["links"])
                self.discovery_stats = {
                    key: event.get(key, 0) for key in ("total", "fromSitemap", "fromPages", "pagesScanned")
                }
            else:
                self.crawl_stats = {
                    key: event.get(key, 0)
                    for key in ("crawled", "brokenLinks", "brokenImages", "navigationIssues", "consoleErrors")
                }
                # The terminal event carries the authoritative findings list
                if "findings" in event:
                    self.findings = [finding_from_dict(r["kind"], r) for r in event["findings"]]
        elif event_type == "error":
            self.errors.append(event.get("message", ""))

    @property
    def failed(self) -> bool:
        return bool(self.errors)

    def of_kind(self, kind: type) -> List[Finding]:
        return [f for f in self.findings if isinstance(f, kind)]

    @property
    def stats(self) -> Dict[str, int]:
        stats = {
            "crawled": self.crawl_stats.get("crawled", 0),
            "brokenLinks": len(self.of_kind(BrokenLink)),
            "brokenImages": len(self.of_kind(BrokenImage)),
            "consoleErrors": len(self.of_kind(ConsoleError)),
            "navigationIssues": len(self.of_kind(NavigationIssue)),
        }
        if self.discovery_stats:
            stats["discovered"] = self.discovery_stats.get("total", len(self.discovered))
        return stats


class OutputManager:
    """Writes audit reports into timestamped per-domain directories."""

    def __init__(self, base_output_dir: str = "reports"):
        """Initialize output manager.

        Args:
            base_output_dir: Base directory for all reports
        """
        self.base_output_dir = Path(base_output_dir)
        self.base_output_dir.mkdir(parents=True, exist_ok=True)

    def create_report_directory(self, start_url: str, timestamp: Optional[datetime] = None) -> Path:
        """Create a timestamped directory for this audit.

        Example structure:
            reports/
            └── example.com/
                ├── 2026-01-12_143022/
                │   ├── findings.json
                │   ├── discovered.json
                │   └── summary.txt
                └── latest -> 2026-01-12_143022
        """
        if timestamp is None:
            timestamp = datetime.now()

        domain = urlparse(start_url).netloc
        # Clean domain for filesystem
        domain = domain.replace(":", "_").replace("/", "_")

        report_dir = self.base_output_dir / domain / timestamp.strftime("%Y-%m-%d_%H%M%S")
        report_dir.mkdir(parents=True, exist_ok=True)
        return report_dir

    def save_report(self, report_dir: Path, start_url: str, collector: ReportCollector) -> None:
        """Save everything a collector gathered to ``report_dir``."""
        findings = {
            "start_url": start_url,
            "generated_at": datetime.now(),
            "stats": collector.stats,
            "errors": collector.errors,
            "findings": [finding_record(f) for f in collector.findings],
        }
        self._save_json(report_dir / "findings.json", findings)

        if collector.discovered:
            self._save_json(report_dir / "discovered.json", {
                "start_url": start_url,
                "stats": collector.discovery_stats,
                "links": collector.discovered,
            })

        self._save_summary(report_dir / "summary.txt", start_url, collector)
        self._create_latest_link(report_dir)
        logger.info(f"Report saved to {report_dir}")

    def _save_json(self, filepath: Path, data: dict) -> None:
        with open(filepath, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2, ensure_ascii=False, cls=DateTimeEncoder)

    def _save_summary(self, filepath: Path, start_url: str, collector: ReportCollector) -> None:
        """Save human-readable summary."""
        with open(filepath, "w", encoding="utf-8") as f:
            f.write("=" * 60 + "\n")
            f.write("SITE AUDIT SUMMARY\n")
            f.write("=" * 60 + "\n\n")

            f.write(f"Start URL: {start_url}\n")
            f.write(f"Audited at: {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}\n\n")

            f.write("STATISTICS\n")
            f.write("-" * 60 + "\n")
            for key, value in collector.stats.items():
                f.write(f"{key}: {value}\n")
            f.write("\n")

            if collector.errors:
                f.write("ERRORS\n")
                f.write("-" * 60 + "\n")
                for message in collector.errors:
                    f.write(f"{message}\n")
                f.write("\n")

            sections = (
                ("BROKEN LINKS", BrokenLink, lambda x: f"[{x.status_code}] {x.url} (on {x.found_on_page}, \"{x.link_text}\")"),
                ("BROKEN IMAGES", BrokenImage, lambda x: f"{x.src} (on {x.found_on_page}): {x.reason}"),
                ("NAVIGATION ISSUES", NavigationIssue, lambda x: f"{x.url} (from {x.found_on_page}): {x.reason}"),
                ("CONSOLE ERRORS", ConsoleError, lambda x: f"[{x.type}] {x.message} (on {x.found_on_page})"),
            )
            for title, kind, describe in sections:
                items = collector.of_kind(kind)
                if not items:
                    continue
                f.write(f"{title}\n")
                f.write("-" * 60 + "\n")
                for i, item in enumerate(items, 1):
                    f.write(f"{i:3d}. {describe(item)}\n")
                f.write("\n")

    def _create_latest_link(self, report_dir: Path) -> None:
        """Create/update 'latest' symlink to this report."""
        latest_link = report_dir.parent / "latest"

        if latest_link.exists() or latest_link.is_symlink():
            latest_link.unlink()

        try:
            latest_link.symlink_to(report_dir.name)
        except (OSError, NotImplementedError):
            # Symlinks might not work on all systems (Windows)
            with open(report_dir.parent / "latest.txt", "w") as f:
                f.write(str(report_dir.name))

    def find_latest_report(self, domain: str) -> Optional[Path]:
        """Most recent report directory for a domain, or None."""
        domain_dir = self.base_output_dir / domain
        if not domain_dir.exists():
            return None

        report_dirs = [
            d for d in domain_dir.iterdir()
            if d.is_dir() and not d.is_symlink()
        ]
        if not report_dirs:
            return None
        return sorted(report_dirs, reverse=True)[0]
