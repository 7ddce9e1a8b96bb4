"""Command-line interface for the site auditor."""

import argparse
import asyncio
import re
import sys
from pathlib import Path
from typing import Callable, List, Optional

from siteaudit.config import AuditConfig, settings
from siteaudit.coordinator import AuditSession
from siteaudit.events import CallbackTransport, Event, JsonLinesTransport
from siteaudit.logging_config import setup_logging
from siteaudit.models import CrawlRequest, DiscoveryRequest
from siteaudit.output_manager import OutputManager, ReportCollector

EXIT_OK = 0
EXIT_RUN_FAILED = 1
EXIT_BAD_ARGS = 2
EXIT_INTERRUPTED = 130


def print_event(event: Event) -> None:
    """Print an event as a human-readable progress line."""
    event_type = event.get("type")
    message = event.get("message", "")

    if event_type == "error":
        print(f"❌ Error: {message}")
    elif event_type == "done":
        print(f"\n{message}")
    elif message:
        print(message)


def print_links(links: List[str]) -> None:
    print(f"\n{'=' * 60}")
    print(f"Discovered pages ({len(links)})")
    print(f"{'=' * 60}")
    for i, url in enumerate(links, 1):
        print(f"{i:4d}. {url}")


def print_summary(collector: ReportCollector) -> None:
    stats = collector.stats
    print(f"\n{'=' * 60}")
    print("Audit summary")
    print(f"{'=' * 60}")
    print(f"  • Pages crawled: {stats['crawled']}")
    print(f"  • Broken links: {stats['brokenLinks']}")
    print(f"  • Broken images: {stats['brokenImages']}")
    print(f"  • Navigation issues: {stats['navigationIssues']}")
    print(f"  • Console errors: {stats['consoleErrors']}")


def load_config(args) -> AuditConfig:
    """Audit configuration from ``--config`` or the environment, plus flag overrides."""
    config = AuditConfig.from_file(args.config) if args.config else AuditConfig.from_env()
    if getattr(args, "max_pages", None):
        config.max_discovery_pages = args.max_pages
    if getattr(args, "strict", False):
        config.trust_discovered = False
    return config


def read_urls_file(path: str) -> List[str]:
    """One URL per line; blank lines and ``#`` comments are skipped."""
    urls = []
    with open(path, "r", encoding="utf-8") as f:
        for line in f:
            line = line.strip()
            if line and not line.startswith("#"):
                urls.append(line)
    return urls


def _event_sink(args, collector: ReportCollector) -> Callable[[Event], None]:
    printer = JsonLinesTransport(sys.stdout).write if args.json else print_event

    def sink(event: Event) -> None:
        collector(event)
        printer(event)

    return sink


def _save_report(args, start_url: str, collector: ReportCollector) -> None:
    if not args.output:
        return
    manager = OutputManager(args.output)
    report_dir = manager.create_report_directory(start_url)
    manager.save_report(report_dir, start_url, collector)
    if not args.json:
        print(f"\n📁 Report saved to {report_dir}")


def discover_command(args) -> int:
    """Discover the pages of a site and list them."""
    collector = ReportCollector()
    session = AuditSession(CallbackTransport(_event_sink(args, collector)), load_config(args))
    request = DiscoveryRequest(start_url=args.url, sitemap_url=args.sitemap, selector=args.selector)

    asyncio.run(session.discover(request))

    if collector.discovered and not args.json:
        print_links(collector.discovered)
    _save_report(args, args.url, collector)
    return EXIT_RUN_FAILED if collector.failed else EXIT_OK


def crawl_command(args) -> int:
    """Crawl a whole site, or only the pages listed in ``--urls-file``.

    ``--discovered-file`` lists the other known pages of a selective crawl.
    Links to them are trusted unless ``--strict`` is given.
    """
    if args.discovered_file and not args.urls_file:
        print("Error: --discovered-file requires --urls-file", file=sys.stderr)
        return EXIT_BAD_ARGS

    selected = discovered = None
    if args.urls_file:
        try:
            selected = read_urls_file(args.urls_file)
            if args.discovered_file:
                discovered = read_urls_file(args.discovered_file)
        except OSError as e:
            print(f"Error: cannot read {e.filename}: {e}", file=sys.stderr)
            return EXIT_BAD_ARGS
        if not selected:
            print(f"Error: no URLs in {args.urls_file}", file=sys.stderr)
            return EXIT_BAD_ARGS

    collector = ReportCollector()
    session = AuditSession(CallbackTransport(_event_sink(args, collector)), load_config(args))
    request = CrawlRequest(
        start_url=args.url,
        sitemap_url=args.sitemap,
        selector=args.selector,
        selected_urls=selected,
        all_discovered_urls=discovered,
    )

    asyncio.run(session.crawl(request))

    if not args.json and not collector.failed:
        print_summary(collector)
    _save_report(args, args.url, collector)
    return EXIT_RUN_FAILED if collector.failed else EXIT_OK


def _confirm(prompt: str) -> bool:
    try:
        answer = input(prompt)
    except EOFError:
        return False
    return answer.strip().lower() in ("y", "yes")


async def _audit(args, session: AuditSession) -> bool:
    """Returns True if the selection was crawled."""
    request = DiscoveryRequest(start_url=args.url, sitemap_url=args.sitemap, selector=args.selector)
    result = await session.discover(request)
    if result is None:
        return False

    selected = session.select_matching(include=args.include, exclude=args.exclude)
    if not selected:
        print("No discovered pages match the include/exclude filters", file=sys.stderr)
        await session.cancel()
        return False

    if not args.yes:
        print(f"\n📋 {len(selected)} of {len(session.discovered)} discovered pages selected", file=sys.stderr)
        if not _confirm(f"Crawl {len(selected)} pages? [y/N] "):
            await session.cancel()
            return False

    await session.crawl()
    return True


def audit_command(args) -> int:
    """Discover, filter the discovered pages, then crawl the selection."""
    for pattern in (args.include, args.exclude):
        if pattern:
            try:
                re.compile(pattern)
            except re.error as e:
                print(f"Error: invalid pattern {pattern!r}: {e}", file=sys.stderr)
                return EXIT_BAD_ARGS

    collector = ReportCollector()
    session = AuditSession(CallbackTransport(_event_sink(args, collector)), load_config(args))

    crawled = asyncio.run(_audit(args, session))

    if crawled and not args.json and not collector.failed:
        print_summary(collector)
    _save_report(args, args.url, collector)
    return EXIT_RUN_FAILED if collector.failed else EXIT_OK


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="siteaudit",
        description="Site Auditor - Find broken links, broken images and script errors on a website",
    )

    # Global flags (before subcommands)
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default=settings.LOG_LEVEL.upper(),
        help="Set logging verbosity (default: INFO)",
    )
    parser.add_argument(
        "--log-file",
        default=settings.LOG_FILE,
        help="Write logs to file in addition to stderr",
    )

    # Flags shared by every subcommand
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument("url", help="Start URL (e.g., https://example.com)")
    common.add_argument("--sitemap", help="Sitemap or sitemap index URL")
    common.add_argument(
        "--selector",
        help="Only consider links and images inside this CSS selector (e.g., 'main, #content')",
    )
    common.add_argument(
        "--json",
        action="store_true",
        help="Print raw events as JSON lines instead of progress text",
    )
    common.add_argument(
        "--output",
        nargs="?",
        const=settings.OUTPUT_DIR,
        help=f"Save a report under DIR (default when given without a value: {settings.OUTPUT_DIR})",
        metavar="DIR",
    )
    common.add_argument(
        "--config",
        help="JSON file with audit settings (default: SITEAUDIT_* environment variables)",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    discover_parser = subparsers.add_parser(
        "discover", parents=[common], help="List the pages of a site without crawling them."
    )
    discover_parser.add_argument(
        "--max-pages",
        type=int,
        help="Stop browser discovery after this many pages (default: 5000)",
    )
    discover_parser.set_defaults(func=discover_command)

    crawl_parser = subparsers.add_parser(
        "crawl", parents=[common], help="Crawl a site and report what is broken."
    )
    crawl_parser.add_argument(
        "--urls-file",
        help="Only crawl the URLs listed in this file (one per line)",
    )
    crawl_parser.add_argument(
        "--discovered-file",
        help="Other known pages of the site (e.g. a saved discovery); links to them are not re-checked",
    )
    crawl_parser.add_argument(
        "--strict",
        action="store_true",
        help="Existence-check links to pages from --discovered-file instead of trusting them",
    )
    crawl_parser.set_defaults(func=crawl_command)

    audit_parser = subparsers.add_parser(
        "audit", parents=[common], help="Discover, select with filters, then crawl."
    )
    audit_parser.add_argument("--include", help="Only crawl discovered URLs matching this regex")
    audit_parser.add_argument("--exclude", help="Skip discovered URLs matching this regex")
    audit_parser.add_argument("--yes", "-y", action="store_true", help="Crawl without asking for confirmation")
    audit_parser.add_argument(
        "--max-pages",
        type=int,
        help="Stop browser discovery after this many pages (default: 5000)",
    )
    audit_parser.add_argument(
        "--strict",
        action="store_true",
        help="Existence-check links to unselected pages even if they were discovered",
    )
    audit_parser.set_defaults(func=audit_command)

    return parser


def main(argv: Optional[List[str]] = None) -> None:
    """Main CLI entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    # Configure logging based on flags
    setup_logging(
        level=args.log_level,
        log_file=args.log_file,
    )

    if not hasattr(args, "func"):
        parser.print_help()
        sys.exit(EXIT_BAD_ARGS)

    if args.config and not Path(args.config).exists():
        print(f"Error: config file not found: {args.config}", file=sys.stderr)
        sys.exit(EXIT_BAD_ARGS)

    try:
        code = args.func(args)
    except KeyboardInterrupt:
        print("\n⏹️  Interrupted", file=sys.stderr)
        code = EXIT_INTERRUPTED
    sys.exit(code)


if __name__ == "__main__":
    main()
