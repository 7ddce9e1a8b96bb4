"""Logging configuration for the site auditor.

Console records go to stderr so that ``--json`` event output on stdout stays
parseable. A log file, when given, receives DEBUG records whatever the
console level is, so a long crawl can be inspected afterwards.
"""

import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Iterable, List, Optional

DEFAULT_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'

# Third-party loggers that log every request or browser call
NOISY_LOGGERS = ('httpx', 'httpcore', 'asyncio', 'playwright')

LOG_FILE_MAX_BYTES = 10 * 1024 * 1024
LOG_FILE_BACKUPS = 3


def setup_logging(
    level: str = "INFO",
    log_file: Optional[str] = None,
    format_string: Optional[str] = None,
    quiet: Iterable[str] = NOISY_LOGGERS,
) -> None:
    """Configure the root logger for a CLI run.

    Args:
        level: Console log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_file: Optional rotating log file; parent directories are created
        format_string: Optional custom format string
        quiet: Loggers held at WARNING
    """
    formatter = logging.Formatter(format_string or DEFAULT_FORMAT)
    console_level = getattr(logging, level.upper(), logging.INFO)

    console = logging.StreamHandler(sys.stderr)
    console.setLevel(console_level)
    handlers: List[logging.Handler] = [console]

    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = RotatingFileHandler(
            log_path,
            maxBytes=LOG_FILE_MAX_BYTES,
            backupCount=LOG_FILE_BACKUPS,
            encoding='utf-8',
        )
        file_handler.setLevel(logging.DEBUG)
        handlers.append(file_handler)

    for handler in handlers:
        handler.setFormatter(formatter)

    logging.basicConfig(
        level=logging.DEBUG if log_file else console_level,
        handlers=handlers,
        force=True  # Override any existing configuration
    )

    for name in quiet:
        logging.getLogger(name).setLevel(logging.WARNING)
