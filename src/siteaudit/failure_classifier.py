"""Failure classifier separating genuine breakage from known noise."""

import re
from typing import List, Optional, Pattern, Sequence, Tuple

# Ordered noise signatures; a match suppresses the message entirely
DEFAULT_IGNORE_PATTERNS: Tuple[str, ...] = (
    r'CORS',
    r'Access-Control-Allow-Origin',
    r'cross-origin',
    r'net::ERR_ABORTED',
    r'net::ERR_BLOCKED',
    r'net::ERR_FAILED',  # Often transient
    r'SecurityError',
    r'Mixed Content',
    r'insecure content',
)

# Extra fragments that make a failed request uninteresting
DEFAULT_REQUEST_FAILURE_NOISE: Tuple[str, ...] = (
    'ERR_ABORTED',
    'ERR_BLOCKED',
    'ERR_FAILED',
    'ERR_CACHE',
    'ERR_CONNECTION',
)

_STATUS_PATTERN = re.compile(r'status of (\d{3})')
_URL_PATTERN = re.compile(r'(https?://[^\s]+)')


class FailureClassifier:
    """Pattern-based filter for console and network error text."""

    def __init__(
        self,
        ignore_patterns: Optional[Sequence[str]] = None,
        request_failure_noise: Optional[Sequence[str]] = None,
    ):
        """Initialize classifier with configurable patterns.

        Args:
            ignore_patterns: Regex patterns (case-insensitive) for noise messages
            request_failure_noise: Substrings that mark a failed request as noise
        """
        self.ignore_patterns = tuple(ignore_patterns or DEFAULT_IGNORE_PATTERNS)
        self.request_failure_noise = tuple(request_failure_noise or DEFAULT_REQUEST_FAILURE_NOISE)

        # Compile patterns for efficiency
        self._compiled_patterns: List[Pattern] = [
            re.compile(pattern, re.IGNORECASE) for pattern in self.ignore_patterns
        ]

    def should_ignore(self, message: str) -> bool:
        """True if the message matches a noise pattern."""
        return any(pattern.search(message) for pattern in self._compiled_patterns)

    def should_ignore_request_failure(self, error_text: str) -> bool:
        """True if a failed sub-resource request is noise."""
        if self.should_ignore(error_text):
            return True
        return any(fragment in error_text for fragment in self.request_failure_noise)

    def parse_status_from_console(self, message: str) -> Optional[Tuple[str, int]]:
        """Extract ``(url, status)`` from a console error reporting a 4xx load failure.

        Matches messages such as
        ``Failed to load resource: the server responded with a status of 404 () https://...``.
        Noise and 5xx statuses yield None.
        """
        if self.should_ignore(message):
            return None

        status_match = _STATUS_PATTERN.search(message)
        if not status_match:
            return None

        status = int(status_match.group(1))
        if not 400 <= status < 500:
            return None

        url_match = _URL_PATTERN.search(message)
        if not url_match:
            return None
        return url_match.group(1), status


default_classifier = FailureClassifier()
