"""Tests for FailureClassifier."""

import pytest

from siteaudit.failure_classifier import FailureClassifier


class TestFailureClassifier:
    """Test cases for FailureClassifier."""

    @pytest.fixture
    def classifier(self):
        return FailureClassifier()

    @pytest.mark.parametrize("message", [
        "Access to fetch at 'https://api.example.com' has been blocked by CORS policy",
        "No 'Access-Control-Allow-Origin' header is present",
        "Failed to load resource: net::ERR_BLOCKED_BY_CLIENT",
        "Mixed Content: The page was loaded over HTTPS",
        "SecurityError: Blocked a frame",
    ])
    def test_noise_is_ignored(self, classifier, message):
        """Browser policy noise never becomes a finding."""
        assert classifier.should_ignore(message)

    def test_real_errors_kept(self, classifier):
        """Script errors are not noise."""
        assert not classifier.should_ignore("Uncaught TypeError: x is undefined")

    def test_case_insensitive(self, classifier):
        """Patterns match regardless of case."""
        assert classifier.should_ignore("blocked by cors policy")

    def test_request_failure_noise(self, classifier):
        """Aborted and connection-level failures are dropped."""
        assert classifier.should_ignore_request_failure("net::ERR_ABORTED")
        assert classifier.should_ignore_request_failure("net::ERR_CONNECTION_RESET")
        assert not classifier.should_ignore_request_failure("net::ERR_NAME_NOT_RESOLVED")

    def test_custom_patterns(self):
        """Custom patterns replace the defaults."""
        classifier = FailureClassifier(ignore_patterns=[r"third-party widget"])
        assert classifier.should_ignore("Third-party widget crashed")
        assert not classifier.should_ignore("blocked by CORS policy")


class TestParseStatusFromConsole:
    """Tests for parse_status_from_console()."""

    @pytest.fixture
    def classifier(self):
        return FailureClassifier()

    def test_extracts_url_and_status(self, classifier):
        """A 404 load failure yields its URL and status."""
        message = (
            "Failed to load resource: the server responded with a status of 404 () "
            "https://example.com/img/missing.png"
        )
        assert classifier.parse_status_from_console(message) == ("https://example.com/img/missing.png", 404)

    def test_server_errors_ignored(self, classifier):
        """Only 4xx statuses are reported."""
        message = "Failed to load resource: the server responded with a status of 500 () https://example.com/api"
        assert classifier.parse_status_from_console(message) is None

    def test_without_url(self, classifier):
        """A status with no URL cannot be attributed."""
        message = "Failed to load resource: the server responded with a status of 404 (Not Found)"
        assert classifier.parse_status_from_console(message) is None

    def test_noise_wins(self, classifier):
        """Noise is filtered before parsing."""
        message = "CORS request failed with a status of 403 https://cdn.example.net/font.woff"
        assert classifier.parse_status_from_console(message) is None
