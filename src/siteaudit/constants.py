# src/siteaudit/constants.py
"""Centralized constants for the site auditor.

This module contains fixed lists and default values used across multiple
modules. For user-configurable settings, see config.py and AuditConfig.
"""

# =============================================================================
# URL Classification
# =============================================================================

# Paths ending in one of these are never navigated, only existence-checked
NON_PAGE_EXTENSIONS = (
    # Documents
    ".pdf", ".doc", ".docx", ".xls", ".xlsx", ".ppt", ".pptx",
    # Archives
    ".zip", ".rar", ".7z", ".tar", ".gz",
    # Audio / video
    ".mp3", ".mp4", ".avi", ".mov", ".wmv", ".wav", ".ogg", ".webm",
    # Images
    ".jpg", ".jpeg", ".png", ".gif", ".webp", ".svg", ".ico", ".bmp",
    ".tiff", ".tif", ".eps", ".ai", ".psd",
    # Styles, scripts and data
    ".css", ".js", ".json", ".xml", ".txt", ".csv",
    # Fonts
    ".woff", ".woff2", ".ttf", ".eot", ".otf",
)

IMAGE_EXTENSIONS = (".jpg", ".jpeg", ".png", ".gif", ".webp", ".svg", ".ico", ".bmp", ".tiff", ".tif")

DOCUMENT_EXTENSIONS = (".pdf", ".doc", ".docx", ".xls", ".xlsx", ".ppt", ".pptx")

PAGE_EXTENSIONS = (".html", ".htm", ".php", ".asp", ".aspx", ".jsp")

# Hosts that block automated probing; external links to them are not checked
SKIP_EXTERNAL_DOMAINS = (
    "twitter.com",
    "x.com",
    "linkedin.com",
    "facebook.com",
    "instagram.com",
    "tiktok.com",
    "youtube.com",
    "pinterest.com",
    "reddit.com",
    "discord.com",
    "whatsapp.com",
    "t.me",
    "telegram.org",
    "snapchat.com",
    "medium.com",
    "apple.com",
    "apps.apple.com",
    "play.google.com",
)

# Sub-resource types the network listener never reports on
IGNORED_RESOURCE_TYPES = ("stylesheet", "font", "script", "media")


# =============================================================================
# Synthetic Referrers
# =============================================================================

START_URL_PAGE = "[Start URL]"
START_URL_TEXT = "[User provided]"
START_URL_CONTEXT = "<input>"

SITEMAP_LINK_TEXT = "[From sitemap]"
SITEMAP_CONTEXT = "<sitemap>"

UNKNOWN_SOURCE_PAGE = "[Unknown source]"
UNKNOWN_LINK_TEXT = "[Unknown]"
UNKNOWN_CONTEXT = "<unknown>"

NO_LINK_TEXT = "[No text]"
NO_ALT_TEXT = "[No alt text]"

# Findings raised by page listeners rather than the DOM walk
DETECTED_FROM_NETWORK = "[Detected from network]"
DETECTED_FROM_CONSOLE = "[Detected from console]"
CONSOLE_CONTEXT = "<console-error>"


# =============================================================================
# Crawler Defaults
# =============================================================================

# Page navigation timeout while crawling (seconds)
DEFAULT_NAVIGATION_TIMEOUT_SECONDS = 30

# Page navigation timeout while discovering (seconds)
DEFAULT_DISCOVERY_TIMEOUT_SECONDS = 15

# Time to let dynamic content settle after navigation (seconds)
DEFAULT_SETTLE_DELAY_SECONDS = 2.0

# Existence check timeout (seconds)
DEFAULT_PROBE_TIMEOUT_SECONDS = 10

# Pages navigated between batch status reports
DEFAULT_BATCH_SIZE = 100

# Hard cap on pages visited during browser discovery
DEFAULT_MAX_DISCOVERY_PAGES = 5000

# Parallel existence checks within one page
DEFAULT_PROBE_CONCURRENCY = 5


# =============================================================================
# Sitemap Constants
# =============================================================================

# Child sitemaps fetched concurrently per batch
SITEMAP_FETCH_BATCH_SIZE = 5

# Redirects followed before a sitemap fetch fails
SITEMAP_MAX_REDIRECTS = 5

# Whole-request timeout for sitemap fetches (seconds)
SITEMAP_FETCH_TIMEOUT_SECONDS = 30


# =============================================================================
# HTTP
# =============================================================================

DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)
