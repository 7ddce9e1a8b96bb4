"""URL normalization and classification helpers.

Every visited/queued/registered URL passes through :func:`canonicalize`
first, so that two URLs differing only by fragment are the same entity.
"""

import logging
import re
from typing import Iterable, List, Optional, Tuple
from urllib.parse import urlsplit, urlunsplit

from siteaudit.constants import (
    DOCUMENT_EXTENSIONS,
    IMAGE_EXTENSIONS,
    NON_PAGE_EXTENSIONS,
    PAGE_EXTENSIONS,
    SKIP_EXTERNAL_DOMAINS,
)
from siteaudit.exceptions import InvalidStartURL

logger = logging.getLogger(__name__)

_DEFAULT_PORTS = {"http": 80, "https": 443}
_FILE_EXTENSION = re.compile(r"\.[a-z0-9]{2,5}$", re.IGNORECASE)


def _netloc(parts) -> str:
    """Rebuild a netloc with lowercase host and no default port."""
    host = (parts.hostname or "").lower()
    if ":" in host:
        host = f"[{host}]"
    port = parts.port
    if port and port != _DEFAULT_PORTS.get(parts.scheme.lower()):
        host = f"{host}:{port}"
    if parts.username:
        userinfo = parts.username
        if parts.password:
            userinfo = f"{userinfo}:{parts.password}"
        host = f"{userinfo}@{host}"
    return host


def canonicalize(url: str) -> str:
    """Strip the fragment from a URL.

    Scheme and host are lowercased, default ports dropped, and an empty
    path on an http(s) URL becomes ``/``. Never raises: anything that
    cannot be parsed is returned unchanged.
    """
    try:
        parts = urlsplit(url)
        scheme = parts.scheme.lower()
        if scheme in _DEFAULT_PORTS and parts.netloc:
            return urlunsplit((scheme, _netloc(parts), parts.path or "/", parts.query, ""))
        return urlunsplit((parts.scheme, parts.netloc, parts.path, parts.query, ""))
    except ValueError:
        return url


def origin_of(url: str) -> str:
    """Return ``scheme://host[:port]`` for an absolute http(s) URL.

    Raises:
        InvalidStartURL: If the URL has no http(s) scheme or no host.
    """
    try:
        parts = urlsplit(url.strip())
        scheme = parts.scheme.lower()
        if scheme not in _DEFAULT_PORTS or not parts.hostname:
            raise InvalidStartURL(f"Invalid start URL: {url}")
        host = parts.hostname.lower()
        if ":" in host:
            host = f"[{host}]"
        port = parts.port
    except ValueError as e:
        raise InvalidStartURL(f"Invalid start URL: {url} ({e})") from e

    if port and port != _DEFAULT_PORTS[scheme]:
        return f"{scheme}://{host}:{port}"
    return f"{scheme}://{host}"


def is_http_url(url: str) -> bool:
    """True for absolute http:// or https:// URLs."""
    try:
        parts = urlsplit(url)
    except ValueError:
        return False
    return parts.scheme.lower() in _DEFAULT_PORTS and bool(parts.netloc)


def is_same_origin(url: str, origin: str) -> bool:
    """Strict origin prefix match.

    The character following the origin must end the authority, so
    ``https://example.com.evil.org`` does not match ``https://example.com``.
    """
    if not url.startswith(origin):
        return False
    rest = url[len(origin):]
    return rest == "" or rest[0] in "/?#"


def _path(url: str) -> Optional[str]:
    try:
        return urlsplit(url).path
    except ValueError:
        return None


def is_non_page_resource(url: str) -> bool:
    """True if the URL path ends in a document/media/style/script/font extension."""
    path = _path(url)
    if path is None:
        return False
    return path.lower().endswith(NON_PAGE_EXTENSIONS)


def is_svg(url: str) -> bool:
    return ".svg" in url.lower()


def is_anchor_only(url: str) -> bool:
    """True for in-page anchors: a fragment on an empty or root path."""
    try:
        parts = urlsplit(url)
    except ValueError:
        return url.startswith("#")
    return bool(parts.fragment) and parts.path in ("", "/")


def is_skipped_external_host(url: str, domains: Iterable[str] = SKIP_EXTERNAL_DOMAINS) -> bool:
    """True if the URL host is, or is a subdomain of, a skip-listed domain."""
    try:
        host = (urlsplit(url).hostname or "").lower()
    except ValueError:
        return False
    if not host:
        return False
    return any(host == domain or host.endswith(f".{domain}") for domain in domains)


def resource_kind(url: str, content_type: Optional[str] = None) -> str:
    """Classify a failing sub-resource as ``link``, ``image``, ``document`` or ``other``."""
    try:
        parts = urlsplit(url)
    except ValueError:
        return "link"

    path = parts.path.lower()
    has_extension = bool(_FILE_EXTENSION.search(path))

    if parts.fragment and not has_extension:
        return "link"
    if path.endswith(IMAGE_EXTENSIONS):
        return "image"
    if path.endswith(DOCUMENT_EXTENSIONS):
        return "document"

    if content_type:
        if content_type.startswith("image/"):
            return "image"
        if "pdf" in content_type or "document" in content_type:
            return "document"

    if path.endswith(PAGE_EXTENSIONS) or not has_extension:
        return "link"
    return "other"


def path_depth(url: str) -> int:
    """Number of non-empty path segments."""
    path = _path(url) or ""
    return len([segment for segment in path.split("/") if segment])


def _sort_key(url: str) -> Tuple[int, str, str]:
    path = _path(url)
    if path is None:
        return (0, url, url)
    return (path_depth(url), path, url)


def sort_discovered(urls: Iterable[str]) -> List[str]:
    """Sort by path depth ascending, then lexicographically by path."""
    return sorted(urls, key=_sort_key)


def build_scoped_selector(scope: Optional[str], target: str) -> str:
    """Scope a target selector under each comma-separated part of ``scope``.

    ``build_scoped_selector(".main, #content", "a[href]")`` returns
    ``".main a[href], #content a[href]"``.
    """
    if not scope or not scope.strip():
        return target
    return ", ".join(
        f"{part.strip()} {target}" for part in scope.split(",") if part.strip()
    )
