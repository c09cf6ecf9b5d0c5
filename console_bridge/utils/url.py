"""Source URL normalization and display names.

Monitored pages are identified by their normalized URL. Only local
development servers are accepted.
"""

import re
from typing import Iterable, List, Tuple, Union
from urllib.parse import urlparse, urlunparse


LOCAL_HOSTS = frozenset({"localhost", "127.0.0.1", "0.0.0.0", "::1"})

DEFAULT_PORTS = {"http": 80, "https": 443}

_SCHEME_RE = re.compile(r"^https?://", re.IGNORECASE)


class SourceUrlError(Exception):
    """Raised when a source URL is invalid or not local."""
    pass


def normalize_url(url: str) -> str:
    """Normalize a local URL into a source id.

    Args:
        url: URL, with or without scheme (``localhost:3000``)

    Returns:
        Normalized URL with scheme and at least a ``/`` path

    Raises:
        SourceUrlError: If the URL is empty, malformed, or not local

    Example:
        >>> normalize_url("localhost:3000")
        "http://localhost:3000/"
    """
    if not url or not isinstance(url, str) or not url.strip():
        raise SourceUrlError("URL must be a non-empty string")

    candidate = url.strip()
    if not _SCHEME_RE.match(candidate):
        candidate = f"http://{candidate}"

    try:
        parsed = urlparse(candidate)
        hostname = parsed.hostname
        # Accessing .port validates the port range
        parsed.port
    except ValueError as e:
        raise SourceUrlError(f"Invalid URL format: {url}") from e

    if not hostname:
        raise SourceUrlError(f"Invalid URL format: {url}")

    if hostname not in LOCAL_HOSTS:
        raise SourceUrlError(f"Only localhost URLs are supported. Got: {hostname}")

    return urlunparse((
        parsed.scheme.lower(),
        parsed.netloc.lower(),
        parsed.path or "/",
        parsed.params,
        parsed.query,
        parsed.fragment,
    ))


def validate_url(url: str) -> Tuple[bool, str]:
    """Validate a URL without raising.

    Returns:
        Tuple of (valid, error message or empty string)
    """
    try:
        normalize_url(url)
        return True, ""
    except SourceUrlError as e:
        return False, str(e)


def parse_urls(urls: Union[str, Iterable[str]]) -> List[str]:
    """Normalize and deduplicate URLs.

    Args:
        urls: Whitespace/comma separated string, or iterable of URLs

    Returns:
        Normalized URLs in first-seen order

    Raises:
        SourceUrlError: If any URL is invalid
    """
    if isinstance(urls, str):
        items = [item for item in re.split(r"[\s,]+", urls) if item]
    else:
        items = list(urls)

    result: List[str] = []
    for item in items:
        normalized = normalize_url(item)
        if normalized not in result:
            result.append(normalized)
    return result


def display_name(source: str) -> str:
    """Short label for a source.

    URLs become ``host:port`` (default port filled in); anything else is
    returned unchanged.

    Example:
        >>> display_name("http://localhost:3000/")
        "localhost:3000"
    """
    if not _SCHEME_RE.match(source or ""):
        return source

    try:
        parsed = urlparse(source)
        hostname = parsed.hostname
        port = parsed.port or DEFAULT_PORTS.get(parsed.scheme.lower(), 80)
    except ValueError:
        return source

    if not hostname:
        return source
    if ":" in hostname:
        hostname = f"[{hostname}]"
    return f"{hostname}:{port}"
