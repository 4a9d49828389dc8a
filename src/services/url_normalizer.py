"""Canonicalization and validation of user-submitted bookmark URLs."""
import logging
import re
from urllib.parse import urlsplit

from pydantic import HttpUrl, TypeAdapter, ValidationError

logger = logging.getLogger(__name__)

DEFAULT_SCHEME = "https"

_SCHEME_PATTERN = re.compile(r"^[a-zA-Z][a-zA-Z0-9+.-]*://")
_HTTP_URL_ADAPTER = TypeAdapter(HttpUrl)


def normalize_url(raw: str) -> str:
    """
    Canonicalize a URL before duplicate checks and fetching.

    - Prepends https:// when no scheme is present.
    - Strips one leading 'www.' label from the host.
    - Rebuilds as scheme://host/path, dropping query string, fragment, port and
      credentials.
    - Removes one trailing slash unless the path is the root '/'.

    Never raises. If the URL cannot be parsed (or has no host), the original input
    is returned unchanged, so callers must validate separately with is_valid_url().

    Args:
        raw: URL as typed by the user.

    Returns:
        The normalized URL, or the original input if it could not be parsed.
    """
    if not raw:
        return ""

    url = raw.strip()
    if not _SCHEME_PATTERN.match(url):
        url = f"{DEFAULT_SCHEME}://{url}"

    try:
        parts = urlsplit(url)
        hostname = parts.hostname
    except ValueError:
        logger.debug("Could not parse URL %r, leaving it unchanged", raw)
        return raw

    if not hostname:
        return raw

    if hostname.startswith("www."):
        hostname = hostname[len("www."):]
    if ":" in hostname:
        hostname = f"[{hostname}]"

    path = parts.path or "/"
    if path != "/" and path.endswith("/"):
        path = path[:-1]

    return f"{parts.scheme.lower()}://{hostname}{path}"


def is_valid_url(url: str) -> bool:
    """
    Check that a URL is syntactically usable as a bookmark.

    Requires an http(s) scheme and a host with at least one dot (a public-style
    domain name or an IPv4 address).
    """
    if not url:
        return False
    try:
        parsed = _HTTP_URL_ADAPTER.validate_python(url)
    except ValidationError:
        return False
    host = parsed.host or ""
    return "." in host and not host.startswith(".") and not host.endswith(".")
