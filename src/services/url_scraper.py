"""URL scraping service for fetching pages and extracting their readable content."""
import ipaddress
import logging
import re
import socket
from dataclasses import dataclass
from urllib.parse import urlparse

import httpx
from bs4 import BeautifulSoup

logger = logging.getLogger(__name__)

BROWSER_HEADERS = {
    "User-Agent": (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/124.0.0.0 Safari/537.36"
    ),
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,image/webp,*/*;q=0.8",
    "Accept-Language": "en-US,en;q=0.5",
    "Upgrade-Insecure-Requests": "1",
    "Cache-Control": "max-age=0",
}
DEFAULT_TIMEOUT = 10.0
DEFAULT_MAX_REDIRECTS = 5
MAX_CONTENT_CHARS = 5000
DESCRIPTION_FALLBACK_CHARS = 200

CONNECTION_FAILED_MESSAGE = "Could not connect to the website. Please check the URL and try again."
TIMEOUT_MESSAGE = "Request timed out. Please try again."
FORBIDDEN_MESSAGE = (
    "Access to this website is forbidden. The website might be blocking our requests."
)
NOT_FOUND_MESSAGE = "The page could not be found. Please check the URL and try again."
RATE_LIMITED_MESSAGE = "Too many requests to this website. Please try again later."
GENERIC_FAILURE_PREFIX = "Failed to fetch content: "

STATUS_MESSAGES = {
    403: FORBIDDEN_MESSAGE,
    404: NOT_FOUND_MESSAGE,
    429: RATE_LIMITED_MESSAGE,
}

# Elements that never hold the page's main text
NON_CONTENT_TAGS = ["script", "style", "nav", "header", "footer", "iframe"]
NON_CONTENT_CLASS_SELECTOR = (
    '[class*="menu"], [class*="sidebar"], [class*="banner"], [class*="ad"]'
)
# Tried in order; the first selector with any match wins
MAIN_CONTENT_SELECTORS = [
    "article",
    "main",
    '[role="main"]',
    ".content",
    "#content",
    ".post",
    ".article",
    ".post-content",
    ".article-content",
]

_WHITESPACE_RUN = re.compile(r"\s+")


class SSRFBlockedError(Exception):
    """Raised when a URL targets a private/internal network address."""

    pass


class ContentFetchError(Exception):
    """
    Raised when a page could not be fetched.

    The message is user-facing: it is stored as the bookmark's summary when the
    bookmark is saved without content.
    """

    def __init__(self, message: str, status_code: int | None = None) -> None:
        self.status_code = status_code
        super().__init__(message)


def is_private_ip(ip_str: str) -> bool:
    """
    Check if an IP address is private, loopback, or otherwise internal.

    Args:
        ip_str: IP address string (IPv4 or IPv6).

    Returns:
        True if the IP is private/internal, False if public.
    """
    try:
        ip = ipaddress.ip_address(ip_str)
        return (
            ip.is_private
            or ip.is_loopback
            or ip.is_link_local
            or ip.is_multicast
            or ip.is_reserved
            or ip.is_unspecified
        )
    except ValueError:
        # If we can't parse it, block it to be safe
        return True


def validate_url_not_private(url: str) -> None:
    """
    Validate that a URL does not target a private/internal network.

    Resolves the hostname to check the actual IP address, preventing
    DNS rebinding attacks where a hostname resolves to an internal IP.

    Args:
        url: The URL to validate.

    Raises:
        SSRFBlockedError: If the URL targets a private network.
        socket.gaierror: If the hostname cannot be resolved.
        ValueError: If the URL is malformed.
    """
    hostname = urlparse(url).hostname

    if not hostname:
        raise ValueError(f"Invalid URL (no hostname): {url}")

    if hostname.lower() in ("localhost", "localhost.localdomain"):
        raise SSRFBlockedError(f"Blocked request to localhost: {url}")

    # sockaddr is (ip, port) for IPv4 or (ip, port, flow, scope) for IPv6
    addrinfo = socket.getaddrinfo(hostname, None, socket.AF_UNSPEC, socket.SOCK_STREAM)
    for _, _, _, _, sockaddr in addrinfo:
        ip_str = sockaddr[0]
        if is_private_ip(ip_str):
            raise SSRFBlockedError(
                f"Blocked request to private/internal address: {url} resolves to {ip_str}",
            )


def _guard_url(url: str) -> str | None:
    """Return a user-facing error message if the URL must not be fetched, else None."""
    try:
        validate_url_not_private(url)
    except socket.gaierror:
        return CONNECTION_FAILED_MESSAGE
    except (SSRFBlockedError, ValueError) as e:
        return f"{GENERIC_FAILURE_PREFIX}{e}"
    return None


@dataclass
class FetchResult:
    """Result of fetching a URL (raw HTML before extraction)."""

    html: str | None
    final_url: str
    status_code: int | None
    content_type: str | None
    error: str | None


@dataclass
class ExtractedMetadata:
    """Title and description extracted from a page."""

    title: str
    description: str


@dataclass
class PageContent:
    """A fetched page reduced to what a bookmark needs."""

    title: str
    description: str
    content: str
    final_url: str


def _is_text_content_type(content_type: str) -> bool:
    lowered = content_type.lower()
    # Servers that omit the header almost always send HTML
    return not lowered or lowered.startswith("text/") or "xhtml" in lowered


async def fetch_url(  # noqa: ASYNC109, PLR0911
    url: str,
    timeout: float = DEFAULT_TIMEOUT,
    max_redirects: int = DEFAULT_MAX_REDIRECTS,
) -> FetchResult:
    """
    Fetch a page's HTML with a single GET request.

    Best-effort fetch that returns a user-facing error message on failure rather
    than raising. Follows up to `max_redirects` redirects and captures the final
    URL. No retries.

    Security: Validates that the URL (and the final URL after redirects) does not
    target private/internal networks to prevent SSRF attacks.

    Args:
        url:
            The URL to fetch.
        timeout:
            Request timeout in seconds.
        max_redirects:
            Maximum number of redirects to follow.

    Returns:
        FetchResult containing the HTML or error info.
    """
    guard_error = _guard_url(url)
    if guard_error:
        return FetchResult(
            html=None, final_url=url, status_code=None, content_type=None, error=guard_error,
        )

    try:
        async with httpx.AsyncClient(
            follow_redirects=True,
            max_redirects=max_redirects,
            timeout=timeout,
            headers=BROWSER_HEADERS,
            http2=True,
        ) as client:
            response = await client.get(url)
    except httpx.TimeoutException:
        return FetchResult(
            html=None, final_url=url, status_code=None, content_type=None, error=TIMEOUT_MESSAGE,
        )
    except httpx.ConnectError:
        return FetchResult(
            html=None,
            final_url=url,
            status_code=None,
            content_type=None,
            error=CONNECTION_FAILED_MESSAGE,
        )
    except httpx.TooManyRedirects:
        return FetchResult(
            html=None,
            final_url=url,
            status_code=None,
            content_type=None,
            error=f"{GENERIC_FAILURE_PREFIX}too many redirects",
        )
    except httpx.RequestError as e:
        return FetchResult(
            html=None,
            final_url=url,
            status_code=None,
            content_type=None,
            error=f"{GENERIC_FAILURE_PREFIX}{str(e) or type(e).__name__}",
        )

    final_url = str(response.url)
    content_type = response.headers.get("content-type", "")

    # SSRF protection: validate final URL after redirects
    if final_url != url:
        guard_error = _guard_url(final_url)
        if guard_error:
            return FetchResult(
                html=None,
                final_url=final_url,
                status_code=response.status_code,
                content_type=content_type,
                error=guard_error,
            )

    if not response.is_success:
        error = STATUS_MESSAGES.get(
            response.status_code,
            f"{GENERIC_FAILURE_PREFIX}HTTP {response.status_code}",
        )
        return FetchResult(
            html=None,
            final_url=final_url,
            status_code=response.status_code,
            content_type=content_type,
            error=error,
        )

    if not _is_text_content_type(content_type):
        return FetchResult(
            html=None,
            final_url=final_url,
            status_code=response.status_code,
            content_type=content_type,
            error=f"{GENERIC_FAILURE_PREFIX}unsupported content type {content_type}",
        )

    return FetchResult(
        html=response.text,
        final_url=final_url,
        status_code=response.status_code,
        content_type=content_type,
        error=None,
    )


def truncate_at_word_boundary(text: str, max_chars: int = MAX_CONTENT_CHARS) -> str:
    """
    Cut text to at most `max_chars` characters without splitting a word.

    If the limit falls inside a word, the partial word is dropped. Text that is
    already short enough is returned unchanged.
    """
    if len(text) <= max_chars:
        return text
    truncated = text[:max_chars]
    if text[max_chars].isspace():
        # The limit sits exactly on a word boundary
        return truncated.rstrip()
    last_space = truncated.rfind(" ")
    if last_space == -1:
        return ""
    return truncated[:last_space].rstrip()


def _meta_content(soup: BeautifulSoup, **attrs: str) -> str:
    tag = soup.find("meta", attrs=attrs)
    if tag and tag.get("content"):
        return tag["content"].strip()
    return ""


def _last_path_segment(url: str) -> str:
    segments = [segment for segment in urlparse(url).path.split("/") if segment]
    return segments[-1] if segments else ""


def extract_metadata(soup: BeautifulSoup, url: str) -> ExtractedMetadata:
    """
    Extract title and description from a parsed page.

    Title priority:
    1. <meta property="og:title">
    2. <title> tag
    3. First <h1>
    4. Last segment of the URL path
    5. "Untitled"

    Description priority:
    1. <meta property="og:description">
    2. <meta name="description">

    The final description fallback (start of the extracted content) is applied by
    parse_page(), since content extraction needs the page stripped first.

    Args:
        soup: Parsed page.
        url: URL the page was fetched from.

    Returns:
        ExtractedMetadata with non-empty title and a (possibly empty) description.
    """
    title = _meta_content(soup, property="og:title")
    if not title and soup.title:
        title = _WHITESPACE_RUN.sub(" ", soup.title.get_text()).strip()
    if not title:
        h1 = soup.find("h1")
        if h1:
            title = _WHITESPACE_RUN.sub(" ", h1.get_text(" ")).strip()
    if not title:
        title = _last_path_segment(url)
    if not title:
        title = "Untitled"

    description = (
        _meta_content(soup, property="og:description")
        or _meta_content(soup, name="description")
    )

    return ExtractedMetadata(title=title, description=description)


def _strip_non_content(soup: BeautifulSoup) -> None:
    for tag in soup(NON_CONTENT_TAGS):
        tag.decompose()
    for element in soup.select(NON_CONTENT_CLASS_SELECTOR):
        # html/body can carry utility classes like "loaded"; never drop the whole page
        if element.decomposed or element.name in ("html", "body"):
            continue
        element.decompose()


def extract_content(soup: BeautifulSoup, max_chars: int = MAX_CONTENT_CHARS) -> str:
    """
    Extract the page's main readable text.

    Mutates `soup`: navigation, scripts, styles, ads and similar non-content
    elements are removed first. Text is taken from the first matching semantic
    container (article, main, ...), falling back to the whole page. Whitespace runs
    are collapsed and the result is truncated on a word boundary.

    Args:
        soup: Parsed page.
        max_chars: Maximum length of the returned text.

    Returns:
        Plain text content (may be empty).
    """
    _strip_non_content(soup)

    content = ""
    for selector in MAIN_CONTENT_SELECTORS:
        elements = soup.select(selector)
        if elements:
            content = " ".join(element.get_text(" ") for element in elements)
            break

    if not content.strip():
        root = soup.body or soup
        content = root.get_text(" ")

    content = _WHITESPACE_RUN.sub(" ", content).strip()
    return truncate_at_word_boundary(content, max_chars)


def parse_page(html: str, url: str, max_chars: int = MAX_CONTENT_CHARS) -> PageContent:
    """
    Turn raw HTML into title, description and content.

    Pure function with no I/O. Uses BeautifulSoup with the lxml parser.
    """
    soup = BeautifulSoup(html, "lxml")
    # Read metadata before extract_content() strips headers out of the tree
    metadata = extract_metadata(soup, url)
    content = extract_content(soup, max_chars)
    description = metadata.description or content[:DESCRIPTION_FALLBACK_CHARS].strip()
    return PageContent(
        title=metadata.title,
        description=description,
        content=content,
        final_url=url,
    )


async def fetch_content(  # noqa: ASYNC109
    url: str,
    timeout: float = DEFAULT_TIMEOUT,
    max_redirects: int = DEFAULT_MAX_REDIRECTS,
    max_chars: int = MAX_CONTENT_CHARS,
) -> PageContent:
    """
    Fetch a URL and extract title, description and main content.

    This is the content-fetching stage of bookmark ingestion.

    Args:
        url: The URL to fetch (assumed syntactically valid).
        timeout: Request timeout in seconds.
        max_redirects: Maximum number of redirects to follow.
        max_chars: Maximum length of extracted content.

    Returns:
        PageContent for the page.

    Raises:
        ContentFetchError: If the page could not be fetched. The message is
            user-facing and specific to the failure (timeout, 404, ...).
    """
    result = await fetch_url(url, timeout=timeout, max_redirects=max_redirects)
    if result.error:
        logger.info(
            "Fetching %s failed (status=%s): %s", url, result.status_code, result.error,
        )
        raise ContentFetchError(result.error, status_code=result.status_code)

    page = parse_page(result.html or "", result.final_url, max_chars)
    logger.info(
        "Fetched %s: title=%r, content_length=%d", url, page.title, len(page.content),
    )
    return page
