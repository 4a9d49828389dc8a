"""
AI enrichment of fetched pages: summary, tags, and category.

The three requests are independent and run concurrently. A provider error in one
of them is replaced by that request's default instead of failing the analysis;
only a missing credential, an unsupported provider, or every provider request
failing is reported to the caller as an AnalysisError.
"""
import asyncio
import json
import logging
import re
from collections.abc import Awaitable
from dataclasses import dataclass, field
from typing import TypeVar

import httpx

from core.config import Settings, get_settings
from models.bookmark import BookmarkCategory
from services.llm_client import LLMClient, LLMProviderError, create_llm_client

logger = logging.getLogger(__name__)

T = TypeVar("T")

SUMMARY_FAILED_MESSAGE = "Summary generation failed. Please try again later."
EMPTY_SUMMARY_MESSAGE = "No summary available."

SUMMARY_SYSTEM_PROMPT = (
    "You are a helpful assistant that generates concise summaries of web content. "
    "Generate a brief, informative summary in 2-3 sentences."
)
TAGS_SYSTEM_PROMPT = """You are a tag generator for web content. Your task is to generate 3-5 \
specific, descriptive tags that best categorize the content.

Rules:
1. Return ONLY a JSON array of lowercase strings, no other text
2. Each tag should be 1-3 words maximum
3. Never use generic terms like 'other', 'miscellaneous', 'general'
4. Focus on the main topics and themes
5. Include technology names, concepts, or proper nouns when relevant

Example good response: ["artificial intelligence", "machine learning", "neural networks"]
Example bad response: ["technology", "article", "general", "other"]"""
CATEGORY_SYSTEM_PROMPT = (
    "You are a content classifier that categorizes web content into one of three "
    "categories: 'Article', 'Video', or 'Research'. Return ONLY the category name as a "
    "single word, no explanation or additional text. Use these guidelines:\n"
    "- 'Video': For video content, video sharing sites, or video-focused pages\n"
    "- 'Research': For academic papers, scientific articles, research publications, "
    "or technical documentation\n"
    "- 'Article': For general articles, blog posts, news, and other text-based content"
)

VIDEO_URL_MARKERS = ("youtube", "vimeo", "dailymotion", "video")
RESEARCH_URL_MARKERS = ("arxiv", "research", "paper", "doi.org")

_CODE_FENCE = re.compile(r"^```[a-zA-Z]*\s*|\s*```$")


class AnalysisError(Exception):
    """Base class for conditions that prevent any AI analysis."""

    pass


class CredentialMissingError(AnalysisError):
    """Raised when the user has no AI provider API key configured."""

    def __init__(self) -> None:
        super().__init__("No AI API key configured")


class AnalysisUnavailableError(AnalysisError):
    """Raised when the provider cannot be used at all (unsupported or every call failed)."""

    pass


@dataclass
class AnalysisResult:
    """Output of a (possibly partially failed) analysis."""

    summary: str
    tags: list[str]
    category: BookmarkCategory
    # Names of the requests ('summary', 'tags', 'category') that hit a provider error
    failed_calls: frozenset[str] = field(default_factory=frozenset)

    @property
    def partially_failed(self) -> bool:
        return bool(self.failed_calls)


def categorize_by_url(url: str) -> BookmarkCategory | None:
    """Return the category implied by well-known URL patterns, if any."""
    lowered = url.lower()
    if any(marker in lowered for marker in VIDEO_URL_MARKERS):
        return BookmarkCategory.VIDEO
    if any(marker in lowered for marker in RESEARCH_URL_MARKERS):
        return BookmarkCategory.RESEARCH
    return None


def parse_tag_response(raw: str) -> list[str]:
    """
    Parse the tag request's answer into a list of strings.

    Accepts a bare JSON array or one wrapped in a markdown code fence. Anything
    else (prose, an object, invalid JSON) yields an empty list.
    """
    text = _CODE_FENCE.sub("", raw.strip())
    try:
        parsed = json.loads(text)
    except json.JSONDecodeError:
        start, end = text.find("["), text.rfind("]")
        if start == -1 or end <= start:
            return []
        try:
            parsed = json.loads(text[start:end + 1])
        except json.JSONDecodeError:
            return []

    if not isinstance(parsed, list):
        return []
    return [item for item in parsed if isinstance(item, str)]


def _page_prompt(url: str, text: str) -> str:
    return f"URL: {url}\n\nContent: {text}"


async def generate_summary(client: LLMClient, text: str) -> str:
    """
    Ask for a 2-3 sentence summary.

    Raises:
        LLMProviderError: If the provider request fails.
    """
    answer = await client.complete(
        SUMMARY_SYSTEM_PROMPT,
        text[:client.content_char_limit],
        max_tokens=150,
        temperature=0.3,
    )
    return answer.strip() or EMPTY_SUMMARY_MESSAGE


async def generate_tags(client: LLMClient, url: str, text: str) -> list[str]:
    """
    Ask for 3-5 tags. Malformed answers produce an empty list, not an error.

    Raises:
        LLMProviderError: If the provider request fails.
    """
    answer = await client.complete(
        TAGS_SYSTEM_PROMPT,
        _page_prompt(url, text[:client.content_char_limit]),
        max_tokens=100,
        temperature=0.3,
    )
    tags = parse_tag_response(answer)
    if not tags:
        logger.info("Tag response for %s could not be parsed: %r", url, answer[:200])
    return tags


async def determine_category(client: LLMClient, url: str, text: str) -> BookmarkCategory:
    """
    Classify the page, asking the provider only when the URL is not conclusive.

    Raises:
        LLMProviderError: If the provider request fails.
    """
    shortcut = categorize_by_url(url)
    if shortcut is not None:
        return shortcut

    answer = (await client.complete(
        CATEGORY_SYSTEM_PROMPT,
        _page_prompt(url, text[:client.content_char_limit]),
        max_tokens=10,
        temperature=0.1,
    )).strip()
    if answer in {category.value for category in BookmarkCategory}:
        return BookmarkCategory(answer)
    logger.info("Provider returned invalid category %r for %s, using Article", answer, url)
    return BookmarkCategory.ARTICLE


async def _with_default(
    name: str,
    call: Awaitable[T],
    default: T,
    failed: set[str],
) -> T:
    try:
        return await call
    except LLMProviderError as e:
        logger.warning("AI %s request failed: %s", name, e)
        failed.add(name)
        return default


async def analyze_content(
    url: str,
    text: str,
    credential: str | None,
    *,
    settings: Settings | None = None,
    http_client: httpx.AsyncClient | None = None,
) -> AnalysisResult:
    """
    Produce a summary, tags, and a category for a fetched page.

    Args:
        url: The page URL (used for the category shortcut and as prompt context).
        text: Extracted page text; cut to the provider's character limit.
        credential: The user's API key for the configured provider.
        settings: Application settings (provider, models, timeout).
        http_client: Client to send provider requests with; one is created when omitted.

    Returns:
        AnalysisResult, with per-request defaults for any request that failed.

    Raises:
        CredentialMissingError: If no credential is configured. No request is made.
        AnalysisUnavailableError: If the provider is unsupported, the key cannot be
            sent in a header, or every provider request failed.
    """
    settings = settings or get_settings()
    if not credential or not credential.strip():
        raise CredentialMissingError
    if not credential.strip().isascii():
        # HTTP header values must be ASCII; such a key can never authenticate
        raise AnalysisUnavailableError("API key contains non-ASCII characters")

    if http_client is None:
        async with httpx.AsyncClient(timeout=settings.ai_request_timeout) as owned_client:
            return await analyze_content(
                url, text, credential, settings=settings, http_client=owned_client,
            )

    try:
        client = create_llm_client(
            settings.ai_provider, credential.strip(), http_client, settings,
        )
    except ValueError as e:
        raise AnalysisUnavailableError(str(e)) from e

    failed: set[str] = set()
    summary, tags, category = await asyncio.gather(
        _with_default("summary", generate_summary(client, text), SUMMARY_FAILED_MESSAGE, failed),
        _with_default("tags", generate_tags(client, url, text), [], failed),
        _with_default(
            "category",
            determine_category(client, url, text),
            BookmarkCategory.ARTICLE,
            failed,
        ),
    )

    attempted = {"summary", "tags"}
    if categorize_by_url(url) is None:
        attempted.add("category")
    if failed >= attempted:
        raise AnalysisUnavailableError(
            f"All {client.provider_name} requests failed",
        )

    logger.debug(
        "Analysis of %s complete: %d tags, category %s, failed %s",
        url, len(tags), category, sorted(failed),
    )
    return AnalysisResult(
        summary=summary,
        tags=tags,
        category=category,
        failed_calls=frozenset(failed),
    )
