"""
Bookmark ingestion: validate, fetch, analyze, normalize tags, persist.

A submitted URL is rejected only when it is syntactically invalid or already
bookmarked by the user. Every later failure (unreachable page, missing API key,
provider errors) still saves the bookmark, with placeholder summary and tags and
a warning describing what went wrong. Only the final database write can fail
the whole ingestion.
"""
import logging
from dataclasses import dataclass, field
from enum import StrEnum

import httpx
from sqlalchemy.ext.asyncio import AsyncSession

from core.config import Settings, get_settings
from models.bookmark import Bookmark, BookmarkCategory
from services import bookmark_service, tag_service
from services.bookmark_service import BookmarkDraft, DuplicateUrlError
from services.content_analyzer import (
    AnalysisResult,
    AnalysisUnavailableError,
    CredentialMissingError,
    analyze_content,
    categorize_by_url,
)
from services.tag_normalizer import normalize_tags
from services.url_normalizer import is_valid_url, normalize_url
from services.url_scraper import ContentFetchError, PageContent, fetch_content

logger = logging.getLogger(__name__)

MAX_TAGS_PER_BOOKMARK = 5


class IngestionStage(StrEnum):
    """Pipeline stages, in the order a fully successful ingestion passes through them."""

    VALIDATING = "validating"
    FETCHING = "fetching"
    ANALYZING = "analyzing"
    NORMALIZING = "normalizing"
    PERSISTING = "persisting"
    DONE = "done"


@dataclass(frozen=True)
class DegradedDefaults:
    """Placeholder values stored when a stage fails."""

    summary: str
    tags: tuple[str, ...]
    warning: str


# The summary is replaced by the fetch error message at runtime
FETCH_FAILED_DEFAULTS = DegradedDefaults(
    summary="Failed to fetch content. Please check the URL and try again.",
    tags=("error", "fetch-failed", "invalid-url"),
    warning="Content fetching failed. The bookmark was saved but without content analysis.",
)
CREDENTIAL_MISSING_DEFAULTS = DegradedDefaults(
    summary="AI analysis skipped: no AI API key configured.",
    tags=("error", "missing-api-key", "retry"),
    warning="No AI API key provided. Please add your API key in account settings.",
)
ANALYSIS_FAILED_DEFAULTS = DegradedDefaults(
    summary="AI analysis failed. Please try again later.",
    tags=("error", "failed", "retry"),
    warning="AI analysis failed. The bookmark was saved without AI analysis.",
)
PARTIAL_ANALYSIS_WARNING = (
    "AI analysis partially failed. The bookmark was saved with limited analysis."
)


class InvalidUrlError(Exception):
    """Raised when the submitted URL is not a usable http(s) URL."""

    def __init__(self, url: str) -> None:
        self.url = url
        super().__init__(f"Invalid URL: '{url}'")


@dataclass
class IngestionResult:
    """The stored bookmark plus how the pipeline got there."""

    bookmark: Bookmark
    warning: str | None = None
    stages: list[IngestionStage] = field(default_factory=list)

    @property
    def degraded(self) -> bool:
        return self.warning is not None


def _truncate(value: str, max_length: int) -> str:
    return value if len(value) <= max_length else value[:max_length]


def _fallback_category(url: str) -> BookmarkCategory:
    return categorize_by_url(url) or BookmarkCategory.ARTICLE


async def ingest_bookmark(
    db: AsyncSession,
    user_id: int,
    raw_url: str,
    credential: str | None,
    settings: Settings | None = None,
    http_client: httpx.AsyncClient | None = None,
) -> IngestionResult:
    """
    Turn a submitted URL into a stored, enriched bookmark.

    Args:
        db: Database session.
        user_id: Owner of the new bookmark.
        raw_url: The URL as submitted.
        credential: The user's AI provider key, if any.
        settings: Application settings; loaded when omitted.
        http_client: Client for AI provider requests; created per call when omitted.

    Returns:
        IngestionResult with the persisted bookmark. `warning` is set when any
        stage degraded.

    Raises:
        InvalidUrlError: If the URL is not valid. Nothing is stored.
        DuplicateUrlError: If the user already bookmarked the normalized URL.
            Nothing is stored.
        SQLAlchemyError: If the bookmark could not be written.
    """
    settings = settings or get_settings()
    stages = [IngestionStage.VALIDATING]

    url = normalize_url(raw_url)
    if not is_valid_url(url):
        logger.info("Rejected invalid URL %r for user %s", raw_url, user_id)
        raise InvalidUrlError(raw_url)
    if await bookmark_service.url_exists(db, user_id, url):
        logger.info("Rejected duplicate URL %s for user %s", url, user_id)
        raise DuplicateUrlError(url)

    stages.append(IngestionStage.FETCHING)
    try:
        page = await fetch_content(
            url,
            timeout=settings.fetch_timeout,
            max_redirects=settings.fetch_max_redirects,
            max_chars=settings.max_content_chars,
        )
    except ContentFetchError as e:
        logger.warning("Fetching %s failed, saving without content: %s", url, e)
        draft = BookmarkDraft(
            url=url,
            title=_truncate(raw_url, settings.max_title_length),
            description="",
            ai_summary=str(e) or FETCH_FAILED_DEFAULTS.summary,
            tags=list(FETCH_FAILED_DEFAULTS.tags),
            category=_fallback_category(url),
            warning=FETCH_FAILED_DEFAULTS.warning,
        )
        return await _persist(db, user_id, draft, stages)

    stages.append(IngestionStage.ANALYZING)
    try:
        analysis = await analyze_content(
            url, page.content, credential, settings=settings, http_client=http_client,
        )
    except CredentialMissingError:
        logger.warning("No AI API key for user %s, saving %s without analysis", user_id, url)
        draft = _degraded_analysis_draft(url, page, settings, CREDENTIAL_MISSING_DEFAULTS)
        return await _persist(db, user_id, draft, stages)
    except AnalysisUnavailableError as e:
        logger.warning("AI analysis of %s failed, saving without analysis: %s", url, e)
        draft = _degraded_analysis_draft(url, page, settings, ANALYSIS_FAILED_DEFAULTS)
        return await _persist(db, user_id, draft, stages)

    stages.append(IngestionStage.NORMALIZING)
    vocabulary = await tag_service.get_user_tag_names(db, user_id)
    tags = normalize_tags(analysis.tags, vocabulary, max_tags=MAX_TAGS_PER_BOOKMARK)

    warning = None
    if analysis.partially_failed:
        logger.warning(
            "AI analysis of %s partially failed (%s)",
            url,
            ", ".join(sorted(analysis.failed_calls)),
        )
        warning = PARTIAL_ANALYSIS_WARNING

    draft = _analyzed_draft(url, page, settings, analysis, tags, warning)
    return await _persist(db, user_id, draft, stages)


def _analyzed_draft(
    url: str,
    page: PageContent,
    settings: Settings,
    analysis: AnalysisResult,
    tags: list[str],
    warning: str | None,
) -> BookmarkDraft:
    return BookmarkDraft(
        url=url,
        title=_truncate(page.title, settings.max_title_length),
        description=_truncate(page.description, settings.max_description_length),
        content=page.content,
        ai_summary=analysis.summary,
        tags=tags,
        category=analysis.category,
        warning=warning,
    )


def _degraded_analysis_draft(
    url: str,
    page: PageContent,
    settings: Settings,
    defaults: DegradedDefaults,
) -> BookmarkDraft:
    return BookmarkDraft(
        url=url,
        title=_truncate(page.title, settings.max_title_length),
        description=_truncate(page.description, settings.max_description_length),
        content=page.content,
        ai_summary=defaults.summary,
        tags=list(defaults.tags),
        category=_fallback_category(url),
        warning=defaults.warning,
    )


async def _persist(
    db: AsyncSession,
    user_id: int,
    draft: BookmarkDraft,
    stages: list[IngestionStage],
) -> IngestionResult:
    stages.append(IngestionStage.PERSISTING)
    bookmark = await bookmark_service.create_bookmark(db, user_id, draft)
    stages.append(IngestionStage.DONE)
    logger.info(
        "Saved bookmark %s for user %s (%s)",
        bookmark.id, user_id, "degraded" if draft.warning else "complete",
    )
    return IngestionResult(bookmark=bookmark, warning=draft.warning, stages=stages)
