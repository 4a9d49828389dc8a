"""Service layer for bookmark storage, search, and updates."""
import logging
from dataclasses import dataclass, field
from typing import Literal

from sqlalchemy import ColumnElement, exists, func, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from models.bookmark import Bookmark, BookmarkCategory
from models.tag import Tag, bookmark_tags
from schemas.bookmark import BookmarkBulkUpdate, BookmarkUpdate
from schemas.validators import validate_and_normalize_tags
from services.folder_service import ensure_folder_exists
from services.tag_service import get_or_create_tags, update_bookmark_tags

logger = logging.getLogger(__name__)


class DuplicateUrlError(Exception):
    """Raised when a bookmark with the same URL already exists for the user."""

    def __init__(self, url: str) -> None:
        self.url = url
        super().__init__(f"A bookmark with URL '{url}' already exists")


@dataclass
class BookmarkDraft:
    """A fully assembled bookmark record, ready to be inserted."""

    url: str
    title: str | None
    description: str | None
    content: str | None = None
    ai_summary: str | None = None
    tags: list[str] = field(default_factory=list)
    category: BookmarkCategory = BookmarkCategory.ARTICLE
    warning: str | None = None


def escape_ilike(value: str) -> str:
    """Backslash-escape LIKE wildcards (and the backslash itself) for use with escape="\\"."""
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def _is_url_conflict(error: IntegrityError) -> bool:
    message = str(error)
    # PostgreSQL reports the constraint name, SQLite the column list
    return "uq_bookmarks_user_id_url" in message or "bookmarks.user_id, bookmarks.url" in message


async def url_exists(db: AsyncSession, user_id: int, url: str) -> bool:
    """Return True if the user already has a bookmark for this (normalized) URL."""
    result = await db.execute(
        select(
            exists().where(Bookmark.user_id == user_id, Bookmark.url == url),
        ),
    )
    return bool(result.scalar())


async def create_bookmark(
    db: AsyncSession,
    user_id: int,
    draft: BookmarkDraft,
) -> Bookmark:
    """
    Insert an assembled bookmark, adding any new tags to the user's vocabulary.

    Flushes only; the request's session commits.

    Raises:
        DuplicateUrlError: If the URL was stored for this user after the
            url_exists() check (concurrent submissions).
    """
    tag_objects = await get_or_create_tags(db, user_id, draft.tags)
    bookmark = Bookmark(
        user_id=user_id,
        url=draft.url,
        title=draft.title,
        description=draft.description,
        content=draft.content,
        ai_summary=draft.ai_summary,
        category=draft.category.value,
        warning=draft.warning,
    )
    bookmark.tag_objects = tag_objects
    db.add(bookmark)
    try:
        await db.flush()
    except IntegrityError as e:
        await db.rollback()
        if _is_url_conflict(e):
            raise DuplicateUrlError(draft.url) from e
        raise
    await db.refresh(bookmark)
    await db.refresh(bookmark, attribute_names=["tag_objects"])
    return bookmark


async def get_bookmark(
    db: AsyncSession,
    user_id: int,
    bookmark_id: int,
) -> Bookmark | None:
    """Get a bookmark by ID, scoped to user, with its tags loaded."""
    result = await db.execute(
        select(Bookmark)
        .options(selectinload(Bookmark.tag_objects))
        .where(
            Bookmark.id == bookmark_id,
            Bookmark.user_id == user_id,
        ),
    )
    return result.scalar_one_or_none()


def _has_tag(user_id: int, names: list[str]) -> ColumnElement[bool]:
    """EXISTS clause: the bookmark carries one of `names`."""
    return exists(
        select(bookmark_tags.c.bookmark_id)
        .join(Tag, Tag.id == bookmark_tags.c.tag_id)
        .where(
            bookmark_tags.c.bookmark_id == Bookmark.id,
            Tag.user_id == user_id,
            Tag.name.in_(names),
        ),
    )


def _matches_text(query: str) -> ColumnElement[bool]:
    pattern = f"%{escape_ilike(query)}%"
    return or_(*(
        column.ilike(pattern, escape="\\")
        for column in (Bookmark.title, Bookmark.description, Bookmark.url, Bookmark.ai_summary)
    ))


SORT_COLUMNS = {
    "created_at": Bookmark.created_at,
    "updated_at": Bookmark.updated_at,
    # Untitled bookmarks sort by their URL
    "title": func.coalesce(Bookmark.title, Bookmark.url),
}


async def search_bookmarks(
    db: AsyncSession,
    user_id: int,
    query: str | None = None,
    tags: list[str] | None = None,
    tag_match: Literal["all", "any"] = "all",
    category: BookmarkCategory | None = None,
    folder_id: int | None = None,
    favorites_only: bool = False,
    sort_by: Literal["created_at", "updated_at", "title"] = "created_at",
    sort_order: Literal["asc", "desc"] = "desc",
    offset: int = 0,
    limit: int = 50,
) -> tuple[list[Bookmark], int]:
    """
    Find the user's bookmarks matching every given filter.

    Args:
        query: Substring matched case-insensitively against title, description,
            URL and AI summary. LIKE wildcards in it match literally.
        tags: Tag names; with tag_match="all" a bookmark must carry each of them,
            with "any" at least one.
        category, folder_id, favorites_only: Further narrowing; folder_id
            matches bookmarks directly inside that folder only.
        sort_by, sort_order: Ordering; ties fall back to creation time, then id.
        offset, limit: The page to return.

    Returns:
        (bookmarks on this page, total number of matches).

    Raises:
        ValueError: If a tag filter is not a valid tag name.
    """
    conditions: list[ColumnElement[bool]] = [Bookmark.user_id == user_id]
    if query:
        conditions.append(_matches_text(query))
    tag_names = validate_and_normalize_tags(tags) if tags else []
    if tag_names and tag_match == "all":
        conditions.extend(_has_tag(user_id, [name]) for name in tag_names)
    elif tag_names:
        conditions.append(_has_tag(user_id, tag_names))
    if category is not None:
        conditions.append(Bookmark.category == category.value)
    if folder_id is not None:
        conditions.append(Bookmark.folder_id == folder_id)
    if favorites_only:
        conditions.append(Bookmark.is_favorite.is_(True))

    total = await db.scalar(select(func.count(Bookmark.id)).where(*conditions)) or 0

    # created_at then id break ties so pages never overlap
    columns = [SORT_COLUMNS[sort_by], Bookmark.created_at, Bookmark.id]
    order = [c.desc() if sort_order == "desc" else c.asc() for c in columns]
    page = await db.execute(
        select(Bookmark)
        .options(selectinload(Bookmark.tag_objects))
        .where(*conditions)
        .order_by(*order)
        .offset(offset)
        .limit(limit),
    )
    return list(page.scalars()), total


async def update_bookmark(
    db: AsyncSession,
    user_id: int,
    bookmark_id: int,
    data: BookmarkUpdate,
) -> Bookmark | None:
    """
    Apply a partial update. Returns None if the user has no such bookmark.

    Only fields present in the request are changed. folder_id=null moves the
    bookmark to the root; category and is_favorite cannot be cleared.

    Raises:
        FolderNotFoundError: If folder_id names a folder the user does not own.
    """
    bookmark = await get_bookmark(db, user_id, bookmark_id)
    if bookmark is None:
        return None

    update_data = data.model_dump(exclude_unset=True)
    new_tags = update_data.pop("tags", None)

    # Not nullable columns: an explicit null leaves them unchanged
    for key in ("category", "is_favorite"):
        if key in update_data and update_data[key] is None:
            del update_data[key]

    if update_data.get("folder_id") is not None:
        await ensure_folder_exists(db, user_id, update_data["folder_id"])
    if "category" in update_data:
        update_data["category"] = BookmarkCategory(update_data["category"]).value

    for field_name, value in update_data.items():
        setattr(bookmark, field_name, value)

    if new_tags is not None:
        await update_bookmark_tags(db, bookmark, new_tags)

    bookmark.updated_at = func.now()
    await db.flush()
    await db.refresh(bookmark)
    await db.refresh(bookmark, attribute_names=["tag_objects"])
    return bookmark


async def bulk_update_bookmarks(
    db: AsyncSession,
    user_id: int,
    data: BookmarkBulkUpdate,
) -> tuple[list[Bookmark], list[int]]:
    """
    Apply the same change to each listed bookmark independently.

    Moving to a folder, (un)favoriting, recategorizing, and adding tags are
    supported; existing tags are kept when adding.

    Returns:
        Tuple of (updated bookmarks, ids that were not found for this user).

    Raises:
        FolderNotFoundError: If folder_id names a folder the user does not own.
    """
    fields = data.model_dump(exclude_unset=True, exclude={"bookmark_ids", "add_tags"})
    if fields.get("folder_id") is not None:
        await ensure_folder_exists(db, user_id, fields["folder_id"])
    for key in ("category", "is_favorite"):
        if key in fields and fields[key] is None:
            del fields[key]
    if "category" in fields:
        fields["category"] = BookmarkCategory(fields["category"]).value

    tag_objects = (
        await get_or_create_tags(db, user_id, data.add_tags) if data.add_tags else []
    )

    updated: list[Bookmark] = []
    not_found: list[int] = []
    for bookmark_id in dict.fromkeys(data.bookmark_ids):
        bookmark = await get_bookmark(db, user_id, bookmark_id)
        if bookmark is None:
            not_found.append(bookmark_id)
            continue
        for field_name, value in fields.items():
            setattr(bookmark, field_name, value)
        if tag_objects:
            current = {tag.id for tag in bookmark.tag_objects}
            bookmark.tag_objects.extend(t for t in tag_objects if t.id not in current)
        bookmark.updated_at = func.now()
        updated.append(bookmark)

    await db.flush()
    for bookmark in updated:
        await db.refresh(bookmark)
        await db.refresh(bookmark, attribute_names=["tag_objects"])

    if not_found:
        logger.info("Bulk update for user %s skipped unknown ids %s", user_id, not_found)
    return updated, not_found


async def delete_bookmark(
    db: AsyncSession,
    user_id: int,
    bookmark_id: int,
) -> bool:
    """
    Permanently delete a bookmark. Its tags stay in the user's vocabulary.

    Returns:
        True if deleted, False if not found.
    """
    bookmark = await get_bookmark(db, user_id, bookmark_id)
    if bookmark is None:
        return False

    await db.delete(bookmark)
    await db.flush()
    return True
