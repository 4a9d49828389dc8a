"""
Per-user tag vocabulary.

Tags are rows owned by a user and shared by all of that user's bookmarks. They
outlive the bookmarks that introduced them, so the vocabulary keeps steering
AI-suggested tags toward names the user already has.
"""
import logging

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from models.bookmark import Bookmark
from models.tag import Tag, bookmark_tags
from schemas.tag import TagCount
from schemas.validators import validate_and_normalize_tags

logger = logging.getLogger(__name__)


class TagNotFoundError(Exception):
    """Raised when the user has no tag with the given name."""

    def __init__(self, tag_name: str) -> None:
        self.tag_name = tag_name
        super().__init__(f"Tag '{tag_name}' not found")


class TagAlreadyExistsError(Exception):
    """Raised when a rename target is already in the user's vocabulary."""

    def __init__(self, tag_name: str) -> None:
        self.tag_name = tag_name
        super().__init__(f"Tag '{tag_name}' already exists")


def _clean(name: str) -> str:
    return name.strip().lower()


async def get_or_create_tags(
    db: AsyncSession,
    user_id: int,
    tag_names: list[str],
) -> list[Tag]:
    """
    Resolve tag names to Tag rows, adding missing names to the vocabulary.

    Names are validated first, so a bad name raises before anything is added.

    Returns:
        Tags in the order the names were given, duplicates removed.

    Raises:
        ValueError: If a name is not a valid tag.
    """
    names = validate_and_normalize_tags(tag_names) if tag_names else []
    if not names:
        return []

    rows = await db.execute(select(Tag).where(Tag.user_id == user_id, Tag.name.in_(names)))
    by_name = {tag.name: tag for tag in rows.scalars()}

    missing = [Tag(user_id=user_id, name=name) for name in names if name not in by_name]
    if missing:
        db.add_all(missing)
        await db.flush()
        by_name.update((tag.name, tag) for tag in missing)
    return [by_name[name] for name in names]


async def get_user_tag_names(db: AsyncSession, user_id: int) -> set[str]:
    """Return the names of every tag in the user's vocabulary."""
    result = await db.execute(select(Tag.name).where(Tag.user_id == user_id))
    return set(result.scalars())


async def get_user_tags_with_counts(
    db: AsyncSession,
    user_id: int,
    include_zero_count: bool = True,
) -> list[TagCount]:
    """
    List the user's tags with how many bookmarks carry each one.

    Tags no bookmark carries are included with count 0 unless
    include_zero_count is False. Sorted by count desc, then name asc.
    """
    usage = func.count(bookmark_tags.c.bookmark_id).label("count")
    query = select(Tag.name, usage).where(Tag.user_id == user_id)
    if include_zero_count:
        query = query.outerjoin(bookmark_tags, bookmark_tags.c.tag_id == Tag.id)
    else:
        query = query.join(bookmark_tags, bookmark_tags.c.tag_id == Tag.id)
    query = query.group_by(Tag.id, Tag.name).order_by(usage.desc(), Tag.name)

    rows = await db.execute(query)
    return [TagCount(name=name, count=count) for name, count in rows.tuples()]


async def get_tag_by_name(db: AsyncSession, user_id: int, tag_name: str) -> Tag | None:
    """Find one of the user's tags by (case-insensitive) name."""
    result = await db.execute(
        select(Tag).where(Tag.user_id == user_id, Tag.name == _clean(tag_name)),
    )
    return result.scalar_one_or_none()


async def rename_tag(db: AsyncSession, user_id: int, old_name: str, new_name: str) -> Tag:
    """
    Rename a tag in place; every bookmark carrying it shows the new name.

    Renaming to the same name (after normalization) is a no-op.

    Raises:
        TagNotFoundError: If old_name is not in the vocabulary.
        TagAlreadyExistsError: If new_name already is.
    """
    tag = await get_tag_by_name(db, user_id, old_name)
    if tag is None:
        raise TagNotFoundError(_clean(old_name))

    target = _clean(new_name)
    if tag.name == target:
        return tag
    if await get_tag_by_name(db, user_id, target) is not None:
        raise TagAlreadyExistsError(target)

    previous = tag.name
    tag.name = target
    try:
        await db.flush()
    except IntegrityError as e:
        # A concurrent request created the target name after the check above
        await db.rollback()
        raise TagAlreadyExistsError(target) from e
    logger.info("Renamed tag %r to %r for user %s", previous, target, user_id)
    return tag


async def delete_tag(db: AsyncSession, user_id: int, tag_name: str) -> None:
    """
    Remove a tag from the vocabulary and from every bookmark carrying it.

    Raises:
        TagNotFoundError: If the tag is not in the vocabulary.
    """
    tag = await get_tag_by_name(db, user_id, tag_name)
    if tag is None:
        raise TagNotFoundError(_clean(tag_name))
    await db.delete(tag)
    await db.flush()


async def update_bookmark_tags(db: AsyncSession, bookmark: Bookmark, tag_names: list[str]) -> None:
    """Replace a bookmark's tags. Requires bookmark.tag_objects to be loaded."""
    bookmark.tag_objects = await get_or_create_tags(db, bookmark.user_id, tag_names)
    await db.flush()
