"""Pydantic schemas for bookmark endpoints."""
from datetime import datetime
from typing import Annotated, Any

from pydantic import (
    AfterValidator,
    BaseModel,
    BeforeValidator,
    ConfigDict,
    Field,
    SerializerFunctionWrapHandler,
    model_serializer,
    model_validator,
)

from models.bookmark import BookmarkCategory
from schemas.validators import (
    validate_and_normalize_tags,
    validate_description_length,
    validate_title_length,
)

# Columns copied from a Bookmark row; tags are derived from tag_objects
_BOOKMARK_COLUMNS = (
    "id", "url", "title", "description", "ai_summary", "category", "folder_id",
    "is_favorite", "warning", "created_at", "updated_at", "content",
)


def _optional_tags(v: list[str] | None) -> list[str] | None:
    return None if v is None else validate_and_normalize_tags(v)


TagList = Annotated[list[str] | None, BeforeValidator(_optional_tags)]
Title = Annotated[str | None, AfterValidator(validate_title_length)]
Description = Annotated[str | None, AfterValidator(validate_description_length)]


class BookmarkCreate(BaseModel):
    """
    A URL to save.

    Everything else (title, description, summary, tags, category) comes from
    ingestion. Scheme-less input such as 'example.com/page' is accepted here and
    normalized later, so this is a plain string rather than HttpUrl.
    """

    url: str = Field(..., min_length=1, max_length=2048)


class BookmarkUpdate(BaseModel):
    """
    Partial update; only fields present in the body change.

    Send folder_id=null to move the bookmark back to the root.
    """

    title: Title = None
    description: Description = None
    tags: TagList = None
    category: BookmarkCategory | None = None
    folder_id: int | None = None
    is_favorite: bool | None = None


class BookmarkBulkUpdate(BaseModel):
    """
    One change applied to several bookmarks.

    Each id is handled on its own; ids that do not exist (or belong to another
    user) are reported back instead of failing the request. `add_tags` extends
    each bookmark's tags rather than replacing them.
    """

    bookmark_ids: list[int] = Field(..., min_length=1, max_length=500)
    folder_id: int | None = None
    is_favorite: bool | None = None
    category: BookmarkCategory | None = None
    add_tags: TagList = None


class BookmarkListItem(BaseModel):
    """A bookmark as shown in lists: everything except the extracted page text."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    url: str
    title: str | None
    description: str | None
    ai_summary: str | None
    tags: list[str]
    category: BookmarkCategory
    folder_id: int | None = None
    is_favorite: bool = False
    warning: str | None = None
    created_at: datetime
    updated_at: datetime

    @model_validator(mode="before")
    @classmethod
    def extract_tag_names(cls, data: Any) -> Any:
        """
        Build the input from a Bookmark row, with tags as sorted names.

        tag_objects is read from the instance __dict__ so an unloaded
        relationship is never lazy-loaded outside the async context.
        """
        if not hasattr(data, "__tablename__"):
            return data
        values = {key: getattr(data, key) for key in _BOOKMARK_COLUMNS if hasattr(data, key)}
        loaded_tags = data.__dict__.get("tag_objects") or []
        values["tags"] = sorted(tag.name for tag in loaded_tags)
        return values

    @model_serializer(mode="wrap")
    def drop_empty_warning(self, handler: SerializerFunctionWrapHandler) -> dict[str, Any]:
        """Only include `warning` when the bookmark was saved in a degraded state."""
        serialized = handler(self)
        if serialized.get("warning") is None:
            serialized.pop("warning", None)
        return serialized


class BookmarkResponse(BookmarkListItem):
    """A single bookmark including its extracted content."""

    content: str | None = None


class BookmarkListResponse(BaseModel):
    """One page of search results."""

    items: list[BookmarkListItem]
    # Matches before pagination
    total: int
    offset: int
    limit: int
    has_more: bool


class BookmarkBulkUpdateResponse(BaseModel):
    updated: list[BookmarkListItem]
    not_found: list[int]
