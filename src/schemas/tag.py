"""Pydantic schemas for tag endpoints."""
from datetime import datetime
from typing import Annotated

from pydantic import AfterValidator, BaseModel, ConfigDict, Field

from schemas.validators import validate_and_normalize_tag

TagName = Annotated[
    str,
    Field(min_length=1, max_length=100),
    AfterValidator(validate_and_normalize_tag),
]


class TagCount(BaseModel):
    """A vocabulary entry and how many of the user's bookmarks carry it."""

    name: str
    count: int


class TagListResponse(BaseModel):
    tags: list[TagCount]


class TagResponse(BaseModel):
    """A single tag, as returned after a rename."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    created_at: datetime


class TagRenameRequest(BaseModel):
    """New name for a tag; normalized and validated like any user-entered tag."""

    new_name: TagName
