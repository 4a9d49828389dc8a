"""Pydantic schemas for folder endpoints."""
from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, field_validator


class FolderCreate(BaseModel):
    """Schema for creating a folder."""

    name: str = Field(..., min_length=1, max_length=100)
    description: str | None = Field(default=None, max_length=1000)
    parent_id: int | None = None
    color: str | None = Field(default=None, max_length=20)
    icon: str | None = Field(default=None, max_length=50)

    @field_validator("name")
    @classmethod
    def strip_name(cls, v: str) -> str:
        """Reject names that are only whitespace."""
        stripped = v.strip()
        if not stripped:
            raise ValueError("Folder name is required")
        return stripped


class FolderUpdate(BaseModel):
    """Schema for updating a folder. Send parent_id=null to move it to the root."""

    name: str | None = Field(default=None, min_length=1, max_length=100)
    description: str | None = Field(default=None, max_length=1000)
    parent_id: int | None = None
    color: str | None = Field(default=None, max_length=20)
    icon: str | None = Field(default=None, max_length=50)

    @field_validator("name")
    @classmethod
    def strip_name(cls, v: str | None) -> str | None:
        """Reject names that are only whitespace."""
        if v is None:
            return None
        stripped = v.strip()
        if not stripped:
            raise ValueError("Folder name is required")
        return stripped


class FolderResponse(BaseModel):
    """Schema for a single folder."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    description: str | None
    parent_id: int | None
    color: str | None
    icon: str | None
    created_at: datetime
    updated_at: datetime


class FolderTreeNode(FolderResponse):
    """A folder with its nested subfolders and the number of bookmarks it holds."""

    bookmark_count: int = 0
    subfolders: list["FolderTreeNode"] = []
