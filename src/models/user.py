"""Account owning bookmarks, folders and a tag vocabulary."""
from typing import TYPE_CHECKING

from sqlalchemy import String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from models.base import Base, TimestampMixin

if TYPE_CHECKING:
    from models.bookmark import Bookmark
    from models.folder import Folder
    from models.tag import Tag


class User(Base, TimestampMixin):
    """An Auth0 identity plus the API key used to analyze that user's bookmarks."""

    __tablename__ = "users"

    id: Mapped[int] = mapped_column(primary_key=True)
    # Auth0 'sub' claim
    auth0_id: Mapped[str] = mapped_column(String(255), unique=True, index=True)
    email: Mapped[str | None] = mapped_column(String(255))
    # Write-only from the API's point of view; responses expose has_ai_api_key
    ai_api_key: Mapped[str | None] = mapped_column(Text)

    bookmarks: Mapped[list["Bookmark"]] = relationship(
        back_populates="user", cascade="all, delete-orphan",
    )
    folders: Mapped[list["Folder"]] = relationship(
        back_populates="user", cascade="all, delete-orphan",
    )
    tags: Mapped[list["Tag"]] = relationship(
        back_populates="user", cascade="all, delete-orphan",
    )
