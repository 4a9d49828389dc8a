"""Bookmark model for storing user bookmarks."""
from enum import StrEnum
from typing import TYPE_CHECKING

from sqlalchemy import Boolean, ForeignKey, String, Text, UniqueConstraint, false
from sqlalchemy.orm import Mapped, mapped_column, relationship

from models.base import Base, TimestampMixin
from models.tag import bookmark_tags

if TYPE_CHECKING:
    from models.tag import Tag
    from models.user import User


class BookmarkCategory(StrEnum):
    """Coarse content classification of a bookmarked page."""

    ARTICLE = "Article"
    VIDEO = "Video"
    RESEARCH = "Research"


class Bookmark(Base, TimestampMixin):
    """Bookmark model - stores URLs with extracted metadata, AI enrichment, and tags."""

    __tablename__ = "bookmarks"
    __table_args__ = (
        # Backstop for the duplicate check done before any network I/O
        UniqueConstraint("user_id", "url", name="uq_bookmarks_user_id_url"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    user_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"),
        index=True,
    )
    url: Mapped[str] = mapped_column(Text, nullable=False)
    title: Mapped[str | None] = mapped_column(String(500), nullable=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    content: Mapped[str | None] = mapped_column(Text, nullable=True)
    ai_summary: Mapped[str | None] = mapped_column(Text, nullable=True)
    category: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=BookmarkCategory.ARTICLE.value,
        server_default=BookmarkCategory.ARTICLE.value,
    )
    # Set when any ingestion stage degraded instead of fully succeeding
    warning: Mapped[str | None] = mapped_column(Text, nullable=True)
    folder_id: Mapped[int | None] = mapped_column(
        ForeignKey("folders.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    is_favorite: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=False,
        server_default=false(),
    )

    user: Mapped["User"] = relationship(back_populates="bookmarks")
    tag_objects: Mapped[list["Tag"]] = relationship(
        secondary=bookmark_tags,
        back_populates="bookmarks",
    )
