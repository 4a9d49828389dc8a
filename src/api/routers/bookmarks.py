"""Bookmark endpoints."""
from typing import Literal

import httpx
from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from api.dependencies import (
    get_ai_http_client,
    get_async_session,
    get_current_user,
    get_settings,
)
from core.config import Settings
from models.bookmark import BookmarkCategory
from models.user import User
from schemas.bookmark import (
    BookmarkBulkUpdate,
    BookmarkBulkUpdateResponse,
    BookmarkCreate,
    BookmarkListItem,
    BookmarkListResponse,
    BookmarkResponse,
    BookmarkUpdate,
)
from services import bookmark_service
from services.bookmark_service import DuplicateUrlError
from services.folder_service import FolderNotFoundError
from services.ingestion_service import InvalidUrlError, ingest_bookmark

router = APIRouter(prefix="/bookmarks", tags=["bookmarks"])


@router.post("/", response_model=BookmarkResponse, status_code=201)
async def create_bookmark(
    data: BookmarkCreate,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_session),
    settings: Settings = Depends(get_settings),
    ai_http_client: httpx.AsyncClient | None = Depends(get_ai_http_client),
) -> BookmarkResponse:
    """
    Save a URL as a bookmark.

    The page is fetched and analyzed with the user's AI API key to fill in title,
    description, summary, tags, and category. If fetching or analysis fails the
    bookmark is still saved and the response carries a `warning`.

    Returns 422 for an invalid URL and 409 if the URL is already bookmarked.
    """
    try:
        result = await ingest_bookmark(
            db,
            current_user.id,
            data.url,
            current_user.ai_api_key,
            settings=settings,
            http_client=ai_http_client,
        )
    except InvalidUrlError as e:
        raise HTTPException(
            status_code=422,
            detail="Please provide a valid URL",
        ) from e
    except DuplicateUrlError as e:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="This URL has already been bookmarked",
        ) from e
    return BookmarkResponse.model_validate(result.bookmark)


@router.get("/", response_model=BookmarkListResponse)
async def list_bookmarks(
    q: str | None = Query(default=None, description="Text to look for in title, description, URL and summary"),  # noqa: E501
    tags: list[str] = Query(default=[], description="Tag names; repeat the parameter for several"),
    tag_match: Literal["all", "any"] = Query(default="all", description="Require every tag, or just one of them"),  # noqa: E501
    category: BookmarkCategory | None = Query(default=None),
    folder_id: int | None = Query(default=None, description="Bookmarks directly in this folder"),
    favorites: bool = Query(default=False),
    sort_by: Literal["created_at", "updated_at", "title"] = Query(default="created_at"),
    sort_order: Literal["asc", "desc"] = Query(default="desc"),
    offset: int = Query(default=0, ge=0),
    limit: int = Query(default=50, ge=1, le=100),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_session),
) -> BookmarkListResponse:
    """
    Search the user's bookmarks, one page at a time.

    Filters combine; a malformed tag in the query string is a 422.
    """
    try:
        bookmarks, total = await bookmark_service.search_bookmarks(
            db=db,
            user_id=current_user.id,
            query=q,
            tags=tags if tags else None,
            tag_match=tag_match,
            category=category,
            folder_id=folder_id,
            favorites_only=favorites,
            sort_by=sort_by,
            sort_order=sort_order,
            offset=offset,
            limit=limit,
        )
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e)) from e
    items = [BookmarkListItem.model_validate(b) for b in bookmarks]
    return BookmarkListResponse(
        items=items,
        total=total,
        offset=offset,
        limit=limit,
        has_more=offset + len(items) < total,
    )


@router.post("/bulk", response_model=BookmarkBulkUpdateResponse)
async def bulk_update_bookmarks(
    data: BookmarkBulkUpdate,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_session),
) -> BookmarkBulkUpdateResponse:
    """
    Move, (un)favorite, recategorize, or add tags to several bookmarks at once.

    Unknown ids are listed in `not_found`; the other bookmarks are still updated.
    """
    try:
        updated, not_found = await bookmark_service.bulk_update_bookmarks(
            db, current_user.id, data,
        )
    except FolderNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e)) from e
    return BookmarkBulkUpdateResponse(
        updated=[BookmarkListItem.model_validate(b) for b in updated],
        not_found=not_found,
    )


@router.get("/{bookmark_id}", response_model=BookmarkResponse)
async def get_bookmark(
    bookmark_id: int,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_session),
) -> BookmarkResponse:
    """Fetch one bookmark, extracted content included."""
    bookmark = await bookmark_service.get_bookmark(db, current_user.id, bookmark_id)
    if bookmark is None:
        raise HTTPException(status_code=404, detail="Bookmark not found")
    return BookmarkResponse.model_validate(bookmark)


@router.patch("/{bookmark_id}", response_model=BookmarkResponse)
async def update_bookmark(
    bookmark_id: int,
    data: BookmarkUpdate,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_session),
) -> BookmarkResponse:
    """Update a bookmark's title, description, tags, category, folder, or favorite flag."""
    try:
        bookmark = await bookmark_service.update_bookmark(
            db, current_user.id, bookmark_id, data,
        )
    except FolderNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e)) from e
    if bookmark is None:
        raise HTTPException(status_code=404, detail="Bookmark not found")
    return BookmarkResponse.model_validate(bookmark)


@router.delete("/{bookmark_id}", status_code=204)
async def delete_bookmark(
    bookmark_id: int,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_session),
) -> None:
    """Remove a bookmark; its tags stay in the vocabulary."""
    deleted = await bookmark_service.delete_bookmark(db, current_user.id, bookmark_id)
    if not deleted:
        raise HTTPException(status_code=404, detail="Bookmark not found")
