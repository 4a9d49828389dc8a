"""Endpoints for the user's tag vocabulary."""
from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession

from api.dependencies import get_async_session, get_current_user
from models.user import User
from schemas.tag import TagListResponse, TagRenameRequest, TagResponse
from services import tag_service
from services.tag_service import TagAlreadyExistsError, TagNotFoundError

router = APIRouter(prefix="/tags", tags=["tags"])


@router.get("/", response_model=TagListResponse)
async def list_tags(
    include_unused: bool = Query(
        default=True, description="Also list tags no bookmark currently carries",
    ),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_session),
) -> TagListResponse:
    """List the vocabulary with bookmark counts, most used first, ties by name."""
    counts = await tag_service.get_user_tags_with_counts(db, current_user.id, include_unused)
    return TagListResponse(tags=counts)


@router.patch("/{tag_name}", response_model=TagResponse)
async def rename_tag(
    tag_name: str,
    rename_request: TagRenameRequest,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_session),
) -> TagResponse:
    """
    Rename a tag everywhere it is used.

    404 if the tag does not exist, 409 if the new name is already taken.
    """
    try:
        tag = await tag_service.rename_tag(
            db, current_user.id, tag_name, rename_request.new_name,
        )
    except TagNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e)) from e
    except TagAlreadyExistsError as e:
        raise HTTPException(status_code=409, detail=str(e)) from e
    return TagResponse.model_validate(tag)


@router.delete("/{tag_name}", status_code=204)
async def delete_tag(
    tag_name: str,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_session),
) -> None:
    """Drop a tag from the vocabulary and from every bookmark. 404 if it does not exist."""
    try:
        await tag_service.delete_tag(db, current_user.id, tag_name)
    except TagNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e)) from e
