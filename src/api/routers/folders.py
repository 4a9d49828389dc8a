"""Folder endpoints."""
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from api.dependencies import get_async_session, get_current_user
from models.user import User
from schemas.folder import FolderCreate, FolderResponse, FolderTreeNode, FolderUpdate
from services import folder_service
from services.folder_service import FolderNotFoundError, InvalidFolderParentError

router = APIRouter(prefix="/folders", tags=["folders"])


@router.get("/", response_model=list[FolderTreeNode])
async def get_folder_tree(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_session),
) -> list[FolderTreeNode]:
    """Get the user's folders as a tree, with bookmark counts."""
    return await folder_service.get_folder_tree(db, current_user.id)


@router.post("/", response_model=FolderResponse, status_code=201)
async def create_folder(
    data: FolderCreate,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_session),
) -> FolderResponse:
    """Create a folder. Returns 404 if parent_id is not one of the user's folders."""
    try:
        folder = await folder_service.create_folder(db, current_user.id, data)
    except FolderNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e)) from e
    return FolderResponse.model_validate(folder)


@router.patch("/{folder_id}", response_model=FolderResponse)
async def update_folder(
    folder_id: int,
    data: FolderUpdate,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_session),
) -> FolderResponse:
    """
    Rename, restyle, or move a folder.

    Returns 404 if the folder or new parent doesn't exist, 422 if the move would
    put the folder inside itself.
    """
    try:
        folder = await folder_service.update_folder(db, current_user.id, folder_id, data)
    except FolderNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e)) from e
    except InvalidFolderParentError as e:
        raise HTTPException(
            status_code=422, detail=str(e),
        ) from e
    return FolderResponse.model_validate(folder)


@router.delete("/{folder_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_folder(
    folder_id: int,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_session),
) -> None:
    """Delete a folder. Its bookmarks and subfolders move to the root."""
    try:
        await folder_service.delete_folder(db, current_user.id, folder_id)
    except FolderNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e)) from e
