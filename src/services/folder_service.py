"""Service layer for the per-user folder tree."""
import logging

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from models.bookmark import Bookmark
from models.folder import Folder
from schemas.folder import FolderCreate, FolderTreeNode, FolderUpdate

logger = logging.getLogger(__name__)


class FolderNotFoundError(Exception):
    """Raised when a folder does not exist or belongs to another user."""

    def __init__(self, folder_id: int) -> None:
        self.folder_id = folder_id
        super().__init__(f"Folder {folder_id} not found")


class InvalidFolderParentError(Exception):
    """Raised when a folder would become its own ancestor."""

    def __init__(self, folder_id: int, parent_id: int) -> None:
        self.folder_id = folder_id
        self.parent_id = parent_id
        super().__init__(
            f"Folder {folder_id} cannot be moved into {parent_id}: "
            "a folder cannot be placed inside itself or one of its subfolders",
        )


async def get_folder(db: AsyncSession, user_id: int, folder_id: int) -> Folder | None:
    """Get a folder by ID, scoped to user."""
    result = await db.execute(
        select(Folder).where(Folder.id == folder_id, Folder.user_id == user_id),
    )
    return result.scalar_one_or_none()


async def ensure_folder_exists(db: AsyncSession, user_id: int, folder_id: int) -> Folder:
    """
    Get a folder the user owns.

    Raises:
        FolderNotFoundError: If the folder does not exist for this user.
    """
    folder = await get_folder(db, user_id, folder_id)
    if folder is None:
        raise FolderNotFoundError(folder_id)
    return folder


async def create_folder(db: AsyncSession, user_id: int, data: FolderCreate) -> Folder:
    """
    Create a folder, optionally nested under an existing one.

    Raises:
        FolderNotFoundError: If parent_id does not name one of the user's folders.
    """
    if data.parent_id is not None:
        await ensure_folder_exists(db, user_id, data.parent_id)

    folder = Folder(user_id=user_id, **data.model_dump())
    db.add(folder)
    await db.flush()
    await db.refresh(folder)
    return folder


async def get_folder_tree(db: AsyncSession, user_id: int) -> list[FolderTreeNode]:
    """
    Build the user's folder tree.

    Returns:
        Root folders (sorted by name), each with nested subfolders and the number
        of bookmarks directly inside it.
    """
    folders = (await db.execute(
        select(Folder).where(Folder.user_id == user_id).order_by(Folder.name, Folder.id),
    )).scalars().all()

    count_rows = await db.execute(
        select(Bookmark.folder_id, func.count(Bookmark.id))
        .where(Bookmark.user_id == user_id, Bookmark.folder_id.is_not(None))
        .group_by(Bookmark.folder_id),
    )
    counts = dict(count_rows.tuples().all())

    nodes = {
        folder.id: FolderTreeNode.model_validate(folder).model_copy(
            update={"bookmark_count": counts.get(folder.id, 0), "subfolders": []},
        )
        for folder in folders
    }

    roots: list[FolderTreeNode] = []
    for folder in folders:
        node = nodes[folder.id]
        parent = nodes.get(folder.parent_id) if folder.parent_id is not None else None
        if parent is None:
            roots.append(node)
        else:
            parent.subfolders.append(node)
    return roots


async def _is_descendant(
    db: AsyncSession,
    user_id: int,
    candidate_id: int,
    ancestor_id: int,
) -> bool:
    """Return True if candidate_id is ancestor_id or sits somewhere below it."""
    parents = dict((await db.execute(
        select(Folder.id, Folder.parent_id).where(Folder.user_id == user_id),
    )).tuples().all())

    current: int | None = candidate_id
    visited: set[int] = set()
    while current is not None and current not in visited:
        if current == ancestor_id:
            return True
        visited.add(current)
        current = parents.get(current)
    return False


async def update_folder(
    db: AsyncSession,
    user_id: int,
    folder_id: int,
    data: FolderUpdate,
) -> Folder:
    """
    Update a folder. parent_id=null (when sent) moves it to the root.

    Raises:
        FolderNotFoundError: If the folder or the new parent does not exist.
        InvalidFolderParentError: If the move would create a cycle.
    """
    folder = await ensure_folder_exists(db, user_id, folder_id)
    update_data = data.model_dump(exclude_unset=True)
    # name is not nullable: an explicit null leaves it unchanged
    if update_data.get("name", "") is None:
        del update_data["name"]

    new_parent_id = update_data.get("parent_id")
    if new_parent_id is not None:
        await ensure_folder_exists(db, user_id, new_parent_id)
        if await _is_descendant(db, user_id, new_parent_id, folder_id):
            raise InvalidFolderParentError(folder_id, new_parent_id)

    for field, value in update_data.items():
        setattr(folder, field, value)
    folder.updated_at = func.now()

    await db.flush()
    await db.refresh(folder)
    return folder


async def delete_folder(db: AsyncSession, user_id: int, folder_id: int) -> None:
    """
    Delete a folder. Its bookmarks and direct subfolders move to the root.

    Raises:
        FolderNotFoundError: If the folder does not exist for this user.
    """
    folder = await ensure_folder_exists(db, user_id, folder_id)

    await db.execute(
        update(Bookmark)
        .where(Bookmark.user_id == user_id, Bookmark.folder_id == folder_id)
        .values(folder_id=None),
    )
    await db.execute(
        update(Folder)
        .where(Folder.user_id == user_id, Folder.parent_id == folder_id)
        .values(parent_id=None),
    )
    await db.delete(folder)
    await db.flush()
    logger.info("Deleted folder %s for user %s", folder_id, user_id)
