"""Tests for folder service layer functionality."""
import pytest
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from models.bookmark import Bookmark
from models.folder import Folder
from models.user import User
from schemas.folder import FolderCreate, FolderUpdate
from services.bookmark_service import BookmarkDraft, create_bookmark
from services.folder_service import (
    FolderNotFoundError,
    InvalidFolderParentError,
    create_folder,
    delete_folder,
    get_folder,
    get_folder_tree,
    update_folder,
)


async def _file_bookmark(db: AsyncSession, user: User, url: str, folder_id: int) -> Bookmark:
    bookmark = await create_bookmark(db, user.id, BookmarkDraft(url=url, title=url, description=''))
    bookmark.folder_id = folder_id
    await db.flush()
    return bookmark


# =============================================================================
# create_folder
# =============================================================================


async def test__create_folder__root_and_nested(
    db_session: AsyncSession,
    test_user: User,
) -> None:
    parent = await create_folder(db_session, test_user.id, FolderCreate(name='  Work  '))
    child = await create_folder(
        db_session, test_user.id, FolderCreate(name='Reports', parent_id=parent.id, color='blue'),
    )

    assert parent.name == 'Work'
    assert parent.parent_id is None
    assert child.parent_id == parent.id
    assert child.color == 'blue'


async def test__create_folder__parent_of_other_user_raises(
    db_session: AsyncSession,
    test_user: User,
    other_user: User,
) -> None:
    foreign = await create_folder(db_session, other_user.id, FolderCreate(name='Theirs'))

    with pytest.raises(FolderNotFoundError):
        await create_folder(
            db_session, test_user.id, FolderCreate(name='Mine', parent_id=foreign.id),
        )


def test__folder_create__rejects_blank_name() -> None:
    with pytest.raises(ValueError, match='Folder name is required'):
        FolderCreate(name='   ')


# =============================================================================
# get_folder_tree
# =============================================================================


async def test__get_folder_tree__nests_and_counts(
    db_session: AsyncSession,
    test_user: User,
) -> None:
    work = await create_folder(db_session, test_user.id, FolderCreate(name='Work'))
    reports = await create_folder(
        db_session, test_user.id, FolderCreate(name='Reports', parent_id=work.id),
    )
    await create_folder(db_session, test_user.id, FolderCreate(name='Archive'))
    await _file_bookmark(db_session, test_user, 'https://a.com/', work.id)
    await _file_bookmark(db_session, test_user, 'https://b.com/', reports.id)
    await _file_bookmark(db_session, test_user, 'https://c.com/', reports.id)

    tree = await get_folder_tree(db_session, test_user.id)

    assert [node.name for node in tree] == ['Archive', 'Work']
    archive, work_node = tree
    assert archive.bookmark_count == 0
    assert archive.subfolders == []
    assert work_node.bookmark_count == 1
    assert [node.name for node in work_node.subfolders] == ['Reports']
    assert work_node.subfolders[0].bookmark_count == 2


async def test__get_folder_tree__scoped_to_user(
    db_session: AsyncSession,
    test_user: User,
    other_user: User,
) -> None:
    await create_folder(db_session, other_user.id, FolderCreate(name='Theirs'))

    assert await get_folder_tree(db_session, test_user.id) == []


# =============================================================================
# update_folder
# =============================================================================


async def test__update_folder__rename_keeps_parent(
    db_session: AsyncSession,
    test_user: User,
) -> None:
    parent = await create_folder(db_session, test_user.id, FolderCreate(name='Work'))
    child = await create_folder(
        db_session, test_user.id, FolderCreate(name='Old', parent_id=parent.id),
    )

    updated = await update_folder(db_session, test_user.id, child.id, FolderUpdate(name='New'))

    assert updated.name == 'New'
    assert updated.parent_id == parent.id


async def test__update_folder__explicit_null_name_is_ignored(
    db_session: AsyncSession,
    test_user: User,
) -> None:
    folder = await create_folder(db_session, test_user.id, FolderCreate(name='Work'))

    updated = await update_folder(
        db_session, test_user.id, folder.id, FolderUpdate.model_validate({'name': None}),
    )

    assert updated.name == 'Work'


def test__folder_update__rejects_blank_name() -> None:
    with pytest.raises(ValueError, match='Folder name is required'):
        FolderUpdate(name='   ')


async def test__update_folder__explicit_null_parent_moves_to_root(
    db_session: AsyncSession,
    test_user: User,
) -> None:
    parent = await create_folder(db_session, test_user.id, FolderCreate(name='Work'))
    child = await create_folder(
        db_session, test_user.id, FolderCreate(name='Child', parent_id=parent.id),
    )

    updated = await update_folder(
        db_session, test_user.id, child.id, FolderUpdate.model_validate({'parent_id': None}),
    )

    assert updated.parent_id is None


async def test__update_folder__cannot_move_into_itself_or_descendant(
    db_session: AsyncSession,
    test_user: User,
) -> None:
    top = await create_folder(db_session, test_user.id, FolderCreate(name='Top'))
    middle = await create_folder(
        db_session, test_user.id, FolderCreate(name='Middle', parent_id=top.id),
    )
    bottom = await create_folder(
        db_session, test_user.id, FolderCreate(name='Bottom', parent_id=middle.id),
    )

    with pytest.raises(InvalidFolderParentError):
        await update_folder(db_session, test_user.id, top.id, FolderUpdate(parent_id=top.id))
    with pytest.raises(InvalidFolderParentError):
        await update_folder(db_session, test_user.id, top.id, FolderUpdate(parent_id=bottom.id))

    # Moving a leaf under a sibling branch is fine
    moved = await update_folder(db_session, test_user.id, bottom.id, FolderUpdate(parent_id=top.id))
    assert moved.parent_id == top.id


async def test__update_folder__unknown_folder_or_parent_raises(
    db_session: AsyncSession,
    test_user: User,
) -> None:
    folder = await create_folder(db_session, test_user.id, FolderCreate(name='Work'))

    with pytest.raises(FolderNotFoundError):
        await update_folder(db_session, test_user.id, 9999, FolderUpdate(name='x'))
    with pytest.raises(FolderNotFoundError):
        await update_folder(db_session, test_user.id, folder.id, FolderUpdate(parent_id=9999))


# =============================================================================
# delete_folder
# =============================================================================


async def test__delete_folder__moves_contents_to_root(
    db_session: AsyncSession,
    test_user: User,
) -> None:
    parent = await create_folder(db_session, test_user.id, FolderCreate(name='Work'))
    child = await create_folder(
        db_session, test_user.id, FolderCreate(name='Child', parent_id=parent.id),
    )
    bookmark = await _file_bookmark(db_session, test_user, 'https://a.com/', parent.id)
    parent_id, child_id, bookmark_id = parent.id, child.id, bookmark.id

    await delete_folder(db_session, test_user.id, parent_id)

    assert await get_folder(db_session, test_user.id, parent_id) is None
    db_session.expire_all()
    remaining_child = (await db_session.execute(
        select(Folder).where(Folder.id == child_id),
    )).scalar_one()
    kept_bookmark = (await db_session.execute(
        select(Bookmark).where(Bookmark.id == bookmark_id),
    )).scalar_one()
    assert remaining_child.parent_id is None
    assert kept_bookmark.folder_id is None


async def test__delete_folder__other_user_raises(
    db_session: AsyncSession,
    test_user: User,
    other_user: User,
) -> None:
    foreign = await create_folder(db_session, other_user.id, FolderCreate(name='Theirs'))

    with pytest.raises(FolderNotFoundError):
        await delete_folder(db_session, test_user.id, foreign.id)
