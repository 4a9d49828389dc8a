"""Service layer for users and their AI provider key."""
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from models.user import User


async def get_or_create_user(
    db: AsyncSession,
    auth0_id: str,
    email: str | None = None,
) -> User:
    """
    Get existing user or create new one from Auth0 claims.

    Note: Uses flush(), not commit. Session generator handles commit at request end.
    """
    result = await db.execute(select(User).where(User.auth0_id == auth0_id))
    user = result.scalar_one_or_none()

    if user is None:
        user = User(auth0_id=auth0_id, email=email)
        db.add(user)
        await db.flush()
    elif email and user.email != email:
        # Update email if changed in Auth0
        user.email = email
        await db.flush()

    return user


async def set_ai_api_key(db: AsyncSession, user: User, api_key: str | None) -> User:
    """Store the user's AI provider key. A blank or null key removes it."""
    user.ai_api_key = api_key.strip() if api_key and api_key.strip() else None
    await db.flush()
    return user
