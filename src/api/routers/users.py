"""User endpoints: profile and AI provider key."""
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from api.dependencies import get_async_session, get_current_user
from models.user import User
from schemas.user import AiApiKeyUpdate, UserResponse
from services import user_service

router = APIRouter(prefix="/users", tags=["users"])


@router.get("/me", response_model=UserResponse)
async def get_me(current_user: User = Depends(get_current_user)) -> UserResponse:
    """Get the current authenticated user's info."""
    return UserResponse.model_validate(current_user)


@router.put("/me/ai-api-key", response_model=UserResponse)
async def set_ai_api_key(
    data: AiApiKeyUpdate,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_session),
) -> UserResponse:
    """
    Set the API key used to analyze new bookmarks. Send null to remove it.

    The key is never returned; the response only reports whether one is set.
    """
    user = await user_service.set_ai_api_key(db, current_user, data.api_key)
    return UserResponse.model_validate(user)
