"""Pydantic schemas for user endpoints."""
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


class UserResponse(BaseModel):
    """
    Response model for user info.

    The stored AI API key is never returned; only whether one is configured.
    """

    model_config = ConfigDict(from_attributes=True)

    id: int
    auth0_id: str
    email: str | None
    has_ai_api_key: bool

    @model_validator(mode="before")
    @classmethod
    def derive_has_ai_api_key(cls, data: Any) -> Any:
        """Replace the raw key with a presence flag when built from a User model."""
        if hasattr(data, "__tablename__"):
            return {
                "id": data.id,
                "auth0_id": data.auth0_id,
                "email": data.email,
                "has_ai_api_key": bool(data.ai_api_key),
            }
        return data


class AiApiKeyUpdate(BaseModel):
    """Schema for setting (or clearing, with null) the user's AI provider key."""

    api_key: str | None = Field(default=None, max_length=500)

    @field_validator("api_key")
    @classmethod
    def reject_non_ascii(cls, v: str | None) -> str | None:
        """Keys are sent as HTTP header values, which must be ASCII."""
        if v is not None and not v.isascii():
            raise ValueError("API key must contain only ASCII characters")
        return v
