"""Bearer-token authentication against Auth0, with a local bypass for DEV_MODE."""
import logging
from functools import lru_cache

import httpx
import jwt
from fastapi import Depends, HTTPException
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jwt import PyJWKClient
from sqlalchemy.ext.asyncio import AsyncSession

from core.config import Settings, get_settings
from db.session import get_async_session
from models.user import User
from services.user_service import get_or_create_user

logger = logging.getLogger(__name__)

DEV_USER_AUTH0_ID = "dev|local-development-user"
DEV_USER_EMAIL = "dev@localhost"

bearer_scheme = HTTPBearer(auto_error=False)

# Checked in order; subclasses of PyJWTError before the catch-all
_TOKEN_ERROR_DETAILS: tuple[tuple[type[jwt.PyJWTError], str], ...] = (
    (jwt.ExpiredSignatureError, "Token has expired"),
    (jwt.InvalidAudienceError, "Invalid audience"),
    (jwt.InvalidIssuerError, "Invalid issuer"),
)


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(status_code=401, detail=detail, headers={"WWW-Authenticate": "Bearer"})


@lru_cache
def _jwks_client(jwks_url: str) -> PyJWKClient:
    return PyJWKClient(jwks_url, cache_jwk_set=True, lifespan=3600)


def get_jwks_client(settings: Settings) -> PyJWKClient:
    """JWKS client for the configured tenant; signing keys are cached for an hour."""
    return _jwks_client(settings.auth0_jwks_url)


def decode_jwt(token: str, settings: Settings) -> dict:
    """
    Verify an Auth0 access token and return its claims.

    Raises:
        HTTPException: 401 for any invalid token, 503 if the signing keys could
            not be retrieved.
    """
    try:
        signing_key = get_jwks_client(settings).get_signing_key_from_jwt(token)
        return jwt.decode(
            token,
            signing_key.key,
            algorithms=["RS256"],
            audience=settings.auth0_audience,
            issuer=settings.auth0_issuer,
        )
    except jwt.PyJWTError as e:
        for error_type, detail in _TOKEN_ERROR_DETAILS:
            if isinstance(e, error_type):
                raise _unauthorized(detail) from e
        raise _unauthorized(f"Invalid token: {e}") from e
    except httpx.HTTPError as e:
        logger.warning("Could not retrieve signing keys: %s", e)
        raise HTTPException(
            status_code=503, detail=f"Could not validate credentials: {e}",
        ) from e


async def get_current_user(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    db: AsyncSession = Depends(get_async_session),
    settings: Settings = Depends(get_settings),
) -> User:
    """
    Resolve the request's user, creating the row on first sight.

    With DEV_MODE on, no token is needed and a fixed local user is returned.
    """
    if settings.dev_mode:
        return await get_or_create_user(db, auth0_id=DEV_USER_AUTH0_ID, email=DEV_USER_EMAIL)

    if credentials is None:
        raise _unauthorized("Not authenticated")

    claims = decode_jwt(credentials.credentials, settings)
    subject = claims.get("sub")
    if not subject:
        raise _unauthorized("Invalid token: missing sub claim")
    return await get_or_create_user(db, auth0_id=subject, email=claims.get("email"))
