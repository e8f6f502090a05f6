"""
Authentication dependency for FastAPI endpoints.

Provides JWT verification via Supabase auth.get_user() and FastAPI
dependencies that protect endpoints. The marketplace role (client or agency)
is read from the user's metadata.
"""

from typing import Annotated, Any

import structlog
from fastapi import Depends, HTTPException, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from pydantic import BaseModel

from app.models.rental import UserRole

logger = structlog.get_logger(__name__)

_bearer_scheme = HTTPBearer()


class AuthenticatedUser(BaseModel):
    """Represents a verified authenticated user."""

    id: str
    email: str | None = None
    role: UserRole | None = None


def _role_from_metadata(metadata: Any) -> UserRole | None:
    if not isinstance(metadata, dict):
        return None
    try:
        return UserRole(metadata.get("role"))
    except ValueError:
        return None


async def get_current_user(
    request: Request,
    credentials: HTTPAuthorizationCredentials = Depends(_bearer_scheme),
) -> AuthenticatedUser:
    """
    FastAPI dependency that verifies a JWT Bearer token via Supabase.

    Raises:
        HTTPException 503: Supabase client not configured.
        HTTPException 401: Token is invalid, expired, or user not found.
    """
    supabase = getattr(request.app.state, "supabase", None)
    if supabase is None:
        raise HTTPException(status_code=503, detail="Authentication service unavailable")

    token = credentials.credentials
    try:
        response = await supabase.auth.get_user(token)
        user = response.user if response else None
        if user is None:
            raise HTTPException(status_code=401, detail="Invalid or expired token")
        metadata = getattr(user, "user_metadata", None)
        return AuthenticatedUser(
            id=str(user.id),
            email=user.email,
            role=_role_from_metadata(metadata),
        )
    except HTTPException:
        raise
    except Exception as e:
        logger.warning("auth_token_verification_failed", error=str(e))
        raise HTTPException(status_code=401, detail="Invalid or expired token")


CurrentUser = Annotated[AuthenticatedUser, Depends(get_current_user)]
