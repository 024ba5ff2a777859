"""FastAPI dependencies."""

from collections.abc import Callable, Coroutine
from typing import Annotated, Any
from uuid import UUID

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.permissions import Role
from app.core.redis_client import CacheManager, get_redis_client
from app.core.security import decode_access_token
from app.database import get_db
from app.services.user_service import UserService

# Security
security = HTTPBearer()
optional_security = HTTPBearer(auto_error=False)

CREDENTIALS_EXCEPTION_DETAIL = "Could not validate credentials"


def get_cache_manager() -> CacheManager | None:
    """Get a cache manager, or None when Redis is not configured."""
    client = get_redis_client()
    return CacheManager(client) if client is not None else None


def _user_id_from_token(token: str) -> UUID:
    """Extract the user ID from an access token or raise 401."""
    payload = decode_access_token(token)

    if payload is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=CREDENTIALS_EXCEPTION_DETAIL,
            headers={"WWW-Authenticate": "Bearer"},
        )

    user_id_str = payload.get("sub")
    if user_id_str is None or not isinstance(user_id_str, str):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=CREDENTIALS_EXCEPTION_DETAIL,
            headers={"WWW-Authenticate": "Bearer"},
        )

    try:
        return UUID(user_id_str)
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid user ID format",
            headers={"WWW-Authenticate": "Bearer"},
        )


async def get_current_user_id(
    credentials: Annotated[HTTPAuthorizationCredentials, Depends(security)],
) -> UUID:
    """
    Extract and validate user ID from JWT token.

    Args:
        credentials: Bearer token credentials

    Returns:
        User ID from token

    Raises:
        HTTPException: If token is invalid or expired
    """
    return _user_id_from_token(credentials.credentials)


async def _load_active_user(db: AsyncSession, user_id: UUID, cache: CacheManager | None) -> dict:
    """Load a user and make sure the account is usable."""
    user = await UserService(cache).get_user_by_id(db, user_id)

    if not user:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User not found",
            headers={"WWW-Authenticate": "Bearer"},
        )

    if not user["is_active"]:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="User account is deactivated",
        )

    return user


async def get_current_user(
    user_id: Annotated[UUID, Depends(get_current_user_id)],
    db: Annotated[AsyncSession, Depends(get_db)],
    cache: Annotated[CacheManager | None, Depends(get_cache_manager)],
) -> dict:
    """
    Get current user from database.

    Raises:
        HTTPException: If user not found or inactive
    """
    return await _load_active_user(db, user_id, cache)


async def get_optional_user(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(optional_security)],
    db: Annotated[AsyncSession, Depends(get_db)],
    cache: Annotated[CacheManager | None, Depends(get_cache_manager)],
) -> dict | None:
    """Resolve the caller when a valid token is sent, otherwise treat them as anonymous."""
    if credentials is None:
        return None
    payload = decode_access_token(credentials.credentials)
    if payload is None or not isinstance(payload.get("sub"), str):
        return None
    try:
        user_id = UUID(payload["sub"])
    except ValueError:
        return None
    user = await UserService(cache).get_user_by_id(db, user_id)
    if not user or not user["is_active"]:
        return None
    return user


def require_roles(*roles: Role) -> Callable[..., Coroutine[Any, Any, dict]]:
    """
    Build a dependency that only lets users with one of ``roles`` through.

    Args:
        roles: Allowed roles

    Returns:
        Dependency function that can be used with FastAPI Depends()
    """
    allowed = {role.value for role in roles}

    async def dependency(current_user: Annotated[dict, Depends(get_current_user)]) -> dict:
        if current_user["role"] not in allowed:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Access denied. Allowed roles: {', '.join(sorted(allowed))}",
            )
        return current_user

    return dependency


# Type aliases for dependency injection
DatabaseSession = Annotated[AsyncSession, Depends(get_db)]
CurrentUserId = Annotated[UUID, Depends(get_current_user_id)]
CurrentUser = Annotated[dict, Depends(get_current_user)]
OptionalUser = Annotated[dict | None, Depends(get_optional_user)]
StaffUser = Annotated[dict, Depends(require_roles(Role.ADMIN, Role.SECRETARY))]
AdminUser = Annotated[dict, Depends(require_roles(Role.ADMIN))]
Cache = Annotated[CacheManager | None, Depends(get_cache_manager)]
