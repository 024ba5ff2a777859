"""Authentication service for credentials and JWT."""

from uuid import UUID

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.core.exceptions import ForbiddenException, UnauthorizedException
from app.core.permissions import Role
from app.core.redis_client import CacheManager
from app.core.security import (
    create_access_token,
    create_refresh_token,
    decode_refresh_token,
    verify_password,
)
from app.models.patients import patients
from app.schemas.auth import Token
from app.schemas.users import UserCreate
from app.services.user_service import UserService

logger = structlog.get_logger(__name__)


class AuthService:
    """Authentication service for handling login, registration and JWT operations."""

    def __init__(self, cache_manager: CacheManager | None = None):
        """Initialize auth service with optional cache manager."""
        self.cache = cache_manager
        self.users = UserService(cache_manager)

    async def register(
        self, db: AsyncSession, user_data: UserCreate, caller: dict | None = None
    ) -> dict:
        """
        Register a new account.

        Self-registration always yields a patient. Staff accounts can only be
        created by an authenticated admin. Patient accounts get their patient
        record in the same transaction.

        Args:
            db: Database session
            user_data: Registration payload
            caller: Authenticated user making the request, if any

        Returns:
            Created user

        Raises:
            ForbiddenException: If a non-admin tries to create a staff account
            ConflictException: If the email is already registered
        """
        if user_data.role != Role.PATIENT and (caller is None or caller["role"] != Role.ADMIN):
            raise ForbiddenException("Only administrators can create staff accounts")

        user = await self.users.create_user(db, user_data, commit=False)
        if user_data.role == Role.PATIENT:
            await db.execute(patients.insert().values(user_id=user["id"]))
        await db.commit()

        logger.info("user_registered", user_id=str(user["id"]), role=user["role"])
        return user

    async def login(self, db: AsyncSession, email: str, password: str) -> tuple[dict, Token]:
        """
        Authenticate with email and password.

        Returns:
            Tuple of (user dict, token pair)

        Raises:
            UnauthorizedException: If the credentials are wrong or the account is inactive
        """
        user = await self.users.get_user_by_email(db, email)
        if not user or not verify_password(password, user["password_hash"]):
            logger.info("login_failed", email=email)
            raise UnauthorizedException("Invalid email or password")
        if not user["is_active"]:
            raise UnauthorizedException("User account is deactivated")

        user["last_login_at"] = await self.users.update_last_login(db, user["id"])
        return user, self.create_tokens(str(user["id"]), user["role"])

    def create_tokens(self, user_id: str, role: str) -> Token:
        """
        Create access and refresh tokens for a user.

        Args:
            user_id: User identifier (internal UUID)
            role: User role, embedded in both tokens

        Returns:
            Token pair (access and refresh)
        """
        claims = {"sub": user_id, "role": role}
        return Token(
            access_token=create_access_token(data=claims),
            refresh_token=create_refresh_token(data=claims),
            token_type="bearer",
        )

    async def refresh_access_token(self, db: AsyncSession, refresh_token: str) -> Token:
        """
        Create new token pair from a refresh token.

        The role is re-read from the database so role changes take effect on refresh.

        Raises:
            UnauthorizedException: If refresh token is invalid, revoked or its user is gone
        """
        payload = decode_refresh_token(refresh_token)

        if payload is None or not isinstance(payload.get("sub"), str):
            raise UnauthorizedException("Invalid refresh token")

        # Check if token is blacklisted
        if self.cache and self.cache.exists(self._blacklist_key(refresh_token)):
            raise UnauthorizedException("Token has been revoked")

        try:
            user_id = UUID(payload["sub"])
        except ValueError:
            raise UnauthorizedException("Invalid refresh token")

        user = await self.users.get_user_by_id(db, user_id)
        if not user or not user["is_active"]:
            raise UnauthorizedException("Invalid refresh token")

        return self.create_tokens(payload["sub"], user["role"])

    def revoke_token(self, token: str) -> bool:
        """
        Revoke a refresh token by adding it to the blacklist until it expires.

        Returns:
            True if the token was blacklisted, False when no cache is configured
        """
        if not self.cache:
            return False
        ttl = settings.refresh_token_expire_days * 86400
        return self.cache.set(self._blacklist_key(token), "1", ttl=ttl)

    @staticmethod
    def _blacklist_key(token: str) -> str:
        return f"blacklist:{token}"
