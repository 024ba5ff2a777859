"""User service for business logic."""

from datetime import UTC, datetime
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import BadRequestException, ConflictException, NotFoundException
from app.core.redis_client import CacheManager
from app.core.security import get_password_hash, verify_password
from app.models.users import users
from app.schemas.users import UserCreate, UserUpdate


class UserService:
    """Service for user operations."""

    # Cache TTL in seconds (30 minutes for user profiles)
    USER_CACHE_TTL = 1800

    def __init__(self, cache_manager: CacheManager | None = None):
        """Initialize service with optional cache manager."""
        self.cache = cache_manager

    @staticmethod
    def _get_user_cache_key(user_id: UUID) -> str:
        """Generate cache key for user."""
        return f"user:{user_id}"

    def _invalidate(self, user_id: UUID) -> None:
        if self.cache:
            self.cache.delete(self._get_user_cache_key(user_id))

    async def create_user(
        self, db: AsyncSession, user_data: UserCreate, commit: bool = True
    ) -> dict:
        """
        Create a new user with a hashed password.

        Args:
            db: Database session
            user_data: Registration payload
            commit: Commit immediately; callers creating related rows pass False

        Raises:
            ConflictException: If the email is already registered
        """
        if await self.get_user_by_email(db, user_data.email):
            raise ConflictException("Email is already registered")

        query = (
            users.insert()
            .values(
                email=user_data.email.lower(),
                password_hash=get_password_hash(user_data.password),
                first_name=user_data.first_name,
                last_name=user_data.last_name,
                phone=user_data.phone,
                role=user_data.role.value,
            )
            .returning(users)
        )

        result = await db.execute(query)
        user = result.mappings().first()
        if commit:
            await db.commit()

        if not user:
            raise ValueError("Failed to create user")

        return dict(user)

    async def get_user_by_id(self, db: AsyncSession, user_id: UUID) -> dict | None:
        """Get user by internal ID with caching."""
        # Try cache first
        if self.cache:
            cache_key = self._get_user_cache_key(user_id)
            cached_user = self.cache.get_json(cache_key)
            if cached_user:
                # JSON round-trip turns the UUID into a string
                cached_user["id"] = UUID(cached_user["id"])
                return cached_user

        query = select(users).where(users.c.id == user_id)
        result = await db.execute(query)
        user = result.mappings().first()

        if not user:
            return None

        user_dict = dict(user)

        # The password hash never goes to the cache
        if self.cache:
            cached = {k: v for k, v in user_dict.items() if k != "password_hash"}
            self.cache.set_json(self._get_user_cache_key(user_id), cached, ttl=self.USER_CACHE_TTL)

        return user_dict

    async def get_user_by_email(self, db: AsyncSession, email: str) -> dict | None:
        """Get user by email (case-insensitive)."""
        query = select(users).where(users.c.email == email.lower())
        result = await db.execute(query)
        user = result.mappings().first()
        return dict(user) if user else None

    async def update_user(self, db: AsyncSession, user_id: UUID, user_data: UserUpdate) -> dict:
        """Update user profile."""
        update_data = user_data.model_dump(exclude_unset=True)
        if not update_data:
            user = await self.get_user_by_id(db, user_id)
            if not user:
                raise NotFoundException("User not found")
            return user

        update_data["updated_at"] = datetime.now(UTC)

        query = update(users).where(users.c.id == user_id).values(**update_data).returning(users)

        result = await db.execute(query)
        await db.commit()
        user = result.mappings().first()

        if not user:
            raise NotFoundException("User not found")

        self._invalidate(user_id)
        return dict(user)

    async def change_password(
        self, db: AsyncSession, user_id: UUID, current_password: str, new_password: str
    ) -> None:
        """
        Change a user's password after checking the current one.

        Raises:
            BadRequestException: If the current password does not match
        """
        result = await db.execute(select(users.c.password_hash).where(users.c.id == user_id))
        password_hash = result.scalar_one_or_none()
        if password_hash is None:
            raise NotFoundException("User not found")
        if not verify_password(current_password, password_hash):
            raise BadRequestException("Current password is incorrect")

        await db.execute(
            update(users)
            .where(users.c.id == user_id)
            .values(password_hash=get_password_hash(new_password), updated_at=datetime.now(UTC))
        )
        await db.commit()
        self._invalidate(user_id)

    async def update_last_login(self, db: AsyncSession, user_id: UUID) -> datetime:
        """Update user's last login timestamp and return it."""
        now = datetime.now(UTC)
        query = update(users).where(users.c.id == user_id).values(last_login_at=now)
        await db.execute(query)
        await db.commit()

        # Invalidate cache on last login update
        self._invalidate(user_id)
        return now
