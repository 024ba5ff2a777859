"""Authentication endpoints."""

from fastapi import APIRouter, status

from app.dependencies import Cache, CurrentUser, DatabaseSession, OptionalUser
from app.schemas.auth import LoginRequest, LoginResponse, Token, TokenRefresh
from app.schemas.users import PasswordChange, UserCreate, UserResponse, UserUpdate
from app.services.auth_service import AuthService
from app.services.user_service import UserService

router = APIRouter()


@router.post(
    "/register",
    response_model=UserResponse,
    status_code=status.HTTP_201_CREATED,
    tags=["Authentication"],
    summary="Register a new account",
)
async def register(
    data: UserCreate,
    db: DatabaseSession,
    cache: Cache,
    current_user: OptionalUser,
) -> UserResponse:
    """
    Register a new account.

    Anyone may register as a patient. Creating admin or secretary accounts
    requires an administrator's token.
    """
    user = await AuthService(cache).register(db, data, caller=current_user)
    return UserResponse.model_validate(user)


@router.post(
    "/login",
    response_model=LoginResponse,
    status_code=status.HTTP_200_OK,
    tags=["Authentication"],
    summary="Login with email and password",
)
async def login(
    data: LoginRequest,
    db: DatabaseSession,
    cache: Cache,
) -> LoginResponse:
    """
    Authenticate with email and password and return JWT tokens.

    Args:
        data: Credentials
        db: Database session
        cache: Optional cache manager

    Returns:
        Access token, refresh token, and user information
    """
    user, tokens = await AuthService(cache).login(db, data.email, data.password)
    return LoginResponse(
        access_token=tokens.access_token,
        refresh_token=tokens.refresh_token,
        token_type=tokens.token_type,
        user=UserResponse.model_validate(user),
    )


@router.post(
    "/refresh",
    response_model=Token,
    status_code=status.HTTP_200_OK,
    tags=["Authentication"],
    summary="Refresh access token",
)
async def refresh_token(
    request: TokenRefresh,
    db: DatabaseSession,
    cache: Cache,
) -> Token:
    """Exchange a valid refresh token for a new token pair."""
    return await AuthService(cache).refresh_access_token(db, request.refresh_token)


@router.post(
    "/logout",
    status_code=status.HTTP_204_NO_CONTENT,
    tags=["Authentication"],
    summary="Logout and revoke tokens",
)
async def logout(
    request: TokenRefresh,
    current_user: CurrentUser,
    cache: Cache,
) -> None:
    """
    Logout user by revoking refresh token.

    Revocation needs the cache; without it the refresh token simply runs
    until it expires.
    """
    AuthService(cache).revoke_token(request.refresh_token)


@router.get(
    "/me",
    response_model=UserResponse,
    status_code=status.HTTP_200_OK,
    tags=["Authentication"],
    summary="Current user profile",
)
async def get_me(current_user: CurrentUser) -> UserResponse:
    """Return the authenticated user's profile."""
    return UserResponse.model_validate(current_user)


@router.put(
    "/me",
    response_model=UserResponse,
    status_code=status.HTTP_200_OK,
    tags=["Authentication"],
    summary="Update current user profile",
)
async def update_me(
    data: UserUpdate,
    current_user: CurrentUser,
    db: DatabaseSession,
    cache: Cache,
) -> UserResponse:
    """Update the authenticated user's name and phone."""
    user = await UserService(cache).update_user(db, current_user["id"], data)
    return UserResponse.model_validate(user)


@router.post(
    "/change-password",
    status_code=status.HTTP_204_NO_CONTENT,
    tags=["Authentication"],
    summary="Change password",
)
async def change_password(
    data: PasswordChange,
    current_user: CurrentUser,
    db: DatabaseSession,
    cache: Cache,
) -> None:
    """Change the authenticated user's password."""
    await UserService(cache).change_password(
        db, current_user["id"], data.current_password, data.new_password
    )
