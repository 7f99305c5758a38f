"""
Authentication endpoints: register, login, refresh, logout, me.
"""

from fastapi import APIRouter, Depends, status

from eventhub.api.deps import CurrentUser, get_auth_service, get_current_user
from eventhub.schemas.user import MessageResponse, RefreshRequest, Token, UserCreate, UserLogin, UserResponse
from eventhub.services.auth_service import AuthService

router = APIRouter(prefix="/auth", tags=["Authentication"])


@router.post("/register", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
async def register(user_data: UserCreate, service: AuthService = Depends(get_auth_service)):
    """Register a new user account."""
    return await service.register_user(user_data)


@router.post("/login", response_model=Token)
async def login(login_data: UserLogin, service: AuthService = Depends(get_auth_service)):
    """Authenticate and receive an access/refresh token pair."""
    return await service.authenticate_user(login_data)


@router.post("/refresh", response_model=Token)
async def refresh(body: RefreshRequest, service: AuthService = Depends(get_auth_service)):
    """Trade the current refresh token for a new pair. The old refresh token stops working."""
    return await service.refresh_tokens(body.refresh_token)


@router.post("/logout", response_model=MessageResponse)
async def logout(
    current_user: CurrentUser = Depends(get_current_user),
    service: AuthService = Depends(get_auth_service),
):
    await service.logout(current_user.id)
    return MessageResponse(message="Logged out")


@router.get("/me", response_model=UserResponse)
async def me(
    current_user: CurrentUser = Depends(get_current_user),
    service: AuthService = Depends(get_auth_service),
):
    return await service.get_user(current_user.id)
