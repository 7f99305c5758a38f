"""
Authentication service: registration, login, token refresh and logout.

Refresh tokens rotate: each successful refresh issues a new pair and
replaces the stored fingerprint, so the previous refresh token stops
working immediately. Logout clears the fingerprint.
"""

import uuid

from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from eventhub.core.logging import get_logger
from eventhub.core.security import (
    REFRESH_TOKEN_TYPE,
    TokenError,
    create_access_token,
    create_refresh_token,
    decode_token,
    fingerprint_token,
    hash_password,
    verify_password,
)
from eventhub.models.user import User
from eventhub.schemas.user import Token, UserCreate, UserLogin
from eventhub.services.error_codes import ErrorCode
from eventhub.services.exceptions import AuthenticationError, ConflictError, ForbiddenError, NotFoundError

logger = get_logger(__name__)


class AuthService:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def _issue_tokens(self, user: User) -> Token:
        claims = {"sub": str(user.id), "role": user.role}
        access_token = create_access_token(claims)
        # jti keeps two pairs issued within the same second distinct
        refresh_token = create_refresh_token({**claims, "jti": uuid.uuid4().hex})

        user.refresh_token_hash = fingerprint_token(refresh_token)
        await self.session.commit()
        return Token(access_token=access_token, refresh_token=refresh_token)

    async def register_user(self, user_data: UserCreate) -> User:
        """
        Register a new user with hashed password.
        Raises ConflictError if email or username already exists.
        """
        result = await self.session.execute(
            select(User).where(or_(User.email == user_data.email, User.username == user_data.username))
        )
        existing = result.scalars().first()
        if existing is not None:
            reason = "email_exists" if existing.email == user_data.email else "username_exists"
            logger.warning("registration_failed", reason=reason, email=user_data.email)
            raise ConflictError(
                ErrorCode.USER_EXISTS,
                "Email already registered" if reason == "email_exists" else "Username already taken",
            )

        user = User(
            email=user_data.email,
            username=user_data.username,
            hashed_password=hash_password(user_data.password),
        )
        self.session.add(user)
        await self.session.commit()
        await self.session.refresh(user)

        logger.info("user_registered", user_id=user.id, email=user.email)
        return user

    async def authenticate_user(self, login_data: UserLogin) -> Token:
        """
        Check credentials and issue an access/refresh pair.
        Raises AuthenticationError if credentials are invalid.
        """
        result = await self.session.execute(select(User).where(User.email == login_data.email))
        user = result.scalar_one_or_none()

        if not user or not verify_password(login_data.password, user.hashed_password):
            logger.warning("login_failed", email=login_data.email)
            raise AuthenticationError(ErrorCode.INVALID_CREDENTIALS, "Invalid email or password")

        if not user.is_active:
            raise ForbiddenError(ErrorCode.FORBIDDEN, "Account is deactivated")

        tokens = await self._issue_tokens(user)
        logger.info("user_logged_in", user_id=user.id)
        return tokens

    async def refresh_tokens(self, refresh_token: str) -> Token:
        try:
            payload = decode_token(refresh_token, expected_type=REFRESH_TOKEN_TYPE)
            user_id = int(payload["sub"])
        except (TokenError, KeyError, ValueError) as exc:
            raise AuthenticationError(ErrorCode.REFRESH_TOKEN_INVALID, "Refresh token is invalid") from exc

        user = await self.session.get(User, user_id)
        if (
            user is None
            or not user.is_active
            or user.refresh_token_hash != fingerprint_token(refresh_token)
        ):
            logger.warning("refresh_rejected", user_id=user_id)
            raise AuthenticationError(ErrorCode.REFRESH_TOKEN_INVALID, "Refresh token is no longer valid")

        tokens = await self._issue_tokens(user)
        logger.info("tokens_refreshed", user_id=user.id)
        return tokens

    async def logout(self, user_id: int) -> None:
        user = await self.get_user(user_id)
        user.refresh_token_hash = None
        await self.session.commit()
        logger.info("user_logged_out", user_id=user_id)

    async def get_user(self, user_id: int) -> User:
        user = await self.session.get(User, user_id)
        if user is None:
            raise NotFoundError(ErrorCode.USER_NOT_FOUND, "User not found")
        return user
