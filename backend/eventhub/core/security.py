"""
Password hashing and JWT helpers.

Access tokens carry the user id in `sub` and the role in `role`. Refresh
tokens are signed with a separate secret and only their SHA-256 digest is
stored server-side, so a leaked database row cannot be replayed.
"""

import hashlib
from datetime import datetime, timedelta, timezone
from typing import Optional

from jose import ExpiredSignatureError, JWTError, jwt
from passlib.context import CryptContext

from eventhub.core.config import get_settings

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

ACCESS_TOKEN_TYPE = "access"
REFRESH_TOKEN_TYPE = "refresh"


class TokenError(ValueError):
    """Raised when a token cannot be decoded or has the wrong type."""


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain: str, hashed: str) -> bool:
    return pwd_context.verify(plain, hashed)


def validate_password_strength(password: str) -> None:
    """
    Raises ValueError unless the password has at least 8 characters with
    one uppercase letter, one lowercase letter and one digit.
    """
    if len(password) < 8:
        raise ValueError("Password must be at least 8 characters long")
    if not any(c.isupper() for c in password):
        raise ValueError("Password must contain at least one uppercase letter")
    if not any(c.islower() for c in password):
        raise ValueError("Password must contain at least one lowercase letter")
    if not any(c.isdigit() for c in password):
        raise ValueError("Password must contain at least one digit")


def _encode(data: dict, token_type: str, secret: str, expires_delta: timedelta) -> str:
    settings = get_settings()
    to_encode = data.copy()
    to_encode.update({
        "exp": datetime.now(timezone.utc) + expires_delta,
        "type": token_type,
    })
    return jwt.encode(to_encode, secret, algorithm=settings.ALGORITHM)


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    settings = get_settings()
    return _encode(
        data,
        ACCESS_TOKEN_TYPE,
        settings.SECRET_KEY,
        expires_delta or timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES),
    )


def create_refresh_token(data: dict) -> str:
    settings = get_settings()
    return _encode(
        data,
        REFRESH_TOKEN_TYPE,
        settings.REFRESH_SECRET_KEY,
        timedelta(days=settings.REFRESH_TOKEN_EXPIRE_DAYS),
    )


def decode_token(token: str, expected_type: str = ACCESS_TOKEN_TYPE) -> dict:
    """
    Decode and validate a JWT of the given type.

    Raises:
        TokenError: if the token is expired, malformed, signed with the
            wrong secret, missing `sub`, or of another type.
    """
    settings = get_settings()
    secret = settings.REFRESH_SECRET_KEY if expected_type == REFRESH_TOKEN_TYPE else settings.SECRET_KEY
    try:
        payload = jwt.decode(token, secret, algorithms=[settings.ALGORITHM])
    except ExpiredSignatureError as exc:
        raise TokenError("Token has expired") from exc
    except JWTError as exc:
        raise TokenError(f"Invalid token: {exc}") from exc

    if "sub" not in payload:
        raise TokenError("Invalid token payload: missing 'sub' field")
    if payload.get("type") != expected_type:
        raise TokenError("Invalid token type")
    return payload


def fingerprint_token(token: str) -> str:
    return hashlib.sha256(token.encode("utf-8")).hexdigest()
