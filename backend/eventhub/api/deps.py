"""
FastAPI dependencies: caller identity and per-request services.
"""

from dataclasses import dataclass
from typing import Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from eventhub.core.logging import get_logger
from eventhub.core.security import TokenError, decode_token
from eventhub.db.session import get_db
from eventhub.models.user import User, UserRole
from eventhub.services.auth_service import AuthService
from eventhub.services.event_filters import Viewer
from eventhub.services.event_service import EventService
from eventhub.services.file_service import FileService
from eventhub.services.registration_service import RegistrationService
from eventhub.storage import StorageAdapter, get_storage

logger = get_logger(__name__)

bearer_scheme = HTTPBearer(auto_error=False)


@dataclass(frozen=True)
class CurrentUser:
    id: int
    role: str

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN.value

    def as_viewer(self) -> Viewer:
        return Viewer(user_id=self.id, is_admin=self.is_admin)


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


async def _resolve_user(token: str, db: AsyncSession) -> CurrentUser:
    """
    Decode an access token and load its user. The role is read from the
    database, not from the token, so a demotion takes effect immediately.
    """
    try:
        payload = decode_token(token)
        user_id = int(payload["sub"])
    except (TokenError, ValueError) as exc:
        raise _unauthorized(str(exc)) from exc

    user = await db.get(User, user_id)
    if user is None or not user.is_active:
        logger.warning("auth_user_rejected", user_id=user_id)
        raise _unauthorized("Could not validate credentials")
    return CurrentUser(id=user.id, role=user.role)


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    db: AsyncSession = Depends(get_db),
) -> CurrentUser:
    if credentials is None:
        raise _unauthorized("Not authenticated")
    return await _resolve_user(credentials.credentials, db)


async def get_optional_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    db: AsyncSession = Depends(get_db),
) -> Optional[CurrentUser]:
    """Like get_current_user, but anonymous callers and unusable tokens get None."""
    if credentials is None:
        return None
    try:
        return await _resolve_user(credentials.credentials, db)
    except HTTPException:
        return None


def get_auth_service(db: AsyncSession = Depends(get_db)) -> AuthService:
    return AuthService(db)


def get_event_service(
    db: AsyncSession = Depends(get_db),
    storage: StorageAdapter = Depends(get_storage),
) -> EventService:
    return EventService(db, storage)


def get_registration_service(db: AsyncSession = Depends(get_db)) -> RegistrationService:
    return RegistrationService(db)


def get_file_service(
    db: AsyncSession = Depends(get_db),
    storage: StorageAdapter = Depends(get_storage),
) -> FileService:
    return FileService(db, storage)
