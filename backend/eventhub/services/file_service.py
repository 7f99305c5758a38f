"""
Event cover uploads, file lookups and file deletion.

Upload bytes are buffered (spilling to disk past 1 MB) while the size limit
is checked, so nothing reaches the storage backend until the whole upload
is known to be acceptable.

Access rules for reading a file:
  - the cover of a published event is public
  - otherwise only the uploader, the organizer of the event it covers and
    admins can read it
"""

import re
import tempfile
import uuid
from pathlib import Path
from typing import BinaryIO, Optional

from fastapi.concurrency import run_in_threadpool
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from eventhub.core.config import get_settings
from eventhub.core.logging import get_logger
from eventhub.core.metrics import record_event_mutation
from eventhub.models.event import Event, EventStatus
from eventhub.models.file import File
from eventhub.services.error_codes import ErrorCode
from eventhub.services.event_service import EventService
from eventhub.services.exceptions import ForbiddenError, NotFoundError, ValidationError
from eventhub.storage.base import StorageAdapter

logger = get_logger(__name__)

CHUNK_SIZE = 1024 * 1024
FILENAME_SANITIZE_RE = re.compile(r"[^A-Za-z0-9._-]+")


def safe_filename(raw_filename: Optional[str], fallback: str = "cover") -> str:
    candidate = Path((raw_filename or fallback).strip()).name
    candidate = FILENAME_SANITIZE_RE.sub("_", candidate).strip("._") or fallback
    if len(candidate) > 200:
        candidate = Path(candidate).stem[:160] + Path(candidate).suffix[:20]
    return candidate


class FileService:
    def __init__(self, session: AsyncSession, storage: StorageAdapter):
        self.session = session
        self.storage = storage
        self.events = EventService(session, storage)

    def _buffer_upload(self, fileobj: BinaryIO, max_size: int) -> tuple[BinaryIO, int]:
        buffered = tempfile.SpooledTemporaryFile(max_size=CHUNK_SIZE, mode="w+b")
        total = 0
        try:
            while True:
                chunk = fileobj.read(CHUNK_SIZE)
                if not chunk:
                    break
                total += len(chunk)
                if total > max_size:
                    raise ValidationError(ErrorCode.FILE_TOO_LARGE, f"file exceeds max size of {max_size} bytes")
                buffered.write(chunk)
        except Exception:
            buffered.close()
            raise
        buffered.seek(0)
        return buffered, total

    async def upload_event_cover(
        self,
        event_id: int,
        fileobj: BinaryIO,
        original_name: Optional[str],
        content_type: Optional[str],
        user_id: int,
        is_admin: bool = False,
    ) -> File:
        """
        Store a new cover image for the event and point the event at it.
        The previous cover, if any, is removed (its bytes best-effort).
        """
        settings = get_settings()
        event = await self.events.get_manageable_event(event_id, user_id, is_admin)

        mime_type = (content_type or "").lower()
        if mime_type not in settings.allowed_mime_types_list:
            raise ValidationError(ErrorCode.FILE_TYPE_NOT_ALLOWED, f"file type '{mime_type}' is not allowed")

        buffered, size = await run_in_threadpool(self._buffer_upload, fileobj, settings.MAX_UPLOAD_SIZE)
        if size == 0:
            buffered.close()
            raise ValidationError(ErrorCode.VALIDATION_ERROR, "uploaded file is empty")

        name = safe_filename(original_name)
        key = f"{uuid.uuid4().hex}{Path(name).suffix.lower()}"
        try:
            await run_in_threadpool(self.storage.put_file, key, buffered)
        finally:
            buffered.close()

        previous = event.cover_image

        cover = File(
            original_name=name,
            filename=key,
            mime_type=mime_type,
            size=size,
            uploaded_by=user_id,
        )
        self.session.add(cover)
        try:
            await self.session.flush()
            event.cover_image = cover
            if previous is not None:
                await self.session.delete(previous)
            await self.session.commit()
        except Exception:
            await self.session.rollback()
            await self.events.discard_stored_file(key)
            raise
        await self.session.refresh(cover)

        if previous is not None:
            await self.events.discard_stored_file(previous.filename)

        record_event_mutation("cover")
        logger.info("event_cover_uploaded", event_id=event_id, file_id=cover.id, size=size)
        return cover

    async def get_file(self, file_id: int) -> File:
        file = await self.session.get(File, file_id)
        if file is None:
            raise NotFoundError(ErrorCode.FILE_NOT_FOUND, "file not found")
        return file

    def open_file(self, file: File) -> BinaryIO:
        if not self.storage.exists(file.filename):
            logger.warning("file_bytes_missing", file_id=file.id, filename=file.filename)
            raise NotFoundError(ErrorCode.FILE_NOT_FOUND, "file not found")
        return self.storage.open(file.filename)

    async def covered_event(self, file: File) -> Optional[Event]:
        result = await self.session.execute(select(Event).where(Event.cover_image_id == file.id))
        return result.scalar_one_or_none()

    async def can_access_file(self, file: File, user_id: Optional[int] = None, is_admin: bool = False) -> bool:
        if is_admin:
            return True
        if user_id is not None and file.uploaded_by == user_id:
            return True

        event = await self.covered_event(file)
        if event is None:
            return False
        if event.status == EventStatus.PUBLISHED.value:
            return True
        return user_id is not None and event.organizer_id == user_id

    async def get_accessible_file(self, file_id: int, user_id: Optional[int] = None, is_admin: bool = False) -> File:
        file = await self.get_file(file_id)
        if not await self.can_access_file(file, user_id, is_admin):
            raise ForbiddenError(ErrorCode.FORBIDDEN, "no access to this file")
        return file

    async def list_user_files(self, user_id: int) -> list[File]:
        """Files uploaded by the user, newest first."""
        result = await self.session.execute(
            select(File)
            .where(File.uploaded_by == user_id)
            .order_by(File.created_at.desc(), File.id.desc())
        )
        return list(result.scalars().all())

    async def delete_file(self, file_id: int, user_id: int, is_admin: bool = False) -> None:
        """
        Delete a file row, detaching it from the event it covers. Uploader or
        admin only. The stored bytes are removed afterwards, best-effort.
        """
        file = await self.get_file(file_id)
        if not is_admin and file.uploaded_by != user_id:
            raise ForbiddenError(ErrorCode.FORBIDDEN, "not the uploader of this file")

        detached = await self.session.execute(
            update(Event)
            .where(Event.cover_image_id == file.id)
            .values(cover_image_id=None)
            .execution_options(synchronize_session=False)
        )
        await self.session.delete(file)
        await self.session.commit()

        await self.events.discard_stored_file(file.filename)

        record_event_mutation("file_delete")
        logger.info("file_deleted", file_id=file_id, user_id=user_id, covers_detached=detached.rowcount)
