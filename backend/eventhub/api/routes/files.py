"""
File endpoints: metadata, download, inline preview and deletion.

Covers of published events are public; other files are readable by their
uploader, the organizer of the event they cover and admins.
"""

from typing import Optional

from fastapi import APIRouter, Depends
from fastapi.responses import StreamingResponse

from eventhub.api.deps import CurrentUser, get_current_user, get_file_service, get_optional_user
from eventhub.models.file import File
from eventhub.schemas.file import FileOut
from eventhub.schemas.user import MessageResponse
from eventhub.services.cache_service import invalidate_event_cache
from eventhub.services.file_service import FileService

router = APIRouter(prefix="/files", tags=["Files"])

CHUNK_SIZE = 64 * 1024


def iter_file(stream):
    with stream:
        while True:
            chunk = stream.read(CHUNK_SIZE)
            if not chunk:
                break
            yield chunk


def caller_identity(current_user: Optional[CurrentUser]) -> tuple[Optional[int], bool]:
    if current_user is None:
        return None, False
    return current_user.id, current_user.is_admin


def stream_file(service: FileService, file: File, disposition: str) -> StreamingResponse:
    stream = service.open_file(file)
    return StreamingResponse(
        iter_file(stream),
        media_type=file.mime_type,
        headers={
            "Content-Length": str(file.size),
            "Content-Disposition": f'{disposition}; filename="{file.original_name}"',
            "Cache-Control": "private, max-age=3600",
        },
    )


@router.get("/", response_model=list[FileOut])
async def list_my_files(
    current_user: CurrentUser = Depends(get_current_user),
    service: FileService = Depends(get_file_service),
):
    """Files uploaded by the caller, newest first."""
    return await service.list_user_files(current_user.id)


@router.get("/{file_id}", response_model=FileOut)
async def get_file_metadata(
    file_id: int,
    current_user: Optional[CurrentUser] = Depends(get_optional_user),
    service: FileService = Depends(get_file_service),
):
    return await service.get_accessible_file(file_id, *caller_identity(current_user))


@router.get("/{file_id}/download")
async def download_file(
    file_id: int,
    current_user: Optional[CurrentUser] = Depends(get_optional_user),
    service: FileService = Depends(get_file_service),
):
    file = await service.get_accessible_file(file_id, *caller_identity(current_user))
    return stream_file(service, file, "attachment")


@router.get("/{file_id}/preview")
async def preview_file(
    file_id: int,
    current_user: Optional[CurrentUser] = Depends(get_optional_user),
    service: FileService = Depends(get_file_service),
):
    file = await service.get_accessible_file(file_id, *caller_identity(current_user))
    return stream_file(service, file, "inline")


@router.delete("/{file_id}", response_model=MessageResponse)
async def delete_file(
    file_id: int,
    current_user: CurrentUser = Depends(get_current_user),
    service: FileService = Depends(get_file_service),
):
    """Delete a file. Uploader or admin only; an event using it as cover loses its cover."""
    await service.delete_file(file_id, current_user.id, current_user.is_admin)
    await invalidate_event_cache()
    return MessageResponse(message="File deleted successfully")
