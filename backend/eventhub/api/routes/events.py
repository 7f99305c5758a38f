"""
Event endpoints: CRUD, registration and cover upload.

Anonymous listings are cached in Redis; every mutation below that can
change what an anonymous listing shows invalidates that cache.
"""

from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Query, UploadFile, status

from eventhub.api.deps import (
    CurrentUser,
    get_current_user,
    get_event_service,
    get_file_service,
    get_optional_user,
    get_registration_service,
)
from eventhub.core.logging import get_logger
from eventhub.models.event import Event, EventCategory, EventStatus
from eventhub.schemas.event import (
    EventCreate,
    EventDetailResponse,
    EventListResponse,
    EventResponse,
    EventUpdate,
    as_utc,
)
from eventhub.schemas.file import FileOut
from eventhub.schemas.registration import EventRegistrationResponse, RegistrationResponse, UnregisterResponse
from eventhub.schemas.user import MessageResponse
from eventhub.services.cache_service import get_cached_events, invalidate_event_cache, set_cached_events
from eventhub.services.event_filters import DEFAULT_SORT, MAX_LIMIT, EventQuery, Page, Viewer
from eventhub.services.event_service import EventService
from eventhub.services.file_service import FileService
from eventhub.services.registration_service import RegistrationService

logger = get_logger(__name__)
router = APIRouter(prefix="/events", tags=["Events"])


def event_query_params(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=MAX_LIMIT),
    sort: str = Query(DEFAULT_SORT, max_length=200),
    search: Optional[str] = Query(None, max_length=200),
    category: Optional[EventCategory] = None,
    status: Optional[EventStatus] = None,
    city: Optional[str] = Query(None, max_length=100),
    organizer: Optional[int] = None,
    start_date_from: Optional[datetime] = None,
    start_date_to: Optional[datetime] = None,
    price_min: Optional[float] = Query(None, ge=0),
    price_max: Optional[float] = Query(None, ge=0),
) -> EventQuery:
    return EventQuery(
        search=search,
        category=category.value if category else None,
        status=status.value if status else None,
        city=city,
        organizer=organizer,
        start_date_from=as_utc(start_date_from) if start_date_from else None,
        start_date_to=as_utc(start_date_to) if start_date_to else None,
        price_min=price_min,
        price_max=price_max,
        page=page,
        limit=limit,
        sort=sort,
    )


def to_list_response(page: Page[Event]) -> EventListResponse:
    return EventListResponse(
        items=[EventResponse.model_validate(e) for e in page.items],
        total=page.total,
        page=page.page,
        limit=page.limit,
        total_pages=page.total_pages,
        has_next=page.has_next,
        has_prev=page.has_prev,
    )


@router.post("/", response_model=EventResponse, status_code=status.HTTP_201_CREATED)
async def create_event_endpoint(
    event_data: EventCreate,
    current_user: CurrentUser = Depends(get_current_user),
    service: EventService = Depends(get_event_service),
):
    """Create an event organized by the caller. Status defaults to draft."""
    event = await service.create_event(event_data, current_user.id)
    await invalidate_event_cache()
    return event


@router.get("/", response_model=EventListResponse)
async def list_events_endpoint(
    query: EventQuery = Depends(event_query_params),
    current_user: Optional[CurrentUser] = Depends(get_optional_user),
    service: EventService = Depends(get_event_service),
):
    """
    List events visible to the caller with filters, sorting and pagination.
    Anonymous results are cached in Redis for REDIS_CACHE_TTL seconds.
    """
    if current_user is not None:
        page = await service.list_events(query, current_user.as_viewer())
        return to_list_response(page)

    cache_key = query.cache_key()
    cached = await get_cached_events(cache_key)
    if cached:
        logger.info("events_list_cache_hit", page=query.page)
        cached["cached"] = True
        return EventListResponse(**cached)

    response = to_list_response(await service.list_events(query, Viewer()))
    await set_cached_events(cache_key, response.model_dump(mode="json"))
    return response


@router.get("/{event_id}", response_model=EventDetailResponse)
async def get_event_endpoint(
    event_id: int,
    current_user: Optional[CurrentUser] = Depends(get_optional_user),
    service: EventService = Depends(get_event_service),
):
    """Single event with a live registration count. Never cached."""
    if current_user is None:
        return await service.get_event(event_id)
    return await service.get_event(event_id, current_user.id, current_user.is_admin)


@router.put("/{event_id}", response_model=EventResponse)
async def update_event_endpoint(
    event_id: int,
    patch: EventUpdate,
    current_user: CurrentUser = Depends(get_current_user),
    service: EventService = Depends(get_event_service),
):
    event = await service.update_event(event_id, patch, current_user.id, current_user.is_admin)
    await invalidate_event_cache()
    return event


@router.delete("/{event_id}", response_model=MessageResponse)
async def delete_event_endpoint(
    event_id: int,
    current_user: CurrentUser = Depends(get_current_user),
    service: EventService = Depends(get_event_service),
):
    """Delete an event together with its registrations and cover image."""
    await service.delete_event(event_id, current_user.id, current_user.is_admin)
    await invalidate_event_cache()
    return MessageResponse(message="Event deleted successfully")


@router.post("/{event_id}/register", response_model=RegistrationResponse, status_code=status.HTTP_201_CREATED)
async def register_endpoint(
    event_id: int,
    current_user: CurrentUser = Depends(get_current_user),
    service: RegistrationService = Depends(get_registration_service),
):
    """
    Register the caller for a published event.

    The spot is taken with a single conditional UPDATE, so concurrent
    requests for the last spot cannot overbook: exactly one wins and the
    others get 409 EVENT_FULL.
    """
    registration = await service.register(event_id, current_user.id, current_user.role)
    await invalidate_event_cache()
    return registration


@router.delete("/{event_id}/register", response_model=UnregisterResponse)
async def unregister_endpoint(
    event_id: int,
    current_user: CurrentUser = Depends(get_current_user),
    service: RegistrationService = Depends(get_registration_service),
):
    """Cancel the caller's registration and release the spot."""
    registration = await service.unregister(event_id, current_user.id)
    await invalidate_event_cache()
    return UnregisterResponse(
        message="Registration cancelled successfully",
        event_id=registration.event_id,
        status=registration.status,
    )


@router.get("/{event_id}/registrations", response_model=list[EventRegistrationResponse])
async def list_event_registrations_endpoint(
    event_id: int,
    current_user: CurrentUser = Depends(get_current_user),
    service: RegistrationService = Depends(get_registration_service),
):
    """Everyone registered for the event, newest first. Organizer or admin only."""
    rows = await service.list_event_registrations(event_id, current_user.id, current_user.is_admin)
    return [
        EventRegistrationResponse(
            **RegistrationResponse.model_validate(registration).model_dump(),
            user_email=email,
            username=username,
        )
        for registration, email, username in rows
    ]


@router.post("/{event_id}/cover", response_model=FileOut, status_code=status.HTTP_201_CREATED)
async def upload_cover_endpoint(
    event_id: int,
    file: UploadFile,
    current_user: CurrentUser = Depends(get_current_user),
    service: FileService = Depends(get_file_service),
):
    """Upload or replace the event cover image."""
    try:
        cover = await service.upload_event_cover(
            event_id,
            file.file,
            file.filename,
            file.content_type,
            current_user.id,
            current_user.is_admin,
        )
    finally:
        await file.close()
    await invalidate_event_cache()
    return cover
