"""
Endpoints scoped to the authenticated user: organized events and registrations.
"""

from fastapi import APIRouter, Depends, Query

from eventhub.api.deps import CurrentUser, get_current_user, get_event_service, get_registration_service
from eventhub.api.routes.events import event_query_params, to_list_response
from eventhub.schemas.event import EventListResponse, EventResponse
from eventhub.schemas.registration import MyRegistrationListResponse, MyRegistrationResponse, RegistrationResponse
from eventhub.services.event_filters import MAX_LIMIT, EventQuery
from eventhub.services.event_service import EventService
from eventhub.services.registration_service import RegistrationService

router = APIRouter(prefix="/users/me", tags=["Users"])


@router.get("/events", response_model=EventListResponse)
async def my_events(
    query: EventQuery = Depends(event_query_params),
    current_user: CurrentUser = Depends(get_current_user),
    service: EventService = Depends(get_event_service),
):
    """Events organized by the caller, drafts included."""
    page = await service.list_user_events(current_user.id, query)
    return to_list_response(page)


@router.get("/registrations", response_model=MyRegistrationListResponse)
async def my_registrations(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=MAX_LIMIT),
    current_user: CurrentUser = Depends(get_current_user),
    service: RegistrationService = Depends(get_registration_service),
):
    """The caller's confirmed registrations with their events."""
    result = await service.list_user_registrations(current_user.id, page, limit)
    return MyRegistrationListResponse(
        items=[
            MyRegistrationResponse(
                **RegistrationResponse.model_validate(registration).model_dump(),
                event=EventResponse.model_validate(event),
            )
            for registration, event in result.items
        ],
        total=result.total,
        page=result.page,
        limit=result.limit,
        total_pages=result.total_pages,
        has_next=result.has_next,
        has_prev=result.has_prev,
    )
