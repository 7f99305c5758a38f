"""
Event lifecycle: create, read, list, update, delete.

Visibility rules:
  - published events are visible to everyone
  - draft/cancelled/completed events are visible to their organizer and to
    admins only; everyone else gets EVENT_NOT_FOUND (not FORBIDDEN) so the
    existence of unpublished events does not leak

Status transitions:
  draft -> published -> cancelled | completed
"""

from enum import Enum
from typing import Optional

from fastapi.concurrency import run_in_threadpool
from sqlalchemy import delete, func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from eventhub.core.logging import get_logger
from eventhub.core.metrics import record_event_mutation
from eventhub.models.event import Event, EventStatus
from eventhub.models.registration import Registration, RegistrationStatus
from eventhub.schemas.event import EventCreate, EventDetailResponse, EventUpdate, as_utc
from eventhub.services.error_codes import ErrorCode
from eventhub.services.event_filters import EventQuery, Page, Viewer, build_event_filters, parse_sort
from eventhub.services.exceptions import ConflictError, ForbiddenError, NotFoundError, ValidationError
from eventhub.storage.base import StorageAdapter

logger = get_logger(__name__)

ALLOWED_TRANSITIONS: dict[EventStatus, frozenset[EventStatus]] = {
    EventStatus.DRAFT: frozenset({EventStatus.PUBLISHED}),
    EventStatus.PUBLISHED: frozenset({EventStatus.CANCELLED, EventStatus.COMPLETED}),
    EventStatus.CANCELLED: frozenset(),
    EventStatus.COMPLETED: frozenset(),
}

CREATABLE_STATUSES = frozenset({EventStatus.DRAFT, EventStatus.PUBLISHED})

# Patchable columns, applied one by one. organizer_id, registration_count
# and cover_image_id are intentionally missing.
UPDATABLE_FIELDS = ("title", "description", "category", "status", "start_date", "end_date", "capacity", "price", "tags")
LOCATION_COLUMNS = {
    "address": "location_address",
    "city": "location_city",
    "postal_code": "location_postal_code",
    "country": "location_country",
}


# Every serialized event carries its organizer summary and cover file
EVENT_RELATIONS = (selectinload(Event.organizer), selectinload(Event.cover_image))


def can_transition(current: EventStatus, target: EventStatus) -> bool:
    return current == target or target in ALLOWED_TRANSITIONS[current]


class EventService:
    def __init__(self, session: AsyncSession, storage: StorageAdapter):
        self.session = session
        self.storage = storage

    async def _get_or_404(self, event_id: int) -> Event:
        result = await self.session.execute(
            select(Event)
            .options(*EVENT_RELATIONS)
            .where(Event.id == event_id)
            .execution_options(populate_existing=True)
        )
        event = result.scalar_one_or_none()
        if event is None:
            raise NotFoundError(ErrorCode.EVENT_NOT_FOUND, "event not found")
        return event

    @staticmethod
    def _require_manage_permission(event: Event, user_id: int, is_admin: bool) -> None:
        if is_admin:
            return
        if event.organizer_id != user_id:
            raise ForbiddenError(ErrorCode.FORBIDDEN, "not the organizer of this event")

    async def get_manageable_event(self, event_id: int, user_id: int, is_admin: bool) -> Event:
        event = await self._get_or_404(event_id)
        self._require_manage_permission(event, user_id, is_admin)
        return event

    async def create_event(self, data: EventCreate, organizer_id: int) -> Event:
        if data.status not in CREATABLE_STATUSES:
            raise ValidationError(
                ErrorCode.VALIDATION_ERROR,
                f"an event cannot be created with status '{data.status.value}'",
            )

        event = Event(
            title=data.title,
            description=data.description,
            category=data.category.value,
            status=data.status.value,
            start_date=data.start_date,
            end_date=data.end_date,
            location_address=data.location.address,
            location_city=data.location.city,
            location_postal_code=data.location.postal_code,
            location_country=data.location.country,
            capacity=data.capacity,
            price=data.price,
            tags=list(data.tags),
            organizer_id=organizer_id,
            registration_count=0,
        )
        self.session.add(event)
        await self.session.commit()
        event = await self._get_or_404(event.id)

        record_event_mutation("create")
        logger.info("event_created", event_id=event.id, organizer_id=organizer_id, status=event.status)
        return event

    async def count_confirmed(self, event_id: int) -> int:
        result = await self.session.execute(
            select(func.count(Registration.id)).where(
                Registration.event_id == event_id,
                Registration.status == RegistrationStatus.CONFIRMED.value,
            )
        )
        return result.scalar() or 0

    async def get_event(
        self,
        event_id: int,
        user_id: Optional[int] = None,
        is_admin: bool = False,
    ) -> EventDetailResponse:
        event = await self._get_or_404(event_id)

        if event.status != EventStatus.PUBLISHED.value and not is_admin:
            if user_id is None or event.organizer_id != user_id:
                raise NotFoundError(ErrorCode.EVENT_NOT_FOUND, "event not found")

        live_count = await self.count_confirmed(event.id)
        detail = EventDetailResponse.model_validate(event).model_copy(update={
            "registration_count": live_count,
            "is_full": live_count >= event.capacity,
            "available_spots": max(0, event.capacity - live_count),
        })

        if user_id is not None:
            result = await self.session.execute(
                select(Registration.status).where(
                    Registration.event_id == event.id,
                    Registration.user_id == user_id,
                )
            )
            registration_status = result.scalar_one_or_none()
            detail.is_registered = registration_status == RegistrationStatus.CONFIRMED.value
            detail.registration_status = registration_status

        return detail

    async def list_events(self, query: EventQuery, viewer: Viewer) -> Page[Event]:
        filters = build_event_filters(query, viewer)
        order_by = parse_sort(query.sort)

        total = (await self.session.execute(
            select(func.count(Event.id)).where(*filters)
        )).scalar() or 0

        result = await self.session.execute(
            select(Event)
            .options(*EVENT_RELATIONS)
            .where(*filters)
            .order_by(*order_by)
            .offset(query.offset)
            .limit(query.limit)
            .execution_options(populate_existing=True)
        )
        return Page(items=list(result.scalars().all()), total=total, page=query.page, limit=query.limit)

    async def list_user_events(self, user_id: int, query: EventQuery) -> Page[Event]:
        """Every event the user organizes, whatever its status."""
        query.organizer = user_id
        return await self.list_events(query, Viewer(user_id=user_id, is_admin=True))

    async def update_event(self, event_id: int, patch: EventUpdate, user_id: int, is_admin: bool = False) -> Event:
        event = await self.get_manageable_event(event_id, user_id, is_admin)
        changes = patch.model_dump(exclude_unset=True)

        if "status" in changes and changes["status"] is not None:
            current = EventStatus(event.status)
            target = changes["status"]
            if not can_transition(current, target):
                raise ConflictError(
                    ErrorCode.INVALID_STATUS_TRANSITION,
                    f"cannot change status from '{current.value}' to '{target.value}'",
                )

        start_date = changes.get("start_date") or as_utc(event.start_date)
        end_date = changes.get("end_date") or as_utc(event.end_date)
        if end_date <= start_date:
            raise ValidationError(ErrorCode.VALIDATION_ERROR, "end_date must be after start_date")

        if changes.get("capacity") is not None and changes["capacity"] < event.registration_count:
            raise ConflictError(
                ErrorCode.CAPACITY_BELOW_REGISTRATIONS,
                f"capacity cannot be below the {event.registration_count} confirmed registrations",
            )

        for name in UPDATABLE_FIELDS:
            value = changes.get(name)
            if value is None:
                continue
            setattr(event, name, value.value if isinstance(value, Enum) else value)

        location = changes.get("location") or {}
        for name, column in LOCATION_COLUMNS.items():
            # postal_code is the only location part that may be cleared
            if name in location and (location[name] is not None or name == "postal_code"):
                setattr(event, column, location[name])

        try:
            await self.session.commit()
        except IntegrityError as exc:
            # registration_count <= capacity: a registration landed between the check and the write
            await self.session.rollback()
            raise ConflictError(
                ErrorCode.CAPACITY_BELOW_REGISTRATIONS,
                "capacity cannot be below the number of confirmed registrations",
            ) from exc
        event = await self._get_or_404(event.id)

        record_event_mutation("update")
        logger.info("event_updated", event_id=event.id, fields=sorted(changes))
        return event

    async def delete_event(self, event_id: int, user_id: int, is_admin: bool = False) -> None:
        """
        Delete the event, all its registrations and its cover file row in one
        transaction. The stored cover bytes are removed afterwards; failing to
        remove them is logged and does not fail the delete.
        """
        event = await self.get_manageable_event(event_id, user_id, is_admin)

        cover = event.cover_image

        removed = await self.session.execute(
            delete(Registration)
            .where(Registration.event_id == event.id)
            .execution_options(synchronize_session=False)
        )
        await self.session.delete(event)
        await self.session.flush()
        if cover is not None:
            await self.session.delete(cover)
        await self.session.commit()

        if cover is not None:
            await self.discard_stored_file(cover.filename)

        record_event_mutation("delete")
        logger.info(
            "event_deleted",
            event_id=event_id,
            registrations_removed=removed.rowcount,
            cover_removed=cover is not None,
        )

    async def discard_stored_file(self, filename: str) -> None:
        try:
            await run_in_threadpool(self.storage.delete, filename)
        except Exception as e:
            logger.warning("cover_delete_failed", filename=filename, error=str(e))
