"""
Registration state machine.

One row per (user, event). A registration is created CONFIRMED, flipped to
CANCELLED on unregister and back to CONFIRMED on re-register; the row is
never deleted while the event exists.

Every transition that changes the number of confirmed registrations moves
`events.registration_count` in the same transaction through CapacityCounter.
The status flips are themselves conditional UPDATEs, so two concurrent
unregisters by the same user cannot release the same spot twice.
"""

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from eventhub.core.logging import get_logger
from eventhub.core.metrics import record_registration_attempt, record_unregistration, registration_latency
from eventhub.models.event import Event, EventStatus
from eventhub.models.registration import Registration, RegistrationStatus
from eventhub.models.user import User, UserRole
from eventhub.services.capacity import CapacityCounter
from eventhub.services.error_codes import ErrorCode
from eventhub.services.event_filters import Page
from eventhub.services.exceptions import (
    ConflictError,
    EventFullError,
    ForbiddenError,
    NotFoundError,
    ServiceError,
    StateError,
)

logger = get_logger(__name__)

CONFIRMED = RegistrationStatus.CONFIRMED.value
CANCELLED = RegistrationStatus.CANCELLED.value


def already_registered() -> ConflictError:
    return ConflictError(ErrorCode.ALREADY_REGISTERED, "already registered for this event")


class RegistrationService:
    def __init__(self, session: AsyncSession):
        self.session = session
        self.counter = CapacityCounter(session)

    async def _find(self, event_id: int, user_id: int) -> Registration | None:
        result = await self.session.execute(
            select(Registration)
            .where(Registration.event_id == event_id, Registration.user_id == user_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def _flip(self, registration_id: int, from_status: str, to_status: str) -> bool:
        result = await self.session.execute(
            update(Registration)
            .where(Registration.id == registration_id, Registration.status == from_status)
            .values(status=to_status)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    async def _claim_spot(self, event: Event, user_id: int) -> Registration:
        registration = await self._find(event.id, user_id)

        if registration is None:
            if event.registration_count >= event.capacity:
                raise EventFullError()
            registration = Registration(user_id=user_id, event_id=event.id, status=CONFIRMED)
            self.session.add(registration)
            await self.session.flush()
        elif registration.status == CONFIRMED:
            raise already_registered()
        elif not await self._flip(registration.id, CANCELLED, CONFIRMED):
            # another request re-activated it first
            raise already_registered()

        await self.counter.increment(event.id)
        return registration

    async def register(self, event_id: int, user_id: int, role: str) -> Registration:
        """
        NONE -> CONFIRMED (insert) or CANCELLED -> CONFIRMED (flip), taking
        one spot either way. Raises:
          - NotFoundError   event missing or not published
          - ForbiddenError  caller is an admin
          - ConflictError   already registered / event full
        A concurrent delete of the event surfaces as NotFoundError.
        """
        with registration_latency.time():
            event = await self.session.get(Event, event_id, populate_existing=True)
            if event is None or event.status != EventStatus.PUBLISHED.value:
                raise NotFoundError(ErrorCode.EVENT_NOT_FOUND, "event not found")

            if role == UserRole.ADMIN.value:
                record_registration_attempt("rejected")
                raise ForbiddenError(ErrorCode.FORBIDDEN, "administrators cannot register for events")

            try:
                registration = await self._claim_spot(event, user_id)
                await self.session.commit()
            except EventFullError:
                await self.session.rollback()
                record_registration_attempt("full")
                logger.info("registration_rejected_full", event_id=event_id, user_id=user_id)
                raise
            except IntegrityError as exc:
                # unique (user_id, event_id) lost to a concurrent insert by the same
                # user, or the event row was deleted under us (foreign key)
                await self.session.rollback()
                if await self.session.scalar(select(Event.id).where(Event.id == event_id)) is None:
                    record_registration_attempt("rejected")
                    raise NotFoundError(ErrorCode.EVENT_NOT_FOUND, "event not found") from exc
                record_registration_attempt("duplicate")
                raise already_registered() from exc
            except NotFoundError:
                # deleted between the lookup and the capacity update
                await self.session.rollback()
                record_registration_attempt("rejected")
                raise
            except ServiceError:
                await self.session.rollback()
                record_registration_attempt("duplicate")
                raise

            await self.session.refresh(registration)

        record_registration_attempt("confirmed")
        logger.info("registration_confirmed", event_id=event_id, user_id=user_id, registration_id=registration.id)
        return registration

    async def unregister(self, event_id: int, user_id: int) -> Registration:
        """CONFIRMED -> CANCELLED, releasing one spot."""
        registration = await self._find(event_id, user_id)
        if registration is None or registration.status != CONFIRMED:
            raise StateError(ErrorCode.NOT_REGISTERED, "not registered for this event")

        if not await self._flip(registration.id, CONFIRMED, CANCELLED):
            await self.session.rollback()
            raise StateError(ErrorCode.NOT_REGISTERED, "not registered for this event")

        await self.counter.decrement(event_id)
        await self.session.commit()
        await self.session.refresh(registration)

        record_unregistration()
        logger.info("registration_cancelled", event_id=event_id, user_id=user_id, registration_id=registration.id)
        return registration

    async def list_event_registrations(
        self, event_id: int, user_id: int, is_admin: bool = False
    ) -> list[tuple[Registration, str, str]]:
        """All registrations of an event with the registrant's email and username. Organizer or admin only."""
        event = await self.session.get(Event, event_id)
        if event is None:
            raise NotFoundError(ErrorCode.EVENT_NOT_FOUND, "event not found")
        if not is_admin and event.organizer_id != user_id:
            raise ForbiddenError(ErrorCode.FORBIDDEN, "not the organizer of this event")

        result = await self.session.execute(
            select(Registration, User.email, User.username)
            .join(User, User.id == Registration.user_id)
            .where(Registration.event_id == event_id)
            .order_by(Registration.registered_at.desc(), Registration.id.desc())
        )
        return [tuple(row) for row in result.all()]

    async def list_user_registrations(
        self, user_id: int, page: int = 1, limit: int = 10
    ) -> Page[tuple[Registration, Event]]:
        """The user's confirmed registrations with their events, newest first."""
        filters = (Registration.user_id == user_id, Registration.status == CONFIRMED)

        total = (await self.session.execute(
            select(func.count(Registration.id)).where(*filters)
        )).scalar() or 0

        result = await self.session.execute(
            select(Registration, Event)
            .join(Event, Event.id == Registration.event_id)
            .options(selectinload(Event.organizer), selectinload(Event.cover_image))
            .where(*filters)
            .order_by(Registration.registered_at.desc(), Registration.id.desc())
            .offset((page - 1) * limit)
            .limit(limit)
        )
        items = [(registration, event) for registration, event in result.all()]
        return Page(items=items, total=total, page=page, limit=limit)
