"""
Capacity counter for events.

CONCURRENCY STRATEGY: single conditional UPDATE
===============================================

Problem:
  Two users register for the last spot simultaneously.
  Both read registration_count = capacity - 1, both write capacity.
  Result: one attendee too many, and a counter that lies.

Solution:
  The check and the write are one statement:

    UPDATE events SET registration_count = registration_count + 1
    WHERE id = :event_id AND registration_count < capacity

  The database evaluates the WHERE clause against the row it is about to
  modify while holding the write lock, so at most `capacity` increments can
  ever match. rowcount == 0 means the event was full at that instant, or
  that the row is gone (deleted by a concurrent request); a follow-up read
  tells the two apart.

  Unlike a version-column scheme there is nothing to retry: a refused
  increment is a final answer (the event is full), not a lost race.

  The CHECK constraints on the events table are the last safety net
  (0 <= registration_count <= capacity).

These two methods are the only writers of `registration_count`.
"""

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from eventhub.core.logging import get_logger
from eventhub.models.event import Event
from eventhub.services.error_codes import ErrorCode
from eventhub.services.exceptions import EventFullError, NotFoundError

logger = get_logger(__name__)


class CapacityCounter:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def increment(self, event_id: int) -> None:
        """
        Take one spot. Raises EventFullError if registration_count has
        already reached capacity, NotFoundError if the event no longer
        exists. Does not commit.
        """
        result = await self.session.execute(
            update(Event)
            .where(
                Event.id == event_id,
                Event.registration_count < Event.capacity,
            )
            .values(registration_count=Event.registration_count + 1)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            if await self.session.scalar(select(Event.id).where(Event.id == event_id)) is None:
                logger.info("capacity_increment_event_gone", event_id=event_id)
                raise NotFoundError(ErrorCode.EVENT_NOT_FOUND, "event not found")
            logger.info("capacity_increment_refused", event_id=event_id)
            raise EventFullError("capacity reached")

    async def decrement(self, event_id: int) -> bool:
        """
        Release one spot, never going below zero. Returns False when the
        counter was already zero. Does not commit.
        """
        result = await self.session.execute(
            update(Event)
            .where(
                Event.id == event_id,
                Event.registration_count > 0,
            )
            .values(registration_count=Event.registration_count - 1)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            logger.warning("capacity_decrement_at_zero", event_id=event_id)
            return False
        return True
