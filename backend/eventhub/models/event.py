"""
Event model with a denormalized registration counter.

Key design decisions:
- `registration_count` mirrors the number of confirmed registrations and is
  only written by CapacityCounter through conditional UPDATEs
- CHECK constraints keep 0 <= registration_count <= capacity even if a code
  path ever bypasses the counter
- Location is stored flat (location_*) and exposed nested by the schemas
"""

import enum
from datetime import datetime, timezone

from sqlalchemy import (
    JSON,
    CheckConstraint,
    Column,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
)
from sqlalchemy.orm import relationship

from eventhub.db.base import Base, TimestampMixin


class EventCategory(str, enum.Enum):
    CONFERENCE = "conference"
    WORKSHOP = "workshop"
    CONCERT = "concert"
    SPORT = "sport"
    NETWORKING = "networking"
    OTHER = "other"


class EventStatus(str, enum.Enum):
    DRAFT = "draft"
    PUBLISHED = "published"
    CANCELLED = "cancelled"
    COMPLETED = "completed"


def utcnow_like(value: datetime | None) -> datetime:
    """Current UTC time, naive when `value` is naive (SQLite drops tzinfo)."""
    now = datetime.now(timezone.utc)
    if value is not None and value.tzinfo is None:
        return now.replace(tzinfo=None)
    return now


class Event(Base, TimestampMixin):
    __tablename__ = "events"

    id = Column(Integer, primary_key=True, index=True)
    title = Column(String(200), nullable=False)
    description = Column(Text, nullable=False)
    category = Column(String(20), nullable=False)
    status = Column(String(20), nullable=False, default=EventStatus.DRAFT.value)
    start_date = Column(DateTime(timezone=True), nullable=False)
    end_date = Column(DateTime(timezone=True), nullable=False)

    location_address = Column(String(300), nullable=False)
    location_city = Column(String(100), nullable=False)
    location_postal_code = Column(String(20), nullable=True)
    location_country = Column(String(100), nullable=False, default="France")

    capacity = Column(Integer, nullable=False)
    price = Column(Float, nullable=False, default=0)
    tags = Column(JSON, nullable=False, default=list)

    cover_image_id = Column(Integer, ForeignKey("files.id", ondelete="SET NULL"), nullable=True)
    organizer_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    registration_count = Column(Integer, nullable=False, default=0)

    # Loaded explicitly (selectinload) wherever an event is serialized
    organizer = relationship("User", foreign_keys=[organizer_id])
    cover_image = relationship("File", foreign_keys=[cover_image_id])

    __table_args__ = (
        CheckConstraint("capacity > 0", name="check_event_capacity_positive"),
        CheckConstraint("registration_count >= 0", name="check_registration_count_non_negative"),
        CheckConstraint("registration_count <= capacity", name="check_registration_count_lte_capacity"),
        CheckConstraint("price >= 0", name="check_event_price_non_negative"),
        CheckConstraint("end_date > start_date", name="check_event_dates_ordered"),
        CheckConstraint(
            "status IN ('draft', 'published', 'cancelled', 'completed')",
            name="check_event_status",
        ),
        Index("ix_events_status", "status"),
        Index("ix_events_category", "category"),
        Index("ix_events_start_date", "start_date"),
        Index("ix_events_organizer_id", "organizer_id"),
        Index("ix_events_location_city", "location_city"),
        Index("ix_events_created_at", "created_at"),
    )

    @property
    def is_full(self) -> bool:
        return self.registration_count >= self.capacity

    @property
    def available_spots(self) -> int:
        return max(0, self.capacity - self.registration_count)

    @property
    def is_past(self) -> bool:
        return utcnow_like(self.end_date) > self.end_date

    @property
    def location(self) -> dict:
        return {
            "address": self.location_address,
            "city": self.location_city,
            "postal_code": self.location_postal_code,
            "country": self.location_country,
        }

    def __repr__(self) -> str:
        return (
            f"<Event(id={self.id}, title={self.title}, status={self.status}, "
            f"registered={self.registration_count}/{self.capacity})>"
        )
