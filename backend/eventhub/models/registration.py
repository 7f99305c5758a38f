"""
Registration model linking a user to an event.

Key design decisions:
- Unique constraint on (user_id, event_id): one row per pair, ever
- Unregister/re-register flips `status` on that row instead of inserting
"""

import enum

from sqlalchemy import CheckConstraint, Column, DateTime, ForeignKey, Index, Integer, String, UniqueConstraint, func

from eventhub.db.base import Base, TimestampMixin


class RegistrationStatus(str, enum.Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"


class Registration(Base, TimestampMixin):
    __tablename__ = "registrations"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    event_id = Column(Integer, ForeignKey("events.id", ondelete="CASCADE"), nullable=False)
    status = Column(String(20), nullable=False, default=RegistrationStatus.CONFIRMED.value)
    registered_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    __table_args__ = (
        UniqueConstraint("user_id", "event_id", name="uq_user_event_registration"),
        CheckConstraint(
            "status IN ('pending', 'confirmed', 'cancelled')",
            name="check_registration_status",
        ),
        Index("ix_registrations_user_id", "user_id"),
        Index("ix_registrations_event_id", "event_id"),
        Index("ix_registrations_status", "status"),
    )

    def __repr__(self) -> str:
        return f"<Registration(id={self.id}, user={self.user_id}, event={self.event_id}, status={self.status})>"
