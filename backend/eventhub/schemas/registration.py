"""
Pydantic schemas for event registrations.
"""

from datetime import datetime

from pydantic import BaseModel

from eventhub.schemas.event import EventResponse


class RegistrationResponse(BaseModel):
    id: int
    user_id: int
    event_id: int
    status: str
    registered_at: datetime

    model_config = {"from_attributes": True}


class EventRegistrationResponse(RegistrationResponse):
    """A registration as seen by the event organizer, with the attendee's identity."""

    user_email: str
    username: str


class MyRegistrationResponse(RegistrationResponse):
    event: EventResponse


class MyRegistrationListResponse(BaseModel):
    items: list[MyRegistrationResponse]
    total: int
    page: int
    limit: int
    total_pages: int
    has_next: bool
    has_prev: bool


class UnregisterResponse(BaseModel):
    message: str
    event_id: int
    status: str
