"""
Pydantic schemas for event-related request/response validation.
"""

from datetime import datetime, timezone
from typing import Annotated, Optional

from pydantic import AfterValidator, BaseModel, Field, StringConstraints, field_validator, model_validator

from eventhub.models.event import EventCategory, EventStatus
from eventhub.schemas.file import FileOut


def as_utc(value: datetime) -> datetime:
    """Naive datetimes are taken to be UTC; aware ones are converted to UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


UtcDatetime = Annotated[datetime, AfterValidator(as_utc)]
TagList = Annotated[
    list[Annotated[str, StringConstraints(strip_whitespace=True, min_length=1, max_length=50)]],
    Field(max_length=10),
]


class Location(BaseModel):
    address: str = Field(..., min_length=1, max_length=300)
    city: str = Field(..., min_length=1, max_length=100)
    postal_code: Optional[str] = Field(None, max_length=20)
    country: str = Field("France", max_length=100)

    model_config = {"str_strip_whitespace": True}


class LocationUpdate(BaseModel):
    address: Optional[str] = Field(None, min_length=1, max_length=300)
    city: Optional[str] = Field(None, min_length=1, max_length=100)
    postal_code: Optional[str] = Field(None, max_length=20)
    country: Optional[str] = Field(None, max_length=100)

    model_config = {"str_strip_whitespace": True}


class EventCreate(BaseModel):
    title: str = Field(..., min_length=5, max_length=200)
    description: str = Field(..., min_length=20, max_length=5000)
    category: EventCategory
    status: EventStatus = EventStatus.DRAFT
    start_date: UtcDatetime
    end_date: UtcDatetime
    location: Location
    capacity: int = Field(..., ge=1, le=100000)
    price: float = Field(0, ge=0)
    tags: TagList = []

    model_config = {"str_strip_whitespace": True}

    @field_validator("start_date")
    @classmethod
    def start_in_future(cls, value: datetime) -> datetime:
        if value <= datetime.now(timezone.utc):
            raise ValueError("start_date must be in the future")
        return value

    @model_validator(mode="after")
    def end_after_start(self) -> "EventCreate":
        if self.end_date <= self.start_date:
            raise ValueError("end_date must be after start_date")
        return self


class EventUpdate(BaseModel):
    """
    Partial update. Every mutable field is listed explicitly; organizer,
    registration_count and cover image are deliberately absent.
    """

    title: Optional[str] = Field(None, min_length=5, max_length=200)
    description: Optional[str] = Field(None, min_length=20, max_length=5000)
    category: Optional[EventCategory] = None
    status: Optional[EventStatus] = None
    start_date: Optional[UtcDatetime] = None
    end_date: Optional[UtcDatetime] = None
    location: Optional[LocationUpdate] = None
    capacity: Optional[int] = Field(None, ge=1, le=100000)
    price: Optional[float] = Field(None, ge=0)
    tags: Optional[TagList] = None

    model_config = {"str_strip_whitespace": True}

    @model_validator(mode="after")
    def not_empty(self) -> "EventUpdate":
        if not self.model_fields_set:
            raise ValueError("at least one field must be provided")
        if self.start_date and self.end_date and self.end_date <= self.start_date:
            raise ValueError("end_date must be after start_date")
        return self


class LocationResponse(BaseModel):
    address: str
    city: str
    postal_code: Optional[str] = None
    country: str


class OrganizerSummary(BaseModel):
    id: int
    username: str
    email: str

    model_config = {"from_attributes": True}


class EventResponse(BaseModel):
    id: int
    title: str
    description: str
    category: EventCategory
    status: EventStatus
    start_date: datetime
    end_date: datetime
    location: LocationResponse
    capacity: int
    price: float
    tags: list[str]
    cover_image_id: Optional[int] = None
    cover_image: Optional[FileOut] = None
    organizer_id: int
    organizer: OrganizerSummary
    registration_count: int
    is_full: bool
    available_spots: int
    is_past: bool
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class EventDetailResponse(EventResponse):
    is_registered: Optional[bool] = None
    registration_status: Optional[str] = None


class EventListResponse(BaseModel):
    items: list[EventResponse]
    total: int
    page: int
    limit: int
    total_pages: int
    has_next: bool
    has_prev: bool
    cached: bool = False
