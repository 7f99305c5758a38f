from eventhub.schemas.user import UserCreate, UserResponse, UserLogin, RefreshRequest, Token, MessageResponse
from eventhub.schemas.event import (
    EventCreate, EventUpdate, EventResponse, EventDetailResponse, EventListResponse, Location, OrganizerSummary,
)
from eventhub.schemas.registration import (
    RegistrationResponse, EventRegistrationResponse, MyRegistrationResponse,
    MyRegistrationListResponse, UnregisterResponse,
)
from eventhub.schemas.file import FileOut

__all__ = [
    "UserCreate", "UserResponse", "UserLogin", "RefreshRequest", "Token", "MessageResponse",
    "EventCreate", "EventUpdate", "EventResponse", "EventDetailResponse", "EventListResponse", "Location", "OrganizerSummary",
    "RegistrationResponse", "EventRegistrationResponse", "MyRegistrationResponse",
    "MyRegistrationListResponse", "UnregisterResponse",
    "FileOut",
]
