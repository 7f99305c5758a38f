from eventhub.models.user import User, UserRole
from eventhub.models.file import File
from eventhub.models.event import Event, EventCategory, EventStatus
from eventhub.models.registration import Registration, RegistrationStatus

__all__ = [
    "User", "UserRole",
    "File",
    "Event", "EventCategory", "EventStatus",
    "Registration", "RegistrationStatus",
]
