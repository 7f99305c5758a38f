from typing import Optional

from eventhub.services.error_codes import ErrorCode


class ServiceError(Exception):
    status_code = 500

    def __init__(self, code: ErrorCode, message: Optional[str] = None) -> None:
        self.code = code
        self.message = message or code.value
        super().__init__(self.message)


class NotFoundError(ServiceError):
    status_code = 404


class ForbiddenError(ServiceError):
    status_code = 403


class ValidationError(ServiceError):
    status_code = 422


class ConflictError(ServiceError):
    status_code = 409


class EventFullError(ConflictError):
    def __init__(self, message: str = "event has reached its capacity") -> None:
        super().__init__(ErrorCode.EVENT_FULL, message)


class StateError(ServiceError):
    status_code = 400


class AuthenticationError(ServiceError):
    status_code = 401
