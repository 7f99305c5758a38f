import enum


class ErrorCode(str, enum.Enum):
    VALIDATION_ERROR = "VALIDATION_ERROR"
    NOT_FOUND = "NOT_FOUND"

    INVALID_CREDENTIALS = "INVALID_CREDENTIALS"
    TOKEN_INVALID = "TOKEN_INVALID"
    REFRESH_TOKEN_INVALID = "REFRESH_TOKEN_INVALID"

    FORBIDDEN = "FORBIDDEN"

    USER_EXISTS = "USER_EXISTS"
    USER_NOT_FOUND = "USER_NOT_FOUND"

    EVENT_NOT_FOUND = "EVENT_NOT_FOUND"
    EVENT_FULL = "EVENT_FULL"
    ALREADY_REGISTERED = "ALREADY_REGISTERED"
    NOT_REGISTERED = "NOT_REGISTERED"
    INVALID_STATUS_TRANSITION = "INVALID_STATUS_TRANSITION"
    CAPACITY_BELOW_REGISTRATIONS = "CAPACITY_BELOW_REGISTRATIONS"

    FILE_NOT_FOUND = "FILE_NOT_FOUND"
    FILE_TOO_LARGE = "FILE_TOO_LARGE"
    FILE_TYPE_NOT_ALLOWED = "FILE_TYPE_NOT_ALLOWED"
