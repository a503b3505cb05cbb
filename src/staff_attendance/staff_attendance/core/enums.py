from __future__ import annotations

from enum import Enum


class Role(str, Enum):
    """Closed set of roles used for authorization."""

    ADMIN = "admin"
    SUPERVISOR = "supervisor"
    EMPLOYEE = "employee"
    QR_MANAGER = "qr-manager"


class TokenStatus(str, Enum):
    ACTIVE = "active"
    EXPIRED = "expired"
    # Advisory only: usage is tracked through usage_count, rotation owns status.
    USED = "used"


class TokenValidity(str, Enum):
    """Outcome of looking up a presented QR token."""

    VALID = "valid"
    NOT_FOUND = "not_found"
    EXPIRED = "expired"


class AttendanceAction(str, Enum):
    CHECKIN = "checkin"
    CHECKOUT = "checkout"


class AttendanceMethod(str, Enum):
    QR = "qr"
    MANUAL = "manual"
    BIOMETRIC = "biometric"


class ArrivalStatus(str, Enum):
    """How a check-in compares to the user's scheduled start."""

    ON_TIME = "ON_TIME"
    LATE = "LATE"
    UNSCHEDULED = "UNSCHEDULED"


class Weekday(str, Enum):
    MONDAY = "monday"
    TUESDAY = "tuesday"
    WEDNESDAY = "wednesday"
    THURSDAY = "thursday"
    FRIDAY = "friday"
    SATURDAY = "saturday"
    SUNDAY = "sunday"

    @classmethod
    def from_index(cls, index: int) -> "Weekday":
        """Map ``date.weekday()`` (Monday == 0) to a member."""
        return list(cls)[index]


class NotificationType(str, Enum):
    USER_LATE = "user_late"
    USER_ABSENT = "user_absent"


class RejectionKind(str, Enum):
    """Discriminator carried by every business-rule rejection."""

    INVALID_TOKEN = "InvalidToken"
    ALREADY_CHECKED_IN = "AlreadyCheckedIn"
    ALREADY_CHECKED_OUT = "AlreadyCheckedOut"
    NO_OPEN_SESSION = "NoOpenSession"
    ACCESS_DENIED = "AccessDenied"
    VALIDATION = "Validation"
    AUTHENTICATION = "Authentication"
    NOT_FOUND = "NotFound"
