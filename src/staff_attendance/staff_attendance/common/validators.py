from __future__ import annotations

from ..core.enums import AttendanceAction
from ..core.exceptions import ValidationError


def require_non_empty(value: str, field_name: str) -> str:
    if not value or not str(value).strip():
        raise ValidationError(f"{field_name} is required")
    return str(value).strip()


def require_action(value: str) -> AttendanceAction:
    raw = require_non_empty(value, "type").lower()
    try:
        return AttendanceAction(raw)
    except ValueError:
        raise ValidationError("Type must be either checkin or checkout")


def require_positive_int(value, field_name: str, *, maximum: int | None = None) -> int:
    try:
        number = int(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{field_name} must be an integer")
    if number <= 0:
        raise ValidationError(f"{field_name} must be positive")
    if maximum is not None and number > maximum:
        raise ValidationError(f"{field_name} must be at most {maximum}")
    return number
