from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Mapping, Optional, Sequence

from ..core.enums import ArrivalStatus, AttendanceAction, AttendanceMethod


@dataclass(frozen=True)
class AttendanceLog:
    """Domain entity: one immutable check-in or check-out.

    ``work_date`` is the operative day of ``timestamp`` in the business timezone.
    """

    log_id: int
    user_id: int
    action: AttendanceAction
    timestamp: datetime
    work_date: date
    method: AttendanceMethod = AttendanceMethod.QR
    token_id: Optional[int] = None
    metadata: Mapping[str, Any] = field(default_factory=dict)
    notes: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "id": self.log_id,
            "userId": self.user_id,
            "type": self.action.value,
            "timestamp": self.timestamp.isoformat(),
            "workDate": self.work_date.isoformat(),
            "method": self.method.value,
            "tokenId": self.token_id,
            "metadata": dict(self.metadata),
            "notes": self.notes,
        }


@dataclass(frozen=True)
class AttendanceOutcome:
    """Result of an accepted attendance action."""

    log: AttendanceLog
    arrival: Optional[ArrivalStatus] = None
    late_minutes: int = 0

    def to_dict(self) -> dict:
        data = self.log.to_dict()
        if self.arrival is not None:
            data["arrival"] = self.arrival.value
            data["lateMinutes"] = self.late_minutes
        return data


@dataclass(frozen=True)
class DaySummary:
    """Read-model: a user's check-in/check-out pair for one operative day."""

    day: date
    checkin: Optional[AttendanceLog] = None
    checkout: Optional[AttendanceLog] = None

    def to_dict(self) -> dict:
        return {
            "date": self.day.isoformat(),
            "checkin": self.checkin.to_dict() if self.checkin else None,
            "checkout": self.checkout.to_dict() if self.checkout else None,
        }


@dataclass(frozen=True)
class LogsPage:
    items: Sequence[AttendanceLog]
    total: int
    page: int
    limit: int

    @property
    def pages(self) -> int:
        return (self.total + self.limit - 1) // self.limit if self.limit else 0


@dataclass(frozen=True)
class AttendanceStats:
    day: date
    total_logs: int
    checkins: int
    checkouts: int
    unique_users: int
    active_tokens: int
    total_tokens: int

    def to_dict(self) -> dict:
        return {
            "today": {
                "date": self.day.isoformat(),
                "totalLogs": self.total_logs,
                "checkins": self.checkins,
                "checkouts": self.checkouts,
                "uniqueUsers": self.unique_users,
            },
            "qr": {"active": self.active_tokens, "total": self.total_tokens},
        }


@dataclass(frozen=True)
class AbsenceReport:
    day: date
    notified: Sequence[int]
    already_notified: Sequence[int]
