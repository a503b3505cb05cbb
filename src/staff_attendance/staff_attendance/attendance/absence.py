from __future__ import annotations

import logging
from datetime import date, datetime
from typing import Optional

from ..common.datetime_utils import BusinessClock
from ..core.enums import NotificationType
from ..notifications.model import LocalizedText
from ..notifications.service import NotificationService
from ..users.repository import UserRepository
from .model import AbsenceReport
from .repository import AttendanceRepository

logger = logging.getLogger(__name__)


def absence_key(user_id: int, day: date) -> str:
    return f"{NotificationType.USER_ABSENT.value}:{int(user_id)}:{day.isoformat()}"


class AbsenceService:
    """Daily sweep for scheduled staff who never checked in.

    Re-running the sweep on the same operative day does not re-notify: every
    alert carries a per-user, per-day dedupe key.
    """

    def __init__(
        self,
        attendance: AttendanceRepository,
        users: UserRepository,
        notifications: NotificationService,
        clock: BusinessClock,
    ):
        self._attendance = attendance
        self._users = users
        self._notifications = notifications
        self._clock = clock

    def check_absent_users(self, *, now: Optional[datetime] = None) -> AbsenceReport:
        now = self._clock.resolve(now)
        today = self._clock.operative_day(now)
        weekday = self._clock.weekday(now)
        start, end = self._clock.day_bounds(today)

        checked_in = self._attendance.checked_in_user_ids(start, end)
        notified: list[int] = []
        already: list[int] = []

        for user in self._users.list_active():
            if not user.works_on(weekday) or user.user_id in checked_in:
                continue

            key = absence_key(user.user_id, today)
            if self._notifications.already_sent(key):
                already.append(user.user_id)
                continue

            created = self._notifications.notify_admins(
                type=NotificationType.USER_ABSENT,
                title=LocalizedText(en="Employee Absent", ar="غياب موظف"),
                message=LocalizedText(
                    en=f"{user.full_name} did not check in today",
                    ar=f"{user.full_name} لم يسجل الحضور اليوم",
                ),
                data={"userId": user.user_id, "date": today.isoformat(), "department": user.department},
                dedupe_key=key,
            )
            if created:
                notified.append(user.user_id)

        logger.info(
            "Absent users check completed for %s: notified=%s already_notified=%s",
            today.isoformat(),
            len(notified),
            len(already),
        )
        return AbsenceReport(day=today, notified=notified, already_notified=already)
