from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Any, Mapping, Optional

from ..common.datetime_utils import BusinessClock
from ..core.constants import DEFAULT_HISTORY_DAYS, DEFAULT_HISTORY_LIMIT, DEFAULT_LATE_GRACE_MINUTES
from ..core.enums import ArrivalStatus, AttendanceAction, AttendanceMethod, NotificationType, Role, TokenValidity
from ..core.exceptions import (
    AccessDeniedError,
    AlreadyCheckedInError,
    AlreadyCheckedOutError,
    ConflictError,
    InvalidTokenError,
    NoOpenSessionError,
    NotFoundError,
    StorageError,
    ValidationError,
)
from ..notifications.model import LocalizedText
from ..notifications.service import NotificationService
from ..tokens.model import AttendanceToken
from ..tokens.service import TokenIssuer
from ..users.model import User
from ..users.repository import UserRepository
from .factory import ArrivalStrategyFactory
from .history import group_by_operative_day
from .model import AttendanceLog, AttendanceOutcome, AttendanceStats, DaySummary, LogsPage
from .repository import AttendanceRepository
from .strategies.base import ArrivalDecision

logger = logging.getLogger(__name__)


class AttendanceRecorder:
    """Per-user check-in/check-out state machine driven by QR scans.

    A user is in an open session when their latest check-in has no later
    check-out. Every accepted action writes one log and consumes one use of
    the presented token.
    """

    def __init__(
        self,
        attendance: AttendanceRepository,
        users: UserRepository,
        issuer: TokenIssuer,
        notifications: NotificationService,
        clock: BusinessClock,
        *,
        strategy_factory: ArrivalStrategyFactory | None = None,
        grace_minutes: int = DEFAULT_LATE_GRACE_MINUTES,
        allow_cross_midnight: bool = True,
    ):
        self._attendance = attendance
        self._users = users
        self._issuer = issuer
        self._notifications = notifications
        self._clock = clock
        self._factory = strategy_factory or ArrivalStrategyFactory()
        self._grace_minutes = int(grace_minutes)
        self._allow_cross_midnight = bool(allow_cross_midnight)

    def record_attendance(
        self,
        user_id: int,
        token_value: str,
        action: AttendanceAction,
        *,
        now: datetime | None = None,
        metadata: Optional[Mapping[str, Any]] = None,
    ) -> AttendanceOutcome:
        now = self._clock.resolve(now)
        token = self._require_valid_token(token_value, now)

        if action == AttendanceAction.CHECKIN:
            return self._check_in(user_id, token, now=now, metadata=metadata)
        return self._check_out(user_id, token, now=now, metadata=metadata)

    def check_in(self, user_id: int, token_value: str, *, now: datetime | None = None, metadata=None) -> AttendanceOutcome:
        return self.record_attendance(user_id, token_value, AttendanceAction.CHECKIN, now=now, metadata=metadata)

    def check_out(self, user_id: int, token_value: str, *, now: datetime | None = None, metadata=None) -> AttendanceOutcome:
        return self.record_attendance(user_id, token_value, AttendanceAction.CHECKOUT, now=now, metadata=metadata)

    def _require_valid_token(self, token_value: str, now: datetime) -> AttendanceToken:
        validity, token = self._issuer.lookup(token_value, now=now)
        if validity == TokenValidity.NOT_FOUND:
            raise InvalidTokenError("Invalid QR code", reason=validity.value)
        if validity == TokenValidity.EXPIRED or token is None:
            raise InvalidTokenError("QR code has expired or is no longer active", reason=TokenValidity.EXPIRED.value)
        return token

    def _check_in(self, user_id: int, token: AttendanceToken, *, now: datetime, metadata) -> AttendanceOutcome:
        today = self._clock.operative_day(now)
        start, end = self._clock.day_bounds(today)

        todays = self._attendance.list_for_user_between(user_id, start, end)
        if any(log.action == AttendanceAction.CHECKIN for log in todays):
            raise AlreadyCheckedInError("You have already checked in today")

        try:
            log = self._write(user_id, AttendanceAction.CHECKIN, token, now=now, metadata=metadata)
        except ConflictError:
            # A concurrent check-in for the same day committed first.
            raise AlreadyCheckedInError("You have already checked in today")

        try:
            decision = self._evaluate_arrival(user_id, log)
        except Exception:
            # The check-in is already stored; lateness must not fail it.
            logger.exception("Lateness evaluation failed for user %s", user_id)
            decision = ArrivalDecision(status=ArrivalStatus.UNSCHEDULED)
        return AttendanceOutcome(log=log, arrival=decision.status, late_minutes=decision.late_minutes)

    def _check_out(self, user_id: int, token: AttendanceToken, *, now: datetime, metadata) -> AttendanceOutcome:
        today = self._clock.operative_day(now)

        last_checkin = self._attendance.get_last_checkin(user_id, until=now)
        if last_checkin is None:
            raise NoOpenSessionError("You must check in before checking out")

        checkin_day = self._clock.operative_day(last_checkin.timestamp)
        closed = self._attendance.has_action_after(user_id, AttendanceAction.CHECKOUT, last_checkin.timestamp)
        if closed:
            if checkin_day == today:
                raise AlreadyCheckedOutError("You have already checked out today")
            raise NoOpenSessionError("You must check in before checking out")

        if checkin_day != today and not self._allow_cross_midnight:
            raise NoOpenSessionError("You must check in before checking out")

        log = self._write(user_id, AttendanceAction.CHECKOUT, token, now=now, metadata=metadata)
        return AttendanceOutcome(log=log)

    def _write(
        self,
        user_id: int,
        action: AttendanceAction,
        token: AttendanceToken,
        *,
        now: datetime,
        metadata: Optional[Mapping[str, Any]],
    ) -> AttendanceLog:
        meta = dict(metadata or {})
        meta["qrSequence"] = token.sequence_number

        log = self._attendance.create_log(
            user_id=user_id,
            action=action,
            timestamp=now,
            work_date=self._clock.operative_day(now),
            method=AttendanceMethod.QR,
            token_id=token.token_id,
            metadata=meta,
        )
        try:
            self._issuer.mark_used(token.token_value)
        except StorageError:
            # Usage count is best-effort; the log above is already committed.
            logger.exception("Failed to count use of QR #%s", token.sequence_number)
        logger.info("User %s %s via QR #%s", user_id, action.value, token.sequence_number)
        return log

    def expected_start(self, user: User, instant: datetime) -> Optional[datetime]:
        """Scheduled start for the operative day of ``instant``, as a UTC instant."""

        start_time = user.expected_start(self._clock.weekday(instant))
        if start_time is None:
            return None
        return self._clock.at(self._clock.operative_day(instant), start_time)

    def _evaluate_arrival(self, user_id: int, log: AttendanceLog) -> ArrivalDecision:
        user = self._users.get_by_id(user_id)
        expected = self.expected_start(user, log.timestamp) if user else None

        strategy = self._factory.for_checkin(now=log.timestamp, expected_start=expected, grace_minutes=self._grace_minutes)
        decision = strategy.decide_checkin(now=log.timestamp, expected_start=expected)

        if decision.status == ArrivalStatus.LATE and user is not None and expected is not None:
            self._notify_late(user, log, expected, decision.late_minutes)
        return decision

    def _notify_late(self, user: User, log: AttendanceLog, expected: datetime, late_minutes: int) -> None:
        expected_local = self._clock.to_local(expected).strftime("%H:%M")
        self._notifications.notify_admins(
            type=NotificationType.USER_LATE,
            title=LocalizedText(en="Employee Late Arrival", ar="تأخر موظف"),
            message=LocalizedText(
                en=f"{user.full_name} arrived {late_minutes} minute(s) late",
                ar=f"{user.full_name} وصل متأخراً {late_minutes} دقيقة",
            ),
            data={
                "userId": user.user_id,
                "attendanceLogId": log.log_id,
                "lateMinutes": late_minutes,
                "expectedTime": expected_local,
                "actualTime": log.timestamp.isoformat(),
            },
        )

    def correct_log(self, log_id: int, *, timestamp: datetime | None = None, notes: str | None = None) -> AttendanceLog:
        """Admin correction of a log's time and/or notes; marks it manual."""

        log = self._attendance.get_by_id(log_id)
        if log is None:
            raise NotFoundError("Attendance log not found")

        new_timestamp = self._clock.resolve(timestamp) if timestamp is not None else log.timestamp
        new_notes = notes if notes is not None else log.notes

        try:
            updated = self._attendance.apply_correction(
                log_id=log_id,
                timestamp=new_timestamp,
                work_date=self._clock.operative_day(new_timestamp),
                notes=new_notes,
            )
        except ConflictError:
            raise AlreadyCheckedInError("User already has a check-in on that day")
        if updated is None:
            raise NotFoundError("Attendance log not found")

        logger.info("Attendance log %s corrected manually", log_id)
        return updated

    def get_history(
        self,
        user_id: int,
        *,
        start: datetime | None = None,
        end: datetime | None = None,
        limit: int = DEFAULT_HISTORY_LIMIT,
        now: datetime | None = None,
    ) -> list[DaySummary]:
        now = self._clock.resolve(now)
        if start is None and end is None:
            start = now - timedelta(days=DEFAULT_HISTORY_DAYS)
        start = start or datetime.min.replace(tzinfo=now.tzinfo)
        end = end or now + timedelta(seconds=1)

        logs = self._attendance.list_for_user_between(user_id, start, end)
        return group_by_operative_day(logs, self._clock)[: int(limit)]

    def list_logs(
        self,
        viewer: User,
        *,
        user_id: int | None = None,
        action: AttendanceAction | None = None,
        start: datetime | None = None,
        end: datetime | None = None,
        page: int = 1,
        limit: int = 100,
    ) -> LogsPage:
        """Role-scoped log listing.

        Employees only ever see their own logs; supervisors the users of the
        departments they supervise; admins everyone.
        """

        if page < 1 or limit < 1:
            raise ValidationError("page and limit must be positive")

        if viewer.role == Role.EMPLOYEE:
            if user_id is not None and user_id != viewer.user_id:
                raise AccessDeniedError("Access denied")
            scope: list[int] | None = [viewer.user_id]
        elif viewer.role == Role.SUPERVISOR:
            members = list(self._users.list_ids_in_departments(viewer.supervised_departments()))
            if user_id is not None:
                if user_id not in members:
                    raise AccessDeniedError("Access denied")
                scope = [user_id]
            else:
                scope = members
        elif viewer.role == Role.ADMIN:
            scope = [user_id] if user_id is not None else None
        else:
            raise AccessDeniedError("Access denied")

        items, total = self._attendance.search(
            user_ids=scope,
            action=action,
            start=start,
            end=end,
            offset=(page - 1) * limit,
            limit=limit,
        )
        return LogsPage(items=items, total=total, page=page, limit=limit)

    def get_stats(self, *, now: datetime | None = None) -> AttendanceStats:
        now = self._clock.resolve(now)
        today = self._clock.operative_day(now)
        start, end = self._clock.day_bounds(today)
        tokens = self._issuer.counts()

        return AttendanceStats(
            day=today,
            total_logs=self._attendance.count_between(start, end),
            checkins=self._attendance.count_between(start, end, action=AttendanceAction.CHECKIN),
            checkouts=self._attendance.count_between(start, end, action=AttendanceAction.CHECKOUT),
            unique_users=self._attendance.count_users_between(start, end),
            active_tokens=tokens["active"],
            total_tokens=tokens["total"],
        )
