from __future__ import annotations

import threading
from dataclasses import replace
from datetime import date, datetime
from typing import Any, Iterable, Mapping, Optional, Sequence

import pytest
from werkzeug.security import generate_password_hash

from src.staff_attendance.staff_attendance.attendance.absence import AbsenceService
from src.staff_attendance.staff_attendance.attendance.model import AttendanceLog
from src.staff_attendance.staff_attendance.attendance.service import AttendanceRecorder
from src.staff_attendance.staff_attendance.common.datetime_utils import BusinessClock, parse_hhmm
from src.staff_attendance.staff_attendance.core.enums import (
    AttendanceAction,
    AttendanceMethod,
    NotificationType,
    Role,
    TokenStatus,
    Weekday,
)
from src.staff_attendance.staff_attendance.core.exceptions import ConflictError
from src.staff_attendance.staff_attendance.notifications.model import LocalizedText
from src.staff_attendance.staff_attendance.notifications.service import NotificationService
from src.staff_attendance.staff_attendance.tokens.model import AttendanceToken, next_sequence_number
from src.staff_attendance.staff_attendance.tokens.service import TokenIssuer
from src.staff_attendance.staff_attendance.users.model import User

WORK_WEEK = frozenset({Weekday.SUNDAY, Weekday.MONDAY, Weekday.TUESDAY, Weekday.WEDNESDAY, Weekday.THURSDAY})


class InMemoryTokens:
    """Token store; ``issue`` is serialized with a lock like the DB row lock."""

    def __init__(self):
        self._rows: dict[int, AttendanceToken] = {}
        self._id = 0
        self._counter = 0
        self._lock = threading.Lock()

    def add_raw(self, **fields) -> AttendanceToken:
        with self._lock:
            self._id += 1
            token = AttendanceToken(token_id=self._id, **fields)
            self._rows[self._id] = token
            return token

    def issue(self, *, token_value, valid_from, valid_to, created_by, retain) -> AttendanceToken:
        with self._lock:
            seq = next_sequence_number([self._counter] + [t.sequence_number for t in self._rows.values()])
            self._id += 1
            token = AttendanceToken(
                token_id=self._id,
                token_value=token_value,
                valid_from=valid_from,
                valid_to=valid_to,
                status=TokenStatus.ACTIVE,
                sequence_number=seq,
                created_by=created_by,
                created_at=valid_from,
            )
            for tid, other in list(self._rows.items()):
                if other.status == TokenStatus.ACTIVE:
                    self._rows[tid] = replace(other, status=TokenStatus.EXPIRED)
            self._rows[token.token_id] = token
            self._counter = seq
            self._prune(retain)
            return token

    def get_by_value(self, token_value: str) -> Optional[AttendanceToken]:
        return next((t for t in self._rows.values() if t.token_value == token_value), None)

    def get_latest_active(self, now: datetime) -> Optional[AttendanceToken]:
        candidates = [t for t in self._rows.values() if t.status == TokenStatus.ACTIVE and t.valid_to > now]
        return max(candidates, key=lambda t: (t.created_at, t.token_id), default=None)

    def set_status(self, token_id: int, status: TokenStatus) -> bool:
        if token_id not in self._rows:
            return False
        self._rows[token_id] = replace(self._rows[token_id], status=status)
        return True

    def increment_usage(self, token_value: str) -> bool:
        token = self.get_by_value(token_value)
        if token is None:
            return False
        self._rows[token.token_id] = replace(token, usage_count=token.usage_count + 1)
        return True

    def expire_elapsed(self, now: datetime) -> int:
        n = 0
        for tid, t in list(self._rows.items()):
            if t.status == TokenStatus.ACTIVE and t.valid_to < now:
                self._rows[tid] = replace(t, status=TokenStatus.EXPIRED)
                n += 1
        return n

    def _prune(self, retain: int) -> int:
        ordered = sorted(self._rows.values(), key=lambda t: (t.created_at, t.token_id), reverse=True)
        doomed = [t.token_id for t in ordered[retain:]]
        for tid in doomed:
            del self._rows[tid]
        return len(doomed)

    def prune(self, *, retain: int) -> int:
        with self._lock:
            return self._prune(retain)

    def purge_malformed(self) -> int:
        doomed = [tid for tid, t in self._rows.items() if t.sequence_number is None]
        for tid in doomed:
            del self._rows[tid]
        return len(doomed)

    def count(self, *, status: Optional[TokenStatus] = None) -> int:
        with self._lock:
            return sum(1 for t in self._rows.values() if status is None or t.status == status)

    def all(self) -> list[AttendanceToken]:
        with self._lock:
            return sorted(self._rows.values(), key=lambda t: t.token_id)


class InMemoryAttendance:
    def __init__(self):
        self._logs: dict[int, AttendanceLog] = {}
        self._id = 0

    def _checkin_taken(self, user_id: int, work_date: date, *, exclude: Optional[int] = None) -> bool:
        return any(
            log.user_id == user_id
            and log.action == AttendanceAction.CHECKIN
            and log.work_date == work_date
            and log.log_id != exclude
            for log in self._logs.values()
        )

    def create_log(
        self,
        *,
        user_id: int,
        action: AttendanceAction,
        timestamp: datetime,
        work_date: date,
        method: AttendanceMethod,
        token_id: Optional[int] = None,
        metadata: Optional[Mapping[str, Any]] = None,
        notes: Optional[str] = None,
    ) -> AttendanceLog:
        if action == AttendanceAction.CHECKIN and self._checkin_taken(user_id, work_date):
            raise ConflictError("Duplicate entry for key 'uq_attendance_logs_user_checkin_day'")
        self._id += 1
        log = AttendanceLog(
            log_id=self._id,
            user_id=user_id,
            action=action,
            timestamp=timestamp,
            work_date=work_date,
            method=method,
            token_id=token_id,
            metadata=dict(metadata or {}),
            notes=notes,
        )
        self._logs[log.log_id] = log
        return log

    def get_by_id(self, log_id: int) -> Optional[AttendanceLog]:
        return self._logs.get(log_id)

    def list_for_user_between(self, user_id: int, start: datetime, end: datetime) -> Sequence[AttendanceLog]:
        items = [log for log in self._logs.values() if log.user_id == user_id and start <= log.timestamp < end]
        return sorted(items, key=lambda log: log.timestamp)

    def get_last_checkin(self, user_id: int, *, until: datetime) -> Optional[AttendanceLog]:
        items = [
            log
            for log in self._logs.values()
            if log.user_id == user_id and log.action == AttendanceAction.CHECKIN and log.timestamp <= until
        ]
        return max(items, key=lambda log: (log.timestamp, log.log_id), default=None)

    def has_action_after(self, user_id: int, action: AttendanceAction, after: datetime) -> bool:
        return any(
            log.user_id == user_id and log.action == action and log.timestamp > after for log in self._logs.values()
        )

    def checked_in_user_ids(self, start: datetime, end: datetime) -> set[int]:
        return {
            log.user_id
            for log in self._logs.values()
            if log.action == AttendanceAction.CHECKIN and start <= log.timestamp < end
        }

    def apply_correction(self, *, log_id: int, timestamp: datetime, work_date: date, notes: Optional[str]):
        log = self._logs.get(log_id)
        if log is None:
            return None
        if log.action == AttendanceAction.CHECKIN and self._checkin_taken(log.user_id, work_date, exclude=log_id):
            raise ConflictError("Duplicate entry for key 'uq_attendance_logs_user_checkin_day'")
        updated = replace(log, timestamp=timestamp, work_date=work_date, notes=notes, method=AttendanceMethod.MANUAL)
        self._logs[log_id] = updated
        return updated

    def search(self, *, user_ids=None, action=None, start=None, end=None, offset=0, limit=100):
        items = [
            log
            for log in self._logs.values()
            if (user_ids is None or log.user_id in user_ids)
            and (action is None or log.action == action)
            and (start is None or log.timestamp >= start)
            and (end is None or log.timestamp < end)
        ]
        items.sort(key=lambda log: (log.timestamp, log.log_id), reverse=True)
        return items[offset : offset + limit], len(items)

    def count_between(self, start: datetime, end: datetime, *, action=None) -> int:
        return sum(
            1
            for log in self._logs.values()
            if start <= log.timestamp < end and (action is None or log.action == action)
        )

    def count_users_between(self, start: datetime, end: datetime) -> int:
        return len({log.user_id for log in self._logs.values() if start <= log.timestamp < end})

    def all(self) -> list[AttendanceLog]:
        return sorted(self._logs.values(), key=lambda log: log.log_id)


class InMemoryUsers:
    def __init__(self, users: Iterable[User] = ()):
        self.users_by_id: dict[int, User] = {u.user_id: u for u in users}

    def add(self, user: User) -> User:
        self.users_by_id[user.user_id] = user
        return user

    def get_by_id(self, user_id: int) -> Optional[User]:
        return self.users_by_id.get(user_id)

    def get_by_username(self, username: str) -> Optional[User]:
        return next((u for u in self.users_by_id.values() if u.username == username), None)

    def list_active(self) -> Sequence[User]:
        return [u for _, u in sorted(self.users_by_id.items()) if u.is_active]

    def list_admin_ids(self) -> Sequence[int]:
        return [u.user_id for u in self.list_active() if u.role == Role.ADMIN]

    def list_ids_in_departments(self, departments: Iterable[str]) -> Sequence[int]:
        wanted = set(departments)
        return [uid for uid, u in sorted(self.users_by_id.items()) if u.department in wanted]


class InMemoryNotifications:
    def __init__(self):
        self.rows: list[dict] = []
        self.fail = False

    def create_for_recipients(
        self,
        *,
        recipient_ids: Sequence[int],
        type: NotificationType,
        title: LocalizedText,
        message: LocalizedText,
        data: Mapping[str, Any],
        dedupe_key: Optional[str] = None,
    ) -> int:
        if self.fail:
            raise RuntimeError("notification store unavailable")
        created = 0
        for rid in recipient_ids:
            if dedupe_key and any(r["recipient_id"] == rid and r["dedupe_key"] == dedupe_key for r in self.rows):
                continue
            self.rows.append(
                {
                    "recipient_id": rid,
                    "type": type,
                    "title": title,
                    "message": message,
                    "data": dict(data),
                    "dedupe_key": dedupe_key,
                }
            )
            created += 1
        return created

    def exists(self, dedupe_key: str) -> bool:
        return any(r["dedupe_key"] == dedupe_key for r in self.rows)

    def of_type(self, type: NotificationType) -> list[dict]:
        return [r for r in self.rows if r["type"] == type]


def make_user(
    user_id: int,
    *,
    role: Role = Role.EMPLOYEE,
    department: Optional[str] = "Kitchen",
    start: Optional[str] = "09:00",
    work_days: frozenset = WORK_WEEK,
    departments: frozenset = frozenset(),
    is_active: bool = True,
    password: str = "secret123",
) -> User:
    schedule = {day: parse_hhmm(start) for day in work_days} if start else {}
    return User(
        user_id=user_id,
        full_name=f"User {user_id}",
        username=f"user{user_id}",
        password_hash=generate_password_hash(password),
        role=role,
        department=department,
        departments=departments,
        work_days=work_days,
        work_schedule=schedule,
        is_active=is_active,
    )


@pytest.fixture
def clock() -> BusinessClock:
    return BusinessClock("Asia/Riyadh")


@pytest.fixture
def local(clock):
    """``local(day, "HH:MM")`` -> UTC instant of that Riyadh wall-clock time."""

    def _at(day: date, hhmm: str) -> datetime:
        return clock.at(day, parse_hhmm(hhmm))

    return _at


@pytest.fixture
def tokens_repo() -> InMemoryTokens:
    return InMemoryTokens()


@pytest.fixture
def issuer(tokens_repo, clock) -> TokenIssuer:
    return TokenIssuer(tokens_repo, clock, validity_seconds=30, retention_limit=10)


@pytest.fixture
def users_repo() -> InMemoryUsers:
    return InMemoryUsers(
        [
            make_user(1, role=Role.ADMIN, department="Management", start=None, work_days=frozenset()),
            make_user(2, role=Role.SUPERVISOR, department="Kitchen", start="08:00", departments=frozenset({"Kitchen"})),
            make_user(10, department="Kitchen", start="09:00"),
            make_user(11, department="Service", start="16:00"),
            make_user(12, department="Kitchen", start="09:00", is_active=False),
            make_user(13, department="Service", start=None, work_days=frozenset()),
        ]
    )


@pytest.fixture
def attendance_repo() -> InMemoryAttendance:
    return InMemoryAttendance()


@pytest.fixture
def notifications_repo() -> InMemoryNotifications:
    return InMemoryNotifications()


@pytest.fixture
def notification_service(notifications_repo, users_repo) -> NotificationService:
    return NotificationService(notifications_repo, users_repo)


@pytest.fixture
def make_recorder(attendance_repo, users_repo, issuer, notification_service, clock):
    def _make(**kwargs) -> AttendanceRecorder:
        return AttendanceRecorder(attendance_repo, users_repo, issuer, notification_service, clock, **kwargs)

    return _make


@pytest.fixture
def recorder(make_recorder) -> AttendanceRecorder:
    return make_recorder()


@pytest.fixture
def absence_service(attendance_repo, users_repo, notification_service, clock) -> AbsenceService:
    return AbsenceService(attendance_repo, users_repo, notification_service, clock)


@pytest.fixture
def user_factory():
    return make_user
