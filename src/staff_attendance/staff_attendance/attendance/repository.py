from __future__ import annotations

from datetime import date, datetime
from typing import Any, Mapping, Optional, Protocol, Sequence

from ..core.enums import AttendanceAction, AttendanceMethod
from .model import AttendanceLog


class AttendanceRepository(Protocol):
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
        """Insert a log.

        Must raise ``ConflictError`` for a second check-in of the same user on
        the same ``work_date`` (enforced by the store, not by a prior read).
        """

        raise NotImplementedError

    def get_by_id(self, log_id: int) -> Optional[AttendanceLog]:
        raise NotImplementedError

    def list_for_user_between(self, user_id: int, start: datetime, end: datetime) -> Sequence[AttendanceLog]:
        """Logs with ``start <= timestamp < end`` ordered by timestamp ascending."""

        raise NotImplementedError

    def get_last_checkin(self, user_id: int, *, until: datetime) -> Optional[AttendanceLog]:
        raise NotImplementedError

    def has_action_after(self, user_id: int, action: AttendanceAction, after: datetime) -> bool:
        raise NotImplementedError

    def checked_in_user_ids(self, start: datetime, end: datetime) -> set[int]:
        raise NotImplementedError

    def apply_correction(
        self,
        *,
        log_id: int,
        timestamp: datetime,
        work_date: date,
        notes: Optional[str],
    ) -> Optional[AttendanceLog]:
        """Admin-only override; the corrected log becomes ``manual``."""

        raise NotImplementedError

    def search(
        self,
        *,
        user_ids: Optional[Sequence[int]] = None,
        action: Optional[AttendanceAction] = None,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
        offset: int = 0,
        limit: int = 100,
    ) -> tuple[Sequence[AttendanceLog], int]:
        """Newest first page plus the total number of matches."""

        raise NotImplementedError

    def count_between(self, start: datetime, end: datetime, *, action: Optional[AttendanceAction] = None) -> int:
        raise NotImplementedError

    def count_users_between(self, start: datetime, end: datetime) -> int:
        raise NotImplementedError
