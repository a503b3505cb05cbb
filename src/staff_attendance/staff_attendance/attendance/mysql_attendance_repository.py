from __future__ import annotations

import json
from datetime import date, datetime
from typing import Any, Mapping, Optional, Sequence

from ..core.enums import AttendanceAction, AttendanceMethod
from ..database.connection import DatabaseConnection
from ..database.mysql_base import db_cursor, fetchall, fetchone, from_db_datetime, to_db_datetime
from .model import AttendanceLog
from .repository import AttendanceRepository

_COLUMNS = "log_id, user_id, action, logged_at, work_date, method, token_id, metadata, notes"


def _to_log(r: dict) -> AttendanceLog:
    raw_meta = r.get("metadata")
    if isinstance(raw_meta, (bytes, bytearray)):
        raw_meta = raw_meta.decode("utf-8")
    metadata = json.loads(raw_meta) if isinstance(raw_meta, str) and raw_meta else (raw_meta or {})
    return AttendanceLog(
        log_id=int(r["log_id"]),
        user_id=int(r["user_id"]),
        action=AttendanceAction(r["action"]),
        timestamp=from_db_datetime(r["logged_at"]),
        work_date=r["work_date"],
        method=AttendanceMethod(r["method"]),
        token_id=int(r["token_id"]) if r.get("token_id") is not None else None,
        metadata=metadata,
        notes=r.get("notes"),
    )


def _where(
    *,
    user_ids: Optional[Sequence[int]],
    action: Optional[AttendanceAction],
    start: Optional[datetime],
    end: Optional[datetime],
) -> tuple[str, list[object]]:
    clauses: list[str] = []
    params: list[object] = []

    if user_ids is not None:
        if not user_ids:
            return "1=0", []
        clauses.append(f"user_id IN ({','.join(['%s'] * len(user_ids))})")
        params.extend(int(u) for u in user_ids)
    if action is not None:
        clauses.append("action=%s")
        params.append(action.value)
    if start is not None:
        clauses.append("logged_at >= %s")
        params.append(to_db_datetime(start))
    if end is not None:
        clauses.append("logged_at < %s")
        params.append(to_db_datetime(end))

    return (" AND ".join(clauses) if clauses else "1=1"), params


class MySQLAttendanceRepository(AttendanceRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

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
        metadata = dict(metadata or {})
        # checkin_day is NULL for checkouts; UNIQUE(user_id, checkin_day) ignores NULLs.
        checkin_day = work_date if action == AttendanceAction.CHECKIN else None
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                INSERT INTO attendance_logs(
                    user_id, action, logged_at, work_date, checkin_day, method, token_id, metadata, notes
                )
                VALUES(%s,%s,%s,%s,%s,%s,%s,%s,%s)
                """,
                (
                    int(user_id),
                    action.value,
                    to_db_datetime(timestamp),
                    work_date,
                    checkin_day,
                    method.value,
                    token_id,
                    json.dumps(metadata, default=str),
                    notes,
                ),
            )
            return AttendanceLog(
                log_id=int(cur.lastrowid),
                user_id=int(user_id),
                action=action,
                timestamp=timestamp,
                work_date=work_date,
                method=method,
                token_id=token_id,
                metadata=metadata,
                notes=notes,
            )

    def get_by_id(self, log_id: int) -> Optional[AttendanceLog]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(f"SELECT {_COLUMNS} FROM attendance_logs WHERE log_id=%s", (int(log_id),))
            r = fetchone(cur)
            return _to_log(r) if r else None

    def list_for_user_between(self, user_id: int, start: datetime, end: datetime) -> Sequence[AttendanceLog]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"""
                SELECT {_COLUMNS}
                FROM attendance_logs
                WHERE user_id=%s AND logged_at >= %s AND logged_at < %s
                ORDER BY logged_at ASC, log_id ASC
                """,
                (int(user_id), to_db_datetime(start), to_db_datetime(end)),
            )
            return [_to_log(r) for r in fetchall(cur)]

    def get_last_checkin(self, user_id: int, *, until: datetime) -> Optional[AttendanceLog]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"""
                SELECT {_COLUMNS}
                FROM attendance_logs
                WHERE user_id=%s AND action=%s AND logged_at <= %s
                ORDER BY logged_at DESC, log_id DESC
                LIMIT 1
                """,
                (int(user_id), AttendanceAction.CHECKIN.value, to_db_datetime(until)),
            )
            r = fetchone(cur)
            return _to_log(r) if r else None

    def has_action_after(self, user_id: int, action: AttendanceAction, after: datetime) -> bool:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                SELECT 1 AS found
                FROM attendance_logs
                WHERE user_id=%s AND action=%s AND logged_at > %s
                LIMIT 1
                """,
                (int(user_id), action.value, to_db_datetime(after)),
            )
            return fetchone(cur) is not None

    def checked_in_user_ids(self, start: datetime, end: datetime) -> set[int]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                SELECT DISTINCT user_id
                FROM attendance_logs
                WHERE action=%s AND logged_at >= %s AND logged_at < %s
                """,
                (AttendanceAction.CHECKIN.value, to_db_datetime(start), to_db_datetime(end)),
            )
            return {int(r["user_id"]) for r in fetchall(cur)}

    def apply_correction(
        self,
        *,
        log_id: int,
        timestamp: datetime,
        work_date: date,
        notes: Optional[str],
    ) -> Optional[AttendanceLog]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                UPDATE attendance_logs
                SET logged_at=%s,
                    work_date=%s,
                    checkin_day=CASE WHEN action=%s THEN %s ELSE NULL END,
                    notes=%s,
                    method=%s
                WHERE log_id=%s
                """,
                (
                    to_db_datetime(timestamp),
                    work_date,
                    AttendanceAction.CHECKIN.value,
                    work_date,
                    notes,
                    AttendanceMethod.MANUAL.value,
                    int(log_id),
                ),
            )
            cur.execute(f"SELECT {_COLUMNS} FROM attendance_logs WHERE log_id=%s", (int(log_id),))
            r = fetchone(cur)
            return _to_log(r) if r else None

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
        where, params = _where(user_ids=user_ids, action=action, start=start, end=end)
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(f"SELECT COUNT(*) AS n FROM attendance_logs WHERE {where}", tuple(params))
            total = int((fetchone(cur) or {}).get("n") or 0)

            cur.execute(
                f"""
                SELECT {_COLUMNS}
                FROM attendance_logs
                WHERE {where}
                ORDER BY logged_at DESC, log_id DESC
                LIMIT %s OFFSET %s
                """,
                tuple(params) + (int(limit), int(offset)),
            )
            return [_to_log(r) for r in fetchall(cur)], total

    def count_between(self, start: datetime, end: datetime, *, action: Optional[AttendanceAction] = None) -> int:
        where, params = _where(user_ids=None, action=action, start=start, end=end)
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(f"SELECT COUNT(*) AS n FROM attendance_logs WHERE {where}", tuple(params))
            return int((fetchone(cur) or {}).get("n") or 0)

    def count_users_between(self, start: datetime, end: datetime) -> int:
        where, params = _where(user_ids=None, action=None, start=start, end=end)
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(f"SELECT COUNT(DISTINCT user_id) AS n FROM attendance_logs WHERE {where}", tuple(params))
            return int((fetchone(cur) or {}).get("n") or 0)
