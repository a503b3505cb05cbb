from __future__ import annotations

from typing import Iterable, Optional, Sequence

from ..core.enums import Role, Weekday
from ..database.connection import DatabaseConnection
from ..database.mysql_base import db_cursor, fetchall, fetchone, normalize_mysql_time
from .model import User
from .repository import UserRepository

_USER_COLUMNS = "user_id, full_name, username, password_hash, role, department, is_active"


class MySQLUserRepository(UserRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def _hydrate(self, cur, rows: list[dict]) -> list[User]:
        if not rows:
            return []

        ids = [int(r["user_id"]) for r in rows]
        placeholders = ",".join(["%s"] * len(ids))

        cur.execute(
            f"SELECT user_id, weekday, start_time FROM user_work_schedules WHERE user_id IN ({placeholders})",
            tuple(ids),
        )
        days: dict[int, set[Weekday]] = {}
        starts: dict[int, dict[Weekday, object]] = {}
        for s in fetchall(cur):
            uid = int(s["user_id"])
            day = Weekday(s["weekday"])
            days.setdefault(uid, set()).add(day)
            start = normalize_mysql_time(s.get("start_time"))
            if start is not None:
                starts.setdefault(uid, {})[day] = start

        cur.execute(
            f"SELECT user_id, department FROM user_departments WHERE user_id IN ({placeholders})",
            tuple(ids),
        )
        depts: dict[int, set[str]] = {}
        for d in fetchall(cur):
            depts.setdefault(int(d["user_id"]), set()).add(d["department"])

        return [
            User(
                user_id=int(r["user_id"]),
                full_name=r["full_name"],
                username=r["username"],
                password_hash=r["password_hash"],
                role=Role(r["role"]),
                department=r.get("department"),
                departments=frozenset(depts.get(int(r["user_id"]), ())),
                work_days=frozenset(days.get(int(r["user_id"]), ())),
                work_schedule=dict(starts.get(int(r["user_id"]), {})),
                is_active=bool(r.get("is_active", True)),
            )
            for r in rows
        ]

    def get_by_id(self, user_id: int) -> Optional[User]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(f"SELECT {_USER_COLUMNS} FROM users WHERE user_id=%s", (int(user_id),))
            row = fetchone(cur)
            if not row:
                return None
            return self._hydrate(cur, [row])[0]

    def get_by_username(self, username: str) -> Optional[User]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(f"SELECT {_USER_COLUMNS} FROM users WHERE username=%s", (username,))
            row = fetchone(cur)
            if not row:
                return None
            return self._hydrate(cur, [row])[0]

    def list_active(self) -> Sequence[User]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(f"SELECT {_USER_COLUMNS} FROM users WHERE is_active=1 ORDER BY user_id")
            return self._hydrate(cur, fetchall(cur))

    def list_admin_ids(self) -> Sequence[int]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                "SELECT user_id FROM users WHERE role=%s AND is_active=1 ORDER BY user_id",
                (Role.ADMIN.value,),
            )
            return [int(r["user_id"]) for r in fetchall(cur)]

    def list_ids_in_departments(self, departments: Iterable[str]) -> Sequence[int]:
        departments = sorted(set(departments))
        if not departments:
            return []
        placeholders = ",".join(["%s"] * len(departments))
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"SELECT user_id FROM users WHERE department IN ({placeholders}) ORDER BY user_id",
                tuple(departments),
            )
            return [int(r["user_id"]) for r in fetchall(cur)]
