from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from datetime import time
from pathlib import Path
from typing import Iterable

import mysql.connector
from werkzeug.security import generate_password_hash

from ..common.datetime_utils import parse_hhmm
from ..core.enums import Role, Weekday

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DBTarget:
    host: str
    port: int
    user: str
    password: str
    database: str


@dataclass(frozen=True)
class DemoUser:
    full_name: str
    username: str
    password: str
    role: Role
    department: str
    start_time: str | None = None
    supervises: tuple[str, ...] = ()

    def schedule(self) -> list[tuple[Weekday, time]]:
        if not self.start_time:
            return []
        start = parse_hhmm(self.start_time)
        return [(day, start) for day in DEMO_WORK_DAYS]


# Sunday-to-Thursday working week.
DEMO_WORK_DAYS = (Weekday.SUNDAY, Weekday.MONDAY, Weekday.TUESDAY, Weekday.WEDNESDAY, Weekday.THURSDAY)

DEMO_USERS = (
    DemoUser("Admin Demo", "admin", "admin123", Role.ADMIN, "Management"),
    DemoUser("QR Display", "qrmanager", "qr123456", Role.QR_MANAGER, "Management"),
    DemoUser("Kitchen Supervisor", "supervisor", "super123", Role.SUPERVISOR, "Kitchen", "08:00", ("Kitchen",)),
    DemoUser("Line Cook", "cook", "staff123", Role.EMPLOYEE, "Kitchen", "09:00"),
    DemoUser("Floor Waiter", "waiter", "staff123", Role.EMPLOYEE, "Service", "16:00"),
)


def _as_target(db_config: dict) -> DBTarget:
    return DBTarget(
        host=str(db_config.get("host", "localhost")),
        port=int(db_config.get("port", 3306)),
        user=str(db_config.get("user", "root")),
        password=str(db_config.get("password", "")),
        database=str(db_config.get("database", "staff_attendance")),
    )


def _connect(target: DBTarget, *, with_database: bool = True):
    kwargs = dict(host=target.host, port=target.port, user=target.user, password=target.password, use_pure=True)
    if with_database:
        kwargs["database"] = target.database
    return mysql.connector.connect(**kwargs)


def _strip_create_db_and_use(sql: str) -> str:
    # Keep schema.sql compatible regardless of DB name.
    sql = re.sub(r"(?im)^\s*CREATE\s+DATABASE\b.*?;\s*$", "", sql)
    sql = re.sub(r"(?im)^\s*USE\b.*?;\s*$", "", sql)
    return sql


def _strip_line_comments(sql: str) -> str:
    return re.sub(r"(?m)^\s*--.*$", "", sql)


def _iter_sql_statements(sql: str) -> Iterable[str]:
    # Minimal SQL splitter for schema files (handles ';' inside quotes).
    buf: list[str] = []
    in_single = False
    in_double = False
    escape = False

    for ch in sql:
        if escape:
            buf.append(ch)
            escape = False
            continue

        if ch == "\\":
            buf.append(ch)
            escape = True
            continue

        if ch == "'" and not in_double:
            in_single = not in_single
            buf.append(ch)
            continue

        if ch == '"' and not in_single:
            in_double = not in_double
            buf.append(ch)
            continue

        if ch == ";" and not in_single and not in_double:
            stmt = "".join(buf).strip()
            buf.clear()
            if stmt:
                yield stmt
            continue

        buf.append(ch)

    tail = "".join(buf).strip()
    if tail:
        yield tail


def ensure_database_exists(db_config: dict) -> None:
    target = _as_target(db_config)
    conn = _connect(target, with_database=False)
    try:
        cur = conn.cursor()
        cur.execute(
            f"CREATE DATABASE IF NOT EXISTS `{target.database}` CHARACTER SET utf8mb4 COLLATE utf8mb4_unicode_ci;"
        )
        conn.commit()
    finally:
        conn.close()


def apply_schema(db_config: dict, *, schema_path: str | Path) -> None:
    target = _as_target(db_config)
    ensure_database_exists(db_config)

    sql = Path(schema_path).read_text(encoding="utf-8")
    sql = _strip_line_comments(_strip_create_db_and_use(sql))

    conn = _connect(target)
    try:
        cur = conn.cursor()
        for stmt in _iter_sql_statements(sql):
            cur.execute(stmt)
        conn.commit()
    finally:
        conn.close()
    logger.info("Applied %s to %s", Path(schema_path).name, target.database)


def ensure_demo_users(db_config: dict, users: Iterable[DemoUser] = DEMO_USERS) -> None:
    """Upsert demo accounts with their departments and working week."""

    target = _as_target(db_config)
    conn = _connect(target)
    try:
        cur = conn.cursor(dictionary=True)

        for demo in users:
            password_hash = generate_password_hash(demo.password)
            cur.execute("SELECT user_id FROM users WHERE username=%s", (demo.username,))
            existing = cur.fetchone()
            if existing:
                user_id = int(existing["user_id"])
                cur.execute(
                    """
                    UPDATE users
                    SET full_name=%s, password_hash=%s, role=%s, department=%s, is_active=1
                    WHERE user_id=%s
                    """,
                    (demo.full_name, password_hash, demo.role.value, demo.department, user_id),
                )
            else:
                cur.execute(
                    """
                    INSERT INTO users (full_name, username, password_hash, role, department)
                    VALUES (%s, %s, %s, %s, %s)
                    """,
                    (demo.full_name, demo.username, password_hash, demo.role.value, demo.department),
                )
                user_id = int(cur.lastrowid)

            cur.execute("DELETE FROM user_departments WHERE user_id=%s", (user_id,))
            for dept in demo.supervises:
                cur.execute("INSERT INTO user_departments(user_id, department) VALUES(%s,%s)", (user_id, dept))

            cur.execute("DELETE FROM user_work_schedules WHERE user_id=%s", (user_id,))
            schedule = demo.schedule()
            if schedule:
                cur.executemany(
                    "INSERT INTO user_work_schedules(user_id, weekday, start_time) VALUES(%s,%s,%s)",
                    [(user_id, day.value, start) for day, start in schedule],
                )

        conn.commit()
    finally:
        conn.close()


def list_tables(db_config: dict) -> list[str]:
    target = _as_target(db_config)
    conn = _connect(target)
    try:
        cur = conn.cursor()
        cur.execute("SHOW TABLES")
        return [row[0] for row in cur.fetchall()]
    finally:
        conn.close()
