from __future__ import annotations

from datetime import datetime
from typing import Optional

from ..core.enums import TokenStatus
from ..database.connection import DatabaseConnection
from ..database.mysql_base import db_cursor, fetchone, from_db_datetime, to_db_datetime
from .model import AttendanceToken, next_sequence_number
from .repository import TokenRepository

_COLUMNS = """
    token_id, token_value, valid_from, valid_to, status, sequence_number,
    usage_count, created_by, created_at
"""

_PRUNE_SQL = """
    DELETE FROM attendance_tokens
    WHERE token_id NOT IN (
        SELECT token_id FROM (
            SELECT token_id FROM attendance_tokens
            ORDER BY created_at DESC, token_id DESC
            LIMIT %s
        ) AS keep_tokens
    )
"""


def _to_token(r: dict) -> AttendanceToken:
    seq = r.get("sequence_number")
    return AttendanceToken(
        token_id=int(r["token_id"]),
        token_value=r["token_value"],
        valid_from=from_db_datetime(r["valid_from"]),
        valid_to=from_db_datetime(r["valid_to"]),
        status=TokenStatus(r["status"]),
        sequence_number=int(seq) if seq is not None else None,
        usage_count=int(r.get("usage_count") or 0),
        created_by=r.get("created_by"),
        created_at=from_db_datetime(r.get("created_at")),
    )


class MySQLTokenRepository(TokenRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def issue(
        self,
        *,
        token_value: str,
        valid_from: datetime,
        valid_to: datetime,
        created_by: Optional[int],
        retain: int,
    ) -> AttendanceToken:
        with db_cursor(self._conn_factory) as (_, cur):
            # The counter row lock serializes concurrent issuers until commit.
            cur.execute("SELECT last_sequence FROM attendance_token_counter WHERE counter_id=1 FOR UPDATE")
            counter = fetchone(cur)
            if counter is None:
                cur.execute("INSERT INTO attendance_token_counter(counter_id, last_sequence) VALUES(1, 0)")
                last_sequence = 0
            else:
                last_sequence = int(counter["last_sequence"])

            cur.execute("SELECT MAX(sequence_number) AS max_seq FROM attendance_tokens")
            row = fetchone(cur) or {}
            max_seq = row.get("max_seq")
            sequence_number = next_sequence_number(
                [last_sequence, int(max_seq) if max_seq is not None else None]
            )

            cur.execute(
                """
                INSERT INTO attendance_tokens(
                    token_value, valid_from, valid_to, status, sequence_number,
                    usage_count, created_by, created_at
                )
                VALUES(%s,%s,%s,%s,%s,0,%s,%s)
                """,
                (
                    token_value,
                    to_db_datetime(valid_from),
                    to_db_datetime(valid_to),
                    TokenStatus.ACTIVE.value,
                    sequence_number,
                    created_by,
                    to_db_datetime(valid_from),
                ),
            )
            token_id = int(cur.lastrowid)

            cur.execute(
                "UPDATE attendance_tokens SET status=%s WHERE status=%s AND token_id<>%s",
                (TokenStatus.EXPIRED.value, TokenStatus.ACTIVE.value, token_id),
            )
            cur.execute(
                "UPDATE attendance_token_counter SET last_sequence=%s WHERE counter_id=1",
                (sequence_number,),
            )
            cur.execute(_PRUNE_SQL, (int(retain),))

            return AttendanceToken(
                token_id=token_id,
                token_value=token_value,
                valid_from=valid_from,
                valid_to=valid_to,
                status=TokenStatus.ACTIVE,
                sequence_number=sequence_number,
                usage_count=0,
                created_by=created_by,
                created_at=valid_from,
            )

    def get_by_value(self, token_value: str) -> Optional[AttendanceToken]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(f"SELECT {_COLUMNS} FROM attendance_tokens WHERE token_value=%s", (token_value,))
            r = fetchone(cur)
            return _to_token(r) if r else None

    def get_latest_active(self, now: datetime) -> Optional[AttendanceToken]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"""
                SELECT {_COLUMNS}
                FROM attendance_tokens
                WHERE status=%s AND valid_to > %s
                ORDER BY created_at DESC, token_id DESC
                LIMIT 1
                """,
                (TokenStatus.ACTIVE.value, to_db_datetime(now)),
            )
            r = fetchone(cur)
            return _to_token(r) if r else None

    def set_status(self, token_id: int, status: TokenStatus) -> bool:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                "UPDATE attendance_tokens SET status=%s WHERE token_id=%s",
                (status.value, int(token_id)),
            )
            return cur.rowcount > 0

    def increment_usage(self, token_value: str) -> bool:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                "UPDATE attendance_tokens SET usage_count = usage_count + 1 WHERE token_value=%s",
                (token_value,),
            )
            return cur.rowcount > 0

    def expire_elapsed(self, now: datetime) -> int:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                "UPDATE attendance_tokens SET status=%s WHERE status=%s AND valid_to < %s",
                (TokenStatus.EXPIRED.value, TokenStatus.ACTIVE.value, to_db_datetime(now)),
            )
            return cur.rowcount

    def prune(self, *, retain: int) -> int:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(_PRUNE_SQL, (int(retain),))
            return cur.rowcount

    def purge_malformed(self) -> int:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute("DELETE FROM attendance_tokens WHERE sequence_number IS NULL")
            return cur.rowcount

    def count(self, *, status: Optional[TokenStatus] = None) -> int:
        with db_cursor(self._conn_factory) as (_, cur):
            if status is None:
                cur.execute("SELECT COUNT(*) AS n FROM attendance_tokens")
            else:
                cur.execute("SELECT COUNT(*) AS n FROM attendance_tokens WHERE status=%s", (status.value,))
            r = fetchone(cur) or {}
            return int(r.get("n") or 0)
