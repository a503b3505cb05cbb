from __future__ import annotations

import json
from typing import Any, Mapping, Optional, Sequence

from ..core.enums import NotificationType
from ..database.connection import DatabaseConnection
from ..database.mysql_base import db_cursor, fetchall, fetchone
from .model import LocalizedText
from .repository import NotificationRepository


class MySQLNotificationRepository(NotificationRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

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
        if not recipient_ids:
            return 0

        payload = json.dumps(dict(data), default=str)
        with db_cursor(self._conn_factory) as (_, cur):
            recipients = [int(rid) for rid in recipient_ids]
            if dedupe_key is not None:
                placeholders = ",".join(["%s"] * len(recipients))
                cur.execute(
                    f"SELECT recipient_id FROM notifications WHERE dedupe_key=%s AND recipient_id IN ({placeholders})",
                    (dedupe_key, *recipients),
                )
                seen = {int(r["recipient_id"]) for r in fetchall(cur)}
                recipients = [rid for rid in recipients if rid not in seen]
            if not recipients:
                return 0

            rows = [
                (rid, type.value, title.en, title.ar, message.en, message.ar, payload, dedupe_key)
                for rid in recipients
            ]
            # The no-op update only absorbs a concurrent insert of the same
            # (recipient_id, dedupe_key); other errors still abort the batch.
            cur.executemany(
                """
                INSERT INTO notifications(
                    recipient_id, type, title_en, title_ar, message_en, message_ar, data, dedupe_key
                )
                VALUES(%s,%s,%s,%s,%s,%s,%s,%s)
                ON DUPLICATE KEY UPDATE notification_id=notification_id
                """,
                rows,
            )
            return len(rows)

    def exists(self, dedupe_key: str) -> bool:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute("SELECT 1 AS found FROM notifications WHERE dedupe_key=%s LIMIT 1", (dedupe_key,))
            return fetchone(cur) is not None
