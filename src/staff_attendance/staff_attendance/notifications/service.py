from __future__ import annotations

import logging
from typing import Any, Mapping, Optional

from ..core.enums import NotificationType
from ..users.repository import UserRepository
from .model import LocalizedText
from .repository import NotificationRepository

logger = logging.getLogger(__name__)


class NotificationService:
    """Fans attendance alerts out to every active administrator.

    Delivery is best effort: failures are logged and never raised, so the
    attendance action that triggered the alert always completes.
    """

    def __init__(self, notifications: NotificationRepository, users: UserRepository):
        self._notifications = notifications
        self._users = users

    def notify_admins(
        self,
        *,
        type: NotificationType,
        title: LocalizedText,
        message: LocalizedText,
        data: Optional[Mapping[str, Any]] = None,
        dedupe_key: Optional[str] = None,
    ) -> int:
        try:
            admin_ids = list(self._users.list_admin_ids())
            if not admin_ids:
                logger.info("No admin users found to send notification %s", type.value)
                return 0

            created = self._notifications.create_for_recipients(
                recipient_ids=admin_ids,
                type=type,
                title=title,
                message=message,
                data=data or {},
                dedupe_key=dedupe_key,
            )
            logger.info("Created %s notification(s) for admins: %s", created, type.value)
            return created
        except Exception:
            logger.exception("Error creating %s notification", type.value)
            return 0

    def already_sent(self, dedupe_key: str) -> bool:
        return self._notifications.exists(dedupe_key)
