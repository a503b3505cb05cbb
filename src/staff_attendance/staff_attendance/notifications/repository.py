from __future__ import annotations

from typing import Any, Mapping, Optional, Protocol, Sequence

from ..core.enums import NotificationType
from .model import LocalizedText


class NotificationRepository(Protocol):
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
        """Insert one row per recipient and return how many were written.

        Rows whose (recipient, dedupe_key) already exist are skipped silently.
        """

        raise NotImplementedError

    def exists(self, dedupe_key: str) -> bool:
        raise NotImplementedError
