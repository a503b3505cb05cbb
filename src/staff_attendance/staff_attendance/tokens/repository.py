from __future__ import annotations

from datetime import datetime
from typing import Optional, Protocol

from ..core.enums import TokenStatus
from .model import AttendanceToken


class TokenRepository(Protocol):
    """Storage port for attendance tokens.

    ``issue`` must be atomic: sequence allocation, insert, expiry of every other
    active token and the retention prune happen as one serialized unit.
    """

    def issue(
        self,
        *,
        token_value: str,
        valid_from: datetime,
        valid_to: datetime,
        created_by: Optional[int],
        retain: int,
    ) -> AttendanceToken:
        raise NotImplementedError

    def get_by_value(self, token_value: str) -> Optional[AttendanceToken]:
        raise NotImplementedError

    def get_latest_active(self, now: datetime) -> Optional[AttendanceToken]:
        """Most recently created token with status=active and valid_to > now."""

        raise NotImplementedError

    def set_status(self, token_id: int, status: TokenStatus) -> bool:
        raise NotImplementedError

    def increment_usage(self, token_value: str) -> bool:
        raise NotImplementedError

    def expire_elapsed(self, now: datetime) -> int:
        raise NotImplementedError

    def prune(self, *, retain: int) -> int:
        raise NotImplementedError

    def purge_malformed(self) -> int:
        raise NotImplementedError

    def count(self, *, status: Optional[TokenStatus] = None) -> int:
        raise NotImplementedError
