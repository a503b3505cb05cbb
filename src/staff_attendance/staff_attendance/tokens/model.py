from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import datetime
from typing import Iterable, Optional

from ..core.enums import TokenStatus


@dataclass(frozen=True)
class AttendanceToken:
    """Short-lived bearer credential rendered as the attendance QR code."""

    token_id: int
    token_value: str
    valid_from: datetime
    valid_to: datetime
    status: TokenStatus
    sequence_number: Optional[int]
    usage_count: int = 0
    created_by: Optional[int] = None
    created_at: Optional[datetime] = None

    def is_valid(self, now: datetime) -> bool:
        return self.status == TokenStatus.ACTIVE and self.valid_from <= now < self.valid_to

    def expires_in(self, now: datetime) -> int:
        """Whole seconds left in the validity window (never negative)."""
        return max(0, math.floor((self.valid_to - now).total_seconds()))

    def to_dict(self, now: datetime) -> dict:
        return {
            "token": self.token_value,
            "validFrom": self.valid_from.isoformat(),
            "validTo": self.valid_to.isoformat(),
            "sequenceNumber": self.sequence_number,
            "usageCount": self.usage_count,
            "status": self.status.value,
            "expiresIn": self.expires_in(now),
        }


@dataclass(frozen=True)
class CleanupResult:
    expired: int
    deleted: int
    kept: int


def next_sequence_number(existing: Iterable[object]) -> int:
    """Highest integer sequence number + 1, or 1 for an empty store.

    Missing or non-integer values (legacy rows) do not count.
    """

    numbers = [v for v in existing if isinstance(v, int) and not isinstance(v, bool)]
    return max(numbers) + 1 if numbers else 1
