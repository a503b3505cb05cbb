from __future__ import annotations

from datetime import datetime
from typing import Optional

from ...core.enums import ArrivalStatus
from .base import ArrivalDecision, ArrivalStrategy


class NormalStrategy(ArrivalStrategy):
    """On-time check-in, or no schedule to compare against."""

    def decide_checkin(self, *, now: datetime, expected_start: Optional[datetime]) -> ArrivalDecision:
        if expected_start is None:
            return ArrivalDecision(status=ArrivalStatus.UNSCHEDULED)
        return ArrivalDecision(status=ArrivalStatus.ON_TIME)
