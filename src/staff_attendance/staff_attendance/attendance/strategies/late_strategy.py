from __future__ import annotations

import math
from datetime import datetime
from typing import Optional

from ...core.enums import ArrivalStatus
from .base import ArrivalDecision, ArrivalStrategy


class LateStrategy(ArrivalStrategy):
    """Late check-in; minutes are counted from the scheduled start, not the grace end."""

    def decide_checkin(self, *, now: datetime, expected_start: Optional[datetime]) -> ArrivalDecision:
        minutes = math.floor((now - expected_start).total_seconds() / 60) if expected_start else 0
        return ArrivalDecision(status=ArrivalStatus.LATE, late_minutes=max(minutes, 0))
