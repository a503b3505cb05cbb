from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional

from .strategies.base import ArrivalStrategy
from .strategies.late_strategy import LateStrategy
from .strategies.normal_strategy import NormalStrategy


@dataclass
class ArrivalStrategyFactory:
    """Factory Pattern: choose appropriate strategy based on rules."""

    def for_checkin(self, *, now: datetime, expected_start: Optional[datetime], grace_minutes: int) -> ArrivalStrategy:
        if expected_start is None:
            return NormalStrategy()

        if now <= expected_start + timedelta(minutes=grace_minutes):
            return NormalStrategy()
        return LateStrategy()
