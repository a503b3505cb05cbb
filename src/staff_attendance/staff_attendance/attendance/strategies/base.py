from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from ...core.enums import ArrivalStatus


@dataclass(frozen=True)
class ArrivalDecision:
    status: ArrivalStatus
    late_minutes: int = 0


class ArrivalStrategy(ABC):
    """Strategy Pattern: encapsulate how we classify a check-in."""

    @abstractmethod
    def decide_checkin(self, *, now: datetime, expected_start: Optional[datetime]) -> ArrivalDecision:
        raise NotImplementedError
