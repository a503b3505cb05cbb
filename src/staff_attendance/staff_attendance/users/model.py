from __future__ import annotations

from dataclasses import dataclass, field
from datetime import time
from typing import Mapping, Optional

from ..core.enums import Role, Weekday


@dataclass(frozen=True)
class User:
    """Domain entity: restaurant staff member.

    Note: pure data object (no DB access code). ``work_schedule`` maps a
    weekday to the expected start time on that day.
    """

    user_id: int
    full_name: str
    username: str
    password_hash: str
    role: Role
    department: Optional[str] = None
    departments: frozenset[str] = frozenset()
    work_days: frozenset[Weekday] = frozenset()
    work_schedule: Mapping[Weekday, time] = field(default_factory=dict)
    is_active: bool = True

    def works_on(self, day: Weekday) -> bool:
        return day in self.work_days

    def expected_start(self, day: Weekday) -> Optional[time]:
        if not self.works_on(day):
            return None
        return self.work_schedule.get(day)

    def supervised_departments(self) -> frozenset[str]:
        if self.departments:
            return self.departments
        return frozenset({self.department}) if self.department else frozenset()
