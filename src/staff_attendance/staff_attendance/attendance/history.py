from __future__ import annotations

from datetime import date
from typing import Iterable, Optional

from ..common.datetime_utils import BusinessClock
from ..core.enums import AttendanceAction
from .model import AttendanceLog, DaySummary


def group_by_operative_day(logs: Iterable[AttendanceLog], clock: BusinessClock) -> list[DaySummary]:
    """Pair a user's logs into one summary per operative day, newest first.

    The earliest check-in of a day is kept. A check-out is attached to the day
    of the latest check-in before it (so a night shift lands on the day it
    started); check-outs with no earlier check-in fall on their own day, and
    the latest check-out wins.
    """

    ordered = sorted(logs, key=lambda log: log.timestamp)
    checkins = [log for log in ordered if log.action == AttendanceAction.CHECKIN]
    checkouts = [log for log in ordered if log.action == AttendanceAction.CHECKOUT]

    days: dict[date, dict[str, Optional[AttendanceLog]]] = {}

    for checkin in checkins:
        slot = days.setdefault(clock.operative_day(checkin.timestamp), {"checkin": None, "checkout": None})
        if slot["checkin"] is None:
            slot["checkin"] = checkin

    for checkout in checkouts:
        previous = [c for c in checkins if c.timestamp < checkout.timestamp]
        anchor = previous[-1].timestamp if previous else checkout.timestamp
        slot = days.setdefault(clock.operative_day(anchor), {"checkin": None, "checkout": None})
        current = slot["checkout"]
        if current is None or checkout.timestamp > current.timestamp:
            slot["checkout"] = checkout

    return [
        DaySummary(day=day, checkin=slot["checkin"], checkout=slot["checkout"])
        for day, slot in sorted(days.items(), key=lambda item: item[0], reverse=True)
    ]
