"""Absence sweep for cron, e.g. ``0 12 * * * python scripts/check_absent.py``.

Safe to run more than once a day: users already reported are skipped.
"""
from __future__ import annotations

import importlib
import logging
import sys
from pathlib import Path

REPO_ROOT = Path(__file__).resolve().parents[1]
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

from dotenv import load_dotenv

from config import get_settings_module

from src.staff_attendance.staff_attendance.container import AttendanceSettings, build_container


def main() -> None:
    load_dotenv(override=False)
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s [%(name)s] %(message)s")
    settings = importlib.import_module(get_settings_module())

    container = build_container(
        db_config=dict(settings.DB_CONFIG),
        settings=AttendanceSettings.from_settings(settings),
    )
    report = container.absence_service.check_absent_users()
    print(
        f"{report.day.isoformat()}: notified={len(report.notified)} "
        f"already_notified={len(report.already_notified)}"
    )


if __name__ == "__main__":
    main()
