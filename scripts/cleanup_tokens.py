"""One-off QR token maintenance.

Deletes legacy token rows without a sequence number, then expires elapsed
tokens and prunes the store down to the retention limit.
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
    issuer = container.token_issuer

    before = issuer.counts()
    malformed = issuer.purge_malformed()
    result = issuer.cleanup_expired()
    after = issuer.counts()

    print(f"Tokens before: total={before['total']} active={before['active']}")
    print(f"Deleted without sequence number: {malformed}")
    print(f"Expired: {result.expired}  pruned: {result.deleted}  kept: {result.kept}")
    print(f"Tokens after: total={after['total']} active={after['active']}")


if __name__ == "__main__":
    main()
