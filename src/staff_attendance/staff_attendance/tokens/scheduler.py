from __future__ import annotations

import logging
from typing import Optional

from apscheduler.schedulers.background import BackgroundScheduler

from .service import TokenIssuer

logger = logging.getLogger(__name__)

JOB_ID = "qr-token-rotation"


class TokenRotationScheduler:
    """Periodically issues a fresh QR token.

    Owned by the host process: nothing runs until ``start()``. ``stop()`` only
    removes the rotation job so it can be started again; ``shutdown()`` ends
    the background thread for good and belongs in the process exit hook.
    """

    def __init__(
        self,
        issuer: TokenIssuer,
        *,
        interval_seconds: Optional[int] = None,
        scheduler: Optional[BackgroundScheduler] = None,
    ):
        self._issuer = issuer
        self._interval_seconds = int(interval_seconds or issuer.validity_seconds)
        self._scheduler = scheduler or BackgroundScheduler(
            job_defaults={"coalesce": True, "max_instances": 1, "misfire_grace_time": self._interval_seconds}
        )
        self._running = False

    @property
    def is_running(self) -> bool:
        return self._running

    def rotate(self) -> None:
        try:
            self._issuer.generate(self._interval_seconds)
        except Exception:
            # Keep the job alive; the next tick issues a token again.
            logger.exception("Failed to auto-generate QR token")

    def start(self) -> None:
        if self._running:
            logger.warning("QR rotation scheduler is already running")
            return

        self.rotate()
        self._scheduler.add_job(
            self.rotate,
            "interval",
            seconds=self._interval_seconds,
            id=JOB_ID,
            replace_existing=True,
        )
        if not self._scheduler.running:
            self._scheduler.start()
        self._running = True
        logger.info("QR rotation scheduler started (every %ss)", self._interval_seconds)

    def stop(self) -> None:
        if not self._running:
            logger.warning("QR rotation scheduler is not running")
            return

        if self._scheduler.get_job(JOB_ID):
            self._scheduler.remove_job(JOB_ID)
        self._running = False
        logger.info("QR rotation scheduler stopped")

    def shutdown(self) -> None:
        if self._running:
            self.stop()
        if self._scheduler.running:
            self._scheduler.shutdown(wait=False)

    def status(self) -> dict:
        return {
            "isRunning": self._running,
            "intervalSeconds": self._interval_seconds,
        }
