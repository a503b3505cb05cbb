"""QR token issuance, rotation and validation."""
from __future__ import annotations

import logging
import secrets
from datetime import datetime, timedelta
from typing import Optional

from ..common.datetime_utils import BusinessClock
from ..core.constants import DEFAULT_TOKEN_VALIDITY_SECONDS, TOKEN_ENTROPY_BYTES, TOKEN_RETENTION_LIMIT
from ..core.enums import TokenStatus, TokenValidity
from ..core.exceptions import ValidationError
from .model import AttendanceToken, CleanupResult
from .repository import TokenRepository

logger = logging.getLogger(__name__)


class TokenIssuer:
    """Keeps at most one presentable QR token alive at any moment.

    A single active token may be scanned by any number of employees during its
    window; a new issuance rotates (expires) every earlier token.
    """

    def __init__(
        self,
        tokens: TokenRepository,
        clock: BusinessClock,
        *,
        validity_seconds: int = DEFAULT_TOKEN_VALIDITY_SECONDS,
        retention_limit: int = TOKEN_RETENTION_LIMIT,
    ):
        self._tokens = tokens
        self._clock = clock
        self._validity_seconds = int(validity_seconds)
        self._retention_limit = int(retention_limit)

    @property
    def validity_seconds(self) -> int:
        return self._validity_seconds

    @staticmethod
    def new_token_value() -> str:
        return secrets.token_urlsafe(TOKEN_ENTROPY_BYTES)

    def generate(
        self,
        validity_seconds: Optional[int] = None,
        *,
        created_by: Optional[int] = None,
        now: Optional[datetime] = None,
    ) -> AttendanceToken:
        """Issue a new active token, expire the previous ones and prune history."""

        seconds = self._validity_seconds if validity_seconds is None else int(validity_seconds)
        if seconds <= 0:
            raise ValidationError("Token validity must be a positive number of seconds")

        now = self._clock.resolve(now)
        token = self._tokens.issue(
            token_value=self.new_token_value(),
            valid_from=now,
            valid_to=now + timedelta(seconds=seconds),
            created_by=created_by,
            retain=self._retention_limit,
        )
        logger.info(
            "Generated QR #%s valid for %ss (until %s)",
            token.sequence_number,
            seconds,
            token.valid_to.isoformat(),
        )
        return token

    def get_current(self, *, now: Optional[datetime] = None) -> Optional[AttendanceToken]:
        now = self._clock.resolve(now)
        current = self._tokens.get_latest_active(now)
        if current is None:
            return None

        # The query filters on valid_to, but a clock skew between app and DB can
        # still hand back a token whose window has closed.
        if not current.is_valid(now):
            self._tokens.set_status(current.token_id, TokenStatus.EXPIRED)
            logger.debug("Current QR #%s found elapsed; expired it", current.sequence_number)
            return None
        return current

    def lookup(self, token_value: str, *, now: Optional[datetime] = None) -> tuple[TokenValidity, Optional[AttendanceToken]]:
        """Validate and hand back the stored token for callers that need it."""

        now = self._clock.resolve(now)
        token = self._tokens.get_by_value(token_value) if token_value else None
        if token is None:
            return TokenValidity.NOT_FOUND, None
        if not token.is_valid(now):
            return TokenValidity.EXPIRED, token
        return TokenValidity.VALID, token

    def validate(self, token_value: str, *, now: Optional[datetime] = None) -> TokenValidity:
        """Read-only check; consuming the token is ``mark_used``."""

        validity, _ = self.lookup(token_value, now=now)
        return validity

    def mark_used(self, token_value: str) -> None:
        if not self._tokens.increment_usage(token_value):
            logger.warning("mark_used: token not found (rotated out by retention?)")

    def cleanup_expired(self, *, now: Optional[datetime] = None) -> CleanupResult:
        now = self._clock.resolve(now)
        expired = self._tokens.expire_elapsed(now)
        deleted = self._tokens.prune(retain=self._retention_limit)
        kept = self._tokens.count()
        logger.info("QR cleanup: expired=%s deleted=%s kept=%s", expired, deleted, kept)
        return CleanupResult(expired=expired, deleted=deleted, kept=kept)

    def purge_malformed(self) -> int:
        deleted = self._tokens.purge_malformed()
        if deleted:
            logger.info("Deleted %s token(s) without a sequence number", deleted)
        return deleted

    def counts(self) -> dict:
        return {
            "active": self._tokens.count(status=TokenStatus.ACTIVE),
            "total": self._tokens.count(),
        }
