from __future__ import annotations

from dataclasses import dataclass, field

from .attendance.absence import AbsenceService
from .attendance.factory import ArrivalStrategyFactory
from .attendance.mysql_attendance_repository import MySQLAttendanceRepository
from .attendance.service import AttendanceRecorder
from .common.datetime_utils import BusinessClock
from .core.constants import (
    DEFAULT_BUSINESS_TIMEZONE,
    DEFAULT_LATE_GRACE_MINUTES,
    DEFAULT_QR_ISSUER_ROLES,
    DEFAULT_TOKEN_VALIDITY_SECONDS,
    TOKEN_RETENTION_LIMIT,
)
from .core.enums import Role
from .database.connection import DBConfig, DatabaseConnection
from .notifications.mysql_notification_repository import MySQLNotificationRepository
from .notifications.service import NotificationService
from .tokens.mysql_token_repository import MySQLTokenRepository
from .tokens.scheduler import TokenRotationScheduler
from .tokens.service import TokenIssuer
from .users.mysql_user_repository import MySQLUserRepository
from .users.service import AuthService


@dataclass(frozen=True)
class AttendanceSettings:
    """Attendance policy knobs read from the settings module."""

    token_validity_seconds: int = DEFAULT_TOKEN_VALIDITY_SECONDS
    token_retention_limit: int = TOKEN_RETENTION_LIMIT
    business_timezone: str = DEFAULT_BUSINESS_TIMEZONE
    late_grace_minutes: int = DEFAULT_LATE_GRACE_MINUTES
    cross_midnight_checkout: bool = True
    qr_issuer_roles: frozenset[Role] = field(
        default_factory=lambda: frozenset(Role(r) for r in DEFAULT_QR_ISSUER_ROLES)
    )

    @classmethod
    def from_settings(cls, settings) -> "AttendanceSettings":
        roles = getattr(settings, "QR_ISSUER_ROLES", DEFAULT_QR_ISSUER_ROLES)
        return cls(
            token_validity_seconds=int(getattr(settings, "QR_TOKEN_VALIDITY_SECONDS", DEFAULT_TOKEN_VALIDITY_SECONDS)),
            token_retention_limit=int(getattr(settings, "QR_TOKEN_RETENTION", TOKEN_RETENTION_LIMIT)),
            business_timezone=str(getattr(settings, "BUSINESS_TIMEZONE", DEFAULT_BUSINESS_TIMEZONE)),
            late_grace_minutes=int(getattr(settings, "LATE_GRACE_MINUTES", DEFAULT_LATE_GRACE_MINUTES)),
            cross_midnight_checkout=bool(getattr(settings, "CROSS_MIDNIGHT_CHECKOUT", True)),
            qr_issuer_roles=frozenset(Role(r) for r in roles),
        )


@dataclass(frozen=True)
class Container:
    conn: DatabaseConnection
    settings: AttendanceSettings
    clock: BusinessClock

    users_repo: MySQLUserRepository
    tokens_repo: MySQLTokenRepository
    attendance_repo: MySQLAttendanceRepository
    notifications_repo: MySQLNotificationRepository

    auth_service: AuthService
    notification_service: NotificationService
    token_issuer: TokenIssuer
    attendance_recorder: AttendanceRecorder
    absence_service: AbsenceService
    rotation_scheduler: TokenRotationScheduler


def build_container(*, db_config: dict, settings: AttendanceSettings | None = None) -> Container:
    settings = settings or AttendanceSettings()
    conn = DatabaseConnection.get_instance(DBConfig.from_dict(db_config))
    clock = BusinessClock(settings.business_timezone)

    users_repo = MySQLUserRepository(conn)
    tokens_repo = MySQLTokenRepository(conn)
    attendance_repo = MySQLAttendanceRepository(conn)
    notifications_repo = MySQLNotificationRepository(conn)

    auth_service = AuthService(users_repo)
    notification_service = NotificationService(notifications_repo, users_repo)
    token_issuer = TokenIssuer(
        tokens_repo,
        clock,
        validity_seconds=settings.token_validity_seconds,
        retention_limit=settings.token_retention_limit,
    )
    attendance_recorder = AttendanceRecorder(
        attendance_repo,
        users_repo,
        token_issuer,
        notification_service,
        clock,
        strategy_factory=ArrivalStrategyFactory(),
        grace_minutes=settings.late_grace_minutes,
        allow_cross_midnight=settings.cross_midnight_checkout,
    )
    absence_service = AbsenceService(attendance_repo, users_repo, notification_service, clock)
    rotation_scheduler = TokenRotationScheduler(token_issuer)

    return Container(
        conn=conn,
        settings=settings,
        clock=clock,
        users_repo=users_repo,
        tokens_repo=tokens_repo,
        attendance_repo=attendance_repo,
        notifications_repo=notifications_repo,
        auth_service=auth_service,
        notification_service=notification_service,
        token_issuer=token_issuer,
        attendance_recorder=attendance_recorder,
        absence_service=absence_service,
        rotation_scheduler=rotation_scheduler,
    )
