from __future__ import annotations

import io

import qrcode
from flask import Flask, request, send_file

from ..common.datetime_utils import parse_iso_date, parse_iso_datetime
from ..common.http import current_user_id, fail, login_required, ok, roles_required
from ..common.validators import require_action, require_non_empty, require_positive_int
from ..container import Container
from ..core.constants import DEFAULT_HISTORY_LIMIT, DEFAULT_LOGS_PAGE_SIZE, MAX_LOGS_PAGE_SIZE
from ..core.enums import AttendanceAction, Role, TokenValidity
from ..core.exceptions import NotFoundError, ValidationError


def register(app: Flask, container: Container) -> None:
    issuer = container.token_issuer
    recorder = container.attendance_recorder
    clock = container.clock
    issuer_roles = container.settings.qr_issuer_roles

    def _day_start(day):
        return clock.day_bounds(day)[0] if day else None

    def _day_end(day):
        return clock.day_bounds(day)[1] if day else None

    def _current_user():
        user = container.users_repo.get_by_id(current_user_id())
        if user is None:
            raise NotFoundError("User not found")
        return user

    def _parse_day_arg(name: str):
        raw = request.args.get(name)
        if not raw:
            return None
        try:
            return parse_iso_date(raw)
        except ValueError:
            raise ValidationError(f"{name} must be a date in YYYY-MM-DD format")

    @app.route("/attendance/record", methods=["POST"], endpoint="record_attendance")
    @login_required
    def record_attendance():
        payload = request.get_json(silent=True) or {}
        token_value = require_non_empty(payload.get("token", ""), "token")
        action = require_action(payload.get("type") or payload.get("action") or "")

        metadata = {
            "ipAddress": request.headers.get("X-Forwarded-For", request.remote_addr),
            "userAgent": request.headers.get("User-Agent"),
        }
        outcome = recorder.record_attendance(current_user_id(), token_value, action, metadata=metadata)

        if outcome.log.action == AttendanceAction.CHECKIN:
            message = "Check-in recorded successfully"
        else:
            message = "Check-out recorded successfully"
        return ok(outcome.to_dict(), message=message)

    @app.route("/attendance/qr/generate", methods=["GET", "POST"], endpoint="generate_qr")
    @roles_required(issuer_roles)
    def generate_qr():
        payload = request.get_json(silent=True) or {}
        raw_validity = payload.get("validitySeconds") or request.args.get("validitySeconds")
        validity = require_positive_int(raw_validity, "validitySeconds", maximum=86400) if raw_validity else None

        token = issuer.generate(validity, created_by=current_user_id())
        return ok(token.to_dict(clock.now()), message="QR code generated successfully")

    @app.route("/attendance/qr/current", methods=["GET"], endpoint="current_qr")
    @roles_required(issuer_roles)
    def current_qr():
        now = clock.now()
        token = issuer.get_current(now=now)
        if token is None:
            return fail("No active QR code found", 404)
        return ok(token.to_dict(now))

    @app.route("/attendance/qr/current.png", methods=["GET"], endpoint="current_qr_png")
    @roles_required(issuer_roles)
    def current_qr_png():
        token = issuer.get_current()
        if token is None:
            return fail("No active QR code found", 404)

        img = qrcode.make(token.token_value)
        buf = io.BytesIO()
        img.save(buf, format="PNG")
        buf.seek(0)
        response = send_file(buf, mimetype="image/png")
        response.headers["Cache-Control"] = "no-store"
        return response

    @app.route("/attendance/validate/<token_value>", methods=["GET"], endpoint="validate_qr")
    def validate_qr(token_value: str):
        now = clock.now()
        validity, token = issuer.lookup(token_value, now=now)
        if validity == TokenValidity.NOT_FOUND:
            return fail("Invalid QR code", 404, valid=False)
        if validity == TokenValidity.EXPIRED:
            return fail("QR code has expired", 400, valid=False)
        return ok(
            {"valid": True, "expiresIn": token.expires_in(now), "sequenceNumber": token.sequence_number},
        )

    @app.route("/attendance/qr/cleanup", methods=["POST"], endpoint="cleanup_qr")
    @roles_required([Role.ADMIN])
    def cleanup_qr():
        result = issuer.cleanup_expired()
        return ok(
            {"expired": result.expired, "deleted": result.deleted, "kept": result.kept},
            message="QR cleanup completed",
        )

    @app.route("/attendance/qr/scheduler", methods=["GET"], endpoint="qr_scheduler_status")
    @roles_required(issuer_roles)
    def qr_scheduler_status():
        return ok(container.rotation_scheduler.status())

    @app.route("/attendance/qr/scheduler/<action>", methods=["POST"], endpoint="qr_scheduler_control")
    @roles_required([Role.ADMIN])
    def qr_scheduler_control(action: str):
        scheduler = container.rotation_scheduler
        if action == "start":
            scheduler.start()
        elif action == "stop":
            scheduler.stop()
        else:
            return fail("Action must be either start or stop", 400)
        return ok(scheduler.status(), message=f"QR auto-rotation {action} requested")

    @app.route("/attendance/check-absent", methods=["POST"], endpoint="check_absent")
    @roles_required([Role.ADMIN])
    def check_absent():
        report = container.absence_service.check_absent_users()
        return ok(
            {
                "date": report.day.isoformat(),
                "notified": list(report.notified),
                "alreadyNotified": list(report.already_notified),
            },
            message="Absent users check completed",
        )

    @app.route("/attendance/my-attendance", methods=["GET"], endpoint="my_attendance")
    @login_required
    def my_attendance():
        start_day = _parse_day_arg("startDate")
        end_day = _parse_day_arg("endDate")
        limit_raw = request.args.get("limit")
        limit = require_positive_int(limit_raw, "limit", maximum=MAX_LOGS_PAGE_SIZE) if limit_raw else DEFAULT_HISTORY_LIMIT

        days = recorder.get_history(
            current_user_id(),
            start=_day_start(start_day),
            end=_day_end(end_day),
            limit=limit,
        )
        return ok([d.to_dict() for d in days])

    @app.route("/attendance/logs", methods=["GET"], endpoint="attendance_logs")
    @login_required
    def attendance_logs():
        viewer = _current_user()

        user_raw = request.args.get("userId")
        type_raw = request.args.get("type")
        page_raw = request.args.get("page")
        limit_raw = request.args.get("limit")

        page = recorder.list_logs(
            viewer,
            user_id=require_positive_int(user_raw, "userId") if user_raw else None,
            action=require_action(type_raw) if type_raw else None,
            start=_day_start(_parse_day_arg("startDate")),
            end=_day_end(_parse_day_arg("endDate")),
            page=require_positive_int(page_raw, "page") if page_raw else 1,
            limit=require_positive_int(limit_raw, "limit", maximum=MAX_LOGS_PAGE_SIZE) if limit_raw else DEFAULT_LOGS_PAGE_SIZE,
        )
        return ok(
            [log.to_dict() for log in page.items],
            pagination={"page": page.page, "limit": page.limit, "total": page.total, "pages": page.pages},
        )

    @app.route("/attendance/stats", methods=["GET"], endpoint="attendance_stats")
    @roles_required([Role.ADMIN, Role.SUPERVISOR])
    def attendance_stats():
        return ok(recorder.get_stats().to_dict())

    @app.route("/attendance/logs/<int:log_id>", methods=["PUT"], endpoint="update_attendance_log")
    @roles_required([Role.ADMIN])
    def update_attendance_log(log_id: int):
        payload = request.get_json(silent=True) or {}

        timestamp = None
        if payload.get("timestamp"):
            try:
                timestamp = parse_iso_datetime(str(payload["timestamp"]))
            except ValueError:
                raise ValidationError("timestamp must be an ISO-8601 datetime")

        notes = payload.get("notes")
        if timestamp is None and notes is None:
            raise ValidationError("Nothing to update: provide timestamp and/or notes")

        log = recorder.correct_log(log_id, timestamp=timestamp, notes=notes)
        return ok(log.to_dict(), message="Attendance log updated successfully")
