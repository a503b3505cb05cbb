from __future__ import annotations

import pytest
from flask import Flask

from src.staff_attendance.staff_attendance.attendance.absence import AbsenceService
from src.staff_attendance.staff_attendance.attendance.controller import register as register_attendance
from src.staff_attendance.staff_attendance.common.http import register_error_handlers
from src.staff_attendance.staff_attendance.container import AttendanceSettings, Container
from src.staff_attendance.staff_attendance.core.enums import Role
from src.staff_attendance.staff_attendance.tokens.scheduler import TokenRotationScheduler
from src.staff_attendance.staff_attendance.users.controller import register as register_users
from src.staff_attendance.staff_attendance.users.service import AuthService


class IdleScheduler:
    running = False

    def add_job(self, *args, **kwargs):
        pass

    def get_job(self, job_id):
        return None

    def start(self):
        self.running = True

    def shutdown(self, wait=True):
        self.running = False


@pytest.fixture
def app(
    clock,
    users_repo,
    tokens_repo,
    attendance_repo,
    notifications_repo,
    notification_service,
    issuer,
    recorder,
    user_factory,
):
    users_repo.add(user_factory(5, role=Role.QR_MANAGER, department="Management", start=None))

    container = Container(
        conn=None,
        settings=AttendanceSettings(),
        clock=clock,
        users_repo=users_repo,
        tokens_repo=tokens_repo,
        attendance_repo=attendance_repo,
        notifications_repo=notifications_repo,
        auth_service=AuthService(users_repo),
        notification_service=notification_service,
        token_issuer=issuer,
        attendance_recorder=recorder,
        absence_service=AbsenceService(attendance_repo, users_repo, notification_service, clock),
        rotation_scheduler=TokenRotationScheduler(issuer, scheduler=IdleScheduler()),
    )

    app = Flask(__name__)
    app.secret_key = "test-secret"
    app.config["TESTING"] = True
    register_error_handlers(app)
    register_users(app, container)
    register_attendance(app, container)
    return app


@pytest.fixture
def client(app):
    return app.test_client()


def login(client, username, password="secret123"):
    return client.post("/auth/login", json={"username": username, "password": password})


def fresh_token(client):
    login(client, "user5")
    body = client.post("/attendance/qr/generate").get_json()
    client.post("/auth/logout")
    return body["data"]["token"]


def test_login_and_me(client):
    resp = login(client, "user10")
    assert resp.status_code == 200
    assert resp.get_json()["data"]["role"] == "employee"

    me = client.get("/auth/me").get_json()
    assert me["data"]["id"] == 10
    assert "monday" in me["data"]["workDays"]


def test_login_with_bad_password(client):
    resp = login(client, "user10", "wrong")

    assert resp.status_code == 401
    assert resp.get_json()["success"] is False


def test_record_requires_login(client):
    resp = client.post("/attendance/record", json={"token": "x", "type": "checkin"})

    assert resp.status_code == 401


def test_checkin_via_qr(client, tokens_repo):
    token = fresh_token(client)
    login(client, "user10")

    resp = client.post("/attendance/record", json={"token": token, "type": "checkin"})

    assert resp.status_code == 200
    body = resp.get_json()
    assert body["success"] is True
    assert body["data"]["type"] == "checkin"
    assert "arrival" in body["data"]
    assert tokens_repo.get_by_value(token).usage_count == 1


def test_action_field_is_accepted(client):
    token = fresh_token(client)
    login(client, "user10")

    resp = client.post("/attendance/record", json={"token": token, "action": "checkin"})

    assert resp.status_code == 200


def test_duplicate_checkin_is_400(client):
    token = fresh_token(client)
    login(client, "user10")
    client.post("/attendance/record", json={"token": token, "type": "checkin"})

    resp = client.post("/attendance/record", json={"token": token, "type": "checkin"})

    assert resp.status_code == 400
    assert resp.get_json()["error"] == "AlreadyCheckedIn"


def test_checkout_without_checkin_is_400(client):
    token = fresh_token(client)
    login(client, "user10")

    resp = client.post("/attendance/record", json={"token": token, "type": "checkout"})

    assert resp.status_code == 400
    assert resp.get_json()["message"] == "You must check in before checking out"


def test_unknown_token_is_404(client):
    login(client, "user10")

    resp = client.post("/attendance/record", json={"token": "forged", "type": "checkin"})

    assert resp.status_code == 404
    assert resp.get_json()["error"] == "InvalidToken"


def test_bad_action_is_400(client):
    login(client, "user10")

    resp = client.post("/attendance/record", json={"token": "abc", "type": "lunch"})

    assert resp.status_code == 400
    assert resp.get_json()["message"] == "Type must be either checkin or checkout"


def test_employee_cannot_generate_qr(client):
    login(client, "user10")

    assert client.post("/attendance/qr/generate").status_code == 403


def test_current_qr_and_png(client):
    login(client, "user5")
    assert client.get("/attendance/qr/current").status_code == 404

    generated = client.post("/attendance/qr/generate").get_json()["data"]
    current = client.get("/attendance/qr/current").get_json()["data"]
    assert current["token"] == generated["token"]
    assert current["sequenceNumber"] == 1

    png = client.get("/attendance/qr/current.png")
    assert png.status_code == 200
    assert png.mimetype == "image/png"
    assert png.data[:8] == b"\x89PNG\r\n\x1a\n"


def test_validate_endpoint_is_public(client):
    token = fresh_token(client)

    ok = client.get(f"/attendance/validate/{token}")
    assert ok.status_code == 200
    assert ok.get_json()["data"]["valid"] is True

    missing = client.get("/attendance/validate/nope")
    assert missing.status_code == 404
    assert missing.get_json()["valid"] is False


def test_admin_only_maintenance(client):
    login(client, "user5")
    assert client.post("/attendance/qr/cleanup").status_code == 403
    client.post("/auth/logout")

    login(client, "user1")
    cleanup = client.post("/attendance/qr/cleanup")
    assert cleanup.status_code == 200
    assert set(cleanup.get_json()["data"]) == {"expired", "deleted", "kept"}

    absent = client.post("/attendance/check-absent")
    assert absent.status_code == 200
    assert "notified" in absent.get_json()["data"]


def test_my_attendance_and_logs(client):
    token = fresh_token(client)
    login(client, "user10")
    client.post("/attendance/record", json={"token": token, "type": "checkin"})

    mine = client.get("/attendance/my-attendance").get_json()["data"]
    assert len(mine) == 1
    assert mine[0]["checkin"]["userId"] == 10

    logs = client.get("/attendance/logs").get_json()
    assert logs["pagination"]["total"] == 1
    assert client.get("/attendance/logs?userId=11").status_code == 403
    assert client.get("/attendance/logs?startDate=03-02-2026").status_code == 400


def test_stats_for_admin_and_supervisor_only(client):
    login(client, "user10")
    assert client.get("/attendance/stats").status_code == 403
    client.post("/auth/logout")

    login(client, "user2")
    stats = client.get("/attendance/stats").get_json()["data"]
    assert set(stats) == {"today", "qr"}


def test_admin_corrects_log(client, attendance_repo):
    token = fresh_token(client)
    login(client, "user10")
    log_id = client.post("/attendance/record", json={"token": token, "type": "checkin"}).get_json()["data"]["id"]
    client.post("/auth/logout")

    login(client, "user1")
    resp = client.put(f"/attendance/logs/{log_id}", json={"notes": "Forgot badge"})

    assert resp.status_code == 200
    assert resp.get_json()["data"]["method"] == "manual"
    assert attendance_repo.get_by_id(log_id).notes == "Forgot badge"

    assert client.put("/attendance/logs/999", json={"notes": "x"}).status_code == 404
    assert client.put(f"/attendance/logs/{log_id}", json={}).status_code == 400


def test_scheduler_status(client):
    login(client, "user5")

    status = client.get("/attendance/qr/scheduler").get_json()["data"]

    assert status["isRunning"] is False
