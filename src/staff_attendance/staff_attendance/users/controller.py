from __future__ import annotations

from flask import Flask, request, session

from ..common.http import current_user_id, fail, login_required, ok
from ..container import Container


def register(app: Flask, container: Container) -> None:
    @app.route("/auth/login", methods=["POST"], endpoint="login")
    def login():
        payload = request.get_json(silent=True) or {}
        s_user = container.auth_service.authenticate(payload.get("username", ""), payload.get("password", ""))

        session.clear()
        session["user_id"] = s_user.user_id
        session["name"] = s_user.full_name
        session["role"] = s_user.role.value
        session["department"] = s_user.department

        return ok(
            {"id": s_user.user_id, "name": s_user.full_name, "role": s_user.role.value},
            message="Logged in",
        )

    @app.route("/auth/logout", methods=["POST"], endpoint="logout")
    def logout():
        session.clear()
        return ok(message="Logged out")

    @app.route("/auth/me", methods=["GET"], endpoint="me")
    @login_required
    def me():
        user = container.users_repo.get_by_id(current_user_id())
        if not user:
            session.clear()
            return fail("User not found", 404)
        return ok(
            {
                "id": user.user_id,
                "name": user.full_name,
                "role": user.role.value,
                "department": user.department,
                "workDays": sorted(d.value for d in user.work_days),
            }
        )
