from __future__ import annotations

import secrets
from typing import Iterable, List

from flask import Blueprint, current_app, jsonify, request, session

from mercado_obras.domain.contracts import AuthUser
from mercado_obras.errors import AuthRequiredError, ValidationError
from mercado_obras.policies import VALID_ROLES, normalize_role
from mercado_obras.ui_strings import success_message


auth_bp = Blueprint("auth", __name__)

LOCAL_USER_ID = "usuario-local"
_PUBLIC_PATHS = {"/", "/health", "/metrics", "/api/login", "/api/logout", "/api/session", "/api/ui"}


def register_auth(app) -> None:
    app.register_blueprint(auth_bp)

    @app.before_request
    def _require_login():
        if not app.config.get("AUTH_ENABLED", True):
            return None
        path = request.path or "/"
        if path in _PUBLIC_PATHS or not path.startswith("/api/"):
            return None
        if session.get("user_id"):
            return None
        raise AuthRequiredError()


def current_user() -> AuthUser:
    """User bound to the session; with auth disabled, a local user keeps the API usable."""
    user_id = str(session.get("user_id") or "").strip()
    if user_id:
        return AuthUser(
            user_id=user_id,
            email=str(session.get("user_email") or ""),
            display_name=str(session.get("display_name") or user_id),
            role=normalize_role(session.get("user_role"), default="cliente"),
            fornecedor_id=str(session.get("fornecedor_id") or "").strip() or None,
        )
    if current_app.config.get("AUTH_ENABLED", True):
        raise AuthRequiredError()
    return AuthUser(
        user_id=LOCAL_USER_ID,
        email="",
        display_name="Usuario local",
        role=normalize_role(session.get("user_role"), default="cliente"),
        fornecedor_id=str(session.get("fornecedor_id") or "").strip() or None,
    )


@auth_bp.post("/api/login")
def login():
    payload = request.get_json(silent=True) or {}
    email = str(payload.get("email") or "").strip().lower()
    password = str(payload.get("senha") or payload.get("password") or "")
    if not email or not password:
        raise ValidationError(code="auth_missing_credentials", http_status=400)

    user = find_user(email, password, current_app.config.get("APP_USERS"))
    if user is None:
        current_app.logger.warning("login_failed", extra={"user_email": email})
        raise ValidationError(code="auth_invalid_credentials", http_status=401)

    session.clear()
    session["user_id"] = user.user_id
    session["user_email"] = user.email
    session["display_name"] = user.display_name
    session["user_role"] = user.role
    if user.fornecedor_id:
        session["fornecedor_id"] = user.fornecedor_id
    current_app.logger.info("login_succeeded", extra={"user_email": user.email, "user_role": user.role})
    return jsonify(_session_payload(user)), 200


@auth_bp.post("/api/logout")
def logout():
    session.clear()
    return jsonify({"authenticated": False, "message": success_message("logged_out")}), 200


@auth_bp.get("/api/session")
def session_info():
    if not session.get("user_id"):
        return jsonify({"authenticated": False}), 200
    return jsonify(_session_payload(current_user())), 200


def _session_payload(user: AuthUser) -> dict:
    return {
        "authenticated": True,
        "user": {
            "id": user.user_id,
            "email": user.email,
            "nome": user.display_name,
            "papel": user.role,
            "fornecedor_id": user.fornecedor_id,
        },
    }


def find_user(email: str, password: str, raw_users: object) -> AuthUser | None:
    for user in parse_users(raw_users):
        if user["email"] == email and secrets.compare_digest(user["password"], password):
            return AuthUser(
                user_id=user["email"],
                email=user["email"],
                display_name=user["display_name"],
                role=user["role"],
                fornecedor_id=user["fornecedor_id"],
            )
    return None


def parse_users(raw_users: object) -> List[dict]:
    """``email:senha:papel[:nome[:fornecedor_id]]`` entries separated by comma, semicolon or newline."""
    if not raw_users:
        return []
    if isinstance(raw_users, str):
        entries: Iterable[str] = [
            chunk.strip() for chunk in raw_users.replace("\n", ",").replace(";", ",").split(",") if chunk.strip()
        ]
    elif isinstance(raw_users, (list, tuple, set)):
        entries = [str(item).strip() for item in raw_users if str(item).strip()]
    else:
        return []

    users = []
    for entry in entries:
        parts = [part.strip() for part in entry.split(":")]
        if len(parts) < 3 or not parts[0] or not parts[1]:
            continue
        role = parts[2].lower()
        if role not in VALID_ROLES:
            continue
        email = parts[0].lower()
        users.append(
            {
                "email": email,
                "password": parts[1],
                "role": role,
                "display_name": parts[3] if len(parts) > 3 and parts[3] else email.split("@")[0],
                "fornecedor_id": parts[4] if len(parts) > 4 and parts[4] else None,
            }
        )
    return users
