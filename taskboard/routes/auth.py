"""
Authentication API endpoints.

Endpoints:
    POST /api/auth/register       -- Create an account and receive tokens.
    POST /api/auth/login          -- Authenticate and receive tokens.
    POST /api/auth/refresh-token  -- Exchange a refresh token for a new
                                     access token.
    POST /api/auth/logout         -- Clear the refresh-token cookie.

Both register and login answer with an access token and a refresh token in
the body and also set the refresh token as an HttpOnly cookie, so browser
clients never have to keep it in script-accessible storage.
"""

from __future__ import annotations

import logging
import re
from typing import Any

from flask import Blueprint, Response, current_app, jsonify, request
from sqlalchemy import select

from .. import db
from ..auth import verify_token
from ..jwt import ACCESS_TOKEN, REFRESH_TOKEN, create_token
from ..models import User, UserRole

logger = logging.getLogger(__name__)

auth_bp = Blueprint("auth_api", __name__)

EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
PASSWORD_MIN_LENGTH = 6


# =====================================================================
# Helper Functions
# =====================================================================


def _json_error(message: str, status_code: int) -> tuple[Response, int]:
    """Build a ``{"error": ...}`` response with the given status."""
    return jsonify({"error": message}), status_code


def _validate_required_fields(
    data: dict[str, Any], required_fields: list[str]
) -> str | None:
    """
    Check that all *required_fields* are present and non-blank in *data*.

    Returns:
        An error message for the first missing or blank field, or ``None``.
    """
    for field in required_fields:
        value = data.get(field)
        if not isinstance(value, str) or not value.strip():
            return f"'{field}' is required"
    return None


def validate_account_fields(
    name: str | None = None, email: str | None = None, password: str | None = None
) -> str | None:
    """
    Check the account fields that were supplied; ``None`` means "not given".

    Expects *name* and *email* already stripped and *email* lowercased.

    Returns:
        An error message for the first invalid field, or ``None``.
    """
    if name is not None and len(name) > 80:
        return "name must be 80 characters or less"
    if email is not None:
        if len(email) > 120:
            return "email must be 120 characters or less"
        if not EMAIL_PATTERN.match(email):
            return "Invalid email format"
    if password is not None and len(password) < PASSWORD_MIN_LENGTH:
        return f"Password must be at least {PASSWORD_MIN_LENGTH} characters"
    return None


def _issue_tokens(user: User) -> tuple[str, str]:
    """Mint an access/refresh token pair for *user*."""
    private_key = current_app.config["JWT_PRIVATE_KEY"]
    access_token = create_token(
        user_id=user.id,
        name=user.name,
        role=user.role,
        private_key=private_key,
        expiry_hours=current_app.config["JWT_EXPIRY_HOURS"],
        token_type=ACCESS_TOKEN,
    )
    refresh_token = create_token(
        user_id=user.id,
        name=user.name,
        role=user.role,
        private_key=private_key,
        expiry_hours=current_app.config["JWT_REFRESH_EXPIRY_HOURS"],
        token_type=REFRESH_TOKEN,
    )
    return access_token, refresh_token


def _token_response(user: User, status_code: int) -> tuple[Response, int]:
    access_token, refresh_token = _issue_tokens(user)
    response = jsonify(
        {
            "access_token": access_token,
            "refresh_token": refresh_token,
            "user": user.to_dict(),
        }
    )
    response.set_cookie(
        current_app.config["REFRESH_COOKIE_NAME"],
        refresh_token,
        max_age=int(current_app.config["JWT_REFRESH_EXPIRY_HOURS"]) * 3600,
        httponly=True,
        secure=bool(current_app.config.get("REFRESH_COOKIE_SECURE")),
        samesite="Lax",
    )
    return response, status_code


# =====================================================================
# API Endpoints
# =====================================================================


@auth_bp.route("/register", methods=["POST"])
def register() -> tuple[Response, int]:
    """
    Register a new user account.

    Expects ``name``, ``email`` and ``password``.  New accounts always get
    the ``USER`` role.

    Returns:
        201 with tokens and the created user.
        400 if fields are missing, malformed or too long.
        409 if the email is already registered.
    """
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        return _json_error("Request body must be a JSON object", 400)
    missing = _validate_required_fields(data, ["name", "email", "password"])
    if missing:
        return _json_error(missing, 400)

    name = data["name"].strip()
    email = data["email"].strip().lower()
    password = data["password"]

    invalid = validate_account_fields(name=name, email=email, password=password)
    if invalid:
        return _json_error(invalid, 400)

    existing = db.session.scalar(select(User).where(User.email == email))
    if existing:
        return _json_error("User already exists", 409)

    user = User(name=name, email=email, role=UserRole.USER.value)
    user.set_password(password)
    db.session.add(user)
    db.session.commit()

    logger.info("Registered user %s", user.id)
    return _token_response(user, 201)


@auth_bp.route("/login", methods=["POST"])
def login() -> tuple[Response, int]:
    """
    Authenticate a user by email and password.

    The ``"Invalid email or password"`` message is deliberately vague so it
    does not reveal whether the email exists.

    Returns:
        200 with tokens and the user on success.
        400 if required fields are missing.
        401 if credentials are incorrect.
    """
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        return _json_error("Request body must be a JSON object", 400)
    missing = _validate_required_fields(data, ["email", "password"])
    if missing:
        return _json_error(missing, 400)

    email = data["email"].strip().lower()
    user = db.session.scalar(select(User).where(User.email == email))

    if not user or not user.check_password(data["password"]):
        logger.warning("Failed login for %s", email)
        return _json_error("Invalid email or password", 401)

    return _token_response(user, 200)


@auth_bp.route("/refresh-token", methods=["POST"])
def refresh_token() -> tuple[Response, int]:
    """
    Issue a new access token from a refresh token.

    The refresh token is read from the refresh cookie, or from a JSON
    ``refresh_token`` field for non-browser clients.

    Returns:
        200 with ``access_token``.
        400 if no refresh token was supplied.
        403 if the refresh token is invalid or expired.
        404 if the user no longer exists.
    """
    token = request.cookies.get(current_app.config["REFRESH_COOKIE_NAME"])
    if not token:
        data = request.get_json(silent=True)
        token = data.get("refresh_token") if isinstance(data, dict) else None
    if not isinstance(token, str) or not token.strip():
        return _json_error("Refresh token is required", 400)

    payload = verify_token(token.strip(), expected_type=REFRESH_TOKEN)
    if payload is None:
        return _json_error("Invalid refresh token", 403)

    user = db.session.get(User, payload["user_id"])
    if user is None:
        return _json_error("User does not exist", 404)

    access_token, _ = _issue_tokens(user)
    return jsonify({"access_token": access_token}), 200


@auth_bp.route("/logout", methods=["POST"])
def logout() -> tuple[Response, int]:
    """Clear the refresh-token cookie."""
    response = jsonify({"message": "Logged out successfully"})
    response.delete_cookie(current_app.config["REFRESH_COOKIE_NAME"])
    return response, 200
