"""
User API endpoints.

Endpoints:
    GET    /api/users/profile  - The authenticated user's own record
    GET    /api/users          - All users (ADMIN, SUPER_ADMIN)
    GET    /api/users/<id>     - One user (ADMIN, SUPER_ADMIN)
    POST   /api/users          - Create a user
    PATCH  /api/users/<id>     - Update a user (ADMIN, SUPER_ADMIN)
    DELETE /api/users/<id>     - Delete a user (SUPER_ADMIN)

Creating a user needs no token, but only admins may create accounts with a
role other than ``USER``, and only a ``SUPER_ADMIN`` may hand out
``SUPER_ADMIN``.
"""

from __future__ import annotations

import logging
from typing import Any

from flask import Blueprint, Response, g, jsonify, request
from sqlalchemy import select, update

from .. import db
from ..auth import extract_bearer_token, require_auth, require_roles, verify_token
from ..models import Task, User, UserRole
from .auth import _json_error, _validate_required_fields, validate_account_fields

logger = logging.getLogger(__name__)

users_bp = Blueprint("users_api", __name__)

ADMIN_ROLES = (UserRole.ADMIN.value, UserRole.SUPER_ADMIN.value)
ROLES = tuple(role.value for role in UserRole)
UPDATABLE_FIELDS = ("name", "email", "password", "role")


# -----------------------------------------------------------------------------
# Helper Functions
# -----------------------------------------------------------------------------

def _caller_role() -> str | None:
    """Role of the optional Bearer token on the request, if it verifies."""
    token = extract_bearer_token()
    if token is None:
        return None
    payload = verify_token(token)
    return payload["role"] if payload else None


def _may_assign(caller_role: str | None, role: str) -> bool:
    if role == UserRole.USER.value:
        return True
    if role == UserRole.SUPER_ADMIN.value:
        return caller_role == UserRole.SUPER_ADMIN.value
    return caller_role in ADMIN_ROLES


def _email_taken(email: str, exclude_id: int | None = None) -> bool:
    stmt = select(User.id).where(User.email == email)
    if exclude_id is not None:
        stmt = stmt.where(User.id != exclude_id)
    return db.session.scalar(stmt) is not None


def _clean_updates(data: dict[str, Any]) -> tuple[dict[str, str], str | None]:
    """
    Normalise the updatable fields present in *data*.

    Returns:
        Tuple of (changes, error_message).
    """
    changes: dict[str, str] = {}
    for field in UPDATABLE_FIELDS:
        if field not in data:
            continue
        value = data[field]
        if not isinstance(value, str) or not value.strip():
            return {}, f"'{field}' must be a non-empty string"
        changes[field] = value if field == "password" else value.strip()

    if not changes:
        return {}, "No updatable fields provided"
    if "email" in changes:
        changes["email"] = changes["email"].lower()
    if "role" in changes and changes["role"] not in ROLES:
        return {}, "Invalid role"

    error = validate_account_fields(
        name=changes.get("name"),
        email=changes.get("email"),
        password=changes.get("password"),
    )
    return changes, error


# -----------------------------------------------------------------------------
# API Endpoints
# -----------------------------------------------------------------------------

@users_bp.route("/profile", methods=["GET"])
@require_auth
def get_profile() -> tuple[Response, int]:
    user = db.session.get(User, g.user_id)
    if user is None:
        logger.warning("Profile requested for missing user %s", g.user_id)
        return jsonify({"error": "User not found"}), 404
    return jsonify(user.to_dict()), 200


@users_bp.route("", methods=["GET"])
@require_roles(*ADMIN_ROLES)
def get_users() -> tuple[Response, int]:
    users = db.session.scalars(
        select(User).order_by(User.created_at.desc(), User.id.desc())
    ).all()
    return jsonify({"users": [user.to_dict() for user in users], "count": len(users)}), 200


@users_bp.route("/<int:user_id>", methods=["GET"])
@require_roles(*ADMIN_ROLES)
def get_user(user_id: int) -> tuple[Response, int]:
    user = db.session.get(User, user_id)
    if user is None:
        logger.warning("User %s not found", user_id)
        return jsonify({"error": "User not found"}), 404
    return jsonify(user.to_dict()), 200


@users_bp.route("", methods=["POST"])
def create_user() -> tuple[Response, int]:
    """
    Create a user account without issuing tokens.

    Request Body (JSON):
        name, email, password: required
        role: optional, defaults to ``USER``

    Returns:
        201 with the created user.
        400 on invalid fields or an email that is already registered.
        403 when the caller may not assign the requested role.
    """
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        return _json_error("Request body must be a JSON object", 400)
    missing = _validate_required_fields(data, ["name", "email", "password"])
    if missing:
        return _json_error(missing, 400)

    changes, error = _clean_updates(
        {field: data[field] for field in UPDATABLE_FIELDS if field in data}
    )
    if error:
        return _json_error(error, 400)

    role = changes.get("role", UserRole.USER.value)
    if not _may_assign(_caller_role(), role):
        logger.warning("Refused to create a %s account", role)
        return _json_error("Forbidden", 403)

    if _email_taken(changes["email"]):
        return _json_error("User already exists", 400)

    user = User(name=changes["name"], email=changes["email"], role=role)
    user.set_password(changes["password"])
    db.session.add(user)
    db.session.commit()

    logger.info("Created user %s with role %s", user.id, role)
    return jsonify(user.to_dict()), 201


@users_bp.route("/<int:user_id>", methods=["PATCH"])
@require_roles(*ADMIN_ROLES)
def update_user(user_id: int) -> tuple[Response, int]:
    """
    Partially update a user.

    Any of ``name``, ``email``, ``password`` and ``role`` may be sent.

    Returns:
        200 with the updated user.
        400 on invalid fields or an email owned by another user.
        403 when granting ``SUPER_ADMIN`` without being one.
        404 if the user does not exist.
    """
    user = db.session.get(User, user_id)
    if user is None:
        logger.warning("User %s not found", user_id)
        return _json_error("User not found", 404)

    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        return _json_error("Request body must be a JSON object", 400)

    changes, error = _clean_updates(data)
    if error:
        return _json_error(error, 400)

    if "role" in changes and not _may_assign(g.role, changes["role"]):
        logger.warning("User %s may not grant %s", g.user_id, changes["role"])
        return _json_error("Forbidden", 403)
    if "email" in changes and _email_taken(changes["email"], exclude_id=user.id):
        return _json_error("User already exists", 400)

    if "password" in changes:
        user.set_password(changes.pop("password"))
    for field, value in changes.items():
        setattr(user, field, value)
    db.session.commit()

    logger.info("Updated user %s", user_id)
    return jsonify(user.to_dict()), 200


@users_bp.route("/<int:user_id>", methods=["DELETE"])
@require_roles(UserRole.SUPER_ADMIN.value)
def delete_user(user_id: int) -> tuple[Response, int]:
    """
    Delete a user.

    Tasks last edited by the user keep existing with no recorded editor.

    Returns:
        200 with the deleted user, or 404 if it does not exist.
    """
    user = db.session.get(User, user_id)
    if user is None:
        logger.warning("User %s not found", user_id)
        return _json_error("User not found", 404)

    deleted = user.to_dict()
    # SQLite ignores ON DELETE SET NULL unless foreign keys are switched on
    db.session.execute(
        update(Task)
        .where(Task.last_edited_by == user_id)
        .values(last_edited_by=None, updated_at=Task.updated_at)
    )
    db.session.delete(user)
    db.session.commit()

    logger.info("Deleted user %s", user_id)
    return jsonify({"message": "User deleted successfully", "user": deleted}), 200
