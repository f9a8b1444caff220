"""
Request authentication helpers.

Provides decorators that protect Flask endpoints with Bearer JWTs:
``require_auth`` admits any authenticated user, ``require_roles`` also
checks the role claim.  On success the caller's identity is stored on
``flask.g`` as ``user_id``, ``user_name`` and ``role``.
"""

from __future__ import annotations

from collections.abc import Callable
from functools import wraps
from typing import Any

import jwt
from flask import Response, current_app, g, jsonify, request

from .jwt import ACCESS_TOKEN, decode_token


def extract_bearer_token() -> str | None:
    """Return the token from ``Authorization: Bearer <token>``, if any."""
    auth_header = request.headers.get("Authorization", "")
    if not auth_header.startswith("Bearer "):
        return None
    token = auth_header[7:].strip()
    return token or None


def verify_token(token: str, expected_type: str = ACCESS_TOKEN) -> dict[str, Any] | None:
    """
    Decode a token with the application's public key.

    Returns:
        The payload, or ``None`` if verification fails for any reason.
    """
    try:
        return decode_token(
            token,
            current_app.config["JWT_PUBLIC_KEY"],
            expected_type=expected_type,
            leeway=int(current_app.config.get("JWT_CLOCK_SKEW_SECONDS", 30)),
        )
    except jwt.InvalidTokenError:
        return None


def require_auth(view_func: Callable[..., tuple[Response, int] | Response]):
    """
    Decorator that enforces Bearer-token authentication on API endpoints.

    Short-circuits with a ``401`` JSON error before the wrapped view runs
    when the header is missing or the token does not verify.
    """

    @wraps(view_func)
    def wrapper(*args, **kwargs):
        token = extract_bearer_token()
        if token is None:
            return jsonify({"error": "Missing or invalid Authorization header"}), 401

        payload = verify_token(token)
        if payload is None:
            return jsonify({"error": "Invalid or expired token"}), 401

        g.user_id = payload["user_id"]
        g.user_name = payload["name"]
        g.role = payload["role"]
        return view_func(*args, **kwargs)

    return wrapper


def require_roles(*roles: str):
    """Like ``require_auth`` but also answers ``403`` for other roles."""

    def decorator(view_func):
        @wraps(view_func)
        def guarded(*args, **kwargs):
            if roles and g.role not in roles:
                return jsonify({"error": "Forbidden"}), 403
            return view_func(*args, **kwargs)

        return require_auth(guarded)

    return decorator
