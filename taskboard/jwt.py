"""
JWT issuance and verification.

Tokens are signed with RS256 (RSA-SHA256): only this service holds the
private key, while anything that merely verifies needs the public key.

Token structure (claims):
    - ``user_id``    -- integer primary key of the authenticated user.
    - ``name``       -- display name, carried so handlers need no DB lookup.
    - ``role``       -- one of the ``UserRole`` values.
    - ``token_type`` -- ``"access"`` for API calls, ``"refresh"`` for minting
      new access tokens.  A refresh token is never accepted as an access
      token and vice versa.
    - ``iat`` / ``exp`` -- issued-at and expiration (UTC epoch seconds).
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any

import jwt

ALGORITHM = "RS256"
ACCESS_TOKEN = "access"
REFRESH_TOKEN = "refresh"
REQUIRED_TOKEN_CLAIMS = ["user_id", "name", "role", "token_type", "iat", "exp"]


def create_token(
    user_id: int,
    name: str,
    role: str,
    private_key: str,
    expiry_hours: int,
    token_type: str = ACCESS_TOKEN,
) -> str:
    """
    Create an RS256-signed JWT containing canonical auth claims.

    Args:
        user_id: Primary key of the authenticated user.  Must be positive.
        name: Display name of the user.  Must be a non-empty string.
        role: Role of the user.
        private_key: RSA private key in PEM format.
        expiry_hours: Hours from now until the token expires.
        token_type: ``"access"`` or ``"refresh"``.

    Returns:
        A compact JWS string suitable for a Bearer ``Authorization`` header.

    Raises:
        ValueError: If an identity value is invalid or *token_type* is
            unknown.
    """
    if int(user_id) <= 0:
        raise ValueError("user_id must be a positive integer")
    if not isinstance(name, str) or not name.strip():
        raise ValueError("name must be a non-empty string")
    if token_type not in (ACCESS_TOKEN, REFRESH_TOKEN):
        raise ValueError(f"Unknown token_type: {token_type}")

    now = datetime.now(timezone.utc)
    expires_at = now + timedelta(hours=int(expiry_hours))

    payload: dict[str, Any] = {
        "user_id": int(user_id),
        "name": name,
        "role": role,
        "token_type": token_type,
        # RFC 7519 NumericDate: seconds since the epoch
        "iat": int(now.timestamp()),
        "exp": int(expires_at.timestamp()),
    }
    return jwt.encode(payload, private_key, algorithm=ALGORITHM)


def decode_token(
    token: str,
    public_key: str,
    expected_type: str = ACCESS_TOKEN,
    leeway: int = 30,
) -> dict[str, Any]:
    """
    Decode and validate a token issued by :func:`create_token`.

    Verifies signature, expiry and presence of every required claim, then
    checks the identity claims and the token type.

    Raises:
        jwt.InvalidTokenError: On any verification failure.
    """
    payload = jwt.decode(
        token,
        public_key,
        algorithms=[ALGORITHM],
        options={"require": REQUIRED_TOKEN_CLAIMS},
        leeway=leeway,
    )
    if not isinstance(payload.get("user_id"), int) or payload["user_id"] <= 0:
        raise jwt.InvalidTokenError("Invalid user_id claim")
    if not isinstance(payload.get("name"), str) or not payload["name"].strip():
        raise jwt.InvalidTokenError("Invalid name claim")
    if payload.get("token_type") != expected_type:
        raise jwt.InvalidTokenError("Unexpected token type")
    return payload
