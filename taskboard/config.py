"""
Configuration for the taskboard service.

Follows Flask's recommended pattern: a shared ``Config`` base class holds
defaults, and environment-specific subclasses (``DevelopmentConfig``,
``TestingConfig``, ``ProductionConfig``) override only what differs.  The
``get_config`` factory resolves the correct class at runtime based on an
environment variable or an explicit argument.

Settings fall into three groups:
    - Persistence (SQLAlchemy database URI).
    - Authentication (RS256 key pair, access/refresh expiry, clock skew).
    - Real-time channel (Socket.IO async mode, ping interval/timeout, CORS).
"""

from __future__ import annotations

import os
from pathlib import Path

BASE_DIR = Path(__file__).resolve().parent.parent


def _load_key(raw_env_var: str, path_env_var: str) -> str:
    """
    Load a PEM key from raw environment variable or file-path variable.

    The raw PEM variable takes precedence over the path variable so
    orchestrators can inject secrets directly without mounting files.
    """
    raw_key = os.environ.get(raw_env_var, "").strip()
    if raw_key:
        return raw_key

    key_path = os.environ.get(path_env_var, "").strip()
    if key_path:
        try:
            return Path(key_path).read_text(encoding="utf-8")
        except OSError as exc:
            raise RuntimeError(
                f"Unable to read JWT key file at '{key_path}' from {path_env_var}."
            ) from exc

    raise RuntimeError(
        f"Missing JWT key configuration: set {raw_env_var} or {path_env_var}."
    )


def _has_key_source(raw_env_var: str, path_env_var: str) -> bool:
    """Return True when at least one key source variable is configured."""
    return bool(
        os.environ.get(raw_env_var, "").strip()
        or os.environ.get(path_env_var, "").strip()
    )


def load_auth_keys(*, testing: bool) -> tuple[str, str]:
    """
    Resolve the JWT private/public keys for the selected environment.

    In testing mode, TEST_* vars are used when configured; otherwise it falls
    back to the standard JWT_* variables.
    """
    if testing and (
        _has_key_source("TEST_JWT_PRIVATE_KEY", "TEST_JWT_PRIVATE_KEY_PATH")
        or _has_key_source("TEST_JWT_PUBLIC_KEY", "TEST_JWT_PUBLIC_KEY_PATH")
    ):
        return (
            _load_key("TEST_JWT_PRIVATE_KEY", "TEST_JWT_PRIVATE_KEY_PATH"),
            _load_key("TEST_JWT_PUBLIC_KEY", "TEST_JWT_PUBLIC_KEY_PATH"),
        )

    return (
        _load_key("JWT_PRIVATE_KEY", "JWT_PRIVATE_KEY_PATH"),
        _load_key("JWT_PUBLIC_KEY", "JWT_PUBLIC_KEY_PATH"),
    )


def _split_origins(raw: str) -> list[str]:
    """Parse a comma separated origin list, dropping blank entries."""
    return [origin.strip() for origin in raw.split(",") if origin.strip()]


class Config:
    """
    Base configuration shared by all environments.

    Subclasses should override only the values that need to change.
    Every setting can also be controlled via an environment variable so
    that container orchestrators can inject secrets at deploy time.
    """

    SECRET_KEY: str = os.environ.get(
        "SECRET_KEY", "taskboard-dev-secret-change-in-production"
    )
    SQLALCHEMY_TRACK_MODIFICATIONS: bool = False
    SQLALCHEMY_DATABASE_URI: str = os.environ.get(
        "DATABASE_URL",
        f"sqlite:///{BASE_DIR / 'instance' / 'taskboard.db'}",
    )

    # Access tokens are short lived; refresh tokens mint new access tokens
    JWT_EXPIRY_HOURS: int = int(os.environ.get("JWT_EXPIRY_HOURS", "24"))
    JWT_REFRESH_EXPIRY_HOURS: int = int(
        os.environ.get("JWT_REFRESH_EXPIRY_HOURS", "720")
    )
    # Seconds of tolerance for clock differences between issuer and verifier
    JWT_CLOCK_SKEW_SECONDS: int = int(os.environ.get("JWT_CLOCK_SKEW_SECONDS", "30"))
    REFRESH_COOKIE_NAME: str = "refreshToken"
    REFRESH_COOKIE_SECURE: bool = os.environ.get("REFRESH_COOKIE_SECURE", "false").lower() == "true"

    # None lets Flask-SocketIO pick the best installed server (eventlet,
    # gevent, threading).
    SOCKETIO_ASYNC_MODE: str | None = os.environ.get("SOCKETIO_ASYNC_MODE") or None
    # A holder that vanishes without a clean close keeps its locks until the
    # transport notices, i.e. at most ping_interval + ping_timeout seconds.
    SOCKETIO_PING_INTERVAL: int = int(os.environ.get("SOCKETIO_PING_INTERVAL", "25"))
    SOCKETIO_PING_TIMEOUT: int = int(os.environ.get("SOCKETIO_PING_TIMEOUT", "20"))
    CORS_ALLOWED_ORIGINS: list[str] = _split_origins(
        os.environ.get(
            "CORS_ALLOWED_ORIGINS", "http://localhost:5173,http://localhost:3000"
        )
    )


class DevelopmentConfig(Config):
    """
    Configuration for local development.

    Enables debug mode for auto-reload and rich tracebacks while keeping
    ``TESTING`` off so that Flask error handlers behave normally.
    """

    DEBUG: bool = True
    TESTING: bool = False


class TestingConfig(Config):
    """
    Configuration for the automated test suite.

    Uses an in-memory SQLite database by default so test runs never touch
    development data, and the ``threading`` Socket.IO mode so the test client
    runs handlers synchronously without eventlet or gevent installed.
    """

    DEBUG: bool = True
    TESTING: bool = True
    SQLALCHEMY_DATABASE_URI: str = os.environ.get(
        "TEST_DATABASE_URL", "sqlite:///:memory:"
    )
    SQLALCHEMY_ENGINE_OPTIONS: dict = {"pool_pre_ping": True}
    JWT_EXPIRY_HOURS: int = int(os.environ.get("TEST_JWT_EXPIRY_HOURS", "1"))
    SOCKETIO_ASYNC_MODE: str | None = "threading"


class ProductionConfig(Config):
    """
    Configuration for production deployments.

    Disables debug mode and testing flags.  All secrets **must** be
    supplied through environment variables; the hard-coded defaults in
    the base ``Config`` class are insecure on purpose so they are never
    accidentally used in production.
    """

    DEBUG: bool = False
    TESTING: bool = False
    REFRESH_COOKIE_SECURE: bool = True


config = {
    "development": DevelopmentConfig,
    "testing": TestingConfig,
    "production": ProductionConfig,
    "default": DevelopmentConfig,
}


def get_config(env: str | None = None) -> type[Config]:
    """
    Resolve a configuration class by environment name.

    Args:
        env: One of ``"development"``, ``"testing"``, or
            ``"production"``.  When ``None``, the ``FLASK_ENV``
            environment variable is consulted, falling back to
            ``"development"`` if unset.

    Returns:
        The configuration class (not an instance).  Falls back to
        ``DevelopmentConfig`` for unrecognised names.
    """
    if env is None:
        env = os.environ.get("FLASK_ENV", "development")
    return config.get(env, config["default"])
