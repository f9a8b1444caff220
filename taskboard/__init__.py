"""
Taskboard application factory.

Builds the Flask application that serves the task REST API and the
Socket.IO channel used for live edit locks.  The factory wires together,
in a fixed order, configuration, extensions (SQLAlchemy, Flask-SocketIO),
the lock coordinator, blueprints and the database schema, so every
consumer (WSGI server, test harness, CLI) gets an identical application
for a given configuration name.
"""

from __future__ import annotations

import logging
from pathlib import Path

from flask import Flask
from flask_socketio import SocketIO
from flask_sqlalchemy import SQLAlchemy

from .config import get_config, load_auth_keys

# Shared extension instances, bound to a concrete app inside create_app()
db = SQLAlchemy()
socketio = SocketIO()

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


def _ensure_sqlite_db_parent_exists(database_uri: str) -> None:
    """Create parent directories for file-based SQLite URIs when missing."""
    sqlite_prefix = "sqlite:///"
    if not database_uri.startswith(sqlite_prefix):
        return

    sqlite_path = database_uri[len(sqlite_prefix) :].split("?", 1)[0]
    if sqlite_path == ":memory:":
        return

    Path(sqlite_path).parent.mkdir(parents=True, exist_ok=True)


def create_app(config_name: str | None = None) -> Flask:
    """
    Create and configure the taskboard application.

    Args:
        config_name: Configuration environment name (``"development"``,
            ``"testing"``, ``"production"``).  When ``None``, the value is
            read from ``FLASK_ENV``, defaulting to ``"development"``.

    Returns:
        A configured Flask application.  Its lock coordinator is available
        as ``app.extensions["task_locks"]``.
    """
    app = Flask(__name__, instance_relative_config=True)
    config_class = get_config(config_name)
    app.config.from_object(config_class)
    private_key, public_key = load_auth_keys(testing=bool(app.config.get("TESTING")))
    app.config["JWT_PRIVATE_KEY"] = private_key
    app.config["JWT_PUBLIC_KEY"] = public_key

    logger.info("Creating taskboard app with config: %s", config_class.__name__)

    _ensure_sqlite_db_parent_exists(app.config.get("SQLALCHEMY_DATABASE_URI", ""))

    # Import inside the factory to avoid circular imports; these modules
    # reference ``db`` and ``socketio`` from this package.  The realtime
    # module must be imported before ``socketio.init_app`` so its handlers
    # are replayed onto every server the factory creates.
    from .locks import LockCoordinator
    from .realtime import SocketIOPublisher
    from .routes.api import api_bp
    from .routes.auth import auth_bp
    from .routes.users import users_bp

    db.init_app(app)
    socketio.init_app(
        app,
        async_mode=app.config.get("SOCKETIO_ASYNC_MODE"),
        cors_allowed_origins=app.config.get("CORS_ALLOWED_ORIGINS"),
        ping_interval=app.config.get("SOCKETIO_PING_INTERVAL"),
        ping_timeout=app.config.get("SOCKETIO_PING_TIMEOUT"),
    )

    app.extensions["task_locks"] = LockCoordinator(SocketIOPublisher(socketio))

    app.register_blueprint(api_bp, url_prefix="/api")
    app.register_blueprint(auth_bp, url_prefix="/api/auth")
    app.register_blueprint(users_bp, url_prefix="/api/users")

    with app.app_context():
        db.create_all()
        logger.info("Database tables created")

    return app
