"""
Entry point for the taskboard service.

``python wsgi.py`` serves HTTP and Socket.IO through ``socketio.run``, which
picks eventlet or gevent when installed and falls back to the Werkzeug
development server otherwise.
"""

import os

from taskboard import create_app, socketio

app = create_app(os.getenv("FLASK_ENV", "production"))


if __name__ == "__main__":
    try:
        socketio.run(
            app,
            host=os.getenv("HOST", "0.0.0.0"),
            port=int(os.getenv("PORT", "5000")),
            allow_unsafe_werkzeug=bool(app.config.get("DEBUG")),
        )
    finally:
        # Locks are advisory and in-memory only; a restart releases them all.
        app.extensions["task_locks"].shutdown()
