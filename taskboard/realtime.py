"""
Socket.IO event handlers for live edit locks.

Connects the transport (Flask-SocketIO) to the :class:`LockCoordinator`.
Every handler validates its payload, turns it into a coordinator call and
returns; all decisions about who gets told what live in the coordinator.

Inbound events:
    connect                              - send the lock snapshot
    lock-task    {taskId, userId, userName}
    unlock-task  {taskId, userId}
    task-created {task...}               - fan out as task-added
    task-updated {task...}               - fan out as task-changed
    task-deleted taskId | {taskId}       - fan out as task-removed, drop lock
    disconnect                           - release the connection's locks

The connection id used for lock ownership is the Socket.IO session id
(``request.sid``).
"""

from __future__ import annotations

import logging
from typing import Any

from flask import current_app, request
from flask_socketio import SocketIO

from . import socketio
from .locks import LockCoordinator, Notification

logger = logging.getLogger(__name__)


class SocketIOPublisher:
    """
    Deliver coordinator notifications through Flask-SocketIO.

    Broadcasts go to every client of the namespace, targeted notifications
    to a single session.  A failed delivery is logged and dropped: the
    registry change already happened and the affected client resyncs from
    its next snapshot.
    """

    def __init__(self, server: SocketIO, namespace: str = "/") -> None:
        self._server = server
        self._namespace = namespace

    def __call__(self, notification: Notification) -> None:
        try:
            self._server.emit(
                notification.event,
                notification.payload,
                to=notification.to,
                namespace=self._namespace,
            )
        except Exception:
            logger.exception(
                "Failed to emit %s to %s",
                notification.event,
                notification.to or "all clients",
            )


def get_lock_coordinator() -> LockCoordinator:
    """Return the coordinator owned by the current application."""
    return current_app.extensions["task_locks"]


# -----------------------------------------------------------------------------
# Payload helpers
# -----------------------------------------------------------------------------

def _as_identifier(value: Any) -> str | None:
    """Normalise an opaque id to ``str``; ints and non-blank strings only."""
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return str(value)
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None


def _parse_fields(
    event: str, data: Any, id_fields: list[str], text_fields: list[str] | None = None
) -> dict[str, str] | None:
    """
    Pull required fields out of an inbound payload.

    Returns:
        Mapping of field name to normalised value, or ``None`` (after a
        warning) when the payload is unusable.
    """
    if not isinstance(data, dict):
        logger.warning("Ignoring %s: payload must be an object", event)
        return None

    parsed: dict[str, str] = {}
    for field in id_fields:
        value = _as_identifier(data.get(field))
        if value is None:
            logger.warning("Ignoring %s: '%s' is required", event, field)
            return None
        parsed[field] = value

    for field in text_fields or []:
        value = data.get(field)
        if not isinstance(value, str) or not value.strip():
            logger.warning("Ignoring %s: '%s' is required", event, field)
            return None
        parsed[field] = value.strip()

    return parsed


# -----------------------------------------------------------------------------
# Connection lifecycle
# -----------------------------------------------------------------------------

@socketio.on("connect")
def handle_connect(auth=None):
    logger.info("New client connected: %s", request.sid)
    get_lock_coordinator().connect(request.sid)


@socketio.on("disconnect")
def handle_disconnect(reason=None):
    logger.info("Client disconnected: %s (%s)", request.sid, reason or "unknown reason")
    get_lock_coordinator().disconnect(request.sid)


# -----------------------------------------------------------------------------
# Lock requests
# -----------------------------------------------------------------------------

@socketio.on("lock-task")
def handle_lock_task(data=None):
    fields = _parse_fields("lock-task", data, ["taskId", "userId"], ["userName"])
    if fields is None:
        return
    get_lock_coordinator().acquire(
        fields["taskId"], fields["userId"], fields["userName"], request.sid
    )


@socketio.on("unlock-task")
def handle_unlock_task(data=None):
    fields = _parse_fields("unlock-task", data, ["taskId", "userId"])
    if fields is None:
        return
    get_lock_coordinator().release(fields["taskId"], fields["userId"])


# -----------------------------------------------------------------------------
# Task mutation fan-out
# -----------------------------------------------------------------------------

@socketio.on("task-created")
def handle_task_created(task=None):
    if not isinstance(task, dict):
        logger.warning("Ignoring task-created: payload must be a task object")
        return
    get_lock_coordinator().task_created(task)
    logger.info("Task %s created", task.get("id"))


@socketio.on("task-updated")
def handle_task_updated(task=None):
    if not isinstance(task, dict):
        logger.warning("Ignoring task-updated: payload must be a task object")
        return
    get_lock_coordinator().task_updated(task)
    logger.info("Task %s updated", task.get("id"))


@socketio.on("task-deleted")
def handle_task_deleted(data=None):
    # Accepts the bare id (what the browser client sends) or {"taskId": ...}
    raw = data.get("taskId") if isinstance(data, dict) else data
    task_id = _as_identifier(raw)
    if task_id is None:
        logger.warning("Ignoring task-deleted: 'taskId' is required")
        return
    get_lock_coordinator().task_deleted(task_id)
