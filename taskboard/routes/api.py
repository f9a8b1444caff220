"""
REST API endpoints for Task management.

Reads are public; every mutating endpoint requires a Bearer token and
records the caller as the task's last editor.

Endpoints:
    GET    /api/health          - Health check
    GET    /api/tasks           - List all tasks, most recently updated first
    GET    /api/tasks/<id>      - Get a single task by ID
    POST   /api/tasks           - Create a new task
    PUT    /api/tasks/<id>      - Update an existing task (partial)
    PATCH  /api/tasks/<id>      - Same as PUT
    DELETE /api/tasks/<id>      - Delete a task and drop its edit lock

Live fan-out (task-added / task-changed / task-removed) is not sent from
here; clients forward successful mutations over the Socket.IO channel.
"""

from __future__ import annotations

import logging
import os

from flask import Blueprint, Response, current_app, g, jsonify, request
from sqlalchemy import select

from .. import db
from ..auth import require_auth
from ..models import Task

logger = logging.getLogger(__name__)

api_bp = Blueprint("api", __name__)

TITLE_MAX_LENGTH = 200


# -----------------------------------------------------------------------------
# Helper Functions
# -----------------------------------------------------------------------------

def validate_task_data(
    data: dict, required_fields: list[str] | None = None
) -> tuple[bool, str | None]:
    """
    Validate task data from request.

    Args:
        data: Dictionary containing task data.
        required_fields: List of fields that must be present.

    Returns:
        Tuple of (is_valid, error_message).
    """
    if required_fields:
        for field in required_fields:
            value = data.get(field)
            if not isinstance(value, str) or not value.strip():
                return False, f"'{field}' is required"

    for field in ("title", "body"):
        if field in data:
            value = data[field]
            if not isinstance(value, str) or not value.strip():
                return False, f"'{field}' must be a non-empty string"

    if "title" in data and len(data["title"]) > TITLE_MAX_LENGTH:
        return False, f"Title must be {TITLE_MAX_LENGTH} characters or less"

    return True, None


# -----------------------------------------------------------------------------
# API Endpoints
# -----------------------------------------------------------------------------

@api_bp.route("/health", methods=["GET"])
def health_check() -> tuple[Response, int]:
    """Health check endpoint for deployment verification."""
    return jsonify({
        "status": "healthy",
        "environment": os.getenv("ENVIRONMENT", "unknown"),
        "version": os.getenv("APP_VERSION", "unknown")
    }), 200


@api_bp.route("/tasks", methods=["GET"])
def get_tasks() -> tuple[Response, int]:
    """
    List all tasks, most recently updated first.

    Returns:
        JSON response with list of tasks and 200 status code.
    """
    logger.info("GET /api/tasks - Fetching all tasks")

    stmt = select(Task).order_by(Task.updated_at.desc(), Task.id.desc())
    tasks = db.session.scalars(stmt).unique().all()
    logger.info("Found %d tasks", len(tasks))

    return jsonify({
        "tasks": [task.to_dict() for task in tasks],
        "count": len(tasks)
    }), 200


@api_bp.route("/tasks/<int:task_id>", methods=["GET"])
def get_task(task_id: int) -> tuple[Response, int]:
    """
    Get a single task by ID.

    Returns:
        JSON response with task data and 200 status code,
        or error message and 404 if not found.
    """
    logger.info("GET /api/tasks/%s - Fetching task", task_id)

    task = db.session.get(Task, task_id)
    if not task:
        logger.warning("Task %s not found", task_id)
        return jsonify({"error": "Task not found"}), 404

    return jsonify(task.to_dict()), 200


@api_bp.route("/tasks", methods=["POST"])
@require_auth
def create_task() -> tuple[Response, int]:
    """
    Create a new task.

    Request Body (JSON):
        title: Task title (required, at most 200 characters)
        body: Task text (required)

    Returns:
        JSON response with created task and 201 status code,
        or error message and 400 if validation fails.
    """
    logger.info("POST /api/tasks - Creating new task")

    data = request.get_json(silent=True)
    if not isinstance(data, dict) or not data:
        return jsonify({"error": "Request body must be JSON"}), 400

    is_valid, error = validate_task_data(data, required_fields=["title", "body"])
    if not is_valid:
        logger.warning("Validation failed: %s", error)
        return jsonify({"error": error}), 400

    task = Task(
        title=data["title"].strip(),
        body=data["body"],
        last_edited_by=g.user_id,
    )

    db.session.add(task)
    db.session.commit()

    logger.info("Created task with ID: %s", task.id)
    return jsonify(task.to_dict()), 201


@api_bp.route("/tasks/<int:task_id>", methods=["PUT", "PATCH"])
@require_auth
def update_task(task_id: int) -> tuple[Response, int]:
    """
    Update an existing task.

    Request Body (JSON):
        title: Task title (optional)
        body: Task text (optional)

    Returns:
        JSON response with updated task and 200 status code,
        or error message and 404/400 if not found or validation fails.
    """
    logger.info("%s /api/tasks/%s - Updating task", request.method, task_id)

    task = db.session.get(Task, task_id)
    if not task:
        logger.warning("Task %s not found", task_id)
        return jsonify({"error": "Task not found"}), 404

    data = request.get_json(silent=True)
    if not isinstance(data, dict) or not data:
        return jsonify({"error": "Request body must be JSON"}), 400

    is_valid, error = validate_task_data(data)
    if not is_valid:
        logger.warning("Validation failed: %s", error)
        return jsonify({"error": error}), 400

    if "title" in data:
        task.title = data["title"].strip()
    if "body" in data:
        task.body = data["body"]
    task.last_edited_by = g.user_id

    db.session.commit()

    logger.info("Updated task %s", task_id)
    return jsonify(task.to_dict()), 200


@api_bp.route("/tasks/<int:task_id>", methods=["DELETE"])
@require_auth
def delete_task(task_id: int) -> tuple[Response, int]:
    """
    Delete a task.

    Any edit lock on the task is released as part of the deletion, even if
    the client never forwards ``task-deleted`` over the socket channel.

    Returns:
        JSON response with the deleted task and 200 status code,
        or error message and 404 if not found.
    """
    logger.info("DELETE /api/tasks/%s - Deleting task", task_id)

    task = db.session.get(Task, task_id)
    if not task:
        logger.warning("Task %s not found", task_id)
        return jsonify({"error": "Task not found"}), 404

    deleted = task.to_dict()
    db.session.delete(task)
    db.session.commit()

    current_app.extensions["task_locks"].release_task(str(task_id))

    logger.info("Deleted task %s", task_id)
    return jsonify({"message": "Task deleted successfully", "task": deleted}), 200


# -----------------------------------------------------------------------------
# Error Handlers
# -----------------------------------------------------------------------------

@api_bp.errorhandler(400)
def bad_request(error: Exception) -> tuple[Response, int]:
    """Handle 400 Bad Request errors."""
    return jsonify({"error": "Bad request"}), 400


@api_bp.errorhandler(404)
def not_found(error: Exception) -> tuple[Response, int]:
    """Handle 404 Not Found errors."""
    return jsonify({"error": "Resource not found"}), 404


@api_bp.errorhandler(405)
def method_not_allowed(error: Exception) -> tuple[Response, int]:
    """Handle 405 Method Not Allowed errors."""
    return jsonify({"error": "Method not allowed"}), 405


@api_bp.errorhandler(500)
def internal_error(error: Exception) -> tuple[Response, int]:
    """Handle 500 Internal Server errors."""
    logger.error("Internal server error: %s", error)
    return jsonify({"error": "Internal server error"}), 500
