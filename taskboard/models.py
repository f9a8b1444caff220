"""
Database models for the taskboard service.

Defines the SQLAlchemy ORM models behind the REST API: :class:`User` holds
credentials and role, :class:`Task` holds the short text tasks users edit
together.  Each task records who edited it last so clients can show it.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any

from werkzeug.security import check_password_hash, generate_password_hash

from . import db


class UserRole(str, Enum):
    """Enumeration of user roles."""

    USER = "USER"
    ADMIN = "ADMIN"
    SUPER_ADMIN = "SUPER_ADMIN"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _to_utc_iso(value: datetime | None) -> str | None:
    """
    Convert datetime to an ISO-8601 UTC string.

    SQLite commonly returns naive datetime values even when timezone-aware
    columns are declared. For API contracts, always normalize to UTC.
    """
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    else:
        value = value.astimezone(timezone.utc)
    return value.isoformat()


class User(db.Model):
    """
    Registered user.

    Passwords are never stored in plain text; only a Werkzeug hash is
    persisted and ``to_dict`` omits it so the output can be returned
    directly in API responses.

    Attributes:
        id: Auto-incrementing integer primary key.
        name: Display name shown next to locks and edits.
        email: Unique login identifier.
        password_hash: Werkzeug-generated hash of the password.
        role: One of :class:`UserRole`.
        created_at: Timestamp of account creation (UTC).
        updated_at: Timestamp of the last profile change (UTC).
    """

    __tablename__ = "users"

    __table_args__ = (
        db.CheckConstraint("length(name) <= 80", name="ck_users_name_len"),
        db.CheckConstraint("length(email) <= 120", name="ck_users_email_len"),
    )

    id: int = db.Column(db.Integer, primary_key=True)
    name: str = db.Column(db.String(80), nullable=False)
    # Indexed because every login looks up a user by email
    email: str = db.Column(db.String(120), unique=True, nullable=False, index=True)
    password_hash: str = db.Column(db.String(256), nullable=False)
    role: str = db.Column(db.String(20), nullable=False, default=UserRole.USER.value)
    created_at: datetime = db.Column(
        db.DateTime(timezone=True), nullable=False, default=_utcnow
    )
    updated_at: datetime = db.Column(
        db.DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow
    )

    def set_password(self, password: str) -> None:
        """Hash and store a plain-text password (PBKDF2-SHA256, random salt)."""
        self.password_hash = generate_password_hash(password)

    def check_password(self, password: str) -> bool:
        return check_password_hash(self.password_hash, password)

    def summary(self) -> dict[str, Any]:
        """Short identity block embedded in task records."""
        return {"id": self.id, "name": self.name, "email": self.email}

    def to_dict(self) -> dict[str, Any]:
        """Return a user-safe dictionary representation (no password hash)."""
        return {
            "id": self.id,
            "name": self.name,
            "email": self.email,
            "role": self.role,
            "created_at": _to_utc_iso(self.created_at),
            "updated_at": _to_utc_iso(self.updated_at),
        }

    def __repr__(self) -> str:
        return f"<User {self.id}: {self.email}>"


class Task(db.Model):
    """
    Task model representing a short text item.

    Attributes:
        id: Unique identifier for the task.
        title: Short title describing the task.
        body: Free-form text of the task.
        last_edited_by: Id of the user who created or last updated the
            task; ``None`` once that user is gone.
        editor: Relationship to that user.
        created_at: Timestamp when the task was created.
        updated_at: Timestamp when the task was last modified.
    """

    __tablename__ = "tasks"

    id: int = db.Column(db.Integer, primary_key=True)
    title: str = db.Column(db.String(200), nullable=False)
    body: str = db.Column(db.Text, nullable=False)
    last_edited_by: int | None = db.Column(
        db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    created_at: datetime = db.Column(
        db.DateTime(timezone=True), nullable=False, default=_utcnow
    )
    updated_at: datetime = db.Column(
        db.DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow
    )

    editor = db.relationship("User", lazy="joined")

    def to_dict(self) -> dict[str, Any]:
        """
        Convert the task to a dictionary representation.

        Returns:
            Dictionary containing all task fields plus an ``editor``
            summary (or ``None``).
        """
        return {
            "id": self.id,
            "title": self.title,
            "body": self.body,
            "last_edited_by": self.last_edited_by,
            "editor": self.editor.summary() if self.editor else None,
            "created_at": _to_utc_iso(self.created_at),
            "updated_at": _to_utc_iso(self.updated_at),
        }

    def __repr__(self) -> str:
        """Return string representation of the task."""
        return f"<Task {self.id}: {self.title}>"
