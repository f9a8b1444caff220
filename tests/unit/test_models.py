"""
Unit tests for User and Task model logic.
"""

from datetime import datetime

import pytest

from taskboard.models import Task, User, UserRole


pytestmark = pytest.mark.unit


def test_user_defaults_and_to_dict(db_session):
    user = User(name="Alice", email="alice@example.com")
    user.set_password("secret123")
    db_session.session.add(user)
    db_session.session.commit()

    data = user.to_dict()

    assert data["role"] == UserRole.USER.value
    assert data["email"] == "alice@example.com"
    assert "password_hash" not in data
    assert datetime.fromisoformat(data["created_at"]).tzinfo is not None


def test_user_password_is_hashed_and_checked(db_session):
    user = User(name="Alice", email="alice@example.com")
    user.set_password("secret123")

    assert user.password_hash != "secret123"
    assert user.check_password("secret123")
    assert not user.check_password("wrong")


def test_task_to_dict_includes_editor_summary(db_session, sample_user):
    task = Task(title="Edited", body="Body", last_edited_by=sample_user.id)
    db_session.session.add(task)
    db_session.session.commit()

    data = task.to_dict()

    assert data["title"] == "Edited"
    assert data["body"] == "Body"
    assert data["last_edited_by"] == sample_user.id
    assert data["editor"] == {
        "id": sample_user.id,
        "name": sample_user.name,
        "email": sample_user.email,
    }
    assert data["created_at"].endswith("+00:00")
    assert data["updated_at"].endswith("+00:00")


def test_task_without_editor_serializes_none(db_session):
    task = Task(title="Orphan", body="Nobody edited me")
    db_session.session.add(task)
    db_session.session.commit()

    data = task.to_dict()

    assert data["last_edited_by"] is None
    assert data["editor"] is None


def test_task_repr(db_session):
    task = Task(title="Repr", body="x")
    db_session.session.add(task)
    db_session.session.commit()

    assert repr(task) == f"<Task {task.id}: Repr>"
