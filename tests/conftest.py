"""
Shared pytest fixtures for the taskboard test suite.

Provides the Flask application, HTTP and Socket.IO test clients, a clean
database per test, JWT headers, data factories and the application's lock
coordinator.

Key Concepts Demonstrated:
- Session-scoped app vs function-scoped clients for speed and isolation
- Factory fixtures (user_factory, task_factory) backed by Faker
- Socket.IO test clients that are disconnected during teardown so no lock
  leaks into the next test
- In-process RSA keys injected through the TEST_JWT_* environment variables
"""

from __future__ import annotations

import os
from collections.abc import Callable

import pytest
from faker import Faker

from tests.helpers import TEST_PRIVATE_KEY, TEST_PUBLIC_KEY, auth_headers, create_test_token

# Set testing environment before creating the app
os.environ["FLASK_ENV"] = "testing"
os.environ["TEST_JWT_PRIVATE_KEY"] = TEST_PRIVATE_KEY
os.environ["TEST_JWT_PUBLIC_KEY"] = TEST_PUBLIC_KEY

from taskboard import create_app, db, socketio
from taskboard.locks import LockCoordinator
from taskboard.models import Task, User, UserRole

fake = Faker()


# -----------------------------------------------------------------------------
# Application Fixtures
# -----------------------------------------------------------------------------

@pytest.fixture(scope="session")
def app():
    """Create the application once for the whole test session."""
    application = create_app("testing")
    yield application


@pytest.fixture(scope="function")
def client(app):
    """Flask test client scoped to a single test."""
    with app.test_client() as test_client:
        yield test_client


@pytest.fixture(scope="function")
def db_session(app):
    """
    Create a fresh database for each test.

    Creates all tables before the test and drops them afterwards so tests
    never see each other's rows.
    """
    with app.app_context():
        db.create_all()
        yield db
        db.session.rollback()
        db.drop_all()


# -----------------------------------------------------------------------------
# Real-time Fixtures
# -----------------------------------------------------------------------------

@pytest.fixture
def coordinator(app) -> LockCoordinator:
    """The application's lock coordinator, emptied after the test."""
    lock_coordinator = app.extensions["task_locks"]
    yield lock_coordinator
    lock_coordinator.shutdown()


@pytest.fixture
def socket_client_factory(app, coordinator):
    """
    Factory fixture for connected Socket.IO test clients.

    Every client is disconnected at teardown, which also exercises the
    disconnect cascade for anything a test left locked.
    """
    clients = []

    def _connect():
        socket_client = socketio.test_client(app)
        clients.append(socket_client)
        return socket_client

    yield _connect

    for socket_client in clients:
        if socket_client.is_connected():
            socket_client.disconnect()


# -----------------------------------------------------------------------------
# Test Data Factory Fixtures
# -----------------------------------------------------------------------------

@pytest.fixture
def user_factory(db_session) -> Callable[..., User]:
    """Factory that creates and persists users."""

    def _create_user(
        name: str | None = None,
        email: str | None = None,
        password: str = "StrongPass123!",
        role: str = UserRole.USER.value,
    ) -> User:
        user = User(
            name=name or fake.name()[:80],
            email=email or fake.unique.email(),
            role=role,
        )
        user.set_password(password)
        db_session.session.add(user)
        db_session.session.commit()
        return user

    return _create_user


@pytest.fixture
def task_factory(db_session) -> Callable[..., Task]:
    """Factory that creates and persists tasks."""

    def _create_task(
        title: str | None = None,
        body: str | None = None,
        last_edited_by: int | None = None,
    ) -> Task:
        task = Task(
            title=title or fake.sentence(nb_words=4),
            body=body or fake.paragraph(),
            last_edited_by=last_edited_by,
        )
        db_session.session.add(task)
        db_session.session.commit()
        return task

    return _create_task


@pytest.fixture
def sample_user(user_factory) -> User:
    return user_factory(name="Alice Example", email="alice@example.com")


@pytest.fixture
def sample_task(task_factory, sample_user) -> Task:
    return task_factory(
        title="Sample Task",
        body="This is a sample task for testing",
        last_edited_by=sample_user.id,
    )


# -----------------------------------------------------------------------------
# Auth Fixtures
# -----------------------------------------------------------------------------

@pytest.fixture
def token_for() -> Callable[[User], str]:
    """Build a valid access token for a persisted user."""

    def _token(user: User) -> str:
        return create_test_token(user_id=user.id, name=user.name, role=user.role)

    return _token


@pytest.fixture
def api_headers(sample_user, token_for) -> dict[str, str]:
    """Authorization + JSON headers for ``sample_user``."""
    return auth_headers(token_for(sample_user))
