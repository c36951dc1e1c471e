"""
Shared pytest fixtures for the TaskQuest test suite.

Provides the Flask application, test client, database session, user and
task factories, and bearer headers.  Tests follow the Arrange-Act-Assert
layout and get a pristine database for every test function.

Key Concepts Demonstrated:
- Session-scoped app vs function-scoped database for speed and isolation
- Factory fixtures (user_factory, task_factory) backed by Faker
- In-process RSA test keys injected through TEST_* environment variables
"""

from __future__ import annotations

import os
from collections.abc import Callable
from datetime import datetime

import pytest
from faker import Faker

from tests.helpers import (
    DEFAULT_PASSWORD,
    TEST_PRIVATE_KEY,
    TEST_PUBLIC_KEY,
    auth_headers,
    create_test_token,
)

# Must be set before the application is created
os.environ["FLASK_ENV"] = "testing"
os.environ["TEST_JWT_PRIVATE_KEY"] = TEST_PRIVATE_KEY
os.environ["TEST_JWT_PUBLIC_KEY"] = TEST_PUBLIC_KEY

from taskquest.app import create_app
from taskquest.extensions import db
from taskquest.models import Task, TaskPriority, TaskStatus, User

fake = Faker()


# -----------------------------------------------------------------------------
# Application Fixtures
# -----------------------------------------------------------------------------


@pytest.fixture(scope="session")
def app():
    """Create the testing application once for the whole session."""
    application = create_app("testing")
    yield application


@pytest.fixture(scope="function")
def client(app):
    """Provide a fresh Flask test client for each test."""
    with app.test_client() as test_client:
        yield test_client


@pytest.fixture(scope="function")
def db_session(app):
    """
    Provide a clean database for each test function.

    Tables are rebuilt before the test and dropped afterwards so no rows
    leak between tests, even after an interrupted run.
    """
    with app.app_context():
        db.drop_all()
        db.create_all()
        yield db
        db.session.rollback()
        db.drop_all()


# -----------------------------------------------------------------------------
# Test Data Factory Fixtures
# -----------------------------------------------------------------------------


@pytest.fixture
def user_factory(db_session) -> Callable[..., User]:
    """
    Factory fixture that creates persisted users.

    Defaults are unique Faker values so several users can be created in
    one test; ``level`` and ``xp`` can be preset for progression and
    leaderboard scenarios.
    """

    def _create_user(
        *,
        username: str | None = None,
        email: str | None = None,
        password: str = DEFAULT_PASSWORD,
        level: int = 1,
        xp: int = 0,
    ) -> User:
        user = User(
            username=username or fake.unique.user_name(),
            email=(email or fake.unique.email()).lower(),
            level=level,
            xp=xp,
        )
        user.set_password(password)
        db_session.session.add(user)
        db_session.session.commit()
        return user

    return _create_user


@pytest.fixture
def task_factory(db_session) -> Callable[..., Task]:
    """Factory fixture that creates persisted tasks for a given owner."""

    def _create_task(
        owner: User,
        *,
        title: str | None = None,
        description: str | None = None,
        category: str | None = None,
        status: str = TaskStatus.OPEN.value,
        priority: str = TaskPriority.MEDIUM.value,
        due_date: datetime | None = None,
        xp_reward: int = 10,
        completion_xp: int = 30,
    ) -> Task:
        task = Task(
            user_id=owner.id,
            title=title or fake.sentence(nb_words=4),
            description=description or fake.paragraph(),
            category=category,
            status=status,
            priority=priority,
            due_date=due_date,
            xp_reward=xp_reward,
            completion_xp=completion_xp,
        )
        db_session.session.add(task)
        db_session.session.commit()
        return task

    return _create_task


@pytest.fixture
def user(user_factory) -> User:
    """The signed-in user for most API tests."""
    return user_factory(username="quester", email="quester@example.com")


@pytest.fixture
def other_user(user_factory) -> User:
    """A second user for ownership and isolation tests."""
    return user_factory(username="rival", email="rival@example.com")


@pytest.fixture
def headers_for() -> Callable[[User], dict[str, str]]:
    """Build bearer headers for any persisted user."""

    def _headers(account: User) -> dict[str, str]:
        return auth_headers(create_test_token(user_id=account.id, username=account.username))

    return _headers


@pytest.fixture
def api_headers(user, headers_for) -> dict[str, str]:
    return headers_for(user)


@pytest.fixture
def other_user_headers(other_user, headers_for) -> dict[str, str]:
    return headers_for(other_user)


@pytest.fixture
def sample_task(task_factory, user) -> Task:
    """A single open task owned by ``user`` with known values."""
    return task_factory(
        user,
        title="Morning Meditation",
        description="10 minutes of mindfulness meditation",
        category="Morning Routine",
        priority=TaskPriority.HIGH.value,
        xp_reward=10,
        completion_xp=30,
    )
