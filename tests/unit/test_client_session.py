"""
Unit tests for ``ClientSession`` state handling.

A fake API object stands in for ``TaskQuestAPI`` so each test can script
server answers, server errors, or an unreachable server.

Key Concepts Demonstrated:
- Test doubles for collaborators with a narrow interface
- Verifying local fallback on transport/5xx failures
- Verifying 4xx errors are surfaced, not masked
"""

from __future__ import annotations

import pytest
import requests

from taskquest.client import APIError, ClientSession, NotAuthenticatedError, TaskNotFoundError

pytestmark = pytest.mark.unit

LOGIN_PAYLOAD = {
    "id": 1,
    "username": "quester",
    "email": "quester@example.com",
    "level": 5,
    "xp": 75,
    "xpToNextLevel": 200,
    "token": "token-1",
}


def _task(task_id: int, status: str = "open", **extra) -> dict:
    task = {
        "id": task_id,
        "title": f"Task {task_id}",
        "status": status,
        "xpReward": 10,
        "completionXp": 30,
        "completedAt": None,
    }
    task.update(extra)
    return task


class FakeAPI:
    """Scriptable stand-in for ``TaskQuestAPI``."""

    def __init__(self):
        self.calls: list[tuple] = []
        self.failure: Exception | None = None
        self.tasks: list[dict] = []
        self.next_result: dict | None = None

    def _call(self, name, *args):
        self.calls.append((name, *args))
        if self.failure is not None:
            raise self.failure

    def register(self, username, email, password):
        self._call("register", username, email, password)
        return {**LOGIN_PAYLOAD, "username": username, "email": email, "level": 1, "xp": 0, "xpToNextLevel": 120}

    def login(self, email, password):
        self._call("login", email, password)
        return dict(LOGIN_PAYLOAD)

    def get_profile(self, token):
        self._call("get_profile", token)
        return {key: value for key, value in LOGIN_PAYLOAD.items() if key != "token"} | {"xp": 90}

    def list_tasks(self, token):
        self._call("list_tasks", token)
        return list(self.tasks)

    def create_task(self, token, task_data):
        self._call("create_task", token, task_data)
        return self.next_result

    def update_task(self, token, task_id, changes):
        self._call("update_task", token, task_id, changes)
        return self.next_result

    def delete_task(self, token, task_id):
        self._call("delete_task", token, task_id)
        return {"message": "Task deleted successfully"}

    def get_leaderboard(self):
        self._call("get_leaderboard")
        return [{"username": "quester", "level": 5, "xp": 75}]


@pytest.fixture
def fake_api() -> FakeAPI:
    return FakeAPI()


@pytest.fixture
def session(fake_api) -> ClientSession:
    """A session already signed in as ``quester``."""
    client_session = ClientSession(api=fake_api)
    client_session.login("quester@example.com", "secret1")
    return client_session


class TestAuthentication:
    def test_login_populates_user(self, session):
        assert session.is_authenticated
        assert session.token == "token-1"
        assert session.user["level"] == 5

    def test_register_starts_fresh_session(self, fake_api):
        client_session = ClientSession(api=fake_api)

        user = client_session.register("newbie", "newbie@example.com", "secret1")

        assert user["level"] == 1
        assert client_session.tasks == []

    def test_failed_login_leaves_session_empty(self, fake_api):
        fake_api.failure = APIError(401, "Invalid email or password")
        client_session = ClientSession(api=fake_api)

        with pytest.raises(APIError):
            client_session.login("quester@example.com", "wrong")

        assert not client_session.is_authenticated

    def test_logout_discards_state(self, session, fake_api):
        fake_api.tasks = [_task(1)]
        session.fetch_tasks()

        session.logout()

        assert session.user is None
        assert session.tasks == []

    def test_task_operations_require_login(self, fake_api):
        client_session = ClientSession(api=fake_api)

        with pytest.raises(NotAuthenticatedError):
            client_session.fetch_tasks()

    def test_refresh_profile_keeps_token(self, session):
        user = session.refresh_profile()

        assert user["xp"] == 90
        assert user["token"] == "token-1"


class TestServerConfirmedMutations:
    def test_fetch_tasks_overwrites_local_list(self, session, fake_api):
        fake_api.tasks = [_task(2), _task(1)]

        tasks = session.fetch_tasks()

        assert [task["id"] for task in tasks] == [2, 1]

    def test_create_task_prepends_and_merges_progress(self, session, fake_api):
        # Arrange
        session.tasks = [_task(1)]
        fake_api.next_result = {"task": _task(2), "user": {"level": 5, "xp": 85, "xpToNextLevel": 200}}

        # Act
        result = session.create_task({"title": "Task 2"})

        # Assert
        assert result["task"]["id"] == 2
        assert [task["id"] for task in session.tasks] == [2, 1]
        assert session.user["xp"] == 85
        assert session.user["token"] == "token-1"

    def test_update_task_replaces_task_and_merges_progress(self, session, fake_api):
        session.tasks = [_task(1)]
        fake_api.next_result = {
            "task": _task(1, status="done", completedAt="2025-01-01T00:00:00+00:00"),
            "user": {"level": 6, "xp": 5, "xpToNextLevel": 220},
        }

        session.complete_task(1)

        assert session.tasks[0]["status"] == "done"
        assert (session.user["level"], session.user["xp"]) == (6, 5)
        assert fake_api.calls[-1] == ("update_task", "token-1", 1, {"status": "done"})

    def test_update_without_xp_change_keeps_progress(self, session, fake_api):
        session.tasks = [_task(1)]
        fake_api.next_result = {"task": _task(1, title="Renamed"), "user": None}

        session.update_task(1, {"title": "Renamed"})

        assert session.tasks[0]["title"] == "Renamed"
        assert session.user["xp"] == 75

    def test_delete_task_removes_locally(self, session, fake_api):
        session.tasks = [_task(1), _task(2)]

        session.delete_task(1)

        assert [task["id"] for task in session.tasks] == [2]
        assert ("delete_task", "token-1", 1) in fake_api.calls


class TestLocalFallback:
    @pytest.mark.parametrize(
        "failure",
        [requests.ConnectionError("down"), requests.Timeout("slow"), APIError(500, "Internal server error")],
    )
    def test_create_task_falls_back_to_local(self, session, fake_api, failure):
        # Arrange
        fake_api.failure = failure

        # Act
        result = session.create_task({"title": "Offline task", "category": "Health"})

        # Assert
        task = result["task"]
        assert task["id"] < 0
        assert task["status"] == "open"
        assert task["xpReward"] == 10
        assert task["completionXp"] == 30
        assert task["category"] == "Health"
        assert result["user"] is None
        assert session.tasks[0] is task

    def test_local_ids_do_not_repeat(self, session, fake_api):
        fake_api.failure = requests.ConnectionError("down")

        first = session.create_task({"title": "A"})["task"]
        second = session.create_task({"title": "B"})["task"]

        assert first["id"] != second["id"]

    def test_local_completion_applies_progression_rule(self, session, fake_api):
        """Test that offline completion settles XP with the full level-up loop."""
        # Arrange - level 5, 75/200 XP
        session.tasks = [_task(1, completionXp=130)]
        fake_api.failure = requests.ConnectionError("down")

        # Act
        result = session.complete_task(1)

        # Assert
        assert result["task"]["status"] == "done"
        assert result["task"]["completedAt"] is not None
        assert result["user"] == {"level": 6, "xp": 5, "xpToNextLevel": 220}
        assert (session.user["level"], session.user["xp"], session.user["xpToNextLevel"]) == (6, 5, 220)

    def test_local_repeat_completion_does_not_double_grant(self, session, fake_api):
        session.tasks = [_task(1, status="done", completedAt="2025-01-01T00:00:00+00:00")]
        fake_api.failure = requests.ConnectionError("down")

        result = session.complete_task(1)

        assert result["user"] is None
        assert session.user["xp"] == 75

    def test_local_reopen_clears_completed_at_without_clawback(self, session, fake_api):
        session.tasks = [_task(1, status="done", completedAt="2025-01-01T00:00:00+00:00")]
        fake_api.failure = requests.ConnectionError("down")

        session.toggle_task(1)

        assert session.tasks[0]["status"] == "open"
        assert session.tasks[0]["completedAt"] is None
        assert session.user["xp"] == 75

    def test_local_only_task_never_hits_server(self, session, fake_api):
        fake_api.failure = requests.ConnectionError("down")
        local = session.create_task({"title": "Offline"})["task"]
        fake_api.failure = None
        fake_api.calls.clear()

        session.complete_task(local["id"])
        session.delete_task(local["id"])

        assert fake_api.calls == []
        assert session.tasks == []

    def test_local_update_of_unknown_task_raises(self, session, fake_api):
        fake_api.failure = requests.ConnectionError("down")

        with pytest.raises(TaskNotFoundError):
            session.update_task(42, {"status": "done"})

    def test_delete_falls_back_to_local(self, session, fake_api):
        session.tasks = [_task(1)]
        fake_api.failure = APIError(503, "Service unavailable")

        session.delete_task(1)

        assert session.tasks == []

    def test_fetch_failure_keeps_local_tasks(self, session, fake_api):
        session.tasks = [_task(1)]
        fake_api.failure = requests.ConnectionError("down")

        assert session.fetch_tasks() == [_task(1)]

    def test_profile_refresh_failure_keeps_cached_user(self, session, fake_api):
        fake_api.failure = requests.Timeout("slow")

        assert session.refresh_profile()["xp"] == 75


class TestClientErrorsAreRaised:
    @pytest.mark.parametrize("status_code", [400, 401, 403, 404])
    def test_update_client_errors_propagate(self, session, fake_api, status_code):
        session.tasks = [_task(1)]
        fake_api.failure = APIError(status_code, "nope")

        with pytest.raises(APIError):
            session.update_task(1, {"status": "done"})

        assert session.tasks[0]["status"] == "open"
        assert session.user["xp"] == 75

    def test_create_validation_error_propagates(self, session, fake_api):
        fake_api.failure = APIError(400, "'title' is required")

        with pytest.raises(APIError):
            session.create_task({})

        assert session.tasks == []

    def test_delete_forbidden_keeps_task(self, session, fake_api):
        session.tasks = [_task(1)]
        fake_api.failure = APIError(403, "Not authorized")

        with pytest.raises(APIError):
            session.delete_task(1)

        assert len(session.tasks) == 1


def test_leaderboard_passes_through(session):
    assert session.leaderboard()[0]["username"] == "quester"
