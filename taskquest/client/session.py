"""
Client-side session state for TaskQuest.

A :class:`ClientSession` is the explicit home of what a front end keeps in
memory while a user is signed in: the authenticated user (including the
bearer token) and that user's task list.  It is created empty, populated by
:meth:`ClientSession.login` or :meth:`ClientSession.register`, and emptied by
:meth:`ClientSession.logout`.

Mutations go to the server first and the server's answer overwrites local
state.  When the server cannot be reached, or answers with a 5xx, the
session falls back to applying the mutation locally so the user can keep
working; nothing is replayed to the server later.  4xx answers (validation,
authentication, ownership) are raised unchanged.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any

import requests

from ..constants import DEFAULT_COMPLETION_XP, DEFAULT_XP_REWARD, TaskPriority, TaskStatus
from ..progression import apply_xp
from .api import APIError, TaskQuestAPI

logger = logging.getLogger(__name__)

PROGRESS_FIELDS = ("level", "xp", "xpToNextLevel")


class NotAuthenticatedError(RuntimeError):
    """Raised when a task operation is attempted without a signed-in user."""


class TaskNotFoundError(LookupError):
    """Raised when a local fallback targets a task the session does not hold."""


def _should_fall_back(exc: Exception) -> bool:
    if isinstance(exc, APIError):
        return exc.is_server_error
    return isinstance(exc, requests.RequestException)


def _utcnow_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class ClientSession:
    """
    Authenticated user and task list for one signed-in session.

    Args:
        api: The API client to talk through.  Defaults to a
            :class:`TaskQuestAPI` on ``localhost``.
    """

    def __init__(self, api: TaskQuestAPI | None = None):
        self.api = api or TaskQuestAPI()
        self.user: dict[str, Any] | None = None
        self.tasks: list[dict[str, Any]] = []
        # Local-only tasks get negative ids so they never collide with the server
        self._next_local_id = -1

    @property
    def is_authenticated(self) -> bool:
        return bool(self.user and self.user.get("token"))

    @property
    def token(self) -> str:
        if not self.is_authenticated:
            raise NotAuthenticatedError("User not authenticated")
        return self.user["token"]

    # -----------------------------------------------------------------
    # Authentication
    # -----------------------------------------------------------------

    def register(self, username: str, email: str, password: str) -> dict[str, Any]:
        """Create an account and start a session for it."""
        self.user = self.api.register(username, email, password)
        self.tasks = []
        return self.user

    def login(self, email: str, password: str) -> dict[str, Any]:
        """Sign in and start a fresh session."""
        self.user = self.api.login(email, password)
        self.tasks = []
        return self.user

    def logout(self) -> None:
        """Discard all session state."""
        self.user = None
        self.tasks = []
        self._next_local_id = -1

    def refresh_profile(self) -> dict[str, Any]:
        """Overwrite the cached profile with the server's, keeping the token."""
        token = self.token
        try:
            profile = self.api.get_profile(token)
        except (requests.RequestException, APIError) as exc:
            if not _should_fall_back(exc):
                raise
            logger.warning("Profile refresh failed, keeping cached profile: %s", exc)
            return self.user
        self.user = {**self.user, **profile, "token": token}
        return self.user

    def _merge_progress(self, progress: dict[str, Any] | None) -> None:
        if not progress:
            return
        self.user.update({key: progress[key] for key in PROGRESS_FIELDS if key in progress})

    # -----------------------------------------------------------------
    # Tasks
    # -----------------------------------------------------------------

    def _index_of(self, task_id: int) -> int:
        for index, task in enumerate(self.tasks):
            if task.get("id") == task_id:
                return index
        raise TaskNotFoundError(f"Task {task_id} not found")

    def fetch_tasks(self) -> list[dict[str, Any]]:
        """Replace the local task list with the server's."""
        token = self.token
        try:
            self.tasks = self.api.list_tasks(token)
        except (requests.RequestException, APIError) as exc:
            if not _should_fall_back(exc):
                raise
            logger.warning("Fetching tasks failed, keeping local list: %s", exc)
        return self.tasks

    def create_task(self, task_data: dict[str, Any]) -> dict[str, Any]:
        """
        Create a task and put it at the top of the list.

        Returns:
            ``{"task": ..., "user": ...}`` as answered by the server, or a
            locally built task with ``"user": None`` when falling back.
        """
        token = self.token
        try:
            result = self.api.create_task(token, task_data)
        except (requests.RequestException, APIError) as exc:
            if not _should_fall_back(exc):
                raise
            logger.warning("Creating task on server failed, creating locally: %s", exc)
            return {"task": self._create_local_task(task_data), "user": None}

        self.tasks.insert(0, result["task"])
        self._merge_progress(result.get("user"))
        return result

    def _create_local_task(self, task_data: dict[str, Any]) -> dict[str, Any]:
        now = _utcnow_iso()
        task = {
            "id": self._next_local_id,
            "userId": self.user.get("id"),
            "title": task_data.get("title"),
            "description": task_data.get("description"),
            "category": task_data.get("category"),
            "status": TaskStatus.OPEN.value,
            "priority": task_data.get("priority", TaskPriority.MEDIUM.value),
            "dueDate": task_data.get("dueDate"),
            "xpReward": task_data.get("xpReward", DEFAULT_XP_REWARD),
            "completionXp": task_data.get("completionXp", DEFAULT_COMPLETION_XP),
            "createdAt": now,
            "updatedAt": now,
            "completedAt": None,
        }
        self._next_local_id -= 1
        self.tasks.insert(0, task)
        return task

    def update_task(self, task_id: int, changes: dict[str, Any]) -> dict[str, Any]:
        """
        Update a task, merging any XP the server reports.

        Local-only tasks (negative ids) are always updated locally.
        """
        token = self.token
        if task_id > 0:
            try:
                result = self.api.update_task(token, task_id, changes)
            except (requests.RequestException, APIError) as exc:
                if not _should_fall_back(exc):
                    raise
                logger.warning("Updating task %s on server failed, updating locally: %s", task_id, exc)
            else:
                index = self._index_of_or_none(task_id)
                if index is None:
                    self.tasks.insert(0, result["task"])
                else:
                    self.tasks[index] = result["task"]
                self._merge_progress(result.get("user"))
                return result

        return self._update_local_task(task_id, changes)

    def _index_of_or_none(self, task_id: int) -> int | None:
        try:
            return self._index_of(task_id)
        except TaskNotFoundError:
            return None

    def _update_local_task(self, task_id: int, changes: dict[str, Any]) -> dict[str, Any]:
        index = self._index_of(task_id)
        old_task = self.tasks[index]
        new_status = changes.get("status", old_task["status"])
        completed = old_task["status"] != TaskStatus.DONE.value and new_status == TaskStatus.DONE.value
        reopened = old_task["status"] == TaskStatus.DONE.value and new_status != TaskStatus.DONE.value

        task = {**old_task, **changes, "updatedAt": _utcnow_iso()}
        if completed:
            task["completedAt"] = task["updatedAt"]
        elif reopened:
            task["completedAt"] = None
        self.tasks[index] = task

        progress = None
        if completed:
            reward = task.get("completionXp", DEFAULT_COMPLETION_XP)
            settled = apply_xp(self.user["level"], self.user["xp"], reward)
            progress = settled.to_dict()
            self._merge_progress(progress)
        return {"task": task, "user": progress}

    def complete_task(self, task_id: int) -> dict[str, Any]:
        return self.update_task(task_id, {"status": TaskStatus.DONE.value})

    def reopen_task(self, task_id: int) -> dict[str, Any]:
        return self.update_task(task_id, {"status": TaskStatus.OPEN.value})

    def toggle_task(self, task_id: int) -> dict[str, Any]:
        """Flip a task between ``done`` and ``open``."""
        task = self.tasks[self._index_of(task_id)]
        if task["status"] == TaskStatus.DONE.value:
            return self.reopen_task(task_id)
        return self.complete_task(task_id)

    def delete_task(self, task_id: int) -> None:
        """Delete a task; the local copy is dropped even if the server is down."""
        token = self.token
        if task_id > 0:
            try:
                self.api.delete_task(token, task_id)
            except (requests.RequestException, APIError) as exc:
                if not _should_fall_back(exc):
                    raise
                logger.warning("Deleting task %s on server failed, deleting locally: %s", task_id, exc)
        self.tasks = [task for task in self.tasks if task.get("id") != task_id]

    def leaderboard(self) -> list[dict[str, Any]]:
        return self.api.get_leaderboard()
