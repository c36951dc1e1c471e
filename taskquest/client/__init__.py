"""
Client-side layer of TaskQuest.

- api: ``TaskQuestAPI``, the HTTP wrapper around the REST endpoints
- session: ``ClientSession``, the signed-in user's cached state
- views: pure view-model helpers for dashboards and the leaderboard
"""

from .api import APIError, TaskQuestAPI
from .session import ClientSession, NotAuthenticatedError, TaskNotFoundError

__all__ = [
    "APIError",
    "ClientSession",
    "NotAuthenticatedError",
    "TaskNotFoundError",
    "TaskQuestAPI",
]
