"""
HTTP client for the TaskQuest REST API.

``TaskQuestAPI`` centralises communication with the backend so that every
call uses the configured base URL and timeout and, when a token is given,
the ``Authorization: Bearer`` header.  Non-2xx answers raise
:class:`APIError`; network-level failures propagate as
:class:`requests.RequestException` so callers can tell "the server said no"
apart from "the server could not be reached".
"""

from __future__ import annotations

import logging
from typing import Any

import requests

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "http://localhost:5000"
DEFAULT_TIMEOUT = 5


class APIError(Exception):
    """Raised when the API answers with a non-2xx status."""

    def __init__(self, status_code: int, message: str):
        super().__init__(f"{status_code}: {message}")
        self.status_code = status_code
        self.message = message

    @property
    def is_server_error(self) -> bool:
        return self.status_code >= 500


def _response_error_message(response: requests.Response, default: str) -> str:
    """
    Extract the ``error`` field of a JSON error body, falling back to
    *default* when the body is not JSON or carries no message.
    """
    try:
        payload = response.json()
    except ValueError:
        return default
    if not isinstance(payload, dict):
        return default
    message = payload.get("error")
    if isinstance(message, str) and message.strip():
        return message
    return default


class TaskQuestAPI:
    """
    Thin wrapper over the TaskQuest endpoints.

    Args:
        base_url: Scheme and host of the API, without the ``/api`` prefix.
        timeout: Per-request timeout in seconds.
    """

    def __init__(self, base_url: str = DEFAULT_BASE_URL, timeout: float = DEFAULT_TIMEOUT):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout

    def _url(self, path: str) -> str:
        return f"{self.base_url}/api/{path.lstrip('/')}"

    def _request(
        self,
        method: str,
        path: str,
        *,
        token: str | None = None,
        json: dict[str, Any] | None = None,
        params: dict[str, Any] | None = None,
    ) -> Any:
        headers = {"Accept": "application/json"}
        if token:
            headers["Authorization"] = f"Bearer {token}"

        response = requests.request(
            method=method,
            url=self._url(path),
            headers=headers,
            json=json,
            params=params,
            timeout=self.timeout,
        )
        if not 200 <= response.status_code < 300:
            message = _response_error_message(response, f"{method} {path} failed")
            logger.debug("%s %s -> %s %s", method, path, response.status_code, message)
            raise APIError(response.status_code, message)
        return response.json()

    # Users

    def register(self, username: str, email: str, password: str) -> dict[str, Any]:
        return self._request(
            "POST",
            "/users/register",
            json={"username": username, "email": email, "password": password},
        )

    def login(self, email: str, password: str) -> dict[str, Any]:
        return self._request(
            "POST", "/users/login", json={"email": email, "password": password}
        )

    def get_profile(self, token: str) -> dict[str, Any]:
        return self._request("GET", "/users/profile", token=token)

    def update_profile(self, token: str, changes: dict[str, Any]) -> dict[str, Any]:
        return self._request("PUT", "/users/profile", token=token, json=changes)

    def get_leaderboard(self) -> list[dict[str, Any]]:
        return self._request("GET", "/users/leaderboard")

    # Tasks

    def list_tasks(self, token: str, **filters: str) -> list[dict[str, Any]]:
        return self._request("GET", "/tasks", token=token, params=filters or None)

    def get_task(self, token: str, task_id: int) -> dict[str, Any]:
        return self._request("GET", f"/tasks/{task_id}", token=token)

    def create_task(self, token: str, task_data: dict[str, Any]) -> dict[str, Any]:
        return self._request("POST", "/tasks", token=token, json=task_data)

    def update_task(self, token: str, task_id: int, changes: dict[str, Any]) -> dict[str, Any]:
        return self._request("PUT", f"/tasks/{task_id}", token=token, json=changes)

    def delete_task(self, token: str, task_id: int) -> dict[str, Any]:
        return self._request("DELETE", f"/tasks/{task_id}", token=token)
