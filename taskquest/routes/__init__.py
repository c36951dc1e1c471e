"""
Route blueprints for the TaskQuest API.

This package contains:
- health: liveness probe
- users: registration, login, profile and leaderboard
- tasks: task CRUD and status transitions
"""

from __future__ import annotations

from flask import Response, jsonify


def json_error(message: str, status_code: int) -> tuple[Response, int]:
    """Build the ``{"error": "..."}`` envelope shared by every endpoint."""
    return jsonify({"error": message}), status_code
