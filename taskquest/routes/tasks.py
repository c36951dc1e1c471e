"""
Task API endpoints.

Every endpoint requires a Bearer token.  Tasks are looked up by id first so
that a missing task (404) can be told apart from someone else's task (403).

Endpoints:
    GET    /api/tasks               - List own tasks (filters, sorting)
    POST   /api/tasks               - Create a task
    GET    /api/tasks/<id>          - Retrieve a task
    PUT    /api/tasks/<id>          - Update a task (partial semantics)
    DELETE /api/tasks/<id>          - Delete a task
    PATCH  /api/tasks/<id>/status   - Change only the status

XP side effects:
    * Creating a task grants its ``xpReward`` when ``XP_ON_TASK_CREATE``
      is enabled.
    * Moving a task into ``done`` grants its ``completionXp`` once per
      transition; repeating ``done`` grants nothing.
    * Moving a task out of ``done`` revokes ``completionXp`` only when
      ``XP_CLAWBACK_ON_REOPEN`` is enabled.

Mutating endpoints answer ``{"task": ..., "user": ...}``.  On create ``user``
always carries the owner's ``level``/``xp``/``xpToNextLevel``; on update it
does so only if XP changed and is ``null`` otherwise.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any

from flask import Blueprint, Response, current_app, g, jsonify, request
from sqlalchemy import case, select

from ..auth import require_auth
from ..constants import MAX_XP_REWARD, TaskPriority, TaskStatus
from ..extensions import db
from ..models import Task, User
from . import json_error

logger = logging.getLogger(__name__)

tasks_bp = Blueprint("tasks", __name__)

MAX_TITLE_LENGTH = 200
MAX_CATEGORY_LENGTH = 80

_PRIORITY_RANK = case(
    {
        TaskPriority.LOW.value: 0,
        TaskPriority.MEDIUM.value: 1,
        TaskPriority.HIGH.value: 2,
    },
    value=Task.priority,
)

SORT_COLUMNS = {
    "createdAt": Task.created_at,
    "dueDate": Task.due_date,
    "priority": _PRIORITY_RANK,
    "title": Task.title,
}


# =====================================================================
# Helper Functions
# =====================================================================


def _is_xp_amount(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool) and 0 <= value <= MAX_XP_REWARD


def validate_task_data(
    data: dict, required_fields: list[str] | None = None
) -> tuple[bool, str | None]:
    """
    Validate incoming task payload against business rules.

    Args:
        data: The deserialised JSON request body.
        required_fields: Optional list of field names that must be present
            and non-empty.

    Returns:
        A two-element tuple ``(is_valid, error_message)``.  When valid,
        ``error_message`` is ``None``.
    """
    if required_fields:
        for field in required_fields:
            value = data.get(field)
            if not value or (isinstance(value, str) and not value.strip()):
                return False, f"'{field}' is required"

    if "title" in data:
        title = data["title"]
        if not isinstance(title, str) or not title.strip():
            return False, "'title' must be a non-empty string"
        if len(title) > MAX_TITLE_LENGTH:
            return False, f"Title must be {MAX_TITLE_LENGTH} characters or less"

    if "description" in data and data["description"] is not None:
        if not isinstance(data["description"], str):
            return False, "'description' must be a string"

    if "category" in data and data["category"] is not None:
        category = data["category"]
        if not isinstance(category, str):
            return False, "'category' must be a string"
        if len(category) > MAX_CATEGORY_LENGTH:
            return False, f"Category must be {MAX_CATEGORY_LENGTH} characters or less"

    if "status" in data:
        valid_statuses = [s.value for s in TaskStatus]
        if data["status"] not in valid_statuses:
            return False, f"Invalid status. Must be one of: {valid_statuses}"

    if "priority" in data:
        valid_priorities = [p.value for p in TaskPriority]
        if data["priority"] not in valid_priorities:
            return False, f"Invalid priority. Must be one of: {valid_priorities}"

    if "dueDate" in data and data["dueDate"]:
        try:
            datetime.fromisoformat(data["dueDate"].replace("Z", "+00:00"))
        except (ValueError, AttributeError):
            return False, "Invalid dueDate format. Use ISO format (YYYY-MM-DDTHH:MM:SS)"

    for field in ("xpReward", "completionXp"):
        if field in data and not _is_xp_amount(data[field]):
            return False, f"'{field}' must be an integer from 0 to {MAX_XP_REWARD}"

    return True, None


def ensure_utc(value: datetime) -> datetime:
    """Normalise a datetime to timezone-aware UTC; naive values are assumed UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def parse_due_date(date_string: str | None) -> datetime | None:
    """Parse an optional ISO-8601 string into a UTC datetime."""
    if not date_string:
        return None
    parsed = datetime.fromisoformat(date_string.replace("Z", "+00:00"))
    return ensure_utc(parsed)


def _clean_optional_text(value: str | None) -> str | None:
    if value is None:
        return None
    value = value.strip()
    return value or None


def _load_owned_task(task_id: int) -> tuple[Task | None, tuple[Response, int] | None]:
    """
    Fetch a task and check it belongs to ``g.current_user``.

    Returns:
        ``(task, None)`` on success, otherwise ``(None, error_response)``
        with a 404 for a missing task or a 403 for a foreign one.
    """
    task = db.session.get(Task, task_id)
    if task is None:
        logger.warning("Task %s not found", task_id)
        return None, json_error("Task not found", 404)
    if not task.is_owned_by(g.current_user.id):
        logger.warning(
            "user_id=%s denied access to task %s owned by user_id=%s",
            g.current_user.id,
            task_id,
            task.user_id,
        )
        return None, json_error("Not authorized", 403)
    return task, None


def _grant_xp(user: User, amount: int, reason: str) -> None:
    if user.gain_xp(amount):
        logger.info("user_id=%s reached level %s (%s)", user.id, user.level, reason)


def _apply_status(task: Task, user: User, new_status: str) -> bool:
    """
    Transition *task* and settle the owner's XP.

    Returns:
        ``True`` when the owner's progression changed.
    """
    change = task.set_status(new_status)
    if change.completed:
        _grant_xp(user, task.completion_xp, f"completed task {task.id}")
        return True
    if change.reopened and current_app.config.get("XP_CLAWBACK_ON_REOPEN"):
        user.lose_xp(task.completion_xp)
        logger.info(
            "Revoked %s XP from user_id=%s for reopening task %s",
            task.completion_xp,
            user.id,
            task.id,
        )
        return True
    return False


def _task_response(task: Task, user: User, xp_changed: bool) -> dict[str, Any]:
    return {
        "task": task.to_dict(),
        "user": user.progress.to_dict() if xp_changed else None,
    }


# =====================================================================
# API Endpoints
# =====================================================================


@tasks_bp.route("", methods=["GET"])
@require_auth
def get_tasks() -> tuple[Response, int]:
    """
    List the authenticated user's tasks, newest first by default.

    Query Parameters:
        status, priority, category: Exact-match filters.
        sort: ``createdAt`` (default), ``dueDate``, ``priority`` or ``title``.
        order: ``desc`` (default) or ``asc``.

    Returns:
        JSON array of tasks.
    """
    user: User = g.current_user
    logger.info("GET /api/tasks - Fetching tasks for user_id=%s", user.id)

    stmt = select(Task).where(Task.user_id == user.id)

    for param, column in (
        ("status", Task.status),
        ("priority", Task.priority),
        ("category", Task.category),
    ):
        value = request.args.get(param)
        if value:
            stmt = stmt.where(column == value)

    sort_column = SORT_COLUMNS.get(request.args.get("sort", "createdAt"), Task.created_at)
    if request.args.get("order", "desc") == "asc":
        stmt = stmt.order_by(sort_column.asc(), Task.id.asc())
    else:
        stmt = stmt.order_by(sort_column.desc(), Task.id.desc())

    tasks = db.session.scalars(stmt).all()
    return jsonify([task.to_dict() for task in tasks]), 200


@tasks_bp.route("", methods=["POST"])
@require_auth
def create_task() -> tuple[Response, int]:
    """
    Create a new task for the authenticated user.

    Request Body (JSON):
        title: Task title (required)
        description, category: Optional text
        priority: low | medium | high (default: medium)
        status: open | in-progress | done (default: open)
        dueDate: Optional ISO-8601 deadline
        xpReward: XP granted on creation (default: 10, max: 5000)
        completionXp: XP granted on completion (default: 30, max: 5000)

    Returns:
        201 with ``{"task": ..., "user": ...}``, or 400 on invalid input.
    """
    data = request.get_json(silent=True)
    if not isinstance(data, dict) or not data:
        return json_error("Request body must be JSON", 400)

    is_valid, error = validate_task_data(data, required_fields=["title"])
    if not is_valid:
        logger.warning("Validation failed: %s", error)
        return json_error(error, 400)

    user: User = g.current_user
    task = Task(
        user_id=user.id,
        title=data["title"].strip(),
        description=data.get("description"),
        category=_clean_optional_text(data.get("category")),
        priority=data.get("priority", TaskPriority.MEDIUM.value),
        due_date=parse_due_date(data.get("dueDate")),
    )
    if "xpReward" in data:
        task.xp_reward = data["xpReward"]
    if "completionXp" in data:
        task.completion_xp = data["completionXp"]
    db.session.add(task)
    # Flush so the task has an id for log lines and XP reasons
    db.session.flush()

    if current_app.config.get("XP_ON_TASK_CREATE"):
        _grant_xp(user, task.xp_reward, f"created task {task.id}")
    if "status" in data:
        _apply_status(task, user, data["status"])

    db.session.commit()

    logger.info("Created task %s for user_id=%s", task.id, user.id)
    # Creation always reports progression, even when no XP was granted
    return jsonify(_task_response(task, user, xp_changed=True)), 201


@tasks_bp.route("/<int:task_id>", methods=["GET"])
@require_auth
def get_task(task_id: int) -> tuple[Response, int]:
    """Return a single owned task, 404 if absent, 403 if foreign."""
    task, error = _load_owned_task(task_id)
    if error:
        return error
    return jsonify(task.to_dict()), 200


@tasks_bp.route("/<int:task_id>", methods=["PUT"])
@require_auth
def update_task(task_id: int) -> tuple[Response, int]:
    """
    Update an existing task.

    Only the fields present in the body are modified.  A ``status`` field
    goes through the completion state machine and may change the owner's
    XP.

    Returns:
        200 with ``{"task": ..., "user": ...}``, or 400/403/404.
    """
    task, error = _load_owned_task(task_id)
    if error:
        return error

    data = request.get_json(silent=True)
    if not isinstance(data, dict) or not data:
        return json_error("Request body must be JSON", 400)

    is_valid, error_message = validate_task_data(data)
    if not is_valid:
        logger.warning("Validation failed: %s", error_message)
        return json_error(error_message, 400)

    if "title" in data:
        task.title = data["title"].strip()
    if "description" in data:
        task.description = data["description"]
    if "category" in data:
        task.category = _clean_optional_text(data["category"])
    if "priority" in data:
        task.priority = data["priority"]
    if "dueDate" in data:
        task.due_date = parse_due_date(data["dueDate"])
    if "xpReward" in data:
        task.xp_reward = data["xpReward"]
    if "completionXp" in data:
        task.completion_xp = data["completionXp"]

    user: User = g.current_user
    xp_changed = False
    if "status" in data:
        xp_changed = _apply_status(task, user, data["status"])

    db.session.commit()

    logger.info("Updated task %s", task_id)
    return jsonify(_task_response(task, user, xp_changed)), 200


@tasks_bp.route("/<int:task_id>", methods=["DELETE"])
@require_auth
def delete_task(task_id: int) -> tuple[Response, int]:
    """Delete an owned task.  XP already granted for it is kept."""
    task, error = _load_owned_task(task_id)
    if error:
        return error

    db.session.delete(task)
    db.session.commit()

    logger.info("Deleted task %s", task_id)
    return jsonify({"message": "Task deleted successfully"}), 200


@tasks_bp.route("/<int:task_id>/status", methods=["PATCH"])
@require_auth
def update_task_status(task_id: int) -> tuple[Response, int]:
    """
    Change only the status of a task.

    Request Body (JSON):
        status: open | in-progress | done

    Returns:
        200 with ``{"task": ..., "user": ...}``, or 400/403/404.
    """
    task, error = _load_owned_task(task_id)
    if error:
        return error

    data = request.get_json(silent=True)
    if not isinstance(data, dict) or "status" not in data:
        return json_error("'status' field is required", 400)

    valid_statuses = [s.value for s in TaskStatus]
    if data["status"] not in valid_statuses:
        return json_error(f"Invalid status. Must be one of: {valid_statuses}", 400)

    user: User = g.current_user
    xp_changed = _apply_status(task, user, data["status"])
    db.session.commit()

    logger.info("Updated task %s status to %s", task_id, task.status)
    return jsonify(_task_response(task, user, xp_changed)), 200
