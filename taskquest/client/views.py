"""
View-model helpers for the TaskQuest front end.

These functions turn the task list and user held by a
:class:`~taskquest.client.session.ClientSession` into the numbers a
dashboard shows: tasks grouped by category, daily completion stats, level
progress and leaderboard rows.  They are pure and operate on the API's JSON
shapes.
"""

from __future__ import annotations

from typing import Any

from ..constants import TaskStatus

DEFAULT_CATEGORIES = ("Morning Routine", "Health", "Creative", "Evening Routine")


def _is_done(task: dict[str, Any]) -> bool:
    return task.get("status") == TaskStatus.DONE.value


def _percent(part: float, whole: float) -> int:
    if whole <= 0:
        return 0
    # half-up
    return int(part / whole * 100 + 0.5)


def group_by_category(
    tasks: list[dict[str, Any]],
    categories: tuple[str, ...] = DEFAULT_CATEGORIES,
) -> dict[str, list[dict[str, Any]]]:
    """
    Group tasks under their ``category`` label.

    The default categories always appear, in order, even when empty.
    Tasks without a label land in the first default category; labels
    outside the defaults get their own group after them, in order of first
    appearance.
    """
    groups: dict[str, list[dict[str, Any]]] = {name: [] for name in categories}
    fallback = categories[0] if categories else "Uncategorized"
    for task in tasks:
        category = task.get("category") or fallback
        groups.setdefault(category, []).append(task)
    return groups


def category_stats(tasks: list[dict[str, Any]]) -> dict[str, int]:
    """Completion counts and points for one category's tasks."""
    completed = [task for task in tasks if _is_done(task)]
    return {
        "completed": len(completed),
        "total": len(tasks),
        "points": sum(task.get("xpReward") or 0 for task in completed),
        "possiblePoints": sum(task.get("xpReward") or 0 for task in tasks),
    }


def daily_stats(tasks: list[dict[str, Any]]) -> dict[str, int]:
    """
    Summarise the day's checklist.

    Returns:
        ``totalPoints`` (``xpReward`` of done tasks), ``completedTasks``,
        ``totalTasks`` and ``progress`` as a rounded percentage.
    """
    completed = [task for task in tasks if _is_done(task)]
    return {
        "totalPoints": sum(task.get("xpReward") or 0 for task in completed),
        "completedTasks": len(completed),
        "totalTasks": len(tasks),
        "progress": _percent(len(completed), len(tasks)),
    }


def tasks_to_reset(tasks: list[dict[str, Any]]) -> list[int]:
    """Ids of done tasks to reopen for a fresh daily checklist."""
    return [task["id"] for task in tasks if _is_done(task)]


def level_progress(user: dict[str, Any]) -> dict[str, Any]:
    """Level badge data: current level, XP fraction and a percent capped at 100."""
    xp = user.get("xp", 0)
    threshold = user.get("xpToNextLevel") or 0
    return {
        "level": user.get("level", 1),
        "xp": xp,
        "xpToNextLevel": threshold,
        "percent": min(_percent(xp, threshold), 100),
    }


def leaderboard_rows(
    entries: list[dict[str, Any]], current_username: str | None = None
) -> list[dict[str, Any]]:
    """Number leaderboard entries from 1 and flag the signed-in user's row."""
    return [
        {
            "rank": rank,
            "username": entry["username"],
            "level": entry["level"],
            "xp": entry["xp"],
            "isCurrentUser": entry["username"] == current_username,
        }
        for rank, entry in enumerate(entries, start=1)
    ]
