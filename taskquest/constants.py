"""
Task vocabulary shared by the API and the client.

Plain enums and numbers only, so front-end code can import them without
pulling in Flask or the ORM.
"""

from __future__ import annotations

from enum import Enum

DEFAULT_XP_REWARD = 10
DEFAULT_COMPLETION_XP = 30
# Upper bound for a single task's xpReward / completionXp
MAX_XP_REWARD = 5000


class TaskStatus(str, Enum):
    """Task lifecycle statuses; ``DONE`` is the only completed state."""

    OPEN = "open"
    IN_PROGRESS = "in-progress"
    DONE = "done"


class TaskPriority(str, Enum):
    """Task priority levels."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
