"""
Database models for TaskQuest.

Defines the SQLAlchemy ORM models for the two persisted entities:

- :class:`User` -- credentials plus the level/XP progression counters.
- :class:`Task` -- a user-owned unit of work with a completion lifecycle.

Key Concepts Demonstrated:
- Werkzeug password hashing; ``password_hash`` never leaves the model
- Status transitions that report XP side effects instead of applying them
- Timezone-aware datetime handling for SQLite compatibility
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, NamedTuple

from werkzeug.security import check_password_hash, generate_password_hash

from .constants import DEFAULT_COMPLETION_XP, DEFAULT_XP_REWARD, TaskPriority, TaskStatus
from .extensions import db
from .progression import Progress, apply_xp, revoke_xp, xp_to_next_level


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _to_utc_iso(value: datetime | None) -> str | None:
    """
    Convert a datetime to a UTC ISO-8601 string.

    SQLite does not store timezone information, so values read back from
    the database may be naive even though they were created in UTC.  Naive
    values are assumed UTC; aware values are converted.
    """
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    else:
        value = value.astimezone(timezone.utc)
    return value.isoformat()


class StatusChange(NamedTuple):
    """Outcome of :meth:`Task.set_status`."""

    completed: bool
    reopened: bool


class User(db.Model):
    """
    Registered user with level/XP progression.

    Attributes:
        id: Auto-incrementing integer primary key.
        username: Unique display name (max 80 chars).
        email: Unique, lower-cased email address (max 120 chars).
        password_hash: Werkzeug-generated hash of the user's password.
        level: Current level, starting at 1.
        xp: XP earned inside the current level, always below
            :attr:`xp_to_next_level`.
        created_at: Timestamp of account creation, stored as UTC.
    """

    __tablename__ = "users"

    __table_args__ = (
        db.CheckConstraint("length(username) <= 80", name="ck_users_username_len"),
        db.CheckConstraint("length(email) <= 120", name="ck_users_email_len"),
        db.CheckConstraint("level >= 1", name="ck_users_level_min"),
        db.CheckConstraint("xp >= 0", name="ck_users_xp_min"),
    )

    id: int = db.Column(db.Integer, primary_key=True)
    username: str = db.Column(db.String(80), unique=True, nullable=False, index=True)
    # Indexed because login looks users up by email
    email: str = db.Column(db.String(120), unique=True, nullable=False, index=True)
    password_hash: str = db.Column(db.String(256), nullable=False)
    level: int = db.Column(db.Integer, nullable=False, default=1)
    xp: int = db.Column(db.Integer, nullable=False, default=0)
    created_at: datetime = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        default=_utcnow,
    )

    tasks = db.relationship(
        "Task",
        back_populates="owner",
        cascade="all, delete-orphan",
        lazy="select",
    )

    def __init__(self, **kwargs: Any) -> None:
        # Column defaults only apply at flush; progression math needs them now.
        kwargs.setdefault("level", 1)
        kwargs.setdefault("xp", 0)
        super().__init__(**kwargs)

    @property
    def xp_to_next_level(self) -> int:
        """XP needed to reach the next level, derived from :attr:`level`."""
        return xp_to_next_level(self.level)

    @property
    def progress(self) -> Progress:
        return Progress(self.level, self.xp, self.xp_to_next_level)

    def set_password(self, password: str) -> None:
        """Hash and store a plain-text password."""
        self.password_hash = generate_password_hash(password)

    def check_password(self, password: str) -> bool:
        """Verify a plain-text password against the stored hash."""
        return check_password_hash(self.password_hash, password)

    def gain_xp(self, amount: int) -> bool:
        """
        Grant *amount* XP, rolling overflow into level-ups.

        Returns:
            ``True`` when the grant raised the user's level.
        """
        previous_level = self.level
        progress = apply_xp(self.level, self.xp, amount)
        self.level, self.xp = progress.level, progress.xp
        return self.level > previous_level

    def lose_xp(self, amount: int) -> None:
        """Revoke *amount* XP, dropping levels as needed (never below 1)."""
        progress = revoke_xp(self.level, self.xp, amount)
        self.level, self.xp = progress.level, progress.xp

    def to_dict(self) -> dict[str, Any]:
        """
        Return the user's public profile.

        ``password_hash`` is deliberately excluded so the output can be
        returned directly in API responses.
        """
        return {
            "id": self.id,
            "username": self.username,
            "email": self.email,
            "level": self.level,
            "xp": self.xp,
            "xpToNextLevel": self.xp_to_next_level,
            "createdAt": _to_utc_iso(self.created_at),
        }

    def to_leaderboard_entry(self) -> dict[str, Any]:
        return {"username": self.username, "level": self.level, "xp": self.xp}

    def __repr__(self) -> str:
        return f"<User {self.id}: {self.username} L{self.level}>"


class Task(db.Model):
    """
    Task owned by a single user.

    Attributes:
        id: Auto-incrementing primary key.
        user_id: Owning user.  Only the owner may read or change the task.
        title: Short summary of the task (max 200 characters).
        description: Optional longer text.
        category: Free-form grouping label such as ``"Health"``.
        status: Lifecycle status (see :class:`TaskStatus`).
        priority: Importance level (see :class:`TaskPriority`).
        due_date: Optional timezone-aware deadline.
        xp_reward: XP granted when the task is created.
        completion_xp: XP granted when the task is marked done.
        created_at: Timestamp of task creation (UTC).
        updated_at: Timestamp of last modification (UTC, auto-updated).
        completed_at: Set while the task is done, cleared when reopened.
    """

    __tablename__ = "tasks"

    __table_args__ = (
        db.CheckConstraint("xp_reward >= 0", name="ck_tasks_xp_reward_min"),
        db.CheckConstraint("completion_xp >= 0", name="ck_tasks_completion_xp_min"),
    )

    id: int = db.Column(db.Integer, primary_key=True)
    user_id: int = db.Column(
        db.Integer, db.ForeignKey("users.id"), nullable=False, index=True
    )
    title: str = db.Column(db.String(200), nullable=False)
    description: str | None = db.Column(db.Text, nullable=True)
    category: str | None = db.Column(db.String(80), nullable=True, index=True)
    status: str = db.Column(
        db.String(20),
        nullable=False,
        default=TaskStatus.OPEN.value,
    )
    priority: str = db.Column(
        db.String(20),
        nullable=False,
        default=TaskPriority.MEDIUM.value,
    )
    due_date: datetime | None = db.Column(db.DateTime(timezone=True), nullable=True)
    xp_reward: int = db.Column(db.Integer, nullable=False, default=DEFAULT_XP_REWARD)
    completion_xp: int = db.Column(
        db.Integer, nullable=False, default=DEFAULT_COMPLETION_XP
    )
    created_at: datetime = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        default=_utcnow,
    )
    updated_at: datetime = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        default=_utcnow,
        onupdate=_utcnow,
    )
    completed_at: datetime | None = db.Column(db.DateTime(timezone=True), nullable=True)

    owner = db.relationship("User", back_populates="tasks")

    def __init__(self, **kwargs: Any) -> None:
        kwargs.setdefault("status", TaskStatus.OPEN.value)
        kwargs.setdefault("priority", TaskPriority.MEDIUM.value)
        kwargs.setdefault("xp_reward", DEFAULT_XP_REWARD)
        kwargs.setdefault("completion_xp", DEFAULT_COMPLETION_XP)
        super().__init__(**kwargs)

    @property
    def is_done(self) -> bool:
        return self.status == TaskStatus.DONE.value

    def is_owned_by(self, user_id: int) -> bool:
        return self.user_id == user_id

    def set_status(self, new_status: str) -> StatusChange:
        """
        Move the task to *new_status* and stamp or clear ``completed_at``.

        Setting the current status again is a no-op, so repeating a
        "mark done" request never reports a second completion.

        Returns:
            Which XP-relevant edge was crossed, if any.  Granting or
            revoking XP is left to the caller.
        """
        new_status = TaskStatus(new_status).value
        was_done = self.is_done
        self.status = new_status

        if not was_done and self.is_done:
            self.completed_at = _utcnow()
            return StatusChange(completed=True, reopened=False)
        if was_done and not self.is_done:
            self.completed_at = None
            return StatusChange(completed=False, reopened=True)
        return StatusChange(completed=False, reopened=False)

    def to_dict(self) -> dict[str, Any]:
        """Serialise the task with camelCase keys and UTC ISO-8601 datetimes."""
        return {
            "id": self.id,
            "userId": self.user_id,
            "title": self.title,
            "description": self.description,
            "category": self.category,
            "status": self.status,
            "priority": self.priority,
            "dueDate": _to_utc_iso(self.due_date),
            "xpReward": self.xp_reward,
            "completionXp": self.completion_xp,
            "createdAt": _to_utc_iso(self.created_at),
            "updatedAt": _to_utc_iso(self.updated_at),
            "completedAt": _to_utc_iso(self.completed_at),
        }

    def __repr__(self) -> str:
        return f"<Task {self.id}: {self.title}>"
