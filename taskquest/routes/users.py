"""
User API endpoints.

Endpoints:
    POST /api/users/register     -- Create an account and receive a token.
    POST /api/users/login        -- Authenticate by email and password.
    GET  /api/users/profile      -- Profile and progression of the caller.
    PUT  /api/users/profile      -- Change username, email or password.
    GET  /api/users/leaderboard  -- Public top-N ranking by level, then XP.

Registration and login respond with the public profile plus a ``token``.
Progression fields (``level``, ``xp``) are never writable through this API;
they only change through task completion.
"""

from __future__ import annotations

import logging
from typing import Any

from flask import Blueprint, Response, current_app, g, jsonify, request
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from ..auth import require_auth
from ..extensions import db
from ..models import User
from ..tokens import create_token
from . import json_error

logger = logging.getLogger(__name__)

users_bp = Blueprint("users", __name__)

MAX_USERNAME_LENGTH = 80
MAX_EMAIL_LENGTH = 120
MIN_PASSWORD_LENGTH = 6


# =====================================================================
# Helper Functions
# =====================================================================


def _validate_required_fields(
    data: dict[str, Any], required_fields: list[str]
) -> str | None:
    """
    Check that all *required_fields* are present and non-blank in *data*.

    Returns:
        An error message describing the first missing or blank field, or
        ``None`` if all required fields are valid.
    """
    for field in required_fields:
        value = data.get(field)
        if not isinstance(value, str) or not value.strip():
            return f"'{field}' is required"
    return None


def _validate_credentials(
    username: str | None, email: str | None, password: str | None
) -> str | None:
    """Apply length and format rules to whichever credential fields are given."""
    if username is not None and len(username) > MAX_USERNAME_LENGTH:
        return f"username must be {MAX_USERNAME_LENGTH} characters or less"
    if email is not None:
        if len(email) > MAX_EMAIL_LENGTH:
            return f"email must be {MAX_EMAIL_LENGTH} characters or less"
        if "@" not in email:
            return "email must be a valid email address"
    if password is not None and len(password) < MIN_PASSWORD_LENGTH:
        return f"password must be at least {MIN_PASSWORD_LENGTH} characters"
    return None


def _find_conflict(username: str | None, email: str | None, exclude_id: int | None = None) -> str | None:
    """Return a 409 message when *username* or *email* belongs to another user."""
    if username is not None:
        stmt = select(User).where(User.username == username)
        if exclude_id is not None:
            stmt = stmt.where(User.id != exclude_id)
        if db.session.scalar(stmt):
            return "Username already exists"
    if email is not None:
        stmt = select(User).where(User.email == email)
        if exclude_id is not None:
            stmt = stmt.where(User.id != exclude_id)
        if db.session.scalar(stmt):
            return "Email already exists"
    return None


def _session_payload(user: User) -> dict[str, Any]:
    """Public profile plus a freshly issued bearer token."""
    token = create_token(
        user_id=user.id,
        username=user.username,
        private_key=current_app.config["JWT_PRIVATE_KEY"],
        expiry_hours=current_app.config["JWT_EXPIRY_HOURS"],
    )
    return {**user.to_dict(), "token": token}


# =====================================================================
# API Endpoints
# =====================================================================


@users_bp.route("/register", methods=["POST"])
def register() -> tuple[Response, int]:
    """
    Register a new user account.

    Expects ``username``, ``email`` and ``password``.  New users start at
    level 1 with 0 XP.

    Returns:
        201 with the profile and token on success.
        400 if fields are missing or invalid.
        409 if the username or email is already taken.
    """
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        return json_error("Request body must be JSON", 400)
    missing = _validate_required_fields(data, ["username", "email", "password"])
    if missing:
        return json_error(missing, 400)

    username = data["username"].strip()
    email = data["email"].strip().lower()
    password = data["password"]

    invalid = _validate_credentials(username, email, password)
    if invalid:
        return json_error(invalid, 400)

    conflict = _find_conflict(username, email)
    if conflict:
        return json_error(conflict, 409)

    user = User(username=username, email=email)
    user.set_password(password)
    db.session.add(user)
    try:
        db.session.commit()
    except IntegrityError:
        # Lost a race against a concurrent registration
        db.session.rollback()
        return json_error("User already exists", 409)

    logger.info("Registered user_id=%s username=%s", user.id, user.username)
    return jsonify(_session_payload(user)), 201


@users_bp.route("/login", methods=["POST"])
def login() -> tuple[Response, int]:
    """
    Authenticate a user by email and password.

    The deliberately vague error message avoids revealing whether the
    email is registered.

    Returns:
        200 with the profile and token on success.
        400 if required fields are missing.
        401 if credentials are incorrect.
    """
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        return json_error("Request body must be JSON", 400)
    missing = _validate_required_fields(data, ["email", "password"])
    if missing:
        return json_error(missing, 400)

    email = data["email"].strip().lower()
    user = db.session.scalar(select(User).where(User.email == email))

    if not user or not user.check_password(data["password"]):
        logger.warning("Failed login attempt for email=%s", email)
        return json_error("Invalid email or password", 401)

    return jsonify(_session_payload(user)), 200


@users_bp.route("/profile", methods=["GET"])
@require_auth
def get_profile() -> tuple[Response, int]:
    """Return the authenticated user's profile and progression."""
    return jsonify(g.current_user.to_dict()), 200


@users_bp.route("/profile", methods=["PUT"])
@require_auth
def update_profile() -> tuple[Response, int]:
    """
    Update the authenticated user's username, email or password.

    Any other field in the body (``level``, ``xp``, ``id``...) is ignored.

    Returns:
        200 with the updated profile.
        400 if the body is not JSON or a field is invalid.
        409 if the new username or email belongs to another user.
    """
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        return json_error("Request body must be JSON", 400)

    user: User = g.current_user
    changes: dict[str, str] = {}
    for field in ("username", "email", "password"):
        if field not in data:
            continue
        value = data[field]
        if not isinstance(value, str) or not value.strip():
            return json_error(f"'{field}' must be a non-empty string", 400)
        changes[field] = value if field == "password" else value.strip()
    if "email" in changes:
        changes["email"] = changes["email"].lower()

    invalid = _validate_credentials(
        changes.get("username"), changes.get("email"), changes.get("password")
    )
    if invalid:
        return json_error(invalid, 400)

    conflict = _find_conflict(
        changes.get("username"), changes.get("email"), exclude_id=user.id
    )
    if conflict:
        return json_error(conflict, 409)

    if "username" in changes:
        user.username = changes["username"]
    if "email" in changes:
        user.email = changes["email"]
    if "password" in changes:
        user.set_password(changes["password"])

    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        return json_error("User already exists", 409)

    logger.info("Updated profile for user_id=%s", user.id)
    return jsonify(user.to_dict()), 200


@users_bp.route("/leaderboard", methods=["GET"])
def leaderboard() -> tuple[Response, int]:
    """
    Rank users by level, then XP, both descending.

    Public endpoint; only ``username``, ``level`` and ``xp`` are exposed.
    """
    limit = int(current_app.config.get("LEADERBOARD_SIZE", 10))
    stmt = (
        select(User)
        .order_by(User.level.desc(), User.xp.desc(), User.id.asc())
        .limit(limit)
    )
    users = db.session.scalars(stmt).all()
    return jsonify([user.to_leaderboard_entry() for user in users]), 200
