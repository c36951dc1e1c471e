"""
``require_auth``: the bearer-token guard for protected endpoints.

A view wrapped with it only runs for a valid token whose user still exists;
that user is exposed as ``g.current_user``.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from functools import wraps

from flask import Response, current_app, g, jsonify, request

from .extensions import db
from .models import User
from .tokens import verify_token

logger = logging.getLogger(__name__)


def extract_bearer_token() -> str | None:
    """Return the token from ``Authorization: Bearer <token>``, if present."""
    auth_header = request.headers.get("Authorization", "")
    if not auth_header.startswith("Bearer "):
        return None
    token = auth_header[7:].strip()
    return token or None


def require_auth(view_func: Callable[..., tuple[Response, int] | Response]):
    """
    Decorator that enforces Bearer-token authentication on API endpoints.

    Missing, invalid or expired tokens, and tokens for users that no longer
    exist, short-circuit with a ``401`` JSON error.
    """

    @wraps(view_func)
    def wrapper(*args, **kwargs):
        token = extract_bearer_token()
        if token is None:
            return jsonify({"error": "Missing or invalid Authorization header"}), 401

        claims = verify_token(
            token,
            current_app.config["JWT_PUBLIC_KEY"],
            leeway=int(current_app.config.get("JWT_CLOCK_SKEW_SECONDS", 30)),
        )
        if claims is None:
            logger.warning("Rejected invalid or expired token on %s", request.path)
            return jsonify({"error": "Invalid or expired token"}), 401

        user = db.session.get(User, claims["user_id"])
        if user is None:
            logger.warning("Token for unknown user_id=%s", claims["user_id"])
            return jsonify({"error": "Invalid or expired token"}), 401

        g.current_user = user
        return view_func(*args, **kwargs)

    return wrapper
