"""
Bearer tokens for TaskQuest sessions.

A token is an RS256 JWT identifying one user by ``user_id`` and
``username``, stamped with ``iat``/``exp``.  The API signs tokens with the
private key at registration and login, and checks them with the public key
on every protected request.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any

import jwt

ALGORITHM = "RS256"
REQUIRED_TOKEN_CLAIMS = ["user_id", "username", "iat", "exp"]


def _is_valid_identity(user_id: Any, username: Any) -> bool:
    # bool is an int subclass
    if not isinstance(user_id, int) or isinstance(user_id, bool) or user_id <= 0:
        return False
    return isinstance(username, str) and bool(username.strip())


def create_token(user_id: int, username: str, private_key: str, expiry_hours: int) -> str:
    """
    Sign a session token for a TaskQuest user.

    Raises:
        ValueError: If *user_id* is not a positive integer or *username*
            is blank.
    """
    if not _is_valid_identity(user_id, username):
        raise ValueError("token identity needs a positive user_id and a username")

    issued_at = datetime.now(timezone.utc)
    claims = {
        "user_id": user_id,
        "username": username,
        "iat": int(issued_at.timestamp()),
        "exp": int((issued_at + timedelta(hours=expiry_hours)).timestamp()),
    }
    return jwt.encode(claims, private_key, algorithm=ALGORITHM)


def verify_token(token: str, public_key: str, leeway: int = 0) -> dict[str, Any] | None:
    """
    Return the claims of a valid session token, or ``None``.

    Only RS256 is accepted.  A token is invalid when its signature or
    expiry fails (with *leeway* seconds of clock skew), a claim is missing,
    or it carries an identity :func:`create_token` would have refused.
    """
    try:
        claims = jwt.decode(
            token,
            public_key,
            algorithms=[ALGORITHM],
            options={"require": REQUIRED_TOKEN_CLAIMS},
            leeway=leeway,
        )
    except jwt.InvalidTokenError:
        return None

    if not _is_valid_identity(claims.get("user_id"), claims.get("username")):
        return None
    return claims
