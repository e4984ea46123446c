from __future__ import annotations

from functools import wraps
from typing import Iterable

from flask import current_app, g, jsonify, request

from ..utils.auth import decode_token
from .db import get_db


def get_current_user() -> dict | None:
    """
    Resolve the bearer token to an active user row, or None.
    The result is cached on flask.g for the rest of the request.
    """
    if "current_user" in g:
        return g.current_user
    g.current_user = None
    auth = request.headers.get("Authorization", "")
    if not auth.startswith("Bearer "):
        return None
    token = auth[7:].strip()
    payload = decode_token(token, current_app.config["ICE_OPS_SETTINGS"].secret_key)
    if not payload:
        return None
    row = get_db().execute(
        "SELECT user_id, username, full_name, role FROM users WHERE user_id = ? AND is_active = 1",
        (payload.get("user_id"),),
    ).fetchone()
    g.current_user = dict(row) if row else None
    return g.current_user


def require_roles(roles: Iterable[str]):
    """401 without a valid token, 403 when the user's role is not listed (case-insensitive)."""
    allowed = {r.lower() for r in roles}

    def decorator(view):
        @wraps(view)
        def wrapper(*args, **kwargs):
            user = get_current_user()
            if user is None:
                return jsonify({"error": "Authentication required."}), 401
            if (user.get("role") or "").lower() not in allowed:
                return jsonify({"error": "You do not have permission to perform this action."}), 403
            return view(*args, **kwargs)

        return wrapper

    return decorator


def current_user_id() -> int | None:
    user = get_current_user()
    return None if user is None else int(user["user_id"])


def current_role() -> str:
    user = get_current_user()
    return "" if user is None else (user.get("role") or "").lower()
