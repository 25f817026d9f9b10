from collections.abc import Callable
from functools import wraps
from typing import Any

from flask import abort, g, jsonify

from app.recon.models import User


def user_has_permission(user: User | None, permission_key: str) -> bool:
    if not user or not user.is_active:
        return False
    for role in user.roles:
        for perm in role.permissions:
            if perm.key == permission_key:
                return True
    return False


def current_dealership_id() -> str:
    """Tenant of the signed-in user. Every admin request is scoped by it."""
    user: User | None = getattr(g, "current_user", None)
    if not user or not user.dealership_id:
        abort(403)
    return user.dealership_id


def require_permission(permission_key: str) -> Callable[[Callable[..., Any]], Callable[..., Any]]:
    def decorator(fn: Callable[..., Any]) -> Callable[..., Any]:
        @wraps(fn)
        def wrapped(*args: Any, **kwargs: Any):
            user: User | None = getattr(g, "current_user", None)
            # Unauthenticated -> 401 (JSON API; the UI handles the redirect).
            if not user or not user.is_active:
                return jsonify({"error": "Authentication required"}), 401
            # Signed in but no tenant or no permission -> 403
            if not user.dealership_id or not user_has_permission(user, permission_key):
                g.missing_permission = permission_key
                abort(403)
            return fn(*args, **kwargs)

        return wrapped

    return decorator
