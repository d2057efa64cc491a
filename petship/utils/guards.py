# petship/utils/guards.py

from __future__ import annotations

from functools import wraps
from typing import Callable, Any

from flask import abort
from flask_login import login_required, current_user

from petship.models import STAFF_ROLES


def is_staff(user) -> bool:
    """Admins and staff see and manage every row; clients/partners are scoped."""
    if not user:
        return False
    return (getattr(user, "role", None) or "") in STAFF_ROLES


def admin_required(view: Callable[..., Any]) -> Callable[..., Any]:
    """
    Allow only admin.
    Returns 403 for all other logged-in roles.
    """
    @wraps(view)
    @login_required
    def wrapped(*args, **kwargs):
        if getattr(current_user, "role", None) != "admin":
            abort(403)
        return view(*args, **kwargs)

    return wrapped


def staff_required(view: Callable[..., Any]) -> Callable[..., Any]:
    """Allow admin and staff."""
    @wraps(view)
    @login_required
    def wrapped(*args, **kwargs):
        if not is_staff(current_user):
            abort(403)
        return view(*args, **kwargs)

    return wrapped

