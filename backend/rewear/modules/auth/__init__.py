from flask import Blueprint, g

from ...errors import AuthenticationRequiredError, NotAuthorizedError

bp = Blueprint("auth", __name__, url_prefix="/auth")


def current_user():
    return getattr(g, "current_user", None)


def require_user():
    """Return the authenticated, active user or raise AuthenticationRequiredError."""
    user = current_user()
    if user is None:
        raise AuthenticationRequiredError()
    return user


def require_admin():
    user = require_user()
    if not user.is_admin:
        raise NotAuthorizedError("Admin access required")
    return user


from . import routes  # noqa: E402,F401
