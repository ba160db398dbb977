# Overview: Request decorators for API routes; authentication and admin gating.

from functools import wraps
from flask import request, jsonify, g, current_app

from .services import access_gate
from .services.access_gate import ForbiddenError, UnauthenticatedError
from .stores import get_stores


def require_auth(f):
    """
    Require a session-bound identity.

    Sets g.current_user to the authenticated User.
    Returns 401 before the handler runs when there is none.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        try:
            g.current_user = access_gate.require_authenticated(get_stores().identities)
        except UnauthenticatedError as e:
            return jsonify({"error": str(e)}), 401
        return f(*args, **kwargs)

    return decorated_function


def require_admin(f):
    """
    Require an authenticated admin.

    401 without a session identity, 403 for any other role. No data is
    touched by the handler in either case.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        try:
            g.current_user = access_gate.require_admin(get_stores().identities)
        except UnauthenticatedError as e:
            return jsonify({"error": str(e)}), 401
        except ForbiddenError as e:
            current_app.logger.warning(
                "Admin access denied for user %s on %s %s",
                access_gate.current_user_id(), request.method, request.path,
            )
            return jsonify({"error": str(e)}), 403
        return f(*args, **kwargs)

    return decorated_function
