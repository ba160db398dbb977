# Overview: Access gate; binds identities to the Flask session and checks roles.

"""
Access Gate

The session cookie carries only the user id. Every check re-resolves the
user from the identity store, so a deleted account or a demoted admin loses
access on its next request.
"""

from __future__ import annotations

from flask import session

from ..models import User

SESSION_USER_KEY = "user_id"


class UnauthenticatedError(Exception):
    """No identity bound to the session."""


class ForbiddenError(Exception):
    """Identity lacks the required role."""


def bind_identity(user: User) -> None:
    session.clear()
    session[SESSION_USER_KEY] = user.id
    session.permanent = True


def clear() -> None:
    session.clear()


def current_user_id() -> str | None:
    return session.get(SESSION_USER_KEY)


def require_authenticated(identities) -> User:
    user_id = current_user_id()
    if not user_id:
        raise UnauthenticatedError("Authentication required")
    user = identities.get_by_id(user_id)
    if user is None:
        # account deleted while the session was alive
        clear()
        raise UnauthenticatedError("Authentication required")
    return user


def require_admin(identities) -> User:
    user = require_authenticated(identities)
    if not user.is_admin:
        raise ForbiddenError("Admin access required")
    return user
