# Overview: Admin user management rules on top of the identity store.

from __future__ import annotations

from ..models import User
from ..validation import NotFoundError


class SelfDeletionForbiddenError(Exception):
    """An admin tried to delete their own account."""


def update_user(identities, user_id: str, fields: dict) -> User:
    user = identities.update(user_id, fields)
    if user is None:
        raise NotFoundError("User not found")
    return user


def delete_user(identities, actor: User, user_id: str) -> None:
    """
    Delete `user_id` on behalf of `actor`.

    Self-deletion is refused unconditionally, including for the last admin.
    """
    if user_id == actor.id:
        raise SelfDeletionForbiddenError("Cannot delete your own account")
    if not identities.delete(user_id):
        raise NotFoundError("User not found")
