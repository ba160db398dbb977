# Overview: Identity store; user records with a case-insensitive unique email index.

"""
Identity Store

Users are addressed by opaque id; `email_normalized` is the secondary index.
The index lives in the same row as the record, so creating, repointing
(email change) and removing the index entry are single row writes and can
never leave a dangling or duplicate entry. The unique constraint on
`email_normalized` is the final arbiter when two writers race for the same
address; the loser gets DuplicateEmailError.
"""

from __future__ import annotations

from sqlalchemy.exc import IntegrityError

from ..models import User
from ..models.auth import ROLE_OPERATOR, new_id, normalize_email
from ..time_utils import utcnow
from ..validation import ConflictError

USER_FIELDS = ("email", "password_hash", "name", "role", "products")


class DuplicateEmailError(ConflictError):
    """Another account already uses this email (case-insensitive)."""

    def __init__(self, email: str):
        super().__init__("Email already registered")
        self.email = email


class IdentityStore:
    def __init__(self, db):
        self.db = db

    @property
    def session(self):
        return self.db.session

    def get_by_id(self, user_id: str) -> User | None:
        if not user_id:
            return None
        return self.session.get(User, user_id)

    def get_by_email(self, email: str) -> User | None:
        normalized = normalize_email(email)
        if not normalized:
            return None
        return self.session.query(User).filter_by(email_normalized=normalized).first()

    def create(self, draft: dict) -> User:
        """
        Insert a new user. `draft` carries email, password_hash, name and
        optionally role/products; id and created_at are assigned here.
        """
        email = draft["email"]
        if self.get_by_email(email) is not None:
            raise DuplicateEmailError(email)

        user = User(
            id=new_id(),
            email=email,
            email_normalized=normalize_email(email),
            password_hash=draft["password_hash"],
            name=draft["name"],
            role=draft.get("role") or ROLE_OPERATOR,
            products=list(draft.get("products") or []),
            created_at=utcnow(),
        )
        self.session.add(user)
        self._commit_or_duplicate(email)
        return user

    def update(self, user_id: str, fields: dict) -> User | None:
        """Merge `fields` over the stored user. Unknown keys are ignored."""
        user = self.get_by_id(user_id)
        if user is None:
            return None

        if "email" in fields and fields["email"] is not None:
            new_email = fields["email"]
            new_normalized = normalize_email(new_email)
            if new_normalized != user.email_normalized:
                holder = self.get_by_email(new_email)
                if holder is not None and holder.id != user.id:
                    raise DuplicateEmailError(new_email)
            user.email = new_email
            user.email_normalized = new_normalized

        for key in USER_FIELDS:
            if key == "email" or key not in fields or fields[key] is None:
                continue
            value = fields[key]
            if key == "products":
                value = list(value)
            setattr(user, key, value)

        self._commit_or_duplicate(user.email)
        return user

    def delete(self, user_id: str) -> bool:
        user = self.get_by_id(user_id)
        if user is None:
            return False
        self.session.delete(user)
        self.session.commit()
        return True

    def list_all(self) -> list[User]:
        return self.session.query(User).order_by(User.created_at).all()

    def _commit_or_duplicate(self, email: str) -> None:
        try:
            self.session.commit()
        except IntegrityError:
            self.session.rollback()
            raise DuplicateEmailError(email)
