from __future__ import annotations

import uuid

from ..extensions import db
from ..time_utils import utcnow, to_utc_z

ROLE_ADMIN = "admin"
ROLE_OPERATOR = "operator"
ROLES = (ROLE_ADMIN, ROLE_OPERATOR)


def new_id() -> str:
    return str(uuid.uuid4())


def normalize_email(email: str) -> str:
    return (email or "").strip().lower()


class User(db.Model):
    """
    Portal accounts.

    Email uniqueness is case-insensitive: `email` keeps the address as typed,
    `email_normalized` is the lower-cased lookup index and carries the
    unique constraint.

    `products` is the set of product ids the user may report on, stored as a
    JSON list of strings. Product ids are resolved against the static catalog
    outside this service.
    """
    __tablename__ = "users"
    __table_args__ = (
        db.UniqueConstraint("email_normalized", name="uq_users_email_normalized"),
    )

    id = db.Column(db.String(36), primary_key=True, default=new_id)

    email = db.Column(db.String(255), nullable=False)
    email_normalized = db.Column(db.String(255), nullable=False, index=True)

    # Bcrypt hashed password
    password_hash = db.Column(db.String(255), nullable=False)

    name = db.Column(db.String(255), nullable=False)
    role = db.Column(db.String(16), nullable=False, default=ROLE_OPERATOR)
    products = db.Column(db.JSON, nullable=False, default=list)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    @property
    def is_admin(self) -> bool:
        return self.role == ROLE_ADMIN

    def to_dict(self) -> dict:
        # password hash is never serialized
        return {
            "id": self.id,
            "email": self.email,
            "name": self.name,
            "role": self.role,
            "products": list(self.products or []),
            "createdAt": to_utc_z(self.created_at),
        }

    def __repr__(self) -> str:
        return f"<User {self.email} ({self.role})>"
