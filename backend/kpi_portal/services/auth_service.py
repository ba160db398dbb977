# Overview: Service-layer operations for auth; password hashing, registration and credential checks.

"""
Authentication Service

Passwords are hashed with bcrypt. The cost factor comes from the
BCRYPT_ROUNDS setting (12 in production, lower in tests).
"""

import bcrypt
from flask import current_app, has_app_context

from ..models import User
from ..models.auth import ROLE_OPERATOR
from ..validation import MIN_PASSWORD_LENGTH, ValidationError

DEFAULT_ROUNDS = 12


def validate_password_strength(password: str) -> None:
    if len(password or "") < MIN_PASSWORD_LENGTH:
        raise ValidationError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters")


def hash_password(password: str) -> str:
    validate_password_strength(password)
    rounds = current_app.config.get("BCRYPT_ROUNDS", DEFAULT_ROUNDS) if has_app_context() else DEFAULT_ROUNDS
    salt = bcrypt.gensalt(rounds=rounds)
    hashed = bcrypt.hashpw(password.encode('utf-8'), salt)
    return hashed.decode('utf-8')  # Store as string in database


def verify_password(password: str, password_hash: str) -> bool:
    """
    Verify password against bcrypt hash.

    Returns False for a malformed hash instead of raising.
    """
    try:
        return bcrypt.checkpw(password.encode('utf-8'), password_hash.encode('utf-8'))
    except ValueError:
        return False


def register(identities, email: str, password: str, name: str) -> User:
    """Self-registration: always an operator with no products."""
    return identities.create({
        "email": email,
        "password_hash": hash_password(password),
        "name": name,
        "role": ROLE_OPERATOR,
        "products": [],
    })


def create_user(identities, email: str, password: str, name: str, role: str, products=None) -> User:
    """Admin creation: any role and product set."""
    return identities.create({
        "email": email,
        "password_hash": hash_password(password),
        "name": name,
        "role": role,
        "products": list(products or []),
    })


def authenticate(identities, email: str, password: str) -> User | None:
    user = identities.get_by_email(email)
    if user is None:
        return None
    if verify_password(password, user.password_hash):
        return user
    return None
