from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any

from sqlalchemy import JSON, Float, String, Text
from sqlalchemy.orm import DeclarativeMeta

from .models.auth import ROLES
from .models.metrics import KEY_SEPARATOR, PERIOD_TYPES
from .time_utils import parse_iso_date

EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
MIN_PASSWORD_LENGTH = 6


class ValidationError(ValueError):
    """400-level input problem."""


class ConflictError(ValueError):
    """Business rule conflict (e.g., duplicate email)."""


class NotFoundError(LookupError):
    """404-level missing record."""


@dataclass(frozen=True)
class ModelValidationPolicy:
    """
    Central policy layer:
    - writable_fields: payload names clients are allowed to set (security boundary)
    - required_on_create: payload names required for POST, checked in order
    - extra_fields: payload names that are not columns (e.g. a plaintext
      password that the caller hashes); passed through as stripped strings
    """
    writable_fields: tuple[str, ...]
    required_on_create: tuple[str, ...] = ()
    extra_fields: frozenset[str] = field(default_factory=frozenset)


_CAMEL_RE = re.compile(r"(?<!^)(?=[A-Z])")


def column_key(name: str) -> str:
    """Map a camelCase payload name onto its snake_case column key."""
    return _CAMEL_RE.sub("_", name).lower()


def _columns_by_key(model: DeclarativeMeta) -> dict[str, Any]:
    mapper = model.__mapper__
    return {c.key: c for c in mapper.columns}


def _coerce_value(name: str, col, value: Any):
    coltype = col.type

    if value is None:
        return None

    # Floats accept ints and plain numeric strings, never booleans
    if isinstance(coltype, Float):
        if isinstance(value, bool):
            raise ValidationError(f"{name} must be a number")
        if isinstance(value, (int, float)):
            return float(value)
        if isinstance(value, str):
            try:
                return float(value.strip())
            except ValueError:
                raise ValidationError(f"{name} must be a number")
        raise ValidationError(f"{name} must be a number")

    # JSON columns here are always lists of strings
    if isinstance(coltype, JSON):
        if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
            raise ValidationError(f"{name} must be a list of strings")
        return [v.strip() for v in value]

    # Strings / Text (scalars are string-encoded)
    if isinstance(coltype, (String, Text)):
        if isinstance(value, (dict, list)):
            raise ValidationError(f"{name} must be a string")
        if isinstance(value, bool):
            return "true" if value else "false"
        return str(value).strip()

    return value


def validate_payload(
    *,
    model: DeclarativeMeta,
    payload: dict,
    policy: ModelValidationPolicy,
    partial: bool,
) -> dict:
    """
    Validates + normalizes incoming JSON against:
    - SQLAlchemy column metadata (nullable, type, String length)
    - a policy allowlist (writable_fields)
    - required_on_create (if partial=False)
    Returns a cleaned patch dict keyed by column name (extra fields keep
    their payload name).

    partial=False: create semantics (enforce required_on_create)
    partial=True: patch semantics (validate only provided keys)
    """
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    if not partial:
        for name in policy.required_on_create:
            if payload.get(name) is None:
                raise ValidationError(f"{name} is required")

    cols = _columns_by_key(model)

    # Reject unknown / non-writable fields
    for name in payload.keys():
        if name not in policy.writable_fields:
            raise ValidationError(f"Field not allowed: {name}")
        if name not in policy.extra_fields and column_key(name) not in cols:
            raise ValidationError(f"Unknown field: {name}")

    patch: dict = {}

    for name, raw in payload.items():
        if name in policy.extra_fields:
            if raw is None or isinstance(raw, (dict, list)):
                raise ValidationError(f"{name} must be a string")
            patch[name] = str(raw)
            continue

        key = column_key(name)
        col = cols[key]

        # NULL handling
        if raw is None:
            if not col.nullable:
                raise ValidationError(f"{name} cannot be null")
            patch[key] = None
            continue

        val = _coerce_value(name, col, raw)

        # Blank string check for non-nullable text fields
        if isinstance(col.type, (String, Text)) and not col.nullable:
            if isinstance(val, str) and val == "" and key != "value":
                raise ValidationError(f"{name} cannot be blank")

        # Max length check for String(n)
        if isinstance(col.type, String) and col.type.length and isinstance(val, str):
            if len(val) > col.type.length:
                raise ValidationError(f"{name} exceeds max length {col.type.length}")

        patch[key] = val

    return patch


def _check_iso_date(patch: dict, key: str, name: str) -> None:
    if key not in patch:
        return
    try:
        parsed = parse_iso_date(patch[key])
    except ValueError:
        parsed = None
    if parsed is None:
        raise ValidationError(f"{name} must be a date in YYYY-MM-DD format")


def enforce_rules_user(patch: dict) -> None:
    """
    Business rules that are not captured by SQLAlchemy metadata alone.
    Keep these small and centralized.
    """
    if "email" in patch and not EMAIL_RE.match(patch["email"] or ""):
        raise ValidationError("Invalid email address")

    if "password" in patch and len(patch["password"]) < MIN_PASSWORD_LENGTH:
        raise ValidationError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters")

    if "role" in patch and patch["role"] not in ROLES:
        raise ValidationError(f"role must be one of: {', '.join(ROLES)}")

    if "products" in patch:
        # set semantics, first appearance wins
        seen: list[str] = []
        for product_id in patch["products"]:
            if product_id and product_id not in seen:
                seen.append(product_id)
        patch["products"] = seen


def enforce_rules_submission(patch: dict) -> None:
    for key, name in (("product_id", "productId"), ("field_name", "fieldName")):
        if KEY_SEPARATOR in (patch.get(key) or ""):
            raise ValidationError(f"{name} cannot contain '{KEY_SEPARATOR}'")

    if "period_type" in patch and patch["period_type"] not in PERIOD_TYPES:
        raise ValidationError(f"periodType must be one of: {', '.join(PERIOD_TYPES)}")

    _check_iso_date(patch, "period_start", "periodStart")


def enforce_rules_financial(patch: dict) -> None:
    _check_iso_date(patch, "period_start", "periodStart")
    _check_iso_date(patch, "period_end", "periodEnd")

    if "period_start" in patch and "period_end" in patch:
        if patch["period_end"] < patch["period_start"]:
            raise ValidationError("periodEnd must not be before periodStart")


def enforce_rules_deck_request(patch: dict) -> None:
    if "period_type" in patch and patch["period_type"] not in PERIOD_TYPES:
        raise ValidationError(f"periodType must be one of: {', '.join(PERIOD_TYPES)}")

    _check_iso_date(patch, "period_start", "periodStart")


# Policies -------------------------------------------------------------------

REGISTER_POLICY = ModelValidationPolicy(
    writable_fields=("email", "password", "name"),
    required_on_create=("email", "password", "name"),
    extra_fields=frozenset({"password"}),
)

LOGIN_POLICY = ModelValidationPolicy(
    writable_fields=("email", "password"),
    required_on_create=("email", "password"),
    extra_fields=frozenset({"password"}),
)

ADMIN_USER_CREATE_POLICY = ModelValidationPolicy(
    writable_fields=("email", "password", "name", "role", "products"),
    required_on_create=("email", "password", "name", "role"),
    extra_fields=frozenset({"password"}),
)

ADMIN_USER_UPDATE_POLICY = ModelValidationPolicy(
    writable_fields=("name", "role", "products"),
)

SUBMISSION_POLICY = ModelValidationPolicy(
    writable_fields=("productId", "fieldName", "value", "periodType", "periodStart"),
    required_on_create=("productId", "fieldName", "value", "periodType", "periodStart"),
)

FINANCIAL_POLICY = ModelValidationPolicy(
    writable_fields=(
        "periodStart", "periodEnd",
        "revenue", "expenses", "operatingIncome", "operatingMargin",
        "netProfit", "cashBalance", "accountsReceivable", "daysToGetPaid",
    ),
    required_on_create=(
        "periodStart", "periodEnd",
        "revenue", "expenses", "operatingIncome", "operatingMargin",
        "netProfit", "cashBalance", "accountsReceivable", "daysToGetPaid",
    ),
)

DECK_REQUEST_POLICY = ModelValidationPolicy(
    writable_fields=("periodType", "periodStart"),
    required_on_create=("periodType", "periodStart"),
)
