# Overview: Flask API routes for admin operations; parses input and returns JSON responses.

# backend/kpi_portal/routes/admin.py
"""
Admin routes.

Provides endpoints for:
- User management (list, create, update, delete)
- Submission review for a period
- Deck generation (request, list, cancel)
- Monthly financial records (list, get, upsert)

Every endpoint requires an authenticated admin.
"""

from flask import Blueprint, request, jsonify, g, current_app

from ..models import DeckGeneration, FinancialRecord, User
from ..models.decks import STATUS_PENDING
from ..services import auth_service, user_admin_service
from ..services.deck_tracker import InvalidTransitionError
from ..services.identity_store import DuplicateEmailError
from ..services.user_admin_service import SelfDeletionForbiddenError
from ..decorators import require_admin
from ..stores import get_stores
from ..validation import (
    ADMIN_USER_CREATE_POLICY,
    ADMIN_USER_UPDATE_POLICY,
    DECK_REQUEST_POLICY,
    FINANCIAL_POLICY,
    NotFoundError,
    ValidationError,
    enforce_rules_deck_request,
    enforce_rules_financial,
    enforce_rules_user,
    validate_payload,
)

admin_bp = Blueprint("admin", __name__, url_prefix="/api/admin")

ADMIN_GENERATIONS_LIMIT = 20


# =============================================================================
# USER MANAGEMENT
# =============================================================================

@admin_bp.get("/users")
@require_admin
def list_users():
    users = get_stores().identities.list_all()
    return jsonify([u.to_dict() for u in users])


@admin_bp.post("/users")
@require_admin
def create_user():
    """
    Create a user with any role and product set.

    Request body:
    - email, password, name, role: required
    - products: list of product ids (optional, default [])
    """
    try:
        patch = validate_payload(
            model=User,
            payload=request.get_json(silent=True),
            policy=ADMIN_USER_CREATE_POLICY,
            partial=False,
        )
        enforce_rules_user(patch)

        user = auth_service.create_user(
            get_stores().identities,
            email=patch["email"],
            password=patch["password"],
            name=patch["name"],
            role=patch["role"],
            products=patch.get("products"),
        )
        current_app.logger.info("Admin %s created user %s (%s)", g.current_user.email, user.email, user.role)
        return jsonify(user.to_dict()), 201

    except (ValidationError, DuplicateEmailError) as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to create user")
        return jsonify({"error": "Failed to create user"}), 500


@admin_bp.patch("/users/<user_id>")
@require_admin
def update_user(user_id: str):
    """
    Update name, role and/or products. Only supplied fields change.
    """
    try:
        patch = validate_payload(
            model=User,
            payload=request.get_json(silent=True),
            policy=ADMIN_USER_UPDATE_POLICY,
            partial=True,
        )
        enforce_rules_user(patch)

        user = user_admin_service.update_user(get_stores().identities, user_id, patch)
        return jsonify(user.to_dict())

    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except Exception:
        current_app.logger.exception("Failed to update user")
        return jsonify({"error": "Failed to update user"}), 500


@admin_bp.delete("/users/<user_id>")
@require_admin
def delete_user(user_id: str):
    try:
        user_admin_service.delete_user(get_stores().identities, g.current_user, user_id)
        current_app.logger.info("Admin %s deleted user %s", g.current_user.email, user_id)
        return jsonify({"message": "User deleted successfully"})

    except SelfDeletionForbiddenError as e:
        return jsonify({"error": str(e)}), 400
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except Exception:
        current_app.logger.exception("Failed to delete user")
        return jsonify({"error": "Failed to delete user"}), 500


# =============================================================================
# SUBMISSION REVIEW
# =============================================================================

@admin_bp.get("/submissions")
@require_admin
def list_period_submissions():
    """Every product's submissions for one period."""
    period_type = request.args.get("periodType")
    period_start = request.args.get("periodStart")

    if not all([period_type, period_start]):
        return jsonify({"error": "Missing required parameters"}), 400

    submissions = get_stores().submissions.list_by_period(period_type, period_start)
    return jsonify([s.to_dict() for s in submissions])


# =============================================================================
# DECK GENERATION
# =============================================================================

@admin_bp.get("/generations")
@require_admin
def list_generations():
    try:
        stores = get_stores()
        # jobs lost to a restart would otherwise stay pending
        stores.deck_jobs.reap_stale()
        generations = stores.generations.list_recent(ADMIN_GENERATIONS_LIMIT)
        return jsonify([gen.to_dict() for gen in generations])
    except Exception:
        current_app.logger.exception("Failed to fetch generations")
        return jsonify({"error": "Failed to fetch generations"}), 500


@admin_bp.post("/generate-deck")
@require_admin
def generate_deck():
    """
    Record a pending generation and hand it to the job runner.

    Request body: periodType, periodStart.
    The response carries the generation as created (status "pending").
    """
    try:
        patch = validate_payload(
            model=DeckGeneration,
            payload=request.get_json(silent=True),
            policy=DECK_REQUEST_POLICY,
            partial=False,
        )
        enforce_rules_deck_request(patch)

        stores = get_stores()
        generation = stores.generations.create({
            "generated_by": g.current_user.email,
            "period_type": patch["period_type"],
            "period_start": patch["period_start"],
            "slides_url": None,
            "status": STATUS_PENDING,
        })
        created = generation.to_dict()

        stores.deck_jobs.submit(generation.id)

        return jsonify({"message": "Deck generation started", "generation": created})

    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to generate deck")
        return jsonify({"error": "Failed to generate deck"}), 500


@admin_bp.post("/generations/<generation_id>/cancel")
@require_admin
def cancel_generation(generation_id: str):
    try:
        generation = get_stores().deck_jobs.cancel(generation_id)
        if generation is None:
            return jsonify({"error": "Generation not found"}), 404
        return jsonify(generation.to_dict())

    except InvalidTransitionError as e:
        return jsonify({"error": str(e)}), 409
    except Exception:
        current_app.logger.exception("Failed to cancel generation")
        return jsonify({"error": "Failed to cancel generation"}), 500


# =============================================================================
# FINANCIAL RECORDS
# =============================================================================

@admin_bp.get("/financials")
@require_admin
def list_financials():
    records = get_stores().financials.list_all()
    return jsonify([r.to_dict() for r in records])


@admin_bp.get("/financials/<period>")
@require_admin
def get_financial(period: str):
    """`period` is "YYYY-MM" (a full date is truncated to its month)."""
    record = get_stores().financials.get(period)
    if record is None:
        return jsonify({"error": "Financial record not found"}), 404
    return jsonify(record.to_dict())


@admin_bp.post("/financials")
@require_admin
def upsert_financial():
    """
    Create or overwrite the record for periodStart's calendar month.

    All eight metrics plus periodStart/periodEnd are required; the previous
    values for that month are replaced entirely.
    """
    try:
        patch = validate_payload(
            model=FinancialRecord,
            payload=request.get_json(silent=True),
            policy=FINANCIAL_POLICY,
            partial=False,
        )
        enforce_rules_financial(patch)
        patch["updated_by"] = g.current_user.email

        record = get_stores().financials.upsert(patch)
        return jsonify(record.to_dict())

    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to save financial record")
        return jsonify({"error": "Failed to save financial record"}), 500
