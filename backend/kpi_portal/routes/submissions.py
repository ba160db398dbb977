# Overview: Flask API routes for KPI submissions and reporting periods.

from flask import Blueprint, request, jsonify, current_app, g

from ..models import Submission
from ..decorators import require_auth
from ..stores import get_stores
from ..time_utils import current_month_start, current_week_start
from ..validation import (
    SUBMISSION_POLICY,
    ValidationError,
    enforce_rules_submission,
    validate_payload,
)


submissions_bp = Blueprint("submissions", __name__, url_prefix="/api")


@submissions_bp.get("/periods/current")
@require_auth
def current_periods():
    """Start dates of the current weekly and monthly reporting periods."""
    return jsonify({
        "weekly": current_week_start(),
        "monthly": current_month_start(),
    })


@submissions_bp.get("/submissions")
@require_auth
def list_submissions():
    """
    Submissions for one product and period.

    Query params (all required):
    - productId
    - periodType: weekly | monthly
    - periodStart: YYYY-MM-DD
    """
    product_id = request.args.get("productId")
    period_type = request.args.get("periodType")
    period_start = request.args.get("periodStart")

    if not all([product_id, period_type, period_start]):
        return jsonify({"error": "Missing required parameters"}), 400

    try:
        submissions = get_stores().submissions.list_by_product(product_id, period_type, period_start)
        return jsonify([s.to_dict() for s in submissions])
    except Exception:
        current_app.logger.exception("Failed to fetch submissions")
        return jsonify({"error": "Failed to fetch submissions"}), 500


@submissions_bp.post("/submissions")
@require_auth
def upsert_submission():
    """
    Create or overwrite the value for (productId, fieldName, periodStart).

    Request body: productId, fieldName, value, periodType, periodStart.
    The writer's email comes from the session, never from the body.
    """
    try:
        patch = validate_payload(
            model=Submission,
            payload=request.get_json(silent=True),
            policy=SUBMISSION_POLICY,
            partial=False,
        )
        enforce_rules_submission(patch)
        patch["user_email"] = g.current_user.email

        submission = get_stores().submissions.upsert(patch)
        return jsonify(submission.to_dict())

    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to save submission")
        return jsonify({"error": "Failed to save submission"}), 500
