# Overview: Flask API routes for auth operations; parses input and returns JSON responses.

# backend/kpi_portal/routes/auth.py
"""
Authentication API routes

Session-cookie based: login stores the user id in the signed Flask
session, logout clears it.
"""

from flask import Blueprint, request, jsonify, current_app, g

from ..models import User
from ..services import access_gate, auth_service
from ..services.identity_store import DuplicateEmailError
from ..decorators import require_auth
from ..stores import get_stores
from ..validation import (
    LOGIN_POLICY,
    REGISTER_POLICY,
    ValidationError,
    enforce_rules_user,
    validate_payload,
)


auth_bp = Blueprint("auth", __name__, url_prefix="/api/auth")


@auth_bp.post("/register")
def register_route():
    """
    Self-registration. New accounts are always operators with no products;
    an admin assigns products later.
    """
    try:
        patch = validate_payload(
            model=User, payload=request.get_json(silent=True), policy=REGISTER_POLICY, partial=False
        )
        enforce_rules_user(patch)

        user = auth_service.register(
            get_stores().identities,
            email=patch["email"],
            password=patch["password"],
            name=patch["name"],
        )
        return jsonify({"message": "Account created successfully", "userId": user.id}), 201

    except (ValidationError, DuplicateEmailError) as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to register user")
        return jsonify({"error": "Failed to create account"}), 500


@auth_bp.post("/login")
def login_route():
    """
    Check credentials and bind the identity to the session.

    Returns the user (without password) and where the client should go next.
    """
    try:
        patch = validate_payload(
            model=User, payload=request.get_json(silent=True), policy=LOGIN_POLICY, partial=False
        )

        user = auth_service.authenticate(get_stores().identities, patch["email"], patch["password"])
        if not user:
            current_app.logger.warning("Failed login for %s from %s", patch["email"], request.remote_addr)
            return jsonify({"error": "Invalid email or password"}), 401

        access_gate.bind_identity(user)

        redirect = "/admin" if user.is_admin else "/dashboard"
        return jsonify({
            "message": "Login successful",
            "redirect": redirect,
            "user": user.to_dict(),
        }), 200

    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to login user")
        return jsonify({"error": "Login failed"}), 500


@auth_bp.post("/logout")
def logout_route():
    access_gate.clear()
    return jsonify({"message": "Logged out successfully"}), 200


@auth_bp.get("/me")
@require_auth
def me_route():
    return jsonify(g.current_user.to_dict())
