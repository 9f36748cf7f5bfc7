"""Auth blueprint: /api/auth/*

Handles JSON registration, login, logout and profile reads/updates.
Session cookie auth via Flask-Login. Unsafe methods need the CSRF token
from /api/auth/csrf-token in an X-CSRFToken header.
"""

import logging

import bleach
from flask import Blueprint, current_app, jsonify, request
from flask_login import current_user, login_required, login_user, logout_user
from flask_wtf.csrf import generate_csrf
from werkzeug.security import check_password_hash, generate_password_hash

from storefront.extensions import db, limiter
from storefront.models.audit import AuditEvent
from storefront.models.user import User

logger = logging.getLogger(__name__)

auth_bp = Blueprint("auth", __name__, url_prefix="/api/auth")

# JSON field -> column for PATCH /api/auth/user
_PROFILE_FIELDS = {
    "name": "name",
    "firstName": "first_name",
    "lastName": "last_name",
    "phone": "phone",
    "profileImageUrl": "profile_image_url",
    "instagramLink": "instagram_link",
}


def _clean(value):
    if value is None:
        return None
    return bleach.clean(str(value), tags=[], strip=True).strip() or None


# ──────────────────────────────────────────────
# POST /api/auth/register
# ──────────────────────────────────────────────

@auth_bp.route("/register", methods=["POST"])
@limiter.limit("10 per minute")
def register():
    """Create an account and log it in."""
    data = request.get_json(silent=True) or {}
    email = (data.get("email") or "").lower().strip()
    password = data.get("password") or ""
    name = _clean(data.get("name"))

    # --- Validation ---
    errors = []
    if not email or "@" not in email:
        errors.append("A valid email is required.")
    if not password:
        errors.append("Password is required.")
    elif len(password) < 8:
        errors.append("Password must be at least 8 characters.")
    if email and User.query.filter_by(email=email).first():
        errors.append("An account with this email already exists.")

    if errors:
        return jsonify({"message": errors[0], "errors": errors}), 400

    # --- Create user ---
    user = User(
        email=email,
        password_hash=generate_password_hash(password),
        name=name,
        first_name=_clean(data.get("firstName")),
        last_name=_clean(data.get("lastName")),
        phone=_clean(data.get("phone")),
        is_admin=email in current_app.config.get("ADMIN_EMAILS", []),
    )
    db.session.add(user)
    db.session.flush()  # get user.id

    db.session.add(AuditEvent(
        actor_user_id=user.id,
        subject_user_id=user.id,
        action="user.registered",
        metadata_={"email": email},
    ))
    db.session.commit()

    login_user(user)
    logger.info(f"User registered: {user.id} ({email})")
    return jsonify(user.to_dict()), 201


# ──────────────────────────────────────────────
# POST /api/auth/login
# ──────────────────────────────────────────────

@auth_bp.route("/login", methods=["POST"])
@limiter.limit("15 per minute")
def login():
    """Standard email + password login."""
    data = request.get_json(silent=True) or {}
    email = (data.get("email") or "").lower().strip()
    password = data.get("password") or ""

    if not email or not password:
        return jsonify({"message": "Email and password are required."}), 400

    user = User.query.filter_by(email=email).first()

    if user is None or not check_password_hash(user.password_hash, password):
        logger.info(f"Failed login for {email}")
        return jsonify({"message": "Invalid email or password."}), 401

    if not user.is_active:
        return jsonify({"message": "Your account has been deactivated."}), 403

    login_user(user, remember=bool(data.get("remember")))
    return jsonify(user.to_dict())


# ──────────────────────────────────────────────
# POST /api/auth/logout
# ──────────────────────────────────────────────

@auth_bp.route("/logout", methods=["POST"])
def logout():
    logout_user()
    return jsonify({"message": "Logged out."})


# ──────────────────────────────────────────────
# GET/PATCH /api/auth/user
# ──────────────────────────────────────────────

@auth_bp.route("/user", methods=["GET"])
@login_required
def get_user():
    return jsonify(current_user.to_dict())


@auth_bp.route("/user", methods=["PATCH"])
@login_required
def update_user():
    """Update profile fields. Email and password are not editable here."""
    data = request.get_json(silent=True) or {}
    for key, attr in _PROFILE_FIELDS.items():
        if key in data:
            setattr(current_user, attr, _clean(data[key]))
    db.session.commit()
    return jsonify(current_user.to_dict())


@auth_bp.route("/csrf-token", methods=["GET"])
def csrf_token():
    """Token for the X-CSRFToken header on unsafe requests."""
    return jsonify({"csrfToken": generate_csrf()})
