"""
Custom route decorators for access control.

- admin_required: ensures user is logged in AND has is_admin=True.
- payment_tools_enabled: payment tooling routes answer 503 unless
  PAYMENT_TOOLS_ENABLED is set. Checked before authentication.
"""

import logging
from functools import wraps

from flask import abort, current_app, jsonify, request
from flask_login import current_user, login_required

logger = logging.getLogger(__name__)


def admin_required(f):
    """Require login + is_admin flag."""

    @wraps(f)
    @login_required
    def decorated(*args, **kwargs):
        if not current_user.is_admin:
            abort(403)
        return f(*args, **kwargs)

    return decorated


def payment_tools_enabled(f):
    """Disable a payment tooling route unless explicitly switched on."""

    @wraps(f)
    def decorated(*args, **kwargs):
        if not current_app.config.get("PAYMENT_TOOLS_ENABLED"):
            logger.warning(f"Blocked call to disabled payment tool {request.path}")
            return jsonify({
                "error": "Endpoint disabled for security",
                "message": "Use webhook verification for payments only",
            }), 503
        return f(*args, **kwargs)

    return decorated
