from functools import wraps

from flask import current_app, g, jsonify, request

from jpos.domain.errors import ValidationError


def get_container():
    return current_app.extensions["jpos"]


def json_body() -> dict:
    payload = request.get_json(silent=True)
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise ValidationError("Request body must be a JSON object.")
    return payload


def bearer_token():
    auth_header = request.headers.get("Authorization", "")
    if not auth_header.startswith("Bearer "):
        return None
    return auth_header.split(" ", 1)[1].strip() or None


def require_auth(f):
    """Resolve the bearer token to a user and store it on ``g.current_user``.

    Returns 401 before the view runs when the header is missing or the token
    is unknown or expired.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        token = bearer_token()
        if not token:
            return jsonify({"error": "Authentication required"}), 401

        user = get_container().auth.resolve_token(token)
        if user is None:
            return jsonify({"error": "Invalid or expired token"}), 401

        g.current_user = user
        g.token = token
        return f(*args, **kwargs)

    return decorated_function


def require_permission(action: str):
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            user = getattr(g, "current_user", None)
            if user is None:
                return jsonify({"error": "Authentication required"}), 401
            if not get_container().auth.can(user, action):
                current_app.logger.warning("permission_denied user=%s action=%s path=%s", user.email, action, request.path)
                return jsonify({"error": "Permission denied", "required_permission": action}), 403
            return f(*args, **kwargs)

        return decorated_function
    return decorator
