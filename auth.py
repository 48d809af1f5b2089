"""
Bearer-token guard for write routes.
SKIP_AUTH=true lets every request through as a local dev user.
"""
import hmac
from functools import wraps

from flask import g, jsonify, request

import config

DEV_USER = {"id": "local-dev-user", "email": "dev@localhost"}
API_USER = {"id": "api-token-user", "email": None}


def get_auth_user() -> dict | None:
    if config.SKIP_AUTH:
        return DEV_USER
    header = request.headers.get("Authorization", "")
    if not config.API_TOKEN or not header.startswith("Bearer "):
        return None
    token = header[len("Bearer "):].strip()
    if hmac.compare_digest(token, config.API_TOKEN):
        return API_USER
    return None


def require_auth(view):
    """Return 401 {"error": "Unauthorized"} unless the request is authenticated; sets g.user."""

    @wraps(view)
    def wrapped(*args, **kwargs):
        user = get_auth_user()
        if user is None:
            return jsonify({"error": "Unauthorized"}), 401
        g.user = user
        return view(*args, **kwargs)

    return wrapped
