# Overview: Request decorators for API routes.

from functools import wraps
from flask import request, jsonify, g

ACTOR_HEADER = "X-User-Id"


def require_actor(f):
    """
    Require the authenticated actor established by the auth layer.

    The gateway in front of this service authenticates the caller and
    forwards the user id in the X-User-Id header. Sets:
    - g.actor_id: the acting user's id (int)

    Returns 401 if the header is missing or not an integer.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        raw = (request.headers.get(ACTOR_HEADER) or "").strip()
        if not raw:
            return jsonify({"error": "Authentication required"}), 401
        if not raw.isdigit():
            return jsonify({"error": "Invalid actor id"}), 401

        g.actor_id = int(raw)
        return f(*args, **kwargs)

    return decorated_function
