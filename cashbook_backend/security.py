# cashbook_backend/security.py
import logging
from functools import wraps

from flask import current_app
from flask_jwt_extended import (
    JWTManager,
    create_access_token,
    current_user,
    get_jwt_identity,
)
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address
from werkzeug.security import check_password_hash, generate_password_hash

from .errors import ForbiddenError, error_response
from .permissions import has_permission, resolve_permissions

logger = logging.getLogger("cashbook-backend")

jwt = JWTManager()

AUTH_LIMIT_SCOPE = "auth"


# ---------------- Passwords ----------------
def get_password_hash(password):
    method = current_app.config.get("PASSWORD_HASH_METHOD")
    if method:
        return generate_password_hash(password, method=method)
    return generate_password_hash(password)


def verify_password(plain_password, hashed_password):
    if not plain_password or not hashed_password:
        return False
    return check_password_hash(hashed_password, plain_password)


# ---------------- Tokens ----------------
def issue_token(user):
    """Signed, time-bounded bearer token; there is no server-side session."""
    return create_access_token(
        identity=str(user.id),
        additional_claims={"role": user.role, "name": user.name, "email": user.email},
    )


def auth_payload(user):
    return {
        "token": issue_token(user),
        "user": {
            "id": user.id,
            "name": user.name,
            "email": user.email,
            "mobile": user.mobile,
            "role": user.role,
        },
        "permissions": resolve_permissions(user.permissions),
    }


def init_jwt(app):
    jwt.init_app(app)

    @jwt.user_lookup_loader
    def load_user(_jwt_header, jwt_data):
        from .users import find_by_id

        try:
            user_id = int(jwt_data["sub"])
        except (TypeError, ValueError):
            return None
        return find_by_id(user_id)

    @jwt.user_lookup_error_loader
    def user_gone(_jwt_header, _jwt_data):
        return error_response("User no longer exists", 401)

    @jwt.unauthorized_loader
    def missing_token(reason):
        return error_response("No token. Access denied", 401)

    @jwt.invalid_token_loader
    def bad_token(reason):
        return error_response("Invalid or expired token", 401)

    @jwt.expired_token_loader
    def expired_token(_jwt_header, _jwt_data):
        return error_response("Invalid or expired token", 401)


def init_limiter(app, endpoints):
    """Attach a Limiter owned by this app and put ``endpoints`` under the shared auth limit.

    Counters live in the storage named by RATELIMIT_STORAGE_URI, one store per
    app, so creating a second app never touches the first one's window.
    """
    limiter = Limiter(get_remote_address, app=app)
    auth_limit = limiter.shared_limit(
        lambda: current_app.config["AUTH_RATE_LIMIT"], scope=AUTH_LIMIT_SCOPE
    )
    for endpoint in endpoints:
        app.view_functions[endpoint] = auth_limit(app.view_functions[endpoint])
    app.extensions["auth_limiter"] = limiter
    return limiter


def current_user_id():
    return int(get_jwt_identity())


# ---------------- Access decorators ----------------
# Both expect to sit under @jwt_required().
def role_required(*roles):
    def decorator(fn):
        @wraps(fn)
        def wrapper(*args, **kwargs):
            if current_user.role not in roles:
                logger.warning(f"User {current_user.id} ({current_user.role}) denied: needs {roles}")
                raise ForbiddenError("Access denied")
            return fn(*args, **kwargs)
        return wrapper
    return decorator


def permission_required(flag):
    def decorator(fn):
        @wraps(fn)
        def wrapper(*args, **kwargs):
            if not has_permission(current_user, flag):
                logger.warning(f"User {current_user.id} denied: missing {flag}")
                raise ForbiddenError("Permission denied")
            return fn(*args, **kwargs)
        return wrapper
    return decorator
