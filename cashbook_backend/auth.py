# cashbook_backend/auth.py
import logging

from flask import Blueprint, jsonify
from flask_jwt_extended import current_user, jwt_required

from . import otp, users
from .errors import AuthError
from .permissions import resolve_permissions
from .security import auth_payload, verify_password
from .validation import json_body, normalize_identifier

logger = logging.getLogger("cashbook-backend")

auth_bp = Blueprint("auth", __name__)

# share one per-client window (see security.init_limiter)
RATE_LIMITED_ENDPOINTS = (
    "auth.register_request",
    "auth.resend_otp",
    "auth.request_reset",
    "auth.confirm_reset",
)


# ---------------- Registration & OTP ----------------
@auth_bp.route("/register-request", methods=["POST"])
def register_request():
    data = json_body()
    otp.register(
        data.get("name"),
        data.get("email"),
        data.get("mobile"),
        data.get("password"),
        data.get("confirmPassword"),
    )
    return jsonify({"message": "OTP sent to email"})


@auth_bp.route("/resend-otp", methods=["POST"])
def resend_otp():
    otp.resend(json_body().get("email"))
    return jsonify({"message": "New OTP sent"})


@auth_bp.route("/verify-otp", methods=["POST"])
def verify_otp():
    data = json_body()
    user = otp.verify_registration(data.get("email"), data.get("otp"))
    return jsonify({"message": "Registration complete", **auth_payload(user)})


# ---------------- Login ----------------
@auth_bp.route("/login", methods=["POST"])
def login():
    data = json_body()
    password = data.get("password")
    if not data.get("identifier") or not password:
        return jsonify({"error": "Identifier & password required"}), 400

    user = users.find_by_identifier(normalize_identifier(data.get("identifier")))
    # same answer for "no such user" and "wrong password"
    if user is None or not verify_password(password, user.password_hash):
        logger.info("Failed login attempt")
        raise AuthError("Invalid credentials")
    if not user.is_verified:
        raise AuthError("Account not verified")

    logger.info(f"User {user.id} logged in")
    return jsonify(auth_payload(user))


@auth_bp.route("/verify", methods=["GET"])
@jwt_required()
def verify_token():
    return jsonify({
        "valid": True,
        "user": current_user.to_dict(),
        "permissions": resolve_permissions(current_user.permissions),
    })


@auth_bp.route("/logout", methods=["POST"])
@jwt_required()
def logout():
    # tokens are stateless; the client discards its copy
    return jsonify({"message": "Logged out"})


# ---------------- Forgot password ----------------
@auth_bp.route("/request-reset", methods=["POST"])
def request_reset():
    data = json_body()
    message = otp.request_reset(data.get("identifier") or data.get("email"))
    return jsonify({"message": message})


@auth_bp.route("/confirm-reset", methods=["POST"])
def confirm_reset():
    data = json_body()
    otp.confirm_reset(
        data.get("identifier") or data.get("email"),
        data.get("otp"),
        data.get("newPassword"),
    )
    return jsonify({"message": "Password has been reset. You can now log in."})


# ---------------- Logged-in password change ----------------
@auth_bp.route("/change-password", methods=["POST", "PUT"])
@jwt_required()
def change_password():
    data = json_body()
    otp.change_password(current_user, data.get("currentPassword"), data.get("newPassword"))
    return jsonify({"message": "Password updated successfully"})
