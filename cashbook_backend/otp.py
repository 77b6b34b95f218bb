# cashbook_backend/otp.py
"""
One-time codes for account verification and password reset.

A user row carries at most one live code. Its lifecycle:

    register      -> status=pending, purpose=register, attempts=0
    verify (ok)   -> status=verified, code cleared
    request reset -> purpose=reset on a verified user, status untouched
    confirm reset -> password replaced, code cleared

Each check bumps the attempt counter before comparing; once it passes
OTP_MAX_ATTEMPTS the code is wiped and only a fresh code (resend/new
reset request) gets the user going again.
"""
import hmac
import logging
import secrets
import sqlite3
from datetime import datetime, timedelta, timezone

from flask import current_app

from . import db, users
from .errors import (
    AppError,
    AuthError,
    ConflictError,
    NotFoundError,
    RateLimitError,
    ServerError,
    ValidationError,
)
from .models import PURPOSE_REGISTER, PURPOSE_RESET, STATUS_PENDING
from .notifier import DeliveryError, get_notifier
from .permissions import SELF_SERVICE_PERMISSIONS
from .security import get_password_hash, verify_password
from .validation import (
    check_password,
    normalize_email,
    normalize_identifier,
    normalize_mobile,
)

logger = logging.getLogger("cashbook-backend")

GENERIC_RESET_MESSAGE = "OTP sent if account exists"


# ---------------- Failure taxonomy ----------------
class OtpError(AppError):
    pass


class AlreadyVerified(OtpError, ValidationError):
    message = "Account already verified"


class NotPending(OtpError, ValidationError):
    message = "No pending verification"


class CodeMismatch(OtpError, ValidationError):
    message = "Incorrect OTP"


class CodeExpired(OtpError, ValidationError):
    message = "Invalid or expired OTP"


class AttemptsExceeded(OtpError, RateLimitError):
    message = "Too many incorrect attempts"


class AccountNotFound(OtpError, NotFoundError):
    message = "No pending verification"


# ---------------- Helpers ----------------
def utcnow():
    return datetime.now(timezone.utc)


def generate_code(length=None):
    """Zero-padded numeric string; a str so leading zeros survive."""
    length = length or current_app.config["OTP_LENGTH"]
    return f"{secrets.randbelow(10 ** length):0{length}d}"


def _expiry():
    return (utcnow() + timedelta(minutes=current_app.config["OTP_TTL_MINUTES"])).isoformat()


def _is_expired(expires_at):
    if not expires_at:
        return True
    try:
        expires = datetime.fromisoformat(expires_at)
    except ValueError:
        return True
    if expires.tzinfo is None:
        expires = expires.replace(tzinfo=timezone.utc)
    return utcnow() > expires


def _issue(user_id, purpose):
    """Store a fresh code for the user, replacing any live one."""
    code = generate_code()
    db.update_db(
        """UPDATE users
           SET otp_code=?, otp_purpose=?, otp_expires_at=?, otp_attempts=0,
               updated_at=CURRENT_TIMESTAMP
           WHERE id=?""",
        (code, purpose, _expiry(), user_id),
    )
    return code


def _deliver(user, code, purpose):
    try:
        get_notifier().send(user.email, user.mobile, code, purpose)
    except DeliveryError as e:
        logger.error(f"OTP delivery failed for user {user.id}: {e}")
        raise ServerError("Error sending OTP") from e


def _normalize_code(code):
    if code is None:
        raise ValidationError('"otp" is required')
    code = str(code).strip()
    length = current_app.config["OTP_LENGTH"]
    if len(code) != length or not code.isdigit():
        raise ValidationError(f'"otp" must be a {length} digit code')
    return code


def _record_attempt(user_id):
    """Count one attempt atomically and return the new total."""
    with db.transaction() as conn:
        conn.execute(
            "UPDATE users SET otp_attempts = otp_attempts + 1 WHERE id=?",
            (user_id,),
        )
        row = conn.execute("SELECT otp_attempts FROM users WHERE id=?", (user_id,)).fetchone()
    return row["otp_attempts"]


def _check_code(user, purpose, code, missing_error):
    """Apply the expiry / attempt / match rules shared by both flows."""
    max_attempts = current_app.config["OTP_MAX_ATTEMPTS"]

    if user.otp_purpose != purpose:
        raise missing_error()
    if user.otp_code is None:
        if user.otp_attempts > max_attempts:
            raise AttemptsExceeded()
        raise missing_error()
    if _is_expired(user.otp_expires_at):
        raise CodeExpired()

    attempts = _record_attempt(user.id)
    if attempts > max_attempts:
        db.update_db("UPDATE users SET otp_code=NULL WHERE id=?", (user.id,))
        logger.warning(f"User {user.id}: {purpose} OTP invalidated after {attempts - 1} failed attempts")
        raise AttemptsExceeded()

    if not hmac.compare_digest(code, user.otp_code):
        raise CodeMismatch()


# ---------------- Registration ----------------
def register(name, email, mobile, password, confirm_password=None):
    """Create (or refresh) a pending account and send it a code."""
    if not isinstance(name, str) or not name.strip():
        raise ValidationError('"name" is required')
    name = name.strip()
    email = normalize_email(email)
    mobile = normalize_mobile(mobile)
    check_password(password)
    if confirm_password is not None and confirm_password != password:
        raise ValidationError("Passwords do not match")

    existing = users.find_by_email(email)
    if existing and existing.is_verified:
        raise ConflictError("Email already exists")
    users.ensure_available(mobile=mobile, exclude_id=existing.id if existing else None)

    password_hash = get_password_hash(password)
    if existing:
        users.update_fields(existing.id, name=name, mobile=mobile, password_hash=password_hash)
        code = _issue(existing.id, PURPOSE_REGISTER)
        user = users.find_by_id(existing.id)
        logger.info(f"Re-issued registration OTP for pending user {user.id}")
    else:
        code = generate_code()
        try:
            user = users.create_user(
                name, email, mobile, password_hash,
                permissions=SELF_SERVICE_PERMISSIONS,
                status=STATUS_PENDING,
                otp=(code, PURPOSE_REGISTER, _expiry()),
            )
        except sqlite3.IntegrityError:
            raise ConflictError("Email or mobile already exists")

    _deliver(user, code, PURPOSE_REGISTER)
    return user


def verify_registration(email, code):
    """Check a registration code; on success the account becomes verified."""
    email = normalize_email(email)
    code = _normalize_code(code)

    user = users.find_by_email(email)
    if user is None:
        raise AccountNotFound()
    if user.is_verified:
        raise AlreadyVerified()

    _check_code(user, PURPOSE_REGISTER, code, NotPending)

    # compare-and-clear: only one request can win this update
    won = db.update_db(
        """UPDATE users
           SET status='verified', otp_code=NULL, otp_purpose=NULL,
               otp_expires_at=NULL, otp_attempts=0, updated_at=CURRENT_TIMESTAMP
           WHERE id=? AND status='pending' AND otp_purpose=? AND otp_code=?""",
        (user.id, PURPOSE_REGISTER, code),
    )
    if not won:
        raise NotPending()
    logger.info(f"✅ User {user.id} verified")
    return users.find_by_id(user.id)


def resend(email):
    email = normalize_email(email)
    user = users.find_by_email(email)
    if user is None:
        raise AccountNotFound()
    if user.is_verified:
        raise AlreadyVerified()
    code = _issue(user.id, PURPOSE_REGISTER)
    _deliver(user, code, PURPOSE_REGISTER)
    logger.info(f"Resent registration OTP to user {user.id}")
    return user


# ---------------- Password reset ----------------
def request_reset(identifier):
    """Issue a reset code if the account exists. Never reveals whether it does."""
    identifier = normalize_identifier(identifier)
    user = users.find_by_identifier(identifier)
    if user is None or not user.is_verified:
        logger.info(f"Password reset requested for unknown or unverified account '{identifier}'")
        return GENERIC_RESET_MESSAGE

    code = _issue(user.id, PURPOSE_RESET)
    try:
        get_notifier().send(user.email, user.mobile, code, PURPOSE_RESET)
    except DeliveryError as e:
        logger.error(f"Reset OTP delivery failed for user {user.id}: {e}")
    return GENERIC_RESET_MESSAGE


def confirm_reset(identifier, code, new_password):
    identifier = normalize_identifier(identifier)
    code = _normalize_code(code)
    check_password(new_password, field="newPassword")

    user = users.find_by_identifier(identifier)
    if user is None or not user.is_verified:
        raise CodeExpired()

    _check_code(user, PURPOSE_RESET, code, CodeExpired)

    won = db.update_db(
        """UPDATE users
           SET password_hash=?, otp_code=NULL, otp_purpose=NULL,
               otp_expires_at=NULL, otp_attempts=0, updated_at=CURRENT_TIMESTAMP
           WHERE id=? AND otp_purpose=? AND otp_code=?""",
        (get_password_hash(new_password), user.id, PURPOSE_RESET, code),
    )
    if not won:
        raise CodeExpired()
    logger.info(f"🔑 Password reset for user {user.id}")
    return users.find_by_id(user.id)


def change_password(user, current_password, new_password):
    if not verify_password(current_password or "", user.password_hash):
        raise AuthError("Current password incorrect")
    check_password(new_password, field="newPassword")
    users.update_fields(user.id, password_hash=get_password_hash(new_password))
    logger.info(f"User {user.id} changed password")
