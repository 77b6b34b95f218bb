"""Helpers shared by the test modules."""

from flask_jwt_extended import create_access_token

from cashbook_backend import create_app, users
from cashbook_backend.models import STATUS_VERIFIED
from cashbook_backend.notifier import DeliveryError
from cashbook_backend.permissions import SELF_SERVICE_PERMISSIONS
from cashbook_backend.security import get_password_hash

PASSWORD = "password123"

TEST_CONFIG = {
    "TESTING": True,
    "SECRET_KEY": "test-secret",
    "JWT_SECRET_KEY": "test-jwt-secret-key-that-is-long-enough",
    # cheap hashes keep the suite fast
    "PASSWORD_HASH_METHOD": "pbkdf2:sha256:1000",
    "MAIL_SERVER": None,
    "SMS_API_URL": None,
    "LOG_LEVEL": "WARNING",
}


class RecordingNotifier:
    """Stands in for OtpNotifier and keeps every code it was asked to send."""

    def __init__(self):
        self.sent = []
        self.fail = False

    def send(self, email, mobile, code, purpose):
        if self.fail:
            raise DeliveryError("smtp down")
        self.sent.append({"email": email, "mobile": mobile, "code": code, "purpose": purpose})

    def last_code(self, email=None):
        for message in reversed(self.sent):
            if email is None or message["email"] == email:
                return message["code"]
        return None


def make_app(tmp_path, **overrides):
    config = dict(TEST_CONFIG, DB_PATH=str(tmp_path / "cashbook.db"))
    config.update(overrides)
    app = create_app(config)
    app.extensions["otp_notifier"] = RecordingNotifier()
    return app


def make_user(app, name="Alice", email="alice@example.com", mobile="9000000001",
              password=PASSWORD, role="user", permissions=None, manager_id=None,
              status=STATUS_VERIFIED):
    """Insert a user straight into the store, bypassing the OTP flow."""
    with app.app_context():
        return users.create_user(
            name, email, mobile, get_password_hash(password),
            permissions=SELF_SERVICE_PERMISSIONS if permissions is None else permissions,
            role=role,
            status=status,
            manager_id=manager_id,
        )


def auth_headers(app, user):
    with app.app_context():
        token = create_access_token(identity=str(user.id))
    return {"Authorization": f"Bearer {token}"}


def register(client, name="Bob", email="bob@example.com", mobile="9000000002", password=PASSWORD):
    return client.post("/auth/register-request", json={
        "name": name,
        "email": email,
        "mobile": mobile,
        "password": password,
        "confirmPassword": password,
    })


def wrong_code(code):
    return "000000" if code != "000000" else "111111"
