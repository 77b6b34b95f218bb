"""Shared pytest fixtures for all tests."""

import pytest

from tests.helpers import auth_headers, make_app, make_user


@pytest.fixture
def app(tmp_path):
    """Create an app backed by a temporary SQLite file.

    OTP delivery goes to a RecordingNotifier; the app owns its rate limiter,
    so counters start empty.

    Args:
        tmp_path: pytest tmp_path fixture for temporary directory.

    Returns:
        Flask: Configured application.
    """
    return make_app(tmp_path)


@pytest.fixture
def client(app):
    """Flask test client for the app fixture."""
    return app.test_client()


@pytest.fixture
def notifier(app):
    """The RecordingNotifier the app sends codes through."""
    return app.extensions["otp_notifier"]


@pytest.fixture
def app_ctx(app):
    """Push an application context for calling services directly."""
    with app.app_context():
        yield app


@pytest.fixture
def user(app):
    """A verified self-service user (alice@example.com)."""
    return make_user(app)


@pytest.fixture
def user_headers(app, user):
    """Authorization header for the user fixture."""
    return auth_headers(app, user)


@pytest.fixture
def other_user(app):
    """A second verified user who owns nothing the first one does."""
    return make_user(app, name="Carol", email="carol@example.com", mobile="9000000003")


@pytest.fixture
def other_headers(app, other_user):
    """Authorization header for other_user."""
    return auth_headers(app, other_user)
