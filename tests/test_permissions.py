import json

import pytest

from cashbook_backend import db
from cashbook_backend.errors import ValidationError
from cashbook_backend.models import User
from cashbook_backend.permissions import (
    PERMISSION_KEYS,
    dump_permissions,
    has_permission,
    no_permissions,
    parse_permission_payload,
    resolve_permissions,
)
from tests.helpers import auth_headers, make_user


def _user(role="user", permissions=None):
    return User(1, "Test", "t@example.com", "9000000009", "hash", role=role, permissions=permissions)


class TestResolvePermissions:
    """Tests for resolve_permissions()."""

    def test_every_key_is_always_present(self):
        resolved = resolve_permissions({"canAdd": True})

        assert set(resolved) == set(PERMISSION_KEYS)
        assert resolved["canAdd"] is True
        assert all(resolved[k] is False for k in PERMISSION_KEYS if k != "canAdd")

    def test_legacy_can_modify_grants_edit(self):
        assert resolve_permissions({"canModify": True})["canEdit"] is True

    def test_explicit_can_edit_wins_over_legacy_key(self):
        assert resolve_permissions({"canEdit": False, "canModify": True})["canEdit"] is False

    def test_only_literal_true_counts(self):
        resolved = resolve_permissions({"canAdd": "true", "canDelete": 1, "canExport": True})

        assert resolved["canAdd"] is False
        assert resolved["canDelete"] is False
        assert resolved["canExport"] is True

    def test_json_string_is_accepted(self):
        assert resolve_permissions(json.dumps({"canViewTeam": True}))["canViewTeam"] is True

    @pytest.mark.parametrize("raw", [None, "", "{not json", "[1, 2]", 42, ["canAdd"]])
    def test_unreadable_values_resolve_to_nothing(self, raw):
        assert resolve_permissions(raw) == no_permissions()

    def test_dump_writes_resolved_form(self):
        stored = json.loads(dump_permissions({"canModify": True}))

        assert stored["canEdit"] is True
        assert "canModify" not in stored


class TestHasPermission:
    """Tests for has_permission()."""

    def test_user_needs_the_flag(self):
        assert has_permission(_user(permissions={"canAdd": True}), "canAdd") is True
        assert has_permission(_user(permissions={}), "canAdd") is False

    def test_admin_has_everything(self):
        assert has_permission(_user(role="admin", permissions={}), "canManageUsers") is True

    def test_unknown_flag(self):
        with pytest.raises(KeyError):
            has_permission(_user(), "canFly")


class TestParsePermissionPayload:
    """Tests for parse_permission_payload()."""

    def test_valid_payload(self):
        payload = {key: True for key in PERMISSION_KEYS}

        assert parse_permission_payload(payload) == payload

    def test_missing_key(self):
        payload = {key: True for key in PERMISSION_KEYS}
        del payload["canExport"]

        with pytest.raises(ValidationError, match="canExport"):
            parse_permission_payload(payload)

    def test_non_boolean_value(self):
        payload = {key: True for key in PERMISSION_KEYS}
        payload["canAdd"] = "yes"

        with pytest.raises(ValidationError):
            parse_permission_payload(payload)

    def test_not_an_object(self):
        with pytest.raises(ValidationError):
            parse_permission_payload(["canAdd"])


class TestEnforcement:
    """Permission flags gate the transaction endpoints."""

    def test_without_can_add(self, app, client):
        user = make_user(app, permissions={"canEdit": True, "canDelete": True})

        resp = client.post("/expenses", headers=auth_headers(app, user), json={"amount": 10, "category": "Food"})

        assert resp.status_code == 403
        assert resp.get_json() == {"error": "Permission denied"}

    def test_stored_legacy_flag_allows_edit(self, app, client):
        user = make_user(app, permissions={"canAdd": True})
        headers = auth_headers(app, user)
        tx = client.post("/expenses", headers=headers, json={"amount": 10, "category": "Food"}).get_json()
        with app.app_context():
            db.update_db("UPDATE users SET permissions=? WHERE id=?", ('{"canModify": true}', user.id))

        resp = client.put(f"/expenses/{tx['id']}", headers=headers, json={"amount": 12})

        assert resp.status_code == 200
        assert resp.get_json()["amount"] == 12

    def test_without_can_delete(self, app, client):
        user = make_user(app, permissions={"canAdd": True})
        headers = auth_headers(app, user)
        tx = client.post("/incomes", headers=headers, json={"amount": 10, "category": "Salary"}).get_json()

        resp = client.delete(f"/incomes/{tx['id']}", headers=headers)

        assert resp.status_code == 403

    def test_corrupt_stored_permissions_deny(self, app, client):
        user = make_user(app)
        with app.app_context():
            db.update_db("UPDATE users SET permissions='{oops' WHERE id=?", (user.id,))

        resp = client.post("/expenses", headers=auth_headers(app, user), json={"amount": 10, "category": "Food"})

        assert resp.status_code == 403

    def test_reading_needs_no_flag(self, app, client):
        user = make_user(app, permissions={})

        resp = client.get("/expenses", headers=auth_headers(app, user))

        assert resp.status_code == 200
