import pytest

from cashbook_backend import db, users
from cashbook_backend.permissions import PERMISSION_KEYS
from tests.helpers import PASSWORD, auth_headers, make_user

MANAGER_PERMISSIONS = {key: True for key in PERMISSION_KEYS}
MEMBER_PERMISSIONS = {
    "canAdd": True,
    "canEdit": False,
    "canDelete": False,
    "canExport": False,
    "canAccessReports": True,
    "canViewTeam": False,
    "canManageUsers": False,
}


@pytest.fixture
def manager(app):
    return make_user(app, name="Meg", email="meg@example.com", mobile="9000000010",
                     role="manager", permissions=MANAGER_PERMISSIONS)


@pytest.fixture
def manager_headers(app, manager):
    return auth_headers(app, manager)


@pytest.fixture
def member(app, manager):
    return make_user(app, name="Ted", email="ted@example.com", mobile="9000000011",
                     permissions=MEMBER_PERMISSIONS, manager_id=manager.id)


@pytest.fixture
def admin(app):
    return make_user(app, name="Root", email="root@example.com", mobile="9000000012",
                     role="admin", permissions={})


@pytest.fixture
def admin_headers(app, admin):
    return auth_headers(app, admin)


class TestManagerTeam:
    """Tests for /manager."""

    def test_add_user(self, app, client, manager, manager_headers):
        resp = client.post("/manager/add-user", headers=manager_headers, json={
            "name": "Newbie",
            "email": "newbie@example.com",
            "mobile": "9000000020",
            "password": PASSWORD,
            "permissions": MEMBER_PERMISSIONS,
        })

        assert resp.status_code == 201
        created = resp.get_json()["user"]
        assert created["manager_id"] == manager.id
        assert created["permissions"] == MEMBER_PERMISSIONS
        with app.app_context():
            assert users.find_by_email("newbie@example.com").is_verified
        login = client.post("/auth/login", json={"identifier": "newbie@example.com", "password": PASSWORD})
        assert login.status_code == 200

    def test_add_user_duplicate_email(self, client, manager_headers, member):
        resp = client.post("/manager/add-user", headers=manager_headers, json={
            "name": "Dup",
            "email": member.email,
            "mobile": "9000000021",
            "password": PASSWORD,
            "permissions": MEMBER_PERMISSIONS,
        })

        assert resp.status_code == 409

    def test_add_user_needs_full_permissions(self, client, manager_headers):
        resp = client.post("/manager/add-user", headers=manager_headers, json={
            "name": "Partial",
            "email": "partial@example.com",
            "mobile": "9000000022",
            "password": PASSWORD,
            "permissions": {"canAdd": True},
        })

        assert resp.status_code == 400

    def test_team_users(self, client, manager_headers, member, user):
        resp = client.get("/manager/team-users", headers=manager_headers)

        assert [u["id"] for u in resp.get_json()] == [member.id]
        assert "password_hash" not in resp.get_json()[0]

    def test_team_transactions(self, app, client, manager_headers, member, user_headers):
        member_headers = auth_headers(app, member)
        client.post("/expenses", headers=member_headers, json={"amount": 20, "category": "Food"})
        client.post("/incomes", headers=member_headers, json={"amount": 90, "category": "Salary"})
        client.post("/expenses", headers=user_headers, json={"amount": 99, "category": "Food"})

        body = client.get("/manager/team-transactions", headers=manager_headers).get_json()

        assert [tx["amount"] for tx in body["expenses"]] == [20]
        assert [tx["amount"] for tx in body["incomes"]] == [90]

    def test_managed_user_details(self, app, client, manager_headers, member):
        client.post("/expenses", headers=auth_headers(app, member), json={"amount": 20, "category": "Food"})

        detail = client.get(f"/manager/user/{member.id}", headers=manager_headers)
        expenses = client.get(f"/manager/user/{member.id}/expenses", headers=manager_headers)
        incomes = client.get(f"/manager/user/{member.id}/incomes", headers=manager_headers)

        assert detail.get_json()["email"] == member.email
        assert len(expenses.get_json()) == 1
        assert incomes.get_json() == []

    def test_strangers_are_hidden(self, client, manager_headers, user):
        assert client.get(f"/manager/user/{user.id}", headers=manager_headers).status_code == 404
        assert client.get(f"/manager/user/{user.id}/expenses", headers=manager_headers).status_code == 403
        assert client.delete(f"/manager/user/{user.id}", headers=manager_headers).status_code == 404

    def test_other_managers_team_is_hidden(self, app, client, member):
        rival = make_user(app, name="Rex", email="rex@example.com", mobile="9000000013",
                          role="manager", permissions=MANAGER_PERMISSIONS)

        resp = client.get(f"/manager/user/{member.id}/incomes", headers=auth_headers(app, rival))

        assert resp.status_code == 403

    def test_plain_user_is_refused(self, client, user_headers):
        resp = client.get("/manager/team-users", headers=user_headers)

        assert resp.status_code == 403
        assert resp.get_json() == {"error": "Access denied"}

    def test_team_views_need_can_view_team(self, app, client):
        limited = make_user(app, name="Lim", email="lim@example.com", mobile="9000000014",
                            role="manager", permissions={"canAdd": True})

        resp = client.get("/manager/team-transactions", headers=auth_headers(app, limited))

        assert resp.status_code == 403

    @pytest.mark.parametrize("wrap", [True, False])
    def test_update_permissions(self, app, client, manager_headers, member, wrap):
        flags = dict(MEMBER_PERMISSIONS, canDelete=True)
        body = {"permissions": flags} if wrap else flags

        resp = client.put(f"/manager/permissions/{member.id}", headers=manager_headers, json=body)

        assert resp.status_code == 200
        with app.app_context():
            stored = users.find_by_id(member.id).to_dict()["permissions"]
        assert stored["canDelete"] is True

    def test_update_permissions_rejects_non_booleans(self, client, manager_headers, member):
        flags = dict(MEMBER_PERMISSIONS, canDelete="yes")

        resp = client.put(f"/manager/permissions/{member.id}", headers=manager_headers, json=flags)

        assert resp.status_code == 400

    def test_delete_member_cascades(self, app, client, manager_headers, member):
        client.post("/expenses", headers=auth_headers(app, member), json={"amount": 20, "category": "Food"})

        resp = client.delete(f"/manager/user/{member.id}", headers=manager_headers)

        assert resp.status_code == 200
        with app.app_context():
            assert users.find_by_id(member.id) is None
            assert db.query_db("SELECT COUNT(*) AS n FROM expenses WHERE user_id=?", (member.id,), one=True)["n"] == 0
            assert db.query_db("SELECT COUNT(*) AS n FROM categories WHERE user_id=?", (member.id,), one=True)["n"] == 0


class TestAdmin:
    """Tests for /admin."""

    def test_list_users_with_manager_name(self, client, admin_headers, member, manager):
        body = client.get("/admin/users", headers=admin_headers).get_json()

        by_email = {u["email"]: u for u in body}
        assert by_email[member.email]["manager_name"] == "Meg"
        assert by_email[manager.email]["manager_name"] is None

    def test_non_admin_is_refused(self, client, manager_headers):
        assert client.get("/admin/users", headers=manager_headers).status_code == 403

    def test_cannot_delete_self(self, client, admin, admin_headers):
        resp = client.delete(f"/admin/users/{admin.id}", headers=admin_headers)

        assert resp.status_code == 400

    def test_delete_unknown_user(self, client, admin_headers):
        assert client.delete("/admin/users/9999", headers=admin_headers).status_code == 404

    def test_delete_manager_detaches_team(self, app, client, admin_headers, manager, member):
        resp = client.delete(f"/admin/users/{manager.id}", headers=admin_headers)

        assert resp.status_code == 200
        with app.app_context():
            assert users.find_by_id(manager.id) is None
            assert users.find_by_id(member.id).manager_id is None

    def test_user_transactions(self, app, client, admin_headers, user, user_headers):
        client.post("/incomes", headers=user_headers, json={"amount": 500, "category": "Salary"})

        incomes = client.get(f"/admin/users/{user.id}/incomes", headers=admin_headers).get_json()
        expenses = client.get(f"/admin/users/{user.id}/expenses", headers=admin_headers).get_json()

        assert [tx["amount"] for tx in incomes] == [500]
        assert expenses == []

    def test_promote_to_manager_grants_team_flags(self, app, client, admin_headers, user):
        resp = client.put(f"/admin/users/{user.id}/role", headers=admin_headers, json={"role": "manager"})

        assert resp.status_code == 200
        with app.app_context():
            promoted = users.find_by_id(user.id)
        assert promoted.role == "manager"
        assert promoted.to_dict()["permissions"]["canViewTeam"] is True
        assert promoted.to_dict()["permissions"]["canAdd"] is True

    def test_update_user(self, app, client, admin_headers, manager, user):
        resp = client.put(f"/admin/users/{user.id}", headers=admin_headers, json={
            "managerId": manager.id,
            "permissions": MEMBER_PERMISSIONS,
        })

        assert resp.status_code == 200
        with app.app_context():
            updated = users.find_by_id(user.id)
        assert updated.manager_id == manager.id
        assert updated.to_dict()["permissions"] == MEMBER_PERMISSIONS

    @pytest.mark.parametrize("body", [
        {"role": "superuser"},
        {"managerId": "abc"},
        {"permissions": {"canAdd": True}},
    ])
    def test_update_user_validation(self, client, admin_headers, user, body):
        resp = client.put(f"/admin/users/{user.id}", headers=admin_headers, json=body)

        assert resp.status_code == 400

    def test_manager_must_have_manager_role(self, client, admin_headers, user, other_user):
        resp = client.put(f"/admin/users/{user.id}", headers=admin_headers, json={"managerId": other_user.id})

        assert resp.status_code == 400


class TestTeamBoundaries:
    """Managers only ever reach accounts with the plain user role."""

    def test_admin_cannot_give_a_manager_a_manager(self, app, client, admin_headers, manager):
        rival = make_user(app, name="Rex", email="rex@example.com", mobile="9000000013",
                          role="manager", permissions=MANAGER_PERMISSIONS)

        resp = client.put(f"/admin/users/{rival.id}", headers=admin_headers, json={"managerId": manager.id})

        assert resp.status_code == 400
        with app.app_context():
            assert users.find_by_id(rival.id).manager_id is None

    def test_promotion_with_manager_is_refused(self, client, admin_headers, manager, user):
        resp = client.put(f"/admin/users/{user.id}", headers=admin_headers,
                          json={"managerId": manager.id, "role": "admin"})

        assert resp.status_code == 400

    def test_promoting_a_member_detaches_them(self, app, client, admin_headers, manager_headers, member):
        resp = client.put(f"/admin/users/{member.id}/role", headers=admin_headers, json={"role": "manager"})

        assert resp.status_code == 200
        with app.app_context():
            assert users.find_by_id(member.id).manager_id is None
        assert client.delete(f"/manager/user/{member.id}", headers=manager_headers).status_code == 404

    def test_linked_admin_is_out_of_reach(self, app, client, manager, manager_headers):
        boss = make_user(app, name="Boss", email="boss@example.com", mobile="9000000015",
                         role="admin", permissions={}, manager_id=manager.id)

        assert client.delete(f"/manager/user/{boss.id}", headers=manager_headers).status_code == 404
        assert client.get(f"/manager/user/{boss.id}/expenses", headers=manager_headers).status_code == 403
        team = client.get("/manager/team-users", headers=manager_headers).get_json()
        assert boss.id not in [u["id"] for u in team]
        with app.app_context():
            assert users.find_by_id(boss.id) is not None
