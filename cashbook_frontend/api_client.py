# cashbook_frontend/api_client.py
"""
Thin HTTP wrapper around the cashbook backend.

Attaches the bearer token to every request, turns error envelopes into
ApiError and forgets the token as soon as the server answers 401.
"""
import logging
import os

import requests

from .permissions import normalize_permissions

logger = logging.getLogger("cashbook-frontend")

API_BASE = os.environ.get("CASHBOOK_API_URL", "http://localhost:5000")
DEFAULT_TIMEOUT = 15


class ApiError(Exception):
    def __init__(self, status, message):
        super().__init__(f"{status}: {message}")
        self.status = status
        self.message = message


class SessionExpired(ApiError):
    """The server rejected the token; the client has already discarded it."""


class CashbookClient:
    def __init__(self, base_url=API_BASE, token=None, timeout=DEFAULT_TIMEOUT, session=None):
        self.base_url = base_url.rstrip("/")
        self.token = token
        self.timeout = timeout
        self.session = session or requests.Session()
        self.user = None
        self._permissions = None

    # ---------------- Transport ----------------
    def request(self, method, path, json=None, params=None, raw=False):
        headers = {}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        url = self.base_url + path

        try:
            response = self.session.request(
                method.upper(), url, headers=headers, json=json, params=params, timeout=self.timeout
            )
        except requests.RequestException as e:
            logger.error(f"❌ Connection failed: {e}")
            raise ApiError(None, "Network error, please try again") from e

        if response.status_code == 401:
            self.logout()
            raise SessionExpired(401, self._error_message(response))
        if response.status_code >= 400:
            raise ApiError(response.status_code, self._error_message(response))
        return response.text if raw else response.json()

    @staticmethod
    def _error_message(response):
        try:
            data = response.json()
        except ValueError:
            return response.text or response.reason
        if isinstance(data, dict) and data.get("error"):
            return data["error"]
        return response.reason

    def _store_session(self, data):
        self.token = data.get("token")
        self.user = data.get("user")
        self._permissions = data.get("permissions")
        return data

    def logout(self):
        self.token = None
        self.user = None
        self._permissions = None

    # ---------------- Auth ----------------
    def register(self, name, email, mobile, password, confirm_password=None):
        body = {"name": name, "email": email, "mobile": mobile, "password": password}
        if confirm_password is not None:
            body["confirmPassword"] = confirm_password
        return self.request("POST", "/auth/register-request", json=body)

    def verify_otp(self, email, otp):
        return self._store_session(self.request("POST", "/auth/verify-otp", json={"email": email, "otp": otp}))

    def resend_otp(self, email):
        return self.request("POST", "/auth/resend-otp", json={"email": email})

    def login(self, identifier, password):
        data = self.request("POST", "/auth/login", json={"identifier": identifier, "password": password})
        return self._store_session(data)

    def verify_session(self):
        return self.request("GET", "/auth/verify")

    def request_reset(self, identifier):
        return self.request("POST", "/auth/request-reset", json={"identifier": identifier})

    def confirm_reset(self, identifier, otp, new_password):
        return self.request(
            "POST", "/auth/confirm-reset",
            json={"identifier": identifier, "otp": otp, "newPassword": new_password},
        )

    def change_password(self, current_password, new_password):
        return self.request(
            "PUT", "/auth/change-password",
            json={"currentPassword": current_password, "newPassword": new_password},
        )

    def permissions(self):
        """Every capability flag as a bool, whatever shape the server sent."""
        return normalize_permissions(self._permissions)

    # ---------------- Expenses / incomes ----------------
    def list_expenses(self, **filters):
        return self.request("GET", "/expenses", params=filters or None)

    def add_expense(self, amount, category, date=None, method="Cash", note=None):
        return self.request("POST", "/expenses", json=_transaction(amount, category, date, method, note))

    def update_expense(self, expense_id, **fields):
        return self.request("PUT", f"/expenses/{expense_id}", json=fields)

    def delete_expense(self, expense_id):
        return self.request("DELETE", f"/expenses/{expense_id}")

    def list_incomes(self, **filters):
        return self.request("GET", "/incomes", params=filters or None)

    def add_income(self, amount, category, date=None, method="Cash", note=None):
        return self.request("POST", "/incomes", json=_transaction(amount, category, date, method, note))

    def update_income(self, income_id, **fields):
        return self.request("PUT", f"/incomes/{income_id}", json=fields)

    def delete_income(self, income_id):
        return self.request("DELETE", f"/incomes/{income_id}")

    # ---------------- Categories ----------------
    def categories(self, kind):
        return self.request("GET", f"/user/categories/{kind}")["categories"]

    def add_category(self, kind, name):
        return self.request("PUT", f"/user/categories/{kind}", json={"category": name})["categories"]

    def delete_category(self, kind, name):
        return self.request("DELETE", f"/user/categories/{kind}", json={"category": name})["categories"]

    # ---------------- Profile ----------------
    def profile(self):
        return self.request("GET", "/profile")

    def update_profile(self, **fields):
        return self.request("PUT", "/profile", json=fields)

    # ---------------- Manager ----------------
    def team_users(self):
        return self.request("GET", "/manager/team-users")

    def team_transactions(self):
        return self.request("GET", "/manager/team-transactions")

    def add_team_user(self, name, email, mobile, password, permissions):
        return self.request("POST", "/manager/add-user", json={
            "name": name, "email": email, "mobile": mobile,
            "password": password, "permissions": permissions,
        })

    def set_permissions(self, user_id, permissions):
        return self.request("PUT", f"/manager/permissions/{user_id}", json={"permissions": permissions})

    def delete_team_user(self, user_id):
        return self.request("DELETE", f"/manager/user/{user_id}")

    # ---------------- Admin ----------------
    def admin_users(self):
        return self.request("GET", "/admin/users")

    def admin_update_user(self, user_id, **fields):
        return self.request("PUT", f"/admin/users/{user_id}", json=fields)

    def admin_delete_user(self, user_id):
        return self.request("DELETE", f"/admin/users/{user_id}")

    # ---------------- Reports ----------------
    def summary(self, period="all", **params):
        return self.request("GET", "/reports/summary", params={"period": period, **params})

    def export_csv(self, kind="expense", **params):
        return self.request("GET", f"/reports/export/{kind}.csv", params=params or None, raw=True)


def _transaction(amount, category, date, method, note):
    body = {"amount": amount, "category": category, "method": method}
    if date:
        body["date"] = str(date)
    if note:
        body["note"] = note
    return body
