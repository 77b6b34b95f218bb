# cashbook_backend/manager.py
"""Team endpoints: a manager sees and administers the users they created."""
import logging

from flask import Blueprint, jsonify
from flask_jwt_extended import current_user, jwt_required

from . import users
from .errors import ForbiddenError, NotFoundError, ValidationError
from .permissions import parse_permission_payload
from .security import get_password_hash, permission_required, role_required
from .transactions import expenses, incomes
from .validation import (
    check_password,
    json_body,
    normalize_email,
    normalize_mobile,
    require_text,
)

logger = logging.getLogger("cashbook-backend")

manager_bp = Blueprint("manager", __name__, url_prefix="/manager")


def _managed_or_404(user_id):
    user = users.find_by_id(user_id)
    if not users.is_managed_by(user, current_user.id):
        raise NotFoundError("User not found")
    return user


def _managed_or_403(user_id):
    user = users.find_by_id(user_id)
    if not users.is_managed_by(user, current_user.id):
        raise ForbiddenError("Access denied")
    return user


def _team_member(user):
    data = user.to_dict()
    return {key: data[key] for key in ("id", "name", "email", "mobile", "permissions", "manager_id")}


@manager_bp.route("/team-users", methods=["GET"])
@jwt_required()
@role_required("manager", "admin")
def team_users():
    return jsonify([_team_member(u) for u in users.managed_users(current_user.id)])


@manager_bp.route("/team-transactions", methods=["GET"])
@jwt_required()
@role_required("manager", "admin")
@permission_required("canViewTeam")
def team_transactions():
    ids = [u.id for u in users.managed_users(current_user.id)]
    return jsonify({
        "incomes": [tx.to_dict() for tx in incomes.list_for_users(ids)],
        "expenses": [tx.to_dict() for tx in expenses.list_for_users(ids)],
    })


@manager_bp.route("/user/<int:user_id>", methods=["GET"])
@jwt_required()
@role_required("manager", "admin")
def managed_user(user_id):
    return jsonify(_team_member(_managed_or_404(user_id)))


@manager_bp.route("/user/<int:user_id>/incomes", methods=["GET"])
@jwt_required()
@role_required("manager", "admin")
@permission_required("canViewTeam")
def managed_user_incomes(user_id):
    user = _managed_or_403(user_id)
    return jsonify([tx.to_dict() for tx in incomes.list(current_user, user.id)])


@manager_bp.route("/user/<int:user_id>/expenses", methods=["GET"])
@jwt_required()
@role_required("manager", "admin")
@permission_required("canViewTeam")
def managed_user_expenses(user_id):
    user = _managed_or_403(user_id)
    return jsonify([tx.to_dict() for tx in expenses.list(current_user, user.id)])


@manager_bp.route("/add-user", methods=["POST"])
@jwt_required()
@role_required("manager", "admin")
def add_user():
    data = json_body()
    name = require_text(data, "name", max_length=100)
    email = normalize_email(data.get("email"))
    mobile = normalize_mobile(data.get("mobile"))
    password = check_password(data.get("password"))
    if "permissions" not in data:
        raise ValidationError('"permissions" is required')
    permissions = parse_permission_payload(data.get("permissions"))

    users.ensure_available(email=email, mobile=mobile)
    user = users.create_user(
        name, email, mobile, get_password_hash(password),
        permissions=permissions,
        manager_id=current_user.id,
    )
    logger.info(f"Manager {current_user.id} added user {user.id}")
    return jsonify({"message": "User added", "user": _team_member(user)}), 201


@manager_bp.route("/permissions/<int:user_id>", methods=["PUT"])
@jwt_required()
@role_required("manager", "admin")
def update_permissions(user_id):
    user = _managed_or_404(user_id)
    data = json_body()
    # web client wraps the flags in {"permissions": ...}, mobile sends them bare
    flags = data.get("permissions", data)
    users.update_fields(user.id, permissions=parse_permission_payload(flags))
    logger.info(f"Manager {current_user.id} updated permissions of user {user.id}")
    return jsonify({"message": "Permissions updated"})


@manager_bp.route("/user/<int:user_id>", methods=["DELETE"])
@jwt_required()
@role_required("manager", "admin")
def delete_managed_user(user_id):
    user = _managed_or_404(user_id)
    users.delete_user(user.id)
    return jsonify({"message": "User & data deleted"})
