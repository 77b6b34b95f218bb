# cashbook_backend/admin.py
import logging

from flask import Blueprint, jsonify
from flask_jwt_extended import current_user, jwt_required

from . import users
from .errors import ValidationError
from .models import ROLES
from .permissions import parse_permission_payload, resolve_permissions
from .security import role_required
from .transactions import expenses, incomes
from .validation import json_body

logger = logging.getLogger("cashbook-backend")

admin_bp = Blueprint("admin", __name__, url_prefix="/admin")

# a promoted manager needs these to see and run their team
MANAGER_FLAGS = ("canViewTeam", "canManageUsers")


def _parse_role(value):
    if value not in ROLES:
        raise ValidationError(f'"role" must be one of [{", ".join(ROLES)}]')
    return value


def _parse_manager_id(value, user_id):
    if value in (None, ""):
        return None
    try:
        manager_id = int(value)
    except (TypeError, ValueError):
        raise ValidationError('"managerId" must be a user id')
    if manager_id == user_id:
        raise ValidationError("A user cannot manage themselves")
    manager = users.get_or_404(manager_id)
    if manager.role not in ("manager", "admin"):
        raise ValidationError("Assigned manager must have the manager role")
    return manager_id


def _promotion_flags(user):
    flags = resolve_permissions(user.permissions)
    for key in MANAGER_FLAGS:
        flags[key] = True
    return flags


@admin_bp.route("/users", methods=["GET"])
@jwt_required()
@role_required("admin")
def list_users():
    return jsonify(users.all_users_with_manager())


@admin_bp.route("/users/<int:user_id>", methods=["DELETE"])
@jwt_required()
@role_required("admin")
def delete_user(user_id):
    if user_id == current_user.id:
        raise ValidationError("You cannot delete your own account")
    users.get_or_404(user_id)
    users.delete_user(user_id)
    logger.info(f"Admin {current_user.id} deleted user {user_id}")
    return jsonify({"message": "User and their data deleted"})


@admin_bp.route("/users/<int:user_id>/incomes", methods=["GET"])
@jwt_required()
@role_required("admin")
def user_incomes(user_id):
    users.get_or_404(user_id)
    return jsonify([tx.to_dict() for tx in incomes.list(current_user, user_id)])


@admin_bp.route("/users/<int:user_id>/expenses", methods=["GET"])
@jwt_required()
@role_required("admin")
def user_expenses(user_id):
    users.get_or_404(user_id)
    return jsonify([tx.to_dict() for tx in expenses.list(current_user, user_id)])


@admin_bp.route("/users/<int:user_id>", methods=["PUT"])
@jwt_required()
@role_required("admin")
def update_user(user_id):
    """Update role, manager and/or permissions. managerId is cleared when omitted."""
    user = users.get_or_404(user_id)
    data = json_body()
    changes = {"manager_id": _parse_manager_id(data.get("managerId"), user_id)}
    if "role" in data:
        changes["role"] = _parse_role(data["role"])
    if "permissions" in data:
        changes["permissions"] = parse_permission_payload(data["permissions"])
    elif changes.get("role") == "manager" and user.role != "manager":
        changes["permissions"] = _promotion_flags(user)
    if changes["manager_id"] is not None and changes.get("role", user.role) != "user":
        raise ValidationError("Only accounts with the user role can be assigned a manager")

    users.update_fields(user_id, **changes)
    logger.info(f"Admin {current_user.id} updated user {user_id}: {sorted(changes)}")
    return jsonify({"message": "User role / manager / permissions updated"})


@admin_bp.route("/users/<int:user_id>/role", methods=["PUT"])
@jwt_required()
@role_required("admin")
def update_role(user_id):
    user = users.get_or_404(user_id)
    role = _parse_role(json_body().get("role"))
    changes = {"role": role}
    if role != "user":
        changes["manager_id"] = None
    if role == "manager" and user.role != "manager":
        changes["permissions"] = _promotion_flags(user)
    users.update_fields(user_id, **changes)
    logger.info(f"Admin {current_user.id} set role of user {user_id} to {role}")
    return jsonify({"message": "User role updated"})
