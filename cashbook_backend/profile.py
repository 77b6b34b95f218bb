# cashbook_backend/profile.py
from flask import Blueprint, jsonify
from flask_jwt_extended import current_user, jwt_required

from . import users
from .validation import json_body, normalize_mobile, require_text

profile_bp = Blueprint("profile", __name__, url_prefix="/profile")


@profile_bp.route("", methods=["GET"])
@profile_bp.route("/me", methods=["GET"])
@jwt_required()
def get_profile():
    return jsonify(current_user.to_dict())


@profile_bp.route("", methods=["PUT"])
@jwt_required()
def update_profile():
    data = json_body()
    changes = {}
    if "name" in data:
        changes["name"] = require_text(data, "name", max_length=100)
    if "mobile" in data:
        changes["mobile"] = normalize_mobile(data["mobile"])
        users.ensure_available(mobile=changes["mobile"], exclude_id=current_user.id)
    user = users.update_fields(current_user.id, **changes)
    return jsonify(user.to_dict())
