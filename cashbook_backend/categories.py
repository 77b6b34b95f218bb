# cashbook_backend/categories.py
from flask import Blueprint, jsonify, request
from flask_jwt_extended import jwt_required

from . import db
from .errors import NotFoundError, ValidationError
from .models import TRANSACTION_KINDS
from .security import current_user_id
from .validation import json_body

categories_bp = Blueprint("categories", __name__, url_prefix="/user/categories")

MAX_NAME_LENGTH = 50


def default_categories():
    """Category lists every new user starts with; a fresh copy on each call."""
    return {
        "income": ["Salary", "Business", "Interest", "Gifts", "Other"],
        "expense": ["Food", "Shopping", "Travel", "Bills", "Entertainment", "Other"],
    }


def _check_kind(kind):
    if kind not in TRANSACTION_KINDS:
        raise NotFoundError("Unknown category type")


def list_categories(user_id, kind):
    rows = db.query_db(
        "SELECT name FROM categories WHERE user_id=? AND kind=? ORDER BY position, id",
        (user_id, kind),
    )
    return [r["name"] for r in rows]


def category_exists(user_id, kind, name):
    row = db.query_db(
        "SELECT 1 FROM categories WHERE user_id=? AND kind=? AND name=?",
        (user_id, kind, name),
        one=True,
    )
    return row is not None


def add_category(user_id, kind, name):
    """Append ``name`` unless the user already has it (no duplicates)."""
    db.execute_db(
        """INSERT OR IGNORE INTO categories (user_id, kind, name, position)
           SELECT ?, ?, ?, COALESCE(MAX(position) + 1, 0)
           FROM categories WHERE user_id=? AND kind=?""",
        (user_id, kind, name, user_id, kind),
    )
    return list_categories(user_id, kind)


def remove_category(user_id, kind, name):
    db.update_db(
        "DELETE FROM categories WHERE user_id=? AND kind=? AND name=?",
        (user_id, kind, name),
    )
    return list_categories(user_id, kind)


def _category_name(data):
    name = data.get("category")
    if not isinstance(name, str) or not name.strip():
        raise ValidationError("Category name is required")
    name = name.strip()
    if len(name) > MAX_NAME_LENGTH:
        raise ValidationError("Category name is too long")
    return name


@categories_bp.route("/<kind>", methods=["GET"])
@jwt_required()
def get_categories(kind):
    _check_kind(kind)
    return jsonify({"categories": list_categories(current_user_id(), kind)})


@categories_bp.route("/<kind>", methods=["PUT"])
@jwt_required()
def put_category(kind):
    _check_kind(kind)
    name = _category_name(json_body())
    return jsonify({"categories": add_category(current_user_id(), kind, name)})


@categories_bp.route("/<kind>", methods=["DELETE"])
@jwt_required()
def delete_category(kind):
    _check_kind(kind)
    # mobile clients send a JSON body, browsers sometimes a query string
    data = json_body() or {"category": request.args.get("category")}
    name = _category_name(data)
    return jsonify({"categories": remove_category(current_user_id(), kind, name)})
