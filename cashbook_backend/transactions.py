# cashbook_backend/transactions.py
"""Expenses and incomes: two tables with the same shape and the same rules."""
import logging
from datetime import date

from flask import Blueprint, current_app, jsonify, request
from flask_jwt_extended import current_user, jwt_required

from . import db, users
from .categories import category_exists
from .errors import ForbiddenError, NotFoundError, ValidationError
from .models import METHODS, Transaction
from .security import permission_required
from .validation import (
    json_body,
    parse_amount,
    parse_int_arg,
    require_date,
    require_text,
)

logger = logging.getLogger("cashbook-backend")

TABLES = {"expense": "expenses", "income": "incomes"}
MAX_NOTE_LENGTH = 1000
MAX_CATEGORY_LENGTH = 50
EDITABLE_FIELDS = ("amount", "category", "note", "date", "method")


def can_act_for(actor, owner_id):
    """Owner, any admin, or the owner's manager."""
    if actor.id == owner_id or actor.role == "admin":
        return True
    if actor.role == "manager":
        return users.is_managed_by(users.find_by_id(owner_id), actor.id)
    return False


class TransactionService:
    """CRUD for one transaction kind, scoped by owner."""

    def __init__(self, kind):
        if kind not in TABLES:
            raise ValueError(f"Unknown transaction kind: {kind}")
        self.kind = kind
        self.table = TABLES[kind]

    def _authorize(self, actor, owner_id):
        if not can_act_for(actor, owner_id):
            logger.warning(f"User {actor.id} denied access to {self.kind}s of user {owner_id}")
            raise ForbiddenError("Access denied")

    def _clean(self, owner_id, data, partial=False):
        """Validate a create (all fields) or update (only supplied fields) payload."""
        clean = {}
        if not partial or "amount" in data:
            clean["amount"] = parse_amount(data.get("amount"), current_app.config["MAX_AMOUNT"])
        if not partial or "category" in data:
            category = require_text(data, "category", MAX_CATEGORY_LENGTH)
            if current_app.config["ENFORCE_CATEGORIES"] and not category_exists(owner_id, self.kind, category):
                raise ValidationError(f'Unknown {self.kind} category "{category}"')
            clean["category"] = category
        # defaults (today, Cash) only fill in on create; an update must send real values
        if partial and "date" in data:
            clean["date"] = require_date(data["date"]).isoformat()
        elif not partial:
            raw_date = data.get("date")
            clean["date"] = (require_date(raw_date) if raw_date else date.today()).isoformat()
        if not partial or "method" in data:
            method = data.get("method") if partial else data.get("method") or "Cash"
            if method not in METHODS:
                raise ValidationError('"method" must be one of [Bank, Cash]')
            clean["method"] = method
        if not partial or "note" in data:
            note = data.get("note")
            if note is not None and not isinstance(note, str):
                raise ValidationError('"note" must be a string')
            note = (note or "").strip()
            if len(note) > MAX_NOTE_LENGTH:
                raise ValidationError('"note" is too long')
            clean["note"] = note or None
        return clean

    def _fetch(self, tx_id):
        row = db.query_db(f"SELECT * FROM {self.table} WHERE id=?", (tx_id,), one=True)
        if row is None:
            raise NotFoundError(f"{self.kind.capitalize()} not found")
        return Transaction.from_row(row, self.kind)

    def list(self, actor, owner_id, filters=None):
        self._authorize(actor, owner_id)
        filters = filters or {}
        clauses, args = ["user_id=?"], [owner_id]
        if filters.get("date_from"):
            clauses.append("date >= ?")
            args.append(filters["date_from"].isoformat())
        if filters.get("date_to"):
            clauses.append("date <= ?")
            args.append(filters["date_to"].isoformat())
        if filters.get("method"):
            clauses.append("method = ?")
            args.append(filters["method"])
        if filters.get("category"):
            clauses.append("category = ?")
            args.append(filters["category"])

        query = f"SELECT * FROM {self.table} WHERE {' AND '.join(clauses)} ORDER BY date DESC, id DESC"
        if filters.get("limit"):
            query += " LIMIT ? OFFSET ?"
            page = filters.get("page") or 1
            args.extend([filters["limit"], (page - 1) * filters["limit"]])
        rows = db.query_db(query, tuple(args))
        return [Transaction.from_row(r, self.kind) for r in rows]

    def list_for_users(self, user_ids):
        if not user_ids:
            return []
        marks = ",".join("?" for _ in user_ids)
        rows = db.query_db(
            f"SELECT * FROM {self.table} WHERE user_id IN ({marks}) ORDER BY date DESC, id DESC",
            tuple(user_ids),
        )
        return [Transaction.from_row(r, self.kind) for r in rows]

    def get(self, actor, tx_id):
        tx = self._fetch(tx_id)
        self._authorize(actor, tx.user_id)
        return tx

    def create(self, actor, data):
        clean = self._clean(actor.id, data)
        tx_id = db.execute_db(
            f"INSERT INTO {self.table} (user_id, amount, category, note, date, method) VALUES (?,?,?,?,?,?)",
            (actor.id, clean["amount"], clean["category"], clean["note"], clean["date"], clean["method"]),
        )
        logger.info(f"User {actor.id} added {self.kind} {tx_id}")
        return self._fetch(tx_id)

    def update(self, actor, tx_id, data):
        tx = self.get(actor, tx_id)
        clean = self._clean(tx.user_id, {k: v for k, v in data.items() if k in EDITABLE_FIELDS}, partial=True)
        if clean:
            assignments = ", ".join(f"{column}=?" for column in clean)
            db.update_db(
                f"UPDATE {self.table} SET {assignments} WHERE id=?",
                (*clean.values(), tx_id),
            )
        return self._fetch(tx_id)

    def delete(self, actor, tx_id):
        tx = self.get(actor, tx_id)
        db.update_db(f"DELETE FROM {self.table} WHERE id=?", (tx.id,))
        logger.info(f"User {actor.id} deleted {self.kind} {tx.id}")
        return tx


def filters_from_args():
    filters = {
        "date_from": require_date(request.args["from"], "from") if request.args.get("from") else None,
        "date_to": require_date(request.args["to"], "to") if request.args.get("to") else None,
        "category": request.args.get("category") or None,
        "method": request.args.get("method") or None,
        "page": parse_int_arg("page", 1, minimum=1),
        "limit": parse_int_arg("limit", 20, minimum=1, maximum=current_app.config["MAX_PAGE_SIZE"]),
    }
    if filters["method"] and filters["method"] not in METHODS:
        raise ValidationError('"method" must be one of [Bank, Cash]')
    return filters


def _build_blueprint(service):
    kind = service.kind
    bp = Blueprint(TABLES[kind], __name__, url_prefix=f"/{TABLES[kind]}")

    @bp.route("", methods=["GET"])
    @jwt_required()
    def list_transactions():
        owner_id = parse_int_arg("user_id", current_user.id)
        txs = service.list(current_user, owner_id, filters_from_args())
        return jsonify([tx.to_dict() for tx in txs])

    @bp.route("", methods=["POST"])
    @bp.route("/add", methods=["POST"])
    @jwt_required()
    @permission_required("canAdd")
    def add_transaction():
        tx = service.create(current_user, json_body())
        return jsonify(tx.to_dict()), 201

    @bp.route("/<int:tx_id>", methods=["GET"])
    @jwt_required()
    def get_transaction(tx_id):
        return jsonify(service.get(current_user, tx_id).to_dict())

    @bp.route("/<int:tx_id>", methods=["PUT"])
    @jwt_required()
    @permission_required("canEdit")
    def update_transaction(tx_id):
        return jsonify(service.update(current_user, tx_id, json_body()).to_dict())

    @bp.route("/<int:tx_id>", methods=["DELETE"])
    @jwt_required()
    @permission_required("canDelete")
    def delete_transaction(tx_id):
        service.delete(current_user, tx_id)
        return jsonify({"message": f"{kind.capitalize()} deleted"})

    return bp


expenses = TransactionService("expense")
incomes = TransactionService("income")

expenses_bp = _build_blueprint(expenses)
incomes_bp = _build_blueprint(incomes)
