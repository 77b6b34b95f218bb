# cashbook_backend/reports.py
import csv
import io
import logging
from datetime import date, timedelta

from flask import Blueprint, Response, jsonify, request
from flask_jwt_extended import current_user, jwt_required

from . import db
from .errors import NotFoundError, ValidationError
from .models import METHODS
from .security import permission_required
from .transactions import TABLES
from .validation import require_date

logger = logging.getLogger("cashbook-backend")

reports_bp = Blueprint("reports", __name__, url_prefix="/reports")

PERIODS = ("all", "daily", "weekly", "monthly", "yearly")
EXPORT_COLUMNS = ["date", "amount", "category", "method", "note"]


def period_range(period, today=None):
    """(from, to) dates for a named period, None for an open end."""
    today = today or date.today()
    if period == "all":
        return None, None
    if period == "daily":
        return today, today
    if period == "weekly":
        return today - timedelta(days=6), today
    if period == "monthly":
        return today.replace(day=1), today
    if period == "yearly":
        return today.replace(month=1, day=1), today
    raise ValidationError(f'"period" must be one of [{", ".join(PERIODS)}]')


def _range_from_args():
    if request.args.get("from") or request.args.get("to"):
        start = require_date(request.args["from"], "from") if request.args.get("from") else None
        end = require_date(request.args["to"], "to") if request.args.get("to") else None
        if start and end and start > end:
            raise ValidationError('"from" must not be after "to"')
        return start, end
    return period_range(request.args.get("period", "all"))


def _where(user_id, start, end):
    clauses, args = ["user_id=?"], [user_id]
    if start:
        clauses.append("date >= ?")
        args.append(start.isoformat())
    if end:
        clauses.append("date <= ?")
        args.append(end.isoformat())
    return " AND ".join(clauses), args


def summarize(user_id, start=None, end=None):
    where, args = _where(user_id, start, end)
    totals = {}
    by_method = {}
    for kind, table in TABLES.items():
        rows = db.query_db(
            f"SELECT method, SUM(amount) as total FROM {table} WHERE {where} GROUP BY method",
            tuple(args),
        )
        per_method = {m: 0.0 for m in METHODS}
        for r in rows:
            per_method[r["method"]] = round(float(r["total"] or 0), 2)
        by_method[kind] = per_method
        totals[kind] = round(sum(per_method.values()), 2)

    rows = db.query_db(
        f"SELECT category, SUM(amount) as total FROM expenses WHERE {where} GROUP BY category ORDER BY total DESC",
        tuple(args),
    )
    by_category = []
    for r in rows:
        total = round(float(r["total"] or 0), 2)
        percent = round(total / totals["expense"] * 100, 2) if totals["expense"] else 0
        by_category.append({"category": r["category"], "total": total, "percent": percent})

    return {
        "from": start.isoformat() if start else None,
        "to": end.isoformat() if end else None,
        "total_income": totals["income"],
        "total_expense": totals["expense"],
        "net_balance": round(totals["income"] - totals["expense"], 2),
        "by_method": by_method,
        "expense_by_category": by_category,
    }


def export_csv(user_id, kind, start=None, end=None):
    where, args = _where(user_id, start, end)
    rows = db.query_db(
        f"SELECT date, amount, category, method, note FROM {TABLES[kind]} WHERE {where} ORDER BY date, id",
        tuple(args),
    )
    out = io.StringIO()
    writer = csv.writer(out)
    writer.writerow(EXPORT_COLUMNS)
    for r in rows:
        writer.writerow([r["date"], f'{r["amount"]:.2f}', r["category"], r["method"], r["note"] or ""])
    return out.getvalue()


@reports_bp.route("/summary", methods=["GET"])
@jwt_required()
@permission_required("canAccessReports")
def summary():
    start, end = _range_from_args()
    return jsonify(summarize(current_user.id, start, end))


@reports_bp.route("/export/<kind>.csv", methods=["GET"])
@jwt_required()
@permission_required("canExport")
def export(kind):
    if kind not in TABLES:
        raise NotFoundError("Unknown export type")
    start, end = _range_from_args()
    content = export_csv(current_user.id, kind, start, end)
    logger.info(f"User {current_user.id} exported {TABLES[kind]}")
    return Response(
        content,
        mimetype="text/csv",
        headers={"Content-Disposition": f"attachment; filename={TABLES[kind]}.csv"},
    )
