# cashbook_backend/validation.py
import math
import re
from datetime import datetime

from flask import request

from .errors import ValidationError

DATE_FORMATS = ["%Y-%m-%d", "%d-%m-%Y", "%Y/%m/%d", "%d/%m/%Y"]
EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[A-Za-z]{2,}$")
MOBILE_RE = re.compile(r"^\d{10}$")
MIN_PASSWORD_LENGTH = 8


def json_body():
    """Request JSON as a dict; anything else is a client error."""
    data = request.get_json(force=True, silent=True)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValidationError("JSON object body required")
    return data


def parse_date(s):
    """Try multiple date formats"""
    if not s:
        return None
    s = str(s).strip()
    for fmt in DATE_FORMATS:
        try:
            return datetime.strptime(s, fmt).date()
        except ValueError:
            continue
    try:
        return datetime.fromisoformat(s.replace("Z", "+00:00")).date()
    except ValueError:
        return None


def require_date(value, field="date"):
    parsed = parse_date(value)
    if parsed is None:
        raise ValidationError(f'"{field}" must be a valid date')
    return parsed


def parse_amount(value, max_amount):
    if value is None or value == "" or isinstance(value, bool):
        raise ValidationError('"amount" is required')
    try:
        amount = float(str(value).strip())
    except ValueError:
        raise ValidationError('"amount" must be a number')
    if math.isnan(amount) or math.isinf(amount):
        raise ValidationError('"amount" must be a number')
    if amount <= 0:
        raise ValidationError('"amount" must be greater than 0')
    if amount > max_amount:
        raise ValidationError(f"Amount too large: {amount}")
    return round(amount, 2)


def require_text(data, field, max_length=None):
    value = data.get(field)
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(f'"{field}" is required')
    value = value.strip()
    if max_length and len(value) > max_length:
        raise ValidationError(f'"{field}" is too long')
    return value


def normalize_email(value):
    if not isinstance(value, str) or not EMAIL_RE.match(value.strip()):
        raise ValidationError('"email" must be a valid email')
    return value.strip().lower()


def normalize_mobile(value):
    value = str(value).strip() if value is not None else ""
    if not MOBILE_RE.match(value):
        raise ValidationError('"mobile" must be a 10 digit number')
    return value


def check_password(value, field="password"):
    if not isinstance(value, str) or len(value) < MIN_PASSWORD_LENGTH:
        raise ValidationError(f'"{field}" length must be at least {MIN_PASSWORD_LENGTH} characters long')
    return value


def normalize_identifier(value):
    """Login/reset identifier: an email (lower-cased) or a mobile number."""
    if not isinstance(value, str) or not value.strip():
        raise ValidationError('"identifier" is required')
    value = value.strip()
    return value.lower() if "@" in value else value


def parse_int_arg(name, default, minimum=None, maximum=None):
    raw = request.args.get(name)
    if raw is None or raw == "":
        return default
    try:
        value = int(raw)
    except ValueError:
        raise ValidationError(f'"{name}" must be an integer')
    if minimum is not None and value < minimum:
        raise ValidationError(f'"{name}" must be at least {minimum}')
    if maximum is not None and value > maximum:
        raise ValidationError(f'"{name}" must be at most {maximum}')
    return value
