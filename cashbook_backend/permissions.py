# cashbook_backend/permissions.py
"""
Capability flags a manager (or admin) grants to a user.

Stored as a JSON object on the user row. Whatever is stored, callers only ever
see the resolved form: every key present, every value a bool.
"""
import json

from .errors import ValidationError

PERMISSION_KEYS = (
    "canAdd",
    "canEdit",
    "canDelete",
    "canExport",
    "canAccessReports",
    "canViewTeam",
    "canManageUsers",
)

# Older clients wrote the edit capability under this name.
LEGACY_EDIT_KEY = "canModify"

# Granted to people who sign up on their own (not created by a manager).
SELF_SERVICE_PERMISSIONS = {
    "canAdd": True,
    "canEdit": True,
    "canDelete": True,
    "canExport": True,
    "canAccessReports": True,
    "canViewTeam": False,
    "canManageUsers": False,
}


def _load(raw):
    if raw is None:
        return {}
    if isinstance(raw, (str, bytes)):
        try:
            raw = json.loads(raw)
        except ValueError:
            return {}
    return raw if isinstance(raw, dict) else {}


def _legacy_edit_flag(stored):
    """canEdit, or canModify when canEdit was never written."""
    if "canEdit" in stored:
        return stored["canEdit"]
    return stored.get(LEGACY_EDIT_KEY)


def resolve_permissions(raw):
    """Return the full flag mapping for a stored permissions value.

    ``raw`` may be a dict, a JSON string or None. Missing keys, non-boolean
    values and unreadable JSON all resolve to False.
    """
    stored = _load(raw)
    resolved = {}
    for key in PERMISSION_KEYS:
        value = _legacy_edit_flag(stored) if key == "canEdit" else stored.get(key)
        resolved[key] = value is True
    return resolved


def no_permissions():
    return {key: False for key in PERMISSION_KEYS}


def has_permission(user, flag):
    if flag not in PERMISSION_KEYS:
        raise KeyError(flag)
    if user.role == "admin":
        return True
    return resolve_permissions(user.permissions)[flag]


def parse_permission_payload(data):
    """Validate a manager/admin supplied flag mapping; every key must be a bool."""
    if not isinstance(data, dict):
        raise ValidationError("permissions must be an object")
    parsed = {}
    for key in PERMISSION_KEYS:
        if key not in data:
            raise ValidationError(f'"{key}" is required')
        if not isinstance(data[key], bool):
            raise ValidationError(f'"{key}" must be a boolean')
        parsed[key] = data[key]
    return parsed


def dump_permissions(flags):
    return json.dumps(resolve_permissions(flags), sort_keys=True)
