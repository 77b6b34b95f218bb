# cashbook_frontend/permissions.py
"""Client-side view of the capability flags the server sends with a session."""

PERMISSION_KEYS = (
    "canAdd",
    "canEdit",
    "canDelete",
    "canExport",
    "canAccessReports",
    "canViewTeam",
    "canManageUsers",
)


def normalize_permissions(raw):
    """Every flag as a bool. Older servers may only send canModify for editing."""
    raw = raw if isinstance(raw, dict) else {}
    flags = {key: raw.get(key) is True for key in PERMISSION_KEYS}
    if "canEdit" not in raw:
        flags["canEdit"] = raw.get("canModify") is True
    return flags
