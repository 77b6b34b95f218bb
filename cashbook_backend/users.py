# cashbook_backend/users.py
"""Credential store: user rows and the writes that must happen alongside them."""
import logging

from . import db
from .categories import default_categories
from .errors import ConflictError, NotFoundError
from .models import STATUS_VERIFIED, User
from .permissions import dump_permissions

logger = logging.getLogger("cashbook-backend")


def find_by_id(user_id):
    return User.from_row(db.query_db("SELECT * FROM users WHERE id=?", (user_id,), one=True))


def find_by_email(email):
    return User.from_row(db.query_db("SELECT * FROM users WHERE email=?", (email,), one=True))


def find_by_mobile(mobile):
    return User.from_row(db.query_db("SELECT * FROM users WHERE mobile=?", (mobile,), one=True))


def find_by_identifier(identifier):
    """Look a user up by email or mobile."""
    return User.from_row(db.query_db(
        "SELECT * FROM users WHERE email=? OR mobile=?",
        (identifier, identifier),
        one=True,
    ))


def get_or_404(user_id):
    user = find_by_id(user_id)
    if user is None:
        raise NotFoundError("User not found")
    return user


def ensure_available(email=None, mobile=None, exclude_id=None):
    """Raise ConflictError when another user already holds the email or mobile."""
    if email is not None:
        other = find_by_email(email)
        if other and other.id != exclude_id:
            raise ConflictError("Email already exists")
    if mobile is not None:
        other = find_by_mobile(mobile)
        if other and other.id != exclude_id:
            raise ConflictError("Mobile already exists")


def create_user(name, email, mobile, password_hash, permissions, role="user",
                status=STATUS_VERIFIED, manager_id=None, otp=None):
    """Insert a user and seed their categories in one transaction.

    ``otp`` is an optional (code, purpose, expires_at) triple for accounts that
    start out pending verification.
    """
    code, purpose, expires_at = otp or (None, None, None)
    with db.transaction() as conn:
        cur = conn.execute(
            """INSERT INTO users
               (name, email, mobile, password_hash, role, status, permissions,
                manager_id, otp_code, otp_purpose, otp_expires_at, otp_attempts)
               VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, 0)""",
            (name, email, mobile, password_hash, role, status,
             dump_permissions(permissions), manager_id, code, purpose, expires_at),
        )
        user_id = cur.lastrowid
        seed_categories(conn, user_id)
    logger.info(f"Created {status} {role} user {user_id}")
    return find_by_id(user_id)


def seed_categories(conn, user_id):
    for kind, names in default_categories().items():
        conn.executemany(
            "INSERT INTO categories (user_id, kind, name, position) VALUES (?, ?, ?, ?)",
            [(user_id, kind, name, position) for position, name in enumerate(names)],
        )


def update_fields(user_id, **fields):
    if not fields:
        return find_by_id(user_id)
    if "permissions" in fields:
        fields["permissions"] = dump_permissions(fields["permissions"])
    assignments = ", ".join(f"{column}=?" for column in fields)
    db.update_db(
        f"UPDATE users SET {assignments}, updated_at=CURRENT_TIMESTAMP WHERE id=?",
        (*fields.values(), user_id),
    )
    return find_by_id(user_id)


def delete_user(user_id):
    """Remove a user with their categories and transactions; detach managed users."""
    with db.transaction() as conn:
        conn.execute("DELETE FROM expenses WHERE user_id=?", (user_id,))
        conn.execute("DELETE FROM incomes WHERE user_id=?", (user_id,))
        conn.execute("DELETE FROM categories WHERE user_id=?", (user_id,))
        conn.execute("UPDATE users SET manager_id=NULL WHERE manager_id=?", (user_id,))
        deleted = conn.execute("DELETE FROM users WHERE id=?", (user_id,)).rowcount
    if deleted:
        logger.info(f"Deleted user {user_id} and their data")
    return deleted > 0


def managed_users(manager_id):
    rows = db.query_db(
        "SELECT * FROM users WHERE manager_id=? AND role='user' ORDER BY name",
        (manager_id,),
    )
    return [User.from_row(r) for r in rows]


def is_managed_by(user, manager_id):
    """Only plain users sit in a team; a linked manager or admin is out of reach."""
    return (
        user is not None
        and user.role == "user"
        and user.manager_id is not None
        and user.manager_id == manager_id
    )


def all_users_with_manager():
    rows = db.query_db('''
        SELECT u.*, m.name AS manager_name
        FROM users u
        LEFT JOIN users m ON u.manager_id = m.id
        ORDER BY u.created_at DESC, u.id DESC
    ''')
    users = []
    for row in rows:
        data = User.from_row(row).to_dict()
        data["manager_name"] = row["manager_name"]
        users.append(data)
    return users
