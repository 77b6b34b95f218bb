# cashbook_backend/models.py
# lightweight model classes (not DB-bound ORM)
from .permissions import resolve_permissions

ROLES = ("user", "manager", "admin")
METHODS = ("Bank", "Cash")
TRANSACTION_KINDS = ("expense", "income")

STATUS_PENDING = "pending"
STATUS_VERIFIED = "verified"

PURPOSE_REGISTER = "register"
PURPOSE_RESET = "reset"

USER_COLUMNS = (
    'id', 'name', 'email', 'mobile', 'password_hash', 'role', 'status',
    'otp_code', 'otp_purpose', 'otp_expires_at', 'otp_attempts',
    'permissions', 'manager_id', 'created_at', 'updated_at',
)


class User:
    def __init__(self, id, name, email, mobile, password_hash, role='user',
                 status=STATUS_PENDING, otp_code=None, otp_purpose=None,
                 otp_expires_at=None, otp_attempts=0, permissions=None,
                 manager_id=None, created_at=None, updated_at=None):
        self.id = id
        self.name = name
        self.email = email
        self.mobile = mobile
        self.password_hash = password_hash
        self.role = role
        self.status = status
        self.otp_code = otp_code
        self.otp_purpose = otp_purpose
        self.otp_expires_at = otp_expires_at
        self.otp_attempts = otp_attempts
        self.permissions = permissions
        self.manager_id = manager_id
        self.created_at = created_at
        self.updated_at = updated_at

    @classmethod
    def from_row(cls, row):
        if row is None:
            return None
        # joined queries may carry extra columns (e.g. manager_name)
        return cls(**{key: row[key] for key in row.keys() if key in USER_COLUMNS})

    @property
    def is_verified(self):
        return self.status == STATUS_VERIFIED

    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'email': self.email,
            'mobile': self.mobile,
            'role': self.role,
            'status': self.status,
            'manager_id': self.manager_id,
            'permissions': resolve_permissions(self.permissions),
            'created_at': self.created_at,
        }


class Transaction:
    def __init__(self, id, user_id, amount, category, date, method='Cash',
                 note=None, created_at=None, kind='expense'):
        self.id = id
        self.user_id = user_id
        self.amount = amount
        self.category = category
        self.date = date
        self.method = method
        self.note = note
        self.created_at = created_at
        self.kind = kind

    @classmethod
    def from_row(cls, row, kind):
        if row is None:
            return None
        return cls(kind=kind, **{key: row[key] for key in row.keys()})

    def to_dict(self):
        return {
            'id': self.id,
            'user_id': self.user_id,
            'type': self.kind,
            'amount': self.amount,
            'category': self.category,
            'note': self.note,
            'date': self.date,
            'method': self.method,
            'created_at': self.created_at,
        }
