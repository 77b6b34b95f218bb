# cashbook_backend/cli.py
import click

from . import db, users
from .permissions import PERMISSION_KEYS
from .security import get_password_hash
from .validation import check_password, normalize_email, normalize_mobile

DEMO_EMAIL = "demo@dailycashbook.com"
DEMO_MOBILE = "9999999999"
DEMO_PASSWORD = "Demo@1234"


def _all_permissions():
    return {key: True for key in PERMISSION_KEYS}


def register_commands(app):
    @app.cli.command("init-db")
    def init_db_command():
        """Create the tables (safe to re-run)."""
        db.init_db()
        click.echo(f"🎉 Database initialized at {app.config['DB_PATH']}")

    @app.cli.command("create-admin")
    @click.option("--name", default="Admin")
    @click.option("--email", required=True)
    @click.option("--mobile", required=True)
    @click.password_option()
    def create_admin_command(name, email, mobile, password):
        """Create a verified admin account."""
        email = normalize_email(email)
        mobile = normalize_mobile(mobile)
        check_password(password)
        users.ensure_available(email=email, mobile=mobile)
        user = users.create_user(
            name, email, mobile, get_password_hash(password),
            permissions=_all_permissions(),
            role="admin",
        )
        click.echo(f"✅ Admin user created: {user.email} (id {user.id})")
        click.echo("   ⚠️  Keep this password safe!")

    @app.cli.command("create-demo-user")
    def create_demo_user_command():
        """(Re)create the demo account used for store reviews."""
        for existing in (users.find_by_email(DEMO_EMAIL), users.find_by_mobile(DEMO_MOBILE)):
            if existing:
                users.delete_user(existing.id)
        users.create_user(
            "Demo User", DEMO_EMAIL, DEMO_MOBILE, get_password_hash(DEMO_PASSWORD),
            permissions=_all_permissions(),
        )
        click.echo(f"Demo user created: {DEMO_MOBILE} {DEMO_PASSWORD}")
