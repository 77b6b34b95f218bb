# cashbook_backend/app.py

import logging
import os

from flask import Flask, jsonify
from flask_cors import CORS

from . import db
from .admin import admin_bp
from .auth import RATE_LIMITED_ENDPOINTS, auth_bp
from .categories import categories_bp
from .cli import register_commands
from .config import Config
from .errors import register_error_handlers
from .manager import manager_bp
from .profile import profile_bp
from .reports import reports_bp
from .security import init_jwt, init_limiter
from .transactions import expenses_bp, incomes_bp

logger = logging.getLogger("cashbook-backend")


# ---------------- Flask App Factory ----------------
def create_app(test_config=None):
    app = Flask(__name__)

    # Configuration
    app.config.from_object(Config)
    if test_config:
        app.config.update(test_config)

    logging.basicConfig(level=app.config["LOG_LEVEL"])

    # CORS
    origins = app.config["CORS_ORIGINS"]
    if origins != "*":
        origins = [o.strip() for o in origins.split(",") if o.strip()]
    CORS(app, resources={r"/*": {"origins": origins}}, supports_credentials=True)

    # Auth, errors
    init_jwt(app)
    register_error_handlers(app)

    # Blueprints
    app.register_blueprint(auth_bp, url_prefix='/auth')
    app.register_blueprint(categories_bp)
    app.register_blueprint(expenses_bp)
    app.register_blueprint(incomes_bp)
    app.register_blueprint(profile_bp)
    app.register_blueprint(manager_bp)
    app.register_blueprint(admin_bp)
    app.register_blueprint(reports_bp)

    # Rate limiting (needs the auth views registered)
    init_limiter(app, RATE_LIMITED_ENDPOINTS)

    register_commands(app)

    # Initialize DB
    with app.app_context():
        db.init_db()
        logger.info("Database initialized")

    app.teardown_appcontext(db.close_db)

    # ---------------- Core Endpoints ----------------
    @app.route('/')
    def root():
        return jsonify({"msg": "Daily Cashbook backend root"})

    @app.route('/health')
    def health():
        return jsonify({"status": "ok"})

    return app


# ---------------- Run ----------------
# `cashbook-backend`, `python -m cashbook_backend.app` or `flask --app cashbook_backend run`
def main():
    app = create_app()
    app.run(
        debug=app.config["DEBUG"],
        host=os.environ.get("HOST", "0.0.0.0"),
        port=int(os.environ.get("PORT", 5000)),
    )


if __name__ == "__main__":
    main()
