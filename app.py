# app.py  : application factory wiring config, extensions, blueprints and error pages.
import os
import logging
import sqlite3

from dotenv import load_dotenv
from flask import Flask, render_template, session
from sqlalchemy import event
from sqlalchemy.engine import Engine

from extensions import db, migrate, csrf, limiter
from security import AuthorizationDenied, DEFAULT_SESSION_TIMEOUT, can

BASE_DIR = os.path.dirname(os.path.abspath(__file__))


def _env_flag(name, default=False):
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


@event.listens_for(Engine, "connect")
def _enable_sqlite_foreign_keys(dbapi_connection, connection_record):
    # SQLite ignores FOREIGN KEY clauses unless asked per connection
    if isinstance(dbapi_connection, sqlite3.Connection):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


def create_app(test_config=None):
    # -----------------------
    # Load .env explicitly
    # -----------------------
    dotenv_path = os.path.join(BASE_DIR, ".env")
    loaded = load_dotenv(dotenv_path=dotenv_path)

    # -----------------------
    # App and config
    # -----------------------
    app = Flask(__name__, template_folder="templates", static_folder="static")
    app.config.update(
        # Secret must exist for session and CSRF
        SECRET_KEY=os.environ.get("FLASK_SECRET") or "dev-secret-change-me",
        SQLALCHEMY_DATABASE_URI=os.environ.get("DATABASE_URI", f"sqlite:///{os.path.join(BASE_DIR, 'app.db')}"),
        SQLALCHEMY_TRACK_MODIFICATIONS=False,
        SESSION_COOKIE_HTTPONLY=True,
        SESSION_COOKIE_SAMESITE="Lax",
        SESSION_COOKIE_SECURE=_env_flag("SESSION_COOKIE_SECURE"),
        SESSION_TIMEOUT=int(os.environ.get("SESSION_TIMEOUT", DEFAULT_SESSION_TIMEOUT)),
        # tokens are checked by the views themselves and live as long as the session
        WTF_CSRF_CHECK_DEFAULT=False,
        WTF_CSRF_TIME_LIMIT=None,
        RATELIMIT_ENABLED=_env_flag("RATELIMIT_ENABLED", True),
        LOGIN_RATE_LIMIT=os.environ.get("LOGIN_RATE_LIMIT", "10 per minute"),
        BACKUP_DIR=os.environ.get("BACKUP_DIR") or os.path.join(app.instance_path, "backups"),
        MYSQLDUMP_PATH=os.environ.get("MYSQLDUMP_PATH", "mysqldump"),
        LOG_LEVEL=os.environ.get("LOG_LEVEL", "INFO"),
    )
    if test_config:
        app.config.update(test_config)

    # Logging
    logging.basicConfig(
        level=app.config["LOG_LEVEL"],
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    app.logger.setLevel(app.config["LOG_LEVEL"])
    logging.getLogger('werkzeug').setLevel(logging.INFO)
    app.logger.debug("dotenv %s loaded: %s", dotenv_path, loaded)

    # -----------------------
    # Extensions
    # -----------------------
    db.init_app(app)
    migrate.init_app(app, db)
    csrf.init_app(app)
    limiter.init_app(app)

    # -----------------------
    # Blueprints
    # -----------------------
    from routes.auth import auth_bp
    from routes.dashboard import dashboard_bp
    from routes.admin import admin_bp

    app.register_blueprint(auth_bp)
    app.register_blueprint(dashboard_bp)
    app.register_blueprint(admin_bp)

    from commands import register_commands
    register_commands(app)

    # -----------------------
    # Error pages
    # -----------------------
    @app.errorhandler(AuthorizationDenied)
    def access_denied(e):
        return render_template('error.html', message="Access denied."), 403

    @app.errorhandler(429)
    def too_many_requests(e):
        return render_template('error.html', message="Too many attempts. Please try again later."), 429

    # -----------------------
    # Context processor for templates
    # -----------------------
    @app.context_processor
    def inject_user():
        return dict(current_user=session.get('user'), user_role=session.get('role'), can=can)

    app.logger.info("App created (database backend: %s)", app.config["SQLALCHEMY_DATABASE_URI"].split(":", 1)[0])
    return app


# -----------------------
# Startup: create DB tables and print registered routes
# -----------------------
if __name__ == "__main__":
    app = create_app()
    with app.app_context():
        db.create_all()
        print("\n=== Registered routes ===")
        for rule in app.url_map.iter_rules():
            print(f"{rule.endpoint:30} -> {rule.rule}")
        print("=========================\n")
    app.run(debug=_env_flag("FLASK_DEBUG"))
