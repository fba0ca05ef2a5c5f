"""
G3 Tornado
Flask Application Factory.

Usage:
    from g3tornado import create_app
    app = create_app()           # defaults to "development"
    app = create_app("testing")  # explicit config
"""

import logging
import os

import click
from flask import Flask
from flask_cors import CORS
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address
from flask_migrate import Migrate

from g3tornado.config import config
from g3tornado.models import db
from g3tornado.middleware.logging_config import configure_logging
from g3tornado.middleware.timing import init_request_timing
from g3tornado.middleware.jwt_auth import init_jwt_middleware
from g3tornado.middleware.actor_context import init_actor_context
from g3tornado.middleware.rate_limiter import init_rate_limits

logger = logging.getLogger(__name__)

# ── SQLite FK enforcement (global engine event) ─────────────────────────
from sqlalchemy import event as _sa_event, engine as _sa_engine


@_sa_event.listens_for(_sa_engine.Engine, "connect")
def _enable_sqlite_fk(dbapi_conn, connection_record):
    """Enable foreign key enforcement for SQLite connections."""
    if "sqlite" in type(dbapi_conn).__module__:
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


migrate = Migrate()
limiter = Limiter(
    key_func=get_remote_address,
    default_limits=[],                     # no global limit — apply per-blueprint
    storage_uri=os.getenv("REDIS_URL", "memory://"),
)


def create_app(config_name=None):
    """
    Create and configure the Flask application.

    Args:
        config_name: Configuration environment name.
                     One of: "development", "testing", "production".
                     Defaults to APP_ENV env var, or "development" if unset.

    Returns:
        Configured Flask application instance.
    """
    if config_name is None:
        config_name = os.getenv("APP_ENV", "development")

    app = Flask(__name__, instance_relative_config=True)
    cfg = config[config_name]
    app.config.from_object(cfg() if config_name == "production" else cfg)
    os.makedirs(app.instance_path, exist_ok=True)

    # ── Structured logging (must be first) ───────────────────────────────
    configure_logging(app)

    # ── Extensions ───────────────────────────────────────────────────────
    db.init_app(app)
    migrate.init_app(app, db)
    limiter.init_app(app)
    cors_origins = app.config.get("CORS_ORIGINS", "*")
    if cors_origins and cors_origins != "*":
        CORS(app, origins=[o.strip() for o in cors_origins.split(",") if o.strip()])
    else:
        CORS(app)

    # ── Request timing middleware ────────────────────────────────────────
    init_request_timing(app)

    # ── JWT auth + actor resolution (order matters) ──────────────────────
    init_jwt_middleware(app)
    init_actor_context(app)

    # ── Import all models so Alembic can detect them ─────────────────────
    from g3tornado.models import user as _user_models        # noqa: F401
    from g3tornado.models import contact as _contact_models  # noqa: F401
    from g3tornado.models import project as _project_models  # noqa: F401
    from g3tornado.models import task as _task_models        # noqa: F401
    from g3tornado.models import impersonation as _impersonation_models  # noqa: F401

    # ── Auto-create tables (CREATE IF NOT EXISTS) ────────────────────────
    with app.app_context():
        try:
            db.create_all()
            app.logger.info("db.create_all() completed successfully")
        except Exception as e:
            app.logger.warning("db.create_all() failed: %s", e)

    # ── Blueprints ───────────────────────────────────────────────────────
    from g3tornado.blueprints.health_bp import health_bp
    from g3tornado.blueprints.contacts_bp import contacts_bp
    from g3tornado.blueprints.projects_bp import projects_bp
    from g3tornado.blueprints.tasks_bp import tasks_bp
    from g3tornado.blueprints.issues_bp import issues_bp
    from g3tornado.blueprints.admin_bp import admin_bp

    app.register_blueprint(health_bp)
    app.register_blueprint(contacts_bp)
    app.register_blueprint(projects_bp)
    app.register_blueprint(tasks_bp)
    app.register_blueprint(issues_bp)
    app.register_blueprint(admin_bp)

    # ── CLI commands ─────────────────────────────────────────────────────
    from g3tornado.models.user import ROLE_USER, VALID_ROLES

    @app.cli.command("create-user")
    @click.argument("email")
    @click.option("--name", default=None, help="Full name")
    @click.option("--role", type=click.Choice(sorted(VALID_ROLES)), default=ROLE_USER, show_default=True)
    @click.option("--contact-id", type=int, default=None, help="Contact this user acts as")
    def create_user_cmd(email, name, role, contact_id):
        """Create a user profile (the first admin is bootstrapped this way)."""
        from g3tornado.models.contact import Contact
        from g3tornado.models.user import User

        email = email.strip().lower()
        if User.query.filter_by(email=email).first() is not None:
            raise click.ClickException(f"User {email!r} already exists")
        if contact_id is not None and db.session.get(Contact, contact_id) is None:
            raise click.ClickException(f"Contact {contact_id} not found")

        user = User(email=email, full_name=name, role=role, contact_id=contact_id)
        db.session.add(user)
        db.session.commit()
        click.echo(f"Created {role} user {user.id}: {email}")
        logger.info("Created user_id=%s role=%s via CLI", user.id, role)

    @app.cli.command("issue-token")
    @click.argument("email")
    def issue_token_cmd(email):
        """Print a Bearer access token for an existing active user.

        Refuses to run unless JWT_SECRET_KEY or SECRET_KEY is exported: the
        development fallback secret is regenerated per process, so a token
        signed here would never verify in the server.
        """
        from g3tornado.models.user import User
        from g3tornado.services.jwt_service import generate_access_token

        if not (os.getenv("JWT_SECRET_KEY") or os.getenv("SECRET_KEY")):
            raise click.ClickException(
                "Set JWT_SECRET_KEY (or SECRET_KEY) in the environment shared with the "
                "server; without it the token is signed with a throwaway key."
            )

        user = User.query.filter_by(email=email.strip().lower()).first()
        if user is None or not user.is_active:
            raise click.ClickException(f"No active user with email {email!r}")
        click.echo(generate_access_token(user.id, user.role))
        logger.info("Issued access token for user_id=%s", user.id)

    # ── Error handlers ───────────────────────────────────────────────────
    @app.errorhandler(404)
    def not_found(e):
        from flask import request
        return {"error": "Not found", "path": request.path}, 404

    @app.errorhandler(405)
    def method_not_allowed(e):
        return {"error": "Method not allowed"}, 405

    @app.errorhandler(429)
    def rate_limited(e):
        return {"error": "Too many requests", "retry_after": e.description}, 429

    # ── Rate limiting (after blueprints registered) ──────────────────────
    init_rate_limits(app, limiter)

    return app
