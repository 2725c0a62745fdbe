import click
from flask import Flask, jsonify
from flask_migrate import Migrate
from sqlalchemy import inspect
from sqlalchemy.exc import SQLAlchemyError

from config import Config
from models import db
from models.user import User, Role
from routes import health_bp, auth_bp, search_bp, arena_bp, booking_bp, owner_bp, admin_bp
from slots.errors import SlotError
from slots.reservation import expire_stale_holds
from utils.auth_context import load_current_user
from utils.seed import seed_roles, seed_sports


def create_app(config_object=Config):
    app = Flask(__name__)
    app.config.from_object(config_object)

    # Register routes
    app.register_blueprint(health_bp)
    app.register_blueprint(auth_bp)
    app.register_blueprint(search_bp)
    app.register_blueprint(arena_bp)
    app.register_blueprint(booking_bp)
    app.register_blueprint(owner_bp)
    app.register_blueprint(admin_bp)

    # Database init
    db.init_app(app)

    # Migrations
    Migrate(app, db)

    with app.app_context():
        if app.config.get("AUTO_CREATE_TABLES"):
            db.create_all()
        # Seed default roles/sports at startup (safe & idempotent); skipped before the first migration
        if inspect(db.engine).has_table("roles"):
            seed_roles()
            seed_sports()

    @app.before_request
    def _load_user():
        load_current_user()

    register_error_handlers(app)

    @app.after_request
    def add_security_headers(resp):
        resp.headers["X-Content-Type-Options"] = "nosniff"
        resp.headers["X-Frame-Options"] = "DENY"
        resp.headers["Referrer-Policy"] = "no-referrer"
        resp.headers["Content-Security-Policy"] = "default-src 'none'; frame-ancestors 'none';"
        return resp

    register_cli(app)

    return app


def register_error_handlers(app):
    @app.errorhandler(SlotError)
    def _slot_error(exc):
        db.session.rollback()
        return jsonify(exc.to_dict()), exc.status_code

    @app.errorhandler(SQLAlchemyError)
    def _db_error(exc):
        # Datastore trouble is never reported as a slot conflict
        db.session.rollback()
        app.logger.exception("Database error")
        return jsonify(error="Internal server error"), 500

    @app.errorhandler(404)
    def _not_found(exc):
        return jsonify(error="Not found"), 404

    @app.errorhandler(405)
    def _method_not_allowed(exc):
        return jsonify(error="Method not allowed"), 405

#-------------------------

def register_cli(app):
    @app.cli.command("make-admin")
    @click.argument("email")
    def make_admin(email):
        """Promote a user to ADMIN by email (bootstrap)."""
        user = User.query.filter_by(email=email.strip().lower()).first()
        if not user:
            click.echo("User not found")
            return

        admin_role = Role.query.filter_by(name="ADMIN").first()
        if not admin_role:
            admin_role = Role(name="ADMIN")
            db.session.add(admin_role)
            db.session.commit()

        if admin_role not in user.roles:
            user.roles.append(admin_role)
            db.session.commit()

        click.echo(f"{user.email} promoted to ADMIN")

    @app.cli.command("expire-holds")
    def expire_holds():
        """Mark pending bookings whose slot hold lapsed as EXPIRED."""
        count = expire_stale_holds()
        click.echo(f"{count} stale holds expired")

    @app.cli.command("seed")
    def seed():
        """Insert default roles and sports."""
        seed_roles()
        seed_sports()
        click.echo("Seeded roles and sports")

#-------------------------


if __name__ == "__main__":
    app = create_app()
    # Run locally
    app.run(host="127.0.0.1", port=5002)
