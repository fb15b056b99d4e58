import click
from flask import Flask

from adlinkton.api import api_bp
from adlinkton.auth import auth_bp
from adlinkton.config import Config
from adlinkton.extensions import db, login_manager, migrate
from adlinkton.jobs.scheduler import refetch_missing_favicons, start_scheduler
from adlinkton.models import User
from adlinkton.services.favicons import FaviconStore
from adlinkton.web import web_bp


def create_app(config_object=Config):
    app = Flask(__name__)
    app.config.from_object(config_object)
    app.logger.setLevel(app.config["LOG_LEVEL"])

    db.init_app(app)
    migrate.init_app(app, db)
    login_manager.init_app(app)
    app.extensions["favicon_store"] = FaviconStore.from_config(app.config)

    app.register_blueprint(auth_bp)
    app.register_blueprint(api_bp)
    app.register_blueprint(web_bp, url_prefix=app.config["FAVICON_PUBLIC_PREFIX"])

    @app.cli.command("init-db")
    def init_db_command():
        db.create_all()
        print("Initialized Adlinkton database.")

    @app.cli.command("create-user")
    @click.argument("username")
    @click.argument("password")
    def create_user_command(username, password):
        if User.query.filter_by(username=username).first():
            raise click.ClickException(f"User {username!r} already exists.")
        user = User(username=username, is_active=True)
        user.set_password(password)
        db.session.add(user)
        db.session.commit()
        print(f"Created user {username} (id {user.id}).")

    @app.cli.command("refetch-favicons")
    @click.option("--timeout", default=5.0, show_default=True, type=float)
    @click.option("--delay", default=0.5, show_default=True, type=float)
    def refetch_favicons_command(timeout, delay):
        updated, failed = refetch_missing_favicons(timeout=timeout, delay=delay)
        print(f"Successfully updated: {updated}")
        print(f"Failed: {failed}")

    with app.app_context():
        db.create_all()

    start_scheduler(app)
    return app
