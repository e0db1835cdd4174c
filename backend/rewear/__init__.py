import logging

import click
from flask import Flask
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from werkzeug.middleware.proxy_fix import ProxyFix

from .config import get_config
from .errors import register_error_handlers
from .extensions import db, migrate, cors
from .logging_config import setup_logging

logger = logging.getLogger(__name__)


def create_app(config_name: str | None = None) -> Flask:
    app = Flask(__name__)

    app.config.from_object(get_config(config_name))
    setup_logging(app.config.get("LOG_LEVEL"))

    # Honor proxy headers from Nginx for correct url_for(_external=True) scheme/host
    app.wsgi_app = ProxyFix(app.wsgi_app, x_for=1, x_proto=1, x_host=1, x_port=1, x_prefix=1)  # type: ignore[assignment]

    # Init extensions
    cors.init_app(app)
    db.init_app(app)
    migrate.init_app(app, db)

    from . import models  # noqa: F401  register mappers for migrations

    # Register blueprints (v1 API)
    from .apis.v1 import register_api
    register_api(app)
    register_error_handlers(app)

    @app.get("/health")
    def health() -> dict:
        return {"status": "ok"}

    @app.get("/db-check")
    def db_check():
        try:
            db.session.execute(text("SELECT 1"))
            return {"db": "ok"}
        except SQLAlchemyError as e:
            logger.warning("Database check failed: %s", e)
            return {"db": "error", "message": str(e)}, 500

    @app.cli.command("init-db")
    def init_db() -> None:
        """Create all tables (development convenience; use migrations in production)."""
        db.create_all()
        click.echo("Database tables created")

    return app
