# petship/__init__.py
from __future__ import annotations

import logging

from flask import Flask

from .settings import Config
from .extensions import db, migrate, login_manager, limiter


def create_app(config_object=Config) -> Flask:
    app = Flask(__name__)
    app.config.from_object(config_object)

    # ======================
    # Logging
    # ======================
    app.logger.setLevel(getattr(logging, str(app.config.get("LOG_LEVEL", "INFO")).upper(), logging.INFO))

    # ======================
    # Initialize Extensions
    # ======================
    db.init_app(app)
    migrate.init_app(app, db)
    login_manager.init_app(app)
    limiter.init_app(app)

    # ======================
    # Import Models (CRITICAL)
    # ======================
    from . import models  # noqa: F401

    # ======================
    # JSON error responses
    # ======================
    from .errors import register_error_handlers

    register_error_handlers(app)

    # ======================
    # Register Blueprints
    # ======================
    from .routes import api
    from .auth import auth
    from .admin import admin_bp
    from .public import public  # signed file downloads

    app.register_blueprint(api)
    app.register_blueprint(auth)
    app.register_blueprint(admin_bp)
    app.register_blueprint(public)

    # ======================
    # CLI (flask seed, flask backfill-shipments, ...)
    # ======================
    from .cli import register_cli

    register_cli(app)

    return app
