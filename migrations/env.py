# migrations/env.py
"""
Alembic environment for the petship schema.

Two ways in:
  - ``flask db upgrade``: Flask-Migrate has pushed an app context and owns the engine.
  - ``alembic -c migrations/alembic.ini upgrade head`` with DATABASE_URL set
    (deploy hooks, CI): no app is created, the models are imported directly.
"""
from __future__ import annotations

import logging
import os
import sys
from logging.config import fileConfig

from alembic import context
from sqlalchemy import create_engine

ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)

config = context.config
if config.config_file_name and config.file_config.has_section("loggers"):
    fileConfig(config.config_file_name, disable_existing_loggers=False)

log = logging.getLogger("alembic.env")


def _flask_migrate_ext():
    """The Flask-Migrate extension when running under ``flask db``, else None."""
    if os.getenv("DATABASE_URL"):
        return None
    from flask import current_app

    return current_app.extensions["migrate"]


MIGRATE_EXT = _flask_migrate_ext()


def _metadata():
    if MIGRATE_EXT is not None:
        return MIGRATE_EXT.db.metadata

    from petship import models  # noqa: F401
    from petship.extensions import db

    return db.metadata


def _database_url() -> str:
    if MIGRATE_EXT is not None:
        return MIGRATE_EXT.db.engine.url.render_as_string(hide_password=False)

    from petship.settings import _normalize_db_url

    return _normalize_db_url(os.environ["DATABASE_URL"])


def _skip_empty_autogenerate(ctx, revision, directives):
    cmd_opts = getattr(config, "cmd_opts", None)
    if cmd_opts and getattr(cmd_opts, "autogenerate", False) and directives[0].upgrade_ops.is_empty():
        directives[:] = []
        log.info("Schema unchanged; no revision written.")


def _configure_args() -> dict:
    args = dict(MIGRATE_EXT.configure_args or {}) if MIGRATE_EXT is not None else {}
    args.setdefault("process_revision_directives", _skip_empty_autogenerate)
    args.setdefault("compare_type", True)
    return args


def run_offline() -> None:
    context.configure(url=_database_url(), target_metadata=_metadata(), literal_binds=True, **_configure_args())
    with context.begin_transaction():
        context.run_migrations()


def run_online() -> None:
    engine = MIGRATE_EXT.db.engine if MIGRATE_EXT is not None else create_engine(_database_url())
    with engine.connect() as connection:
        context.configure(connection=connection, target_metadata=_metadata(), **_configure_args())
        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_offline()
else:
    run_online()
