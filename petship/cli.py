# petship/cli.py
from __future__ import annotations

import click
from flask import current_app

from .extensions import db
from .models import User
from .services import maintenance
from .utils.passwords import hash_password, validate_password


def _commit(action: str) -> None:
    try:
        db.session.commit()
    except Exception:
        db.session.rollback()
        current_app.logger.exception("%s failed", action)
        raise click.ClickException(f"{action} failed; nothing was written.")


def register_cli(app) -> None:
    @app.cli.command("seed")
    @click.option("--users-only", is_flag=True, help="Only create the demo/staff accounts.")
    def seed(users_only: bool):
        """Seed demo users, a sample conversation and the catalog."""
        if users_only:
            created = maintenance.seed_users()
            _commit("Seed users")
            click.echo(f"Created {created} users")
            return

        if not maintenance.seed_all_data():
            click.echo("Data already exists - run clear-data first if you want to reseed")
            return
        _commit("Seed data")
        click.echo("Seeded users, conversation, messages, shipment, products and quote templates")

    @app.cli.command("clear-data")
    @click.option("--yes", is_flag=True, help="Confirm deleting everything except users.")
    def clear_data(yes: bool):
        """Delete all conversations, shipments, documents and catalog rows."""
        if not yes:
            raise click.UsageError("Refusing to clear data without --yes.")
        counts = maintenance.clear_all_data()
        _commit("Clear data")
        for label, n in counts.items():
            click.echo(f"{label}: {n}")

    @app.cli.command("backfill-shipments")
    def backfill_shipments():
        """Create shipments for quote-request conversations that lack one."""
        created = maintenance.backfill_missing_shipments()
        _commit("Backfill shipments")
        click.echo(f"Backfill completed: {created} shipment records created")

    @app.cli.command("create-admin")
    @click.option("--email", required=True)
    @click.option("--name", required=True)
    @click.option("--password", required=True, prompt=True, hide_input=True, confirmation_prompt=True)
    def create_admin(email: str, name: str, password: str):
        """Create an admin account, or promote an existing user to admin."""
        email = email.strip().lower()
        ok, msg = validate_password(password)
        if not ok:
            raise click.BadParameter(msg, param_hint="--password")
        password_hash = hash_password(password)

        user = User.query.filter(db.func.lower(User.email) == email).first()
        if user is None:
            user = User(name=name, email=email, role="admin", org_id=maintenance.STAFF_ORG)
            db.session.add(user)
            verb = "Created"
        else:
            user.role = "admin"
            verb = "Promoted"
        user.password_hash = password_hash

        _commit("Create admin")
        click.echo(f"{verb} admin: {email}")
