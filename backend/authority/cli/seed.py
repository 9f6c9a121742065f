"""Flask CLI commands for seeding demo credential records."""

from __future__ import annotations

import click
from flask import current_app
from flask.cli import with_appcontext

from authority.services._shared.errors import ServiceError
from authority.services.identity.service import IdentityService

DEMO_USERS = ("user1", "user2")
DEMO_PASSWORD = "password"


def _ensure_non_production() -> None:
    """Abort seeding when running in production."""
    config = current_app.config
    app_env = str(config.get("APP_ENV", "")).lower()
    if app_env == "production" or not (config.get("DEBUG") or config.get("TESTING")):
        raise click.UsageError("Seeding demo users is restricted to non-production environments.")


@click.group("seed")
def seed_cli() -> None:
    """Collection of database seeding commands."""


@seed_cli.command("users")
@click.option(
    "--password", default=DEMO_PASSWORD, show_default=True, help="Password for new users."
)
@with_appcontext
def users_command(password: str) -> None:
    """Create the demo users if they do not exist yet."""
    _ensure_non_production()
    service = IdentityService()
    for username in DEMO_USERS:
        try:
            record, created = service.provision_user(username=username, password=password)
        except ServiceError as exc:
            raise click.ClickException(f"Seeding failed: {exc}") from exc
        state = "created" if created else "existing"
        click.echo(f"  {username:<8} id={record.id:<4} {state}")
