"""Flask CLI commands for signing keys and refresh token housekeeping."""

from __future__ import annotations

import logging

import click
from flask.cli import with_appcontext

from authority.core.extensions import get_refresh_store, get_signing_key_store
from authority.services._shared.errors import ServiceError

LOGGER = logging.getLogger(__name__)


def _fmt(value) -> str:
    return value.isoformat(timespec="seconds") if value is not None else "-"


@click.group("keys")
def keys_cli() -> None:
    """Signing key management."""


@keys_cli.command("rotate")
@with_appcontext
def rotate_command() -> None:
    """Retire the active signing key and activate a new one."""
    try:
        key = get_signing_key_store().rotate()
    except ServiceError as exc:
        raise click.ClickException(str(exc)) from exc
    click.echo(f"Rotated: active key is now {key.kid}")


@keys_cli.command("list")
@with_appcontext
def list_command() -> None:
    """Show the key history, newest first. Secrets are never printed."""
    try:
        keys = get_signing_key_store().list_keys()
    except ServiceError as exc:
        raise click.ClickException(str(exc)) from exc
    if not keys:
        click.echo("(no keys)")
        return
    click.echo(f"{'id':>6}  {'active':<6}  {'created':<25}  retired")
    for key in keys:
        active = "yes" if key.active else "no"
        click.echo(
            f"{key.kid:>6}  {active:<6}  {_fmt(key.created_at):<25}  {_fmt(key.retired_at)}"
        )


@click.group("tokens")
def tokens_cli() -> None:
    """Refresh token housekeeping."""


@tokens_cli.command("purge")
@with_appcontext
def purge_command() -> None:
    """Delete expired, never-redeemed refresh token records."""
    try:
        removed = get_refresh_store().purge_expired()
    except ServiceError as exc:
        raise click.ClickException(str(exc)) from exc
    LOGGER.info("refresh_tokens.purged count=%s", removed)
    click.echo(f"Purged {removed} expired refresh token(s)")
