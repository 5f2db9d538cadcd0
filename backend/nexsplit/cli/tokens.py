"""Flask CLI commands for refresh-token maintenance."""

from __future__ import annotations

import logging

import click
from flask.cli import with_appcontext

from nexsplit.core.container import get_auth_service
from nexsplit.services._shared.errors import StoreUnavailableError

LOGGER = logging.getLogger(__name__)


@click.group("tokens")
def tokens_cli() -> None:
    """Refresh-token maintenance commands."""


@tokens_cli.command("sweep")
@with_appcontext
def sweep_command() -> None:
    """Delete refresh tokens whose expiry has passed.

    Meant to run periodically, e.g. an hourly cron entry
    ``0 * * * * APP_ENV=production flask --app nexsplit:create_app tokens sweep``.
    Exits non-zero when the token store is unreachable.
    """
    try:
        deleted = get_auth_service().sweep_expired()
    except StoreUnavailableError as exc:
        raise click.ClickException(f"Sweep failed: {exc}") from exc
    LOGGER.info("Refresh token sweep finished", extra={"event": "TOKENS_SWEPT"})
    click.echo(f"Deleted {deleted} expired refresh token(s).")
