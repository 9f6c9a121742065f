"""``flask keys``, ``flask tokens`` and ``flask seed`` operator commands."""

from __future__ import annotations

from flask import Flask

from .keys import keys_cli, tokens_cli
from .seed import seed_cli

COMMAND_GROUPS = (keys_cli, tokens_cli, seed_cli)


def init_app(app: Flask) -> None:
    for group in COMMAND_GROUPS:
        app.cli.add_command(group)
