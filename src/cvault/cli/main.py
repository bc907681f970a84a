#!/usr/bin/env python3
"""
Main CLI entry point for the compounding vault.

Usage:
    cvault [--json-output] [--log-level LEVEL] [--log-file PATH] COMMAND ...
"""

from __future__ import annotations

import logging
import sys

import click

from .. import __version__
from ..core import config
from ..core.logging_config import setup_logging
from .vault_commands import emission, simulate, split

logger = logging.getLogger(__name__)


@click.group()
@click.option("--json", "--json-output", "json_output", is_flag=True, help="Output raw JSON")
@click.option(
    "--log-level",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"], case_sensitive=False),
    default=config.LOG_LEVEL,
    show_default=True,
    help="Log level for JSON logs on stderr",
)
@click.option("--log-file", type=click.Path(dir_okay=False), default=None, help="Also write JSON logs to this file")
@click.version_option(__version__, prog_name="cvault")
@click.pass_context
def cli(ctx: click.Context, json_output: bool, log_level: str, log_file: str | None):
    """Yield-compounding vault calculators and simulator."""
    setup_logging(name="cvault", log_file=log_file, level=log_level)
    ctx.ensure_object(dict)
    ctx.obj["json_output"] = json_output
    logger.debug("CLI initialised: json_output=%s", json_output)


cli.add_command(emission)
cli.add_command(split)
cli.add_command(simulate)


def main() -> int:
    """Console script entry point."""
    return cli(obj={})


if __name__ == "__main__":
    sys.exit(main() or 0)
