"""CLI entry point for the expense extraction pipeline."""

import logging

import click
from dotenv import load_dotenv

from src.config import Settings

logger = logging.getLogger(__name__)


@click.group()
@click.option("-v", "--verbose", is_flag=True, help="Log pipeline progress to stderr.")
@click.pass_context
def cli(ctx: click.Context, verbose: bool) -> None:
    """Extract expense records from batches of emails with an LLM."""
    load_dotenv()
    logging.basicConfig(
        level=logging.INFO if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)-8s %(name)s — %(message)s",
    )
    try:
        ctx.obj = Settings.from_env()
    except ValueError as exc:
        raise click.ClickException(str(exc)) from exc


# Import and register commands after cli is defined to avoid circular imports.
from src.cli.commands import parse  # noqa: E402

cli.add_command(parse)
