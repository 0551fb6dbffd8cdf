"""Allow ``python -m src`` to run the CLI."""

from src.cli.main import cli

cli()
