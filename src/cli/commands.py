"""CLI command implementations."""

from __future__ import annotations

import asyncio
import json
import logging
from typing import IO

import click
from rich import box
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from src.config import Settings
from src.processing.extractor import create_extractor
from src.processing.intake import RequestError, format_response, parse_request
from src.processing.types import (
    ErrorKind,
    ExpenseRecord,
    ExtractionFailure,
    ExtractionSuccess,
)

logger = logging.getLogger(__name__)
console = Console(width=200)
err_console = Console(stderr=True, width=200)

#: Process exit status per failure kind (1 is a bad batch file).
EXIT_CODES: dict[ErrorKind, int] = {
    ErrorKind.CONFIGURATION: 3,
    ErrorKind.UPSTREAM: 4,
    ErrorKind.PARSE: 5,
}


def _print_table(entries: list[ExpenseRecord]) -> None:
    table = Table(box=box.ROUNDED, show_header=True, header_style="bold cyan")
    table.add_column("#", style="dim", width=3)
    table.add_column("Date", width=12)
    table.add_column("Amount", width=12)
    table.add_column("Category", max_width=20)
    table.add_column("Description", max_width=60)
    for i, entry in enumerate(entries, start=1):
        table.add_row(str(i), entry.date, entry.amount, entry.category, entry.description)
    console.print(table)
    console.print(f"[dim]{len(entries)} entr{'y' if len(entries) == 1 else 'ies'}[/dim]")


@click.command()
@click.argument("batch_file", type=click.File("r", encoding="utf-8"))
@click.option(
    "--category",
    "-c",
    "categories",
    multiple=True,
    help="Category to offer the model. Repeatable; replaces categories in the file.",
)
@click.option("--table", "as_table", is_flag=True, help="Render a table instead of JSON.")
@click.pass_context
def parse(
    ctx: click.Context,
    batch_file: IO[str],
    categories: tuple[str, ...],
    as_table: bool,
) -> None:
    """Extract expenses from BATCH_FILE ({"emails": [...], "categories": [...]})."""
    settings: Settings = ctx.obj
    try:
        request = parse_request(batch_file.read())
    except RequestError as exc:
        err_console.print(f"[red]Invalid batch file: {escape(str(exc))}[/red]")
        ctx.exit(1)

    batch_categories = list(categories) if categories else request.categories
    extractor = create_extractor(settings)
    result = asyncio.run(extractor.run(request.emails, batch_categories))

    match result:
        case ExtractionSuccess(entries=entries):
            if as_table:
                _print_table(entries)
            else:
                click.echo(json.dumps(format_response(entries), indent=2, ensure_ascii=False))
        case ExtractionFailure(error=error):
            err_console.print(f"[red]{error.kind.value} error: {escape(str(error))}[/red]")
            ctx.exit(EXIT_CODES[error.kind])
