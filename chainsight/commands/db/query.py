from pathlib import Path
from typing import Any

import typer
from rich.table import Table

from chainsight.core.container import get_container
from chainsight.core.decorators import handle_errors
from chainsight.core.logging import console

app = typer.Typer(context_settings={'allow_interspersed_args': True})


def print_rows(columns: list[str], rows: list[tuple[Any, ...]], title: str | None = None):
    if not rows:
        console.print('[yellow]No rows returned[/yellow]')
        return
    table = Table(title=title)
    for column in columns:
        table.add_column(column, style='cyan', overflow='fold')
    for row in rows:
        table.add_row(*('' if value is None else str(value) for value in row))
    console.print(table)
    console.print(f'[dim]{len(rows):,} rows[/]')


@app.callback(invoke_without_command=True)
@handle_errors
def main(
    sql: str = typer.Argument(..., help='SQL statement to run'),
    database: Path = typer.Option(..., '--database', '-d', help='DuckDB database file'),
):
    """Run an ad hoc read-only query."""
    with get_container().get_store(database, read_only=True) as store:
        columns, rows = store.fetch_all(sql)
    print_rows(columns, rows)
