from pathlib import Path

import typer

from chainsight.commands.db.query import print_rows
from chainsight.core.container import get_container
from chainsight.core.decorators import handle_errors
from chainsight.core.logging import console
from chainsight.core.validation import ValidationError
from chainsight.services.analyzer_service import format_model_line
from chainsight.services.analyzer_service import ModelStatus

app = typer.Typer()


@app.callback(invoke_without_command=True)
@handle_errors
def main(
    database: Path = typer.Option(..., '--database', '-d', help='DuckDB database file'),
    recreate: bool = typer.Option(
        False, '--recreate', help='Drop all agg_ tables and views before running',
    ),
    query: Path | None = typer.Option(
        None, '--query', help='Run a single SQL file instead of the models',
    ),
    verify: bool = typer.Option(False, '--verify', help='List every table with row counts'),
):
    """
    Run the supply-chain SQL models against a collected database.
    """
    if not database.exists():
        raise ValidationError(f'Database does not exist: {database}')

    analyzer = get_container().create_analyzer(database)

    if query is not None:
        try:
            analyzer.connect()
            columns, rows = analyzer.run_query_file(query)
        finally:
            analyzer.close()
        print_rows(columns, rows, title=query.name)
        return

    report = analyzer.analyze(recreate=recreate, verify=verify)

    if report.dropped:
        console.print(f'Dropped {len(report.dropped)} derived tables')
    for result in report.models:
        console.print(format_model_line(result))
    for table in report.tables:
        console.print(f'  {table.tier:<4} {table.name}: {table.rows:,} rows, {len(table.columns)} columns')

    console.print(
        f"[green]{report.count(ModelStatus.SUCCEEDED)} succeeded[/], "
        f"[blue]{report.count(ModelStatus.SKIPPED)} skipped[/], "
        f"[yellow]{report.count(ModelStatus.WARNED)} warned[/]",
    )
