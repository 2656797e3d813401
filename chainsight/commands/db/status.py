from pathlib import Path

import typer
from rich.table import Table

from chainsight.core.container import get_container
from chainsight.core.decorators import handle_errors
from chainsight.core.logging import console
from chainsight.core.schema import AGG_PREFIX
from chainsight.core.schema import BASE_PREFIX
from chainsight.core.schema import RAW_PREFIX

app = typer.Typer()

TIERS = (
    ('Raw', RAW_PREFIX),
    ('Base', BASE_PREFIX),
    ('Aggregate', AGG_PREFIX),
)


@app.callback(invoke_without_command=True)
@handle_errors
def main(
    database: Path = typer.Option(..., '--database', '-d', help='DuckDB database file'),
):
    """Show tables of a database grouped by tier."""
    with get_container().get_store(database, read_only=True) as store:
        for title, prefix in TIERS:
            table = Table(title=f'{title} Tier')
            table.add_column('Name', style='cyan')
            table.add_column('Type', style='dim')
            table.add_column('Rows', style='magenta', justify='right')
            table.add_column('Columns', justify='right')
            for table_type in ('BASE TABLE', 'VIEW'):
                for name in store.list_tables(prefix, table_type):
                    table.add_row(
                        name,
                        'view' if table_type == 'VIEW' else 'table',
                        f'{store.count_rows(name):,}',
                        str(len(store.describe(name))),
                    )
            if table.row_count:
                console.print(table)
            else:
                console.print(f'[dim]{title} tier: no tables[/]')
            console.print()
