import typer
from rich.table import Table

from chainsight.core.extensions import EXTENSION_REGISTRY
from chainsight.core.logging import console
from chainsight.core.store import AnalyticsStore

app = typer.Typer()


@app.callback(invoke_without_command=True)
def main(
    check: bool = typer.Option(
        False, '--check', help='Open an in-memory store and report which extensions load',
    ),
):
    """List the DuckDB extensions loaded on every connection."""
    loaded: dict[str, bool] = {}
    if check:
        with AnalyticsStore(':memory:') as store:
            store.open()
            loaded = store.loaded_extensions

    table = Table(title='DuckDB Extensions')
    table.add_column('Name', style='cyan')
    table.add_column('Purpose', style='magenta')
    if check:
        table.add_column('Loaded', justify='center')
    for extension in EXTENSION_REGISTRY:
        row = [extension.name, extension.description]
        if check:
            row.append('[green]✓[/]' if loaded.get(extension.name) else '[red]✗[/]')
        table.add_row(*row)
    console.print(table)
    console.print('[dim]Extensions that fail to install or load are logged and skipped.[/]')
