import dotenv
import typer

from chainsight.__version__ import __version__
from chainsight.commands import analyze
from chainsight.commands import collect
from chainsight.commands import db
from chainsight.commands import landscape
from chainsight.core.logging import setup_logging

dotenv.load_dotenv()

app = typer.Typer(
    help='chainsight: supply-chain security signals from GitHub, analyzed in DuckDB.',
    no_args_is_help=True,
    pretty_exceptions_show_locals=False,
)

app.add_typer(collect.app, name='collect')
app.add_typer(analyze.app, name='analyze')
app.add_typer(landscape.app, name='landscape')
app.add_typer(db.app, name='db')


def version_callback(value: bool):
    if value:
        typer.echo(f'chainsight {__version__}')
        raise typer.Exit()


@app.callback()
def main(
    debug: bool = typer.Option(False, '--debug', help='Enable debug logging'),
    version: bool = typer.Option(
        False, '--version', callback=version_callback, is_eager=True,
        help='Show version and exit',
    ),
):
    """
    chainsight CLI - Supply chain security signals for GitHub repositories.
    """
    level = 'DEBUG' if debug else 'INFO'
    setup_logging(level=level)


if __name__ == '__main__':
    app()
