import typer

from . import extensions
from . import query
from . import status

app = typer.Typer(help='Database operations')

app.add_typer(status.app, name='status')
app.add_typer(query.app, name='query')
app.add_typer(extensions.app, name='extensions')
