from pathlib import Path

import typer

from chainsight.core.container import get_container
from chainsight.core.decorators import handle_errors
from chainsight.core.logging import console
from chainsight.services.landscape_service import LANDSCAPE_URL

app = typer.Typer()


@app.callback(invoke_without_command=True)
@handle_errors
def main(
    source: str = typer.Option(
        LANDSCAPE_URL, '--source', '-s', help='landscape.yml path or URL',
    ),
    output: Path = typer.Option(
        Path('input/cncf-landscape.json'), '--output', '-o', help='Project list JSON to write',
    ),
    project: list[str] = typer.Option(
        [], '--project', '-p', help='Only keep projects with this display name; repeatable',
    ),
):
    """
    Convert a CNCF landscape.yml into a project list usable by `collect`.
    """
    service = get_container().get_landscape_service()
    projects = service.convert(source, output, names=project or None)
    console.print(
        f'[green]✓[/] Wrote {len(projects)} projects '
        f'({sum(len(p.repos) for p in projects)} repositories) to {output}',
    )
