"""GitHub token lookup for the GraphQL collector."""
import typer
from rich.console import Console
from rich.panel import Panel

TOKEN_HELP = (
    '[bold]No GitHub token found[/]\n\n'
    'Every GraphQL request needs a [bold blue]Personal Access Token[/], even for public repositories.\n\n'
    '  create one:  [link=https://github.com/settings/personal-access-tokens][blue]github.com/settings/personal-access-tokens[/link]\n'
    '  scope:       read-only access to public repositories\n'
    '  provide it:  [bold]GITHUB_TOKEN[/] (or [bold]GITHUB_PAT[/]) in the environment or a [bold].env[/] file,\n'
    '               or [bold]--token[/] on the command line'
)


def check_github_token(token: str | None, console: Console | None = None) -> str:
    """Return the token, or print setup instructions and exit with code 1."""
    if token:
        return token

    console = console or Console()
    console.print(
        Panel(
            TOKEN_HELP,
            title='[bold red]chainsight collect[/]',
            title_align='left',
            border_style='red',
            padding=(1, 2),
        ),
    )
    raise typer.Exit(1)
