from pathlib import Path

import structlog
import typer
from rich.progress import BarColumn
from rich.progress import MofNCompleteColumn
from rich.progress import Progress
from rich.progress import SpinnerColumn
from rich.progress import TextColumn
from rich.progress import TimeElapsedColumn
from rich.table import Table

from chainsight.core.container import get_container
from chainsight.core.decorators import handle_errors
from chainsight.core.github import check_github_token
from chainsight.core.logging import console
from chainsight.core.validation import validate_target_file
from chainsight.core.validation import ValidationError
from chainsight.models.target import load_targets
from chainsight.services.analyzer_service import format_model_line
from chainsight.services.collector_service import CollectResult
from chainsight.services.collector_service import DEFAULT_QUERIES
from chainsight.services.github_service import available_queries

logger = structlog.get_logger('collect_command')
app = typer.Typer()


def print_summary(result: CollectResult):
    stats = result.stats
    table = Table(title='Collection Summary')
    table.add_column('Metric', style='cyan')
    table.add_column('Value', style='magenta')
    table.add_row('Targets x Queries', str(stats.total))
    table.add_row('Fetched', str(stats.fetched))
    table.add_row('Not Found', str(stats.not_found))
    table.add_row('Failed', str(stats.failed))
    table.add_row('Skipped', str(stats.skipped))
    table.add_row('Total API Requests', str(stats.api_requests))
    table.add_row('Batches Written', str(stats.batches_written))
    table.add_row('Total Duration', f"{stats.elapsed_time:.2f}s")
    console.print(table)

    for write in result.writes:
        console.print(f'[bold]{write.query_name}[/] -> {write.database_path}')
        for name, rows in write.tables.items():
            console.print(f'  {name}: {rows:,} rows')
        report = result.reports.get(write.query_name)
        if report is not None:
            for model in report.models:
                console.print(f'  {format_model_line(model)}')


@app.callback(invoke_without_command=True)
@handle_errors
def main(
    input_file: Path = typer.Option(
        ..., '--input', '-i', help='Target list (JSONL or JSON array, flat or project-grouped)',
    ),
    output_dir: Path | None = typer.Option(
        None, '--output', '-o', help='Output root directory (default: output)',
    ),
    queries: list[str] = typer.Option(
        list(DEFAULT_QUERIES), '--query', '-q', help='Query shape to run; repeat for several',
    ),
    analyze: bool = typer.Option(False, '--analyze', help='Run the SQL models after writing'),
    security_insights: bool = typer.Option(
        False, '--security-insights', help='Also fetch SECURITY-INSIGHTS.yml documents',
    ),
    workers: int = typer.Option(4, help='Number of concurrent requests'),
    limit: int | None = typer.Option(None, help='Limit number of targets'),
    token: str = typer.Option(
        None, envvar='GITHUB_TOKEN', help='GitHub Token',
    ),
):
    """
    Fetch repositories from the GitHub GraphQL API and write analytical stores.
    """
    container = get_container()
    config = container.config

    validate_target_file(input_file)
    unknown = sorted(set(queries) - set(available_queries()))
    if unknown:
        raise ValidationError(
            f"Unknown query shape(s): {', '.join(unknown)}. Available: {', '.join(available_queries())}",
        )
    token = check_github_token(token or config.github.token, console=console)

    if output_dir is not None:
        config.paths.output_dir = output_dir

    targets = load_targets(input_file)
    if limit:
        targets.targets = targets.targets[:limit]
    logger.info(
        'Loaded targets', input=str(input_file),
        repositories=len(targets.targets), projects=len(targets.projects),
    )

    collector = container.create_collector(
        token, workers=workers, security_insights=security_insights,
    )

    with Progress(
        SpinnerColumn(),
        TextColumn('[bold blue]{task.description}'),
        BarColumn(),
        MofNCompleteColumn(),
        TimeElapsedColumn(),
        console=console,
    ) as progress:
        result = collector.run(
            input_file, targets, queries, analyze=analyze, progress=progress,
        )

    print_summary(result)
