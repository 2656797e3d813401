"""Runs the ordered SQL models that derive the agg_ tier from base tables."""
import time
from dataclasses import dataclass
from dataclasses import field
from enum import Enum
from pathlib import Path
from typing import Any

import duckdb
import structlog
from rich.console import Console
from rich.table import Table

from chainsight.core.logging import console as default_console
from chainsight.core.logging import STATUS_GLYPHS
from chainsight.core.schema import AGG_PREFIX
from chainsight.core.schema import BASE_PREFIX
from chainsight.core.schema import RAW_PREFIX
from chainsight.core.store import AnalyticsStore
from chainsight.core.store import quote_identifier

logger = structlog.get_logger('analyzer')

SQL_DIR = Path(__file__).resolve().parent.parent / 'sql'
MODELS_DIR = SQL_DIR / 'models'
QUERIES_DIR = SQL_DIR / 'queries'

# Execution order is dependency order; file names sort the same way
ANALYSIS_MODELS: tuple[str, ...] = (
    '00_initialize_indexes.sql',
    '01_artifact_analysis.sql',
    '01a_security_insights_flattener.sql',
    '02_workflow_tool_detection.sql',
    '03_repository_security_summary.sql',
    '04_summary_views.sql',
    '05_project_analysis.sql',
)

ERROR_MESSAGE_LIMIT = 200

# Substrings of DuckDB catalog errors, used when the exception type is not specific
MISSING_OBJECT_MARKERS = ('does not exist', 'Catalog Error')


class ModelStatus(str, Enum):
    SUCCEEDED = 'succeeded'
    SKIPPED = 'skipped'
    WARNED = 'warned'


class AnalyzerState(str, Enum):
    IDLE = 'idle'
    CONNECTED = 'connected'
    RESET = 'reset'
    RUNNING = 'running'
    SUMMARIZING = 'summarizing'
    CLOSED = 'closed'


@dataclass
class ModelResult:
    name: str
    status: ModelStatus
    error: str | None = None
    elapsed: float = 0.0


@dataclass
class TableReport:
    name: str
    rows: int
    columns: list[tuple[str, str]]
    table_type: str = 'BASE TABLE'

    @property
    def tier(self) -> str:
        for prefix in (RAW_PREFIX, BASE_PREFIX, AGG_PREFIX):
            if self.name.startswith(prefix):
                return prefix.rstrip('_')
        return 'other'

    @property
    def status(self) -> str:
        return 'succeeded' if self.rows else 'empty'


@dataclass
class AnalysisSummary:
    totals: dict[str, Any] = field(default_factory=dict)
    categories: list[tuple[str, int, int]] = field(default_factory=list)
    tools: list[tuple[str, str, int]] = field(default_factory=list)


@dataclass
class AnalysisReport:
    models: list[ModelResult] = field(default_factory=list)
    dropped: list[str] = field(default_factory=list)
    summary: AnalysisSummary | None = None
    tables: list[TableReport] = field(default_factory=list)

    def count(self, status: ModelStatus) -> int:
        return sum(1 for result in self.models if result.status == status)


def truncate_error(message: str, limit: int = ERROR_MESSAGE_LIMIT) -> str:
    message = ' '.join(message.split())
    if len(message) <= limit:
        return message
    return message[:limit - 3] + '...'


def is_missing_dependency(error: Exception) -> bool:
    """True when a model failed because a table or other catalog object is absent."""
    if isinstance(error, duckdb.CatalogException):
        return True
    # Fallback for errors surfaced through a less specific exception class
    message = str(error)
    return any(marker in message for marker in MISSING_OBJECT_MARKERS)


class SecurityAnalyzer:
    """
    Executes the SQL models against one store.

    Every model runs exactly once per pass. A model that references a
    missing table is skipped, any other failure is downgraded to a warning,
    and the store is always checkpointed and closed at the end of
    `analyze`.
    """

    def __init__(
        self,
        store: AnalyticsStore,
        models_dir: Path = MODELS_DIR,
        models: tuple[str, ...] = ANALYSIS_MODELS,
        console: Console | None = None,
    ):
        self.store = store
        self.models_dir = Path(models_dir)
        self.models = models
        self.console = console or default_console
        self.state = AnalyzerState.IDLE

    def connect(self) -> None:
        self.store.open()
        self.state = AnalyzerState.CONNECTED

    def drop_aggregate_tables(self) -> list[str]:
        """Drop every agg_ view, then every agg_ table. Base and raw tables are kept."""
        dropped = []
        for table_type, keyword in (('VIEW', 'VIEW'), ('BASE TABLE', 'TABLE')):
            for name in self.store.list_tables(AGG_PREFIX, table_type):
                try:
                    self.store.execute(f'DROP {keyword} IF EXISTS {quote_identifier(name)}')
                    dropped.append(name)
                except duckdb.Error as e:
                    logger.warning(
                        'Failed to drop derived object',
                        name=name, status='warned', error=truncate_error(str(e)),
                    )
        logger.info('Dropped derived tables', count=len(dropped))
        return dropped

    def run_model(self, name: str) -> ModelResult:
        started = time.time()
        path = self.models_dir / name
        try:
            sql = path.read_text(encoding='utf-8')
            self.store.execute(sql)
        except (duckdb.Error, OSError) as e:
            elapsed = time.time() - started
            message = truncate_error(str(e))
            if isinstance(e, duckdb.Error) and is_missing_dependency(e):
                logger.info(
                    'Model skipped, required table is missing',
                    model=name, status='skipped', reason=message,
                )
                return ModelResult(name, ModelStatus.SKIPPED, message, elapsed)
            logger.warning('Model failed', model=name, status='warned', error=message)
            return ModelResult(name, ModelStatus.WARNED, message, elapsed)

        elapsed = time.time() - started
        logger.info('Model succeeded', model=name, status='succeeded', elapsed=f'{elapsed:.3f}s')
        return ModelResult(name, ModelStatus.SUCCEEDED, elapsed=elapsed)

    def run_models(self) -> list[ModelResult]:
        self.state = AnalyzerState.RUNNING
        return [self.run_model(name) for name in self.models]

    def verify_tables(self) -> list[TableReport]:
        """Row count and columns of every table and view, logged per object."""
        reports = []
        for table_type in ('BASE TABLE', 'VIEW'):
            for name in self.store.list_tables(table_type=table_type):
                try:
                    rows = self.store.count_rows(name)
                except duckdb.Error as e:
                    logger.error(
                        'Table unreadable', table=name, status='failed',
                        error=truncate_error(str(e)),
                    )
                    continue
                report = TableReport(name, rows, self.store.describe(name), table_type)
                logger.info(
                    'Table verified', table=name, rows=rows,
                    columns=len(report.columns), status=report.status,
                )
                reports.append(report)
        return reports

    def summarize(self) -> AnalysisSummary | None:
        """Render headline adoption figures; returns None when the aggregates are absent."""
        self.state = AnalyzerState.SUMMARIZING
        try:
            columns, rows = self.store.fetch_all(
                """
                SELECT
                    count(*) AS total_repos,
                    count(*) FILTER (WHERE has_sbom_artifact) AS repos_with_sbom,
                    count(*) FILTER (WHERE has_signature_artifact) AS repos_with_signatures,
                    count(*) FILTER (WHERE has_attestation_artifact) AS repos_with_attestations,
                    count(*) FILTER (WHERE uses_sbom_generator) AS repos_using_sbom_generators,
                    count(*) FILTER (WHERE uses_signer) AS repos_using_signers,
                    round(avg(security_maturity_score), 2) AS avg_maturity_score
                FROM agg_repo_summary
                """,
            )
            summary = AnalysisSummary(totals=dict(zip(columns, rows[0])))
            _, summary.categories = self.store.fetch_all(
                """
                SELECT tool_category, count(DISTINCT repository_id), count(DISTINCT tool_name)
                FROM agg_workflow_tools
                GROUP BY tool_category
                ORDER BY 2 DESC, 1
                """,
            )
            _, summary.tools = self.store.fetch_all(
                """
                SELECT tool_name, tool_category, count(DISTINCT repository_id)
                FROM agg_workflow_tools
                GROUP BY tool_name, tool_category
                ORDER BY 3 DESC, 1
                """,
            )
        except duckdb.Error as e:
            logger.info('Summary unavailable', status='skipped', reason=truncate_error(str(e)))
            return None

        self._render_summary(summary)
        return summary

    def _render_summary(self, summary: AnalysisSummary) -> None:
        total = summary.totals.get('total_repos') or 0

        overview = Table(title='Supply Chain Security Summary')
        overview.add_column('Metric', style='cyan')
        overview.add_column('Repositories', style='magenta', justify='right')
        overview.add_column('Share', style='green', justify='right')
        for key, value in summary.totals.items():
            if key in ('total_repos', 'avg_maturity_score'):
                continue
            share = f'{100.0 * value / total:.1f}%' if total else '-'
            overview.add_row(key.replace('_', ' ').capitalize(), f'{value:,}', share)
        overview.add_row('Total repositories', f'{total:,}', '')
        overview.add_row(
            'Average maturity score (0-10)',
            str(summary.totals.get('avg_maturity_score') or 0), '',
        )
        self.console.print(overview)

        if summary.categories:
            categories = Table(title='CI Tool Categories')
            categories.add_column('Category', style='cyan')
            categories.add_column('Repositories', style='magenta', justify='right')
            categories.add_column('Distinct tools', justify='right')
            for category, repos, tools in summary.categories:
                categories.add_row(category, f'{repos:,}', str(tools))
            self.console.print(categories)

        if summary.tools:
            self.console.print(
                'Detected tools: ' + ', '.join(
                    f'{name} ({repos})' for name, _, repos in summary.tools
                ),
            )

    def run_single_query(self, sql: str) -> tuple[list[str], list[tuple]]:
        """Ad hoc read query against the current store state."""
        return self.store.fetch_all(sql)

    def run_query_file(self, path: Path) -> tuple[list[str], list[tuple]]:
        path = Path(path)
        if not path.is_absolute() and not path.exists():
            path = QUERIES_DIR / path
        return self.run_single_query(path.read_text(encoding='utf-8'))

    def close(self) -> None:
        self.store.close()
        self.state = AnalyzerState.CLOSED

    def analyze(self, recreate: bool = False, verify: bool = False) -> AnalysisReport:
        """Connect, optionally reset, run all models, summarize and close."""
        report = AnalysisReport()
        try:
            self.connect()
            if recreate:
                report.dropped = self.drop_aggregate_tables()
                self.state = AnalyzerState.RESET
            report.models = self.run_models()
            report.summary = self.summarize()
            if verify:
                report.tables = self.verify_tables()
        finally:
            self.close()

        logger.info(
            'Analysis complete',
            succeeded=report.count(ModelStatus.SUCCEEDED),
            skipped=report.count(ModelStatus.SKIPPED),
            warned=report.count(ModelStatus.WARNED),
        )
        return report


def format_model_line(result: ModelResult) -> str:
    """One console line per model, e.g. '✓ 01_artifact_analysis.sql'."""
    line = f'{STATUS_GLYPHS[result.status.value]} {result.name}'
    if result.error:
        line += f': {result.error}'
    return line
