import os
from collections.abc import Sequence
from dataclasses import dataclass
from dataclasses import field
from pathlib import Path
from typing import Any

import duckdb
import humanize
import structlog

from chainsight.core.config import get_config
from chainsight.core.config import StoreConfig
from chainsight.core.errors import StorageFatalError
from chainsight.core.extensions import Extension
from chainsight.core.extensions import EXTENSION_REGISTRY
from chainsight.core.schema import raw_table_name
from chainsight.core.store import AnalyticsStore
from chainsight.core.store import quote_identifier
from chainsight.core.store import quote_literal
from chainsight.models.entities import SecurityInsightsDocument
from chainsight.models.target import ProjectMetadata
from chainsight.normalizers.base import get_normalization_stats
from chainsight.normalizers.projects import extract_projects
from chainsight.normalizers.projects import PROJECT_TABLES
from chainsight.normalizers.registry import get_normalizer
from chainsight.normalizers.registry import supported_queries
from chainsight.services.materializer_service import TableMaterializer
from chainsight.services.security_insights_service import store_documents

logger = structlog.get_logger('artifact_writer')


@dataclass
class WriteResult:
    query_name: str
    database_path: Path
    tables: dict[str, int] = field(default_factory=dict)
    parquet_files: list[Path] = field(default_factory=list)
    normalized: bool = False


def export_tables(
    store: AnalyticsStore,
    parquet_dir: Path,
    compression: str = 'ZSTD',
    row_group_size: int = 100_000,
) -> list[Path]:
    """
    Write every table of the main schema to `<parquet_dir>/<table>.parquet`.

    Files are written under a temporary name and moved into place, so an
    interrupted export never leaves a truncated file from an earlier batch.
    """
    parquet_dir.mkdir(parents=True, exist_ok=True)
    exported = []
    for table_name in store.list_tables():
        target = parquet_dir / f'{table_name}.parquet'
        staging = parquet_dir / f'.{table_name}.parquet.tmp'
        try:
            store.execute(
                f'COPY {quote_identifier(table_name)} TO {quote_literal(staging)} '
                f'(FORMAT PARQUET, COMPRESSION {quote_literal(compression)}, '
                f'ROW_GROUP_SIZE {int(row_group_size)})',
            )
        except duckdb.Error as e:
            staging.unlink(missing_ok=True)
            raise StorageFatalError(f'Failed to export {table_name}: {e}') from e
        os.replace(staging, target)
        exported.append(target)
        logger.info(
            'Exported table',
            table=table_name,
            path=str(target),
            size=humanize.naturalsize(target.stat().st_size),
        )
    return exported


class ArtifactWriter:
    """Materializes one fetch batch into a DuckDB store plus Parquet files."""

    def __init__(
        self,
        config: StoreConfig | None = None,
        extensions: tuple[Extension, ...] = EXTENSION_REGISTRY,
    ):
        self.config = config or get_config().store
        self.extensions = extensions

    def write(
        self,
        responses: Sequence[Any],
        output_dir: Path,
        query_name: str,
        projects: list[ProjectMetadata] | None = None,
        si_documents: list[SecurityInsightsDocument] | None = None,
    ) -> WriteResult:
        """
        Write raw, normalized and enrichment tables, then export them.

        Storage failures raise StorageFatalError and abort the batch; an
        unknown query shape only skips normalization.
        """
        output_dir = Path(output_dir)
        database_path = self.config.get_database_path(output_dir)
        result = WriteResult(query_name=query_name, database_path=database_path)

        with AnalyticsStore(database_path, self.extensions) as store:
            materializer = TableMaterializer(store, output_dir)

            raw_name = raw_table_name(query_name)
            result.tables[raw_name] = materializer.materialize_raw(raw_name, responses)

            normalizer = get_normalizer(query_name)
            if normalizer is None:
                logger.warning(
                    'No normalizer registered, keeping raw table only',
                    query=query_name,
                    supported=supported_queries(),
                    status='warned',
                )
            else:
                batch = normalizer.normalize(responses)
                for table_spec, _ in batch:
                    result.tables[table_spec.table_name] = materializer.materialize(
                        table_spec.table_name,
                        batch.records(table_spec.table_name),
                        normalizer.fallback_schemas[table_spec.table_name],
                    )
                result.normalized = True
                logger.info(
                    'Normalized batch', query=query_name,
                    summary=get_normalization_stats(batch),
                )

            if projects:
                rows = extract_projects(projects)
                for table_spec in PROJECT_TABLES:
                    result.tables[table_spec.table_name] = materializer.materialize(
                        table_spec.table_name,
                        [row.model_dump(mode='json') for row in rows[table_spec.table_name]],
                        table_spec.fallback_schema,
                    )

            if si_documents is not None:
                result.tables.update(store_documents(store, si_documents))

            result.parquet_files = export_tables(
                store,
                self.config.get_parquet_dir(output_dir),
                compression=self.config.parquet_compression,
                row_group_size=self.config.parquet_row_group_size,
            )

        logger.info(
            'Batch written',
            query=query_name,
            database=str(database_path),
            tables=len(result.tables),
            status='succeeded',
        )
        return result
