import json
import os
import tempfile
from collections.abc import Sequence
from pathlib import Path
from typing import Any

import duckdb
import structlog

from chainsight.core.errors import MissingFallbackSchemaError
from chainsight.core.errors import StorageFatalError
from chainsight.core.schema import Column
from chainsight.core.store import AnalyticsStore
from chainsight.core.store import quote_identifier
from chainsight.core.store import quote_literal

logger = structlog.get_logger('materializer')

# Raw tables keep the response envelope; an empty batch still gets the column
RAW_FALLBACK_SCHEMA: list[Column] = [('repository', 'JSON')]


def columns_option(schema: Sequence[Column]) -> str:
    """Render a schema as the `columns` struct literal of `read_json`."""
    fields = ', '.join(f'{quote_literal(name)}: {quote_literal(column_type)}' for name, column_type in schema)
    return '{' + fields + '}'


class TableMaterializer:
    """
    Turns lists of uniform JSON records into DuckDB tables.

    Non-empty lists are staged as a temporary JSON array and loaded with
    `read_json`. When the caller declares a schema its column types are
    used for every batch, so a column that happens to be all null keeps
    its declared type; otherwise DuckDB infers types from the data. Empty
    lists require the declared schema. Every table is replaced inside a
    transaction so it either appears complete or not at all.
    """

    def __init__(self, store: AnalyticsStore, work_dir: Path):
        self.store = store
        self.work_dir = Path(work_dir)

    def materialize(
        self,
        table_name: str,
        records: Sequence[dict[str, Any]],
        fallback_schema: Sequence[Column] | None = None,
    ) -> int:
        """Create or replace a flat table; returns its row count."""
        if not records:
            if fallback_schema is None:
                raise MissingFallbackSchemaError(table_name)
            self._create_empty(table_name, fallback_schema)
            return 0
        return self._load_records(table_name, records, nested=False, schema=fallback_schema)

    def materialize_raw(self, table_name: str, responses: Sequence[Any]) -> int:
        """Load complete response objects, keeping every level of nesting."""
        if not responses:
            self._create_empty(table_name, RAW_FALLBACK_SCHEMA)
            return 0
        return self._load_records(table_name, responses, nested=True)

    def _create_empty(self, table_name: str, schema: Sequence[Column]) -> None:
        columns = ', '.join(
            f'{quote_identifier(name)} {column_type}' for name, column_type in schema
        )
        self._replace(table_name, f'CREATE TABLE {quote_identifier(table_name)} ({columns})')
        logger.info(
            'Created empty table from fallback schema',
            table=table_name, columns=len(schema), status='empty',
        )

    def _load_records(
        self,
        table_name: str,
        records: Sequence[Any],
        nested: bool,
        schema: Sequence[Column] | None = None,
    ) -> int:
        self.work_dir.mkdir(parents=True, exist_ok=True)
        fd, staging_name = tempfile.mkstemp(
            prefix=f'.{table_name}-', suffix='.json', dir=self.work_dir,
        )
        staging_path = Path(staging_name)
        try:
            with os.fdopen(fd, 'w', encoding='utf-8') as f:
                json.dump(list(records), f, default=str)

            if schema:
                options = f"format = 'array', columns = {columns_option(schema)}"
            else:
                options = "format = 'array', auto_detect = true, sample_size = -1"
            if nested:
                options += ', maximum_depth = -1'
            self._replace(
                table_name,
                f'CREATE TABLE {quote_identifier(table_name)} AS '
                f'SELECT * FROM read_json({quote_literal(staging_path)}, {options})',
            )
        finally:
            staging_path.unlink(missing_ok=True)

        rows = self.store.count_rows(table_name)
        logger.info('Created table', table=table_name, rows=rows, status='succeeded')
        return rows

    def _replace(self, table_name: str, create_sql: str) -> None:
        connection = self.store.connection
        try:
            connection.begin()
            connection.execute(f'DROP TABLE IF EXISTS {quote_identifier(table_name)}')
            connection.execute(create_sql)
            connection.commit()
        except duckdb.Error as e:
            try:
                connection.rollback()
            except duckdb.Error:
                logger.debug('Rollback failed', table=table_name, exc_info=True)
            logger.error('Failed to materialize table', table=table_name, status='failed', error=str(e))
            raise StorageFatalError(f'Failed to materialize {table_name}: {e}') from e
