"""DuckDB store handle shared by the writer and the analyzer of one run."""
from pathlib import Path
from typing import Any

import duckdb
import structlog

from chainsight.core.errors import StorageFatalError
from chainsight.core.extensions import ensure_extensions
from chainsight.core.extensions import Extension
from chainsight.core.extensions import EXTENSION_REGISTRY

logger = structlog.get_logger('store')


def quote_identifier(name: str) -> str:
    return '"' + name.replace('"', '""') + '"'


def quote_literal(value: str | Path) -> str:
    return "'" + str(value).replace("'", "''") + "'"


class AnalyticsStore:
    """
    Owns a single DuckDB connection for the duration of a run.

    The connection is opened lazily on first use; closing forces a
    checkpoint so writes are durable even if the process exits right after.
    """

    def __init__(
        self,
        path: str | Path,
        extensions: tuple[Extension, ...] = EXTENSION_REGISTRY,
        read_only: bool = False,
    ):
        self.path = Path(path) if str(path) != ':memory:' else path
        self.extensions = extensions
        self.read_only = read_only
        self.loaded_extensions: dict[str, bool] = {}
        self._connection: duckdb.DuckDBPyConnection | None = None

    def open(self) -> 'AnalyticsStore':
        if self._connection is None:
            self._connection = self._open()
        return self

    @property
    def connection(self) -> duckdb.DuckDBPyConnection:
        self.open()
        return self._connection

    @property
    def is_open(self) -> bool:
        return self._connection is not None

    def _open(self) -> duckdb.DuckDBPyConnection:
        if isinstance(self.path, Path):
            if self.read_only and not self.path.exists():
                raise StorageFatalError(f'Database does not exist: {self.path}')
            self.path.parent.mkdir(parents=True, exist_ok=True)
        try:
            connection = duckdb.connect(str(self.path), read_only=self.read_only)
        except duckdb.Error as e:
            raise StorageFatalError(f'Cannot open database {self.path}: {e}') from e
        logger.debug('Opened database', path=str(self.path))
        self.loaded_extensions = ensure_extensions(connection, self.extensions)
        return connection

    def execute(self, sql: str, parameters: list[Any] | None = None) -> duckdb.DuckDBPyConnection:
        if parameters is None:
            return self.connection.execute(sql)
        return self.connection.execute(sql, parameters)

    def fetch_all(self, sql: str, parameters: list[Any] | None = None) -> tuple[list[str], list[tuple]]:
        """Run a query and return (column names, rows)."""
        cursor = self.execute(sql, parameters)
        columns = [column[0] for column in cursor.description or []]
        return columns, cursor.fetchall()

    def list_tables(self, prefix: str | None = None, table_type: str | None = 'BASE TABLE') -> list[str]:
        """Tables (or views) of the main schema, optionally filtered by name prefix."""
        sql = "SELECT table_name FROM information_schema.tables WHERE table_schema = 'main'"
        parameters: list[Any] = []
        if table_type is not None:
            sql += ' AND table_type = ?'
            parameters.append(table_type)
        if prefix is not None:
            sql += ' AND starts_with(table_name, ?)'
            parameters.append(prefix)
        sql += ' ORDER BY table_name'
        return [row[0] for row in self.execute(sql, parameters).fetchall()]

    def table_exists(self, name: str) -> bool:
        row = self.execute(
            "SELECT count(*) FROM information_schema.tables WHERE table_schema = 'main' AND table_name = ?",
            [name],
        ).fetchone()
        return bool(row and row[0])

    def count_rows(self, name: str) -> int:
        row = self.execute(f'SELECT count(*) FROM {quote_identifier(name)}').fetchone()
        return row[0] if row else 0

    def describe(self, name: str) -> list[tuple[str, str]]:
        """(column, type) pairs in declaration order."""
        rows = self.execute(
            """
            SELECT column_name, data_type
            FROM information_schema.columns
            WHERE table_schema = 'main' AND table_name = ?
            ORDER BY ordinal_position
            """,
            [name],
        ).fetchall()
        return [(row[0], row[1]) for row in rows]

    def close(self) -> None:
        """Checkpoint and release the connection; failures are logged, not raised."""
        if self._connection is None:
            return
        try:
            if not self.read_only:
                self._connection.execute('CHECKPOINT')
        except duckdb.Error as e:
            logger.warning('Checkpoint failed', path=str(self.path), error=str(e))
        finally:
            try:
                self._connection.close()
            except duckdb.Error as e:
                logger.warning('Closing database failed', path=str(self.path), error=str(e))
            self._connection = None
            logger.debug('Closed database', path=str(self.path))

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
