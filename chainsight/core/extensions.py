"""Optional DuckDB extensions installed and loaded on every new connection."""
from dataclasses import dataclass

import duckdb
import structlog

logger = structlog.get_logger('extensions')


@dataclass(frozen=True)
class Extension:
    name: str
    description: str


EXTENSION_REGISTRY: tuple[Extension, ...] = (
    Extension('json', 'JSON ingestion and path extraction'),
    Extension('parquet', 'Parquet columnar export'),
    Extension('fts', 'Full-text search indexes'),
    Extension('autocomplete', 'SQL autocompletion for interactive shells'),
    Extension('ui', 'Browser-based local UI'),
    Extension('httpfs', 'Remote file access over HTTP(S) and S3'),
)


def ensure_extensions(
    connection: duckdb.DuckDBPyConnection,
    extensions: tuple[Extension, ...] = EXTENSION_REGISTRY,
) -> dict[str, bool]:
    """
    Install and load every extension, continuing past failures.

    Safe to call repeatedly on the same connection: INSTALL and LOAD are
    no-ops for an extension that is already present.

    Returns:
        Mapping of extension name to whether it is loaded.
    """
    loaded: dict[str, bool] = {}
    for extension in extensions:
        try:
            connection.execute(f"INSTALL '{extension.name}'")
            connection.execute(f"LOAD '{extension.name}'")
            loaded[extension.name] = True
            logger.debug('Extension loaded', extension=extension.name)
        except duckdb.Error as e:
            loaded[extension.name] = False
            logger.warning(
                'Extension unavailable',
                extension=extension.name,
                status='warned',
                error=str(e),
            )
    return loaded
